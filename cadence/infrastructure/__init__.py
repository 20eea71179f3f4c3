"""
Cadence Infrastructure

Execution side of the library: scheduling substrate, retry executor,
periodic task runner, logging and configuration.
"""
