"""
Cadence Domain Layer

Policies, the task handle entity, failure events and the error hierarchy.
Value objects are immutable (frozen dataclasses) and depend only on the
standard library.
"""
