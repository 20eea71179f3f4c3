"""
Resilience patterns for fallible operations.

Provides:
- Retry executor with exponential backoff
- Recovery handlers selected by failure kind
- Retry decorator
"""
from .recovery import RecoveryRegistry, resolve_recovery
from .retry_executor import RetryExecutor, retryable

__all__ = [
    "RecoveryRegistry",
    "resolve_recovery",
    "RetryExecutor",
    "retryable",
]
