"""
Recovery handlers for exhausted retries.

A RecoveryRegistry maps failure kinds to handlers. When retries run out,
the handler registered for the most specific kind in the failure's MRO is
chosen; if none matches, the executor surfaces the failure.
"""
from typing import Any, Callable, Dict, Optional, Type, Union

RecoveryHandler = Callable[[BaseException], Any]


class RecoveryRegistry:
    """
    Failure-kind -> recovery handler mapping.

    Usage:
        recovery = RecoveryRegistry()
        recovery.register(TimeoutError, lambda exc: "cached")
        recovery.register(OSError, lambda exc: "offline")

        # TimeoutError is an OSError subclass; the TimeoutError handler wins
        recovery.resolve(TimeoutError())

        @recovery.on(KeyError)
        def missing(exc):
            return None
    """

    def __init__(self, handlers: Optional[Dict[Type[BaseException], RecoveryHandler]] = None):
        self._handlers: Dict[Type[BaseException], RecoveryHandler] = {}
        for kind, handler in (handlers or {}).items():
            self.register(kind, handler)

    def register(self, kind: Type[BaseException], handler: RecoveryHandler) -> None:
        if not (isinstance(kind, type) and issubclass(kind, BaseException)):
            raise TypeError(f"Recovery kind must be an exception type, got {kind!r}")
        if not callable(handler):
            raise TypeError(f"Recovery handler for {kind.__name__} must be callable")
        self._handlers[kind] = handler

    def on(self, kind: Type[BaseException]) -> Callable[[RecoveryHandler], RecoveryHandler]:
        """Decorator form of register()."""
        def decorator(handler: RecoveryHandler) -> RecoveryHandler:
            self.register(kind, handler)
            return handler
        return decorator

    def resolve(self, failure: BaseException) -> Optional[RecoveryHandler]:
        """Return the handler for the most specific registered kind, or None."""
        for kind in type(failure).__mro__:
            handler = self._handlers.get(kind)
            if handler is not None:
                return handler
        return None

    def __contains__(self, kind: Type[BaseException]) -> bool:
        return kind in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


Recover = Union[RecoveryHandler, RecoveryRegistry, None]


def resolve_recovery(recover: Recover, failure: BaseException) -> Optional[RecoveryHandler]:
    """Normalize the `recover` argument of the executor to a single handler."""
    if recover is None:
        return None
    if isinstance(recover, RecoveryRegistry):
        return recover.resolve(failure)
    return recover
