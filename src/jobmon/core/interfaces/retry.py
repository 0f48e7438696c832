from typing import Protocol, Any, Awaitable, Callable

class RetryPort(Protocol):
    """Abstract retry interface for async operations.

    Implementations retry transient failures with waits taken from a
    `BackoffCursor`. The contract keeps the core decoupled from a specific
    library (tenacity/backoff).
    """
    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:  # pragma: no cover - protocol
        """Execute an async callable with retry semantics.

        Args:
            func: Async callable returning a result.
            *args/**kwargs: Passed to the callable.
            Supported kw overrides (optional): backoff (BackoffCursor; without
            one the callable runs once), exception_types.
        Returns:
            Result of the successful invocation.
        Raises:
            Propagates last exception after the cursor is exhausted.
        """
        ...
