"""Request-scoped state: correlation IDs and per-request abort signals."""

import asyncio
import uuid
from contextvars import ContextVar

# Context variable for storing correlation ID across async boundaries
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class RequestContext:
    """Manages request context using contextvars for async-safe storage.

    The correlation ID set by the request context middleware is readable from
    anywhere inside the request, including procedure resolvers and error hooks.
    """

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        """Set the correlation ID for the current context.

        Args:
            correlation_id: The correlation ID to store in the context.
        """
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        """Get the correlation ID from the current context.

        Returns:
            str | None: The correlation ID if set, None otherwise.
        """
        return _correlation_id_var.get()

    @staticmethod
    def clear() -> None:
        """Clear all context variables."""
        _correlation_id_var.set(None)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracking.

    Returns:
        str: A string representation of a UUID4.
    """
    return str(uuid.uuid4())


class AbortSignal:
    """Cancellation signal for a single request.

    The dispatch pipeline aborts the signal when the client goes away or the
    request body exceeds its size limit. Resolvers can poll ``aborted`` or
    await ``wait()`` to stop work early.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def aborted(self) -> bool:
        """Whether the signal has fired."""
        return self._event.is_set()

    def abort(self, reason: str) -> None:
        """Fire the signal. Only the first reason is kept.

        Args:
            reason: Why the request was aborted.
        """
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> str | None:
        """Wait until the signal fires.

        Returns:
            str | None: The abort reason.
        """
        await self._event.wait()
        return self.reason

    def __repr__(self) -> str:
        return f"AbortSignal(aborted={self.aborted}, reason={self.reason!r})"
