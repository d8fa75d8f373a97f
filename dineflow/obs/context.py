"""Per-request context shared with log records."""

from contextvars import ContextVar

# Set by the calling request handler; ``None`` outside a request.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
