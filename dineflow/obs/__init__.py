"""Observability helpers."""

from .context import request_id_ctx
from .logging import configure_logging
from .queries import add_query_logger

__all__ = ["request_id_ctx", "configure_logging", "add_query_logger"]
