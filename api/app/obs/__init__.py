"""Observability helpers: error sink and SQL timing."""

from .errors import capture_exception, init_sentry  # re-export
from .queries import add_query_logger

__all__ = ["capture_exception", "init_sentry", "add_query_logger"]
