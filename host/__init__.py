"""WebSocket table host for the hold'em engine."""

from .server import TableHost, TableServerError, run_server

__all__ = ["TableHost", "TableServerError", "run_server"]
