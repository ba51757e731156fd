"""HTTP API exposing health, sync progress and metrics."""

from .server import ApiServer, ApiServerConfig

__all__ = ["ApiServer", "ApiServerConfig"]
