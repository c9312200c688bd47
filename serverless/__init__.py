# Serverless hub demo
# Console server (REST management API) and console client (realtime hub connection)
#
# Lazy imports so that `python -m serverless` does not pre-load the handlers
# Use: from serverless import ServerHandler

__all__ = [
    "ClientHandler",
    "ConfigurationError",
    "ServerHandler",
    "ServiceUtils",
]

__version__ = "1.0.0"


def __getattr__(name: str):
    """Lazy import para evitar circular imports e RuntimeWarning."""
    if name == "ServerHandler":
        from .handlers.server import ServerHandler
        return ServerHandler
    elif name == "ClientHandler":
        from .handlers.client import ClientHandler
        return ClientHandler
    elif name in ("ServiceUtils", "ConfigurationError"):
        from . import service_utils
        return getattr(service_utils, name)
    raise AttributeError(f"module 'serverless' has no attribute {name!r}")
