# Console handlers: REST server and realtime client

from .client import ClientHandler
from .server import PayloadMessage, ServerHandler

__all__ = [
    "ClientHandler",
    "PayloadMessage",
    "ServerHandler",
]
