"""
ClientHandler - connects to the hub as a user and prints SendMessage events.

The hub protocol (negotiate, websocket transport, handshake, keep-alive) is
handled by pysignalr. SendMessage invocations are queued by the callback and
printed by a dedicated loop, in delivery order.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Optional

import aiohttp
import structlog
from pysignalr.client import SignalRClient
from websockets.exceptions import WebSocketException

from ..service_utils import ServiceUtils

logger = structlog.get_logger(__name__)

SEND_MESSAGE_TARGET = "SendMessage"


class HubConnectionError(Exception):
    """Conexão com o hub falhou ou foi encerrada com erro."""


def get_client_url(endpoint: str, hub_name: str) -> str:
    return f"{endpoint}/client/?hub={hub_name}"


def format_message(server: Any, message: Any, now: Optional[datetime] = None) -> str:
    timestamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    return f"[{timestamp}] Received message from server {server}: {message}"


class ClientHandler:
    """
    Console client for one user id.

    Usage:
        client = ClientHandler(connection_string, "ServerlessSample", "user-1")
        try:
            await client.start()
            await client.run_until_stopped()
        finally:
            await client.dispose()
    """

    def __init__(
        self,
        connection_string: str,
        hub_name: str,
        user_id: str,
        *,
        token_lifetime: Optional[timedelta] = None,
    ):
        self.user_id = user_id
        self.hub_name = hub_name

        self._service_utils = ServiceUtils(connection_string)
        self.url = get_client_url(self._service_utils.endpoint, hub_name)
        self._token_lifetime = token_lifetime

        self._client = SignalRClient(self.url, access_token_factory=self._access_token)
        self._client.on_open(self._on_open)
        self._client.on_close(self._on_close)
        self._client.on_error(self._on_error)
        self._client.on(SEND_MESSAGE_TARGET, self._on_send_message)

        self._opened = asyncio.Event()
        self._handshakes = 0
        self._messages: asyncio.Queue = asyncio.Queue()
        self._run_task: Optional[asyncio.Task] = None
        self._print_task: Optional[asyncio.Task] = None

    def _access_token(self) -> str:
        # Signed fresh on every connection attempt
        return self._service_utils.generate_access_token(
            self.url, self.user_id, self._token_lifetime
        )

    @property
    def is_connected(self) -> bool:
        return self._opened.is_set()

    # ------------------------------------------------------------------
    # pysignalr callbacks
    # ------------------------------------------------------------------

    async def _on_open(self) -> None:
        self._handshakes += 1
        logger.info("hub_connected", url=self.url, user_id=self.user_id, handshakes=self._handshakes)
        self._opened.set()

    async def _on_close(self) -> None:
        logger.info("hub_disconnected", url=self.url, user_id=self.user_id)
        self._opened.clear()

    async def _on_error(self, message: Any) -> None:
        logger.warning("hub_error", error=getattr(message, "error", message))

    async def _on_send_message(self, arguments: Any) -> None:
        self._messages.put_nowait(arguments)

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def handle_message(self, arguments: Any) -> bool:
        """Print one SendMessage invocation. Malformed payloads are logged and skipped."""
        if not isinstance(arguments, list) or len(arguments) < 2:
            logger.warning("send_message_malformed", arguments=repr(arguments))
            return False
        server, text = arguments[0], arguments[1]
        print(format_message(server, text), flush=True)
        return True

    async def _print_loop(self) -> None:
        while True:
            arguments = await self._messages.get()
            if arguments is None:
                return
            self.handle_message(arguments)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            await self._client.run()
        except (aiohttp.ClientError, WebSocketException, OSError) as e:
            logger.error("hub_transport_error", url=self.url, error=str(e))
            raise HubConnectionError(str(e) or type(e).__name__) from e
        except Exception as e:
            # pysignalr negotiate/handshake/protocol failures
            logger.error("hub_protocol_error", url=self.url, error=str(e))
            raise HubConnectionError(str(e) or type(e).__name__) from e

    async def start(self) -> None:
        """
        Connect to the hub and start printing messages.

        Returns once the handshake completed.

        Raises:
            HubConnectionError: the connection ended before the handshake
        """
        self._run_task = asyncio.create_task(self._run(), name=f"hub-client-{self.user_id}")
        opened = asyncio.create_task(self._opened.wait())
        try:
            await asyncio.wait({self._run_task, opened}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            opened.cancel()

        if not self._handshakes:
            # run() ended first: re-raise its failure
            await self._run_task
            raise HubConnectionError("connection closed before handshake")

        self._print_task = asyncio.create_task(self._print_loop())
        logger.info("client_started", user_id=self.user_id, hub=self.hub_name)

    async def run_until_stopped(self) -> None:
        """Wait until the connection ends."""
        if self._run_task:
            await self._run_task

    async def dispose(self) -> None:
        """Release the connection and the print loop. Never raises connection errors."""
        if self._run_task:
            self._run_task.cancel()
            try:
                await self._run_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning("hub_connection_ended_with_error", error=str(e))
            self._run_task = None

        if self._print_task:
            # pending messages are printed before the sentinel
            self._messages.put_nowait(None)
            await self._print_task
            self._print_task = None

        self._opened.clear()
        logger.info("client_disposed", user_id=self.user_id)
