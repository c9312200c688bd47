"""
ServerHandler - pushes messages to the hub through its REST management API.

Comandos (stdin):
    send user <User Id>               POST   /api/v1/hubs/{hub}/users/{id}
    send group <Group Name>           POST   /api/v1/hubs/{hub}/groups/{group}
    send addusertogroup <User Id>     PUT    /api/v1/hubs/{hub}/groups/TestGroup/users/{id}
    send removeuserfromgroup <User Id> DELETE /api/v1/hubs/{hub}/groups/TestGroup/users/{id}

Every request carries a bearer token signed for its exact URL and the server
name. Success is 202 Accepted; anything else is reported and the loop goes on.
"""

import asyncio
import socket
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, TextIO

import aiohttp
import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..service_utils import ServiceUtils
from .console import start_reader

logger = structlog.get_logger(__name__)

SEND_MESSAGE_TARGET = "SendMessage"
DEFAULT_MESSAGE = "Hello from server"
TEST_GROUP = "TestGroup"
COMMAND_KEYWORD = "send"

USAGE = (
    "*********Usage*********\n"
    "send user <User Id>\n"
    "send group <Group Name>\n"
    "send addusertogroup <User Id>\n"
    "send removeuserfromgroup <User Id>\n"
    "***********************"
)


class PayloadMessage(BaseModel):
    """Body of send requests: {"Target": ..., "Arguments": [...]}."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    target: str = Field(alias="Target")
    arguments: List[Any] = Field(default_factory=list, alias="Arguments")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class HubRequest:
    """Uma requisição pronta para envio."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


def generate_server_name() -> str:
    return f"{socket.gethostname()}_{uuid.uuid4().hex}"


class ServerHandler:
    """
    Console server for the hub REST API.

    Usage:
        handler = ServerHandler(connection_string, "ServerlessSample")
        await handler.start()
    """

    def __init__(
        self,
        connection_string: str,
        hub_name: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        server_name: Optional[str] = None,
        token_lifetime: Optional[timedelta] = None,
    ):
        self.server_name = server_name or generate_server_name()
        self.hub_name = hub_name
        self.token_lifetime = token_lifetime

        self._service_utils = ServiceUtils(connection_string)
        self._endpoint = self._service_utils.endpoint
        self._session = session
        self._owns_session = session is None

        self.default_payload = PayloadMessage(
            target=SEND_MESSAGE_TARGET,
            arguments=[self.server_name, DEFAULT_MESSAGE],
        )

        self._routes = {
            "user": ("POST", self.get_send_to_user_url),
            "group": ("POST", self.get_send_to_group_url),
            "addusertogroup": ("PUT", self.get_group_user_url),
            "removeuserfromgroup": ("DELETE", self.get_group_user_url),
        }

        logger.info("server_handler_initialized",
                    server_name=self.server_name,
                    hub=hub_name,
                    endpoint=self._endpoint)

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def get_base_url(self, hub_name: str) -> str:
        return f"{self._endpoint}/api/v1/hubs/{hub_name.lower()}"

    def get_send_to_user_url(self, hub_name: str, user_id: str) -> str:
        return f"{self.get_base_url(hub_name)}/users/{user_id}"

    def get_send_to_group_url(self, hub_name: str, group: str) -> str:
        return f"{self.get_base_url(hub_name)}/groups/{group}"

    def get_group_user_url(self, hub_name: str, user_id: str) -> str:
        return f"{self.get_base_url(hub_name)}/groups/{TEST_GROUP}/users/{user_id}"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def build_request(self, url: str, method: str) -> HubRequest:
        token = self._service_utils.generate_access_token(
            url, self.server_name, self.token_lifetime
        )
        request = HubRequest(
            method=method,
            url=url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
        )
        if method == "POST":
            request.json = self.default_payload.to_wire()
        return request

    async def send_request(
        self,
        command: str,
        hub_name: str,
        arg: Optional[str] = None,
    ) -> Optional[int]:
        """
        Send the REST call for one sub-command.

        Returns:
            HTTP status, or None when nothing was sent (unknown command or
            transport failure)
        """
        route = self._routes.get(command)
        if route is None:
            print(f"Can't recognize command {command}")
            return None

        method, url_builder = route
        request = self.build_request(url_builder(hub_name, arg), method)
        print(request)

        session = await self._get_session()
        try:
            async with session.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.json,
            ) as response:
                status = response.status
                print(f"{status} {response.reason}")
        except asyncio.TimeoutError:
            logger.error("hub_request_timeout", method=method, url=request.url)
            print("Sent error: timeout")
            return None
        except aiohttp.ClientError as e:
            logger.error("hub_request_failed", method=method, url=request.url, error=str(e))
            print(f"Sent error: {e}")
            return None

        if status != 202:
            logger.warning("hub_request_not_accepted", method=method, url=request.url, status=status)
            print(f"Sent error: {status}")
        else:
            logger.info("hub_request_accepted", method=method, url=request.url)

        return status

    # ------------------------------------------------------------------
    # Console loop
    # ------------------------------------------------------------------

    async def handle_line(self, line: str) -> Optional[int]:
        """Parse and dispatch one console line. Blank lines are skipped."""
        args = line.split()
        if not args:
            return None

        if len(args) == 3 and args[0] == COMMAND_KEYWORD:
            return await self.send_request(args[1], self.hub_name, args[2])

        print(f"Can't recognize command {line}")
        return None

    @staticmethod
    def show_help() -> None:
        print(USAGE)

    async def start(self, stream: Optional[TextIO] = None) -> None:
        """
        Read commands until EOF, dispatching them strictly one at a time.

        Args:
            stream: console input (default: sys.stdin)
        """
        self.show_help()

        commands: asyncio.Queue[Optional[str]] = asyncio.Queue()
        start_reader(commands, stream)

        try:
            while True:
                line = await commands.get()
                if line is None:
                    break
                await self.handle_line(line)
        finally:
            await self.close()
