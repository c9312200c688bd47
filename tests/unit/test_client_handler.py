"""
Tests for ClientHandler (SendMessage printing).
"""

import asyncio
from datetime import datetime

import aiohttp
import jwt
import pytest

from serverless.handlers.client import (
    ClientHandler,
    HubConnectionError,
    format_message,
    get_client_url,
)

ACCESS_KEY = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789abcdefgh="
CONNECTION_STRING = f"Endpoint=https://demo.service.signalr.net;AccessKey={ACCESS_KEY};Version=1.0;"
CLIENT_URL = "https://demo.service.signalr.net/client/?hub=ServerlessSample"


class TestClientHandler:
    """Testes para o ClientHandler."""

    @pytest.fixture
    def client(self, signalr):
        return ClientHandler(CONNECTION_STRING, "ServerlessSample", "user-1")

    @pytest.fixture
    def hub(self, client, signalr):
        return signalr[0]

    def test_client_url(self, client, hub):
        assert client.url == CLIENT_URL
        assert hub.url == CLIENT_URL
        assert get_client_url("http://localhost:8080", "Hub") == "http://localhost:8080/client/?hub=Hub"

    def test_subscribes_send_message(self, hub):
        assert set(hub.handlers) == {"SendMessage"}
        assert set(hub.callbacks) == {"open", "close", "error"}

    def test_access_token_signed_for_client_url(self, client):
        token = client._access_token()

        claims = jwt.decode(token, ACCESS_KEY, algorithms=["HS256"], audience=client.url)
        assert claims["nameid"] == "user-1"

    def test_format_message(self):
        line = format_message("serverA", "hi", now=datetime(2024, 5, 1, 12, 30, 15))
        assert line == "[2024-05-01 12:30:15] Received message from server serverA: hi"

    def test_handle_message_prints(self, client, capsys):
        assert client.handle_message(["serverA", "hi"]) is True

        out = capsys.readouterr().out
        assert "Received message from server serverA: hi" in out

    @pytest.mark.parametrize("arguments", [["serverA"], [], 5, None, "serverA hi", {"a": 1}])
    def test_handle_message_malformed(self, client, capsys, arguments):
        assert client.handle_message(arguments) is False
        assert capsys.readouterr().out == ""

    @pytest.mark.asyncio
    async def test_received_messages_printed_in_order(self, client, hub, capsys):
        hub.events = [
            ("SendMessage", ["serverA", "hi"]),
            ("Other", ["x", "y"]),
            ("SendMessage", ["serverB", "there"]),
        ]

        await client.start()
        assert client.is_connected
        await client.dispose()

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert "serverA" in lines[0] and "hi" in lines[0]
        assert "serverB" in lines[1] and "there" in lines[1]
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_malformed_payload_does_not_stop_client(self, client, hub, capsys):
        hub.events = [
            ("SendMessage", 5),
            ("SendMessage", ["serverA"]),
            ("SendMessage", ["serverA", "still here"]),
        ]

        await client.start()
        await client.dispose()

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 1
        assert "still here" in lines[0]

    @pytest.mark.asyncio
    async def test_token_signed_when_connecting(self, client, hub):
        await client.start()
        await client.dispose()

        claims = jwt.decode(hub.tokens[0], ACCESS_KEY, algorithms=["HS256"], audience=CLIENT_URL)
        assert claims["nameid"] == "user-1"

    @pytest.mark.asyncio
    async def test_start_fails_on_transport_error(self, client, hub):
        hub.error_before_open = aiohttp.ClientConnectionError("connection refused")

        with pytest.raises(HubConnectionError, match="connection refused"):
            await client.start()

        await client.dispose()

    @pytest.mark.asyncio
    async def test_start_fails_on_hub_error(self, client, hub):
        hub.error_before_open = RuntimeError("Negotiate failed with status 401")

        with pytest.raises(HubConnectionError, match="401"):
            await client.start()

    @pytest.mark.asyncio
    async def test_start_fails_without_handshake(self, client, hub):
        hub.handshake = False

        with pytest.raises(HubConnectionError, match="before handshake"):
            await client.start()

    @pytest.mark.asyncio
    async def test_connection_lost_after_start(self, client, hub, capsys):
        hub.events = [("SendMessage", ["serverA", "hi"])]
        hub.error = ConnectionResetError("reset by peer")

        await client.start()
        with pytest.raises(HubConnectionError, match="reset by peer"):
            await client.run_until_stopped()

        # dispose logs the failure instead of raising it again
        await client.dispose()
        assert "serverA" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_dispose_after_failure_does_not_raise(self, client, hub):
        hub.error = ValueError("invalid frame")
        hub.stay_open = False

        await client.start()
        await asyncio.sleep(0)

        await client.dispose()

    @pytest.mark.asyncio
    async def test_dispose_without_start(self, client):
        await client.dispose()
        assert client.is_connected is False
