import asyncio
import logging
from unittest.mock import patch

import pytest
import structlog


@pytest.fixture(autouse=True)
def quiet_structlog():
    """Keep structlog output off stdout so console assertions see only program output."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


class FakeSignalRClient:
    """
    Stand-in for pysignalr.client.SignalRClient.

    run() signs a token, fires on_open, delivers `events` to the registered
    handlers and then stays open until cancelled (or raises `error`).
    """

    def __init__(self, url, access_token_factory=None, **kwargs):
        self.url = url
        self.access_token_factory = access_token_factory
        self.handlers = {}
        self.callbacks = {}
        self.tokens = []
        self.events = []
        self.error_before_open = None
        self.error = None
        self.stay_open = True
        self.handshake = True

    def on_open(self, callback):
        self.callbacks["open"] = callback

    def on_close(self, callback):
        self.callbacks["close"] = callback

    def on_error(self, callback):
        self.callbacks["error"] = callback

    def on(self, event, callback):
        self.handlers[event] = callback

    async def run(self):
        self.tokens.append(self.access_token_factory())
        if self.error_before_open:
            raise self.error_before_open
        if not self.handshake:
            return
        await self.callbacks["open"]()
        try:
            for target, arguments in self.events:
                handler = self.handlers.get(target)
                if handler:
                    await handler(arguments)
            if self.error:
                raise self.error
            if self.stay_open:
                await asyncio.Event().wait()
        finally:
            await self.callbacks["close"]()


@pytest.fixture
def signalr_script():
    """Attributes set on every FakeSignalRClient the handler creates."""
    return {}


@pytest.fixture
def signalr(signalr_script):
    """Patch SignalRClient; yields the list of fakes created."""
    created = []

    def factory(url, **kwargs):
        fake = FakeSignalRClient(url, **kwargs)
        for key, value in signalr_script.items():
            setattr(fake, key, value)
        created.append(fake)
        return fake

    with patch("serverless.handlers.client.SignalRClient", side_effect=factory):
        yield created
