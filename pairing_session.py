#!/usr/bin/env python3
"""
deploy-node-app — KubeSail Pairing Session
===========================================
Links this CLI run to a browser sign-up on KubeSail.

On start a random session id is generated and the browser is opened at
{www_host}/register?session=<id>. Independently, a websocket to
{websocket_host}/socket.io/ is held open for the life of the process:

    CONNECTING --handshake--> OPEN
    CONNECTING/OPEN --error or disconnect--> CLOSED
    CLOSED --policy delay (0.25s)--> CONNECTING

Reconnection never gives up. The session id is generated once and survives
every reconnect. stop() is the only way to end the loop.
"""
import asyncio
import collections
import logging
import random
import uuid
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncContextManager, Awaitable, Callable, Optional
from urllib.parse import urlencode

import websockets
from websockets.exceptions import WebSocketException

from config_loader import KUBESAIL_WEBSOCKET_HOST, KUBESAIL_WWW_HOST

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (OSError, WebSocketException, asyncio.TimeoutError)

# Most recent states kept in PairingSession.transitions; reconnects never stop
TRANSITION_HISTORY = 64


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Fixed delay between attempts, plus up to ``jitter`` random seconds."""
    delay: float = 0.25
    jitter: float = 0.0

    def next_delay(self) -> float:
        if not self.jitter:
            return self.delay
        return self.delay + random.uniform(0, self.jitter)


def _connect(url: str) -> AsyncContextManager[Any]:
    # No handshake timeout: a slow endpoint just stays CONNECTING
    return websockets.connect(url, open_timeout=None)


class PairingSession:
    """Background pairing connection plus one browser registration."""

    def __init__(
        self,
        websocket_host: str = KUBESAIL_WEBSOCKET_HOST,
        www_host: str = KUBESAIL_WWW_HOST,
        policy: Optional[ReconnectPolicy] = None,
        connect: Optional[Callable[[str], AsyncContextManager[Any]]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        open_browser: Optional[Callable[[str], Any]] = None,
        session_id_factory: Optional[Callable[[], str]] = None,
    ):
        self.url = f"{websocket_host}/socket.io/"
        self.register_url = f"{www_host}/register"
        self.policy = policy or ReconnectPolicy()
        self._connect = connect or _connect
        self._sleep = sleep or asyncio.sleep
        self._open_browser = open_browser or webbrowser.open
        self._new_session_id = session_id_factory or (lambda: str(uuid.uuid4()))

        self.session_id: Optional[str] = None
        self.state: Optional[ConnectionState] = None
        self.transitions: "collections.deque[ConnectionState]" = \
            collections.deque(maxlen=TRANSITION_HISTORY)
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: dict, **kwargs) -> "PairingSession":
        policy = ReconnectPolicy(delay=settings["reconnect_delay"],
                                 jitter=settings["reconnect_jitter"])
        return cls(settings["websocket_host"], settings["www_host"], policy=policy, **kwargs)

    @property
    def registration_url(self) -> Optional[str]:
        if self.session_id is None:
            return None
        return f"{self.register_url}?{urlencode({'session': self.session_id})}"

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PairingSession":
        """Open the registration page and start connecting in the background."""
        if self.session_id is not None:
            raise RuntimeError("pairing session already started")
        self.session_id = self._new_session_id()
        logger.info("Opening %s", self.registration_url)
        if not self._open_browser(self.registration_url):
            logger.warning("Could not open a browser; visit %s", self.registration_url)
        self._task = asyncio.create_task(self._run(), name="pairing-session")
        return self

    async def wait(self) -> None:
        """Wait for the connection loop; it only ends through stop()."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        """Cancel the connection loop and wait for it to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if self.state is not ConnectionState.CLOSED:
            self._enter(ConnectionState.CLOSED)

    def _enter(self, state: ConnectionState) -> None:
        logger.debug("pairing %s -> %s", self.state and self.state.value, state.value)
        self.state = state
        self.transitions.append(state)

    async def _run(self) -> None:
        while True:
            self._enter(ConnectionState.CONNECTING)
            try:
                async with self._connect(self.url) as ws:
                    self._enter(ConnectionState.OPEN)
                    await ws.wait_closed()
            except TRANSPORT_ERRORS as e:
                logger.debug("pairing connection to %s failed: %r", self.url, e)
            self._enter(ConnectionState.CLOSED)
            await self._sleep(self.policy.next_delay())
