"""WebSocket listener for backend push notifications.

Connects to the push endpoint with the caller's token as a query parameter,
decodes JSON frames into PushMessage, and dispatches them:

- to every subscriber registered with ``subscribe()`` (e.g. a
  GenerationTracker's ``handle_push``), and
- to the handlers registered for the message's EventClass with ``on()``.

Abnormal closes (anything but code 1000) are followed by a reconnect after
``reconnect_delay`` seconds, up to ``max_reconnect_attempts`` in a row.
``disconnect()`` closes with code 1000 and stops reconnecting.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections import defaultdict
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import structlog
import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException

from src.sow_portal.clients.api import TokenProvider
from src.sow_portal.config import Settings
from src.sow_portal.realtime.events import EventClass, PushMessage, classify_event

logger = structlog.get_logger(__name__)

NORMAL_CLOSURE = 1000

PushHandler = Callable[[PushMessage], Any]


class PushListenerError(Exception):
    """The listener cannot connect at all (no endpoint or no token)."""


class PushListener:
    """Long-running consumer of the backend push channel.

    Args:
        endpoint: ``wss://`` URL of the push API.
        token_provider: Supplies the access token sent as ``?token=``.
        reconnect_delay: Seconds to wait before reconnecting.
        max_reconnect_attempts: Consecutive reconnects before giving up.
        connect: Connection factory; defaults to ``websockets.connect``.
    """

    def __init__(
        self,
        endpoint: str,
        token_provider: TokenProvider,
        *,
        reconnect_delay: float = 3.0,
        max_reconnect_attempts: int = 5,
        connect: Callable[[str], Any] = websockets.connect,
    ) -> None:
        self._endpoint = endpoint
        self._token_provider = token_provider
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_attempts = max_reconnect_attempts
        self._connect = connect
        self._subscribers: list[PushHandler] = []
        self._handlers: dict[EventClass, list[PushHandler]] = defaultdict(list)
        self._ws: Any = None
        self._stopping = False
        self._reconnect_attempts = 0

    @classmethod
    def from_settings(cls, settings: Settings, token_provider: TokenProvider, **kwargs: Any) -> PushListener:
        return cls(
            settings.WEBSOCKET_ENDPOINT,
            token_provider,
            reconnect_delay=settings.WS_RECONNECT_DELAY,
            max_reconnect_attempts=settings.WS_MAX_RECONNECT_ATTEMPTS,
            **kwargs,
        )

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def subscribe(self, handler: PushHandler) -> None:
        """Receive every decoded message regardless of classification."""
        self._subscribers.append(handler)

    def unsubscribe(self, handler: PushHandler) -> None:
        """Stop delivering messages to a handler added with ``subscribe``."""
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    def on(self, event_class: EventClass, handler: PushHandler) -> None:
        """Receive messages classified as ``event_class``."""
        self._handlers[event_class].append(handler)

    # ── Connection ──────────────────────────────────────────────────────────

    async def _url(self) -> str:
        if not self._endpoint:
            raise PushListenerError("WebSocket endpoint not configured")
        token = await self._token_provider.get_token()
        if not token:
            raise PushListenerError("No access token available")
        separator = "&" if "?" in self._endpoint else "?"
        return f"{self._endpoint}{separator}token={quote(token, safe='')}"

    async def _session(self) -> int | None:
        """Run one connection until it closes; returns the close code."""
        url = await self._url()
        async with self._connect(url) as ws:
            self._ws = ws
            self._reconnect_attempts = 0
            logger.info("push.connected", endpoint=self._endpoint)
            try:
                async for frame in ws:
                    await self._handle_frame(frame)
            finally:
                self._ws = None
            return getattr(ws, "close_code", NORMAL_CLOSURE)

    async def run(self) -> None:
        """Listen until disconnect() or until reconnect attempts run out."""
        self._stopping = False
        while not self._stopping:
            try:
                close_code = await self._session()
            except ConnectionClosedOK:
                close_code = NORMAL_CLOSURE
            except (ConnectionClosedError, WebSocketException, OSError, PushListenerError) as exc:
                close_code = None
                logger.warning("push.connection_error", error=str(exc) or type(exc).__name__)

            logger.info("push.closed", code=close_code)
            if self._stopping or close_code == NORMAL_CLOSURE:
                break
            if self._reconnect_attempts >= self._max_reconnect_attempts:
                logger.error("push.reconnect_exhausted", attempts=self._reconnect_attempts)
                break

            self._reconnect_attempts += 1
            logger.info(
                "push.reconnecting",
                attempt=self._reconnect_attempts,
                max_attempts=self._max_reconnect_attempts,
            )
            await asyncio.sleep(self._reconnect_delay)

    async def disconnect(self) -> None:
        """Close with code 1000 and stop reconnecting."""
        self._stopping = True
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close(code=NORMAL_CLOSURE, reason="Client disconnect")
        self._reconnect_attempts = 0
        logger.info("push.disconnected")

    async def send(self, message: Any) -> bool:
        """Send a JSON message; returns False (and warns) when not connected."""
        if self._ws is None:
            logger.warning("push.send_not_connected")
            return False
        await self._ws.send(json.dumps(message))
        return True

    # ── Dispatch ────────────────────────────────────────────────────────────

    async def _handle_frame(self, frame: str | bytes) -> None:
        try:
            message = PushMessage.model_validate(json.loads(frame))
        except (ValueError, ValidationError, TypeError):
            logger.warning("push.invalid_frame", size=len(frame))
            return

        event_class = classify_event(message)
        logger.debug(
            "push.message_received",
            type=message.type,
            event_type=message.event_type,
            classification=event_class.value,
        )
        for handler in [*self._subscribers, *self._handlers.get(event_class, [])]:
            await self._invoke(handler, message)

    async def _invoke(self, handler: PushHandler, message: PushMessage) -> None:
        try:
            result = handler(message)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning(
                "push.handler_failed",
                handler=getattr(handler, "__qualname__", repr(handler)),
                error=str(exc),
            )
