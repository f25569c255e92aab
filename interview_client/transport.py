from __future__ import annotations  # Client side of the realtime event channel

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import websockets
from pydantic import ValidationError

from api.schemas import EventFrame

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Dict[str, Any]], Awaitable[None]]


class TransportUnavailable(RuntimeError):  # Coordinator cannot be reached
    pass


class Transport(Protocol):  # Event channel to the session coordinator
    @property
    def connected(self) -> bool: ...

    async def send(self, event: str, data: Dict[str, Any]) -> None: ...


class WebSocketTransport:  # JSON event frames over a websocket connection
    def __init__(self, url: str, *, open_timeout: float = 5.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._ws: Optional[Any] = None
        self._reader: Optional[asyncio.Task] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self, on_event: EventHandler) -> bool:  # Open the channel; False when unreachable
        try:
            self._ws = await websockets.connect(
                self._url,
                open_timeout=self._open_timeout,
                ping_interval=20,
                ping_timeout=10,
            )
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as exc:
            logger.warning("Coordinator unreachable at %s: %s", self._url, exc)
            return False
        self._connected = True
        self._reader = asyncio.create_task(self._read(on_event))
        logger.info("Connected to coordinator at %s", self._url)
        return True

    async def _read(self, on_event: EventHandler) -> None:
        try:
            async for message in self._ws:
                try:
                    frame = EventFrame.model_validate_json(message)
                except ValidationError:
                    logger.warning("Dropping malformed frame from coordinator")
                    continue
                await on_event(frame.event, frame.data)
        except websockets.exceptions.ConnectionClosed as exc:
            logger.warning("Coordinator connection closed: %s", exc)
        finally:
            self._connected = False

    async def send(self, event: str, data: Dict[str, Any]) -> None:
        if self._ws is None or not self._connected:
            raise TransportUnavailable("not connected")
        try:
            await self._ws.send(json.dumps({"event": event, "data": data}))
        except websockets.exceptions.ConnectionClosed as exc:
            self._connected = False
            raise TransportUnavailable(str(exc)) from exc

    async def close(self) -> None:
        self._connected = False
        if self._reader is not None:
            self._reader.cancel()
        if self._ws is not None:
            await self._ws.close()
