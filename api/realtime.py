"""WebSocket channel carrying the interview event protocol."""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from api.events import EventDispatcher, wire
from api.schemas import ErrorMsg, EventFrame

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def interview_channel(websocket: WebSocket) -> None:
    dispatcher: EventDispatcher = websocket.app.state.dispatcher
    await websocket.accept()
    logger.info("socket connected %s", websocket.client)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = EventFrame.model_validate_json(raw)
            except ValidationError:
                await websocket.send_json({"event": "error", "data": wire(ErrorMsg(message="malformed frame"))})
                continue
            # Coordinator calls block on the generator; keep the event loop free.
            replies = await asyncio.to_thread(dispatcher.dispatch, frame.event, frame.data)
            for event, data in replies:
                await websocket.send_json({"event": event, "data": data})
    except WebSocketDisconnect:
        logger.info("socket disconnected %s", websocket.client)
