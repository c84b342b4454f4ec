"""Live subscription stream over WebSocket."""

from __future__ import annotations

import json
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.models.stream import ErrorPayload, SubscribeRequest
from app.services.subscriptions import SubscriptionManager

router = APIRouter(tags=["stream"])

logger = logging.getLogger("nearsky.stream")


class WebSocketSubscriber:
    """Subscriber handle wrapping a single WebSocket connection."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.id = uuid4().hex[:12]

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        await self.websocket.send_json({"type": event, "data": payload})

    async def send_error(self, message: str, detail: str | None = None) -> None:
        await self.send("error", ErrorPayload(message=message, detail=detail).to_message())


async def _handle_message(
    manager: SubscriptionManager, subscriber: WebSocketSubscriber, raw: str
) -> None:
    try:
        message = json.loads(raw)
    except ValueError:
        await subscriber.send_error("Invalid message", "Messages must be JSON objects")
        return
    if not isinstance(message, dict):
        await subscriber.send_error("Invalid message", "Messages must be JSON objects")
        return

    message_type = message.get("type")
    if message_type == "subscribe":
        try:
            request = SubscribeRequest.model_validate(message.get("data") or {})
        except ValidationError as exc:
            await subscriber.send_error("Invalid subscribe payload", str(exc))
            return
        if request.poll_ms is not None:
            logger.debug("Ignoring pollMs=%s from %s; pollers are shared", request.poll_ms, subscriber.id)
        await manager.subscribe(subscriber, request.lat, request.lon, request.radius)
    elif message_type == "unsubscribe":
        manager.unsubscribe(subscriber)
    else:
        await subscriber.send_error("Unknown message type", str(message_type))


@router.websocket("/ws")
async def stream(websocket: WebSocket) -> None:
    """Accept subscribe/unsubscribe messages and push poller updates."""

    manager: SubscriptionManager = websocket.app.state.subscriptions
    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    logger.info("Connection %s opened", subscriber.id)

    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_message(manager, subscriber, raw)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(subscriber)
