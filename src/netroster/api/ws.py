"""WebSocket endpoint: replay from sequence, then live bus events."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from starlette.websockets import WebSocket, WebSocketDisconnect

from netroster.api.deps import get_event_bus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

# Events buffered per client before the oldest are dropped
MAX_PENDING_EVENTS = 500


def _frame(event: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "event",
        "seq": event["seq"],
        "event_type": event["event_type"],
        "payload": jsonable_encoder(event["payload"]),
    }


async def _sender(ws: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await ws.send_json(_frame(event))


@router.websocket("/ws")
async def ws_events(ws: WebSocket):
    """Stream every bus event to the client as JSON.

    Protocol:
    1. Client connects; live event streaming begins immediately
    2. Client optionally sends: {"type":"replay","since_seq":N}
    3. Server replays retained events -> replay_complete
    4. Client may send {"type":"ping"}; server answers {"type":"pong"}
    """
    await ws.accept()

    bus_dep = ws.app.dependency_overrides.get(get_event_bus, get_event_bus)
    bus = await bus_dep()

    queue: asyncio.Queue = asyncio.Queue(maxsize=MAX_PENDING_EVENTS)

    def enqueue(event: dict[str, Any]) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(event)

    subscription = bus.subscribe(["*"], enqueue)
    sender = asyncio.create_task(_sender(ws, queue))

    try:
        while True:
            try:
                raw = await ws.receive_json()
            except WebSocketDisconnect:
                break

            msg_type = raw.get("type") if isinstance(raw, dict) else None

            if msg_type == "replay":
                since_seq = int(raw.get("since_seq", 0))
                last_seq = since_seq
                for event in await bus.replay(since_seq):
                    await ws.send_json(_frame(event))
                    last_seq = event["seq"]
                await ws.send_json({"type": "replay_complete", "last_seq": last_seq})

            elif msg_type == "ping":
                await ws.send_json({"type": "pong"})

            # Other message types are silently ignored
    finally:
        bus.unsubscribe(subscription)
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
