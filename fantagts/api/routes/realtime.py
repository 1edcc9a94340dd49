import logging
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """Realtime channel.

    Inbound messages: ``{"type": "register", "displayName", "role", "participantId"}``
    and ``{"type": "place_bid", "slot", "amount", "round"}``.
    Outbound messages: ``{"event": name, "data": payload}``.
    """
    engine = ws.app.state.engine
    connection_id = uuid4().hex

    await ws.accept()
    engine.registry.attach(connection_id, ws)
    try:
        while True:
            try:
                message = await ws.receive_json()
            except ValueError:
                await engine.registry.send(connection_id, "error", {"reason": "Messages must be JSON objects"})
                continue
            if not isinstance(message, dict):
                await engine.registry.send(connection_id, "error", {"reason": "Messages must be JSON objects"})
                continue
            kind = message.get("type")
            if kind == "register":
                await engine.register_connection(
                    connection_id,
                    message.get("displayName"),
                    message.get("role"),
                    message.get("participantId"),
                )
            elif kind == "place_bid":
                await engine.handle_bid(connection_id, message)
            else:
                await engine.registry.send(connection_id, "error", {"reason": f"Unknown message type: {kind}"})
    except WebSocketDisconnect:
        pass
    finally:
        await engine.handle_disconnect(connection_id)
