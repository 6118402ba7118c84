import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from ..common.exceptions import ValidationError
from .models import FrameRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/frames")
async def frames_endpoint(websocket: WebSocket):
    """Stream frames in; device changes are pushed back out"""
    manager = getattr(websocket.app.state, "device_manager", None)
    client_id = id(websocket)

    await websocket.accept()
    if manager is None or manager.closed:
        await websocket.close(code=1013, reason="Device manager not initialized")
        return

    async def notify_devices_changed():
        try:
            await websocket.send_json(
                {"type": "devices_changed", "devices": manager.device_status()}
            )
        except Exception as e:
            logger.debug(f"Could not notify client {client_id}: {e}")

    manager.add_observer(notify_devices_changed)
    logger.info(f"Frame client {client_id} connected")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Received invalid JSON from client {client_id}")
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            msg_type = message.get("type") if isinstance(message, dict) else None
            if msg_type == "frame":
                try:
                    frame = FrameRequest(
                        pixels=message.get("pixels", []),
                        forced=message.get("forced", False),
                    )
                    composition = frame.to_composition()
                except (PydanticValidationError, ValidationError) as e:
                    await websocket.send_json({"type": "error", "message": str(e)})
                    continue
                manager.update_devices(composition, forced=frame.forced)
            elif msg_type == "ping":
                await websocket.send_json({"type": "pong", "client_id": client_id})
            elif msg_type == "get_state":
                await websocket.send_json({"type": "state", "data": manager.get_state()})
            else:
                await websocket.send_json(
                    {"type": "error", "message": f"Unknown message type: {msg_type}"}
                )

    except WebSocketDisconnect:
        logger.info(f"Frame client {client_id} disconnected")
    finally:
        manager.remove_observer(notify_devices_changed)
