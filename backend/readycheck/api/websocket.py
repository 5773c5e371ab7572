"""WebSocket endpoint for real-time run event streaming."""

import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from readycheck.errors import RunNotFoundError
from readycheck.services.event_bus import event_bus

logger = structlog.get_logger()

router = APIRouter()


async def _send_json(websocket: WebSocket, data: dict):
    await websocket.send_text(json.dumps(data, default=str))


@router.websocket("/ws/runs/{run_id}")
async def run_websocket(websocket: WebSocket, run_id: str):
    """Stream controller events for one run.

    Protocol:
        Server -> Client: JSON events (run_started, phase_started, phase_completed, ...)
        Client -> Server: JSON commands ({"type": "ping"}, {"type": "progress"})

    Reconnection:
        On connect the server replays the run's event history, so late
        joiners see every event published so far.
    """
    await websocket.accept()
    logger.info("ws_connected", run_id=run_id)

    async def ws_listener(event: dict):
        await _send_json(websocket, event)

    event_bus.subscribe(run_id, ws_listener)

    try:
        history = event_bus.get_history(run_id)
        if history:
            await _send_json(websocket, {
                "type": "event_history",
                "events": history,
                "count": len(history),
            })

        while True:
            try:
                data = await websocket.receive_text()
                message = json.loads(data)
                msg_type = message.get("type")

                if msg_type == "ping":
                    await _send_json(websocket, {"type": "pong"})

                elif msg_type == "progress":
                    run_manager = websocket.app.state.run_manager
                    try:
                        snapshot = run_manager.get(run_id).controller.get_progress()
                    except RunNotFoundError as e:
                        await _send_json(websocket, {"type": "error", "message": str(e)})
                    else:
                        await _send_json(websocket, {"type": "progress_snapshot", **snapshot.model_dump(mode="json")})

                else:
                    await _send_json(websocket, {
                        "type": "error",
                        "message": f"Unknown command: {msg_type}",
                    })

            except WebSocketDisconnect:
                break
            except json.JSONDecodeError:
                await _send_json(websocket, {
                    "type": "error",
                    "message": "Invalid JSON",
                })

    except WebSocketDisconnect:
        pass
    finally:
        event_bus.unsubscribe(run_id, ws_listener)
        logger.info("ws_disconnected", run_id=run_id)
