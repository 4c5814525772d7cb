import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..errors import InvalidSizeError, TabShellError
from ..pty import valid_dimension
from .app import TabService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _handle_message(svc: TabService, msg: Any) -> Optional[Dict[str, Any]]:
    """Dispatch one client message; returns an error frame or None."""
    if not isinstance(msg, dict):
        return {"type": "error", "code": "bad_request", "message": "message must be an object"}
    kind = msg.get("type")
    tab_id = msg.get("tab_id")
    try:
        if kind == "input":
            data = msg.get("data")
            if not isinstance(tab_id, str) or not isinstance(data, str):
                raise ValueError("input requires string tab_id and data")
            await asyncio.to_thread(svc.dispatcher.write_to_tab, tab_id, data)
        elif kind == "resize":
            rows, cols = msg.get("rows"), msg.get("cols")
            if not isinstance(tab_id, str):
                raise ValueError("resize requires a string tab_id")
            if not (valid_dimension(rows) and valid_dimension(cols)):
                raise InvalidSizeError(rows, cols)
            await asyncio.to_thread(svc.dispatcher.resize_tab, tab_id, rows, cols)
        else:
            raise ValueError(f"unknown message type: {kind!r}")
    except TabShellError as exc:
        return {"type": "error", "tab_id": tab_id, **exc.to_payload()}
    except ValueError as exc:
        return {"type": "error", "tab_id": tab_id, "code": "bad_request", "message": str(exc)}
    return None


@router.websocket("/ws/events")
async def tab_events_ws(websocket: WebSocket):
    """Stream every tab's output and accept input/resize messages."""
    await websocket.accept()
    svc: TabService = websocket.app.state.tab_service
    q = svc.bus.subscribe()

    async def pump_events() -> None:
        while True:
            event = await q.get()
            await websocket.send_json(event.to_dict())

    async def pump_input() -> None:
        while True:
            msg = await websocket.receive_json()
            reply = await _handle_message(svc, msg)
            if reply is not None:
                await websocket.send_json(reply)

    tasks = [asyncio.create_task(pump_events()), asyncio.create_task(pump_input())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Event socket closed on error: %s", exc)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        svc.bus.unsubscribe(q)
