from fastapi import APIRouter, Body, Depends, HTTPException, Request
from typing import Any, Dict
import asyncio

from ..errors import ButtonNotFoundError
from ..store import AppState
from ..pty import valid_dimension
from .app import TabService

router = APIRouter()


def get_service(request: Request) -> TabService:
    return request.app.state.tab_service


def _require_str(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise HTTPException(400, f"{key} must be a string")
    return value


def _require_dim(payload: Dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if not valid_dimension(value):
        raise HTTPException(400, f"{key} must be an integer between 1 and 65535")
    return value


# ----------------------------------------------------------------------
# Tabs

@router.get("/api/tabs")
async def list_tabs(svc: TabService = Depends(get_service)):
    records = await asyncio.to_thread(svc.dispatcher.list_tabs)
    return {
        "ok": True,
        "data": [svc.tab_payload(r) for r in records],
        "active": svc.tracker.active,
    }

@router.post("/api/tabs")
async def create_tab(svc: TabService = Depends(get_service)):
    data = await svc.create_tab()
    return {"ok": True, "data": data}

@router.get("/api/tabs/{tab_id}")
async def describe_tab(tab_id: str, svc: TabService = Depends(get_service)):
    info = await asyncio.to_thread(svc.dispatcher.describe, tab_id)
    return {"ok": True, "data": info}

@router.delete("/api/tabs/{tab_id}")
async def close_tab(tab_id: str, svc: TabService = Depends(get_service)):
    await svc.close_tab(tab_id)
    return {"ok": True}

@router.post("/api/tabs/{tab_id}/input")
async def write_to_tab(
    tab_id: str,
    payload: dict = Body(...),
    svc: TabService = Depends(get_service),
):
    data = _require_str(payload, "data")
    await asyncio.to_thread(svc.dispatcher.write_to_tab, tab_id, data)
    return {"ok": True}

@router.post("/api/tabs/{tab_id}/resize")
async def resize_tab(
    tab_id: str,
    payload: dict = Body(...),
    svc: TabService = Depends(get_service),
):
    rows = _require_dim(payload, "rows")
    cols = _require_dim(payload, "cols")
    await asyncio.to_thread(svc.dispatcher.resize_tab, tab_id, rows, cols)
    return {"ok": True}

@router.post("/api/tabs/{tab_id}/activate")
async def activate_tab(tab_id: str, svc: TabService = Depends(get_service)):
    svc.tracker.activate(tab_id)
    return {"ok": True, "active": svc.tracker.active}


# ----------------------------------------------------------------------
# Command buttons

@router.get("/api/buttons")
async def list_buttons(svc: TabService = Depends(get_service)):
    return {"ok": True, "data": [b.to_payload() for b in svc.state.buttons.list()]}

@router.post("/api/buttons")
async def add_button(payload: dict = Body(...), svc: TabService = Depends(get_service)):
    name = _require_str(payload, "name")
    command = _require_str(payload, "command")
    button_id = svc.state.buttons.add(name, command)
    await svc.save_state()
    return {"ok": True, "data": svc.state.buttons.get(button_id).to_payload()}

@router.put("/api/buttons/{button_id}")
async def update_button(
    button_id: str,
    payload: dict = Body(...),
    svc: TabService = Depends(get_service),
):
    name = _require_str(payload, "name")
    command = _require_str(payload, "command")
    svc.state.buttons.update(button_id, name, command)
    await svc.save_state()
    return {"ok": True, "data": svc.state.buttons.get(button_id).to_payload()}

@router.delete("/api/buttons/{button_id}")
async def delete_button(button_id: str, svc: TabService = Depends(get_service)):
    svc.state.buttons.delete(button_id)
    await svc.save_state()
    return {"ok": True}

@router.post("/api/buttons/{button_id}/run")
async def run_button(
    button_id: str,
    payload: dict = Body(default={}),
    svc: TabService = Depends(get_service),
):
    """Type a button's command (plus newline) into a tab, the active one by default.

    Body: `{"tab_id"?: str, "params"?: {name: value}}`; placeholders without
    a value are replaced with an empty string.
    """
    button = svc.state.buttons.get(button_id)
    if button is None:
        raise ButtonNotFoundError(button_id)
    params = payload.get("params") or {}
    if not isinstance(params, dict):
        raise HTTPException(400, "params must be an object")
    tab_id = payload.get("tab_id") or svc.tracker.active
    if not tab_id:
        raise HTTPException(409, "No active tab")
    await asyncio.to_thread(svc.dispatcher.write_to_tab, str(tab_id), button.render(params) + "\n")
    return {"ok": True, "tab_id": tab_id}


# ----------------------------------------------------------------------
# Whole-state persistence

@router.get("/api/state")
async def get_state(svc: TabService = Depends(get_service)):
    return {"ok": True, "data": svc.state.to_dict()}

@router.put("/api/state")
async def put_state(payload: dict = Body(...), svc: TabService = Depends(get_service)):
    svc.state = AppState.from_dict(payload)
    await svc.save_state()
    return {"ok": True, "data": svc.state.to_dict()}
