from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import TerminalSettings
from ..dispatcher import Dispatcher
from ..errors import TabShellError
from ..events import EventBus, EventBusSink, EventType, TerminalEvent
from ..record import TabRecord
from ..store import AppState, StateStore
from ..tabs import TabTracker

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    "tab_not_found": 404,
    "button_not_found": 404,
    "cannot_close_last_tab": 409,
    "invalid_state": 400,
    "bad_request": 400,
}


class TabService:
    """Everything one app instance shares: dispatcher, event fan-out, UI state.

    ``tracker`` and ``state`` are only touched from the event loop thread.
    """

    def __init__(
        self,
        *,
        settings: Optional[TerminalSettings] = None,
        store: Optional[StateStore] = None,
    ) -> None:
        self.bus = EventBus()
        self.sink = EventBusSink(self.bus)
        self.dispatcher = Dispatcher(self.sink, settings=settings)
        self.tracker = TabTracker()
        self.store = store or StateStore()
        self.state = AppState()
        self._state_lock = asyncio.Lock()
        self.sink.listeners.append(self._on_event)

    def _on_event(self, event: TerminalEvent) -> None:
        if event.type is EventType.TAB_CLOSED:
            self.tracker.discard(event.tab_id)

    async def start(self) -> None:
        self.sink.bind(asyncio.get_running_loop())
        try:
            self.state = await self.store.load()
        except TabShellError as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.store.path, exc)
            self.state = AppState()

    async def stop(self) -> None:
        await asyncio.to_thread(self.dispatcher.close_all)

    async def create_tab(self) -> Dict[str, Any]:
        tab_id = await asyncio.to_thread(self.dispatcher.create_tab)
        label = self.tracker.add(tab_id)
        if not self.dispatcher.table.contains(tab_id):
            # The shell already exited; its tab-closed may have been delivered first.
            self.tracker.discard(tab_id)
        return {"tab_id": tab_id, "label": label}

    async def close_tab(self, tab_id: str) -> None:
        await asyncio.to_thread(self.dispatcher.close_tab, tab_id)
        self.tracker.discard(tab_id)

    def tab_payload(self, record: TabRecord) -> Dict[str, Any]:
        payload = record.to_payload()
        payload["label"] = self.tracker.label(record.tab_id) if self.tracker.has(record.tab_id) else None
        payload["active"] = self.tracker.active == record.tab_id
        return payload

    async def save_state(self) -> None:
        async with self._state_lock:
            await self.store.save(self.state)


async def _tab_shell_error_handler(request: Request, exc: TabShellError) -> JSONResponse:
    status = _STATUS_BY_CODE.get(exc.code, 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse({"ok": False, "error": exc.to_payload()}, status_code=status)


def create_app(
    service: Optional[TabService] = None,
    *,
    settings: Optional[TerminalSettings] = None,
    store: Optional[StateStore] = None,
) -> FastAPI:
    from .fastapi_router import router as tabs_router
    from .websocket import router as ws_router

    svc = service or TabService(settings=settings, store=store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await svc.start()
        try:
            yield
        finally:
            await svc.stop()

    app = FastAPI(title="tab-shells", lifespan=lifespan)
    app.state.tab_service = svc
    app.add_exception_handler(TabShellError, _tab_shell_error_handler)
    app.include_router(tabs_router)
    app.include_router(ws_router)
    return app
