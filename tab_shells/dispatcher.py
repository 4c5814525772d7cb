from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Union

import psutil

from .config import TerminalSettings
from .errors import InvalidSizeError, TabNotFoundError
from .events import OutputSink
from .pty import PtyHandle, valid_dimension
from .record import TabRecord
from .spawner import Spawner
from .table import SessionTable

logger = logging.getLogger(__name__)


class Dispatcher:
    """Boundary operations over the live tabs: create, close, write, resize.

    Every method is synchronous and safe to call from several threads at
    once. Output never flows through here; it goes from each tab's reader
    thread straight to ``sink``.
    """

    def __init__(
        self,
        sink: OutputSink,
        *,
        settings: Optional[TerminalSettings] = None,
        table: Optional[SessionTable] = None,
    ) -> None:
        self.settings = settings or TerminalSettings()
        self.table = table or SessionTable(prefix=self.settings.tab_prefix)
        self.sink = sink
        self.spawner = Spawner(self.table, self.settings)

    def create_tab(self) -> str:
        return self.spawner.create_tab(self.sink)

    def close_tab(self, tab_id: str) -> None:
        """Close ``tab_id``; closing an unknown or already-closed tab succeeds."""
        handle = self.table.remove(tab_id)
        if handle is None:
            logger.debug("close_tab(%s): not live", tab_id)
            return
        handle.close()
        logger.info("Closed %s", tab_id)

    def write_to_tab(self, tab_id: str, data: Union[bytes, str]) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        # The table lock is released before the writer lock is taken.
        writer = self.table.get_writer(tab_id)
        if writer is None:
            raise TabNotFoundError(tab_id)
        writer.write(data)

    def resize_tab(self, tab_id: str, rows: int, cols: int) -> None:
        if not (valid_dimension(rows) and valid_dimension(cols)):
            raise InvalidSizeError(rows, cols)
        handle = self._require(tab_id)
        handle.resize(rows, cols, signal_winch=self.settings.signal_winch_on_resize)

    def list_tabs(self) -> List[TabRecord]:
        return self.table.records()

    def describe(self, tab_id: str) -> Dict[str, Any]:
        handle = self._require(tab_id)
        payload = handle.record.to_payload()
        payload["stats"] = self._process_stats(handle)
        return payload

    def close_all(self) -> None:
        handles = self.table.drain()
        for handle in handles:
            handle.close()
        if handles:
            logger.info("Closed %d tab(s)", len(handles))

    def _require(self, tab_id: str) -> PtyHandle:
        handle = self.table.get(tab_id)
        if handle is None:
            raise TabNotFoundError(tab_id)
        return handle

    def _process_stats(self, handle: PtyHandle) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "alive": False,
            "uptime": None,
        }
        if handle.returncode() is not None:
            stats["exit_code"] = handle.returncode()
            return stats
        try:
            proc = psutil.Process(handle.pid)
            with proc.oneshot():
                stats["alive"] = proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
                stats["cpu_percent"] = proc.cpu_percent(interval=0.0)
                stats["memory_rss"] = proc.memory_info().rss
                stats["num_threads"] = proc.num_threads()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return stats
        if stats["alive"]:
            stats["uptime"] = max(0.0, time.time() - handle.record.created_at)
        return stats
