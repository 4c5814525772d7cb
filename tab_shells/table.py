from __future__ import annotations

import itertools
from typing import Dict, List, Optional

from .locks import PoisoningLock
from .pty import PtyHandle, PtyWriter
from .record import TabRecord


class SessionTable:
    """Lock-guarded registry of live tabs.

    Table membership is the only authority on whether a tab exists. The
    table never blocks on PTY work: every critical section is a dict
    operation, and handles are torn down by the caller after removal.
    """

    def __init__(self, prefix: str = "tab-", start: int = 1) -> None:
        self.prefix = prefix
        self._tabs: Dict[str, PtyHandle] = {}
        self._counter = itertools.count(start)
        self.lock = PoisoningLock("session-table")

    def allocate_tab_id(self) -> str:
        with self.lock.hold():
            return f"{self.prefix}{next(self._counter)}"

    def insert(self, tab_id: str, handle: PtyHandle) -> None:
        with self.lock.hold():
            if tab_id in self._tabs:
                raise ValueError(f"tab id {tab_id} is already registered")
            self._tabs[tab_id] = handle

    def remove(self, tab_id: str) -> Optional[PtyHandle]:
        """Remove and hand back ownership of ``tab_id``; None if already gone."""
        with self.lock.hold():
            return self._tabs.pop(tab_id, None)

    def get_writer(self, tab_id: str) -> Optional[PtyWriter]:
        with self.lock.hold():
            handle = self._tabs.get(tab_id)
            return handle.writer if handle else None

    def get(self, tab_id: str) -> Optional[PtyHandle]:
        with self.lock.hold():
            return self._tabs.get(tab_id)

    def contains(self, tab_id: str) -> bool:
        with self.lock.hold():
            return tab_id in self._tabs

    def list_ids(self) -> List[str]:
        with self.lock.hold():
            handles = list(self._tabs.values())
        return [h.tab_id for h in sorted(handles, key=lambda h: h.record.sequence)]

    def records(self) -> List[TabRecord]:
        with self.lock.hold():
            handles = list(self._tabs.values())
        return sorted((h.record for h in handles), key=lambda r: r.sequence)

    def drain(self) -> List[PtyHandle]:
        """Remove every handle at once (used on shutdown)."""
        with self.lock.hold():
            handles = list(self._tabs.values())
            self._tabs.clear()
        return handles

    def __len__(self) -> int:
        with self.lock.hold():
            return len(self._tabs)
