from typing import Dict, List, Optional

from .errors import CannotCloseLastTabError, TabNotFoundError
from .record import tab_sequence


class TabTracker:
    """Which tabs the UI shows, their 1-based labels, and which one is focused."""

    def __init__(self) -> None:
        self._labels: Dict[str, int] = {}
        self._next_label = 1
        self._active: Optional[str] = None

    @property
    def active(self) -> Optional[str]:
        return self._active

    def add(self, tab_id: str) -> int:
        if tab_id in self._labels:
            return self._labels[tab_id]
        label = self._next_label
        self._next_label += 1
        self._labels[tab_id] = label
        if self._active is None:
            self._active = tab_id
        return label

    def remove(self, tab_id: str, *, allow_empty: bool = False) -> None:
        if tab_id not in self._labels:
            raise TabNotFoundError(tab_id)
        if len(self._labels) <= 1 and not allow_empty:
            raise CannotCloseLastTabError(tab_id)
        del self._labels[tab_id]
        if self._active == tab_id:
            remaining = self.ids()
            self._active = remaining[0] if remaining else None

    def discard(self, tab_id: str) -> None:
        if tab_id in self._labels:
            self.remove(tab_id, allow_empty=True)

    def activate(self, tab_id: str) -> None:
        if tab_id not in self._labels:
            raise TabNotFoundError(tab_id)
        self._active = tab_id

    def has(self, tab_id: str) -> bool:
        return tab_id in self._labels

    def count(self) -> int:
        return len(self._labels)

    def ids(self) -> List[str]:
        return sorted(self._labels, key=lambda t: (tab_sequence(t), t))

    def label(self, tab_id: str) -> int:
        try:
            return self._labels[tab_id]
        except KeyError:
            raise TabNotFoundError(tab_id) from None

    @property
    def next_label(self) -> int:
        return self._next_label
