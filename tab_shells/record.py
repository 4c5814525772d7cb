from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time


def tab_sequence(tab_id: str) -> int:
    """Numeric counter at the end of a tab id (``tab-7`` -> 7, ``t12`` -> 12); -1 if none."""
    digits = ""
    for ch in reversed(tab_id):
        if not ch.isdigit():
            break
        digits = ch + digits
    return int(digits) if digits else -1


@dataclass
class TabRecord:
    """Serializable metadata describing a live tab."""

    tab_id: str
    command: List[str]
    cwd: str
    pid: Optional[int]
    rows: int
    cols: int
    created_at: float = field(default_factory=time.time)

    @property
    def sequence(self) -> int:
        return tab_sequence(self.tab_id)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "tab_id": self.tab_id,
            "command": list(self.command),
            "cwd": self.cwd,
            "pid": self.pid,
            "rows": self.rows,
            "cols": self.cols,
            "created_at": self.created_at,
        }
