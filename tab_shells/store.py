from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
import asyncio
import json
import logging

import aiofiles

from .buttons import ButtonManager
from .config import default_state_path
from .errors import StateError

logger = logging.getLogger(__name__)


@dataclass
class TerminalConfig:
    cursor_blink: bool = True
    background_color: str = "#1e1e1e"
    foreground_color: str = "#d4d4d4"


@dataclass
class SidebarConfig:
    width: int = 200


@dataclass
class AppState:
    """Everything the UI persists between runs."""

    buttons: ButtonManager = field(default_factory=ButtonManager)
    terminal: TerminalConfig = field(default_factory=TerminalConfig)
    sidebar: SidebarConfig = field(default_factory=SidebarConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buttons": self.buttons.to_list(),
            "terminal_config": {
                "cursor_blink": self.terminal.cursor_blink,
                "background_color": self.terminal.background_color,
                "foreground_color": self.terminal.foreground_color,
            },
            "sidebar_config": {"width": self.sidebar.width},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AppState":
        if not isinstance(data, dict):
            raise StateError("state must be a JSON object")

        def get_dict(k: str) -> Dict[str, Any]:
            value = data.get(k)
            if value is None:
                return {}
            if not isinstance(value, dict):
                raise StateError(f"{k} must be an object")
            return value

        terminal_raw = get_dict("terminal_config")
        sidebar_raw = get_dict("sidebar_config")
        defaults = TerminalConfig()
        try:
            terminal = TerminalConfig(
                cursor_blink=bool(terminal_raw.get("cursor_blink", defaults.cursor_blink)),
                background_color=str(terminal_raw.get("background_color", defaults.background_color)),
                foreground_color=str(terminal_raw.get("foreground_color", defaults.foreground_color)),
            )
            sidebar = SidebarConfig(width=int(sidebar_raw.get("width", SidebarConfig.width)))
        except (TypeError, ValueError) as exc:
            raise StateError(f"invalid state value: {exc}") from exc
        return cls(
            buttons=ButtonManager.from_list(data.get("buttons") or []),
            terminal=terminal,
            sidebar=sidebar,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "AppState":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StateError(f"invalid state JSON: {exc}") from exc
        return cls.from_dict(data)


class StateStore:
    """Reads and atomically rewrites the persisted AppState file."""

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path is not None else default_state_path()

    async def load(self) -> AppState:
        if not self.path.exists():
            return AppState()
        async with aiofiles.open(self.path, "r", encoding="utf-8") as fh:
            content = await fh.read()
        return AppState.from_json(content)

    async def save(self, state: AppState) -> None:
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as fh:
            await fh.write(json.dumps(state.to_dict(), indent=2))
        await asyncio.to_thread(tmp_path.replace, self.path)
        logger.debug("Saved state to %s", self.path)
