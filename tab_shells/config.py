from __future__ import annotations

import logging
import os
import shlex
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_TERM = "xterm-256color"


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    val = str(raw).strip().lower()
    return val in {"1", "true", "yes", "y", "on"}


def default_shell_command() -> List[str]:
    # Login shell so the child inherits the user's PATH.
    return [os.environ.get("SHELL") or "/bin/sh", "-l"]


def resolve_home_dir() -> str:
    """Working directory for new shells: HOME, then USERPROFILE, then cwd."""
    for name in ("HOME", "USERPROFILE"):
        value = os.environ.get(name)
        if value and Path(value).is_dir():
            return value
    fallback = os.getcwd()
    logger.warning("Failed to resolve home directory (HOME/USERPROFILE), using %s", fallback)
    return fallback


def default_state_path() -> Path:
    raw = os.environ.get("TAB_SHELLS_STATE")
    if raw:
        return Path(os.path.expanduser(raw)).resolve()
    return Path.home() / ".cache" / "tab_shells" / "state.json"


@dataclass(frozen=True)
class TerminalSettings:
    rows: int = 24
    cols: int = 80
    command: List[str] = field(default_factory=default_shell_command)
    cwd: Optional[str] = None
    term: str = DEFAULT_TERM
    env: Dict[str, str] = field(default_factory=dict)
    chunk_size: int = 8192
    poll_interval: float = 0.5
    kill_timeout: float = 1.0
    tab_prefix: str = "tab-"
    signal_winch_on_resize: bool = True

    def resolved_cwd(self) -> str:
        if self.cwd:
            target = Path(os.path.expanduser(self.cwd))
            if target.is_dir():
                return str(target.resolve())
            logger.warning("Configured cwd %s does not exist, falling back to home", self.cwd)
        return resolve_home_dir()

    def child_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.env)
        env["TERM"] = self.term
        return env

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _normalize_command(command: Union[str, List[Any]]) -> List[str]:
    if isinstance(command, str):
        command = shlex.split(command)
    if not isinstance(command, list) or not all(isinstance(x, (str, int, float)) for x in command):
        raise ValueError("command must be a string or a list of scalars")
    cmd_list = [str(part) for part in command]
    if not cmd_list:
        raise ValueError("command must contain at least one argument")
    return cmd_list


def _as_int(key: str, value: Any, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{key} must be an integer")
    try:
        out = int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer") from None
    if out < minimum:
        raise ValueError(f"{key} must be >= {minimum}")
    return out


def _as_float(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    if value < 0:
        raise ValueError(f"{key} must be >= 0")
    return float(value)


def parse_settings_data(raw: Mapping[str, Any]) -> TerminalSettings:
    """Build settings from an in-memory mapping (e.g. a parsed YAML file)."""
    if not isinstance(raw, Mapping):
        raise ValueError("settings document must be a mapping")
    known = {f.name for f in fields(TerminalSettings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"unknown settings key(s): {', '.join(unknown)}")

    kwargs: Dict[str, Any] = {}
    for key in ("rows", "cols", "chunk_size"):
        if key in raw:
            kwargs[key] = _as_int(key, raw[key])
    for key in ("poll_interval", "kill_timeout"):
        if key in raw:
            kwargs[key] = _as_float(key, raw[key])
    if "command" in raw:
        kwargs["command"] = _normalize_command(raw["command"])
    if raw.get("cwd") is not None:
        kwargs["cwd"] = str(raw["cwd"])
    for key in ("term", "tab_prefix"):
        if key in raw:
            if not isinstance(raw[key], str) or not raw[key]:
                raise ValueError(f"{key} must be a non-empty string")
            kwargs[key] = raw[key]
    if "env" in raw:
        env_raw = raw["env"] or {}
        if not isinstance(env_raw, Mapping):
            raise ValueError("env must be a mapping")
        kwargs["env"] = {str(k): str(v) for k, v in env_raw.items()}
    if "signal_winch_on_resize" in raw:
        kwargs["signal_winch_on_resize"] = bool(raw["signal_winch_on_resize"])
    return TerminalSettings(**kwargs)


def _apply_env_overrides(settings: TerminalSettings) -> TerminalSettings:
    overrides: Dict[str, Any] = {}
    if os.environ.get("TAB_SHELLS_SHELL"):
        overrides["command"] = _normalize_command(os.environ["TAB_SHELLS_SHELL"])
    if os.environ.get("TAB_SHELLS_ROWS"):
        overrides["rows"] = _as_int("TAB_SHELLS_ROWS", os.environ["TAB_SHELLS_ROWS"])
    if os.environ.get("TAB_SHELLS_COLS"):
        overrides["cols"] = _as_int("TAB_SHELLS_COLS", os.environ["TAB_SHELLS_COLS"])
    if "TAB_SHELLS_SIGWINCH_ON_RESIZE" in os.environ:
        overrides["signal_winch_on_resize"] = _truthy_env("TAB_SHELLS_SIGWINCH_ON_RESIZE")
    return replace(settings, **overrides) if overrides else settings


def load_settings(path: Optional[Union[str, Path]] = None) -> TerminalSettings:
    """Load settings from YAML (explicit path, then $TAB_SHELLS_CONFIG), then env overrides."""
    if path is None and os.environ.get("TAB_SHELLS_CONFIG"):
        path = os.path.expanduser(os.environ["TAB_SHELLS_CONFIG"])

    settings = TerminalSettings()
    if path is not None:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"settings file not found: {p}")
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        settings = parse_settings_data(raw)
        logger.debug("Loaded settings from %s", p)
    return _apply_env_overrides(settings)


def render_settings(settings: TerminalSettings) -> str:
    return yaml.safe_dump(settings.to_dict(), sort_keys=True)
