"""Tab Shells - PTY session registry for tabbed terminal front-ends."""

from .dispatcher import Dispatcher
from .table import SessionTable
from .spawner import Spawner
from .reader import Reader
from .pty import PtyHandle, PtyWriter
from .record import TabRecord
from .config import TerminalSettings, load_settings
from .events import EventBus, EventBusSink, EventType, OutputSink, RecordingSink, TerminalEvent
from .buttons import ButtonManager, CommandButton
from .tabs import TabTracker
from .store import AppState, SidebarConfig, StateStore, TerminalConfig
from .errors import (
    ButtonNotFoundError,
    CannotCloseLastTabError,
    InvalidSizeError,
    LockPoisonedError,
    PtyOpenError,
    ReaderUnavailableError,
    ResourceAcquisitionError,
    SpawnError,
    StateError,
    TabIoError,
    TabNotFoundError,
    TabShellError,
    WriterUnavailableError,
)

__all__ = [
    "Dispatcher",
    "SessionTable",
    "Spawner",
    "Reader",
    "PtyHandle",
    "PtyWriter",
    "TabRecord",
    "TerminalSettings",
    "load_settings",
    "EventBus",
    "EventBusSink",
    "EventType",
    "OutputSink",
    "RecordingSink",
    "TerminalEvent",
    "ButtonManager",
    "CommandButton",
    "TabTracker",
    "AppState",
    "SidebarConfig",
    "StateStore",
    "TerminalConfig",
    "ButtonNotFoundError",
    "CannotCloseLastTabError",
    "InvalidSizeError",
    "LockPoisonedError",
    "PtyOpenError",
    "ReaderUnavailableError",
    "ResourceAcquisitionError",
    "SpawnError",
    "StateError",
    "TabIoError",
    "TabNotFoundError",
    "TabShellError",
    "WriterUnavailableError",
]
