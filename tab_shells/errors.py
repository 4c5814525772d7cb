from typing import Optional


class TabShellError(Exception):
    """Base class for every error reported by tab_shells."""

    code = "error"

    def to_payload(self) -> dict:
        return {"code": self.code, "message": str(self)}


class ResourceAcquisitionError(TabShellError):
    """Opening a PTY or starting its shell failed; nothing was registered."""


class PtyOpenError(ResourceAcquisitionError):
    code = "open_failed"


class SpawnError(ResourceAcquisitionError):
    code = "spawn_failed"


class WriterUnavailableError(ResourceAcquisitionError):
    code = "writer_unavailable"


class ReaderUnavailableError(ResourceAcquisitionError):
    code = "reader_unavailable"


class TabNotFoundError(TabShellError, KeyError):
    code = "tab_not_found"

    def __init__(self, tab_id: str):
        super().__init__(tab_id)
        self.tab_id = tab_id

    def __str__(self) -> str:
        return f"Tab not found: {self.tab_id}"


class LockPoisonedError(TabShellError):
    code = "lock_failure"

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Lock poisoned: {self.name}"


class TabIoError(TabShellError):
    code = "io_error"

    def __init__(self, tab_id: str, message: str):
        super().__init__(f"I/O error on {tab_id}: {message}")
        self.tab_id = tab_id


class ButtonNotFoundError(TabShellError, KeyError):
    code = "button_not_found"

    def __init__(self, button_id: str):
        super().__init__(button_id)
        self.button_id = button_id

    def __str__(self) -> str:
        return f"Button not found: {self.button_id}"


class CannotCloseLastTabError(TabShellError):
    code = "cannot_close_last_tab"

    def __init__(self, tab_id: Optional[str] = None):
        super().__init__("Cannot close the last tab")
        self.tab_id = tab_id


class StateError(TabShellError, ValueError):
    code = "invalid_state"


class InvalidSizeError(TabShellError, ValueError):
    code = "bad_request"

    def __init__(self, rows: object, cols: object):
        super().__init__(f"Invalid terminal size {rows}x{cols}: rows and cols must be integers between 1 and 65535")
        self.rows = rows
        self.cols = cols
