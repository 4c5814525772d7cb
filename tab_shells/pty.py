from __future__ import annotations

import fcntl
import logging
import os
import signal
import struct
import subprocess
import termios
import threading
from typing import Callable, Optional

from .errors import TabIoError, TabNotFoundError
from .locks import PoisoningLock
from .record import TabRecord

logger = logging.getLogger(__name__)


MAX_DIMENSION = 0xFFFF


def valid_dimension(value: object) -> bool:
    # winsize fields are unsigned shorts
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= MAX_DIMENSION


def set_window_size(fd: int, rows: int, cols: int) -> None:
    winsz = struct.pack("HHHH", max(1, rows), max(1, cols), 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsz)


def _try_winch(pid: int) -> None:
    try:
        os.killpg(os.getpgid(pid), signal.SIGWINCH)
        return
    except OSError:
        pass
    try:
        os.kill(pid, signal.SIGWINCH)
    except OSError:
        logger.debug("SIGWINCH delivery to %s failed", pid)


class PtyWriter:
    """Exclusive-write channel to a tab's shell.

    Owns its own duplicate of the controlling-side descriptor. Concurrent
    writers are serialized on ``lock``; a single caller's writes keep their
    order.
    """

    def __init__(self, tab_id: str, fd: int) -> None:
        self.tab_id = tab_id
        self._file = os.fdopen(fd, "wb", buffering=0)
        self.lock = PoisoningLock(f"writer:{tab_id}")
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> None:
        """Write all of ``data`` and flush before returning."""
        with self.lock.hold():
            if self._closed:
                raise TabNotFoundError(self.tab_id)
            view = memoryview(data)
            try:
                while view:
                    written = self._file.write(view)
                    view = view[written:]
                self._file.flush()
            except OSError as exc:
                raise TabIoError(self.tab_id, exc.strerror or str(exc)) from exc

    def close(self) -> None:
        with self.lock.hold(tolerate_poison=True):
            if self._closed:
                return
            self._closed = True
            try:
                self._file.close()
            except OSError as exc:
                logger.debug("Closing writer for %s failed: %s", self.tab_id, exc)


class PtyHandle:
    """Sole owner of one tab's OS resources.

    Holds the controlling-side descriptor, the spawned shell and the writer.
    ``close()`` releases all three exactly once; it is called by whoever
    removed the handle from the session table.
    """

    def __init__(
        self,
        tab_id: str,
        master_fd: int,
        process: subprocess.Popen,
        writer: PtyWriter,
        record: TabRecord,
        *,
        kill_timeout: float = 1.0,
    ) -> None:
        self.tab_id = tab_id
        self.master_fd = master_fd
        self.process = process
        self.writer = writer
        self.record = record
        self.kill_timeout = kill_timeout
        # Set once the handle starts tearing down; the reader polls it.
        self.stop = threading.Event()
        self._state_lock = threading.Lock()
        self._closed = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def closed(self) -> bool:
        return self._closed

    def emit_if_open(self, emit: Callable[[], None]) -> bool:
        """Run ``emit`` unless the handle is closed; close() waits for it."""
        with self._state_lock:
            if self._closed:
                return False
            emit()
            return True

    def resize(self, rows: int, cols: int, *, signal_winch: bool = True) -> None:
        with self._state_lock:
            if self._closed:
                raise TabNotFoundError(self.tab_id)
            try:
                set_window_size(self.master_fd, rows, cols)
            except OSError as exc:
                logger.warning("Resize of %s to %sx%s failed: %s", self.tab_id, rows, cols, exc)
                return
            self.record.rows = max(1, rows)
            self.record.cols = max(1, cols)

        if signal_winch:
            _try_winch(self.pid)

    def close(self) -> None:
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self.stop.set()

        self._terminate_child()
        self.writer.close()
        try:
            os.close(self.master_fd)
        except OSError as exc:
            logger.debug("Closing master for %s failed: %s", self.tab_id, exc)
        logger.debug("Released resources for %s", self.tab_id)

    def _terminate_child(self) -> None:
        proc = self.process
        if proc.poll() is not None:
            return
        try:
            os.killpg(proc.pid, signal.SIGHUP)
        except ProcessLookupError:
            proc.poll()
            return
        except OSError as exc:
            logger.warning("SIGHUP to %s (pid %s) failed: %s", self.tab_id, proc.pid, exc)

        try:
            proc.wait(timeout=self.kill_timeout)
            return
        except subprocess.TimeoutExpired:
            logger.info("Shell for %s ignored SIGHUP, sending SIGKILL", self.tab_id)

        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except OSError as exc:
            logger.warning("SIGKILL to %s (pid %s) failed: %s", self.tab_id, proc.pid, exc)
        try:
            proc.wait(timeout=self.kill_timeout)
        except subprocess.TimeoutExpired:
            logger.error("Shell for %s (pid %s) did not exit after SIGKILL", self.tab_id, proc.pid)

    def returncode(self) -> Optional[int]:
        return self.process.poll()
