from __future__ import annotations

import codecs
import logging
import os
import select
import threading
from typing import Callable

from .errors import LockPoisonedError
from .events import OutputSink
from .table import SessionTable

logger = logging.getLogger(__name__)

EmitGuard = Callable[[Callable[[], None]], bool]


class Reader(threading.Thread):
    """Drains one tab's PTY output and republishes it to the sink.

    Owns ``fd`` (a duplicate of the controlling side taken before the handle
    was stored) and closes it on exit. When the shell goes away or the tab is
    closed, the reader removes the tab from the table (a no-op if a close got
    there first) and emits exactly one ``tab_closed``.
    """

    def __init__(
        self,
        tab_id: str,
        fd: int,
        table: SessionTable,
        sink: OutputSink,
        *,
        stop: threading.Event,
        emit_guard: EmitGuard,
        chunk_size: int = 8192,
        poll_interval: float = 0.5,
    ) -> None:
        super().__init__(name=f"tab-reader-{tab_id}", daemon=True)
        self.tab_id = tab_id
        self.fd = fd
        self.table = table
        self.sink = sink
        self.stop = stop
        self.emit_guard = emit_guard
        self.chunk_size = chunk_size
        self.poll_interval = poll_interval
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def run(self) -> None:
        reason = "end of stream"
        try:
            while not self.stop.is_set():
                try:
                    ready, _, _ = select.select([self.fd], [], [], self.poll_interval)
                except (OSError, ValueError) as exc:
                    reason = f"select failed: {exc}"
                    break
                if not ready:
                    continue

                try:
                    data = os.read(self.fd, self.chunk_size)
                except OSError as exc:
                    # Linux reports EIO once the last slave descriptor closes.
                    reason = f"read failed: {exc}"
                    break
                if not data:
                    break

                text = self._decoder.decode(data)
                if text and not self._emit(text):
                    reason = "tab closed"
                    break
            else:
                reason = "tab closed"

            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._emit(tail)
        finally:
            try:
                os.close(self.fd)
            except OSError:
                logger.debug("Reader descriptor for %s already closed", self.tab_id)
            logger.info("Reader for %s exiting: %s", self.tab_id, reason)
            self._finish()

    def _emit(self, text: str) -> bool:
        try:
            return self.emit_guard(lambda: self.sink.terminal_data(self.tab_id, text))
        except Exception:
            logger.exception("Failed to emit terminal-data for tab %s", self.tab_id)
            return True

    def _finish(self) -> None:
        try:
            handle = self.table.remove(self.tab_id)
        except LockPoisonedError:
            logger.error("Failed to acquire lock for tab cleanup: %s", self.tab_id)
            handle = None
        if handle is not None:
            handle.close()
        try:
            self.sink.tab_closed(self.tab_id)
        except Exception:
            logger.exception("Failed to emit tab-closed for tab %s", self.tab_id)
