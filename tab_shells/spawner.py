from __future__ import annotations

import logging
import os
import pty
import signal
import subprocess
from contextlib import ExitStack

from .config import TerminalSettings
from .errors import (
    PtyOpenError,
    ReaderUnavailableError,
    SpawnError,
    WriterUnavailableError,
)
from .events import OutputSink
from .pty import PtyHandle, PtyWriter, set_window_size
from .reader import Reader
from .record import TabRecord
from .table import SessionTable

logger = logging.getLogger(__name__)


def _discard_process(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except OSError:
        pass
    proc.wait()


class Spawner:
    """Opens a PTY, starts the configured shell in it and registers the tab."""

    def __init__(self, table: SessionTable, settings: TerminalSettings) -> None:
        self.table = table
        self.settings = settings

    def create_tab(self, sink: OutputSink) -> str:
        settings = self.settings
        tab_id = self.table.allocate_tab_id()
        cwd = settings.resolved_cwd()
        command = list(settings.command)

        with ExitStack() as stack:
            try:
                master_fd, slave_fd = pty.openpty()
            except OSError as exc:
                raise PtyOpenError(f"Failed to open PTY: {exc}") from exc
            stack.callback(os.close, master_fd)

            try:
                try:
                    set_window_size(master_fd, settings.rows, settings.cols)
                except OSError as exc:
                    raise PtyOpenError(f"Failed to size PTY: {exc}") from exc

                try:
                    proc = subprocess.Popen(
                        command,
                        stdin=slave_fd,
                        stdout=slave_fd,
                        stderr=slave_fd,
                        cwd=cwd,
                        env=settings.child_env(),
                        start_new_session=True,
                        close_fds=True,
                    )
                except (OSError, ValueError, subprocess.SubprocessError) as exc:
                    raise SpawnError(f"Failed to spawn command {command[0]!r}: {exc}") from exc
            finally:
                # The child holds its own copy; ours would keep the PTY from
                # reporting end of stream when the shell exits.
                os.close(slave_fd)
            stack.callback(_discard_process, proc)

            try:
                writer = PtyWriter(tab_id, os.dup(master_fd))
            except OSError as exc:
                raise WriterUnavailableError(f"Failed to get PTY writer: {exc}") from exc
            stack.callback(writer.close)

            try:
                reader_fd = os.dup(master_fd)
            except OSError as exc:
                raise ReaderUnavailableError(f"Failed to get PTY reader: {exc}") from exc
            stack.callback(os.close, reader_fd)

            record = TabRecord(
                tab_id=tab_id,
                command=command,
                cwd=cwd,
                pid=proc.pid,
                rows=settings.rows,
                cols=settings.cols,
            )
            handle = PtyHandle(
                tab_id, master_fd, proc, writer, record,
                kill_timeout=settings.kill_timeout,
            )
            reader = Reader(
                tab_id,
                reader_fd,
                self.table,
                sink,
                stop=handle.stop,
                emit_guard=handle.emit_if_open,
                chunk_size=settings.chunk_size,
                poll_interval=settings.poll_interval,
            )

            self.table.insert(tab_id, handle)
            # From here on the handle and the reader own every resource.
            stack.pop_all()

        try:
            reader.start()
        except RuntimeError as exc:
            os.close(reader_fd)
            removed = self.table.remove(tab_id)
            if removed is not None:
                removed.close()
            raise ReaderUnavailableError(f"Failed to start PTY reader: {exc}") from exc

        logger.info("Created %s (pid %s): %s in %s", tab_id, proc.pid, " ".join(command), cwd)
        return tab_id
