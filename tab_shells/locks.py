from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .errors import LockPoisonedError, TabShellError

logger = logging.getLogger(__name__)


class PoisoningLock:
    """A mutex that refuses further use after a critical section blew up.

    Errors from the ``TabShellError`` family are typed outcomes and pass
    through untouched. Anything else escaping while the lock is held leaves
    the guarded data in an unknown state, so the lock is marked poisoned and
    every later ``hold()`` raises ``LockPoisonedError``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @contextmanager
    def hold(self, *, tolerate_poison: bool = False) -> Iterator[None]:
        with self._lock:
            if self._poisoned and not tolerate_poison:
                raise LockPoisonedError(self.name)
            try:
                yield
            except TabShellError:
                raise
            except BaseException:
                self._poisoned = True
                logger.error("Lock %s poisoned by a failed critical section", self.name)
                raise
