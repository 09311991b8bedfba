"""Single-instance lock for commands that touch shared state.

The capability cache, the version ledger, the test history and the tool
config files are all rewritten by hyss commands. An advisory flock on the
lock file keeps two invocations from doing that at the same time.
"""

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional, TextIO

from .storage import ensure_dir

log = logging.getLogger(__name__)


class LockBusyError(Exception):
    """Raised when another hyss process holds the lock."""

    def __init__(self, lock_file: Path, pid: Optional[int] = None):
        self.lock_file = lock_file
        self.pid = pid
        holder = f" (PID {pid})" if pid else ""
        super().__init__(f"Another hyss process is running{holder}; lock: {lock_file}")


class InstanceLock:
    """Non-blocking exclusive lock, usable as a context manager."""

    def __init__(self, lock_file: Path):
        self.lock_file = lock_file
        self._lock_fd: Optional[TextIO] = None

    @property
    def held(self) -> bool:
        return self._lock_fd is not None

    def acquire(self) -> None:
        """Acquire the lock or fail immediately.

        Raises:
            LockBusyError: If another process holds the lock
        """
        ensure_dir(self.lock_file.parent)
        # 'a+' so a holder's PID is not truncated before we own the lock
        fd = open(self.lock_file, "a+")
        try:
            fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            fd.close()
            log.debug("Lock acquisition failed: %s", e)
            raise LockBusyError(self.lock_file, self.holder_pid()) from e

        fd.seek(0)
        fd.truncate()
        fd.write(str(os.getpid()))
        fd.flush()
        self._lock_fd = fd
        log.debug("Lock acquired, PID=%d", os.getpid())

    def release(self) -> None:
        if self._lock_fd is None:
            return
        try:
            fcntl.flock(self._lock_fd.fileno(), fcntl.LOCK_UN)
        finally:
            self._lock_fd.close()
            self._lock_fd = None
        try:
            self.lock_file.unlink(missing_ok=True)
        except OSError as e:
            log.debug("Could not remove lock file: %s", e)
        log.debug("Lock released")

    def holder_pid(self) -> Optional[int]:
        """PID recorded in the lock file, if it names a live process."""
        try:
            pid = int(self.lock_file.read_text().strip())
            os.kill(pid, 0)
            return pid
        except (ValueError, OSError):
            return None

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
