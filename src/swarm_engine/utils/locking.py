"""
Per-swarm advisory file locks.

Each swarm gets ``<lock_dir>/<swarm_id>.lock``, held with an exclusive
``fcntl.flock``. Every acquisition opens its own file description, so the lock
excludes other threads of the same process as well as other processes.
"""

import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, IO, Optional

from ..core.errors import LockError
from .helpers import setup_logging

logger = setup_logging(__name__)

REPOSITORY_LOCK_NAME = ".repository"


def validate_swarm_id(swarm_id: str) -> str:
    """Reject ids that cannot name a lock file under the lock directory."""
    if not swarm_id:
        raise ValueError("swarm id must not be empty")
    if "/" in swarm_id or (os.altsep and os.altsep in swarm_id):
        raise ValueError(f"swarm id must not contain a path separator: {swarm_id}")
    if swarm_id.startswith("."):
        raise ValueError(f"swarm id must not start with '.': {swarm_id}")
    return swarm_id


class SwarmLock:
    """An exclusively held lock file. Released exactly once."""

    def __init__(self, name: str, path: Path, handle: IO[str]):
        self.name = name
        self.path = path
        self._handle: Optional[IO[str]] = handle

    @property
    def held(self) -> bool:
        return self._handle is not None

    def release(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()
        logger.debug(f"Released lock {self.name}")

    def __enter__(self) -> "SwarmLock":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class SwarmLockManager:
    """
    Hands out swarm locks under a single lock directory.

    Locks for distinct swarm ids live in distinct files and never contend.
    """

    def __init__(
        self,
        lock_dir: Path,
        timeout: Optional[float] = None,
        poll_interval: float = 0.05,
    ):
        """
        Initialize the lock manager.

        Args:
            lock_dir: Directory holding the lock files (created lazily)
            timeout: Seconds to wait for a lock; None blocks indefinitely
            poll_interval: Sleep between non-blocking attempts when a timeout is set
        """
        self.lock_dir = Path(lock_dir)
        self.timeout = timeout
        self.poll_interval = poll_interval

    def lock_path(self, swarm_id: str) -> Path:
        return self.lock_dir / f"{validate_swarm_id(swarm_id)}.lock"

    def acquire(self, swarm_id: str) -> SwarmLock:
        """
        Block until the swarm's lock is held.

        Args:
            swarm_id: Swarm identifier

        Returns:
            The held lock; call release() or use it as a context manager

        Raises:
            LockError: The lock file could not be opened or locked, or the
                timeout expired
        """
        return self._acquire(swarm_id, self.lock_path(swarm_id))

    def acquire_repository(self) -> SwarmLock:
        """Take the repository-wide lock that serializes checkout changes."""
        return self._acquire(
            REPOSITORY_LOCK_NAME, self.lock_dir / f"{REPOSITORY_LOCK_NAME}.lock"
        )

    @contextmanager
    def hold(self, swarm_id: str) -> Generator[SwarmLock, None, None]:
        lock = self.acquire(swarm_id)
        try:
            yield lock
        finally:
            lock.release()

    @contextmanager
    def hold_repository(self) -> Generator[SwarmLock, None, None]:
        lock = self.acquire_repository()
        try:
            yield lock
        finally:
            lock.release()

    def _acquire(self, name: str, path: Path) -> SwarmLock:
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
            handle = open(path, "a")
        except OSError as e:
            raise LockError(f"opening lock file {path}: {e}") from e

        try:
            self._flock(handle, name)
        except BaseException:
            handle.close()
            raise

        logger.debug(f"Acquired lock {name}")
        return SwarmLock(name, path, handle)

    def _flock(self, handle: IO[str], name: str) -> None:
        if self.timeout is None:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            except OSError as e:
                raise LockError(f"locking {name}: {e}") from e
            return

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise LockError(
                        f"timed out after {self.timeout}s waiting for lock {name}"
                    )
                time.sleep(self.poll_interval)
            except OSError as e:
                raise LockError(f"locking {name}: {e}") from e
