"""
Bounded retry for git transport operations.

Three separate pieces: the classifier decides what is worth retrying,
retry_call decides how often and how long to wait, and the caller supplies a
single attempt.
"""

import time
from typing import Callable, Optional, TypeVar

from ..core.errors import SwarmGitError
from .helpers import setup_logging

logger = setup_logging(__name__)

T = TypeVar("T")

FETCH_RETRIES = 3

# Seconds; attempt N waits FETCH_RETRY_DELAY * N before attempt N + 1.
FETCH_RETRY_DELAY = 2.0

PERMANENT_FETCH_PATTERNS = (
    "couldn't find remote ref",
    "not found",
    "does not appear to be a git repository",
    "permission denied",
    "authentication failed",
)


def is_transient_fetch_error(err: Optional[BaseException]) -> bool:
    """
    Judge whether a fetch failure is worth retrying.

    Args:
        err: The failure, or None

    Returns:
        False for None and for git failures whose stderr matches a known
        permanent pattern; True for everything else, including failures that
        are not git failures at all
    """
    if err is None:
        return False
    if not isinstance(err, SwarmGitError):
        return True

    stderr = err.stderr.lower()
    return not any(pattern in stderr for pattern in PERMANENT_FETCH_PATTERNS)


def retry_call(
    operation: Callable[[], T],
    attempts: int = FETCH_RETRIES,
    base_delay: float = FETCH_RETRY_DELAY,
    is_retryable: Callable[[BaseException], bool] = is_transient_fetch_error,
    sleep: Callable[[float], None] = time.sleep,
    max_elapsed: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Call ``operation`` until it succeeds or retrying stops making sense.

    Args:
        operation: One attempt; raises on failure
        attempts: Maximum number of attempts (at least 1)
        base_delay: Linear backoff unit in seconds
        is_retryable: Classifier for a raised failure
        sleep: Sleep function
        max_elapsed: Wall-clock budget in seconds for the whole loop
        clock: Monotonic clock used with max_elapsed

    Returns:
        Whatever the first successful attempt returns

    Raises:
        The last failure, unchanged
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    started = clock()
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                logger.debug(f"Permanent failure on attempt {attempt}: {e}")
                raise
            if attempt == attempts:
                logger.debug(f"Giving up after {attempts} attempts: {e}")
                raise

            delay = base_delay * attempt
            if max_elapsed is not None and clock() - started + delay > max_elapsed:
                logger.debug(f"Retry budget of {max_elapsed}s exhausted: {e}")
                raise

            logger.debug(f"Attempt {attempt}/{attempts} failed, retrying in {delay}s: {e}")
            sleep(delay)

    raise AssertionError("unreachable")


def fetch_with_retry(
    runner,
    remote: str,
    ref: str,
    attempts: int = FETCH_RETRIES,
    base_delay: float = FETCH_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    max_elapsed: Optional[float] = None,
) -> None:
    """
    Fetch ``ref`` from ``remote``, retrying transient failures.

    Args:
        runner: Object with a ``run(*args)`` method (normally GitRunner)
        remote: Remote name
        ref: Branch or ref to fetch
        attempts: Maximum number of attempts
        base_delay: Linear backoff unit in seconds
        sleep: Sleep function
        max_elapsed: Wall-clock budget in seconds

    Raises:
        The last fetch failure
    """
    retry_call(
        lambda: runner.run("fetch", remote, ref),
        attempts=attempts,
        base_delay=base_delay,
        is_retryable=is_transient_fetch_error,
        sleep=sleep,
        max_elapsed=max_elapsed,
    )
