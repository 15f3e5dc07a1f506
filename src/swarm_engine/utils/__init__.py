"""Utility modules for the swarm engine."""

from .helpers import setup_logging, set_verbosity
from .git import GitRunner
from .locking import SwarmLock, SwarmLockManager
from .retry import fetch_with_retry, is_transient_fetch_error, retry_call

__all__ = [
    "setup_logging",
    "set_verbosity",
    "GitRunner",
    "SwarmLock",
    "SwarmLockManager",
    "fetch_with_retry",
    "is_transient_fetch_error",
    "retry_call",
]
