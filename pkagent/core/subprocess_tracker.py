"""Global subprocess tracker — ensures helper processes die with the agent.

The helper driver reaps its own process on every path, but if the agent
itself exits mid-conversation (unhandled exception, interpreter shutdown)
the ``atexit`` handler sends SIGTERM to whatever is still tracked.
"""
from __future__ import annotations

import atexit
import logging
import os
import signal

logger = logging.getLogger(__name__)

_tracked_pids: set[int] = set()


def track(pid: int) -> None:
    """Register a running helper PID."""
    _tracked_pids.add(pid)


def untrack(pid: int) -> None:
    """Unregister a helper PID (reaped normally)."""
    _tracked_pids.discard(pid)


def tracked() -> frozenset[int]:
    return frozenset(_tracked_pids)


def kill_all() -> None:
    """Send SIGTERM to all tracked PIDs (called by atexit)."""
    for pid in list(_tracked_pids):
        try:
            os.kill(pid, signal.SIGTERM)
            logger.debug("Sent SIGTERM to tracked PID %d", pid)
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug("Failed to signal PID %d: %s", pid, e)
    _tracked_pids.clear()


atexit.register(kill_all)
