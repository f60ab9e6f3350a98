"""Single-slot holder for the active authentication attempt."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from pkagent.core.errors import PolkitFailedError
from pkagent.core.events import CancellationHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticationAttempt:
    cookie: str
    cancellation: CancellationHandle


class AttemptState:
    """Holds at most one AuthenticationAttempt.

    The lock is held only while the slot is read or swapped, never while an
    attempt is running, so ``cancel`` can always reach a live attempt.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attempt: AuthenticationAttempt | None = None

    @property
    def active(self) -> bool:
        with self._lock:
            return self._attempt is not None

    def current(self) -> AuthenticationAttempt | None:
        with self._lock:
            return self._attempt

    def install(self, cookie: str) -> AuthenticationAttempt:
        """Install a fresh attempt for *cookie*.

        Raises PolkitFailedError if another attempt is already active.
        """
        with self._lock:
            if self._attempt is not None:
                raise PolkitFailedError(
                    f"authentication {self._attempt.cookie} already in progress"
                )
            attempt = AuthenticationAttempt(cookie, CancellationHandle())
            self._attempt = attempt
        logger.debug("Attempt %s installed", cookie)
        return attempt

    def clear(self, attempt: AuthenticationAttempt) -> None:
        """Remove *attempt* if it is still the active one."""
        with self._lock:
            if self._attempt is attempt:
                self._attempt = None
                logger.debug("Attempt %s cleared", attempt.cookie)
