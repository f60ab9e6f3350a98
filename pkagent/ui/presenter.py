"""Prompt presenter — turns channel events into prompt surface calls.

Runs entirely in the presentation thread. Owns at most one surface, created
on the first prompt of an attempt, reused by later prompts, and destroyed
on End.
"""
from __future__ import annotations

import logging
from typing import Callable

from pkagent.core.events import (
    CancellationHandle,
    End,
    Event,
    PromptFingerprint,
    PromptPassword,
    ReplyChannel,
)
from pkagent.ports.surface import PromptSurface

logger = logging.getLogger(__name__)


class _PendingPrompt:
    """Lets exactly one of submit/cancel through for a single prompt."""

    def __init__(self, reply: ReplyChannel, cancellation: CancellationHandle) -> None:
        self._reply = reply
        self._cancellation = cancellation
        self.answered = False

    def submit(self, value: str) -> None:
        if self.answered:
            return
        self.answered = True
        self._reply.send(value)

    def cancel(self) -> None:
        if self.answered:
            return
        self.answered = True
        self._cancellation.cancel()


class PromptPresenter:
    def __init__(self, surface_factory: Callable[[], PromptSurface]) -> None:
        self._surface_factory = surface_factory
        self._surface: PromptSurface | None = None
        self._pending: _PendingPrompt | None = None

    @property
    def surface(self) -> PromptSurface | None:
        return self._surface

    def handle(self, event: Event) -> None:
        if isinstance(event, PromptPassword):
            if self._pending is not None and not self._pending.answered:
                logger.warning("New prompt before the previous one was answered, cancelling")
                self._pending.cancel()
            self._pending = _PendingPrompt(event.reply, event.cancellation)
            self._ensure_surface().ask_password(
                event.prompt or "Password:",
                self._pending.submit,
                self._pending.cancel,
            )
        elif isinstance(event, PromptFingerprint):
            self._ensure_surface().show_fingerprint()
        elif isinstance(event, End):
            self.close()
        else:
            logger.warning("Ignoring unknown event %r", event)

    def close(self) -> None:
        """Tear down the surface, if any."""
        self._pending = None
        if self._surface is not None:
            surface, self._surface = self._surface, None
            surface.destroy()
            logger.debug("Prompt surface destroyed")

    def _ensure_surface(self) -> PromptSurface:
        if self._surface is None:
            self._surface = self._surface_factory()
            logger.debug("Prompt surface created")
        return self._surface
