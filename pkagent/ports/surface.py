"""Prompt surface port — the interactive element that collects a credential.

Implementations live in the presentation thread and are only ever touched
from it.
"""
from __future__ import annotations

from typing import Callable, Protocol


class PromptSurface(Protocol):
    """Abstract interface for a prompt window."""

    def ask_password(
        self,
        prompt: str,
        on_submit: Callable[[str], None],
        on_cancel: Callable[[], None],
    ) -> None:
        """Show (or re-arm) a masked entry for *prompt*."""
        ...

    def show_fingerprint(self) -> None:
        """Tell the user to use the fingerprint reader."""
        ...

    def destroy(self) -> None:
        """Tear the surface down."""
        ...
