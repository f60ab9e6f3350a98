from __future__ import annotations

from typing import Protocol, runtime_checkable

from pkagent.core.events import CancellationHandle


@runtime_checkable
class AuthDriverPort(Protocol):
    """Abstract interface for whatever performs the credential conversation.

    The agent depends only on this interface, so tests can swap in a fake
    without spawning the privileged helper.
    """

    async def authenticate(
        self, cookie: str, username: str, cancellation: CancellationHandle
    ) -> None:
        """Run one conversation for *username*.

        Returns on success; raises PolkitCancelledError when *cancellation*
        fires and PolkitFailedError on any other failure.
        """
        ...
