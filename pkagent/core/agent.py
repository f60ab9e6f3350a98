"""The two callbacks polkit makes into an authentication agent.

Transport-free: the D-Bus adapter unpacks arguments and forwards here.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from pkagent.core.attempt import AttemptState
from pkagent.core.errors import PolkitError, PolkitFailedError
from pkagent.core.events import ChannelClosed, End, PromptEventChannel
from pkagent.core.identity import Identity, select_username

if TYPE_CHECKING:
    from pkagent.ports.driver import AuthDriverPort

logger = logging.getLogger(__name__)

UsernameSelector = Callable[[Iterable[Identity]], Optional[str]]


class AuthenticationAgent:
    """Handles BeginAuthentication / CancelAuthentication for one session."""

    def __init__(
        self,
        driver: AuthDriverPort,
        channel: PromptEventChannel,
        state: AttemptState | None = None,
        select: UsernameSelector = select_username,
    ) -> None:
        self._driver = driver
        self._channel = channel
        self._state = state or AttemptState()
        self._select = select

    @property
    def state(self) -> AttemptState:
        return self._state

    async def begin(
        self,
        action_id: str,
        message: str,
        icon_name: str,
        details: dict[str, str],
        cookie: str,
        identities: list[Identity],
    ) -> None:
        """Authenticate for *cookie*. Raises a PolkitError unless it succeeded."""
        logger.info(
            "begin_authentication action=%s cookie=%s message=%r identities=%d",
            action_id, cookie, message, len(identities),
        )
        logger.debug("icon=%r details=%r identities=%r", icon_name, details, identities)

        if self._state.active:
            logger.warning("Rejecting %s: another authentication is in progress", cookie)
            raise PolkitFailedError("another authentication is in progress")

        username = self._select(identities)
        if username is None:
            logger.warning("Rejecting %s: no usable identity", cookie)
            raise PolkitFailedError("no usable identity")

        attempt = self._state.install(cookie)
        try:
            await self._driver.authenticate(cookie, username, attempt.cancellation)
        except PolkitError:
            raise
        except Exception as e:
            logger.exception("Authentication %s crashed", cookie)
            raise PolkitFailedError(str(e)) from e
        finally:
            self._publish_end()
            self._state.clear(attempt)
        logger.info("Authentication %s succeeded as %s", cookie, username)

    async def cancel(self, cookie: str) -> None:
        """Cancel the attempt for *cookie*; anything else is a no-op."""
        attempt = self._state.current()
        if attempt is None:
            logger.info("cancel_authentication %s: nothing in progress", cookie)
            return
        if attempt.cookie != cookie:
            logger.info(
                "cancel_authentication %s: active attempt is %s", cookie, attempt.cookie
            )
            return
        logger.info("cancel_authentication %s", cookie)
        attempt.cancellation.cancel()

    def _publish_end(self) -> None:
        try:
            self._channel.send(End())
        except ChannelClosed:
            logger.debug("Prompt channel closed, End not delivered")
