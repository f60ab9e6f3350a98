"""Registration of this process as the session's polkit agent."""
from __future__ import annotations

import logging
from typing import Any

from pkagent.core.identity import UNIX_SESSION, Subject

logger = logging.getLogger(__name__)


class AgentRegistration:
    """Registers with the polkit authority and, on request, unregisters.

    *authority* and *session* are the D-Bus proxies from
    ``pkagent.adapters.dbus.proxies`` (or anything shaped like them).
    """

    def __init__(
        self,
        authority: Any,
        session: Any,
        locale: str,
        object_path: str,
    ) -> None:
        self._authority = authority
        self._session = session
        self._locale = locale
        self._object_path = object_path
        self._subject: Subject | None = None

    @property
    def registered(self) -> bool:
        return self._subject is not None

    @property
    def subject(self) -> Subject | None:
        return self._subject

    async def register(self) -> None:
        """Register for the current session. Errors propagate to the caller."""
        session_id = await self._session.id
        subject = Subject(UNIX_SESSION, {"session-id": session_id})
        await self._authority.register_authentication_agent(
            subject.to_dbus(), self._locale, self._object_path
        )
        self._subject = subject
        logger.info(
            "Registered agent at %s for session %s", self._object_path, session_id
        )

    async def unregister(self) -> None:
        """Unregister if registered. Failures are logged, not raised."""
        if self._subject is None:
            return
        subject, self._subject = self._subject, None
        try:
            await self._authority.unregister_authentication_agent(
                subject.to_dbus(), self._object_path
            )
        except Exception:
            logger.warning("Failed to unregister agent", exc_info=True)
            return
        logger.info("Unregistered agent at %s", self._object_path)
