"""Exported org.freedesktop.PolicyKit1.AuthenticationAgent object."""
from __future__ import annotations

from typing import Any

from sdbus import DbusInterfaceCommonAsync, dbus_method_async

from pkagent.core.agent import AuthenticationAgent
from pkagent.core.identity import Identity

AGENT_INTERFACE = "org.freedesktop.PolicyKit1.AuthenticationAgent"


class PolkitAgentInterface(DbusInterfaceCommonAsync, interface_name=AGENT_INTERFACE):
    """D-Bus face of AuthenticationAgent.

    Errors raised by the agent are PolkitError subclasses of sdbus'
    DbusFailedError and reach polkit as ``org.freedesktop.PolicyKit1.Error.*``.
    """

    def __init__(self, agent: AuthenticationAgent) -> None:
        super().__init__()
        self._agent = agent

    @dbus_method_async(input_signature="sssa{ss}sa(sa{sv})")
    async def begin_authentication(
        self,
        action_id: str,
        message: str,
        icon_name: str,
        details: dict[str, str],
        cookie: str,
        identities: list[tuple[str, dict[str, tuple[str, Any]]]],
    ) -> None:
        await self._agent.begin(
            action_id,
            message,
            icon_name,
            details,
            cookie,
            [Identity.from_dbus(identity) for identity in identities],
        )

    @dbus_method_async(input_signature="s")
    async def cancel_authentication(self, cookie: str) -> None:
        await self._agent.cancel(cookie)
