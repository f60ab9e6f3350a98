"""Client-side D-Bus interfaces: logind session and polkit authority."""
from __future__ import annotations

from typing import Any

from sdbus import DbusInterfaceCommonAsync, dbus_method_async, dbus_property_async

LOGIND_SERVICE = "org.freedesktop.login1"
LOGIND_SESSION_PATH = "/org/freedesktop/login1/session/auto"

POLKIT_SERVICE = "org.freedesktop.PolicyKit1"
POLKIT_AUTHORITY_PATH = "/org/freedesktop/PolicyKit1/Authority"

DbusSubject = tuple[str, dict[str, tuple[str, Any]]]


class LogindSession(
    DbusInterfaceCommonAsync, interface_name="org.freedesktop.login1.Session"
):
    @dbus_property_async(property_signature="s")
    def id(self) -> str:
        raise NotImplementedError


class PolkitAuthority(
    DbusInterfaceCommonAsync, interface_name="org.freedesktop.PolicyKit1.Authority"
):
    @dbus_method_async(input_signature="(sa{sv})ss")
    async def register_authentication_agent(
        self, subject: DbusSubject, locale: str, object_path: str
    ) -> None:
        raise NotImplementedError

    @dbus_method_async(input_signature="(sa{sv})s")
    async def unregister_authentication_agent(
        self, subject: DbusSubject, object_path: str
    ) -> None:
        raise NotImplementedError


def session_proxy(bus) -> LogindSession:
    """Proxy for the caller's own logind session."""
    return LogindSession.new_proxy(LOGIND_SERVICE, LOGIND_SESSION_PATH, bus)


def authority_proxy(bus) -> PolkitAuthority:
    return PolkitAuthority.new_proxy(POLKIT_SERVICE, POLKIT_AUTHORITY_PATH, bus)
