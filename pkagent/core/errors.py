"""polkit error taxonomy.

Each concrete class carries an ``org.freedesktop.PolicyKit1.Error.*`` name,
so raising one inside an exported D-Bus method returns that error to the
caller. ``PolkitError`` is a plain marker base for ``except`` clauses.
"""
from __future__ import annotations

from sdbus import DbusFailedError

ERROR_PREFIX = "org.freedesktop.PolicyKit1.Error"


class PolkitError(Exception):
    """Any error reported back to the polkit authority."""


class PolkitFailedError(DbusFailedError, PolkitError):
    dbus_error_name = f"{ERROR_PREFIX}.Failed"


class PolkitCancelledError(DbusFailedError, PolkitError):
    dbus_error_name = f"{ERROR_PREFIX}.Cancelled"


class PolkitNotSupportedError(DbusFailedError, PolkitError):
    dbus_error_name = f"{ERROR_PREFIX}.NotSupported"


class PolkitNotAuthorizedError(DbusFailedError, PolkitError):
    dbus_error_name = f"{ERROR_PREFIX}.NotAuthorized"


class PolkitCancellationIdNotUniqueError(DbusFailedError, PolkitError):
    dbus_error_name = f"{ERROR_PREFIX}.CancellationIdNotUnique"
