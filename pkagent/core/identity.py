"""Identities offered by polkit and selection of the account to authenticate."""
from __future__ import annotations

import logging
import os
import pwd
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

UNIX_USER = "unix-user"
UNIX_GROUP = "unix-group"
UNIX_SESSION = "unix-session"


@dataclass(frozen=True)
class Identity:
    """A candidate account (or group) polkit will accept."""
    kind: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dbus(cls, value: tuple[str, dict[str, tuple[str, Any]]]) -> Identity:
        """Build from a ``(sa{sv})`` struct, unwrapping the variants."""
        kind, details = value
        return cls(kind=kind, details={k: v[1] for k, v in details.items()})


@dataclass(frozen=True)
class Subject:
    """Describes this agent's session when (un)registering with polkit."""
    kind: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dbus(self) -> tuple[str, dict[str, tuple[str, Any]]]:
        # Every detail we send is a string (session-id).
        return (self.kind, {k: ("s", v) for k, v in self.details.items()})


def select_username(
    identities: Iterable[Identity],
    uid: int | None = None,
    lookup: Callable[[int], Any] = pwd.getpwuid,
) -> str | None:
    """Pick the account to authenticate as.

    Preference: our own uid, then root, then the first unix-user offered.
    Groups are ignored, like other desktop agents do.
    """
    if uid is None:
        uid = os.geteuid()

    uids = []
    for identity in identities:
        if identity.kind != UNIX_USER or "uid" not in identity.details:
            continue
        try:
            uids.append(int(identity.details["uid"]))
        except (TypeError, ValueError):
            logger.warning("Ignoring unix-user with bad uid %r", identity.details["uid"])
    if not uids:
        return None

    if uid in uids:
        chosen = uid
    elif 0 in uids:
        chosen = 0
    else:
        chosen = uids[0]

    try:
        name = lookup(chosen).pw_name
    except KeyError:
        logger.warning("No account for uid %d", chosen)
        return None

    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        logger.warning("Account name for uid %d is not valid UTF-8", chosen)
        return None
    return name
