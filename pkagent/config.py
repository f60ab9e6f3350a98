from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from pkagent.adapters.helper.driver import DEFAULT_GRACE_PERIOD, find_helper

DEFAULT_OBJECT_PATH = "/org/freedesktop/PolicyKit1/AuthenticationAgent"

_FALSE = {"0", "false", "no", "off"}


@dataclass
class AgentConfig:
    helper_path: str = field(default_factory=find_helper)
    locale: str = "en_US"
    object_path: str = DEFAULT_OBJECT_PATH
    grace_period: float = DEFAULT_GRACE_PERIOD
    log_file: str | None = None
    log_level: str = "INFO"
    unregister_on_exit: bool = True

    @classmethod
    def from_env(cls) -> AgentConfig:
        load_dotenv()
        grace_period = float(
            os.environ.get("PKAGENT_GRACE_PERIOD", str(DEFAULT_GRACE_PERIOD))
        )
        if grace_period <= 0:
            raise ValueError("PKAGENT_GRACE_PERIOD must be positive")
        object_path = os.environ.get("PKAGENT_OBJECT_PATH", DEFAULT_OBJECT_PATH)
        if not object_path.startswith("/"):
            raise ValueError("PKAGENT_OBJECT_PATH must be an absolute object path")
        return cls(
            helper_path=os.environ.get("PKAGENT_HELPER_PATH", "") or find_helper(),
            locale=os.environ.get("PKAGENT_LOCALE", "en_US"),
            object_path=object_path,
            grace_period=grace_period,
            log_file=os.environ.get("PKAGENT_LOG_FILE") or None,
            log_level=os.environ.get("PKAGENT_LOG_LEVEL", "INFO").upper(),
            unregister_on_exit=(
                os.environ.get("PKAGENT_UNREGISTER_ON_EXIT", "1").lower() not in _FALSE
            ),
        )
