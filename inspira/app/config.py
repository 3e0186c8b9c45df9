"""Runtime configuration read from the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_APP_ID = "default-app-id"


@dataclass(frozen=True)
class Settings:
    """Environment-supplied settings for one deployment.

    Attributes
    ----------
    app_id:
        Namespace of the tester collection in the document store.
    initial_auth_token:
        Optional bootstrap credential exchanged for a session at start-up.
        When absent every new flow signs in anonymously.
    database_url:
        SQLAlchemy URL of the document store.
    report_timezone:
        IANA timezone used when formatting report timestamps.
    auth_restricted:
        Simulates an execution environment that refuses interactive
        federated sign-in (preview hosts, embedded frames).
    federated_providers:
        Provider kinds the local identity provider accepts.
    """

    app_id: str = DEFAULT_APP_ID
    initial_auth_token: Optional[str] = None
    database_url: str = "sqlite:///./inspira.db"
    report_timezone: str = "Asia/Seoul"
    auth_restricted: bool = False
    federated_providers: Tuple[str, ...] = field(default=("google",))
    log_level: str = "INFO"
    log_json: bool = True
    max_flows: int = 1024


def _coerce_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _split_csv(value: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return default
    items = tuple(part.strip().lower() for part in value.split(",") if part.strip())
    return items or default


def load_settings() -> Settings:
    """Build settings from the process environment (and a local ``.env``)."""
    load_dotenv()
    defaults = Settings()
    token = os.getenv("INSPIRA_INITIAL_AUTH_TOKEN") or None
    return Settings(
        app_id=os.getenv("INSPIRA_APP_ID") or DEFAULT_APP_ID,
        initial_auth_token=token,
        database_url=os.getenv("DATABASE_URL", defaults.database_url),
        report_timezone=os.getenv("INSPIRA_REPORT_TIMEZONE", defaults.report_timezone),
        auth_restricted=_coerce_bool(os.getenv("INSPIRA_AUTH_RESTRICTED"), False),
        federated_providers=_split_csv(
            os.getenv("INSPIRA_FEDERATED_PROVIDERS"), defaults.federated_providers
        ),
        log_level=os.getenv("INSPIRA_LOG_LEVEL", defaults.log_level),
        log_json=_coerce_bool(os.getenv("INSPIRA_LOG_JSON"), True),
        max_flows=_coerce_int(os.getenv("INSPIRA_MAX_FLOWS"), defaults.max_flows),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
