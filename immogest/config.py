from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


#
# Values shipped in the sample `.env` before a project is provisioned.
# Any of these means "remote store not configured".
#
PLACEHOLDER_URLS = {"https://placeholder.supabase.co", "https://your-project.supabase.co"}
PLACEHOLDER_KEYS = {"placeholder-key", "your-anon-key"}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class AppConfig:
    # Required for remote mode (PostgREST endpoint + anon/service key)
    supabase_url: Optional[str]
    supabase_key: Optional[str]

    # Per-request timeout for the remote store and the availability probe
    remote_timeout_s: float

    # Defaults
    use_local_data: bool
    probe_on_start: bool
    log_level: str

    @property
    def remote_configured(self) -> bool:
        # Absent or placeholder values deterministically mean "unavailable"
        if not self.supabase_url or not self.supabase_key:
            return False
        if self.supabase_url.rstrip("/") in PLACEHOLDER_URLS or self.supabase_key in PLACEHOLDER_KEYS:
            return False
        return self.supabase_url.startswith(("http://", "https://"))

    @property
    def rest_url(self) -> str:
        return f"{(self.supabase_url or '').rstrip('/')}/rest/v1"


def _env(name: str) -> Optional[str]:
    # Blank counts as unset
    raw = (os.environ.get(name) or "").strip()
    return raw or None


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = _env(name)
    return default if raw is None else raw.lower() == "true"


def get_config() -> AppConfig:
    """
    Build the portal's data settings from the process environment.

    A `.env` file, when python-dotenv finds one, is merged in first without overriding
    real variables. Leaving the Supabase pair unset is a supported setup: the data
    service then runs entirely on the local store.
    """
    load_dotenv(override=False)

    return AppConfig(
        supabase_url=_env("SUPABASE_URL"),
        supabase_key=_env("SUPABASE_ANON_KEY"),
        remote_timeout_s=_env_float("REMOTE_TIMEOUT_SECONDS", 5.0),
        use_local_data=_env_flag("USE_LOCAL_DATA", False),
        probe_on_start=_env_flag("PROBE_ON_START", True),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(cfg: AppConfig) -> None:
    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.INFO), format=LOG_FORMAT)
