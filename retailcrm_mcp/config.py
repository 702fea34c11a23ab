"""Connection and buyout-job settings, read from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from retailcrm_mcp.constants import ALLOWED_PAGE_LIMITS, DEFAULT_BUYOUT_FIELD
from retailcrm_mcp.normalization import clean_str, normalize_sites

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""


def load_env_file(path: Path = ENV_FILE) -> None:
    """Load KEY=VALUE lines into ``os.environ`` without overriding (no extra dependency)."""
    if not path.is_file():
        return
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            os.environ.setdefault(k.strip(), v.strip())


@dataclass(frozen=True)
class Settings:
    """Everything the gateway and the buyout jobs need, passed in explicitly."""

    base_url: str
    api_key: str
    sites: tuple[str, ...] = ()
    buyout_field: str = DEFAULT_BUYOUT_FIELD
    order_page_size: int = 100
    customer_page_size: int = 20
    max_customers: int = 100
    page_delay: float = 0.5

    def __post_init__(self) -> None:
        if self.order_page_size not in ALLOWED_PAGE_LIMITS:
            raise ConfigError(
                f"order page size must be one of {ALLOWED_PAGE_LIMITS}, "
                f"got {self.order_page_size}"
            )
        if self.customer_page_size not in ALLOWED_PAGE_LIMITS:
            raise ConfigError(
                f"customer page size must be one of {ALLOWED_PAGE_LIMITS}, "
                f"got {self.customer_page_size}"
            )
        if self.max_customers <= 0:
            raise ConfigError("max customers must be greater than 0")
        if self.page_delay < 0:
            raise ConfigError("page delay must not be negative")

    def require_sites(self) -> tuple[str, ...]:
        if not self.sites:
            raise ConfigError(
                "RETAILCRM_SITES is not configured; list the site codes to probe, "
                "comma separated, in priority order."
            )
        return self.sites


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = clean_str(env.get(name))
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = clean_str(env.get(name))
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build ``Settings`` from ``env`` (defaults to ``os.environ``)."""
    if env is None:
        env = os.environ

    base_url = clean_str(env.get("RETAILCRM_URL"))
    if base_url is None:
        raise ConfigError("RETAILCRM_URL is not configured.")
    api_key = clean_str(env.get("RETAILCRM_API_KEY"))
    if api_key is None:
        raise ConfigError("RETAILCRM_API_KEY is not configured.")

    return Settings(
        base_url=base_url.rstrip("/"),
        api_key=api_key,
        sites=normalize_sites(env.get("RETAILCRM_SITES")),
        buyout_field=clean_str(env.get("RETAILCRM_BUYOUT_FIELD")) or DEFAULT_BUYOUT_FIELD,
        order_page_size=_int_setting(env, "RETAILCRM_PAGE_SIZE", 100),
        customer_page_size=_int_setting(env, "RETAILCRM_BATCH_PAGE_SIZE", 20),
        max_customers=_int_setting(env, "RETAILCRM_MAX_CUSTOMERS", 100),
        page_delay=_float_setting(env, "RETAILCRM_PAGE_DELAY", 0.5),
    )
