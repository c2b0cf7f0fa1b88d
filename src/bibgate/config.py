# ABOUTME: Gateway configuration: defaults, environment overlay, and CLI overrides.
# ABOUTME: Every tunable of the fetcher, registry, and session stores lives here.

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from bibgate.http.fetcher import DEFAULT_MAX_RESPONSE_SIZE, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

ENV_PREFIX = "BIBGATE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class GatewayConfig:
    """Settings for one gateway process.

    Timeouts and intervals are in seconds; GC intervals count handled requests.
    """

    user_agent: str = DEFAULT_USER_AGENT
    http_timeout: float = DEFAULT_TIMEOUT
    max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE
    persistent_cookies: bool = False

    translators_dir: Path | None = None
    repository_url: str | None = None
    repository_check_interval: float = 24 * 60 * 60
    repository_retry_delay: float = 10 * 60
    repository_jitter: float = 60 * 60
    browser: str = "v"

    blacklisted_domains: tuple[str, ...] = ()
    deproxify_urls: bool = True

    web_select_timeout: float = 60.0
    web_gc_interval: int = 10
    search_select_timeout: float = 15.0
    search_gc_interval: int = 3
    search_page_size: int = 3

    translation_runner: str | None = None

    host: str = "127.0.0.1"
    port: int = 1969

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "GatewayConfig":
        """Build a config from ``BIBGATE_*`` variables over the defaults.

        Malformed values are logged and the default is kept.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        overrides: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            value = _coerce(raw, getattr(defaults, f.name), f.name)
            if value is not None:
                overrides[f.name] = value
        return replace(defaults, **overrides)

    def with_overrides(self, **overrides: Any) -> "GatewayConfig":
        """Return a copy with the given non-None values applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _coerce(raw: str, default: Any, name: str) -> Any:
    raw = raw.strip()
    if name == "translators_dir":
        return Path(raw) if raw else None
    if name in ("repository_url", "translation_runner"):
        return raw or None
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        return _invalid(name, raw)
    if isinstance(default, int):
        try:
            parsed = int(raw)
        except ValueError:
            return _invalid(name, raw)
        return parsed if parsed > 0 else _invalid(name, raw)
    if isinstance(default, float):
        try:
            parsed_float = float(raw)
        except ValueError:
            return _invalid(name, raw)
        return parsed_float if parsed_float > 0 else _invalid(name, raw)
    if isinstance(default, tuple):
        return tuple(item.strip() for item in raw.split(",") if item.strip())
    return raw


def _invalid(name: str, raw: str) -> None:
    logger.warning("Ignoring invalid value for %s%s: %r", ENV_PREFIX, name.upper(), raw)
    return None
