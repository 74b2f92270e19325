"""Runtime configuration read from environment variables.

Credentials:

- LLM_API_KEY / OPENAI_API_KEY / DASHSCOPE_API_KEY / API_KEY
- LLM_BASE_URL (optional, OpenAI-compatible endpoint)
- LLM_MODEL, LLM_FAST_MODEL, LLM_EXTRACT_MODEL

Crawl tuning (all optional):

- CRAWL_MAX_CANDIDATES (default 5)
- CRAWL_DISCOVERY_STRATEGY: one_shot | two_phase
- CRAWL_HOMEPAGE_CHAR_CAP / CRAWL_PDP_CHAR_CAP: markup prefix sent to the model
- CRAWL_CLASSIFY_LIMIT: max links classified by the two_phase strategy
- CRAWL_FETCH_TIMEOUT, CRAWL_USER_AGENT

Settings are resolved once per process with get_settings(). validate_settings()
is called at startup so a missing credential fails before any request is served.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from app.services.crawl.base import ConfigurationFault


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
DASHSCOPE_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
STRATEGIES = ("one_shot", "two_phase")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationFault(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationFault(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: str = "qwen-plus"
    fast_model: str = "qwen-plus"
    extract_model: str = "qwen-plus"
    llm_timeout: float = 60.0
    max_candidates: int = 5
    discovery_strategy: str = "one_shot"
    homepage_char_cap: int = 30000
    pdp_char_cap: int = 25000
    classify_limit: int = 40
    fetch_timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = (
            os.getenv("LLM_API_KEY")
            or os.getenv("OPENAI_API_KEY")
            or os.getenv("DASHSCOPE_API_KEY")
            or os.getenv("API_KEY")
        )
        base_url = os.getenv("LLM_BASE_URL") or (DASHSCOPE_BASE_URL if os.getenv("DASHSCOPE_API_KEY") else None)
        model = os.getenv("LLM_MODEL") or "qwen-plus"
        return cls(
            api_key=api_key,
            base_url=base_url,
            model=model,
            fast_model=os.getenv("LLM_FAST_MODEL") or model,
            extract_model=os.getenv("LLM_EXTRACT_MODEL") or model,
            llm_timeout=_env_float("LLM_TIMEOUT", 60.0),
            max_candidates=_env_int("CRAWL_MAX_CANDIDATES", 5),
            discovery_strategy=(os.getenv("CRAWL_DISCOVERY_STRATEGY") or "one_shot").strip().lower(),
            homepage_char_cap=_env_int("CRAWL_HOMEPAGE_CHAR_CAP", 30000),
            pdp_char_cap=_env_int("CRAWL_PDP_CHAR_CAP", 25000),
            classify_limit=_env_int("CRAWL_CLASSIFY_LIMIT", 40),
            fetch_timeout=_env_float("CRAWL_FETCH_TIMEOUT", 15.0),
            user_agent=os.getenv("CRAWL_USER_AGENT") or DEFAULT_USER_AGENT,
        )


def validate_settings(settings: Settings) -> Settings:
    """Raise ConfigurationFault unless the settings can serve a crawl."""
    if not settings.api_key:
        raise ConfigurationFault(
            "Missing LLM API key. Set LLM_API_KEY or OPENAI_API_KEY or DASHSCOPE_API_KEY."
        )
    if settings.discovery_strategy not in STRATEGIES:
        raise ConfigurationFault(
            f"Unknown CRAWL_DISCOVERY_STRATEGY {settings.discovery_strategy!r}; expected one of {', '.join(STRATEGIES)}"
        )
    for name in ("max_candidates", "homepage_char_cap", "pdp_char_cap", "classify_limit"):
        if getattr(settings, name) <= 0:
            raise ConfigurationFault(f"{name} must be positive")
    if settings.fetch_timeout <= 0 or settings.llm_timeout <= 0:
        raise ConfigurationFault("timeouts must be positive")
    return settings


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


def reset_settings() -> None:
    global _settings_cache
    _settings_cache = None
