"""LLM client wrapper for OpenAI-compatible endpoints.

Supports OpenAI, Alibaba DashScope (Qwen) or any OpenAI-compatible base_url.
Configuration comes from app.config (see that module for the environment
variables); a missing API key raises ConfigurationFault.

Usage:
    from app.services.llm_client import get_llm_client
    client = get_llm_client()
    text, usage, model = client.generate([
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "Say hi"},
    ])
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from app.config import Settings, get_settings
from app.services.crawl.base import ConfigurationFault

try:
    from openai import OpenAI
except Exception as _exc:  # pragma: no cover - import checked at runtime
    OpenAI = None
    _openai_import_error = _exc


class LLMClient:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        if OpenAI is None:  # pragma: no cover
            raise ConfigurationFault(
                "The 'openai' package is not installed. Install with: pip install openai"
                f"\nImport error: {_openai_import_error!r}"
            )
        settings = settings or get_settings()
        self.api_key = api_key or settings.api_key
        if not self.api_key:
            raise ConfigurationFault("Missing LLM API key. Set LLM_API_KEY or OPENAI_API_KEY or DASHSCOPE_API_KEY.")

        self.base_url = base_url or settings.base_url
        self.model = model or settings.model
        self.timeout = float(timeout or settings.llm_timeout)

        if self.base_url:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)
        else:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)

    def generate(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: float = 0.2,
        max_tokens: int = 1200,
        json_mode: bool = False,
        extra_body: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
    ) -> Tuple[str, Dict[str, Any], str]:
        """Generate a chat completion and return (text, usage, model).

        json_mode asks the endpoint for a JSON object response; the caller still
        validates the text, since not every compatible provider enforces it.
        extra_body: provider-specific extensions (e.g., {"enable_thinking": False} for some Qwen variants)
        """
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": float(temperature),
            "max_tokens": int(max_tokens),
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        if extra_body:
            payload["extra_body"] = extra_body

        resp = self._client.chat.completions.create(**payload)
        text = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        usage = getattr(resp, "usage", None)
        usage_dict = usage.model_dump() if hasattr(usage, "model_dump") else (usage or {})
        return text, usage_dict, getattr(resp, "model", payload["model"]) or payload["model"]


_client_cache: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    global _client_cache
    if _client_cache is None:
        _client_cache = LLMClient()
    return _client_cache


def reset_llm_client() -> None:
    global _client_cache
    _client_cache = None
