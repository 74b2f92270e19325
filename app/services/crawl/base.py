from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def clip(text: Optional[str], limit: int) -> str:
    """Return at most `limit` leading characters of text."""
    if not text:
        return ""
    return text[:limit] if len(text) > limit else text


def load_json_payload(raw: Optional[str]) -> Any:
    """Parse model output as JSON, tolerating a surrounding ``` fence.

    Raises ValueError (json.JSONDecodeError) when the text is not JSON.
    """
    text = (raw or "").strip()
    m = _FENCE_RE.match(text)
    if m:
        text = m.group(1)
    return json.loads(text)


# --- Fault taxonomy ---

class CrawlError(Exception):
    """Base class for every fault raised by the crawl subsystem."""


class ConfigurationFault(CrawlError, RuntimeError):
    """Required configuration (credentials, strategy, caps) is missing or invalid."""


class UpstreamFetchFault(CrawlError):
    """The start URL could not be fetched; nothing can be crawled."""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: Optional[str] = None) -> None:
        self.url = url
        self.status_code = status_code
        self.reason = reason or "unreachable"
        super().__init__(f"Failed to fetch start URL: {self.reason}")


class CandidateFetchFault(CrawlError):
    def __init__(self, url: str, reason: Optional[str] = None) -> None:
        self.url = url
        self.reason = reason or "unreachable"
        super().__init__(f"Candidate {url} unavailable: {self.reason}")


class ExtractionFault(CrawlError):
    def __init__(self, url: str, message: str, raw: Optional[str] = None) -> None:
        self.url = url
        self.raw = raw
        super().__init__(f"Extraction failed for {url}: {message}")


class ClientInputFault(CrawlError):
    """Invalid request from the caller, rejected before any network activity."""


# --- Shared types ---

class PageType(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "PageType":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass
class FetchResult:
    url: str
    status_code: Optional[int]
    text: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300 and self.text is not None


class ModelCapability:
    """Contract for the generative-model capability.

    Implementations return the raw model text; parsing and validation belong to
    the discovery strategies and the extractor so that a malformed payload can
    be logged and dropped in one place.
    """

    async def find_product_links(self, html: str, base_url: str) -> str:
        """Return raw text expected to be a JSON array of PDP link strings."""
        raise NotImplementedError

    async def classify_url(self, url: str) -> str:
        """Return raw text expected to be a JSON object {"pageType": ...}."""
        raise NotImplementedError

    async def extract_product(self, html: str, url: str) -> str:
        """Return raw text expected to be a JSON object shaped like ExtractedProduct."""
        raise NotImplementedError


class LinkDiscoveryStrategy:
    """Turns homepage markup into an ordered, deduplicated list of absolute candidate URLs."""

    name: str = "base"

    async def discover(self, html: str, base_url: str) -> List[str]:
        raise NotImplementedError
