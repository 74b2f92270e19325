from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Optional
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

from selectolax.lexbor import LexborHTMLParser

from .base import (
    ConfigurationFault,
    LinkDiscoveryStrategy,
    ModelCapability,
    PageType,
    clip,
    load_json_payload,
)


logger = logging.getLogger(__name__)

DEFAULT_HOMEPAGE_CHAR_CAP = 30000
DEFAULT_CLASSIFY_LIMIT = 40


def resolve_url(link: Any, base_url: str) -> Optional[str]:
    """Resolve a discovered link against base_url.

    Returns None for anything that is not a usable absolute http(s) URL.
    The fragment is dropped since it never changes the fetched document.
    """
    if not isinstance(link, str):
        return None
    link = link.strip()
    if not link:
        return None
    try:
        absolute, _frag = urldefrag(urljoin(base_url, link))
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return None
    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), parsed.path or "/", parsed.params, parsed.query, "")
    )


def resolve_candidates(links: Iterable[Any], base_url: str) -> List[str]:
    """Resolve links to absolute URLs with set semantics, keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for link in links:
        url = resolve_url(link, base_url)
        if url is None:
            logger.debug("Dropping unresolvable link %r", link)
            continue
        if url in seen:
            continue
        seen.add(url)
        out.append(url)
    return out


def _link_list(payload: Any) -> Optional[List[Any]]:
    # Bare array, or an object wrapping it (json_object mode forces an object).
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("links", "urls", "pdps", "products"):
            v = payload.get(key)
            if isinstance(v, list):
                return v
    return None


def _same_site(netloc_a: str, netloc_b: str) -> bool:
    def norm(n: str) -> str:
        n = n.lower()
        return n[4:] if n.startswith("www.") else n

    return norm(netloc_a) == norm(netloc_b)


class OneShotDiscovery(LinkDiscoveryStrategy):
    """One model call over the homepage markup returns the PDP links directly.

    Only the first `char_cap` characters of the homepage are sent; links past
    the cap are never seen.
    """

    name = "one_shot"

    def __init__(self, capability: ModelCapability, *, char_cap: int = DEFAULT_HOMEPAGE_CHAR_CAP) -> None:
        self.capability = capability
        self.char_cap = int(char_cap)

    async def discover(self, html: str, base_url: str) -> List[str]:
        try:
            raw = await self.capability.find_product_links(clip(html, self.char_cap), base_url)
        except Exception as exc:
            logger.warning("PDP link discovery call failed for %s: %r", base_url, exc)
            return []
        try:
            payload = load_json_payload(raw)
        except ValueError:
            logger.warning("Error parsing JSON for PDP links on %s. Raw response: %s", base_url, clip(raw, 500))
            return []
        links = _link_list(payload)
        if links is None:
            logger.warning("Unexpected PDP link payload for %s: %s", base_url, clip(raw, 500))
            return []
        candidates = resolve_candidates(links, base_url)
        logger.info("one_shot discovery: %d links returned, %d candidates for %s", len(links), len(candidates), base_url)
        return candidates


class TwoPhaseDiscovery(LinkDiscoveryStrategy):
    """Extract every same-site link, then classify each URL independently.

    Costs one small model call per link (bounded by `classify_limit`) instead of
    one large one.
    """

    name = "two_phase"

    def __init__(self, capability: ModelCapability, *, classify_limit: int = DEFAULT_CLASSIFY_LIMIT) -> None:
        self.capability = capability
        self.classify_limit = int(classify_limit)

    @staticmethod
    def extract_links(html: str, base_url: str) -> List[str]:
        doc = LexborHTMLParser(html or "")
        hrefs = [node.attributes.get("href") for node in doc.css("a[href]")]
        base_netloc = urlparse(base_url).netloc
        return [u for u in resolve_candidates(hrefs, base_url) if _same_site(urlparse(u).netloc, base_netloc)]

    async def _classify(self, url: str) -> PageType:
        try:
            raw = await self.capability.classify_url(url)
            payload = load_json_payload(raw)
        except Exception as exc:
            logger.warning("Classification failed for %s: %r", url, exc)
            return PageType.OTHER
        if not isinstance(payload, dict):
            return PageType.OTHER
        return PageType.parse(payload.get("pageType"))

    async def discover(self, html: str, base_url: str) -> List[str]:
        links = self.extract_links(html, base_url)
        if len(links) > self.classify_limit:
            logger.info("two_phase discovery: classifying first %d of %d links", self.classify_limit, len(links))
            links = links[: self.classify_limit]
        page_types = await asyncio.gather(*(self._classify(u) for u in links))
        candidates = [u for u, t in zip(links, page_types) if t is PageType.PRODUCT]
        logger.info("two_phase discovery: %d links classified, %d product pages for %s", len(links), len(candidates), base_url)
        return candidates


def build_discovery(name: str, capability: ModelCapability, settings=None) -> LinkDiscoveryStrategy:
    """Instantiate the configured discovery strategy."""
    key = (name or "one_shot").strip().lower()
    if key == OneShotDiscovery.name:
        cap = settings.homepage_char_cap if settings is not None else DEFAULT_HOMEPAGE_CHAR_CAP
        return OneShotDiscovery(capability, char_cap=cap)
    if key == TwoPhaseDiscovery.name:
        limit = settings.classify_limit if settings is not None else DEFAULT_CLASSIFY_LIMIT
        return TwoPhaseDiscovery(capability, classify_limit=limit)
    raise ConfigurationFault(f"Unknown discovery strategy: {name!r}")
