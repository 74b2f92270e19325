"""Generative-model capability used by discovery and extraction.

LLMCapability talks to an OpenAI-compatible endpoint through LLMClient.
StaticCapability answers from canned payloads and never touches the network;
the test suite drives the whole pipeline through it.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .base import ModelCapability


PDP_LINKS_PROMPT = """You are analysing the HTML of an e-commerce homepage.
Extract every unique internal URL that looks like a Product Detail Page (PDP):
a page describing exactly one product. Ignore categories, product listings,
search results, cart/account pages and informational pages (about, contact, help).

URLs may be relative to the site (starting with /) or absolute URLs on the same domain.
Respond with JSON only, in the form {{"links": ["/product/red-shoe", "/product/black-boot"]}}.
If there are none, respond with {{"links": []}}.

Site: {base_url}
HTML:
{html}
"""

CLASSIFY_URL_PROMPT = """Based only on the following URL of an e-commerce site, classify the page type.
Is it a product page (one single product), a category page (a listing of products), or other
(home, about, contact, account, blog...)?
Respond with JSON only: {{"pageType": "product" | "category" | "other"}}

URL: {url}
"""

EXTRACT_PRODUCT_PROMPT = """You are an expert in e-commerce data extraction. Analyse the HTML of the
following product page and extract the product details.

Respond with a single JSON object with exactly these keys:
- name (string)
- description (string)
- price (number, the regular price, no currency symbol)
- discountedPrice (number, only if the product is on sale; omit otherwise)
- imageUrl (string, absolute URL of the main product image)
- availability (boolean, true if in stock)
- variants (array of {{"type": string, "value": string}}, e.g. {{"type": "Size", "value": "M"}}; [] if none)

Source URL: {url}
HTML:
{html}
"""


class LLMCapability(ModelCapability):
    """Capability backed by LLMClient.

    The OpenAI SDK call is blocking, so it runs in a worker thread to keep the
    fan-out branches interleaving on the event loop.
    """

    def __init__(
        self,
        client,
        *,
        fast_model: Optional[str] = None,
        extract_model: Optional[str] = None,
        max_tokens: int = 2000,
    ) -> None:
        self.client = client
        self.fast_model = fast_model
        self.extract_model = extract_model
        self.max_tokens = int(max_tokens)

    async def _ask(self, prompt: str, *, model: Optional[str], max_tokens: Optional[int] = None) -> str:
        text, _usage, _model = await asyncio.to_thread(
            self.client.generate,
            [{"role": "user", "content": prompt}],
            temperature=0.0,
            max_tokens=max_tokens or self.max_tokens,
            json_mode=True,
            model=model,
        )
        return text

    async def find_product_links(self, html: str, base_url: str) -> str:
        return await self._ask(PDP_LINKS_PROMPT.format(base_url=base_url, html=html), model=self.fast_model)

    async def classify_url(self, url: str) -> str:
        return await self._ask(CLASSIFY_URL_PROMPT.format(url=url), model=self.fast_model, max_tokens=50)

    async def extract_product(self, html: str, url: str) -> str:
        return await self._ask(EXTRACT_PRODUCT_PROMPT.format(url=url, html=html), model=self.extract_model)


Canned = Union[str, Mapping[str, Any], Sequence[Any], Exception, None]


def _render(value: Canned) -> str:
    if isinstance(value, Exception):
        raise value
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


class StaticCapability(ModelCapability):
    """Deterministic capability answering from canned payloads.

    - links: payload returned by find_product_links (list, dict, raw string or an exception to raise)
    - page_types: url -> page type string for classify_url (missing urls are "other")
    - products: url -> payload for extract_product (missing urls return "null")

    Every call is recorded in `calls` as (operation, argument) tuples, and the
    markup handed to the model is kept in `seen_html` for truncation checks.
    """

    def __init__(
        self,
        *,
        links: Canned = None,
        page_types: Optional[Mapping[str, Canned]] = None,
        products: Optional[Mapping[str, Canned]] = None,
    ) -> None:
        self.links = links if links is not None else []
        self.page_types = dict(page_types or {})
        self.products = dict(products or {})
        self.calls: List[tuple] = []
        self.seen_html: Dict[str, str] = {}

    async def find_product_links(self, html: str, base_url: str) -> str:
        self.calls.append(("find_product_links", base_url))
        self.seen_html[base_url] = html
        return _render(self.links)

    async def classify_url(self, url: str) -> str:
        self.calls.append(("classify_url", url))
        value = self.page_types.get(url, "other")
        if isinstance(value, str) and value in ("product", "category", "other"):
            return json.dumps({"pageType": value})
        return _render(value)

    async def extract_product(self, html: str, url: str) -> str:
        self.calls.append(("extract_product", url))
        self.seen_html[url] = html
        return _render(self.products.get(url, "null"))
