from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from app.models.catalog import ExtractedProduct
from .base import ExtractionFault, ModelCapability, clip, load_json_payload


logger = logging.getLogger(__name__)

DEFAULT_PDP_CHAR_CAP = 25000


class ProductExtractor:
    """Turn one product page's markup into a validated ExtractedProduct.

    The markup is cut to the first `char_cap` characters before it is sent to
    the model. Any failure (model call, non-JSON text, payload not matching the
    product shape) yields None and a log line with the raw payload; nothing is
    raised to the caller. The url is only passed to the model as context and is
    never read back from its answer.
    """

    def __init__(self, capability: ModelCapability, *, char_cap: int = DEFAULT_PDP_CHAR_CAP) -> None:
        self.capability = capability
        self.char_cap = int(char_cap)

    async def extract(self, html: str, url: str) -> Optional[ExtractedProduct]:
        try:
            return await self._extract(html, url)
        except ExtractionFault as fault:
            logger.warning("%s. Raw response: %s", fault, clip(fault.raw, 500))
            return None

    async def _extract(self, html: str, url: str) -> ExtractedProduct:
        try:
            raw = await self.capability.extract_product(clip(html, self.char_cap), url)
        except Exception as exc:
            raise ExtractionFault(url, f"model call failed: {exc!r}") from exc
        try:
            payload = load_json_payload(raw)
        except ValueError as exc:
            raise ExtractionFault(url, "response is not JSON", raw=raw) from exc
        if not isinstance(payload, dict):
            raise ExtractionFault(url, "no product object in response", raw=raw)
        try:
            return ExtractedProduct.model_validate(payload)
        except ValidationError as exc:
            raise ExtractionFault(url, f"payload does not match product schema ({exc.error_count()} errors)", raw=raw) from exc
