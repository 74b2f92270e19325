import logging
from typing import Any, List, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse, Response

from app.config import get_settings
from app.models.catalog import ProductRecord
from app.services.crawl.base import ClientInputFault, ConfigurationFault, ModelCapability, UpstreamFetchFault
from app.services.crawl.capability import LLMCapability
from app.services.crawl.catalog import generate_xml
from app.services.crawl.fetcher import PageFetcher
from app.services.crawl.pipeline import build_pipeline
from app.services.llm_client import get_llm_client


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["crawl"])

XML_MEDIA_TYPE = "application/xml"


def build_capability() -> ModelCapability:
    settings = get_settings()
    return LLMCapability(get_llm_client(), fast_model=settings.fast_model, extract_model=settings.extract_model)


def make_fetcher() -> PageFetcher:
    settings = get_settings()
    return PageFetcher(timeout=settings.fetch_timeout, user_agent=settings.user_agent)


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def _start_url(body: Any) -> str:
    if body is None:
        raise ClientInputFault("Request body is missing")
    if not isinstance(body, dict):
        raise ClientInputFault("Request body must be a JSON object")
    start_url = body.get("startUrl")
    if not isinstance(start_url, str) or not start_url.strip():
        raise ClientInputFault("startUrl is required")
    start_url = start_url.strip()
    parsed = urlparse(start_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ClientInputFault("startUrl must be an absolute http(s) URL")
    return start_url


@router.post("/crawl")
async def api_crawl(
    body: Any = Body(None),
    output: str = Query("json", alias="format", pattern="^(json|xml)$", description="json (default) or xml catalog"),
):
    """Crawl a shop homepage and return the extracted products.

    Request JSON: {"startUrl": "https://shop.example/"}
    Response: JSON array of products (possibly empty), or the XML catalog with ?format=xml.
    """
    try:
        start_url = _start_url(body)
    except ClientInputFault as exc:
        return _error(400, str(exc))

    try:
        capability = build_capability()
        pipeline = build_pipeline(get_settings(), capability, fetcher=make_fetcher())
        result = await pipeline.run(start_url)
    except ConfigurationFault as exc:
        logger.error("Configuration error: %s", exc)
        return _error(500, "Server configuration error.", str(exc))
    except UpstreamFetchFault as exc:
        return _error(500, str(exc))
    except Exception as exc:
        logger.exception("Crawling failed for %s", start_url)
        return _error(500, "An internal server error occurred during the crawl.", str(exc) or exc.__class__.__name__)

    if output == "xml":
        return Response(content=generate_xml(result.products), media_type=XML_MEDIA_TYPE)
    return JSONResponse(content=[p.to_wire() for p in result.products])


@router.post("/catalog")
def api_catalog(products: List[ProductRecord] = Body(...)):
    """Render already-extracted products as the XML catalog document."""
    return Response(content=generate_xml(products), media_type=XML_MEDIA_TYPE)
