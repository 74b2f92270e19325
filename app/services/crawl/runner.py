from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional
from urllib.parse import urlparse

from app.config import get_settings, validate_settings
from app.models.catalog import CrawlResult
from .base import ConfigurationFault, UpstreamFetchFault
from .capability import LLMCapability
from .catalog import write_catalog
from .pipeline import build_pipeline


logger = logging.getLogger(__name__)


def run_crawl(start_url: str, *, strategy: Optional[str] = None, max_candidates: Optional[int] = None) -> CrawlResult:
    """Validate configuration, then run one crawl against the live model."""
    # Imported here so --help works without the openai package configured.
    from app.services.llm_client import get_llm_client

    settings = validate_settings(get_settings())
    capability = LLMCapability(
        get_llm_client(),
        fast_model=settings.fast_model,
        extract_model=settings.extract_model,
    )
    pipeline = build_pipeline(settings, capability, strategy=strategy, max_candidates=max_candidates)
    return asyncio.run(pipeline.run(start_url))


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Extract a product catalog from an e-commerce homepage")
    sub = parser.add_subparsers(dest="cmd", required=True)

    crawl = sub.add_parser("crawl", help="Discover PDPs from a homepage and extract products")
    crawl.add_argument("start_url", help="Homepage URL, e.g. https://shop.example/")
    crawl.add_argument("--max-candidates", type=int, default=None, help="Max PDPs to fetch (default CRAWL_MAX_CANDIDATES)")
    crawl.add_argument("--strategy", choices=["one_shot", "two_phase"], default=None, help="Link discovery strategy")
    default_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))
    crawl.add_argument("--out-dir", default=os.path.join(default_root, "data", "catalogs"), help="Output directory for XML catalogs")
    crawl.add_argument("--json", action="store_true", help="Print products as JSON instead of writing XML")
    crawl.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "crawl":
        try:
            result = run_crawl(args.start_url, strategy=args.strategy, max_candidates=args.max_candidates)
        except ConfigurationFault as exc:
            logger.error("Configuration error: %s", exc)
            return 2
        except UpstreamFetchFault as exc:
            logger.error("%s", exc)
            return 1
        logger.info("Crawl stats: %s", result.stats.model_dump())
        if args.json:
            json.dump([p.to_wire() for p in result.products], sys.stdout, ensure_ascii=False, indent=2)
            print()
            return 0
        host = urlparse(args.start_url).netloc or "catalog"
        path = write_catalog(result.products, out_dir=args.out_dir, filename_prefix=f"catalog-{host}")
        print(path)
        return 0

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
