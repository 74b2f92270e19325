from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from app.models.catalog import CrawlResult, CrawlStats, ExtractedProduct, ProductRecord
from .base import CandidateFetchFault, ConfigurationFault, LinkDiscoveryStrategy, UpstreamFetchFault
from .discovery import build_discovery, resolve_candidates
from .extractor import ProductExtractor
from .fetcher import PageFetcher


logger = logging.getLogger(__name__)

DEFAULT_MAX_CANDIDATES = 5

SKIP_FETCH = "fetch"
SKIP_EXTRACTION = "extraction"
SKIP_ERROR = "error"


@dataclass
class BranchOutcome:
    url: str
    product: Optional[ExtractedProduct] = None
    skipped: Optional[str] = None


class CrawlPipeline:
    """Homepage -> candidate PDPs -> bounded fan-out of fetch+extract -> records.

    Only a failed homepage fetch aborts the run (UpstreamFetchFault). Each
    candidate runs in its own branch; a branch that cannot fetch or extract
    its page yields nothing and never affects the others. Branches are joined
    with asyncio.gather and filtered afterwards. Nothing is retried.

    A pipeline owns its fetcher's connection pool for the duration of run(),
    so build one per crawl.
    """

    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        discovery: LinkDiscoveryStrategy,
        extractor: ProductExtractor,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ) -> None:
        self.fetcher = fetcher
        self.discovery = discovery
        self.extractor = extractor
        self.max_candidates = int(max_candidates)

    async def run(self, start_url: str) -> CrawlResult:
        async with self.fetcher:
            return await self._run(start_url)

    async def _run(self, start_url: str) -> CrawlResult:
        logger.info("Starting crawl for %s", start_url)
        home = await self.fetcher.fetch(start_url)
        if not home.ok:
            logger.error("Failed to fetch start URL %s: %s", start_url, home.reason)
            raise UpstreamFetchFault(start_url, home.status_code, home.reason)
        logger.info("Homepage fetched (%d chars); discovering PDP links with %s", len(home.text or ""), self.discovery.name)

        discovered = resolve_candidates(await self.discovery.discover(home.text or "", start_url), start_url)
        candidates = discovered[: self.max_candidates]
        stats = CrawlStats(
            discovered=len(discovered),
            processed=len(candidates),
            dropped_by_cap=len(discovered) - len(candidates),
        )
        if stats.dropped_by_cap:
            logger.info("Candidate cap %d reached; dropping %d links", self.max_candidates, stats.dropped_by_cap)
        if not candidates:
            logger.info("No PDP candidates found for %s", start_url)
            return CrawlResult(start_url=start_url, products=[], stats=stats)

        logger.info("Extracting data from %d PDPs", len(candidates))
        outcomes: List[BranchOutcome] = await asyncio.gather(*(self._branch(url) for url in candidates))

        products: List[ProductRecord] = []
        for outcome in outcomes:
            if outcome.product is not None:
                products.append(ProductRecord.from_extracted(outcome.product, outcome.url))
            elif outcome.skipped == SKIP_FETCH:
                stats.skipped_fetch += 1
            else:
                stats.skipped_extraction += 1
        stats.extracted = len(products)
        logger.info("Successfully extracted data for %d of %d products from %s", len(products), len(candidates), start_url)
        return CrawlResult(start_url=start_url, products=products, stats=stats)

    async def _branch(self, url: str) -> BranchOutcome:
        try:
            return await self._process_candidate(url)
        except Exception:
            logger.exception("Failed to fetch or process %s", url)
            return BranchOutcome(url=url, skipped=SKIP_ERROR)

    async def _process_candidate(self, url: str) -> BranchOutcome:
        page = await self.fetcher.fetch(url)
        if not page.ok:
            logger.warning("Skipping candidate: %s", CandidateFetchFault(url, page.reason))
            return BranchOutcome(url=url, skipped=SKIP_FETCH)
        product = await self.extractor.extract(page.text or "", url)
        if product is None:
            return BranchOutcome(url=url, skipped=SKIP_EXTRACTION)
        return BranchOutcome(url=url, product=product)


def build_pipeline(
    settings,
    capability,
    *,
    fetcher: Optional[PageFetcher] = None,
    strategy: Optional[str] = None,
    max_candidates: Optional[int] = None,
) -> CrawlPipeline:
    """Wire a pipeline from settings; explicit arguments override the settings."""
    limit = settings.max_candidates if max_candidates is None else max_candidates
    if int(limit) < 1:
        raise ConfigurationFault(f"max_candidates must be at least 1, got {limit}")
    return CrawlPipeline(
        fetcher=fetcher or PageFetcher(timeout=settings.fetch_timeout, user_agent=settings.user_agent),
        discovery=build_discovery(strategy or settings.discovery_strategy, capability, settings),
        extractor=ProductExtractor(capability, char_cap=settings.pdp_char_cap),
        max_candidates=limit,
    )
