"""Crawl-and-extract subsystem.

Structure:
- base.py: fault taxonomy, shared types and capability contracts
- fetcher.py: httpx page fetcher (non-2xx is "unavailable", not an exception)
- capability.py: model capability backed by the LLM client, plus a static stub
- discovery.py: PDP link discovery strategies (one_shot, two_phase)
- extractor.py: page markup -> validated product payload
- pipeline.py: orchestrator (homepage -> candidates -> bounded fan-out -> records)
- catalog.py: XML catalog serializer
- runner.py: tiny CLI entrypoint for manual runs

Only one hop is followed from the homepage; there is no robots.txt handling
and no JavaScript rendering.
"""

__all__ = [
    "base",
    "catalog",
    "pipeline",
]
