"""Detail-page fetching and metadata enrichment.

Sub-modules:
- ``config``        — user-agent, parsing keys and bulk job defaults
- ``page_fetcher``  — ``PageFetcher`` with primary/crawler/direct strategies
- ``extractor``     — embedded item JSON to ``EnrichmentData``
- ``enrichment``    — ``EnrichmentOrchestrator`` and the bulk job
"""
