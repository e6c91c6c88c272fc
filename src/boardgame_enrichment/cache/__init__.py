"""In-memory catalog search cache.

Sub-modules:
- ``search_cache`` — ``SearchCache`` plus its ``GameRecord`` / ``SearchResult`` records
"""
