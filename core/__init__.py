"""
fantastic-time Core Package.

This package contains the ingestion pipeline: the event-driven
IngestActor, the flush Ticker, the ImageStore facade and the run
orchestration. Filesystem walking, metadata resolution and SQLite access
live in utils/ and are only reached through these modules.

ARCHITECTURE RULES:
- core/ modules may only import from:
  - Python standard library
  - utils/ (scanner, resolver, database adapters)
  - config (for global configuration)

- core/ modules MUST NOT import from:
  - main (the command line surface)
"""

__all__ = [
    "ingest_actor",
    "ingest_core",
    "store_core",
    "ticker",
]
