"""
Adapters used by the ingest pipeline: directory scanning, image metadata
resolution and SQLite access. Nothing in here imports from core/.
"""
