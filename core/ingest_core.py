"""
Ingest Core - Business Logic for Image Ingestion.

Wires the pipeline together: one scanner per root (at most ``worker_num``
at a time) feeds the IngestActor, a Ticker bounds the latency of partial
batches, and the actor persists resolved records to the ImageStore.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from config import get_config
from core.ingest_actor import IngestActor
from core.store_core import ImageStore
from core.ticker import Ticker
from utils.dir_scanner import DirScanner, ScanError

logger = logging.getLogger(__name__)


def _scan_root(root: Path, actor: IngestActor, extensions, shutdown: threading.Event) -> int:
    scanner = DirScanner(actor.submit_path, extensions=extensions, shutdown=shutdown)
    return scanner.scan(root)


def run_ingest(
    roots: list,
    worker_num: int | None = None,
    gen_thumb: bool = False,
    config: dict | None = None,
    store=None,
    shutdown: threading.Event | None = None,
) -> dict[str, Any]:
    """
    Scan ``roots`` and archive every image found.

    Args:
        roots: Directories to scan.
        worker_num: Concurrent scanners and resolver threads (default: WORKER_NUM).
        gen_thumb: Accepted for CLI compatibility; thumbnails are not generated.
        config: Configuration dict (default: get_config()).
        store: Store to persist into (default: ImageStore under META_PATH).
        shutdown: Shared cancellation signal. Setting it stops the scan,
            the ticker, and drains the actor.

    Returns:
        Dictionary with the run status, per-root errors and ingest counts.
    """
    cfg = config or get_config()
    worker_num = max(1, worker_num or cfg["WORKER_NUM"])
    shutdown = shutdown or threading.Event()
    roots = [Path(r) for r in roots]

    if gen_thumb:
        logger.warning("Thumbnail generation is not supported, ignoring --gen-thumb")

    owns_store = store is None
    if owns_store:
        store = ImageStore.from_config(cfg)

    actor = IngestActor(
        store,
        threshold=cfg["BATCH_THRESHOLD"],
        worker_num=worker_num,
        maxsize=cfg["QUEUE_MAXSIZE"],
    )
    ticker = Ticker(actor.tick, interval=cfg["TICK_INTERVAL"], shutdown=shutdown)

    logger.info(f"Starting ingest of {len(roots)} root(s) with {worker_num} worker(s)")
    actor.start()
    ticker.start()

    errors: dict[str, str] = {}
    scanned: dict[str, int] = {}
    try:
        if roots:
            with ThreadPoolExecutor(
                max_workers=min(worker_num, len(roots)), thread_name_prefix="Scanner"
            ) as pool:
                futures = {
                    pool.submit(_scan_root, root, actor, cfg["IMAGE_EXTENSIONS"], shutdown): root
                    for root in roots
                }
                try:
                    for future in as_completed(futures):
                        root = futures[future]
                        try:
                            scanned[str(root)] = future.result()
                        except ScanError as e:
                            logger.error(str(e))
                            errors[str(root)] = str(e)
                except KeyboardInterrupt:
                    logger.info("Interrupted, stopping scanners and draining batch...")
                    shutdown.set()
    finally:
        ticker.stop()
        actor.stop()
        if owns_store:
            store.close()

    stats = actor.stats
    status = "error" if roots and len(errors) == len(roots) else "success"
    result = {
        "status": status,
        "roots": scanned,
        "errors": errors,
        "discovered": stats.discovered,
        "resolved": stats.resolved,
        "unresolved": stats.unresolved,
        "persisted": stats.persisted,
        "failed": stats.failed,
        "flushes": stats.flushes,
    }
    logger.info(
        f"Ingest complete. Discovered: {stats.discovered}, Persisted: {stats.persisted}, "
        f"Unresolved: {stats.unresolved}, Failed: {stats.failed}"
    )
    return result


def list_records(offset: int, limit: int, config: dict | None = None, store=None) -> list:
    """Reads one page of archived records."""
    if store is not None:
        return store.query_page(offset, limit)
    store = ImageStore.from_config(config or get_config())
    try:
        return store.query_page(offset, limit)
    finally:
        store.close()
