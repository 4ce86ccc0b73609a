# ------------------------------------------------------------------------------
# Command line entry point for the fantastic-time image archive
# main.py
# ------------------------------------------------------------------------------
"""
Usage:
    python main.py scan-imgs /photos /more/photos -w 8
    python main.py -m /srv/archive scan-imgs           # roots from SCAN_ROOTS
    python main.py list-imgs --offset 0 --limit 20
"""

import argparse
import json
import sys

from config import update_config
from logging_config import get_logger, set_verbose

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fantastic-time",
        description="Build a searchable archive of capture times and signatures for image folders",
    )
    parser.add_argument(
        "--meta-path", "-m",
        default=None,
        help="Directory holding the archive database (default: META_PATH)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser(
        "scan-imgs",
        help="Scan image folders and archive every image found",
    )
    scan.add_argument(
        "roots",
        nargs="*",
        help="Directories to scan (default: SCAN_ROOTS)",
    )
    scan.add_argument(
        "--worker-num", "-w",
        type=int,
        default=None,
        help="Concurrent scanners and resolver threads (default: WORKER_NUM)",
    )
    scan.add_argument(
        "--gen-thumb", "-g",
        action="store_true",
        help="Generate thumbnails (not supported, accepted for compatibility)",
    )

    listing = subparsers.add_parser(
        "list-imgs",
        help="Print one page of archived records",
    )
    listing.add_argument("--offset", type=int, default=0)
    listing.add_argument("--limit", type=int, default=20)
    return parser


def _cmd_scan_imgs(args, config) -> int:
    from core.ingest_core import run_ingest

    roots = args.roots or config["SCAN_ROOTS"]
    if not roots:
        logger.error("No directories to scan: pass them as arguments or set SCAN_ROOTS")
        return 2
    if args.worker_num is not None and args.worker_num < 1:
        logger.error("--worker-num must be at least 1")
        return 2

    result = run_ingest(roots, worker_num=args.worker_num, gen_thumb=args.gen_thumb, config=config)
    logger.info(f"Result: {json.dumps(result, indent=2)}")
    return 0 if result["status"] == "success" else 1


def _cmd_list_imgs(args, config) -> int:
    from core.ingest_core import list_records

    for record in list_records(max(0, args.offset), max(0, args.limit), config=config):
        print(f"{record.identifier}\t{record.timestamp:%Y-%m-%d %H:%M:%S}\t{record.signature}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_verbose(True)
    config = update_config({"META_PATH": args.meta_path})
    logger.debug(f"Configuration: {json.dumps(config, indent=2)}")

    if args.command == "scan-imgs":
        return _cmd_scan_imgs(args, config)
    if args.command == "list-imgs":
        return _cmd_list_imgs(args, config)
    return 2


if __name__ == "__main__":
    sys.exit(main())
