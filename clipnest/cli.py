"""Command-line entry point for the ClipNest image harvester."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Sequence

import uvicorn

from .browser import render_page, run_capture_session
from .config import (
    DEFAULT_DB_PATH,
    DEFAULT_RELAY_HOST,
    DEFAULT_RELAY_PORT,
    DEFAULT_RELAY_URL,
    HarvestConfig,
)
from .errors import StorageUnavailable
from .relay import RelayClient, create_app
from .session import CollectionSession, ItemOutcome, SessionState
from .store import ImageRecordStore

logger = logging.getLogger("clipnest.cli")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        type=Path,
        default=DEFAULT_DB_PATH,
        help="SQLite file holding the collected images",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Harvest images from web pages into a deduplicated local collection.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser(
        "serve", help="Run the cross-origin fetch relay"
    )
    serve_parser.add_argument("--host", default=DEFAULT_RELAY_HOST)
    serve_parser.add_argument("--port", type=int, default=DEFAULT_RELAY_PORT)
    serve_parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Upstream request timeout in seconds",
    )
    serve_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    harvest_parser = subparsers.add_parser(
        "harvest", help="Fetch a page through the relay and list its images"
    )
    harvest_parser.add_argument("url", help="Page to harvest")
    harvest_parser.add_argument(
        "--relay",
        default=DEFAULT_RELAY_URL,
        help="Relay endpoint used to fetch the page",
    )
    harvest_parser.add_argument(
        "--render",
        action="store_true",
        help="Render the page with headless Chromium instead of using the relay",
    )
    harvest_parser.add_argument(
        "--timeout",
        type=float,
        default=15.0,
        help="Request timeout in seconds",
    )
    harvest_parser.add_argument(
        "--download",
        type=Path,
        default=None,
        help="Download every listed image into this directory",
    )
    harvest_parser.add_argument(
        "--collect",
        action="store_true",
        help="Add every listed image to the collection",
    )
    _add_common_arguments(harvest_parser)

    capture_parser = subparsers.add_parser(
        "capture", help="Open a browser and collect images by hovering them"
    )
    capture_parser.add_argument("url", help="Page to open")
    _add_common_arguments(capture_parser)

    list_parser = subparsers.add_parser("list", help="Show collected images")
    _add_common_arguments(list_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> HarvestConfig:
    config = HarvestConfig()
    if getattr(args, "db", None) is not None:
        config.db_path = Path(args.db).expanduser().resolve()
    if getattr(args, "relay", None):
        config.relay_url = args.relay
    if getattr(args, "timeout", None) is not None:
        config.request_timeout = args.timeout
    return config


def _run_serve(args: argparse.Namespace) -> int:
    config = _build_config(args)
    app = create_app(config)
    logger.info("Relay listening on http://%s:%d/relay", args.host, args.port)
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="debug" if args.verbose else "info",
    )
    return 0


async def _harvest(args: argparse.Namespace, config: HarvestConfig) -> int:
    store = ImageRecordStore(config.db_path)
    if args.render:
        async def fetch_page(url: str) -> str:
            return await render_page(url, config)
    else:
        client = RelayClient(config.relay_url, timeout=config.request_timeout)
        fetch_page = client.fetch_async

    session = CollectionSession(fetch_page, store)
    start = time.perf_counter()
    view = await session.submit(args.url)
    elapsed = time.perf_counter() - start

    if view.state is SessionState.FAILED:
        logger.error("%s (%s)", view.error, view.message)
        return 1
    if not view.images:
        logger.info("%s on %s", view.message, args.url)
        return 0

    logger.info("Found %d image(s) in %.2fs", len(view.images), elapsed)
    for index, image in enumerate(view.images, start=1):
        title = f"  {image.title}" if image.title else ""
        print(f"{index:3d}. {image.url}{title}")

    actions = []
    for image in view.images:
        if args.download is not None:
            actions.append(session.download(image.url, args.download))
        if args.collect:
            actions.append(session.collect(image.url))
    outcomes: List[ItemOutcome] = list(await asyncio.gather(*actions))
    for outcome in outcomes:
        if outcome.ok:
            logger.info("%s %s", outcome.message, outcome.path or outcome.url)
        else:
            logger.warning("%s failed for %s: %s", outcome.action, outcome.url, outcome.message)
    session.close()
    return 0


def _run_harvest(args: argparse.Namespace) -> int:
    config = _build_config(args)
    try:
        return asyncio.run(_harvest(args, config))
    except StorageUnavailable as exc:
        logger.error("%s", exc)
        return 1


def _run_capture(args: argparse.Namespace) -> int:
    config = _build_config(args)
    try:
        captured = asyncio.run(run_capture_session(args.url, config))
    except StorageUnavailable as exc:
        logger.error("%s", exc)
        return 1
    logger.info("Captured %d image(s) from %s", captured, args.url)
    return 0


def _run_list(args: argparse.Namespace) -> int:
    config = _build_config(args)
    try:
        records = ImageRecordStore(config.db_path).list()
    except StorageUnavailable as exc:
        logger.error("%s", exc)
        return 1
    for record in records:
        print(f"{record.id:4d}  {record.url}  {record.title}  (from {record.source_page})")
    logger.debug("%d record(s) in %s", len(records), config.db_path)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    handlers = {
        "serve": _run_serve,
        "harvest": _run_harvest,
        "capture": _run_capture,
        "list": _run_list,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
