"""Command-line entry point: ``bgg-enrich``.

Usage::

    bgg-enrich enrich 13 [--force]     # enrich one game, print its metadata
    bgg-enrich bulk                    # run the bulk job in the foreground
    bgg-enrich search catan [--limit 5]

Settings come from environment variables or a ``.env`` file (see
:class:`~boardgame_enrichment.config.settings.Settings`); ``DATABASE_URL`` is
required.  During ``bulk``, Ctrl-C requests a cooperative stop: the game in
flight is finished and the job ends with ``"Stopped by user"``.

Exit codes:
    0 — Success.
    1 — Unknown game, fetch or extraction failure, or a bulk job that ended
        for any reason other than completion or a user stop.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from collections.abc import Sequence

import structlog

from boardgame_enrichment.config.settings import get_settings
from boardgame_enrichment.core.exceptions import BoardgameEnrichmentError
from boardgame_enrichment.core.logging_config import configure_logging
from boardgame_enrichment.scraper.enrichment import format_bytes, format_duration
from boardgame_enrichment.services import EnrichmentServices, create_services

logger = structlog.get_logger(__name__)

_CLEAN_BULK_EXITS = frozenset({"Completed", "Stopped by user"})


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _enrich(services: EnrichmentServices, args: argparse.Namespace) -> int:
    data = await services.orchestrator.enrich_game(args.game_id, force=args.force)
    print(json.dumps(data.to_store(), indent=2, ensure_ascii=False))
    return 0


async def _bulk(services: EnrichmentServices, args: argparse.Namespace) -> int:  # noqa: ARG001
    orchestrator = services.orchestrator
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, orchestrator.stop_bulk_enrichment)
    try:
        outcome = orchestrator.start_bulk_enrichment()
        print(f"[bgg-enrich] {outcome['message']}")
        status = await orchestrator.wait_for_bulk()
    finally:
        loop.remove_signal_handler(signal.SIGINT)

    elapsed = 0
    if status.started_at is not None and status.completed_at is not None:
        elapsed = int((status.completed_at - status.started_at).total_seconds())
    print(
        f"[bgg-enrich] {status.stop_reason}: {status.processed}/{status.total} games enriched "
        f"({status.skipped} skipped, {status.errors} errors) in {format_duration(elapsed)} - "
        f"{format_bytes(status.bytes_transferred)} transferred"
    )
    return 0 if status.stop_reason in _CLEAN_BULK_EXITS else 1


async def _search(services: EnrichmentServices, args: argparse.Namespace) -> int:
    await services.cache.initialize_from_store(services.store)
    results = services.cache.search(args.query, max_results=args.limit)
    if not results:
        print("[bgg-enrich] No matches.")
        return 0
    for result in results:
        year = result.year_published if result.year_published is not None else "----"
        line = f"{result.id:>7}  {year}  {result.name}"
        if result.matched_alternate_name:
            line += f"  (as {result.matched_alternate_name!r})"
        print(line)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bgg-enrich",
        description="Enrich the board-game catalog with detail-page metadata.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    enrich = subparsers.add_parser("enrich", help="Enrich a single game.")
    enrich.add_argument("game_id", type=int, help="Catalog id of the game.")
    enrich.add_argument(
        "--force",
        action="store_true",
        help="Re-fetch even if the game is already enriched.",
    )
    enrich.set_defaults(handler=_enrich)

    bulk = subparsers.add_parser("bulk", help="Enrich every pending game.")
    bulk.set_defaults(handler=_bulk)

    search = subparsers.add_parser("search", help="Search the catalog by name.")
    search.add_argument("query", help="Case-insensitive name fragment.")
    search.add_argument("--limit", type=int, default=10, help="Maximum results (default 10).")
    search.set_defaults(handler=_search)

    return parser


async def _run(args: argparse.Namespace) -> int:
    services = create_services(get_settings())
    try:
        return await args.handler(services, args)
    except BoardgameEnrichmentError as exc:
        logger.error("cli.command_failed", command=args.command, error=str(exc))
        print(f"[bgg-enrich] ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        await services.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, configure logging and run the chosen command.

    Args:
        argv: Arguments without the program name.  Defaults to ``sys.argv``.

    Returns:
        The process exit code.
    """
    args = _build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
