"""CLI entry point: python -m metasearch <query>"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from loguru import logger

from metasearch.config import Settings, get_settings
from metasearch.contracts import SearchResponse
from metasearch.errors import InvalidRequest, MetasearchError
from metasearch.orchestrator import build_orchestrator, validate_request


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="metasearch",
        description="Cached metasearch over scraped web search engines",
    )
    parser.add_argument("query", type=str, help="The search query")
    parser.add_argument(
        "--start",
        type=int,
        default=0,
        help="Offset of the first result (default: 0)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=10,
        help="Number of results per engine (default: 10)",
    )
    parser.add_argument(
        "--engines",
        type=str,
        nargs="+",
        default=None,
        help="Engines to query, in output order (default: from config)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print results as JSON",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log engine activity to stderr",
    )
    return parser.parse_args(argv)


def configure_logging(settings: Settings, *, verbose: bool = False) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else settings.log_level.upper())


def render_text(response: SearchResponse) -> str:
    lines: list[str] = []
    for i, r in enumerate(response["results"], start=1):
        tag = "cached" if r["cached"] else "fresh"
        lines.append(f"{i}. {r['title']}  [{r['backend']}, {tag}]")
        lines.append(f"   {r['url']}")
        if r["description"]:
            lines.append(f"   {r['description']}")
    return "\n".join(lines)


async def run(args: argparse.Namespace, settings: Settings) -> SearchResponse:
    orchestrator = build_orchestrator(settings)
    try:
        return await orchestrator.search(
            args.query,
            args.start,
            args.count,
            args.engines or list(settings.engines),
        )
    finally:
        await orchestrator.aclose()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings, verbose=args.verbose)

    errors = settings.validate()
    if errors:
        for e in errors:
            print(f"ERROR: {e}", file=sys.stderr)
        return 2
    for w in settings.warnings():
        print(f"WARNING: {w}", file=sys.stderr)

    try:
        validate_request(args.query, args.start, args.count, settings.max_count)
    except InvalidRequest as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    try:
        response = asyncio.run(run(args, settings))
    except MetasearchError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(response["results"], indent=2, ensure_ascii=False))
    else:
        print(render_text(response))

    if response["timeouts"]:
        print(f"WARNING: timed out: {', '.join(response['timeouts'])}", file=sys.stderr)
    for name, msg in response["errors"].items():
        print(f"WARNING: {name} failed: {msg}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
