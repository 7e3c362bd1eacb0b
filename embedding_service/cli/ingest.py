"""Standalone CLI for loading and inspecting the embedding index.

Usage::

    python -m embedding_service.cli load-csv --file poems.csv --text-column Poem \\
        --metadata-columns Title Poet Tags --source "Poetry Foundation" --limit 500

    python -m embedding_service.cli search --query "grief and the sea" --top-k 5

    python -m embedding_service.cli stats

    python -m embedding_service.cli purge --yes

Every command builds the same providers and services as the web app (see
``embedding_service.main``), so it talks to the same index with the same
embedding model.
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import sys
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from embedding_service.config.loader import load_config
from embedding_service.config.settings import Settings
from embedding_service.utils.errors import EmbeddingServiceError
from embedding_service.utils.logging import configure_logging

_DEFAULT_BATCH_SIZE = 100
_PREVIEW_CHARS = 100


# ---------------------------------------------------------------------------
# CSV reading
# ---------------------------------------------------------------------------


def _read_rows(
    path: Path,
    text_column: str,
    metadata_columns: list[str],
    source: str | None,
    limit: int | None,
) -> Iterator[tuple[int, str, dict[str, str]]]:
    """Yield ``(row_number, text, metadata)`` for each CSV row, up to *limit*.

    Blank metadata cells are dropped rather than stored as empty strings.
    """
    # Long free-text columns (poems, articles) overflow the default 128 KB.
    csv.field_size_limit(min(sys.maxsize, 2**31 - 1))

    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        missing = [
            column
            for column in (text_column, *metadata_columns)
            if column not in (reader.fieldnames or [])
        ]
        if missing:
            raise ValueError(
                f"Column(s) {', '.join(missing)} not in CSV header {reader.fieldnames}"
            )

        for row_number, row in enumerate(reader, start=1):
            if limit is not None and row_number > limit:
                break
            metadata = {
                column.lower(): (row.get(column) or "").strip()
                for column in metadata_columns
                if (row.get(column) or "").strip()
            }
            if source:
                metadata["source"] = source
            yield row_number, (row.get(text_column) or "").strip(), metadata


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_load_csv(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Bulk-load a CSV file through the ingestion service."""
    ingestion = components["ingestion_service"]
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    try:
        rows = list(
            _read_rows(path, args.text_column, args.metadata_columns, args.source, args.limit)
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    items = [(text, metadata) for _, text, metadata in rows if text]
    skipped = len(rows) - len(items)
    print(f"Loading {len(items)} rows from {path} (skipped {skipped} blank)")

    if args.purge:
        deleted = await ingestion.delete_all()
        print(f"  Purged {deleted} existing documents")

    start = time.monotonic()
    succeeded = 0
    failed = 0
    sample_ids: list[str] = []
    for batch_start in range(0, len(items), args.batch_size):
        batch = items[batch_start : batch_start + args.batch_size]
        outcomes = await ingestion.create_many(batch, max_concurrency=args.concurrency)
        for outcome in outcomes:
            if outcome.succeeded:
                succeeded += 1
                if len(sample_ids) < 5:
                    sample_ids.append(outcome.id)
            else:
                failed += 1
                print(
                    f"  Row {batch_start + outcome.position + 1} failed: "
                    f"{outcome.error_type}: {outcome.error}",
                    file=sys.stderr,
                )
        print(f"  Progress: {batch_start + len(batch)}/{len(items)}")

    elapsed = time.monotonic() - start
    total = len(items)
    print("\nBulk load complete:")
    print(f"  Succeeded:     {succeeded}")
    print(f"  Failed:        {failed}")
    print(f"  Skipped:       {skipped}")
    if total:
        print(f"  Success rate:  {succeeded * 100.0 / total:.2f}%")
        print(f"  Avg per item:  {elapsed * 1000 / total:.1f} ms")
    print(f"  Time:          {elapsed:.2f}s")
    if sample_ids:
        print(f"  Sample ids:    {', '.join(sample_ids)}")
    return 0 if failed == 0 else 2


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    search_service = components["search_service"]
    results = await search_service.search(args.query, args.top_k)
    if not results:
        print("No results.")
        return 0

    for rank, result in enumerate(results, start=1):
        preview = " ".join(result.text.split())
        if len(preview) > _PREVIEW_CHARS:
            preview = preview[:_PREVIEW_CHARS] + "..."
        print(f"{rank:>3}. [{result.score:.4f}] {result.id}")
        print(f"     {preview}")
        if result.metadata:
            meta = ", ".join(f"{k}={v}" for k, v in sorted(result.metadata.items()))
            print(f"     {meta}")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    """Display index statistics."""
    store = components["embedding_store"]
    state = components["index_state"]
    count = await store.count()

    print("Index Statistics")
    print("=" * 40)
    print(f"  Index:               {state.index_name}")
    print(f"  Dimension:           {state.dimension}")
    print(f"  Metric:              {state.metric.value}")
    print(f"  Documents:           {count}")
    print(f"  Embedding provider:  {components['embedding_provider'].get_provider_name()}")
    print(f"  Vector store:        {components['vector_store'].get_provider_name()}")
    return 0


async def _handle_purge(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Delete every document.  Requires confirmation unless --yes is passed."""
    store = components["embedding_store"]
    count = await store.count()
    if count == 0:
        print("Index is empty. Nothing to purge.")
        return 0

    if not args.yes:
        confirm = input(f"  Delete all {count} documents from '{store.index_name}'? [y/N] ")
        if confirm.strip().lower() not in ("y", "yes"):
            print("  Aborted.")
            return 0

    deleted = await components["ingestion_service"].delete_all()
    print(f"Deleted {deleted} documents.")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _positive_int(value: str) -> int:
    """argparse ``type=`` accepting only integers >= 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _build_parser(app_config: dict[str, Any]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m embedding_service.cli",
        description="Load, search and manage the embedding index.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- load-csv --
    load_parser = subparsers.add_parser("load-csv", help="Bulk-load texts from a CSV file")
    load_parser.add_argument("--file", required=True, help="Path to the CSV file")
    load_parser.add_argument(
        "--text-column", required=True, dest="text_column", help="Column holding the text"
    )
    load_parser.add_argument(
        "--metadata-columns",
        nargs="*",
        default=[],
        dest="metadata_columns",
        help="Columns copied into metadata (keys are lower-cased)",
    )
    load_parser.add_argument("--source", default=None, help="Value stored as metadata 'source'")
    load_parser.add_argument("--limit", type=_positive_int, default=None, help="Read at most N rows")
    load_parser.add_argument(
        "--purge", action="store_true", help="Delete existing documents before loading"
    )
    load_parser.add_argument(
        "--concurrency",
        type=_positive_int,
        default=int(app_config["bulk"]["max_concurrency"]),
        help="Concurrent creates (default: bulk.max_concurrency)",
    )
    load_parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=_DEFAULT_BATCH_SIZE,
        dest="batch_size",
        help=f"Rows per progress report (default: {_DEFAULT_BATCH_SIZE})",
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Run a similarity search")
    search_parser.add_argument("--query", required=True, help="Query text")
    search_parser.add_argument(
        "--top-k",
        type=int,
        default=int(app_config["search"]["default_top_k"]),
        dest="top_k",
        help="Number of results (default: search.default_top_k)",
    )

    # -- stats --
    subparsers.add_parser("stats", help="Show index statistics")

    # -- purge --
    purge_parser = subparsers.add_parser("purge", help="Delete every document")
    purge_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings, app_config: dict[str, Any]) -> int:
    # Deferred so --help does not open the vector store.
    from embedding_service.main import build_components, close_components, start_components

    components = build_components(app_settings)
    try:
        await start_components(components, app_config)
        if args.command == "load-csv":
            return await _handle_load_csv(args, components)
        if args.command == "search":
            return await _handle_search(args, components)
        if args.command == "stats":
            return await _handle_stats(components)
        return await _handle_purge(args, components)
    except EmbeddingServiceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await close_components(components)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, build services, dispatch."""
    app_settings = Settings()
    app_config = load_config(settings=app_settings)

    parser = _build_parser(app_config)
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    configure_logging(log_level="WARNING")
    sys.exit(asyncio.run(_run(args, app_settings, app_config)))


if __name__ == "__main__":
    main()
