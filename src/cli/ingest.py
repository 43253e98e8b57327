# =============================================================================
# src/cli/ingest.py -- CLI for document ingestion and search
# =============================================================================
#
# Standalone CLI over the same components the API uses (built by
# src.main.build_components), so a document ingested here is searchable
# from the API and vice versa when both share the same storage settings.
#
# Supported subcommands:
#
#   file      -- Upload and ingest a single file, waiting for completion
#   directory -- Ingest every regular file in a directory concurrently
#   search    -- Vector (or --hybrid) search over stored chunks
#   status    -- Show a document's record and ingestion job
#
# Usage examples:
#   python -m src.cli.ingest file --path report.pdf --title "Q3 Report"
#   python -m src.cli.ingest directory --path ./docs
#   python -m src.cli.ingest search --query "revenue growth" --limit 5
#   python -m src.cli.ingest search --query "revenue" --hybrid --alpha 0.5
#   python -m src.cli.ingest status --document-id 3f0c...
# =============================================================================

"""Standalone CLI for ingesting documents and searching the chunk store.

Usage::

    python -m src.cli.ingest file --path /path/to/report.pdf --title "Q3 Report"

    python -m src.cli.ingest directory --path /path/to/docs/

    python -m src.cli.ingest search --query "quarterly revenue" --limit 5

    python -m src.cli.ingest status --document-id <id>
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.pipeline import IngestionResult
from src.utils.errors import CorpusFlowError
from src.utils.logging import configure_logging


async def _build(app_settings: Settings) -> dict[str, Any]:
    # Deferred so `--help` does not import chromadb / openai.
    from src.main import build_components, initialize_components

    components = build_components(app_settings)
    await initialize_components(components)
    return components


def _read_file(path: Path) -> bytes:
    return path.read_bytes()


def _print_result(result: IngestionResult) -> None:
    print("\nIngestion complete:")
    print(f"  Document ID:    {result.document_id}")
    print(f"  Chunks created: {result.chunk_count}")
    print(f"  Time:           {result.processing_time_ms} ms")
    if result.embedding_models:
        print(f"  Models:         {', '.join(result.embedding_models)}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_file(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest a single file."""
    path = Path(args.path)
    if not path.is_file():
        print(f"Error: not a file: {path}", file=sys.stderr)
        return 1

    print(f"Ingesting file: {path}")
    buffer = await asyncio.to_thread(_read_file, path)
    result = await components["pipeline"].ingest_upload(buffer, path.name, title=args.title)
    _print_result(result)
    return 0


async def _handle_directory(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest every non-hidden file in a directory."""
    directory = Path(args.path)
    if not directory.is_dir():
        print(f"Error: not a directory: {directory}", file=sys.stderr)
        return 1

    paths = sorted(p for p in directory.iterdir() if p.is_file() and not p.name.startswith("."))
    if not paths:
        print(f"No files found in {directory}")
        return 0

    pipeline = components["pipeline"]
    print(f"Ingesting directory: {directory} ({len(paths)} files)")

    document_ids: list[str] = []
    for path in paths:
        buffer = await asyncio.to_thread(_read_file, path)
        try:
            document = await pipeline.register_upload(buffer, path.name)
        except CorpusFlowError as exc:
            print(f"  Skipped {path.name}: {exc}")
            continue
        document_ids.append(document.id)

    results = await pipeline.run_many(document_ids)
    succeeded = [r for r in results if isinstance(r, IngestionResult)]
    failed = len(results) - len(succeeded)

    print("\nDirectory ingestion complete:")
    print(f"  Files processed: {len(results)}")
    print(f"  Succeeded:       {len(succeeded)}")
    print(f"  Failed:          {failed}")
    print(f"  Total chunks:    {sum(r.chunk_count for r in succeeded)}")
    return 0 if failed == 0 else 1


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Run a vector or hybrid search and print ranked results."""
    engine = components["retrieval_engine"]
    if args.hybrid:
        response = await engine.hybrid_search(
            args.query, limit=args.limit, document_id=args.document_id, alpha=args.alpha
        )
    else:
        response = await engine.search(
            args.query,
            limit=args.limit,
            document_id=args.document_id,
            threshold=args.threshold,
        )

    print(
        f"{response.total_results} results ({response.search_type}, "
        f"{response.execution_time_ms:.1f} ms)"
    )
    for rank, result in enumerate(response.results, start=1):
        source = result.document.title or result.document.file_name if result.document else "?"
        snippet = result.content[:160].replace("\n", " ")
        print(f"\n  {rank}. [{result.score:.4f}] {source} #{result.chunk_index}")
        print(f"     {snippet}")
    return 0


async def _handle_status(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Print a document record and its job progress."""
    document = await components["document_store"].get(args.document_id)
    if document is None:
        print(f"Document not found: {args.document_id}", file=sys.stderr)
        return 1

    job = await components["job_store"].get(args.document_id)

    print(f"Document {document.id}")
    print(f"  File:     {document.file_name} ({document.file_type}, {document.file_size} bytes)")
    print(f"  Status:   {document.status.value}")
    print(f"  Chunks:   {document.chunk_count}")
    if document.error:
        print(f"  Error:    {document.error}")
    if job is not None:
        print(f"  Stage:    {job.stage.value} ({job.progress}%)")
        for stage, ms in job.stage_timings.items():
            print(f"    {stage:<12} {ms:.1f} ms")
    return 0


_HANDLERS = {
    "file": _handle_file,
    "directory": _handle_directory,
    "search": _handle_search,
    "status": _handle_status,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Ingest documents into corpusFlow and search them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    file_parser = subparsers.add_parser("file", help="Ingest a single file")
    file_parser.add_argument("--path", required=True, help="Path to the file")
    file_parser.add_argument("--title", default=None, help="Document title (default: file stem)")

    dir_parser = subparsers.add_parser("directory", help="Ingest all files in a directory")
    dir_parser.add_argument("--path", required=True, help="Directory path")

    search_parser = subparsers.add_parser("search", help="Search stored chunks")
    search_parser.add_argument("--query", required=True, help="Query text")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (default: 10)")
    search_parser.add_argument("--document-id", dest="document_id", default=None)
    search_parser.add_argument(
        "--threshold", type=float, default=0.0, help="Minimum cosine score (vector only)"
    )
    search_parser.add_argument("--hybrid", action="store_true", help="Use hybrid search")
    search_parser.add_argument(
        "--alpha", type=float, default=0.7, help="Vector weight for hybrid search (default: 0.7)"
    )

    status_parser = subparsers.add_parser("status", help="Show a document's ingestion status")
    status_parser.add_argument("--document-id", dest="document_id", required=True)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    components = await _build(app_settings)
    try:
        return await _HANDLERS[args.command](args, components)
    finally:
        await components["http_client"].aclose()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, build components, dispatch."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level)

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except CorpusFlowError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
