"""Command-line interface for the TALON knowledge base.

Usage::

    python -m talon.cli ingest /path/to/manual.pdf
    python -m talon.cli add-url https://example.com/field-guide
    python -m talon.cli add-note --title "Tie-down rule" --content "..." --tag cargo
    python -m talon.cli reset-stale
    python -m talon.cli ask "What is the maximum axle load for a C-17 ramp?"

Every command builds the same components as the HTTP app (see
``talon.main._build_all``) against the configured database and storage
directory, runs once, and closes the shared HTTP client.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Any

from talon.config.settings import Settings
from talon.models.documents import DocumentStatus
from talon.utils.errors import TalonError


def _build_components(app_settings: Settings) -> dict[str, Any]:
    """Build the application components for a one-shot CLI run."""
    # Deferred so that --help does not load configuration or SDK clients.
    from talon.config.loader import load_talon_config
    from talon.main import _build_all

    app_config = load_talon_config(app_settings.config_path, settings=app_settings)
    return _build_all(app_settings, app_config)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Register a local file as a document and process it."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    print(f"Ingesting document: {path.name}")

    result = await components["ingestion_pipeline"].ingest_upload(
        owner=args.owner,
        filename=path.name,
        data=path.read_bytes(),
        mime_type=mime_type,
    )

    print(f"\nIngestion {result.status.value}:")
    print(f"  Document ID:     {result.document_id}")
    print(f"  Chunks created:  {result.chunks_created}")
    print(f"  Chunks embedded: {result.chunks_embedded}")
    print(f"  Total tokens:    {result.total_tokens}")
    print(f"  Time:            {result.ingestion_time:.2f}s")
    if result.error:
        print(f"  Error:           {result.error}")
    return 0 if result.status == DocumentStatus.COMPLETED else 1


async def _handle_add_url(args: argparse.Namespace, components: dict[str, Any]) -> int:
    print(f"Fetching URL: {args.url}")
    entry = await components["ingestion_pipeline"].ingest_url(owner=args.owner, url=args.url)
    print("\nKnowledge entry added:")
    print(f"  Entry ID: {entry.id}")
    print(f"  Title:    {entry.title}")
    print(f"  Length:   {len(entry.content)} characters")
    return 0


async def _handle_add_note(args: argparse.Namespace, components: dict[str, Any]) -> int:
    entry = await components["ingestion_pipeline"].add_manual_knowledge(
        owner=args.owner,
        title=args.title,
        content=args.content,
        tags=args.tag or [],
    )
    print("Knowledge entry added:")
    print(f"  Entry ID: {entry.id}")
    print(f"  Title:    {entry.title}")
    if entry.tags:
        print(f"  Tags:     {', '.join(sorted(entry.tags))}")
    return 0


async def _handle_reset_stale(args: argparse.Namespace, components: dict[str, Any]) -> int:
    count = await components["ingestion_pipeline"].reset_stale_processing()
    print(f"Moved {count} document(s) from processing to failed.")
    return 0


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    reply = await components["chat_orchestrator"].respond(args.message)
    print(reply.response)
    print()
    print(
        f"[context: {reply.contexts_used.document_chunks} document chunk(s), "
        f"{reply.contexts_used.knowledge_entries} knowledge entr(y/ies)]"
    )
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "add-url": _handle_add_url,
    "add-note": _handle_add_note,
    "reset-stale": _handle_reset_stale,
    "ask": _handle_ask,
}


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Initialize the store, dispatch the command, and release shared resources."""
    try:
        await components["knowledge_store"].initialize()
        return await _HANDLERS[args.command](args, components)
    except TalonError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m talon.cli",
        description="Manage the TALON knowledge base and ask it questions.",
    )
    parser.add_argument(
        "--owner",
        default="cli",
        help="Owner id recorded on created documents and entries (default: cli)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest_parser = subparsers.add_parser("ingest", help="Upload and process a local file")
    ingest_parser.add_argument("file", help="Path to the file")

    url_parser = subparsers.add_parser("add-url", help="Add a web page to the knowledge base")
    url_parser.add_argument("url", help="Page URL")

    note_parser = subparsers.add_parser("add-note", help="Add a manual knowledge note")
    note_parser.add_argument("--title", required=True, help="Note title")
    note_parser.add_argument("--content", required=True, help="Note text")
    note_parser.add_argument(
        "--tag",
        action="append",
        help="Tag to attach (repeatable)",
    )

    subparsers.add_parser("reset-stale", help="Move documents stuck in processing to failed")

    ask_parser = subparsers.add_parser("ask", help="Ask the assistant a question")
    ask_parser.add_argument("message", help="Question text")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, build components, run the command, and exit with its code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    components = _build_components(app_settings)
    sys.exit(asyncio.run(_run(args, components)))


if __name__ == "__main__":
    main()
