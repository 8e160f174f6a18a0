"""Command line interface for the Scholion reader."""

from __future__ import annotations

import argparse
import asyncio
import pathlib
import sys
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .cache import TextCache
from .configuration import get_settings
from .errors import ScholionError
from .orchestrator import FetchOrchestrator
from .policy import WarningPolicy
from .providers import DEFAULT_PAGE_SIZE, TextProvider, build_provider
from .structures import AnnotationRange, AnnotationRecord


@dataclass
class ReaderOptions:
    """Provider and cache settings resolved from arguments and configuration."""

    provider: str
    base_url: Optional[str]
    data_file: Optional[pathlib.Path]
    language: str
    cache_capacity: int
    retries: int
    timeout: float
    provider_debug: bool


@dataclass
class AnnotationLookup:
    """Outcome of resolving a clicked identifier in a rendered text."""

    identifier: str
    annotation: Optional[AnnotationRange]
    details: List[AnnotationRecord] = field(default_factory=list)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scholion",
        description="Browse texts and render their annotations over the original markup.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Text provider identifier: http or memory (default from configuration).",
    )
    parser.add_argument(
        "--base-url",
        help="Reader API base URL for the http provider.",
    )
    parser.add_argument(
        "--data-file",
        help="JSON file with texts and titles for the memory provider.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    titles = subparsers.add_parser("titles", help="List available texts.")
    titles.add_argument("--sort", type=int, default=0, help="Sort order (default: 0).")
    titles.add_argument("--page", type=int, default=0, help="Page index (default: 0).")
    titles.add_argument(
        "--page-size",
        type=int,
        default=DEFAULT_PAGE_SIZE,
        help=f"Titles per page (default: {DEFAULT_PAGE_SIZE}).",
    )

    render = subparsers.add_parser("render", help="Render a text with its annotations.")
    render.add_argument("text_id", type=int, help="Numeric text identifier.")
    render.add_argument("-l", "--language", help="Language code (default from configuration).")
    render.add_argument(
        "--keep-whitespace",
        action="store_true",
        help="Do not collapse whitespace before rendering.",
    )

    annotation = subparsers.add_parser(
        "annotation",
        help="Resolve a clicked element identifier and show its annotation details.",
    )
    annotation.add_argument("text_id", type=int, help="Numeric text identifier.")
    annotation.add_argument("identifier", help="Element id, e.g. annotated-text-12.")
    annotation.add_argument("-l", "--language", help="Language code (default from configuration).")
    return parser


def resolve_options(args: argparse.Namespace) -> ReaderOptions:
    """Merge command line arguments over the loaded configuration."""

    settings = get_settings()
    data_file = args.data_file or settings.SCHOLION_DATA_FILE
    return ReaderOptions(
        provider=args.provider or settings.SCHOLION_PROVIDER,
        base_url=args.base_url or settings.SCHOLION_API_BASE_URL,
        data_file=pathlib.Path(data_file).expanduser() if data_file else None,
        language=getattr(args, "language", None) or settings.SCHOLION_DEFAULT_LANGUAGE,
        cache_capacity=settings.SCHOLION_CACHE_CAPACITY,
        retries=settings.SCHOLION_REQUEST_RETRIES,
        timeout=settings.SCHOLION_REQUEST_TIMEOUT,
        provider_debug=bool(args.debug_provider or settings.SCHOLION_PROVIDER_DEBUG),
    )


def create_provider(options: ReaderOptions) -> TextProvider:
    return build_provider(
        options.provider,
        base_url=options.base_url,
        data_file=options.data_file,
        retries=options.retries,
        timeout=options.timeout,
        debug=options.provider_debug,
    )


def create_orchestrator(
    options: ReaderOptions,
    provider: TextProvider,
    *,
    collapse_whitespace: bool = True,
) -> FetchOrchestrator:
    return FetchOrchestrator(
        TextCache(options.cache_capacity),
        provider,
        language=options.language,
        policy=WarningPolicy(),
        collapse_whitespace=collapse_whitespace,
        debug=options.provider_debug,
    )


async def _list_titles(provider: TextProvider, args: argparse.Namespace) -> str:
    titles = await provider.list_titles(
        sort=args.sort,
        page=args.page,
        page_size=args.page_size,
    )
    return "\n".join(f"{title.id}\t{title.title}" for title in titles)


async def _render(orchestrator: FetchOrchestrator, text_id: int) -> str:
    await orchestrator.on_select(text_id)
    return orchestrator.displayed_markup or ""


async def _lookup(
    orchestrator: FetchOrchestrator,
    text_id: int,
    identifier: str,
) -> AnnotationLookup:
    await orchestrator.on_select(text_id)
    orchestrator.on_annotation_click(identifier)
    annotation = orchestrator.selected_annotation()
    details = await orchestrator.load_annotation_details() if annotation else []
    return AnnotationLookup(identifier=identifier, annotation=annotation, details=details)


def format_lookup(lookup: AnnotationLookup) -> str:
    if lookup.annotation is None:
        return f"No annotation found for '{lookup.identifier}'."
    annotation = lookup.annotation
    lines = [
        f"Annotation {annotation.id} on text {annotation.text_id} "
        f"[{annotation.start}, {annotation.end})"
    ]
    if not lookup.details:
        lines.append("  No details recorded.")
    for record in lookup.details:
        author = record.author.username if record.author else "unknown"
        lines.append(
            f"  - {author} (+{record.likes}/-{record.dislikes}): {record.description}"
        )
    return "\n".join(lines)


async def run_command(args: argparse.Namespace, options: ReaderOptions) -> str:
    """Execute one subcommand against a freshly built provider and return its output."""

    provider = create_provider(options)
    try:
        if args.command == "titles":
            return await _list_titles(provider, args)
        if args.command == "render":
            orchestrator = create_orchestrator(
                options,
                provider,
                collapse_whitespace=not args.keep_whitespace,
            )
            return await _render(orchestrator, args.text_id)
        if args.command == "annotation":
            orchestrator = create_orchestrator(options, provider)
            lookup = await _lookup(orchestrator, args.text_id, args.identifier)
            return format_lookup(lookup)
        raise ScholionError(f"Unknown command '{args.command}'.")
    finally:
        await provider.aclose()


def execute(args: argparse.Namespace) -> tuple[int, Optional[str], Optional[str]]:
    """Run a command and return the exit code, its output, and an error message."""

    try:
        options = resolve_options(args)
        output = asyncio.run(run_command(args, options))
    except ScholionError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Interrupted by user."
    return 0, output, None


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    exit_code, output, message = execute(args)
    if message:
        print(message, file=sys.stderr)
    if output:
        print(output)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
