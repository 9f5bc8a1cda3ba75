"""Command-line entry point for localising remote images in Markdown vaults."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Sequence

from .config import SETTINGS_FILENAME, LogLevel, Settings, SettingsError, load_settings
from .processor import process_all_files, process_file, process_pasted_text
from .storage import FileSystemVault

logger = logging.getLogger("offline_images.cli")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="JSON settings document (persisted key/value form)",
    )
    parser.add_argument(
        "--folder",
        default=None,
        help="Image folder; a subfolder of the note's folder, or vault-rooted with a leading /",
    )
    parser.add_argument(
        "--original-names",
        action="store_true",
        help="Name files after the URL's last path segment instead of a content hash",
    )
    parser.add_argument(
        "--png-to-jpeg",
        action="store_true",
        help="Convert downloaded PNG images to JPEG",
    )
    parser.add_argument(
        "--jpeg-quality",
        type=int,
        default=None,
        help="JPEG quality used when converting PNG images (1-100)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Maximum download attempts per image",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Per-attempt download timeout in milliseconds",
    )
    parser.add_argument(
        "--ignore-domains",
        default=None,
        help="Comma-separated domains whose images are left untouched",
    )
    parser.add_argument(
        "--log-level",
        choices=[level.name.lower() for level in LogLevel],
        default=None,
        help="Pipeline log verbosity",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download images referenced by Markdown notes and link the local copies.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    file_parser = subparsers.add_parser("file", help="Process one or more Markdown notes")
    file_parser.add_argument("paths", nargs="+", type=Path, help="Markdown notes to process")
    file_parser.add_argument(
        "--vault",
        type=Path,
        default=Path("."),
        help="Vault root that note paths and image folders are resolved against",
    )
    _add_common_arguments(file_parser)

    all_parser = subparsers.add_parser("all", help="Process every Markdown note in a vault")
    all_parser.add_argument("vault", type=Path, help="Vault root directory")
    _add_common_arguments(all_parser)

    paste_parser = subparsers.add_parser(
        "paste", help="Rewrite pasted text read from STDIN and print the result"
    )
    paste_parser.add_argument(
        "--note",
        type=Path,
        default=None,
        help="Note the text is pasted into; images are stored next to it",
    )
    paste_parser.add_argument(
        "--vault",
        type=Path,
        default=Path("."),
        help="Vault root directory",
    )
    _add_common_arguments(paste_parser)

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    vault = getattr(args, "vault", None) or Path(".")
    settings = load_settings(args.settings or vault / SETTINGS_FILENAME)
    return settings.with_overrides(
        image_folder=args.folder,
        use_md5_for_filenames=False if args.original_names else None,
        convert_png_to_jpeg=True if args.png_to_jpeg else None,
        jpeg_quality=args.jpeg_quality,
        max_download_retries=args.retries,
        download_timeout=args.timeout,
        ignored_domains=args.ignore_domains,
        log_level=LogLevel.DEBUG if args.verbose else args.log_level,
    )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _notify(message: str) -> None:
    print(message, file=sys.stderr)


async def _run_files(args: argparse.Namespace, settings: Settings) -> int:
    vault = FileSystemVault(args.vault)
    failures = 0
    for path in args.paths:
        try:
            note = vault.relative(path)
        except ValueError:
            logger.error("%s is outside the vault %s", path, vault.root)
            failures += 1
            continue
        result = await process_file(vault, note, settings, notify=_notify)
        if result is None:
            logger.warning("Skipping %s: not a Markdown note", path)
        elif result.error:
            failures += 1
    return 1 if failures else 0


async def _run_all(args: argparse.Namespace, settings: Settings) -> int:
    vault = FileSystemVault(args.vault)
    start = time.perf_counter()
    batch = await process_all_files(vault, settings, notify=_notify)
    logger.info(
        "Finished in %.2fs (%d files, %d errors)",
        time.perf_counter() - start,
        batch.processed,
        len(batch.errors),
    )
    for doc in batch.errors:
        logger.debug("Error in %s: %s", doc.path, doc.error)
    return 0


async def _run_paste(args: argparse.Namespace, settings: Settings) -> int:
    vault = FileSystemVault(args.vault)
    note = vault.relative(args.note) if args.note else None
    pasted = sys.stdin.read()
    updated = await process_pasted_text(vault, pasted, settings, note_path=note, notify=_notify)
    sys.stdout.write(pasted if updated is None else updated)
    sys.stdout.flush()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    try:
        settings = build_settings(args)
    except SettingsError as exc:
        logger.error("Invalid settings: %s", exc)
        return 2

    runners = {"file": _run_files, "all": _run_all, "paste": _run_paste}
    return asyncio.run(runners[args.command](args, settings))


if __name__ == "__main__":
    sys.exit(main())
