"""Host-facing operations: single documents, whole vaults and pasted text."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .config import Settings
from .fetch import ImageFetcher
from .logs import operation_logger
from .markdown import has_image_references, process_content
from .models import BatchResult, DocumentResult, ProcessingStats
from .storage import FileSystemVault, Storage
from .urls import is_likely_image_url

logger = logging.getLogger("offline_images")

Notify = Callable[[str], None]

PROGRESS_EVERY = 10
MARKDOWN_SUFFIX = ".md"


def _silent(message: str) -> None:
    logger.debug("%s", message)


async def process_file(
    storage: Storage,
    path: str,
    settings: Settings,
    stats: Optional[ProcessingStats] = None,
    notify: Optional[Notify] = None,
    fetcher: Optional[ImageFetcher] = None,
) -> Optional[DocumentResult]:
    """Localise the images of one Markdown document and save it if anything changed.

    Errors are reported through the result and ``notify``; they never propagate.
    """
    if not path.endswith(MARKDOWN_SUFFIX):
        return None
    log = operation_logger(settings, context=path)
    doc_stats = ProcessingStats()
    result = DocumentResult(path=path, stats=doc_stats)
    try:
        text = storage.read_text(path)
        updated = await process_content(
            text, storage, settings, note_path=path, stats=doc_stats, fetcher=fetcher, log=log
        )
        if doc_stats.downloaded > 0 and updated != text:
            storage.write_text(path, updated)
            result.changed = True
    except Exception as exc:  # pylint: disable=broad-except
        log.error("Error processing file %s: %s", path, exc)
        result.error = str(exc) or exc.__class__.__name__
        if notify:
            notify(f"Error processing file: {result.error}")
    else:
        log.info(
            "Processed %s (total=%d, downloaded=%d, failed=%d, skipped=%d)",
            path,
            doc_stats.total,
            doc_stats.downloaded,
            doc_stats.failed,
            doc_stats.skipped,
        )
        if notify and (doc_stats.downloaded or doc_stats.total):
            notify(doc_stats.summary())
    finally:
        if stats is not None:
            stats.merge(doc_stats)
    return result


async def process_all_files(
    vault: FileSystemVault,
    settings: Settings,
    notify: Optional[Notify] = None,
    fetcher: Optional[ImageFetcher] = None,
) -> BatchResult:
    """Process every Markdown document in the vault, one after another."""
    notify = notify or _silent
    files = vault.markdown_files()
    batch = BatchResult(processed=0, stats=ProcessingStats())
    notify("Processing all files...")

    for path in files:
        result = await process_file(vault, path, settings, stats=batch.stats, fetcher=fetcher)
        batch.processed += 1
        if result is not None:
            batch.documents.append(result)
        if batch.processed % PROGRESS_EVERY == 0:
            notify(f"Processing files: {batch.processed}/{len(files)}")

    notify(batch.summary())
    return batch


def _direct_image_url(text: str) -> Optional[str]:
    candidate = text.strip()
    if not candidate.startswith("http") or any(ch.isspace() for ch in candidate):
        return None
    return candidate if is_likely_image_url(candidate) else None


async def process_pasted_text(
    storage: Storage,
    pasted: str,
    settings: Settings,
    note_path: Optional[str] = None,
    notify: Optional[Notify] = None,
    fetcher: Optional[ImageFetcher] = None,
) -> Optional[str]:
    """Rewrite pasted text; ``None`` means the host should paste it unchanged."""
    if not settings.download_on_paste:
        return None
    has_references = has_image_references(pasted)
    direct_url = None if has_references else _direct_image_url(pasted)
    if not has_references and direct_url is None:
        return None

    text = pasted if has_references else f"![image]({direct_url})"
    stats = ProcessingStats()
    log = operation_logger(settings, context="paste")
    updated = await process_content(
        text, storage, settings, note_path=note_path, stats=stats, fetcher=fetcher, log=log
    )
    if notify and stats.total:
        notify(
            f"Downloaded {stats.downloaded} images. "
            f"Failed: {stats.failed}. Skipped: {stats.skipped}."
        )
    return updated


async def on_document_event(
    storage: Storage,
    path: str,
    settings: Settings,
    fetcher: Optional[ImageFetcher] = None,
) -> Optional[DocumentResult]:
    """Entry point for document created/modified notifications."""
    if not settings.auto_download:
        return None
    return await process_file(storage, path, settings, fetcher=fetcher)
