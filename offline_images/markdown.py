"""Markdown rewriting: locate remote images, localise them, splice local links back."""

from __future__ import annotations

import asyncio
import logging
import posixpath
import re
from typing import List, Optional, Sequence, Set, Union

from bs4 import BeautifulSoup

from .config import Settings
from .fetch import ImageFetcher
from .images import ImageDownloader
from .models import FetchFailure, ImageReference, ProcessingStats
from .storage import Storage, ensure_folder
from .urls import is_ignored_domain, is_likely_image_url

logger = logging.getLogger("offline_images")

Log = Union[logging.Logger, logging.LoggerAdapter]

MARKDOWN_IMAGE_RE = re.compile(r"!\[(.*?)\]\((https?://[^\s)]+)\)")
HTML_IMG_RE = re.compile(
    r"<img[^>]*?src=[\"'](https?://[^\s\"']+)[\"'][^>]*>", re.IGNORECASE
)

MARKDOWN = "markdown"
HTML = "html"

_PATTERNS = {MARKDOWN: MARKDOWN_IMAGE_RE, HTML: HTML_IMG_RE}


def find_image_references(text: str, kind: str = MARKDOWN) -> List[ImageReference]:
    """Return every image construct of one grammar, in order of appearance."""
    pattern: re.Pattern = _PATTERNS[kind]
    references: List[ImageReference] = []
    for index, match in enumerate(pattern.finditer(text)):
        if kind == MARKDOWN:
            alt_text: Optional[str] = match.group(1)
            url = match.group(2)
        else:
            alt_text = None
            url = match.group(1)
        references.append(
            ImageReference(
                index=index,
                start=match.start(),
                end=match.end(),
                url=url,
                alt_text=alt_text,
                original=match.group(0),
                kind=kind,
            )
        )
    return references


def has_image_references(text: str) -> bool:
    return bool(MARKDOWN_IMAGE_RE.search(text) or HTML_IMG_RE.search(text))


def rebuild(text: str, references: Sequence[ImageReference], replacements: Sequence[str]) -> str:
    """Splice ``replacements`` into ``text`` at the spans of ``references``.

    Both sequences are in original positional order and the spans do not overlap.
    """
    pieces: List[str] = []
    cursor = 0
    for reference, replacement in zip(references, replacements):
        pieces.append(text[cursor : reference.start])
        pieces.append(replacement)
        cursor = reference.end
    pieces.append(text[cursor:])
    return "".join(pieces)


def extract_alt(tag: str) -> str:
    """Alt text of an ``<img>`` tag, or an empty string."""
    img = BeautifulSoup(tag, "html.parser").find("img")
    if img is None:
        return ""
    alt = img.get("alt", "")
    return alt if isinstance(alt, str) else " ".join(alt)


def image_folder_for(note_path: Optional[str], image_folder: str) -> str:
    """Folder receiving images for a note.

    A plain folder name is a subfolder of the note's folder; a leading ``/``
    anchors it at the vault root. Without a note the folder is vault-rooted.
    """
    folder = image_folder.strip()
    if folder.startswith("/") or not note_path:
        return folder.strip("/")
    note_dir = posixpath.dirname(note_path)
    return posixpath.join(note_dir, folder.strip("/")) if folder.strip("/") else note_dir


def link_target(image_path: str, note_path: Optional[str]) -> str:
    """Path written into the document: relative to the note when there is one."""
    if not note_path:
        return image_path
    return posixpath.relpath(image_path, posixpath.dirname(note_path) or ".")


class DocumentRewriter:
    """Rewrites one document's remote image references to local copies."""

    def __init__(
        self,
        storage: Storage,
        settings: Settings,
        fetcher: Optional[ImageFetcher] = None,
        log: Optional[Log] = None,
    ) -> None:
        self.storage = storage
        self.settings = settings
        self.log = log or logger
        self.downloader = ImageDownloader(storage, settings, fetcher=fetcher, log=self.log)
        self._ignored = settings.ignored_domain_list
        self._ready_folders: Set[str] = set()

    async def rewrite(
        self,
        text: str,
        note_path: Optional[str] = None,
        stats: Optional[ProcessingStats] = None,
    ) -> str:
        """Return ``text`` with every downloadable image pointing at its local copy."""
        stats = stats if stats is not None else ProcessingStats()
        folder = image_folder_for(note_path, self.settings.image_folder)

        for kind in (MARKDOWN, HTML):
            text = await self._rewrite_pass(text, kind, folder, note_path, stats)
        return text

    async def _rewrite_pass(
        self,
        text: str,
        kind: str,
        folder: str,
        note_path: Optional[str],
        stats: ProcessingStats,
    ) -> str:
        references = find_image_references(text, kind)
        if not references:
            return text
        replacements = await asyncio.gather(
            *(self._resolve(ref, folder, note_path, stats) for ref in references)
        )
        return rebuild(text, references, replacements)

    def _ensure_folder(self, folder: str) -> None:
        """Create the image folder the first time an image is about to be stored."""
        if folder in self._ready_folders:
            return
        ensure_folder(self.storage, folder)
        self._ready_folders.add(folder)

    async def _resolve(
        self,
        reference: ImageReference,
        folder: str,
        note_path: Optional[str],
        stats: ProcessingStats,
    ) -> str:
        # Counters are only touched from the event loop thread.
        url = reference.url
        if not is_likely_image_url(url, self.log):
            return reference.original

        stats.total += 1
        if is_ignored_domain(url, self._ignored, self.log):
            self.log.debug("Skipping %s from an ignored domain", url)
            stats.skipped += 1
            return reference.original

        self.log.debug("Processing %s image URL: %s", reference.kind, url)
        try:
            prepared = await asyncio.to_thread(self.downloader.fetch_and_prepare, url)
            if isinstance(prepared, FetchFailure):
                stats.failed += 1
                return reference.original
            self._ensure_folder(folder)
            local = self.downloader.persist(url, folder, prepared)
        except Exception as exc:  # pylint: disable=broad-except
            stats.failed += 1
            self.log.error("Failed to save image %s: %s", url, exc)
            return reference.original

        stats.downloaded += 1
        if reference.kind == MARKDOWN:
            alt = reference.alt_text or ""
        else:
            alt = extract_alt(reference.original)
        return f"![{alt}]({link_target(local.path, note_path)})"


async def process_content(
    text: str,
    storage: Storage,
    settings: Settings,
    note_path: Optional[str] = None,
    stats: Optional[ProcessingStats] = None,
    fetcher: Optional[ImageFetcher] = None,
    log: Optional[Log] = None,
) -> str:
    """Rewrite ``text`` for the note at ``note_path`` (vault-relative) or for no note."""
    rewriter = DocumentRewriter(storage, settings, fetcher=fetcher, log=log)
    return await rewriter.rewrite(text, note_path, stats)
