"""Image content sniffing, PNG to JPEG normalisation and local persistence."""

from __future__ import annotations

import io
import logging
import posixpath
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from filetype import guess
from PIL import Image, UnidentifiedImageError

from .config import Settings
from .fetch import ImageFetcher
from .models import FetchFailure, LocalImageFile
from .naming import synthesize_filename
from .storage import Storage
from .urls import normalize_extension, url_extension

logger = logging.getLogger("offline_images")

Log = Union[logging.Logger, logging.LoggerAdapter]

SNIFF_BYTES = 12
DEFAULT_EXTENSION = "jpg"

# (markers as (offset, bytes) pairs, extension, label); first match wins.
SIGNATURES: Tuple[Tuple[Tuple[Tuple[int, bytes], ...], str, str], ...] = (
    (((0, b"\x89PNG"),), "png", "PNG"),
    (((0, b"\xff\xd8"),), "jpg", "JPEG"),
    (((0, b"GIF"),), "gif", "GIF"),
    # WEBP is stored as jpg for viewer compatibility.
    (((0, b"RIFF"), (8, b"WEBP")), "jpg", "WEBP"),
    (((0, b"RIFF"),), "jpg", "RIFF"),
    (((0, b"BM"),), "bmp", "BMP"),
)


def detect_image_format(data: bytes, log: Optional[Log] = None) -> Optional[str]:
    """Return the extension implied by the leading bytes, or ``None`` if unrecognised."""
    header = bytes(data[:SNIFF_BYTES])
    for markers, extension, label in SIGNATURES:
        if all(header[offset : offset + len(magic)] == magic for offset, magic in markers):
            (log or logger).debug("Detected %s signature in binary data", label)
            return extension
    return None


def describe_content(data: bytes) -> str:
    """Best-effort MIME description for payloads the signature table does not know."""
    kind = guess(data)
    return kind.mime if kind else "unknown"


def resolve_extension(data: bytes, url: str, log: Optional[Log] = None) -> str:
    """Combine the URL's hint with the sniffed signature; binary content wins."""
    log = log or logger
    claimed = url_extension(url, log)
    detected = detect_image_format(data, log)
    if detected:
        if claimed and detected != claimed:
            log.debug(
                "Extension mismatch: URL suggests %s but binary data indicates %s",
                claimed,
                detected,
            )
        return detected
    if claimed is None:
        log.debug(
            "Could not detect file type for %s (content: %s), defaulting to %s",
            url,
            describe_content(data),
            DEFAULT_EXTENSION,
        )
        return DEFAULT_EXTENSION
    return normalize_extension(claimed) or DEFAULT_EXTENSION


def convert_png_to_jpeg(data: bytes, quality: int) -> bytes:
    """Flatten a PNG onto white and encode it as JPEG."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        if img.mode in ("RGBA", "LA"):
            background.paste(img, mask=img.split()[-1])
        else:
            background.paste(img.convert("RGB"))
    buffer = io.BytesIO()
    background.save(buffer, format="JPEG", quality=int(quality))
    return buffer.getvalue()


def maybe_convert(
    data: bytes, extension: str, settings: Settings, log: Optional[Log] = None
) -> Tuple[bytes, str]:
    """Transcode PNG to JPEG when enabled; any failure keeps the original payload."""
    if not settings.convert_png_to_jpeg or extension != "png":
        return data, extension
    try:
        return convert_png_to_jpeg(data, settings.jpeg_quality), "jpg"
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        (log or logger).warning("Error converting PNG to JPEG, keeping PNG: %s", exc)
        return data, extension


@dataclass(frozen=True)
class PreparedImage:
    content: bytes
    extension: str


class ImageDownloader:
    """Runs fetch, sniff, normalise, name and store for single image URLs."""

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
        self.fetcher = fetcher or ImageFetcher(log=self.log)

    def fetch_and_prepare(self, url: str) -> Union[PreparedImage, FetchFailure]:
        """Blocking half of the pipeline: network and transcoding work."""
        result = self.fetcher.download(
            url, self.settings.download_timeout, self.settings.max_download_retries
        )
        if isinstance(result, FetchFailure):
            return result
        extension = resolve_extension(result.content, url, self.log)
        content, extension = maybe_convert(result.content, extension, self.settings, self.log)
        return PreparedImage(content, extension)

    def persist(self, url: str, folder: str, image: PreparedImage) -> LocalImageFile:
        """Write the image under ``folder`` unless a file already sits at that path."""
        filename = synthesize_filename(
            url, image.content, image.extension, self.settings.use_md5_for_filenames
        )
        path = posixpath.join(folder, filename) if folder else filename
        if self.storage.exists(path):
            self.log.debug("Reusing existing file %s for %s", path, url)
            return LocalImageFile(path, image.content, image.extension, reused=True)
        self.storage.write_binary(path, image.content)
        self.log.debug("Saved %s to %s", url, path)
        return LocalImageFile(path, image.content, image.extension)

