"""Local filename synthesis for downloaded images."""

from __future__ import annotations

import hashlib
import re
from typing import List, Optional
from urllib.parse import urlsplit

_INVALID_FILE_CHARS = re.compile(r'[\\/:*?"<>|]')
# Characters that would break a Markdown link target or add a second suffix.
_LINK_UNSAFE_CHARS = re.compile(r"[\s%().]")
_HEX_ID_RE = re.compile(r"^[0-9a-f]{8,}$", re.IGNORECASE)
_NUMERIC_ID_RE = re.compile(r"^\d+$")
_SUFFIX_RE = re.compile(r"\.[^.]+$")

MAX_FRAGMENT_CHARS = 30
SHORT_HASH_CHARS = 8


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in filenames with underscores."""
    return _INVALID_FILE_CHARS.sub("_", name)


def _safe_stem(name: str) -> str:
    return _LINK_UNSAFE_CHARS.sub("_", sanitize_filename(name))


def content_hash(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()


def _path_segments(url: str) -> Optional[List[str]]:
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    return [segment for segment in path.split("/") if segment]


def meaningful_name(url: str) -> Optional[str]:
    """Pick a readable fragment from the URL, skipping trailing ID-like segments."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None

    name = ""
    for segment in reversed([s for s in parts.path.split("/") if s]):
        if _HEX_ID_RE.match(segment) or _NUMERIC_ID_RE.match(segment):
            continue
        name = _SUFFIX_RE.sub("", segment)
        break
    if not name and host:
        name = host.replace(".", "-")
    return name or None


def hashed_filename(url: str, content: bytes, extension: str) -> str:
    digest = content_hash(content)
    fragment = meaningful_name(url)
    if fragment:
        fragment = _safe_stem(fragment)[:MAX_FRAGMENT_CHARS]
    if not fragment:
        return f"{digest}.{extension}"
    return f"{fragment}-{digest[:SHORT_HASH_CHARS]}.{extension}"


def original_filename(url: str, content: bytes, extension: str) -> str:
    segments = _path_segments(url)
    stem = _safe_stem(_SUFFIX_RE.sub("", segments[-1])) if segments else ""
    if not stem.strip("_"):
        return hashed_filename(url, content, extension)
    return f"{stem}.{extension}"


def synthesize_filename(url: str, content: bytes, extension: str, use_hash: bool = True) -> str:
    """Return a filesystem-safe name with exactly one suffix, ending in ``extension``."""
    if use_hash:
        return hashed_filename(url, content, extension)
    return original_filename(url, content, extension)
