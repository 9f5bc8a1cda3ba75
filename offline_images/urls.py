"""URL heuristics: image classification, extension hints and ignored domains."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple, Union
from urllib.parse import unquote, urlsplit

logger = logging.getLogger("offline_images")

Log = Union[logging.Logger, logging.LoggerAdapter]

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "webp", "svg", "awebp", "bmp", "tiff", "avif")
_EXT_ALTERNATION = "|".join(IMAGE_EXTENSIONS)

_EXTENSION_RE = re.compile(rf"\.({_EXT_ALTERNATION})(\?|$|&|#)", re.IGNORECASE)
_TYPE_PARAM_RE = re.compile(rf"[?&](?:type|format)=({_EXT_ALTERNATION})", re.IGNORECASE)
_SHORT_FORMAT_PARAM_RE = re.compile(
    r"[?&;](cf|fmt|format|type)=(webp|png|jpg|jpeg|gif|avif)", re.IGNORECASE
)
_HOSTING_PATH_RE = re.compile(
    r"/(api/res|images?|photos?|pictures?|media|uploads?|content|assets|files?|static)/[\w\-.]+",
    re.IGNORECASE,
)
_RESOURCE_ID_RE = re.compile(r"/(res|cdn|img|image|photo|media)/[\d.]+/", re.IGNORECASE)
_IMAGE_PATH_RE = re.compile(
    r"/(images?|photos?|pictures?|media|api/res|creatr-uploaded-images)/[\w\-.]+",
    re.IGNORECASE,
)
_NUMERIC_TAIL_RE = re.compile(r"/\d+(/$|$)")
_OPAQUE_ID_RE = re.compile(r"[\w\-]{8,}-[\w\-]{8,}")
_DATE_PATH_RE = re.compile(r"/(\d{4}([/-])\d{1,2}([/-])\d{1,2}|\d{6,14})/")
_SHORT_SUFFIX_RE = re.compile(r"\.(\w{3,4})$")
_NESTED_EXTENSION_RE = re.compile(rf"\.({_EXT_ALTERNATION})", re.IGNORECASE)

_NESTED_URL_CHECKS = (
    re.compile(r"[?&](url|src|image)=https?%3A", re.IGNORECASE),
    re.compile(r"/https?://"),
    re.compile(r"https?://[^/]+/[^/]+/[^/]+/[^/]+/--.+/https?://", re.IGNORECASE),
    re.compile(r"[?&](token|id|data)=[A-Za-z0-9+/=_-]{20,}", re.IGNORECASE),
)

# Used when deriving an extension hint from a URL.
_TRAILING_EXTENSION_RE = re.compile(r"\.([a-zA-Z0-9]+)(?:[?#].*)?$")
_NESTED_URL_PATTERNS = (
    re.compile(r"[?&](?:url|src|image)=(https?%3A[^&]+)", re.IGNORECASE),
    re.compile(r"[?&](?:url|src|image)=([^&]+)", re.IGNORECASE),
    re.compile(r"/(https?%3A%2F%2F[^&/?#]+)", re.IGNORECASE),
    re.compile(r"/(https?://[^&?#]+)", re.IGNORECASE),
)
_NESTED_QUERY_TYPE_RE = re.compile(r"[?&](?:type|format)=([a-zA-Z0-9]+)", re.IGNORECASE)
_PATH_COMPONENT_EXT_RE = re.compile(rf"/(\w+\.({_EXT_ALTERNATION}))[/?#&]", re.IGNORECASE)


def _has_nested_url(url: str) -> bool:
    return any(pattern.search(url) for pattern in _NESTED_URL_CHECKS)


def _nested_image(url: str) -> bool:
    return _has_nested_url(url) and bool(_NESTED_EXTENSION_RE.search(url))


def _image_path_with_id(url: str) -> bool:
    if not _IMAGE_PATH_RE.search(url):
        return False
    return bool(_NUMERIC_TAIL_RE.search(url) or _OPAQUE_ID_RE.search(url))


def _dated_path_with_suffix(url: str) -> bool:
    return bool(_DATE_PATH_RE.search(url) and _SHORT_SUFFIX_RE.search(url))


# Any single heuristic firing classifies the URL as an image.
HEURISTICS: Tuple[Tuple[str, Callable[[str], bool]], ...] = (
    ("extension", lambda url: bool(_EXTENSION_RE.search(url))),
    (
        "format-parameter",
        lambda url: bool(_TYPE_PARAM_RE.search(url) or _SHORT_FORMAT_PARAM_RE.search(url)),
    ),
    ("hosting-path", lambda url: bool(_HOSTING_PATH_RE.search(url))),
    ("resource-id", lambda url: bool(_RESOURCE_ID_RE.search(url))),
    ("nested-url", _nested_image),
    ("image-path-id", _image_path_with_id),
    ("dated-path", _dated_path_with_suffix),
)


def is_likely_image_url(url: str, log: Optional[Log] = None) -> bool:
    """Decide, without any network access, whether a URL plausibly names an image."""
    log = log or logger
    for name, heuristic in HEURISTICS:
        if heuristic(url):
            log.debug("URL %s is likely an image (%s)", url, name)
            return True
    log.debug("URL %s is not likely an image", url)
    return False


def normalize_extension(extension: Optional[str]) -> Optional[str]:
    """Lower-case an extension and fold aliases onto the stored form."""
    if not extension:
        return None
    ext = extension.lower().lstrip(".")
    if ext == "jpeg":
        return "jpg"
    if ext in ("webp", "awebp"):
        return "jpg"
    return ext


def _known(extension: Optional[str]) -> Optional[str]:
    if extension and extension.lower() in IMAGE_EXTENSIONS:
        return normalize_extension(extension)
    return None


def _nested_url_extension(url: str, log: Log) -> Optional[str]:
    for pattern in _NESTED_URL_PATTERNS:
        match = pattern.search(url)
        if not match:
            continue
        nested = match.group(1)
        if "%" in nested:
            nested = unquote(nested)
        log.debug("Found nested URL: %s", nested)
        match_ext = _TRAILING_EXTENSION_RE.search(nested)
        ext = _known(match_ext.group(1)) if match_ext else None
        if ext:
            return ext
        if "?" in nested:
            match_query = _NESTED_QUERY_TYPE_RE.search(nested)
            ext = _known(match_query.group(1)) if match_query else None
            if ext:
                return ext
    return None


def url_extension(url: str, log: Optional[Log] = None) -> Optional[str]:
    """Derive the extension a URL claims for its content, or ``None``."""
    log = log or logger
    try:
        path = urlsplit(url).path
    except ValueError:
        path = ""

    last_segment = path.rsplit("/", 1)[-1]
    if "." in last_segment:
        ext = _known(last_segment.rsplit(".", 1)[-1])
        if ext:
            log.debug("Extracted extension %s from path segment %s", ext, last_segment)
            return ext

    match = _TYPE_PARAM_RE.search(url)
    if match:
        return normalize_extension(match.group(1))

    match = _TRAILING_EXTENSION_RE.search(url)
    ext = _known(match.group(1)) if match else None
    if ext:
        return ext

    ext = _nested_url_extension(url, log)
    if ext:
        log.debug("Extracted extension %s from nested URL", ext)
        return ext

    match = _SHORT_FORMAT_PARAM_RE.search(url)
    if match:
        return normalize_extension(match.group(2))

    match = _PATH_COMPONENT_EXT_RE.search(url)
    if match:
        return normalize_extension(match.group(2))
    return None


def hostname(url: str) -> Optional[str]:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def is_ignored_domain(url: str, ignored_domains: Iterable[str], log: Optional[Log] = None) -> bool:
    """True when the URL's host is an ignored domain or one of its subdomains."""
    domains: List[str] = [domain for domain in ignored_domains if domain]
    if not domains:
        return False
    host = hostname(url)
    if host is None:
        (log or logger).warning("Could not parse host of %s; not treating it as ignored", url)
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)
