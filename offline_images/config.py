"""Configuration snapshot and settings-file loading."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("offline_images")

DEFAULT_IMAGE_FOLDER = "attachments"
DEFAULT_JPEG_QUALITY = 85
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 30_000
SETTINGS_FILENAME = ".offline-images.json"


class SettingsError(ValueError):
    """Raised when a settings value or settings document is invalid."""


class LogLevel(IntEnum):
    NONE = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4

    @property
    def logging_level(self) -> int:
        return _LOGGING_LEVELS[self]

    @classmethod
    def parse(cls, value: Any) -> "LogLevel":
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key == "WARNING":
                key = "WARN"
            if key in cls.__members__:
                return cls[key]
            if key.isdigit():
                value = int(key)
        try:
            return cls(int(value))
        except (TypeError, ValueError) as exc:
            raise SettingsError(f"Unknown log level: {value!r}") from exc


_LOGGING_LEVELS = {
    LogLevel.NONE: logging.CRITICAL + 10,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}

# Keys as persisted by the settings surface.
_PERSISTED_KEYS = {
    "autoDownloadImages": "auto_download",
    "downloadOnPaste": "download_on_paste",
    "imageFolder": "image_folder",
    "useMD5ForFilenames": "use_md5_for_filenames",
    "convertPngToJpeg": "convert_png_to_jpeg",
    "jpegQuality": "jpeg_quality",
    "maxDownloadRetries": "max_download_retries",
    "downloadTimeout": "download_timeout",
    "ignoredDomains": "ignored_domains",
    "logLevel": "log_level",
}


@dataclass(frozen=True)
class Settings:
    """Immutable configuration snapshot for one processing operation."""

    auto_download: bool = True
    download_on_paste: bool = True
    image_folder: str = DEFAULT_IMAGE_FOLDER
    use_md5_for_filenames: bool = True
    convert_png_to_jpeg: bool = False
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    max_download_retries: int = DEFAULT_MAX_RETRIES
    download_timeout: int = DEFAULT_TIMEOUT_MS
    ignored_domains: str = ""
    log_level: LogLevel = LogLevel.ERROR

    def __post_init__(self) -> None:
        object.__setattr__(self, "log_level", LogLevel.parse(self.log_level))
        for name in ("image_folder", "ignored_domains"):
            if not isinstance(getattr(self, name), str):
                raise SettingsError(f"{name} must be a string, got {getattr(self, name)!r}")
        try:
            jpeg_quality = int(self.jpeg_quality)
            max_download_retries = int(self.max_download_retries)
            download_timeout = float(self.download_timeout)
        except (TypeError, ValueError) as exc:
            raise SettingsError(f"Invalid numeric setting: {exc}") from exc
        if not 1 <= jpeg_quality <= 100:
            raise SettingsError(
                f"jpeg_quality must be between 1 and 100, got {self.jpeg_quality}"
            )
        if max_download_retries < 1:
            raise SettingsError(
                f"max_download_retries must be at least 1, got {self.max_download_retries}"
            )
        if not download_timeout > 0:
            raise SettingsError(
                f"download_timeout must be positive, got {self.download_timeout}"
            )
        object.__setattr__(self, "jpeg_quality", jpeg_quality)
        object.__setattr__(self, "max_download_retries", max_download_retries)

    @property
    def ignored_domain_list(self) -> List[str]:
        """Ignored domains, trimmed and lower-cased, without empty entries."""
        return [
            domain.strip().lower()
            for domain in self.ignored_domains.split(",")
            if domain.strip()
        ]

    def with_overrides(self, **changes: Any) -> "Settings":
        """Return a new snapshot with ``changes`` applied; ``None`` values are ignored."""
        applied = {key: value for key, value in changes.items() if value is not None}
        if not applied:
            return self
        return replace(self, **applied)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "Settings":
        """Merge a persisted key/value document over the defaults."""
        known = {field.name for field in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _PERSISTED_KEYS.get(key, key)
            if name not in known:
                logger.debug("Ignoring unknown settings key %s", key)
                continue
            values[name] = value
        try:
            return cls(**values)
        except TypeError as exc:
            raise SettingsError(str(exc)) from exc


def load_settings(path: Optional[Path]) -> Settings:
    """Load a settings snapshot from a JSON document, falling back to defaults."""
    if path is None or not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, json.JSONDecodeError) as exc:
        raise SettingsError(f"Could not read settings from {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"Settings document {path} must be a JSON object")
    return Settings.from_mapping(data)
