"""Data models used throughout the image localisation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class ImageReference:
    """An image-like construct located in a document during one scan pass."""

    index: int
    start: int
    end: int
    url: str
    alt_text: Optional[str]
    original: str
    kind: str = "markdown"


@dataclass(frozen=True)
class FetchSuccess:
    content: bytes


@dataclass(frozen=True)
class FetchFailure:
    cause: str
    attempts: int


FetchResult = Union[FetchSuccess, FetchFailure]


@dataclass
class ProcessingStats:
    """Outcome counters shared by reference across one operation or one batch."""

    total: int = 0
    downloaded: int = 0
    failed: int = 0
    skipped: int = 0

    def merge(self, other: "ProcessingStats") -> None:
        self.total += other.total
        self.downloaded += other.downloaded
        self.failed += other.failed
        self.skipped += other.skipped

    def summary(self) -> str:
        """Human-readable summary for a single document."""
        if self.downloaded:
            return (
                f"Downloaded {self.downloaded} images. "
                f"Failed: {self.failed}. Skipped: {self.skipped}."
            )
        return f"No new images downloaded. Failed: {self.failed}. Skipped: {self.skipped}."


@dataclass(frozen=True)
class LocalImageFile:
    """Image persisted (or already present) in local storage."""

    path: str
    content: bytes
    extension: str
    reused: bool = False


@dataclass
class DocumentResult:
    """Result of processing a single document."""

    path: str
    stats: ProcessingStats
    changed: bool = False
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Aggregate of a sequential run over every document in a vault."""

    processed: int
    stats: ProcessingStats
    documents: List[DocumentResult] = field(default_factory=list)

    @property
    def errors(self) -> List[DocumentResult]:
        return [doc for doc in self.documents if doc.error]

    def summary(self) -> str:
        return (
            f"Processed {self.processed} files. "
            f"Downloaded {self.stats.downloaded} images. Failed: {self.stats.failed}"
        )
