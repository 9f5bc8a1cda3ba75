from __future__ import annotations

import io
import time
from typing import Dict, List, Optional, Tuple

import pytest
from PIL import Image

from offline_images.models import FetchFailure, FetchResult, FetchSuccess
from offline_images.storage import FileSystemVault


def create_test_image(fmt: str = "PNG", mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    img = Image.new(mode, (8, 8), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", chunks: int = 1) -> None:
        self.status_code = status_code
        self.content = content
        self._chunks = chunks
        self.closed = False

    def iter_content(self, chunk_size: int):
        if self._chunks <= 1:
            yield self.content
            return
        step = max(1, len(self.content) // self._chunks)
        for start in range(0, len(self.content), step):
            yield self.content[start : start + step]

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[Tuple[str, dict, float, bool]] = []

    def get(self, url, headers=None, timeout=None, stream=False):
        self.calls.append((url, headers or {}, timeout, stream))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeFetcher:
    """Stands in for ImageFetcher; serves bytes per URL with optional delays."""

    def __init__(
        self,
        payloads: Optional[Dict[str, bytes]] = None,
        default: Optional[bytes] = None,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.payloads = payloads or {}
        self.default = default
        self.delays = delays or {}
        self.requested: List[str] = []

    def download(self, url: str, timeout_ms: float, max_retries: int) -> FetchResult:
        self.requested.append(url)
        time.sleep(self.delays.get(url, 0))
        content = self.payloads.get(url, self.default)
        if content is None:
            return FetchFailure(cause="HTTP 404", attempts=max_retries)
        return FetchSuccess(content)


@pytest.fixture
def png_bytes() -> bytes:
    return create_test_image("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return create_test_image("JPEG")


@pytest.fixture
def vault(tmp_path) -> FileSystemVault:
    return FileSystemVault(tmp_path)
