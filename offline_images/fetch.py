"""Bounded-retry HTTP fetching of image payloads."""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Callable, List, Optional, Union
from urllib.parse import urlsplit

import requests

from .models import FetchFailure, FetchResult, FetchSuccess

logger = logging.getLogger("offline_images")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
ACCEPT_HEADER = "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8"
RETRY_BACKOFF_SECONDS = 1.0
CHUNK_SIZE = 64 * 1024


class FetchTimeout(requests.Timeout):
    """The overall per-attempt deadline elapsed while the body was streaming."""


def request_headers(url: str) -> dict:
    headers = {"User-Agent": USER_AGENT, "Accept": ACCEPT_HEADER}
    try:
        parts = urlsplit(url)
    except ValueError:
        return headers
    if parts.scheme and parts.netloc:
        headers["Referer"] = f"{parts.scheme}://{parts.netloc}"
    return headers


def _abort(response: requests.Response, expired: threading.Event, log) -> None:
    """Cut off an in-flight body read once the attempt deadline has passed."""
    expired.set()
    connection = getattr(getattr(response, "raw", None), "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        response.close()
        return
    # Shutting the socket down wakes a read blocked on it; close() alone does not.
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        log.debug("Socket already closed while aborting download: %s", exc)


class ImageFetcher:
    """Performs sequential GET attempts with a fixed backoff between them."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        log: Union[logging.Logger, logging.LoggerAdapter, None] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session or requests.Session()
        self.log = log or logger
        self._sleep = sleep
        self._clock = clock

    def _attempt(self, url: str, timeout: float) -> bytes:
        deadline = self._clock() + timeout
        chunks: List[bytes] = []
        with self.session.get(
            url, headers=request_headers(url), timeout=timeout, stream=True
        ) as response:
            if not 200 <= response.status_code < 300:
                raise requests.HTTPError(
                    f"HTTP {response.status_code} for {url}", response=response
                )
            expired = threading.Event()
            timer = threading.Timer(
                max(0.0, deadline - self._clock()), _abort, (response, expired, self.log)
            )
            timer.daemon = True
            timer.start()
            try:
                for chunk in response.iter_content(CHUNK_SIZE):
                    if expired.is_set() or self._clock() > deadline:
                        raise FetchTimeout(f"Timed out after {timeout:.1f}s reading {url}")
                    if chunk:
                        chunks.append(chunk)
            except FetchTimeout:
                raise
            except Exception as exc:
                # The aborted read surfaces as whatever the transport raises.
                if expired.is_set():
                    raise FetchTimeout(
                        f"Timed out after {timeout:.1f}s reading {url}"
                    ) from exc
                raise
            finally:
                timer.cancel()
            if expired.is_set():
                raise FetchTimeout(f"Timed out after {timeout:.1f}s reading {url}")
        return b"".join(chunks)

    def download(self, url: str, timeout_ms: float, max_retries: int) -> FetchResult:
        """Fetch ``url`` in at most ``max_retries`` attempts; never raises for network errors."""
        timeout = float(timeout_ms) / 1000.0
        attempts = max(1, int(max_retries))
        cause = "no attempt made"
        for attempt in range(1, attempts + 1):
            self.log.debug("Download attempt %d for URL: %s", attempt, url)
            try:
                content = self._attempt(url, timeout)
            except requests.RequestException as exc:
                cause = str(exc) or exc.__class__.__name__
                self.log.warning("Attempt %d failed for URL: %s. Error: %s", attempt, url, cause)
                if attempt < attempts:
                    self._sleep(RETRY_BACKOFF_SECONDS)
                continue
            self.log.info("Successfully downloaded image from URL: %s", url)
            return FetchSuccess(content)

        self.log.error(
            "Failed to download image from %s after %d attempts: %s", url, attempts, cause
        )
        return FetchFailure(cause=cause, attempts=attempts)
