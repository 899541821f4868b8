"""Remote fetch adapter.

Narrow interface: ``fetch(url, dest, max_bytes, timeout_s) -> bytes written``.
The httpx implementation streams the body to disk, enforcing a size ceiling
(declared Content-Length and actual bytes) and an overall deadline.

Forbidden: naming temp files, cleanup, request/response shaping.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class FetchError(Exception):
    """Raised when a remote resource cannot be fetched."""

    def __init__(self, url: str, reason: str, status_code: int | None = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{reason} ({url})")


class FetcherBase(ABC):
    """Abstract base class for remote fetch clients."""

    @abstractmethod
    async def fetch(
        self,
        url: str,
        dest: Path,
        *,
        max_bytes: int,
        timeout_s: float,
    ) -> int:
        """Download ``url`` into ``dest``.

        Args:
            url: Remote locator.
            dest: Local file to write (created or truncated).
            max_bytes: Size ceiling for the body.
            timeout_s: Deadline for the whole transfer.

        Returns:
            Number of bytes written.

        Raises:
            FetchError: On HTTP error status, transport error, timeout, or
                when the body exceeds ``max_bytes``.
        """
        pass


class HttpFetcher(FetcherBase):
    """httpx-based fetcher.

    A shared ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise a client is opened per fetch.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.client = client
        self.chunk_size = chunk_size

    async def fetch(
        self,
        url: str,
        dest: Path,
        *,
        max_bytes: int,
        timeout_s: float,
    ) -> int:
        try:
            return await asyncio.wait_for(
                self._fetch(url, dest, max_bytes=max_bytes, timeout_s=timeout_s),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(url, f"timed out after {timeout_s:g}s") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FetchError(
                url, f"Request failed with status code {status}", status_code=status
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(url, f"timed out after {timeout_s:g}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(url, str(e) or type(e).__name__) from e
        except OSError as e:
            raise FetchError(url, f"could not write {dest}: {e}") from e

    async def _fetch(self, url: str, dest: Path, *, max_bytes: int, timeout_s: float) -> int:
        if self.client is not None:
            return await self._stream_to(self.client, url, dest, max_bytes, timeout_s)

        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await self._stream_to(client, url, dest, max_bytes, timeout_s)

    async def _stream_to(
        self,
        client: httpx.AsyncClient,
        url: str,
        dest: Path,
        max_bytes: int,
        timeout_s: float,
    ) -> int:
        async with client.stream("GET", url, timeout=timeout_s) as resp:
            resp.raise_for_status()

            declared = resp.headers.get("content-length")
            if declared is not None and declared.isdigit() and int(declared) > max_bytes:
                raise FetchError(
                    url,
                    f"content length {int(declared)} exceeds limit of {max_bytes} bytes",
                )

            total = 0
            with dest.open("wb") as f:
                async for chunk in resp.aiter_bytes(self.chunk_size):
                    total += len(chunk)
                    if total > max_bytes:
                        raise FetchError(
                            url, f"maxContentLength size of {max_bytes} exceeded"
                        )
                    f.write(chunk)

        logger.debug("Fetched %d bytes from %s", total, url)
        return total
