"""
Artifact retrieval.

Single-round-trip byte fetches for the source image (edit mode, hashed locally
only) and the provider-returned output image (hashed and re-uploaded).
"""

import logging

import httpx

from veriforge.config import Settings
from veriforge.errors import FetchError
from veriforge.models import Mode

logger = logging.getLogger(__name__)

SOURCE = "source"
OUTPUT = "output"


class ArtifactFetcher:
    """Fetches raw artifact bytes. No retries: any failure is terminal."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    async def fetch(self, url: str, kind: str, mode: Mode) -> bytes:
        """
        Download the full body at url.

        Args:
            url: Address to fetch
            kind: "source" or "output" (used for error reporting)
            mode: Request mode (used for error reporting)

        Returns:
            Raw body bytes

        Raises:
            FetchError: On transport failure, non-2xx status, a truncated body
                        or a body larger than MAX_ARTIFACT_BYTES
        """
        limit = self.settings.MAX_ARTIFACT_BYTES

        def fail(message: str) -> FetchError:
            return FetchError(message, url=url, kind=kind, mode=mode.value)

        try:
            async with self.client.stream("GET", url, timeout=self.settings.FETCH_TIMEOUT_SECONDS) as response:
                if not response.is_success:
                    raise fail(f"{kind} fetch returned HTTP {response.status_code}")

                declared = response.headers.get("content-length")
                encoded = "content-encoding" in response.headers
                if declared is not None and declared.isdigit() and int(declared) > limit:
                    raise fail(f"{kind} artifact declares {declared} bytes, limit is {limit}")

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise fail(f"{kind} artifact exceeds {limit} bytes")
                    chunks.append(chunk)
        except httpx.TimeoutException as e:
            raise fail(f"{kind} fetch timed out after {self.settings.FETCH_TIMEOUT_SECONDS}s") from e
        except httpx.HTTPError as e:
            raise fail(f"{kind} fetch failed: {e}") from e

        data = b"".join(chunks)

        # Content-Length counts encoded bytes, so only compare for identity bodies
        if declared is not None and declared.isdigit() and not encoded and len(data) != int(declared):
            raise fail(f"{kind} body truncated: got {len(data)} of {declared} bytes")

        if not data:
            raise fail(f"{kind} body is empty")

        logger.info(f"Fetched {kind} artifact: {len(data)} bytes")
        return data
