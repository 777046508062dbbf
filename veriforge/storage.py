"""
Walrus storage uploader.

Persists the exact output bytes that were hashed into the content-addressed
store and returns the blob id the store minted. The id is treated as opaque;
it is not re-derived from the local digest.
"""

import logging
from typing import Any, Optional

import httpx

from veriforge.config import Settings
from veriforge.errors import StorageError

logger = logging.getLogger(__name__)


def extract_blob_id(payload: Any) -> Optional[str]:
    """
    Locate the blob id in a publisher response.

    Handles both shapes the publisher returns:
        {"newlyCreated": {"blobObject": {"blobId": ...}}}
        {"alreadyCertified": {"blobId": ...}}
    """
    if not isinstance(payload, dict):
        return None

    created = payload.get("newlyCreated")
    if isinstance(created, dict):
        blob_object = created.get("blobObject")
        if isinstance(blob_object, dict):
            blob_id = blob_object.get("blobId")
            if isinstance(blob_id, str) and blob_id:
                return blob_id

    certified = payload.get("alreadyCertified")
    if isinstance(certified, dict):
        blob_id = certified.get("blobId")
        if isinstance(blob_id, str) and blob_id:
            return blob_id

    return None


class StorageUploader:
    """Single-write uploader for the content-addressed store."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client
        self.publisher_url = settings.WALRUS_PUBLISHER_URL.rstrip("/")

    async def upload(self, data: bytes) -> str:
        """
        Store data and return the minted blob id.

        Raises:
            StorageError: On transport failure, non-2xx status or a response without a blob id
        """
        url = f"{self.publisher_url}/v1/blobs"
        params = {"epochs": self.settings.WALRUS_EPOCHS}

        try:
            response = await self.client.put(
                url,
                params=params,
                content=data,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self.settings.STORAGE_TIMEOUT_SECONDS,
            )
        except httpx.TimeoutException as e:
            raise StorageError(f"storage write timed out after {self.settings.STORAGE_TIMEOUT_SECONDS}s") from e
        except httpx.HTTPError as e:
            raise StorageError(f"storage write failed: {e}") from e

        if not response.is_success:
            logger.error(f"Walrus {response.status_code} response for blob write")
            raise StorageError(
                f"storage write returned HTTP {response.status_code}",
                status=response.status_code,
                response_body=response.text[:2000],
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise StorageError(
                "storage write returned invalid JSON",
                status=response.status_code,
                response_body=response.text[:2000],
            ) from e

        blob_id = extract_blob_id(payload)
        if blob_id is None:
            raise StorageError(
                "storage response missing blob id",
                status=response.status_code,
                response_body=response.text[:2000],
            )

        logger.info(f"Stored {len(data)} bytes as blob {blob_id}")
        return blob_id
