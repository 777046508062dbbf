"""
Tests for the Walrus storage uploader.
"""

import httpx
import pytest

from tests.fakes import OUTPUT_BYTES, STORED_BLOB_ID
from veriforge.errors import StorageError
from veriforge.storage import StorageUploader, extract_blob_id


class TestExtractBlobId:

    def test_newly_created(self):
        payload = {"newlyCreated": {"blobObject": {"blobId": "abc", "id": "0x1"}, "cost": 10}}
        assert extract_blob_id(payload) == "abc"

    def test_already_certified(self):
        payload = {"alreadyCertified": {"blobId": "def", "endEpoch": 30}}
        assert extract_blob_id(payload) == "def"

    @pytest.mark.parametrize(
        "payload",
        [None, [], {}, {"newlyCreated": {}}, {"newlyCreated": {"blobObject": {"blobId": ""}}}],
    )
    def test_missing(self, payload):
        assert extract_blob_id(payload) is None


class TestStorageUploader:

    @pytest.mark.asyncio
    async def test_upload(self, settings, fake):
        async with fake.client() as client:
            blob_id = await StorageUploader(settings, client).upload(OUTPUT_BYTES)

        assert blob_id == STORED_BLOB_ID
        request = fake.requests_to("publisher.")[0]
        assert request.method == "PUT"
        assert request.url.path == "/v1/blobs"
        assert request.url.params["epochs"] == "1"
        assert request.headers["Content-Type"] == "application/octet-stream"
        assert request.content == OUTPUT_BYTES

    @pytest.mark.asyncio
    async def test_error_status(self, settings, fake):
        fake.storage = lambda request: httpx.Response(500, text="publisher overloaded")
        async with fake.client() as client:
            with pytest.raises(StorageError) as exc_info:
                await StorageUploader(settings, client).upload(OUTPUT_BYTES)

        err = exc_info.value
        assert err.status == 500
        assert err.stage == "upload"
        assert "overloaded" in err.response_body

    @pytest.mark.asyncio
    async def test_missing_blob_id(self, settings, fake):
        fake.storage = lambda request: httpx.Response(200, json={"newlyCreated": {}})
        async with fake.client() as client:
            with pytest.raises(StorageError, match="blob id"):
                await StorageUploader(settings, client).upload(OUTPUT_BYTES)

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings, fake):
        fake.storage = lambda request: httpx.Response(200, text="ok")
        async with fake.client() as client:
            with pytest.raises(StorageError, match="invalid JSON"):
                await StorageUploader(settings, client).upload(OUTPUT_BYTES)

    @pytest.mark.asyncio
    async def test_transport_failure(self, settings, fake):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        fake.storage = refuse
        async with fake.client() as client:
            with pytest.raises(StorageError, match="connection refused"):
                await StorageUploader(settings, client).upload(OUTPUT_BYTES)
