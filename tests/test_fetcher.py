"""
Tests for artifact retrieval.
"""

import httpx
import pytest

from tests.fakes import OUTPUT_BYTES, OUTPUT_URL, SOURCE_BYTES, SOURCE_URL
from veriforge.errors import FetchError
from veriforge.fetcher import OUTPUT, SOURCE, ArtifactFetcher
from veriforge.models import Mode


class TestArtifactFetcher:

    @pytest.mark.asyncio
    async def test_fetch_output(self, settings, fake):
        async with fake.client() as client:
            data = await ArtifactFetcher(settings, client).fetch(OUTPUT_URL, OUTPUT, Mode.GENERATE)
        assert data == OUTPUT_BYTES

    @pytest.mark.asyncio
    async def test_fetch_source(self, settings, fake):
        async with fake.client() as client:
            data = await ArtifactFetcher(settings, client).fetch(SOURCE_URL, SOURCE, Mode.EDIT)
        assert data == SOURCE_BYTES

    @pytest.mark.asyncio
    async def test_not_found(self, settings, fake):
        fake.source = lambda request: httpx.Response(404, text="blob not found")
        async with fake.client() as client:
            with pytest.raises(FetchError) as exc_info:
                await ArtifactFetcher(settings, client).fetch(SOURCE_URL, SOURCE, Mode.EDIT)

        err = exc_info.value
        assert err.stage == "fetch_source"
        assert err.url == SOURCE_URL
        assert err.mode == "edit"
        assert "404" in err.message

    @pytest.mark.asyncio
    async def test_empty_body(self, settings, fake):
        fake.output = lambda request: httpx.Response(200, content=b"")
        async with fake.client() as client:
            with pytest.raises(FetchError, match="empty"):
                await ArtifactFetcher(settings, client).fetch(OUTPUT_URL, OUTPUT, Mode.GENERATE)

    @pytest.mark.asyncio
    async def test_truncated_body(self, settings, fake):
        fake.output = lambda request: httpx.Response(
            200, headers={"Content-Length": str(len(OUTPUT_BYTES) + 100)}, content=OUTPUT_BYTES
        )
        async with fake.client() as client:
            with pytest.raises(FetchError, match="truncated"):
                await ArtifactFetcher(settings, client).fetch(OUTPUT_URL, OUTPUT, Mode.GENERATE)

    @pytest.mark.asyncio
    async def test_oversized_body(self, settings, fake):
        settings = settings.model_copy(update={"MAX_ARTIFACT_BYTES": 64})
        async with fake.client() as client:
            with pytest.raises(FetchError, match="64"):
                await ArtifactFetcher(settings, client).fetch(OUTPUT_URL, OUTPUT, Mode.GENERATE)

    @pytest.mark.asyncio
    async def test_transport_failure(self, settings, fake):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        fake.output = refuse
        async with fake.client() as client:
            with pytest.raises(FetchError, match="connection refused") as exc_info:
                await ArtifactFetcher(settings, client).fetch(OUTPUT_URL, OUTPUT, Mode.GENERATE)
        assert exc_info.value.stage == "fetch_output"

    @pytest.mark.asyncio
    async def test_timeout(self, settings, fake):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        fake.output = slow
        async with fake.client() as client:
            with pytest.raises(FetchError, match="timed out"):
                await ArtifactFetcher(settings, client).fetch(OUTPUT_URL, OUTPUT, Mode.GENERATE)
