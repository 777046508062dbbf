"""
Provenance pipeline.

Composes the six components in strict sequence for one request:

    RECEIVED -> NORMALIZED -> (SOURCE_FETCHED) -> GENERATED -> OUTPUT_FETCHED
             -> HASHED -> UPLOADED -> SIGNED

Any stage may move the run straight to FAILED. Nothing is retried, nothing
loops back and there is no partial result: run() returns a SignedEnvelope or
raises the first ProvenanceError.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from enum import Enum
from typing import Callable, List, Optional

import httpx

from enclave_tee import enclave_signer
from veriforge.config import Settings
from veriforge.errors import ProvenanceError, SigningError
from veriforge.fetcher import OUTPUT, SOURCE, ArtifactFetcher
from veriforge.generation import GenerationAdapter
from veriforge.hashing import EMPTY_DIGEST, hash_artifact, hash_prompt, short_hex
from veriforge.metrics import MetricsCollector
from veriforge.models import GenerationRequest, Mode, ProvenanceRecord, SignedEnvelope
from veriforge.normalizer import RequestNormalizer
from veriforge.storage import StorageUploader
from veriforge_canonical.constants import IntentScope

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    SOURCE_FETCHED = "source_fetched"
    GENERATED = "generated"
    OUTPUT_FETCHED = "output_fetched"
    HASHED = "hashed"
    UPLOADED = "uploaded"
    SIGNED = "signed"
    FAILED = "failed"


def current_time_ms() -> int:
    return int(time.time() * 1000)


class PipelineRun:
    """Per-request state: which stage we are in and how we got there."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.state = Stage.RECEIVED
        self.history: List[Stage] = [Stage.RECEIVED]
        self.failed_stage: Optional[str] = None

    def advance(self, state: Stage):
        if self.state in (Stage.SIGNED, Stage.FAILED):
            raise RuntimeError(f"run {self.request_id} already terminal ({self.state.value})")
        self.state = state
        self.history.append(state)

    def fail(self, stage: str):
        self.failed_stage = stage
        self.advance(Stage.FAILED)


class ProvenancePipeline:
    """Request -> signed provenance envelope."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], int] = current_time_ms,
        scope: IntentScope = IntentScope.PROCESS_DATA,
    ):
        self.settings = settings
        self.normalizer = RequestNormalizer(settings)
        self.generator = GenerationAdapter(settings, client)
        self.fetcher = ArtifactFetcher(settings, client)
        self.uploader = StorageUploader(settings, client)
        self.metrics = metrics or MetricsCollector()
        self.clock = clock
        self.scope = scope

    @asynccontextmanager
    async def _stage(self, run: PipelineRun, name: str, reached: Stage):
        start = time.perf_counter()
        try:
            yield
        except ProvenanceError as e:
            # Errors raised below the pipeline may not know their stage
            if e.stage in ("unknown", None):
                e.stage = name
            raise
        finally:
            self.metrics.record_stage(name, time.perf_counter() - start)
        run.advance(reached)
        logger.info(f"[{run.request_id}] {reached.value}")

    async def run(self, request: GenerationRequest) -> SignedEnvelope:
        """
        Execute the full pipeline for one request.

        Raises:
            ProvenanceError: The first failure, tagged with its stage
        """
        run = PipelineRun(uuid.uuid4().hex[:8])
        mode = request.mode
        logger.info(f"[{run.request_id}] received: mode={mode.value} model={request.model}")

        try:
            envelope = await self._execute(run, request)
        except ProvenanceError as e:
            run.fail(e.stage)
            self.metrics.record_request(mode.value, "error")
            self.metrics.record_failure(e.stage, e.error_code)
            logger.warning(f"[{run.request_id}] failed at {e.stage}: {e.error_code} {e.message}")
            raise

        self.metrics.record_request(mode.value, "success")
        return envelope

    async def _execute(self, run: PipelineRun, request: GenerationRequest) -> SignedEnvelope:
        async with self._stage(run, "normalize", Stage.NORMALIZED):
            plan = self.normalizer.normalize(request)

        source_hash = EMPTY_DIGEST
        if plan.mode is Mode.EDIT:
            async with self._stage(run, "fetch_source", Stage.SOURCE_FETCHED):
                source_bytes = await self.fetcher.fetch(plan.source_url, SOURCE, plan.mode)
                self.metrics.record_artifact(SOURCE, len(source_bytes))
                source_hash = hash_artifact(source_bytes)

        async with self._stage(run, "generate", Stage.GENERATED):
            output_url = await self.generator.generate(plan)

        async with self._stage(run, "fetch_output", Stage.OUTPUT_FETCHED):
            output_bytes = await self.fetcher.fetch(output_url, OUTPUT, plan.mode)
            self.metrics.record_artifact(OUTPUT, len(output_bytes))

        async with self._stage(run, "hash", Stage.HASHED):
            image_hash = hash_artifact(output_bytes)
            prompt_hash = hash_prompt(plan.prompt)

        # The bytes uploaded are exactly the bytes hashed above
        async with self._stage(run, "upload", Stage.UPLOADED):
            blob_id = await self.uploader.upload(output_bytes)

        record = ProvenanceRecord(
            image_hash=image_hash,
            prompt_hash=prompt_hash,
            seed=plan.seed,
            storage_blob_id=blob_id,
            source_image_hash=source_hash,
            model=plan.model,
        )

        async with self._stage(run, "sign", Stage.SIGNED):
            timestamp_ms = self.clock()
            try:
                _, signature = enclave_signer.sign_provenance(record, timestamp_ms, self.scope)
                public_key = enclave_signer.get_enclave_public_key()
            except (RuntimeError, ValueError) as e:
                raise SigningError(f"could not sign provenance record: {e}") from e

        logger.info(
            f"[{run.request_id}] image={short_hex(image_hash)} source={short_hex(source_hash)} "
            f"blob={blob_id}"
        )

        return SignedEnvelope(
            record=record,
            timestamp_ms=timestamp_ms,
            intent_scope=int(self.scope),
            signature=signature,
            public_key=public_key,
        )
