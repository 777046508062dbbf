"""
VeriForge Enclave Server
========================

FastAPI surface of the enclave.

Endpoints:
- GET  /: Ping
- GET  /health_check: Liveness + public key
- GET  /get_attestation: Attestation document binding the public key to code
- POST /process_data: Generate/edit an image and return a signed provenance envelope
- GET  /metrics: Prometheus metrics
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from enclave_tee import enclave_signer
from veriforge import __version__
from veriforge.config import Settings
from veriforge.config import settings as default_settings
from veriforge.errors import ConfigurationError, ProvenanceError, ServiceNotReady, redact
from veriforge.metrics import MetricsCollector
from veriforge.models import (
    AttestationResponse,
    EnvelopeResponse,
    ErrorResponse,
    GenerationRequest,
)
from veriforge.pipeline import ProvenancePipeline

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _check_configuration(settings: Settings):
    """Run startup-time configuration checks. Fatal in production, logged elsewhere."""
    problems = settings.validate_settings()
    if not problems:
        return
    summary = "; ".join(problems)
    if settings.APP_ENV == "production":
        raise ConfigurationError(f"Configuration errors: {summary}")
    logger.warning(f"⚠️  Configuration warning: {summary}")
    logger.warning("⚠️  Requests depending on missing settings will fail at call time.")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment-loaded settings)
        transport: Optional httpx transport for all outbound calls
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting VeriForge enclave service...")

        _check_configuration(settings)

        # Fixed seed: the public key never changes across restarts
        pubkey_hex = enclave_signer.initialize_enclave_keypair(settings.enclave_key_seed)
        logger.info(f"Enclave public key: {pubkey_hex}")

        metrics = MetricsCollector()
        async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
            app.state.settings = settings
            app.state.metrics = metrics
            app.state.pipeline = ProvenancePipeline(settings, client, metrics=metrics)
            logger.info("✅ Application startup completed")

            yield

            logger.info("Shutting down VeriForge enclave service...")
            app.state.pipeline = None

        logger.info("✅ Application shutdown completed")

    app = FastAPI(
        title="VeriForge Enclave",
        description="Signed provenance for generated and edited images",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProvenanceError)
    async def provenance_error_handler(request: Request, exc: ProvenanceError):
        body = exc.to_dict()
        body["detail"] = redact(body["detail"], settings.FAL_KEY)
        return JSONResponse(status_code=exc.status_code, content=ErrorResponse(**body).model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        body = ErrorResponse(error="INVALID_REQUEST", detail=problems, stage="normalize")
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {redact(repr(exc), settings.FAL_KEY)}")
        body = ErrorResponse(error="INTERNAL", detail="unexpected internal error", stage="unknown")
        return JSONResponse(status_code=500, content=body.model_dump())

    async def get_pipeline(request: Request) -> ProvenancePipeline:
        pipeline = getattr(request.app.state, "pipeline", None)
        if pipeline is None:
            raise ServiceNotReady("service not ready")
        return pipeline

    @app.get("/", response_class=PlainTextResponse)
    async def ping():
        return "Pong!"

    @app.get("/health_check")
    async def health_check():
        state = enclave_signer.get_signer_state()
        return {
            "status": "healthy" if state["initialized"] else "unhealthy",
            "version": __version__,
            "public_key": state["public_key_hex"],
        }

    @app.get("/get_attestation", response_model=AttestationResponse)
    async def get_attestation():
        attestation_b64, is_placeholder = enclave_signer.get_attestation_document_b64()
        return AttestationResponse(
            attestation=attestation_b64,
            public_key=enclave_signer.get_enclave_public_key_hex(),
            code_hash=enclave_signer.get_code_hash(),
            placeholder=is_placeholder,
        )

    @app.post(
        "/process_data",
        response_model=EnvelopeResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    )
    async def process_data(
        payload: GenerationRequest,
        pipeline: ProvenancePipeline = Depends(get_pipeline),
    ):
        envelope = await pipeline.run(payload)
        return envelope.to_json_dict()

    @app.get("/metrics")
    async def metrics(request: Request) -> Response:
        collector: MetricsCollector = request.app.state.metrics
        return Response(content=collector.get_metrics(), media_type=collector.content_type)

    return app


def main():
    configure_logging(default_settings.LOG_LEVEL)
    uvicorn.run(
        create_app(default_settings),
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level=default_settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
