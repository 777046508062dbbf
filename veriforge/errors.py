"""
Typed exceptions for the provenance pipeline.

Every failure is terminal for the request: the caller gets either a complete
signed envelope or one of these errors, never a partial result. Each error
names the pipeline stage that failed so the HTTP layer can render a
structured response.
"""

from typing import Any, Dict, Optional


class ProvenanceError(Exception):
    """Base exception for all pipeline failures."""

    error_code = "INTERNAL"
    status_code = 500
    default_stage = "unknown"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.stage = stage or self.default_stage
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "detail": self.message if not self.detail else f"{self.message}: {self.detail}",
            "stage": self.stage,
        }


class ConfigurationError(ProvenanceError):
    """Raised when required configuration (e.g. the provider credential) is missing."""

    error_code = "CONFIGURATION"
    default_stage = "configuration"


class InvalidRequest(ProvenanceError):
    """Raised when the inbound request is malformed or names an unknown model."""

    error_code = "INVALID_REQUEST"
    status_code = 400
    default_stage = "normalize"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ExternalProviderError(ProvenanceError):
    """Raised on a bad status or incomplete response from the generation provider."""

    error_code = "PROVIDER_ERROR"
    status_code = 502
    default_stage = "generate"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.status = status
        self.response_body = response_body
        super().__init__(message, detail=response_body)


class FetchError(ProvenanceError):
    """Raised when source or output bytes cannot be retrieved intact."""

    error_code = "FETCH_ERROR"
    status_code = 502

    def __init__(self, message: str, url: str, kind: str, mode: str):
        self.url = url
        self.kind = kind
        self.mode = mode
        super().__init__(
            message,
            stage=f"fetch_{kind}",
            detail=f"url={url} mode={mode}",
        )


class StorageError(ProvenanceError):
    """Raised on a bad status or malformed response from the content store."""

    error_code = "STORAGE_ERROR"
    status_code = 502
    default_stage = "upload"

    def __init__(self, message: str, status: Optional[int] = None, response_body: Optional[str] = None):
        self.status = status
        self.response_body = response_body
        super().__init__(message, detail=response_body)


class SigningError(ProvenanceError):
    """Raised when the envelope cannot be serialized or signed."""

    error_code = "SIGNING_ERROR"
    default_stage = "sign"


class ServiceNotReady(ProvenanceError):
    """Raised when a request arrives before startup has built the pipeline."""

    error_code = "SERVICE_NOT_READY"
    status_code = 503
    default_stage = "startup"


def redact(text: Optional[str], secret: Optional[str]) -> Optional[str]:
    """Remove a secret from text destined for logs or responses."""
    if not text or not secret:
        return text
    return text.replace(secret, "***")
