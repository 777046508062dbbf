"""
Request, record and response models.

Request/response shapes are pydantic models (camelCase on the wire, snake_case
accepted on input). The provenance record itself is a frozen dataclass because
it is what gets serialized and signed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

U64_MAX = 2**64 - 1


class Mode(str, Enum):
    """Derived request mode; never stored."""

    GENERATE = "generate"
    EDIT = "edit"


class GenerationRequest(BaseModel):
    """Inbound generate/edit request."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    prompt: str = Field(..., description="Text prompt")
    seed: Optional[int] = Field(default=None, strict=True, ge=0, le=U64_MAX, description="Unsigned 64-bit seed")
    source_image_reference: Optional[str] = Field(
        default=None,
        alias="sourceImageReference",
        description="URL or blob id of the source image (edit mode)",
    )
    model: str = Field(..., description="Model identifier")

    @model_validator(mode="before")
    @classmethod
    def unwrap_payload(cls, data: Any) -> Any:
        # Clients built against the enclave template send {"payload": {...}}
        if isinstance(data, dict) and set(data.keys()) == {"payload"} and isinstance(data["payload"], dict):
            data = data["payload"]
        if isinstance(data, dict) and "source_image_url" in data and "sourceImageReference" not in data:
            data = dict(data)
            data["sourceImageReference"] = data.pop("source_image_url")
        return data

    @property
    def mode(self) -> Mode:
        return Mode.GENERATE if self.source_image_reference is None else Mode.EDIT


@dataclass(frozen=True)
class ProvenanceRecord:
    """Hashes + seed + storage id describing how an artifact was produced."""

    image_hash: bytes
    prompt_hash: bytes
    seed: int
    storage_blob_id: str
    source_image_hash: bytes
    model: str

    def to_json_dict(self) -> dict:
        return {
            "imageHash": self.image_hash.hex(),
            "promptHash": self.prompt_hash.hex(),
            "seed": self.seed,
            "storageBlobId": self.storage_blob_id,
            "sourceImageHash": self.source_image_hash.hex(),
            "model": self.model,
        }


@dataclass(frozen=True)
class SignedEnvelope:
    """Exactly one record, the timestamp and scope it was signed with, and the signature."""

    record: ProvenanceRecord
    timestamp_ms: int
    intent_scope: int
    signature: bytes
    public_key: bytes

    def to_json_dict(self) -> dict:
        return {
            "record": self.record.to_json_dict(),
            "timestamp": self.timestamp_ms,
            "intentScope": self.intent_scope,
            "signature": self.signature.hex(),
            "publicKey": self.public_key.hex(),
        }


# ============================================================
# Response Models
# ============================================================

class RecordResponse(BaseModel):
    """Provenance record as returned to the caller (byte fields hex encoded)."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    image_hash: str = Field(..., alias="imageHash")
    prompt_hash: str = Field(..., alias="promptHash")
    seed: int
    storage_blob_id: str = Field(..., alias="storageBlobId")
    source_image_hash: str = Field(..., alias="sourceImageHash")
    model: str


class EnvelopeResponse(BaseModel):
    """Response from /process_data"""

    model_config = ConfigDict(populate_by_name=True)

    record: RecordResponse
    timestamp: int
    intent_scope: int = Field(..., alias="intentScope")
    signature: str
    public_key: str = Field(..., alias="publicKey")


class ErrorResponse(BaseModel):
    """Error response"""

    error: str
    detail: Optional[str] = None
    stage: Optional[str] = None


class AttestationResponse(BaseModel):
    """Response from /get_attestation"""

    attestation: str
    public_key: str
    code_hash: str
    placeholder: bool
