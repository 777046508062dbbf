"""
VeriForge Envelope Verification

Offline checks a third party can run against a /process_data response:

1. Rebuild the canonical BCS message from {record, timestamp, intentScope}
2. Verify the Ed25519 signature with the enclave public key
3. Optionally recompute a digest from locally obtained artifact bytes

FAIL-CLOSED: verify_envelope() returns False on ANY malformed input or bad signature.
Binding the public key to enclave code identity is the attestation's job and is
not checked here.
"""

import hashlib
import hmac
import logging
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from veriforge_canonical.bcs import serialize_intent_message
from veriforge_canonical.constants import DIGEST_SIZE, ED25519_PUBLIC_KEY_SIZE, ED25519_SIGNATURE_SIZE

logger = logging.getLogger(__name__)


class EnvelopeFormatError(ValueError):
    """Raised when an envelope cannot be decoded."""
    pass


class DecodedRecord(NamedTuple):
    image_hash: bytes
    prompt_hash: bytes
    seed: int
    storage_blob_id: str
    source_image_hash: bytes
    model: str


def _hex_field(obj: Dict[str, Any], name: str, size: Optional[int] = None, allow_empty: bool = False) -> bytes:
    value = obj.get(name)
    if not isinstance(value, str):
        raise EnvelopeFormatError(f"{name} must be a hex string")
    try:
        raw = bytes.fromhex(value)
    except ValueError as e:
        raise EnvelopeFormatError(f"{name} is not valid hex: {e}")
    if allow_empty and not raw:
        return raw
    if size is not None and len(raw) != size:
        raise EnvelopeFormatError(f"{name} must be {size} bytes, got {len(raw)}")
    return raw


def decode_record(record: Dict[str, Any]) -> DecodedRecord:
    """Decode the JSON form of a provenance record."""
    if not isinstance(record, dict):
        raise EnvelopeFormatError("record must be an object")

    seed = record.get("seed")
    if not isinstance(seed, int) or isinstance(seed, bool):
        raise EnvelopeFormatError("seed must be an integer")

    blob_id = record.get("storageBlobId")
    model = record.get("model")
    if not isinstance(blob_id, str) or not isinstance(model, str):
        raise EnvelopeFormatError("storageBlobId and model must be strings")

    return DecodedRecord(
        image_hash=_hex_field(record, "imageHash", DIGEST_SIZE),
        prompt_hash=_hex_field(record, "promptHash", DIGEST_SIZE),
        seed=seed,
        storage_blob_id=blob_id,
        source_image_hash=_hex_field(record, "sourceImageHash", DIGEST_SIZE, allow_empty=True),
        model=model,
    )


def canonical_message(envelope: Dict[str, Any]) -> bytes:
    """
    Rebuild the signed bytes from a response body.

    Raises:
        EnvelopeFormatError: If any field is missing or malformed
    """
    record = decode_record(envelope.get("record"))
    timestamp = envelope.get("timestamp")
    scope = envelope.get("intentScope")
    if not isinstance(timestamp, int) or not isinstance(scope, int):
        raise EnvelopeFormatError("timestamp and intentScope must be integers")
    try:
        return serialize_intent_message(scope, timestamp, record)
    except ValueError as e:
        raise EnvelopeFormatError(str(e))


def verify_envelope(envelope: Dict[str, Any], expected_pubkey: Optional[str] = None) -> bool:
    """
    Verify a signed envelope.

    Args:
        envelope: Parsed /process_data response
        expected_pubkey: Pinned enclave public key (hex). If None, the key
                         carried in the envelope is used.

    Returns:
        True only if the signature over the canonical message is valid
    """
    if not isinstance(envelope, dict):
        return False
    try:
        message = canonical_message(envelope)
        pubkey_hex = envelope.get("publicKey")
        if expected_pubkey is not None:
            if not isinstance(pubkey_hex, str) or pubkey_hex.lower() != expected_pubkey.lower():
                logger.warning("Envelope public key does not match the pinned enclave key")
                return False
        pubkey = _hex_field(envelope, "publicKey", ED25519_PUBLIC_KEY_SIZE)
        signature = _hex_field(envelope, "signature", ED25519_SIGNATURE_SIZE)
    except EnvelopeFormatError as e:
        logger.warning(f"Malformed envelope: {e}")
        return False

    try:
        Ed25519PublicKey.from_public_bytes(pubkey).verify(signature, message)
    except InvalidSignature:
        return False
    except ValueError as e:
        logger.warning(f"Invalid public key: {e}")
        return False
    return True


def verify_artifact(artifact: Union[bytes, str, Path], expected_hex: str) -> bool:
    """
    Recompute the SHA-256 of an artifact and compare it with a signed digest.

    Args:
        artifact: Raw bytes or a path to a local file
        expected_hex: imageHash / sourceImageHash / promptHash from a record
    """
    if isinstance(artifact, (str, Path)):
        data = Path(artifact).read_bytes()
    else:
        data = artifact
    try:
        expected = bytes.fromhex(expected_hex)
    except ValueError:
        return False
    return hmac.compare_digest(hashlib.sha256(data).digest(), expected)


def verify_prompt(prompt: str, expected_hex: str) -> bool:
    """Check a promptHash against prompt text (UTF-8)."""
    return verify_artifact(prompt.encode("utf-8"), expected_hex)
