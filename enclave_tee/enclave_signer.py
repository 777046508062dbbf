"""
VeriForge Enclave Signer
========================

This module runs INSIDE the enclave and handles:
- Ed25519 keypair derivation from a fixed seed (once per process)
- Provenance envelope signing
- Attestation document generation

SECURITY MODEL:
- Keypair is derived once at startup and never rotated while the process lives
- The seed is fixed, so the public key is stable across restarts and
  downstream verifiers keep trusting the same key
- Attestation binds the public key to enclave code (PCR0)

CONSTRAINT (CRITICAL):
This module does NOT expose a generic sign(bytes) API.
sign_provenance() builds the canonical BCS message itself from
{intent scope, timestamp, record} before signing. This prevents callers from
making the enclave sign arbitrary data.

ATTESTATION USER_DATA SCHEMA:
{
    "purpose": "image_provenance",
    "enclave_pubkey": str,     # hex
    "code_hash": str,          # SHA256 of provenance code
}
"""

import base64
import hashlib
import logging
import os
import threading
from typing import Optional, Tuple

import cbor2
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from veriforge_canonical.bcs import serialize_intent_message
from veriforge_canonical.constants import ATTESTATION_PURPOSE, IntentScope

logger = logging.getLogger(__name__)

# ============================================================================
# Module-Level State (Enclave Singleton)
# ============================================================================

_PRIVATE_KEY: Optional[Ed25519PrivateKey] = None
_PUBLIC_KEY: Optional[Ed25519PublicKey] = None
_PUBLIC_KEY_BYTES: Optional[bytes] = None
_CODE_HASH: Optional[str] = None

# Thread safety for key initialization and signing
_SIGN_LOCK = threading.Lock()


# ============================================================================
# Initialization
# ============================================================================

def initialize_enclave_keypair(seed: bytes) -> str:
    """
    Derive the Ed25519 keypair for this process from a fixed 32-byte seed.

    This function should be called ONCE at startup. Later calls leave the
    existing key untouched.

    Args:
        seed: 32-byte Ed25519 private seed

    Returns:
        Public key as hex string

    Raises:
        ValueError: If seed is not 32 bytes
    """
    global _PRIVATE_KEY, _PUBLIC_KEY, _PUBLIC_KEY_BYTES

    if len(seed) != 32:
        raise ValueError(f"Enclave seed must be 32 bytes, got {len(seed)}")

    with _SIGN_LOCK:
        if _PRIVATE_KEY is not None:
            logger.warning("Enclave keypair already initialized; keeping existing key")
            return _PUBLIC_KEY_BYTES.hex()

        _PRIVATE_KEY = Ed25519PrivateKey.from_private_bytes(seed)
        _PUBLIC_KEY = _PRIVATE_KEY.public_key()
        _PUBLIC_KEY_BYTES = _PUBLIC_KEY.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    logger.info(f"✅ Enclave keypair initialized: {_PUBLIC_KEY_BYTES.hex()[:16]}...")

    return _PUBLIC_KEY_BYTES.hex()


def is_keypair_initialized() -> bool:
    """Check if enclave keypair has been initialized."""
    return _PRIVATE_KEY is not None


def get_enclave_public_key() -> bytes:
    """
    Get the enclave's raw 32-byte public key.

    Raises:
        RuntimeError: If keypair not initialized
    """
    if _PUBLIC_KEY_BYTES is None:
        raise RuntimeError("Enclave keypair not initialized. Call initialize_enclave_keypair() first.")
    return _PUBLIC_KEY_BYTES


def get_enclave_public_key_hex() -> str:
    return get_enclave_public_key().hex()


# ============================================================================
# Code Hash (for attestation)
# ============================================================================

def compute_code_hash() -> str:
    """
    Compute SHA256 hash of the provenance code.

    In production, this should hash the actual enclave image (EIF).
    Here key source files are hashed to detect code changes.

    Returns:
        SHA256 hex digest
    """
    hasher = hashlib.sha256()

    # Sorted for determinism
    critical_files = [
        "enclave_tee/enclave_signer.py",
        "veriforge/fetcher.py",
        "veriforge/generation.py",
        "veriforge/hashing.py",
        "veriforge/normalizer.py",
        "veriforge/pipeline.py",
        "veriforge/storage.py",
        "veriforge_canonical/bcs.py",
        "veriforge_canonical/constants.py",
    ]

    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    for filepath in sorted(critical_files):
        full_path = os.path.join(root, filepath)
        if os.path.exists(full_path):
            with open(full_path, "rb") as f:
                hasher.update(f.read())
            hasher.update(filepath.encode())

    return hasher.hexdigest()


def get_code_hash() -> str:
    global _CODE_HASH
    if _CODE_HASH is None:
        _CODE_HASH = compute_code_hash()
    return _CODE_HASH


# ============================================================================
# Provenance Signing
# ============================================================================

def sign_provenance(
    record,
    timestamp_ms: int,
    scope: IntentScope = IntentScope.PROCESS_DATA,
) -> Tuple[bytes, bytes]:
    """
    Sign a provenance record with the enclave's private key.

    SECURITY: The canonical message is built here from its three parts; the
    caller never supplies raw bytes to sign.

    Args:
        record: ProvenanceRecord to bind
        timestamp_ms: Milliseconds since epoch, read once by the caller
        scope: Intent scope tag

    Returns:
        Tuple of (signed_message_bytes, signature_bytes)

    Raises:
        RuntimeError: If keypair not initialized
        ValueError: If a field cannot be serialized (e.g. seed out of u64 range)
    """
    if _PRIVATE_KEY is None:
        raise RuntimeError("Enclave keypair not initialized")

    message = serialize_intent_message(scope, timestamp_ms, record)

    with _SIGN_LOCK:
        signature = _PRIVATE_KEY.sign(message)

    logger.info(
        f"✅ Signed provenance: scope={int(scope)} ts={timestamp_ms} "
        f"image={record.image_hash.hex()[:16]}..."
    )

    return message, signature


# ============================================================================
# Attestation Document Generation
# ============================================================================

def generate_attestation_document(code_hash: str) -> Tuple[bytes, bool]:
    """
    Generate an attestation document binding the public key to the code hash.

    Quote generation belongs to the enclave runtime (NSM device). This process
    only builds the CBOR user_data and, outside a real enclave, wraps it in a
    clearly marked placeholder.

    Returns:
        Tuple of (document_bytes, is_placeholder)
    """
    user_data = {
        "purpose": ATTESTATION_PURPOSE,
        "enclave_pubkey": get_enclave_public_key_hex(),
        "code_hash": code_hash,
    }

    logger.warning("⚠️ No NSM device available - generating placeholder attestation")

    # Placeholder structure (NOT valid for production)
    placeholder = {
        "_placeholder": True,
        "_warning": "This is NOT a real enclave attestation",
        "user_data": cbor2.dumps(user_data),
        "public_key": get_enclave_public_key(),
        "pcrs": {0: "placeholder_pcr0"},
    }

    return cbor2.dumps(placeholder), True


def get_attestation_document_b64() -> Tuple[str, bool]:
    """Base64-encoded attestation document and whether it is a placeholder."""
    doc, is_placeholder = generate_attestation_document(get_code_hash())
    return base64.b64encode(doc).decode("ascii"), is_placeholder


def get_signer_state() -> dict:
    """
    Get current state of the enclave signer for debugging.

    Returns:
        Dict with state info (NEVER includes private key)
    """
    return {
        "initialized": _PRIVATE_KEY is not None,
        "public_key_hex": _PUBLIC_KEY_BYTES.hex() if _PUBLIC_KEY_BYTES else None,
        "code_hash": _CODE_HASH,
    }
