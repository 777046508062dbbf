"""
Enclave TEE Module
==================

Provides TEE (Trusted Execution Environment) functionality for the provenance service.

This module runs INSIDE the enclave and handles:
- Ed25519 keypair derivation from a fixed seed
- Provenance signing (signs the canonical BCS envelope it builds itself)
- Attestation document generation

SECURITY CONSTRAINTS:
- The enclave does NOT expose a generic sign(bytes) API
- Signing is constrained to provenance records
- The key is fixed for the process lifetime

Usage:
    from enclave_tee.enclave_signer import (
        initialize_enclave_keypair,
        get_enclave_public_key_hex,
        sign_provenance,
        get_attestation_document_b64,
    )
"""

from enclave_tee.enclave_signer import (
    initialize_enclave_keypair,
    get_enclave_public_key,
    get_enclave_public_key_hex,
    sign_provenance,
    generate_attestation_document,
    get_attestation_document_b64,
    get_code_hash,
    is_keypair_initialized,
)

__all__ = [
    "initialize_enclave_keypair",
    "get_enclave_public_key",
    "get_enclave_public_key_hex",
    "sign_provenance",
    "generate_attestation_document",
    "get_attestation_document_b64",
    "get_code_hash",
    "is_keypair_initialized",
]
