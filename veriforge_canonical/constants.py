"""
Shared constants for VeriForge envelopes.

Everything here is part of the signed-data contract with on-chain verifiers:
changing a value invalidates every previously issued signature.
"""

from enum import IntEnum


class IntentScope(IntEnum):
    """Tag distinguishing which payload schema a signature covers."""

    PROCESS_DATA = 0


DIGEST_SIZE = 32
ED25519_PUBLIC_KEY_SIZE = 32
ED25519_SIGNATURE_SIZE = 64

# Attestation user_data purpose for this enclave
ATTESTATION_PURPOSE = "image_provenance"
