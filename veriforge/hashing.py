"""
Provenance hashing.

Three independent SHA-256 digests per request: prompt text, source artifact
(edit mode only) and output artifact. No salt, no combined hash, so anyone
holding the same bytes can recompute the signed digest.
"""

import hashlib

EMPTY_DIGEST = b""


def digest_bytes(data: bytes) -> bytes:
    """SHA-256 of raw bytes (32 bytes)."""
    return hashlib.sha256(data).digest()


def hash_prompt(prompt: str) -> bytes:
    """SHA-256 of the UTF-8 encoding of the prompt."""
    return digest_bytes(prompt.encode("utf-8"))


def hash_artifact(data: bytes) -> bytes:
    return digest_bytes(data)


def short_hex(digest: bytes, length: int = 16) -> str:
    """Truncated hex for log lines."""
    return digest.hex()[:length] if digest else "-"
