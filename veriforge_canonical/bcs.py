"""
BCS (Binary Canonical Serialization) for provenance envelopes.

The signed message is the BCS encoding of

    IntentMessage {
        intent: u8,
        timestamp_ms: u64,
        data: ProvenancePayload {
            image_hash: vector<u8>,
            prompt_hash: vector<u8>,
            seed: u64,
            walrus_blob_id: String,
            source_image_hash: vector<u8>,
            model: String,
        },
    }

which is what the on-chain verifier reconstructs before checking the Ed25519
signature. Field order is part of the contract.
"""

import struct

U8_MAX = 2**8 - 1
U64_MAX = 2**64 - 1


def encode_uleb128(value: int) -> bytes:
    """Unsigned LEB128, used by BCS for sequence lengths."""
    if value < 0:
        raise ValueError(f"ULEB128 cannot encode negative value {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_u8(value: int) -> bytes:
    if not 0 <= value <= U8_MAX:
        raise ValueError(f"u8 out of range: {value}")
    return bytes([value])


def encode_u64(value: int) -> bytes:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"u64 out of range: {value}")
    return struct.pack("<Q", value)


def encode_bytes(value: bytes) -> bytes:
    """vector<u8>: ULEB128 length prefix followed by the raw bytes."""
    return encode_uleb128(len(value)) + bytes(value)


def encode_str(value: str) -> bytes:
    return encode_bytes(value.encode("utf-8"))


def serialize_record(record) -> bytes:
    """
    Serialize a provenance record.

    Args:
        record: Object exposing image_hash, prompt_hash, seed, storage_blob_id,
                source_image_hash and model (e.g. veriforge.models.ProvenanceRecord)
    """
    return b"".join(
        (
            encode_bytes(record.image_hash),
            encode_bytes(record.prompt_hash),
            encode_u64(record.seed),
            encode_str(record.storage_blob_id),
            encode_bytes(record.source_image_hash),
            encode_str(record.model),
        )
    )


def serialize_intent_message(intent: int, timestamp_ms: int, record) -> bytes:
    """Serialize {intent, timestamp_ms, record}: the exact bytes that get signed."""
    return encode_u8(int(intent)) + encode_u64(timestamp_ms) + serialize_record(record)
