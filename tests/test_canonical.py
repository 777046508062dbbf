"""
Tests for BCS serialization and offline envelope verification.
"""

import hashlib
import struct

import pytest

from enclave_tee import enclave_signer
from tests.fakes import ZERO_SEED_PUBKEY_HEX
from veriforge.models import ProvenanceRecord, SignedEnvelope
from veriforge_canonical.bcs import (
    encode_bytes,
    encode_str,
    encode_u64,
    encode_uleb128,
    serialize_intent_message,
    serialize_record,
)
from veriforge_canonical.constants import IntentScope
from veriforge_canonical.envelope import (
    EnvelopeFormatError,
    canonical_message,
    decode_record,
    verify_artifact,
    verify_envelope,
    verify_prompt,
)

TIMESTAMP_MS = 1_744_038_900_000


def _record(**overrides):
    fields = dict(
        image_hash=hashlib.sha256(b"output").digest(),
        prompt_hash=hashlib.sha256(b"a red fox").digest(),
        seed=42,
        storage_blob_id="blob-xyz",
        source_image_hash=b"",
        model="flux-dev",
    )
    fields.update(overrides)
    return ProvenanceRecord(**fields)


def _signed(record=None, timestamp_ms=TIMESTAMP_MS) -> dict:
    record = record or _record()
    _, signature = enclave_signer.sign_provenance(record, timestamp_ms)
    return SignedEnvelope(
        record=record,
        timestamp_ms=timestamp_ms,
        intent_scope=int(IntentScope.PROCESS_DATA),
        signature=signature,
        public_key=enclave_signer.get_enclave_public_key(),
    ).to_json_dict()


class TestBcsPrimitives:

    @pytest.mark.parametrize(
        "value,encoded",
        [(0, b"\x00"), (1, b"\x01"), (127, b"\x7f"), (128, b"\x80\x01"), (300, b"\xac\x02"), (16384, b"\x80\x80\x01")],
    )
    def test_uleb128(self, value, encoded):
        assert encode_uleb128(value) == encoded

    def test_u64_little_endian(self):
        assert encode_u64(1) == b"\x01" + b"\x00" * 7
        assert encode_u64(2**64 - 1) == b"\xff" * 8

    def test_u64_range(self):
        with pytest.raises(ValueError):
            encode_u64(2**64)
        with pytest.raises(ValueError):
            encode_u64(-1)

    def test_vector_prefix(self):
        assert encode_bytes(b"") == b"\x00"
        assert encode_bytes(b"\x01" * 32) == b"\x20" + b"\x01" * 32
        assert encode_str("é") == b"\x02\xc3\xa9"


class TestSerializeRecord:

    def test_field_order(self):
        record = _record()
        expected = (
            b"\x20" + record.image_hash
            + b"\x20" + record.prompt_hash
            + struct.pack("<Q", 42)
            + b"\x08blob-xyz"
            + b"\x00"
            + b"\x08flux-dev"
        )
        assert serialize_record(record) == expected

    def test_edit_record_carries_source_hash(self):
        source = hashlib.sha256(b"source").digest()
        encoded = serialize_record(_record(source_image_hash=source))
        assert b"\x20" + source in encoded

    def test_intent_message_prefix(self):
        record = _record()
        message = serialize_intent_message(IntentScope.PROCESS_DATA, TIMESTAMP_MS, record)
        assert message[0] == 0
        assert message[1:9] == struct.pack("<Q", TIMESTAMP_MS)
        assert message[9:] == serialize_record(record)

    def test_seed_out_of_range(self):
        with pytest.raises(ValueError):
            serialize_record(_record(seed=2**64))


class TestDecode:

    def test_round_trip_message(self):
        envelope = _signed()
        assert canonical_message(envelope) == serialize_intent_message(0, TIMESTAMP_MS, _record())

    def test_decode_record_rejects_short_hash(self):
        envelope = _signed()
        envelope["record"]["imageHash"] = "abcd"
        with pytest.raises(EnvelopeFormatError):
            decode_record(envelope["record"])

    def test_decode_record_rejects_bool_seed(self):
        envelope = _signed()
        envelope["record"]["seed"] = True
        with pytest.raises(EnvelopeFormatError):
            decode_record(envelope["record"])


class TestVerifyEnvelope:

    def test_valid(self):
        assert verify_envelope(_signed())

    def test_pinned_key(self):
        assert verify_envelope(_signed(), expected_pubkey=ZERO_SEED_PUBKEY_HEX)
        assert not verify_envelope(_signed(), expected_pubkey="11" * 32)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("seed", 43),
            ("model", "flux-schnell"),
            ("storageBlobId", "blob-xyy"),
            ("sourceImageHash", "00" * 32),
            ("promptHash", hashlib.sha256(b"a red fax").hexdigest()),
        ],
    )
    def test_tampered_record(self, field, value):
        envelope = _signed()
        envelope["record"][field] = value
        assert not verify_envelope(envelope)

    def test_tampered_timestamp(self):
        envelope = _signed()
        envelope["timestamp"] += 1
        assert not verify_envelope(envelope)

    def test_tampered_scope(self):
        envelope = _signed()
        envelope["intentScope"] = 1
        assert not verify_envelope(envelope)

    def test_tampered_signature(self):
        envelope = _signed()
        sig = bytearray.fromhex(envelope["signature"])
        sig[0] ^= 0x01
        envelope["signature"] = sig.hex()
        assert not verify_envelope(envelope)

    @pytest.mark.parametrize("envelope", [None, [], "envelope", {}, {"record": {}}])
    def test_malformed(self, envelope):
        assert not verify_envelope(envelope)

    def test_missing_signature(self):
        envelope = _signed()
        del envelope["signature"]
        assert not verify_envelope(envelope)


class TestVerifyArtifact:

    def test_bytes(self):
        data = b"\x89PNG image bytes"
        assert verify_artifact(data, hashlib.sha256(data).hexdigest())
        assert verify_artifact(data, hashlib.sha256(data).hexdigest().upper())

    def test_one_byte_change(self):
        data = bytearray(b"\x89PNG image bytes")
        expected = hashlib.sha256(bytes(data)).hexdigest()
        data[-1] ^= 0x01
        assert not verify_artifact(bytes(data), expected)

    @pytest.mark.parametrize("expected", ["é" * 64, "zz" * 32, "abc", ""])
    def test_malformed_expected_digest(self, expected):
        assert not verify_artifact(b"pixels", expected)

    def test_path(self, tmp_path):
        path = tmp_path / "image.png"
        path.write_bytes(b"pixels")
        assert verify_artifact(path, hashlib.sha256(b"pixels").hexdigest())
        assert verify_artifact(str(path), hashlib.sha256(b"pixels").hexdigest())

    def test_prompt(self):
        assert verify_prompt("a red fox", hashlib.sha256(b"a red fox").hexdigest())
        assert not verify_prompt("a red fox ", hashlib.sha256(b"a red fox").hexdigest())
