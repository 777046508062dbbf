"""
VeriForge Canonical
===================

Canonical (BCS) serialization of provenance envelopes and offline
verification helpers. Used by the enclave to build the signed message and by
anyone who wants to check a returned envelope.
"""

from veriforge_canonical.bcs import serialize_intent_message, serialize_record
from veriforge_canonical.constants import IntentScope
from veriforge_canonical.envelope import verify_artifact, verify_envelope, verify_prompt

__all__ = [
    "IntentScope",
    "serialize_intent_message",
    "serialize_record",
    "verify_artifact",
    "verify_envelope",
    "verify_prompt",
]
