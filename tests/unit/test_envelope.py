from __future__ import annotations

import base64
import json
from dataclasses import replace

import pytest

from state.envelope import (
    DecryptionFailed,
    Envelope,
    MalformedPayload,
    UnsupportedVersion,
    decrypt,
    decrypt_json,
    encrypt,
    encrypt_json,
)


DOC = {
    "buckets": {"income": {"id": "income", "name": "Income", "isIncome": True}},
    "transactions": [{"id": "t1", "date": "2024-01-05", "amount": -12.5, "description": "Café ☕"}],
    "schemaVersion": 1,
}


def _flip(data: bytes, index: int = 0) -> bytes:
    b = bytearray(data)
    b[index] ^= 0x01
    return bytes(b)


def test_roundtrip_returns_same_document():
    env = encrypt("hunter2", DOC)
    assert decrypt("hunter2", env) == DOC


def test_envelope_shape_and_lengths():
    env = encrypt("pw", [1, 2, 3])
    assert env.version == 1
    assert len(env.salt) == 16
    assert len(env.iv) == 12
    # AES-GCM appends a 16-byte tag
    assert len(env.ciphertext) == len(b"[1,2,3]") + 16


def test_wrong_passphrase_fails():
    env = encrypt("correct", {"buckets": [], "transactions": []})
    with pytest.raises(DecryptionFailed):
        decrypt("wrong", env)


def test_salt_and_iv_are_fresh_per_call():
    a = encrypt("pw", DOC)
    b = encrypt("pw", DOC)
    assert a.salt != b.salt
    assert a.iv != b.iv
    assert a.ciphertext != b.ciphertext


@pytest.mark.parametrize("field", ["ciphertext", "iv", "salt"])
@pytest.mark.parametrize("index", [0, -1])
def test_bit_flip_is_detected(field, index):
    env = encrypt("pw", DOC)
    tampered = replace(env, **{field: _flip(getattr(env, field), index)})
    with pytest.raises(DecryptionFailed):
        decrypt("pw", tampered)


def test_truncated_iv_is_decryption_failure():
    env = encrypt("pw", DOC)
    with pytest.raises(DecryptionFailed):
        decrypt("pw", replace(env, iv=env.iv[:8]))


def test_unknown_version_rejected_before_decrypting():
    env = encrypt("pw", DOC)
    with pytest.raises(UnsupportedVersion):
        decrypt("pw", replace(env, version=2))
    with pytest.raises(UnsupportedVersion):
        decrypt("pw", replace(env, version=1.0))


def test_wire_format_keys_and_base64():
    wire = encrypt("pw", DOC).to_wire()
    assert set(wire) == {"v", "salt", "iv", "cipher"}
    assert wire["v"] == 1
    assert len(base64.b64decode(wire["salt"])) == 16
    assert len(base64.b64decode(wire["iv"])) == 12


def test_json_helpers_roundtrip():
    text = encrypt_json("pw", DOC)
    assert json.loads(text)["v"] == 1
    assert decrypt_json("pw", text) == DOC
    assert decrypt_json("pw", json.loads(text)) == DOC


@pytest.mark.parametrize("v", [None, 0, 2, "1", True, 1.0])
def test_from_wire_rejects_other_versions(v):
    wire = encrypt("pw", DOC).to_wire()
    if v is None:
        del wire["v"]
    else:
        wire["v"] = v
    with pytest.raises(UnsupportedVersion):
        Envelope.from_wire(wire)


def test_from_wire_malformed_structures():
    with pytest.raises(MalformedPayload):
        Envelope.from_wire("not json")
    with pytest.raises(MalformedPayload):
        Envelope.from_wire("[1, 2]")
    with pytest.raises(MalformedPayload):
        Envelope.from_wire({"v": 1, "salt": "AAAA", "iv": "AAAA"})
    with pytest.raises(MalformedPayload):
        Envelope.from_wire({"v": 1, "salt": "***", "iv": "AAAA", "cipher": "AAAA"})


def test_non_json_plaintext_is_malformed_payload():
    import state.envelope as mod

    # Seal raw bytes that are not JSON, bypassing the serializer
    salt, iv = b"s" * 16, b"i" * 12
    key = mod.derive_key("pw", salt)
    ct = mod.AESGCM(key).encrypt(iv, b"\xff\xfe not json", None)
    with pytest.raises(MalformedPayload):
        decrypt("pw", Envelope(version=1, salt=salt, iv=iv, ciphertext=ct))


def test_unserializable_document_rejected():
    with pytest.raises(MalformedPayload):
        encrypt("pw", {"x": object()})
