"""
Passphrase-encrypted envelopes for ledger documents.

Wire format (JSON object, every byte field base64):

    {"v": 1, "salt": "...", "iv": "...", "cipher": "..."}

Version 1: PBKDF2-HMAC-SHA256 (100,000 iterations, 16-byte salt) derives a
256-bit key; the UTF-8 JSON document is sealed with AES-256-GCM under a
12-byte nonce. Salt and nonce are drawn fresh for every call to `encrypt`.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


ENVELOPE_VERSION = 1
SUPPORTED_VERSIONS = frozenset({ENVELOPE_VERSION})

KDF_ITERATIONS = 100_000
SALT_BYTES = 16
IV_BYTES = 12
KEY_BYTES = 32


class EnvelopeError(ValueError):
    """Base error for envelope encoding/decoding."""


class UnsupportedVersion(EnvelopeError):
    """Envelope version is not one this codec implements."""


class DecryptionFailed(EnvelopeError):
    """Authentication failed: wrong passphrase, corrupted or tampered payload."""


class MalformedPayload(EnvelopeError):
    """The envelope or its decrypted content is not valid serialized data."""


@dataclass(frozen=True)
class Envelope:
    version: int
    salt: bytes
    iv: bytes
    ciphertext: bytes

    def to_wire(self) -> Dict[str, Any]:
        return {
            "v": self.version,
            "salt": _b64encode(self.salt),
            "iv": _b64encode(self.iv),
            "cipher": _b64encode(self.ciphertext),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"))

    @classmethod
    def from_wire(cls, data: Union[str, bytes, Dict[str, Any]]) -> "Envelope":
        """Parse the wire form (object or JSON text).

        Raises UnsupportedVersion when `v` is missing or unknown, and
        MalformedPayload for any other structural problem.
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as ex:
                raise MalformedPayload("Envelope is not valid JSON") from ex
        if not isinstance(data, dict):
            raise MalformedPayload("Envelope must be a JSON object")

        version = data.get("v")
        # exact int: neither true nor 1.0 passes for 1
        if type(version) is not int or version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersion(f"Unsupported envelope version: {version!r}")

        fields = {}
        for name in ("salt", "iv", "cipher"):
            raw = data.get(name)
            if not isinstance(raw, str):
                raise MalformedPayload(f"Envelope field {name!r} missing or not a string")
            fields[name] = _b64decode(raw, name)
        return cls(version=version, salt=fields["salt"], iv=fields["iv"], ciphertext=fields["cipher"])


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(text: str, name: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as ex:
        raise MalformedPayload(f"Envelope field {name!r} is not valid base64") from ex


def derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(passphrase: str, document: Any) -> Envelope:
    """Serialize `document` to JSON and seal it under a passphrase-derived key."""
    try:
        plaintext = json.dumps(document, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as ex:
        raise MalformedPayload("Document is not JSON-serializable") from ex

    salt = os.urandom(SALT_BYTES)
    iv = os.urandom(IV_BYTES)
    key = derive_key(passphrase, salt)
    ciphertext = AESGCM(key).encrypt(iv, plaintext, None)
    return Envelope(version=ENVELOPE_VERSION, salt=salt, iv=iv, ciphertext=ciphertext)


def decrypt(passphrase: str, envelope: Envelope) -> Any:
    """Open an envelope and return the deserialized document.

    Raises
    - UnsupportedVersion: unknown `envelope.version`.
    - DecryptionFailed: authentication failure of any kind.
    - MalformedPayload: plaintext is not UTF-8 JSON.
    """
    if type(envelope.version) is not int or envelope.version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(f"Unsupported envelope version: {envelope.version!r}")
    # A wrong-length salt or nonce can only come from corruption
    if len(envelope.salt) != SALT_BYTES or len(envelope.iv) != IV_BYTES:
        raise DecryptionFailed("Envelope could not be decrypted")

    key = derive_key(passphrase, envelope.salt)
    try:
        plaintext = AESGCM(key).decrypt(envelope.iv, envelope.ciphertext, None)
    except InvalidTag as ex:
        raise DecryptionFailed("Envelope could not be decrypted") from ex

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as ex:
        raise MalformedPayload("Decrypted payload is not valid JSON") from ex


def encrypt_json(passphrase: str, document: Any) -> str:
    """Encrypt and return the envelope as JSON text."""
    return encrypt(passphrase, document).to_json()


def decrypt_json(passphrase: str, payload: Union[str, bytes, Dict[str, Any]]) -> Any:
    """Decrypt an envelope given in wire form (JSON text or object)."""
    return decrypt(passphrase, Envelope.from_wire(payload))


__all__ = [
    "DecryptionFailed",
    "Envelope",
    "EnvelopeError",
    "KDF_ITERATIONS",
    "MalformedPayload",
    "UnsupportedVersion",
    "decrypt",
    "decrypt_json",
    "encrypt",
    "encrypt_json",
]
