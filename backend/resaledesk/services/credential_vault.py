# Overview: Authenticated encryption for activation secrets stored on purchases.

"""
Credential Vault

WHY: Login credentials handed to a client must be stored so staff can
retrieve them later, which rules out one-way hashing. They are sealed with
AES-256-GCM instead.

ENVELOPE: "v1:" + urlsafe_base64(nonce[12] || ciphertext || tag[16])
- A fresh random nonce per seal() travels inside the envelope
- Any change to the envelope fails authentication in open()

KEY: 32 bytes, supplied as 64 hex chars in DATA_KEY. create_app() builds
the vault at start-up, so a missing key stops the process before it serves
requests. Services receive the vault as an argument; there is no global
key lookup.

Sealed values and plaintext are never logged.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


ENVELOPE_VERSION = "v1"
NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32


class ConfigurationError(RuntimeError):
    """Raised at start-up when the vault key is missing or malformed."""


class DecryptionFailedError(Exception):
    """Raised when an envelope is malformed or fails authentication."""


class CredentialVault:
    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            raise ConfigurationError(f"Vault key must be exactly {KEY_SIZE} bytes")
        self._aead = AESGCM(bytes(key))

    def __repr__(self) -> str:
        return "<CredentialVault aes-256-gcm>"

    @classmethod
    def from_hex(cls, key_hex: str | None) -> "CredentialVault":
        if not key_hex:
            raise ConfigurationError("DATA_KEY is required to store activation secrets")
        try:
            key = bytes.fromhex(key_hex.strip())
        except ValueError:
            raise ConfigurationError("DATA_KEY must be hex encoded") from None
        return cls(key)

    @classmethod
    def from_config(cls, config) -> "CredentialVault":
        return cls.from_hex(config.get("DATA_KEY"))

    @staticmethod
    def generate_key_hex() -> str:
        """New random key in DATA_KEY format."""
        return AESGCM.generate_key(bit_length=KEY_SIZE * 8).hex()

    def seal(self, plaintext: str) -> str:
        """Encrypt `plaintext` under a fresh nonce and return the envelope."""
        if not isinstance(plaintext, str):
            raise TypeError("plaintext must be a string")
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        payload = base64.urlsafe_b64encode(nonce + ciphertext).decode("ascii")
        return f"{ENVELOPE_VERSION}:{payload}"

    def open(self, envelope: str) -> str:
        """
        Decrypt an envelope produced by seal().

        Raises DecryptionFailedError for a malformed envelope or a failed
        authentication check; never returns partial or altered plaintext.
        """
        if not isinstance(envelope, str):
            raise DecryptionFailedError("Envelope must be a string")

        version, sep, payload = envelope.partition(":")
        if not sep or version != ENVELOPE_VERSION:
            raise DecryptionFailedError("Unsupported envelope format")

        try:
            raw = base64.urlsafe_b64decode(payload.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError, ValueError):
            raise DecryptionFailedError("Envelope is not valid base64") from None

        # Non-canonical text (stray characters, altered padding bits) is tampering too
        if base64.urlsafe_b64encode(raw).decode("ascii") != payload:
            raise DecryptionFailedError("Envelope is not canonically encoded")

        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailedError("Envelope is truncated")

        nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag:
            raise DecryptionFailedError("Envelope failed authentication") from None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionFailedError("Decrypted secret is not valid UTF-8") from None
