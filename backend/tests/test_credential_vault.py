"""
Credential vault (AES-256-GCM envelopes for activation secrets).

Verifies:
- seal/open round-trips; every seal uses a fresh nonce
- Any altered character or byte fails authentication
- A missing or malformed key stops application start-up
"""

import base64

import pytest

from conftest import TEST_DATA_KEY
from resaledesk import create_app
from resaledesk.services.credential_vault import (
    ENVELOPE_VERSION,
    ConfigurationError,
    CredentialVault,
    DecryptionFailedError,
)


@pytest.fixture
def local_vault():
    return CredentialVault.from_hex(TEST_DATA_KEY)


class TestSealOpen:
    @pytest.mark.parametrize("plaintext", ["hunter2", "", "pässwörd ✓", "x" * 4096])
    def test_round_trip(self, local_vault, plaintext):
        envelope = local_vault.seal(plaintext)
        assert envelope.startswith(f"{ENVELOPE_VERSION}:")
        assert local_vault.open(envelope) == plaintext

    def test_fresh_nonce_per_seal(self, local_vault):
        assert local_vault.seal("same") != local_vault.seal("same")

    def test_plaintext_not_in_envelope(self, local_vault):
        assert "hunter2" not in local_vault.seal("hunter2")

    def test_non_string_rejected(self, local_vault):
        with pytest.raises(TypeError):
            local_vault.seal(b"bytes")

    def test_repr_hides_key(self, local_vault):
        assert TEST_DATA_KEY not in repr(local_vault)


class TestTampering:
    def test_every_character_altered(self, local_vault):
        envelope = local_vault.seal("hunter2")
        for i, ch in enumerate(envelope):
            altered = envelope[:i] + ("B" if ch == "A" else "A") + envelope[i + 1:]
            with pytest.raises(DecryptionFailedError):
                local_vault.open(altered)

    def test_every_byte_flipped(self, local_vault):
        envelope = local_vault.seal("hunter2")
        raw = base64.urlsafe_b64decode(envelope.split(":", 1)[1])
        for i in range(len(raw)):
            flipped = raw[:i] + bytes([raw[i] ^ 0x01]) + raw[i + 1:]
            forged = f"{ENVELOPE_VERSION}:" + base64.urlsafe_b64encode(flipped).decode("ascii")
            with pytest.raises(DecryptionFailedError):
                local_vault.open(forged)

    def test_wrong_key(self, local_vault):
        other = CredentialVault.from_hex(CredentialVault.generate_key_hex())
        with pytest.raises(DecryptionFailedError):
            other.open(local_vault.seal("hunter2"))

    @pytest.mark.parametrize(
        "envelope",
        [
            "",
            "hunter2",
            "v2:AAAA",
            "v1:",
            "v1:not base64!",
            "v1:" + base64.urlsafe_b64encode(b"short").decode("ascii"),
            None,
        ],
    )
    def test_malformed(self, local_vault, envelope):
        with pytest.raises(DecryptionFailedError):
            local_vault.open(envelope)


class TestKeyConfiguration:
    @pytest.mark.parametrize("key_hex", [None, "", "zz" * 32, "ab" * 16, "ab" * 33])
    def test_bad_keys(self, key_hex):
        with pytest.raises(ConfigurationError):
            CredentialVault.from_hex(key_hex)

    def test_generated_key_is_usable(self):
        key_hex = CredentialVault.generate_key_hex()
        assert len(key_hex) == 64
        vault = CredentialVault.from_hex(key_hex)
        assert vault.open(vault.seal("ok")) == "ok"

    def test_app_refuses_to_start_without_key(self):
        with pytest.raises(ConfigurationError):
            create_app({
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
                "DATA_KEY": None,
            })
