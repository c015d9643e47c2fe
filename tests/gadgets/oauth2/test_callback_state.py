"""Tests for the sealed callback state."""

import pytest

from gadgets.oauth2.callback_state import OAuth2CallbackState
from gadgets.oauth2.encryption import FernetBlobCrypter
from gadgets.oauth2.models import AccessorKey


@pytest.fixture
def crypter():
    return FernetBlobCrypter(FernetBlobCrypter.generate_key())


@pytest.fixture
def state():
    return OAuth2CallbackState.for_accessor(
        AccessorKey("https://g.example/gadget.xml", "photos", "u1", "read"), max_age=600
    )


class TestCallbackState:
    """Tests for OAuth2CallbackState."""

    def test_round_trip(self, crypter, state):
        """Should decode to the same accessor identity."""
        decoded = OAuth2CallbackState.decode(crypter, state.encode(crypter))
        assert decoded == state
        assert decoded.accessor_key == ("https://g.example/gadget.xml", "photos", "u1", "read")

    def test_missing(self, crypter):
        """Should return None for a missing blob."""
        assert OAuth2CallbackState.decode(crypter, None) is None
        assert OAuth2CallbackState.decode(crypter, "") is None

    def test_tampered(self, crypter, state):
        """Should return None for a modified blob."""
        blob = state.encode(crypter)
        tampered = blob[:10] + ("x" if blob[10] != "x" else "y") + blob[11:]
        assert OAuth2CallbackState.decode(crypter, tampered) is None

    def test_other_key(self, crypter, state):
        """Should return None for a blob sealed with another key."""
        blob = state.encode(FernetBlobCrypter())
        assert OAuth2CallbackState.decode(crypter, blob) is None

    def test_expired(self, crypter, state):
        """Should return None once expires_at has passed."""
        blob = state.encode(crypter)
        assert OAuth2CallbackState.decode(crypter, blob, now=state.expires_at) is None
        assert OAuth2CallbackState.decode(crypter, blob, now=state.expires_at - 1) == state

    def test_malformed_payload(self, crypter):
        """Should return None when sealed values are incomplete."""
        blob = crypter.wrap({"g": "https://g.example/gadget.xml"})
        assert OAuth2CallbackState.decode(crypter, blob) is None

    def test_blob_is_url_safe(self, crypter, state):
        """Should only use URL-safe characters."""
        blob = state.encode(crypter)
        assert all(c.isalnum() or c in "-_=" for c in blob)
