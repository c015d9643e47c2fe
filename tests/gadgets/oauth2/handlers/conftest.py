"""Fixtures for the handler tests."""

import pytest

from gadgets.oauth2.handlers import (
    BasicAuthenticationHandler,
    StandardAuthenticationHandler,
    client_auth_registry,
)


@pytest.fixture
def accessor(store, gadget_uri):
    """Private accessor for the photos code client, user u1."""
    return store.get_oauth2_accessor(gadget_uri, "photos", "u1", "").copy()


@pytest.fixture
def client_auth():
    return client_auth_registry([BasicAuthenticationHandler(), StandardAuthenticationHandler()])
