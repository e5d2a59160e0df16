"""Shared fixtures for the OAuth2 connector tests."""

import pytest
from fakes import CONFIG, FakeTokenStore

from connector.oauth2.models import TokenPair


@pytest.fixture
def config():
    return CONFIG


@pytest.fixture
def tokens():
    return TokenPair(access_token="A", refresh_token="R")


@pytest.fixture
def store(tokens):
    return FakeTokenStore({("session-1", "salesforce"): tokens})
