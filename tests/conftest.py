from __future__ import annotations

import pytest

from services.chat.credential_store import CredentialStore
from tests.chat_fakes import FakeConnector


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(token="tok-1")
