# words/tests/conftest.py
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from words import store as store_module
from words.identity import issue_token


@pytest.fixture(autouse=True)
def index_not_ensured(monkeypatch):
    """Each test starts as a fresh process would."""
    monkeypatch.setattr(store_module._index_state, "ensured", False)


@pytest.fixture
def alice(db):
    return get_user_model().objects.create_user(
        username="alice", email="alice@example.com", password="pw-alice",
        first_name="Alice", last_name="Liddell",
    )


@pytest.fixture
def bob(db):
    return get_user_model().objects.create_user(
        username="bob", email="bob@example.com", password="pw-bob",
    )


def _client_for(user):
    c = APIClient()
    c.cookies["token"] = issue_token(user)
    return c


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)
