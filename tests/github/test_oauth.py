from __future__ import annotations

import pytest
import requests

from commitboard.config import GitHubConfig
from commitboard.errors import InvalidRequest, OAuthExchangeFailed
from commitboard.github import OAuthClient
from tests._fixtures.github import FakeResponse, FakeSession


def _client(session: FakeSession, **overrides) -> OAuthClient:
    settings = {"client_id": "cid", "client_secret": "secret", **overrides}
    return OAuthClient(GitHubConfig(**settings), session=session)


def test_exchange_returns_provider_payload() -> None:
    session = FakeSession([FakeResponse({"access_token": "gho_x", "token_type": "bearer", "scope": ""})])

    payload = _client(session).exchange_code("abc")

    assert payload["access_token"] == "gho_x"
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://github.com/login/oauth/access_token"
    assert call["headers"] == {"Accept": "application/json"}
    assert call["data"] == {"client_id": "cid", "client_secret": "secret", "code": "abc"}


def test_empty_code_is_invalid() -> None:
    session = FakeSession([])

    with pytest.raises(InvalidRequest) as excinfo:
        _client(session).exchange_code("")

    assert excinfo.value.public_message == "No code provided"
    assert session.calls == []


def test_missing_client_credentials_fail_without_calling_provider() -> None:
    session = FakeSession([])

    with pytest.raises(OAuthExchangeFailed):
        _client(session, client_secret=None).exchange_code("abc")

    assert session.calls == []


def test_error_body_is_a_failure() -> None:
    session = FakeSession([FakeResponse({"error": "bad_verification_code"})])

    with pytest.raises(OAuthExchangeFailed) as excinfo:
        _client(session).exchange_code("stale")

    assert "bad_verification_code" in str(excinfo.value)


def test_network_error_is_a_failure() -> None:
    session = FakeSession([requests.Timeout("timed out")])

    with pytest.raises(OAuthExchangeFailed):
        _client(session).exchange_code("abc")


def test_non_json_response_is_a_failure() -> None:
    session = FakeSession([FakeResponse(ValueError("html"), status_code=502)])

    with pytest.raises(OAuthExchangeFailed):
        _client(session).exchange_code("abc")
