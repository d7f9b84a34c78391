"""
test_trip_provider.py - Trip data provider tests

Checks for:
- client-credentials token caching and forced refresh
- HttpTripProvider headers, 401 retry, 404 and upstream errors
- FileTripProvider directory and single-file modes
- provider_from_env selection

Usage: pytest test_trip_provider.py
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from models import TripStatus
from trip_provider import (
    ClientCredentialsTokenProvider,
    FileTripProvider,
    HttpTripProvider,
    TripNotFoundError,
    UpstreamRetrievalError,
    provider_from_env,
)

TOKEN_URL = "https://auth.example.test/oauth2/token"
API_URL = "https://api.example.test/v1"


class FakeTripApi:
    """MockTransport handler serving a token endpoint and /trip/{id}."""

    def __init__(self, trip_payload: dict[str, Any]):
        self.trip_payload = trip_payload
        self.token_count = 0
        self.trip_requests: list[httpx.Request] = []
        self.trip_responses: list[Callable[[httpx.Request], httpx.Response]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            self.token_count += 1
            return httpx.Response(200, json={"access_token": f"token-{self.token_count}", "expires_in": 3600})

        self.trip_requests.append(request)
        if self.trip_responses:
            return self.trip_responses.pop(0)(request)
        return httpx.Response(200, json=self.trip_payload)


def _build(api: FakeTripApi) -> tuple[HttpTripProvider, ClientCredentialsTokenProvider]:
    client = httpx.Client(transport=httpx.MockTransport(api))
    tokens = ClientCredentialsTokenProvider(
        token_url=TOKEN_URL,
        client_id="client",
        client_secret="secret",
        scope="trips/read",
        client=client,
    )
    provider = HttpTripProvider(API_URL + "/", tokens, user_agent="readiness-tests", client=client)
    return provider, tokens


# -- Token provider --


def test_token_is_cached_until_forced(compliant_payload):
    api = FakeTripApi(compliant_payload)
    _, tokens = _build(api)
    assert tokens.get_access_token() == "token-1"
    assert tokens.get_access_token() == "token-1"
    assert api.token_count == 1
    assert tokens.force_refresh() == "token-2"
    assert tokens.get_access_token() == "token-2"


def test_token_endpoint_sends_client_credentials(compliant_payload):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "abc"})

    tokens = ClientCredentialsTokenProvider(
        TOKEN_URL, "client", "secret", "trips/read", client=httpx.Client(transport=httpx.MockTransport(handler))
    )
    assert tokens.get_access_token() == "abc"
    body = seen[0].content.decode()
    assert "grant_type=client_credentials" in body
    assert "client_id=client" in body


def test_token_failure_raises():
    handler = lambda request: httpx.Response(400, text="invalid_client")  # noqa: E731
    tokens = ClientCredentialsTokenProvider(
        TOKEN_URL, "client", "bad", "trips/read", client=httpx.Client(transport=httpx.MockTransport(handler))
    )
    with pytest.raises(RuntimeError, match="invalid_client"):
        tokens.get_access_token()


# -- HTTP provider --


def test_fetch_trip_returns_validated_trip_data(compliant_payload):
    api = FakeTripApi(compliant_payload)
    provider, _ = _build(api)

    data = provider.fetch_trip(23)

    assert data.trip.trip_id == 23
    assert data.trip.status == TripStatus.PACKED
    assert len(data.items) == len(compliant_payload["items"])
    assert all(item.country_code == "US" for item in data.items)

    request = api.trip_requests[0]
    assert str(request.url) == f"{API_URL}/trip/23"
    assert request.headers["x-sana-token"] == "Bearer token-1"
    assert request.headers["user-agent"] == "readiness-tests"
    assert request.headers["accept"] == "application/json"


def test_unauthorized_refreshes_token_once_and_retries(compliant_payload):
    api = FakeTripApi(compliant_payload)
    api.trip_responses.append(lambda request: httpx.Response(401, text="expired"))
    provider, _ = _build(api)

    data = provider.fetch_trip(23)

    assert data.trip.trip_id == 23
    assert api.token_count == 2
    assert [r.headers["x-sana-token"] for r in api.trip_requests] == ["Bearer token-1", "Bearer token-2"]


def test_second_unauthorized_is_upstream_error(compliant_payload):
    api = FakeTripApi(compliant_payload)
    api.trip_responses.extend([lambda r: httpx.Response(401), lambda r: httpx.Response(401, text="nope")])
    provider, _ = _build(api)

    with pytest.raises(UpstreamRetrievalError) as excinfo:
        provider.fetch_trip(23)
    assert excinfo.value.status_code == 401
    assert len(api.trip_requests) == 2


def test_not_found_is_distinct(compliant_payload):
    api = FakeTripApi(compliant_payload)
    api.trip_responses.append(lambda request: httpx.Response(404, json={"message": "missing"}))
    provider, _ = _build(api)

    with pytest.raises(TripNotFoundError) as excinfo:
        provider.fetch_trip(404)
    assert excinfo.value.trip_id == 404
    assert str(excinfo.value) == "Trip 404 not found"


def test_server_error_body_is_truncated(compliant_payload):
    api = FakeTripApi(compliant_payload)
    api.trip_responses.append(lambda request: httpx.Response(503, text="x" * 2000))
    provider, _ = _build(api)

    with pytest.raises(UpstreamRetrievalError) as excinfo:
        provider.fetch_trip(23)
    assert excinfo.value.status_code == 503
    assert len(excinfo.value.response_body) == 500


def test_transport_failure_is_upstream_error(compliant_payload):
    api = FakeTripApi(compliant_payload)

    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api.trip_responses.append(boom)
    provider, _ = _build(api)

    with pytest.raises(UpstreamRetrievalError, match="connection refused"):
        provider.fetch_trip(23)


def test_malformed_payload_is_upstream_error(compliant_payload):
    api = FakeTripApi({"trip": {"tripId": "abc"}, "items": []})
    provider, _ = _build(api)

    with pytest.raises(UpstreamRetrievalError, match="Malformed trip payload"):
        provider.fetch_trip(23)


def test_token_failure_is_upstream_error(compliant_payload):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="auth down")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    tokens = ClientCredentialsTokenProvider(TOKEN_URL, "c", "s", "scope", client=client)
    provider = HttpTripProvider(API_URL, tokens, client=client)

    with pytest.raises(UpstreamRetrievalError, match="Unable to retrieve access token"):
        provider.fetch_trip(23)


# -- File provider --


def test_file_provider_directory_mode(tmp_path: Path, compliant_payload):
    (tmp_path / "trip_23.json").write_text(json.dumps(compliant_payload), encoding="utf-8")
    provider = FileTripProvider(tmp_path)

    assert provider.fetch_trip(23).trip.name == compliant_payload["trip"]["name"]
    with pytest.raises(TripNotFoundError):
        provider.fetch_trip(24)


def test_file_provider_single_file_checks_trip_id(tmp_path: Path, compliant_payload):
    path = tmp_path / "trip.json"
    path.write_text(json.dumps(compliant_payload), encoding="utf-8")
    provider = FileTripProvider(path)

    assert provider.fetch_trip(23).trip.trip_id == 23
    with pytest.raises(TripNotFoundError):
        provider.fetch_trip(7)


def test_file_provider_bad_json_is_upstream_error(tmp_path: Path):
    path = tmp_path / "trip_1.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(UpstreamRetrievalError):
        FileTripProvider(tmp_path).fetch_trip(1)


# -- Environment --


def test_provider_from_env_defaults_to_files(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("TRIP_API_BASE_URL", raising=False)
    monkeypatch.setenv("TRIP_DATA_DIR", str(tmp_path))
    provider = provider_from_env()
    assert isinstance(provider, FileTripProvider)
    assert provider.path == tmp_path


def test_provider_from_env_builds_http_provider(monkeypatch):
    monkeypatch.setenv("TRIP_API_BASE_URL", API_URL)
    monkeypatch.setenv("TRIP_API_TOKEN_URL", TOKEN_URL)
    monkeypatch.setenv("TRIP_API_CLIENT_ID", "client")
    monkeypatch.setenv("TRIP_API_CLIENT_SECRET", "secret")
    monkeypatch.setenv("TRIP_API_SCOPE", "trips/read")
    monkeypatch.setenv("TRIP_API_USER_AGENT", "ops-agent")
    monkeypatch.setenv("TRIP_API_TIMEOUT_S", "5")

    provider = provider_from_env()

    assert isinstance(provider, HttpTripProvider)
    assert provider.base_url == API_URL
    assert provider.user_agent == "ops-agent"
    assert provider.token_provider.scope == "trips/read"


def test_provider_from_env_requires_credentials(monkeypatch):
    monkeypatch.setenv("TRIP_API_BASE_URL", API_URL)
    for name in ("TRIP_API_TOKEN_URL", "TRIP_API_CLIENT_ID", "TRIP_API_CLIENT_SECRET", "TRIP_API_SCOPE"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ValueError, match="TRIP_API_CLIENT_SECRET"):
        provider_from_env()
