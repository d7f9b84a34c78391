"""
trip_provider.py - Trip data retrieval for readiness evaluation.

Providers:
    HttpTripProvider   GET {base_url}/trip/{id} with a client-credentials token
    FileTripProvider   {trip, items} JSON fixtures on disk

Both return a validated `TripData` or raise one of:
    TripNotFoundError       the trip id does not exist
    UpstreamRetrievalError  anything else (transport, auth, status, payload)

Retry policy lives here, never in the engine: a 401 triggers exactly one
forced token refresh and one retried request.
"""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from logging_config import get_logger
from models import TripData

logger = get_logger(__name__)

try:
    load_dotenv()
except UnicodeDecodeError:
    # Fallback for legacy Windows-encoded .env files.
    load_dotenv(encoding="cp1252")

# -- Configuration --

TOKEN_EXPIRY_SKEW_S = 60
DEFAULT_TOKEN_LIFETIME_S = 3600
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_USER_AGENT = "trip-readiness/1.0"
ERROR_BODY_SNIPPET_CHARS = 500


class TripNotFoundError(Exception):
    """Raised when the provider has no trip with the requested id."""

    def __init__(self, trip_id: int):
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} not found")


class UpstreamRetrievalError(Exception):
    """Raised for every retrieval failure other than a missing trip."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class TripDataProvider(Protocol):
    def fetch_trip(self, trip_id: int) -> TripData: ...


def _parse_trip_payload(payload: Any, source: str) -> TripData:
    try:
        return TripData.model_validate(payload)
    except ValidationError as exc:
        logger.error("trip_payload_invalid | source=%s | errors=%s", source, exc.error_count())
        raise UpstreamRetrievalError(f"Malformed trip payload from {source}: {exc}") from exc


class _TokenResponse(BaseModel):
    access_token: str
    token_type: Optional[str] = None
    expires_in: Optional[int] = None


class ClientCredentialsTokenProvider:
    """OAuth2 client-credentials token cache.

    The token is reused until TOKEN_EXPIRY_SKEW_S before it expires. A lock
    makes concurrent callers share one refresh.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str,
        client: Optional[httpx.Client] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self._client = client or httpx.Client(timeout=timeout_s)
        self._lock = threading.Lock()
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    def _has_usable_token(self) -> bool:
        return (
            self._access_token is not None
            and time.monotonic() + TOKEN_EXPIRY_SKEW_S < self._expires_at
        )

    def get_access_token(self) -> str:
        if self._has_usable_token():
            return self._access_token  # type: ignore[return-value]
        return self._refresh(force=False)

    def force_refresh(self) -> str:
        return self._refresh(force=True)

    def _refresh(self, force: bool) -> str:
        stale_token = self._access_token
        with self._lock:
            # Another caller may have refreshed while we waited on the lock.
            if self._has_usable_token() and (not force or self._access_token != stale_token):
                return self._access_token  # type: ignore[return-value]
            return self._fetch_access_token()

    def _fetch_access_token(self) -> str:
        response = self._client.post(
            self.token_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": self.scope,
                "grant_type": "client_credentials",
            },
            headers={"Accept": "application/json"},
        )
        if response.status_code >= 400:
            raise RuntimeError(
                f"Failed to retrieve access token ({response.status_code}): "
                f"{response.text[:ERROR_BODY_SNIPPET_CHARS]}"
            )

        token = _TokenResponse.model_validate(response.json())
        if not token.access_token:
            raise RuntimeError("Token endpoint returned an empty access token")

        self._access_token = token.access_token
        self._expires_at = time.monotonic() + (token.expires_in or DEFAULT_TOKEN_LIFETIME_S)
        logger.info(
            "token_refresh | token_url=%s | expires_in=%s",
            self.token_url,
            token.expires_in or DEFAULT_TOKEN_LIFETIME_S,
        )
        return self._access_token


class HttpTripProvider:
    """Fetch trips from the inventory API with bearer authentication."""

    def __init__(
        self,
        base_url: str,
        token_provider: ClientCredentialsTokenProvider,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.Client] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.user_agent = user_agent
        self._client = client or httpx.Client(timeout=timeout_s)

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
            "X-Requested-With": "XMLHttpRequest",
            "x-sana-token": f"Bearer {token}",
        }

    def _get(self, url: str, token: str) -> httpx.Response:
        try:
            return self._client.get(url, headers=self._headers(token))
        except httpx.HTTPError as exc:
            logger.error("trip_fetch_transport_error | url=%s | error=%s", url, exc)
            raise UpstreamRetrievalError(f"Trip API request failed: {exc}") from exc

    def fetch_trip(self, trip_id: int) -> TripData:
        url = f"{self.base_url}/trip/{trip_id}"
        logger.info("trip_fetch_start | trip_id=%s | url=%s", trip_id, url)

        try:
            token = self.token_provider.get_access_token()
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            logger.error("trip_fetch_auth_error | trip_id=%s | error=%s", trip_id, exc)
            raise UpstreamRetrievalError(f"Unable to retrieve access token: {exc}") from exc

        response = self._get(url, token)
        if response.status_code == 401:
            logger.warning("trip_fetch_unauthorized | trip_id=%s | action=refresh_token", trip_id)
            try:
                token = self.token_provider.force_refresh()
            except (httpx.HTTPError, RuntimeError, ValueError) as exc:
                raise UpstreamRetrievalError(
                    f"Authentication failed while refreshing token: {exc}", status_code=401
                ) from exc
            response = self._get(url, token)

        if response.status_code == 404:
            logger.warning("trip_fetch_not_found | trip_id=%s", trip_id)
            raise TripNotFoundError(trip_id)

        if response.status_code >= 400:
            snippet = response.text[:ERROR_BODY_SNIPPET_CHARS]
            logger.error(
                "trip_fetch_failed | trip_id=%s | status=%s | body=%r",
                trip_id,
                response.status_code,
                snippet,
            )
            raise UpstreamRetrievalError(
                f"Trip API request failed ({response.status_code}): {snippet}",
                status_code=response.status_code,
                response_body=snippet,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamRetrievalError(
                f"Trip API returned non-JSON body for trip {trip_id}",
                status_code=response.status_code,
                response_body=response.text[:ERROR_BODY_SNIPPET_CHARS],
            ) from exc

        trip_data = _parse_trip_payload(payload, url)
        logger.info(
            "trip_fetch_complete | trip_id=%s | items=%s | status=%s",
            trip_id,
            len(trip_data.items),
            trip_data.trip.status.value,
        )
        return trip_data


class FileTripProvider:
    """Serve trips from JSON files.

    `path` is either one `{trip, items}` file or a directory holding
    `trip_<id>.json` files.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _file_for(self, trip_id: int) -> Path:
        if self.path.is_dir():
            return self.path / f"trip_{trip_id}.json"
        return self.path

    def fetch_trip(self, trip_id: int) -> TripData:
        target = self._file_for(trip_id)
        if not target.is_file():
            logger.warning("trip_file_missing | trip_id=%s | path=%s", trip_id, target)
            raise TripNotFoundError(trip_id)

        try:
            payload = json.loads(target.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise UpstreamRetrievalError(f"Unable to read trip file {target}: {exc}") from exc

        trip_data = _parse_trip_payload(payload, str(target))
        if trip_data.trip.trip_id != trip_id:
            raise TripNotFoundError(trip_id)

        logger.info(
            "trip_file_loaded | trip_id=%s | path=%s | items=%s",
            trip_id,
            target,
            len(trip_data.items),
        )
        return trip_data


def provider_from_env() -> TripDataProvider:
    """Build a provider from TRIP_API_* settings, or TRIP_DATA_DIR when no API is configured.

    Raises:
        ValueError: If TRIP_API_BASE_URL is set but credentials are missing.
    """
    base_url = os.getenv("TRIP_API_BASE_URL", "").strip()
    if not base_url:
        data_dir = os.getenv("TRIP_DATA_DIR", "data/trips").strip()
        logger.info("trip_provider | mode=file | path=%s", data_dir)
        return FileTripProvider(data_dir)

    settings = {
        "TRIP_API_TOKEN_URL": os.getenv("TRIP_API_TOKEN_URL", "").strip(),
        "TRIP_API_CLIENT_ID": os.getenv("TRIP_API_CLIENT_ID", "").strip(),
        "TRIP_API_CLIENT_SECRET": os.getenv("TRIP_API_CLIENT_SECRET", "").strip(),
        "TRIP_API_SCOPE": os.getenv("TRIP_API_SCOPE", "").strip(),
    }
    missing = [name for name, value in settings.items() if not value]
    if missing:
        raise ValueError(f"Missing trip API settings: {', '.join(missing)}")

    raw_timeout = os.getenv("TRIP_API_TIMEOUT_S", "").strip()
    try:
        timeout_s = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_S
    except ValueError as exc:
        raise ValueError(f"TRIP_API_TIMEOUT_S must be a number, got {raw_timeout!r}") from exc

    token_provider = ClientCredentialsTokenProvider(
        token_url=settings["TRIP_API_TOKEN_URL"],
        client_id=settings["TRIP_API_CLIENT_ID"],
        client_secret=settings["TRIP_API_CLIENT_SECRET"],
        scope=settings["TRIP_API_SCOPE"],
        timeout_s=timeout_s,
    )
    logger.info("trip_provider | mode=http | base_url=%s", base_url)
    return HttpTripProvider(
        base_url=base_url,
        token_provider=token_provider,
        user_agent=os.getenv("TRIP_API_USER_AGENT", DEFAULT_USER_AGENT).strip() or DEFAULT_USER_AGENT,
        timeout_s=timeout_s,
    )
