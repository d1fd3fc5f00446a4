from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

import requests

logger = logging.getLogger(__name__)

TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
# Tokens are treated as expired this long before Twitch says they are.
TOKEN_SAFETY_MARGIN_SECONDS = 300


class TokenRefreshError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, body_snippet: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body_snippet = body_snippet


class TokenCache:
    """
    Cached Twitch app access token (client-credentials grant) used for IGDB.

    A token seeded from the environment has no known expiry and is used until
    IGDB rejects it.
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        *,
        token: str | None = None,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
        timeout_seconds: float = 20.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token = token or None
        self.expires_at: float | None = None
        self._session = session or requests.Session()
        self._clock = clock
        self._timeout_seconds = timeout_seconds
        self._lock = threading.Lock()

    def is_valid(self) -> bool:
        if not self.token:
            return False
        return self.expires_at is None or self._clock() < self.expires_at

    def invalidate(self) -> None:
        with self._lock:
            self.token = None
            self.expires_at = None

    def expires_at_iso(self) -> str | None:
        if self.expires_at is None:
            return None
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc).isoformat()

    def validate_and_refresh_token(self) -> str:
        with self._lock:
            if self.is_valid():
                return self.token  # type: ignore[return-value]
            return self._refresh_locked()

    def _refresh_locked(self) -> str:
        if not self.client_id or not self.client_secret:
            raise TokenRefreshError("IGDB_CLIENT_ID and TWITCH_CLIENT_SECRET are required to refresh the token.")

        logger.info("Refreshing IGDB access token...")
        try:
            resp = self._session.post(
                TWITCH_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise TokenRefreshError(f"Token refresh failed: {exc}") from exc

        if resp.status_code != 200:
            raise TokenRefreshError(
                f"Token refresh failed: {resp.status_code}",
                status_code=resp.status_code,
                body_snippet=(resp.text or "")[:400],
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise TokenRefreshError("Token refresh returned non-JSON response.", status_code=resp.status_code) from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        expires_in = payload.get("expires_in") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            raise TokenRefreshError("Token refresh response missing access_token.")

        self.token = token
        if isinstance(expires_in, (int, float)):
            self.expires_at = self._clock() + float(expires_in) - TOKEN_SAFETY_MARGIN_SECONDS
        else:
            self.expires_at = None
        logger.info("IGDB token refreshed successfully")
        return token
