from __future__ import annotations

import random
import time
from typing import Any, Callable, Mapping

import requests


class ExternalApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, body_snippet: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body_snippet = body_snippet


def request_json(
    session: requests.Session,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    timeout_seconds: float = 20.0,
    label: str = "External API",
    error_cls: type[ExternalApiError] = ExternalApiError,
    max_attempts: int = 3,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """
    GET a JSON object, retrying network errors, 429 and 5xx with backoff and jitter.
    """

    headers = {
        "accept": "application/json",
        "user-agent": "GeekLog/1.0",
    }

    last_response: requests.Response | None = None
    for attempt in range(max_attempts):
        try:
            resp = session.get(url, params=params, headers=headers, timeout=timeout_seconds)
        except requests.RequestException as exc:
            if attempt < max_attempts - 1:
                delay = 1.0 * (2**attempt)
                jitter = random.uniform(0.0, delay * 0.25)
                sleep(delay + jitter)
                continue
            raise error_cls(f"{label} request failed: {exc}") from exc

        last_response = resp
        if resp.status_code == 200:
            break

        retryable = resp.status_code == 429 or 500 <= resp.status_code < 600
        if retryable and attempt < max_attempts - 1:
            delay = 1.0 * (2**attempt)
            retry_after = (resp.headers.get("Retry-After") or "").strip()
            if retry_after.isdigit():
                delay = max(delay, float(retry_after))
            jitter = random.uniform(0.0, delay * 0.25)
            sleep(delay + jitter)
            continue

        raise error_cls(
            f"{label} request failed with HTTP {resp.status_code}.",
            status_code=resp.status_code,
            body_snippet=(resp.text or "")[:400],
        )

    if last_response is None:
        raise error_cls(f"{label} request failed (no response).")
    resp = last_response

    try:
        payload = resp.json()
    except ValueError as exc:
        raise error_cls(
            f"{label} returned non-JSON response.",
            status_code=resp.status_code,
            body_snippet=(resp.text or "")[:400],
        ) from exc

    if not isinstance(payload, dict):
        raise error_cls(f"{label} returned unexpected JSON shape (not an object).")
    return payload
