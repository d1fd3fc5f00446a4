from __future__ import annotations

import pytest
import requests

from geeklogg_backend.integrations.http import ExternalApiError, request_json

URL = "https://api.example.com/items"


class _FakeResponse:
    def __init__(self, status_code: int, payload=None, *, headers: dict[str, str] | None = None) -> None:  # noqa: ANN001
        self.status_code = status_code
        self._payload = payload
        self.text = "" if payload is None else str(payload)
        self.headers = headers or {}

    def json(self):  # noqa: ANN201
        return self._payload


class _FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, outcomes: list) -> None:  # noqa: ANN001
        self.outcomes = list(outcomes)
        self.calls = 0

    def get(self, url: str, *args, **kwargs):  # noqa: ANN002, ANN003, ANN201
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def sleeps() -> list[float]:
    return []


def test_rate_limited_then_ok(sleeps: list[float]) -> None:
    session = _FakeSession([_FakeResponse(429), _FakeResponse(200, {"ok": True})])

    payload = request_json(session, URL, sleep=sleeps.append)

    assert payload == {"ok": True}
    assert session.calls == 2
    assert len(sleeps) == 1
    assert 1.0 <= sleeps[0] <= 1.25


def test_retry_after_header_is_honoured(sleeps: list[float]) -> None:
    session = _FakeSession(
        [_FakeResponse(503, headers={"Retry-After": "7"}), _FakeResponse(200, {"ok": True})]
    )

    request_json(session, URL, sleep=sleeps.append)

    assert len(sleeps) == 1
    assert 7.0 <= sleeps[0] <= 7.0 * 1.25


def test_server_error_on_every_attempt_raises_after_three_calls(sleeps: list[float]) -> None:
    session = _FakeSession([_FakeResponse(500), _FakeResponse(502), _FakeResponse(500)])

    with pytest.raises(ExternalApiError) as excinfo:
        request_json(session, URL, label="Catalogue", sleep=sleeps.append)

    assert excinfo.value.status_code == 500
    assert "Catalogue" in str(excinfo.value)
    assert session.calls == 3
    assert len(sleeps) == 2
    # Backoff doubles between attempts.
    assert sleeps[1] >= 2.0


def test_not_found_is_not_retried(sleeps: list[float]) -> None:
    session = _FakeSession([_FakeResponse(404, {"message": "missing"})])

    with pytest.raises(ExternalApiError) as excinfo:
        request_json(session, URL, sleep=sleeps.append)

    assert excinfo.value.status_code == 404
    assert session.calls == 1
    assert sleeps == []


def test_network_error_is_retried(sleeps: list[float]) -> None:
    session = _FakeSession([requests.ConnectionError("reset"), _FakeResponse(200, {"ok": True})])

    assert request_json(session, URL, sleep=sleeps.append) == {"ok": True}
    assert session.calls == 2
    assert len(sleeps) == 1


def test_network_error_on_last_attempt_uses_error_class(sleeps: list[float]) -> None:
    class _CatalogueError(ExternalApiError):
        pass

    session = _FakeSession([requests.Timeout("slow")])

    with pytest.raises(_CatalogueError):
        request_json(session, URL, error_cls=_CatalogueError, max_attempts=1, sleep=sleeps.append)
    assert sleeps == []


def test_non_object_json_is_rejected() -> None:
    session = _FakeSession([_FakeResponse(200, ["not", "an", "object"])])

    with pytest.raises(ExternalApiError, match="not an object"):
        request_json(session, URL)
