from __future__ import annotations

import hashlib
import hmac
from unittest.mock import MagicMock

import pytest

from geeklogg_backend.payments import mercadopago_billing as mp
from geeklogg_backend.payments.errors import PaymentError, WebhookVerificationError
from geeklogg_backend.repositories.payment_preferences import PaymentPreferenceRepositoryError
from geeklogg_backend.repositories.users import UserNotFoundError, UserRepositoryError

SECRET = "mp-webhook-secret"


def _fake_sdk(*, preference=None, payment=None) -> MagicMock:  # noqa: ANN001
    sdk = MagicMock()
    if preference is not None:
        sdk.preference.return_value.create.return_value = preference
    if payment is not None:
        sdk.payment.return_value.get.return_value = payment
    return sdk


def _signature(*, data_id: str, request_id: str, ts: str = "1704908010", secret: str = SECRET) -> str:
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    digest = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={digest}"


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> dict[str, list]:
    calls: dict[str, list] = {"insert": [], "user": [], "preference": []}

    monkeypatch.setattr(mp, "insert_preference", lambda _db, **kwargs: calls["insert"].append(kwargs) or kwargs)
    monkeypatch.setattr(mp, "update_user", lambda _db, uid, fields: calls["user"].append((uid, dict(fields))) or {})
    monkeypatch.setattr(
        mp,
        "update_preference",
        lambda _db, pref_id, fields: calls["preference"].append((pref_id, dict(fields))) or {},
    )
    return calls


# --- Preference creation ---


def test_build_preference(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLIENT_URL", "https://geeklogg.com")
    monkeypatch.setenv("CLOUD_FUNCTION_URL", "https://api.geeklogg.com/")

    pref = mp.build_preference("user-1", "a@example.com")

    assert pref["items"][0]["unit_price"] == 9.90
    assert pref["items"][0]["currency_id"] == "BRL"
    assert pref["external_reference"] == "user-1"
    assert pref["back_urls"]["success"] == "https://geeklogg.com/premium-success"
    assert pref["notification_url"] == "https://api.geeklogg.com/mercadopago-webhook"
    assert pref["auto_return"] == "approved"


def test_create_preference_records_pending_preference(store: dict) -> None:
    sdk = _fake_sdk(preference={"status": 201, "response": {"id": "pref-1", "init_point": "https://mp/checkout"}})

    result = mp.create_preference(MagicMock(), uid="user-1", email="a@example.com", sdk=sdk)

    assert result == {"success": True, "init_point": "https://mp/checkout", "preference_id": "pref-1"}
    assert store["insert"] == [{"preference_id": "pref-1", "user_id": "user-1", "email": "a@example.com"}]


def test_create_preference_surfaces_provider_errors(store: dict) -> None:
    sdk = _fake_sdk(preference={"status": 400, "response": {"message": "invalid payer"}})

    with pytest.raises(PaymentError) as excinfo:
        mp.create_preference(MagicMock(), uid="user-1", email="a@example.com", sdk=sdk)

    assert excinfo.value.status_code == 502
    assert store["insert"] == []


def test_create_preference_requires_uid_and_email() -> None:
    with pytest.raises(PaymentError) as excinfo:
        mp.create_preference(MagicMock(), uid="", email="a@example.com", sdk=_fake_sdk())
    assert excinfo.value.status_code == 400


# --- Manual premium update / cancel ---


def test_update_premium_requires_approved_preference(store: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mp, "get_preference", lambda _db, _pid: {"id": "pref-1", "status": "pending"})

    with pytest.raises(PaymentError) as excinfo:
        mp.update_user_premium(MagicMock(), uid="user-1", preference_id="pref-1")

    assert excinfo.value.status_code == 400
    assert store["user"] == []


def test_update_premium_missing_preference(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mp, "get_preference", lambda _db, _pid: None)

    with pytest.raises(PaymentError) as excinfo:
        mp.update_user_premium(MagicMock(), uid="user-1", preference_id="pref-1")
    assert excinfo.value.status_code == 404


def test_update_premium_upgrades_user(store: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mp, "get_preference", lambda _db, _pid: {"id": "pref-1", "status": "approved"})

    result = mp.update_user_premium(MagicMock(), uid="user-1", preference_id="pref-1")

    assert result["success"] is True
    uid, fields = store["user"][0]
    assert uid == "user-1"
    assert fields["is_premium"] is True
    assert fields["premium_plan"] == "monthly"


def test_cancel_premium(store: dict) -> None:
    mp.cancel_premium(MagicMock(), uid="user-1")

    uid, fields = store["user"][0]
    assert uid == "user-1"
    assert fields["is_premium"] is False
    assert "premium_cancelled_at" in fields


def test_create_preference_store_failure_is_bad_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        mp, "insert_preference", MagicMock(side_effect=PaymentPreferenceRepositoryError("Supabase error: boom"))
    )
    sdk = _fake_sdk(preference={"status": 201, "response": {"id": "pref-1", "init_point": "https://mp/checkout"}})

    with pytest.raises(PaymentError) as excinfo:
        mp.create_preference(MagicMock(), uid="user-1", email="a@example.com", sdk=sdk)
    assert excinfo.value.status_code == 502


def test_update_premium_preference_lookup_failure_is_bad_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        mp, "get_preference", MagicMock(side_effect=PaymentPreferenceRepositoryError("Supabase error: boom"))
    )

    with pytest.raises(PaymentError) as excinfo:
        mp.update_user_premium(MagicMock(), uid="user-1", preference_id="pref-1")
    assert excinfo.value.status_code == 502


def test_update_premium_unknown_user_is_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mp, "get_preference", lambda _db, _pid: {"id": "pref-1", "status": "approved"})
    monkeypatch.setattr(mp, "update_user", MagicMock(side_effect=UserNotFoundError("User user-1 not found.")))

    with pytest.raises(PaymentError) as excinfo:
        mp.update_user_premium(MagicMock(), uid="user-1", preference_id="pref-1")
    assert excinfo.value.status_code == 404


def test_cancel_premium_store_failure_is_bad_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mp, "update_user", MagicMock(side_effect=UserRepositoryError("Supabase error: boom")))

    with pytest.raises(PaymentError) as excinfo:
        mp.cancel_premium(MagicMock(), uid="user-1")
    assert excinfo.value.status_code == 502


# --- Webhook ---


def test_verify_signature_accepts_valid_header() -> None:
    header = _signature(data_id="123456", request_id="req-1")
    mp.verify_signature(signature_header=header, request_id="req-1", data_id="123456", secret=SECRET)


def test_verify_signature_lowercases_alphanumeric_ids() -> None:
    header = _signature(data_id="abc123", request_id="req-1")
    mp.verify_signature(signature_header=header, request_id="req-1", data_id="ABC123", secret=SECRET)


@pytest.mark.parametrize(
    "header",
    [None, "garbage", "ts=1704908010", "ts=1704908010,v1=deadbeef"],
)
def test_verify_signature_rejects_bad_headers(header: str | None) -> None:
    with pytest.raises(WebhookVerificationError):
        mp.verify_signature(signature_header=header, request_id="req-1", data_id="123456", secret=SECRET)


def test_approved_payment_promotes_user(store: dict) -> None:
    sdk = _fake_sdk(
        payment={
            "status": 200,
            "response": {
                "id": 987,
                "status": "approved",
                "external_reference": "user-1",
                "metadata": {"preference_id": "pref-1"},
            },
        }
    )

    mp.process_notification(MagicMock(), {"type": "payment", "data": {"id": "987"}}, sdk=sdk)

    sdk.payment.return_value.get.assert_called_once_with("987")
    pref_id, pref_fields = store["preference"][0]
    assert pref_id == "pref-1"
    assert pref_fields["status"] == "approved"
    assert pref_fields["payment_id"] == "987"
    uid, user_fields = store["user"][0]
    assert uid == "user-1"
    assert user_fields["is_premium"] is True
    assert user_fields["last_payment_id"] == "987"


def test_rejected_payment_only_updates_preference(store: dict) -> None:
    sdk = _fake_sdk(
        payment={
            "status": 200,
            "response": {"id": 5, "status": "rejected", "external_reference": "user-1", "metadata": {"preference_id": "p"}},
        }
    )

    mp.process_notification(MagicMock(), {"type": "payment", "data": {"id": "5"}}, sdk=sdk)

    assert store["preference"] == [("p", {"status": "rejected", "payment_id": "5"})]
    assert store["user"] == []


def test_non_payment_notifications_are_ignored(store: dict) -> None:
    sdk = _fake_sdk()

    mp.process_notification(MagicMock(), {"type": "merchant_order", "data": {"id": "1"}}, sdk=sdk)
    mp.process_notification(MagicMock(), {"type": "payment", "data": {}}, sdk=sdk)

    sdk.payment.assert_not_called()
    assert store == {"insert": [], "user": [], "preference": []}


def test_approved_payment_without_reference_is_skipped(store: dict) -> None:
    sdk = _fake_sdk(payment={"status": 200, "response": {"id": 1, "status": "approved"}})

    mp.process_notification(MagicMock(), {"type": "payment", "data": {"id": "1"}}, sdk=sdk)

    assert store["user"] == []
