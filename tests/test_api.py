import json
from datetime import datetime, timedelta, timezone

import pytest
import stripe
from fastapi.testclient import TestClient

from app.main import app as fastapi_app
from app.models import Parcel, Payment
from conftest import auth_header, make_token, stripe_session


def checkout_body(parcel_id, **overrides):
    body = {"cost": 25.50, "parcelName": "Box", "senderEmail": "a@x.com", "parcelId": parcel_id}
    body.update(overrides)
    return body


def test_create_checkout_session_success(client, parcel, checkout_sessions):
    checkout_sessions.create.return_value = stripe_session(
        id="cs_test_9", url="https://checkout.stripe.com/c/pay/cs_test_9"
    )

    response = client.post("/create-checkout-session", json=checkout_body(parcel.id))

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.com/c/pay/cs_test_9"}
    params = checkout_sessions.create.call_args.kwargs["params"]
    assert params["mode"] == "payment"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 2550
    assert params["line_items"][0]["quantity"] == 1
    assert params["metadata"] == {"parcelId": parcel.id, "parcelName": "Box"}
    assert params["customer_email"] == "a@x.com"
    assert params["success_url"] == (
        "https://zapshift.test/dashboard/payment-success?session_id={CHECKOUT_SESSION_ID}"
    )
    assert params["cancel_url"] == (
        "https://zapshift.test/dashboard/payment-canceled?session_id={CHECKOUT_SESSION_ID}"
    )


def test_create_checkout_session_rounds_to_nearest_cent(client, parcel, checkout_sessions):
    checkout_sessions.create.return_value = stripe_session()

    client.post("/create-checkout-session", json=checkout_body(parcel.id, cost=9.999))

    params = checkout_sessions.create.call_args.kwargs["params"]
    assert params["line_items"][0]["price_data"]["unit_amount"] == 1000


def test_checkout_idempotency_key_follows_every_parameter(client, parcel, checkout_sessions):
    checkout_sessions.create.return_value = stripe_session()

    client.post("/create-checkout-session", json=checkout_body(parcel.id))
    client.post("/create-checkout-session", json=checkout_body(parcel.id))
    client.post("/create-checkout-session", json=checkout_body(parcel.id, senderEmail="other@x.com"))
    client.post("/create-checkout-session", json=checkout_body(parcel.id, parcelName="Crate"))

    keys = [call.kwargs["options"]["idempotency_key"] for call in checkout_sessions.create.call_args_list]
    assert keys[0] == keys[1]
    assert len({keys[0], keys[2], keys[3]}) == 3


def test_create_checkout_session_missing_fields(client, checkout_sessions):
    response = client.post("/create-checkout-session", json={"cost": 10})

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"
    checkout_sessions.create.assert_not_called()


@pytest.mark.parametrize("cost", [1e30, 5e6, 0, -3])
def test_create_checkout_session_rejects_out_of_range_cost(client, parcel, checkout_sessions, cost):
    response = client.post("/create-checkout-session", json=checkout_body(parcel.id, cost=cost))

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"
    checkout_sessions.create.assert_not_called()


@pytest.mark.parametrize("literal", ["Infinity", "NaN"])
def test_create_checkout_session_rejects_non_finite_cost(client, parcel, checkout_sessions, literal):
    body = json.dumps(checkout_body(parcel.id, cost="__cost__")).replace('"__cost__"', literal)

    response = client.post(
        "/create-checkout-session",
        content=body,
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"
    checkout_sessions.create.assert_not_called()


def test_create_checkout_session_gateway_down(client, parcel, checkout_sessions):
    checkout_sessions.create.side_effect = stripe.APIConnectionError("Request timed out")

    response = client.post("/create-checkout-session", json=checkout_body(parcel.id, cost=10))

    assert response.status_code == 502
    assert response.json()["error_code"] == "ERR_GATEWAY"


def test_create_checkout_session_unknown_parcel(client, checkout_sessions):
    response = client.post("/create-checkout-session", json=checkout_body("nope", cost=10))

    assert response.status_code == 404
    checkout_sessions.create.assert_not_called()


def test_payment_success_first_confirmation(client, parcel, db, checkout_sessions):
    checkout_sessions.retrieve.return_value = stripe_session(
        payment_status="paid",
        payment_intent="pi_1",
        metadata={"parcelId": parcel.id, "parcelName": "Box"},
    )

    response = client.patch("/payment-success?session_id=cs_test_1")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["transactionId"] == "pi_1"
    assert body["trackingId"].startswith("ZP-")
    assert body["paymentInfo"]["amount"] == 25.5
    assert body["paymentInfo"]["parcelId"] == parcel.id
    assert checkout_sessions.retrieve.call_args.args == ("cs_test_1",)

    db.expire_all()
    assert db.get(Parcel, parcel.id).payment_status == "paid"


def test_payment_success_replay(client, parcel, db, checkout_sessions):
    checkout_sessions.retrieve.return_value = stripe_session(
        payment_status="paid",
        payment_intent="pi_1",
        metadata={"parcelId": parcel.id, "parcelName": "Box"},
    )

    first = client.patch("/payment-success?session_id=cs_test_1").json()
    second = client.patch("/payment-success?session_id=cs_test_1")

    assert second.status_code == 200
    assert second.json() == {
        "message": "Payment already processed",
        "transactionId": "pi_1",
        "trackingId": first["trackingId"],
    }
    assert db.query(Payment).filter_by(transaction_id="pi_1").count() == 1


def test_payment_success_not_paid(client, parcel, db, checkout_sessions):
    checkout_sessions.retrieve.return_value = stripe_session(
        payment_status="unpaid",
        metadata={"parcelId": parcel.id, "parcelName": "Box"},
    )

    response = client.patch("/payment-success?session_id=cs_test_1")

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_PAYMENT_INCOMPLETE"
    db.expire_all()
    assert db.get(Parcel, parcel.id).payment_status == "unpaid"
    assert db.query(Payment).count() == 0


def test_payment_success_requires_session_id(client):
    response = client.patch("/payment-success")
    assert response.status_code == 422


def test_payment_success_gateway_error(client, checkout_sessions):
    checkout_sessions.retrieve.side_effect = stripe.InvalidRequestError("No such checkout.session", "id")

    response = client.patch("/payment-success?session_id=cs_bad")

    assert response.status_code == 502
    assert response.json()["details"] == {"sessionId": "cs_bad"}


def _payment(transaction_id, email, paid_at):
    return Payment(
        transaction_id=transaction_id,
        amount=10.0,
        currency="usd",
        customer_email=email,
        parcel_id="p",
        parcel_name="Box",
        payment_status="paid",
        tracking_id="ZP-20240101-0000000A",
        paid_at=paid_at,
    )


def test_payment_history_newest_first(client, db):
    now = datetime.now(timezone.utc)
    db.add_all([
        _payment("pi_old", "a@x.com", now - timedelta(days=2)),
        _payment("pi_new", "a@x.com", now),
        _payment("pi_other", "b@x.com", now),
    ])
    db.commit()

    response = client.get("/payments?email=a@x.com", headers=auth_header("a@x.com"))

    assert response.status_code == 200
    assert [p["transactionId"] for p in response.json()] == ["pi_new", "pi_old"]


def test_payment_history_forbidden_for_other_email(client, db):
    db.add(_payment("pi_b", "b@x.com", datetime.now(timezone.utc)))
    db.commit()

    response = client.get("/payments?email=b@x.com", headers=auth_header("a@x.com"))

    assert response.status_code == 403
    assert "pi_b" not in response.text


def test_payment_history_requires_token(client):
    response = client.get("/payments?email=a@x.com")
    assert response.status_code == 401


def test_payment_history_rejects_bad_signature(client):
    token = make_token("a@x.com", secret="wrong-secret")
    response = client.get("/payments?email=a@x.com", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_payment_history_rejects_expired_token(client):
    expired = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = make_token("a@x.com", exp=int(expired.timestamp()))
    response = client.get("/payments?email=a@x.com", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_unhandled_error_is_rendered_as_internal(client, mocker):
    mocker.patch("app.repository.PaymentRepository.list_for_customer", side_effect=RuntimeError("boom"))

    with TestClient(fastapi_app, raise_server_exceptions=False) as c:
        response = c.get("/payments?email=a@x.com", headers=auth_header("a@x.com"))

    assert response.status_code == 500
    assert response.json()["error_code"] == "ERR_INTERNAL_SERVER"
    assert "boom" not in response.text


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.status_code == 200
    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_unknown_route_uses_error_shape(client):
    response = client.get("/no-such-route")

    assert response.status_code == 404
    assert response.json() == {"error_code": "ERR_NOT_FOUND", "message": "Not Found", "details": {}}


def test_wrong_method_uses_error_shape(client):
    response = client.put("/health")

    assert response.status_code == 405
    assert response.json()["error_code"] == "ERR_METHOD_NOT_ALLOWED"
    assert "GET" in response.headers["allow"]
