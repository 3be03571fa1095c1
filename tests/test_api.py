"""HTTP-level tests: envelopes, error rendering and the end-to-end seller flow."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from stripe_fakes import (
    event_payload,
    mock_account,
    mock_account_link,
    mock_checkout_session,
    mock_payment_intent,
    mock_stripe_object,
    sign_payload,
)


# ---------------------------------------------------------------------------
# Health / envelope
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "timestamp" in body
    assert body["services"]["webhooks"] == "active"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    generated = await client.get("/health")
    assert generated.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Endpoint not found"}


@pytest.mark.asyncio
async def test_body_validation_error_is_400(client):
    response = await client.post("/api/stripe/connect/create-account", json={"email": "e@x.com"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "uid" in body["message"]


@pytest.mark.asyncio
async def test_domain_error_is_rendered_with_its_status(client):
    response = await client.get("/api/stripe/connect/status/not-an-account")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "acct_" in body["message"]


@pytest.mark.asyncio
async def test_unexpected_error_is_500(client):
    with patch("stripe.Account.retrieve", side_effect=RuntimeError("boom")):
        response = await client.get("/api/stripe/connect/status/acct_seller_001")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Internal server error"
    # APP_ENV is "test", so no detail leaks
    assert "error" not in body


# ---------------------------------------------------------------------------
# Connect / onboarding routes
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_account_response_is_camel_case(client):
    with (
        patch("stripe.Account.create", return_value=mock_account("acct_seller_001")),
        patch("stripe.AccountLink.create", return_value=mock_account_link()),
    ):
        response = await client.post(
            "/api/stripe/connect/create-account",
            json={"email": "e@x.com", "uid": "u1", "businessType": "individual"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["accountId"] == "acct_seller_001"
    assert body["onboardingUrl"].startswith("https://connect.stripe.com/")
    assert body["status"]["charges_enabled"] is False


@pytest.mark.asyncio
async def test_create_account_conflict_is_409(client):
    with (
        patch("stripe.Account.create", return_value=mock_account("acct_seller_001")),
        patch("stripe.AccountLink.create", return_value=mock_account_link()),
    ):
        await client.post("/api/stripe/connect/create-account", json={"email": "e@x.com", "uid": "u1"})
        response = await client.post(
            "/api/stripe/connect/create-account", json={"email": "e@x.com", "uid": "u1"},
        )

    assert response.status_code == 409
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_refresh_onboarding_unknown_user_is_404(client):
    response = await client.post("/api/stripe/connect/refresh-onboarding/ghost")

    assert response.status_code == 404
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_accept_terms_defaults_to_caller_ip_and_user_agent(client):
    with patch("stripe.Account.modify", return_value=mock_account("acct_custom_001")) as mock_modify:
        response = await client.post(
            "/api/stripe/onboarding/accounts/acct_custom_001/accept-terms",
            headers={"User-Agent": "SellerApp/1.0"},
        )

    assert response.status_code == 200
    tos = mock_modify.call_args.kwargs["tos_acceptance"]
    assert tos["ip"]
    assert tos["user_agent"] == "SellerApp/1.0"
    assert response.json()["currentStep"] == "complete"


@pytest.mark.asyncio
async def test_upload_document_multipart(client):
    with (
        patch("stripe.File.create", return_value=mock_stripe_object("file_back")),
        patch("stripe.Account.modify", return_value=mock_account("acct_custom_001")) as mock_modify,
    ):
        response = await client.post(
            "/api/stripe/onboarding/accounts/acct_custom_001/upload-document",
            data={"document_type": "identity_back"},
            files={"document": ("rg-verso.jpg", b"\xff\xd8\xff\xe0", "image/jpeg")},
        )

    assert response.status_code == 200
    assert response.json()["fileId"] == "file_back"
    assert mock_modify.call_args.kwargs["individual"] == {
        "verification": {"document": {"back": "file_back"}},
    }


@pytest.mark.asyncio
async def test_progress_route(client):
    fake = mock_account("acct_custom_001", currently_due=["tos_acceptance.date"])

    with patch("stripe.Account.retrieve", return_value=fake):
        response = await client.get("/api/stripe/onboarding/accounts/acct_custom_001/progress")

    body = response.json()
    assert body["progress"]["completionPercentage"] == 75
    assert body["progress"]["currentStep"] == "terms_acceptance"
    assert body["status"]["is_complete"] is False


# ---------------------------------------------------------------------------
# Payments routes
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_products_route(client):
    response = await client.get("/api/payments/products")

    body = response.json()
    assert body["success"] is True
    assert [p["id"] for p in body["products"]] == ["prod_001", "prod_002"]


@pytest.mark.asyncio
async def test_add_product_route(client):
    response = await client.post(
        "/api/payments/add-product",
        json={"name": "Curso", "price": "49.90", "images": []},
    )

    assert response.status_code == 200
    assert response.json()["product"]["price"] == 4990


@pytest.mark.asyncio
async def test_status_route_without_ids_is_400(client):
    response = await client.get("/api/payments/status")

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_status_route_by_payment_intent(client):
    intent = mock_payment_intent(status="succeeded", amount=4990)

    with patch("stripe.PaymentIntent.retrieve", return_value=intent):
        response = await client.get("/api/payments/status", params={"paymentIntentId": "pi_test_123"})

    body = response.json()
    assert body["kind"] == "payment_intent"
    assert body["state"] == "succeeded"
    assert body["amountTotal"] == 4990


@pytest.mark.asyncio
async def test_payment_intent_route_accepts_currency(client):
    with (
        patch("stripe.Account.retrieve", return_value=mock_account("acct_seller_001", charges_enabled=True)),
        patch("stripe.PaymentIntent.create", return_value=mock_payment_intent(currency="usd")) as mock_create,
    ):
        response = await client.post(
            "/api/payments/create-payment-intent",
            json={"productId": "prod_002", "stripeAccountId": "acct_seller_001", "currency": "usd"},
        )

    assert response.status_code == 200
    assert mock_create.call_args.kwargs["currency"] == "usd"
    assert response.json()["currency"] == "usd"


# ---------------------------------------------------------------------------
# Webhook route
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_webhook_bad_signature_is_400(client):
    payload = event_payload("account.updated", {"id": "acct_x", "object": "account"})

    response = await client.post(
        "/webhook",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload, secret="whsec_wrong")},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_webhook_handler_failure_is_500(client):
    payload = event_payload(
        "checkout.session.completed",
        {
            "id": "cs_1",
            "object": "checkout.session",
            "metadata": {"productId": "prod_001", "stripeAccountId": "acct_x", "platformFee": "oops"},
        },
    )

    response = await client.post(
        "/webhook", content=payload, headers={"Stripe-Signature": sign_payload(payload)},
    )

    assert response.status_code == 500
    assert response.json()["success"] is False


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_seller_can_sell_once_webhook_enables_charges(client):
    """create account -> checkout rejected -> account.updated -> checkout succeeds."""
    account_id = "acct_u1"

    with (
        patch("stripe.Account.create", return_value=mock_account(account_id)),
        patch("stripe.AccountLink.create", return_value=mock_account_link()),
    ):
        created = await client.post(
            "/api/stripe/connect/create-account", json={"uid": "u1", "email": "e@x.com"},
        )
    assert created.status_code == 200
    assert created.json()["accountId"] == account_id

    checkout_body = {"productId": "prod_001", "stripeAccountId": account_id}

    with (
        patch("stripe.Account.retrieve", return_value=mock_account(account_id, charges_enabled=False)),
        patch("stripe.checkout.Session.create") as mock_session,
    ):
        rejected = await client.post("/api/payments/create-checkout-session", json=checkout_body)

    assert rejected.status_code == 400
    assert rejected.json()["success"] is False
    assert "onboarding" in rejected.json()["message"]
    mock_session.assert_not_called()

    payload = event_payload(
        "account.updated",
        {
            "id": account_id,
            "object": "account",
            "charges_enabled": True,
            "details_submitted": True,
            "payouts_enabled": True,
        },
    )
    webhook = await client.post(
        "/webhook", content=payload, headers={"Stripe-Signature": sign_payload(payload)},
    )
    assert webhook.status_code == 200
    assert webhook.json() == {"received": True}

    local = await client.get("/api/stripe/connect/accounts/u1")
    assert local.json()["chargesEnabled"] is True

    live = mock_account(account_id, charges_enabled=True, details_submitted=True, payouts_enabled=True)
    with (
        patch("stripe.Account.retrieve", return_value=live),
        patch("stripe.checkout.Session.create", return_value=mock_checkout_session()),
    ):
        accepted = await client.post("/api/payments/create-checkout-session", json=checkout_body)

    assert accepted.status_code == 200
    body = accepted.json()
    assert body["success"] is True
    assert body["checkoutUrl"] == "https://checkout.stripe.com/c/pay/cs_test_123"
    assert body["fees"]["platformFeeAmount"] == 990
