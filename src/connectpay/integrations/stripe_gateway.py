"""Stripe boundary adapter for connected accounts, checkout and webhooks.

Every call into the Stripe SDK goes through :class:`StripeGateway`, which
translates Stripe's exception hierarchy into the ``connectpay.errors``
taxonomy in one place.  Services never catch ``stripe.*`` exceptions.

Usage:
    from connectpay.integrations.stripe_gateway import StripeGateway

    gateway = StripeGateway(secret_key="sk_test_...", webhook_secret="whsec_...")
    account = await gateway.retrieve_account("acct_123")
"""

from __future__ import annotations

import enum
import io
from contextlib import contextmanager
from typing import Any, Iterator

import stripe
import structlog

from connectpay.errors import (
    NotFoundError,
    PaymentsError,
    SignatureError,
    UpstreamError,
    ValidationError,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

class ProviderErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"
    CARD_DECLINED = "card_declined"
    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    CONNECTION = "connection"
    PROVIDER = "provider"


def classify_stripe_error(exc: stripe.StripeError) -> ProviderErrorKind:
    """Map a Stripe SDK exception onto a :class:`ProviderErrorKind`."""
    if isinstance(exc, stripe.CardError):
        return ProviderErrorKind.CARD_DECLINED
    if isinstance(exc, stripe.InvalidRequestError):
        if exc.code == "resource_missing":
            return ProviderErrorKind.NOT_FOUND
        return ProviderErrorKind.INVALID_REQUEST
    if isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
        return ProviderErrorKind.AUTHENTICATION
    if isinstance(exc, stripe.RateLimitError):
        return ProviderErrorKind.RATE_LIMITED
    if isinstance(exc, stripe.APIConnectionError):
        return ProviderErrorKind.CONNECTION
    return ProviderErrorKind.PROVIDER


_STATUS_BY_KIND = {
    ProviderErrorKind.INVALID_REQUEST: 400,
    ProviderErrorKind.CARD_DECLINED: 402,
    ProviderErrorKind.AUTHENTICATION: 502,
    ProviderErrorKind.RATE_LIMITED: 503,
    ProviderErrorKind.CONNECTION: 502,
    ProviderErrorKind.PROVIDER: 502,
}


def to_plain(obj: Any) -> dict[str, Any]:
    """Plain ``dict`` copy of a Stripe object; ``{}`` for ``None``.

    ``StripeObject`` is not a ``dict`` in current SDK releases, so anything
    read with ``.get`` or passed on as a mapping goes through here first.
    """
    if obj is None:
        return {}
    return obj.to_dict()


def translate_stripe_error(exc: stripe.StripeError) -> PaymentsError:
    """Build the taxonomy error for a Stripe SDK exception."""
    kind = classify_stripe_error(exc)
    message = exc.user_message or str(exc) or "Stripe request failed"
    if kind is ProviderErrorKind.NOT_FOUND:
        return NotFoundError(message, code=exc.code)
    # decline_code only lives on the error object parsed from the response body
    error_object = to_plain(exc.error)
    return UpstreamError(
        message,
        status_code=_STATUS_BY_KIND[kind],
        code=exc.code,
        decline_code=error_object.get("decline_code"),
    )


@contextmanager
def _provider_call(operation: str) -> Iterator[None]:
    try:
        yield
    except stripe.StripeError as exc:
        error = translate_stripe_error(exc)
        log.warning(
            "stripe_call_failed",
            operation=operation,
            status_code=error.status_code,
            code=error.code,
            error=error.message,
        )
        raise error from exc


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class StripeGateway:
    """Thin async facade over the Stripe SDK calls this service needs."""

    def __init__(self, secret_key: str, webhook_secret: str) -> None:
        stripe.api_key = secret_key
        self._webhook_secret = webhook_secret

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def create_account(self, **params: Any) -> stripe.Account:
        with _provider_call("accounts.create"):
            return stripe.Account.create(**params)

    async def retrieve_account(self, account_id: str) -> stripe.Account:
        with _provider_call("accounts.retrieve"):
            return stripe.Account.retrieve(account_id)

    async def update_account(self, account_id: str, **params: Any) -> stripe.Account:
        with _provider_call("accounts.update"):
            return stripe.Account.modify(account_id, **params)

    async def create_external_account(
        self,
        account_id: str,
        external_account: dict,
    ) -> Any:
        with _provider_call("accounts.createExternalAccount"):
            return stripe.Account.create_external_account(
                account_id,
                external_account=external_account,
            )

    async def create_account_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> stripe.AccountLink:
        with _provider_call("accountLinks.create"):
            return stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )

    # ------------------------------------------------------------------
    # Checkout / payment intents
    # ------------------------------------------------------------------

    async def create_checkout_session(self, **params: Any) -> stripe.checkout.Session:
        with _provider_call("checkout.sessions.create"):
            return stripe.checkout.Session.create(**params)

    async def retrieve_checkout_session(self, session_id: str) -> stripe.checkout.Session:
        with _provider_call("checkout.sessions.retrieve"):
            return stripe.checkout.Session.retrieve(session_id)

    async def create_payment_intent(self, **params: Any) -> stripe.PaymentIntent:
        with _provider_call("paymentIntents.create"):
            return stripe.PaymentIntent.create(**params)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> stripe.PaymentIntent:
        with _provider_call("paymentIntents.retrieve"):
            return stripe.PaymentIntent.retrieve(payment_intent_id)

    async def confirm_payment_intent(
        self,
        payment_intent_id: str,
        payment_method_id: str,
    ) -> stripe.PaymentIntent:
        with _provider_call("paymentIntents.confirm"):
            return stripe.PaymentIntent.confirm(
                payment_intent_id,
                payment_method=payment_method_id,
            )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def upload_identity_document(
        self,
        account_id: str,
        data: bytes,
        filename: str,
    ) -> stripe.File:
        """Upload an identity document on behalf of the connected account."""
        fp = io.BytesIO(data)
        fp.name = filename
        with _provider_call("files.create"):
            return stripe.File.create(
                purpose="identity_document",
                file=fp,
                stripe_account=account_id,
            )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def construct_event(self, payload: bytes, sig_header: str | None) -> dict[str, Any]:
        """Verify *payload* against the signature header and parse it.

        The signature is checked over the raw bytes before the body is
        decoded as JSON.  The event comes back as a plain ``dict``.
        """
        if not sig_header:
            raise SignatureError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(
                payload,
                sig_header,
                self._webhook_secret,
            )
        except stripe.SignatureVerificationError as exc:
            raise SignatureError(f"Webhook signature verification failed: {exc}") from exc
        except ValueError as exc:
            raise ValidationError(f"Invalid webhook payload: {exc}") from exc
        return to_plain(event)
