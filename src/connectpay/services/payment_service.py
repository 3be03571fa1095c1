"""Stripe payment integration -- checkout sessions, payment intents and the catalog.

Every charge is a destination charge: Stripe routes the platform fee to us and
transfers the remainder to the seller's connected account.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union

import structlog

from connectpay.config import Settings
from connectpay.errors import NotFoundError, UpstreamError, ValidationError
from connectpay.integrations.stripe_gateway import StripeGateway, to_plain
from connectpay.models import Product, TransactionState
from connectpay.repositories import PaymentLog, ProductCatalog
from connectpay.schemas import ApiModel, Envelope
from connectpay.services.audit_logger import AuditLogger
from connectpay.services.connect_service import validate_account_id
from connectpay.services.fees import FeeSplit, compute_fee_split, to_minor_units

log = structlog.get_logger()

DEFAULT_PRODUCT_DESCRIPTION = "Available for purchase"

# Stripe accepts expires_at between 30 minutes and 24 hours out; the floor
# carries an extra minute for request latency.
CHECKOUT_MIN_TTL_SECONDS = 31 * 60
CHECKOUT_MAX_TTL_SECONDS = 24 * 60 * 60


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class CheckoutSessionRequest(ApiModel):
    product_id: str
    stripe_account_id: str
    quantity: int = 1
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    # Ad-hoc product (price in major units); used instead of the catalog
    name: Optional[str] = None
    price: Optional[Decimal] = None
    description: Optional[str] = None
    image: Union[str, list[str], None] = None


class PaymentIntentRequest(ApiModel):
    product_id: str
    stripe_account_id: str
    quantity: int = 1
    amount: Optional[int] = None  # ad-hoc unit amount in minor units
    currency: Optional[str] = None
    customer_id: Optional[str] = None


class ConfirmPaymentRequest(ApiModel):
    payment_intent_id: str
    payment_method_id: str


class AddProductRequest(ApiModel):
    name: str
    price: Decimal
    id: Optional[str] = None
    description: Optional[str] = None
    images: list[str] = []


class FeesResponse(ApiModel):
    total_amount: int
    platform_fee_amount: int
    seller_amount: int
    fee_percent: float


class CheckoutSessionResponse(Envelope):
    session_id: str
    checkout_url: str
    expires_at: datetime
    fees: FeesResponse


class PaymentIntentResponse(Envelope):
    client_secret: str
    payment_intent_id: str
    amount: int
    currency: str
    fees: FeesResponse


class ConfirmPaymentResponse(Envelope):
    payment_intent_id: str
    status: str
    state: TransactionState
    client_secret: Optional[str] = None
    next_action: Optional[dict[str, Any]] = None


class TransactionStatusResponse(Envelope):
    kind: str
    id: str
    status: Optional[str] = None
    state: TransactionState
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    customer: Optional[str] = None
    payment_intent: Optional[str] = None
    metadata: dict[str, Any] = {}


class ProductModel(ApiModel):
    id: str
    name: str
    description: str
    price: int
    images: list[str]

    model_config = {"from_attributes": True}


class ProductListResponse(Envelope):
    products: list[ProductModel]


class AddProductResponse(Envelope):
    product: ProductModel


class PaymentRecordModel(ApiModel):
    session_id: str
    payment_intent_id: Optional[str] = None
    stripe_account_id: str
    product_id: str
    amount_total: int
    currency: str
    platform_fee: Optional[int] = None
    payment_status: str
    customer_email: Optional[str] = None
    recorded_at: datetime

    model_config = {"from_attributes": True}


class PaymentHistoryResponse(Envelope):
    payments: list[PaymentRecordModel]


# ---------------------------------------------------------------------------
# Status normalization
# ---------------------------------------------------------------------------

_INTENT_STATES = {
    "succeeded": TransactionState.SUCCEEDED,
    "requires_action": TransactionState.REQUIRES_ACTION,
    "canceled": TransactionState.FAILED,
}


def payment_intent_state(intent) -> TransactionState:
    """Normalize a PaymentIntent status onto :class:`TransactionState`."""
    if intent.status == "requires_payment_method" and intent.last_payment_error:
        return TransactionState.FAILED
    return _INTENT_STATES.get(intent.status, TransactionState.CREATED)


def checkout_session_state(session) -> TransactionState:
    if session.payment_status in ("paid", "no_payment_required"):
        return TransactionState.SUCCEEDED
    if session.status == "expired":
        return TransactionState.FAILED
    return TransactionState.CREATED


def _clean_images(image: Union[str, list[str], None]) -> list[str]:
    if image is None:
        return []
    if isinstance(image, str):
        image = [image]
    return [url.strip() for url in image if isinstance(url, str) and url.strip()]


def checkout_expiry(ttl_minutes: int) -> int:
    """Unix time to send as ``expires_at``, clamped to Stripe's window."""
    seconds = min(max(ttl_minutes * 60, CHECKOUT_MIN_TTL_SECONDS), CHECKOUT_MAX_TTL_SECONDS)
    return int(time.time()) + seconds


def _fees_response(split: FeeSplit) -> FeesResponse:
    return FeesResponse(
        total_amount=split.total_amount,
        platform_fee_amount=split.platform_fee_amount,
        seller_amount=split.seller_amount,
        fee_percent=split.fee_percent,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class CheckoutEngine:
    """Creates destination charges against connected accounts."""

    def __init__(
        self,
        gateway: StripeGateway,
        catalog: ProductCatalog,
        payment_log: PaymentLog,
        settings: Settings,
        audit: AuditLogger | None = None,
    ) -> None:
        self._gateway = gateway
        self._catalog = catalog
        self._payment_log = payment_log
        self._settings = settings
        self._audit = audit or AuditLogger()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_product(
        self,
        product_id: str,
        name: str | None = None,
        price: Any = None,
        description: str | None = None,
        images: Union[str, list[str], None] = None,
    ) -> Product:
        """Catalog lookup, or an ad-hoc product when a price is supplied."""
        if price is not None:
            if not name:
                raise ValidationError("name and price are required for ad-hoc products")
            return Product(
                id=product_id,
                name=name,
                description=description or DEFAULT_PRODUCT_DESCRIPTION,
                price=to_minor_units(price),
                images=_clean_images(images),
            )

        product = self._catalog.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def _require_charges_enabled(self, stripe_account_id: str) -> None:
        """Live check that the seller may accept charges."""
        account = await self._gateway.retrieve_account(stripe_account_id)
        if not account.charges_enabled:
            raise ValidationError(
                "Stripe account cannot receive payments yet: "
                "onboarding has not been completed"
            )

    @staticmethod
    def _require_ids(product_id: str, stripe_account_id: str) -> None:
        if not product_id or not stripe_account_id:
            raise ValidationError("productId and stripeAccountId are required")
        validate_account_id(stripe_account_id)

    # ------------------------------------------------------------------
    # Hosted checkout
    # ------------------------------------------------------------------

    async def create_checkout_session(
        self,
        product_id: str,
        stripe_account_id: str,
        quantity: int = 1,
        success_url: str | None = None,
        cancel_url: str | None = None,
        *,
        name: str | None = None,
        price: Any = None,
        description: str | None = None,
        images: Union[str, list[str], None] = None,
    ) -> CheckoutSessionResponse:
        """Create a hosted Checkout Session that pays out to the seller.

        Raises ValidationError without touching Stripe's checkout API when the
        seller's account has ``charges_enabled = false``.
        """
        self._require_ids(product_id, stripe_account_id)
        product = self._resolve_product(product_id, name, price, description, images)
        split = compute_fee_split(
            product.price, quantity, self._settings.PLATFORM_FEE_PERCENT,
        )
        await self._require_charges_enabled(stripe_account_id)

        frontend = self._settings.FRONTEND_APP_URL.rstrip("/")
        session = await self._gateway.create_checkout_session(
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": self._settings.DEFAULT_CURRENCY,
                        "product_data": {
                            "name": product.name,
                            "description": product.description or DEFAULT_PRODUCT_DESCRIPTION,
                            "images": product.images,
                        },
                        "unit_amount": product.price,
                    },
                    "quantity": quantity,
                }
            ],
            mode="payment",
            success_url=success_url or f"{frontend}/Confirmation_Payment",
            cancel_url=cancel_url or f"{frontend}/Cancel_Payment",
            payment_intent_data={
                "application_fee_amount": split.platform_fee_amount,
                "transfer_data": {"destination": stripe_account_id},
            },
            expires_at=checkout_expiry(self._settings.CHECKOUT_SESSION_TTL_MINUTES),
            metadata={
                "productId": product.id,
                "stripeAccountId": stripe_account_id,
                "platformFee": str(split.platform_fee_amount),
            },
        )

        self._audit.log_payment_event(
            "checkout_session_created",
            session.id,
            stripe_account_id=stripe_account_id,
            amount=split.total_amount,
            platform_fee=split.platform_fee_amount,
        )
        return CheckoutSessionResponse(
            session_id=session.id,
            checkout_url=session.url,
            expires_at=datetime.fromtimestamp(session.expires_at, tz=timezone.utc),
            fees=_fees_response(split),
        )

    # ------------------------------------------------------------------
    # Direct payment intents
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self,
        product_id: str,
        stripe_account_id: str,
        quantity: int = 1,
        amount: int | None = None,
        customer_id: str | None = None,
        currency: str | None = None,
    ) -> PaymentIntentResponse:
        """Create a PaymentIntent to be confirmed client-side with its secret."""
        self._require_ids(product_id, stripe_account_id)
        if amount is not None:
            unit_amount = amount
        else:
            unit_amount = self._resolve_product(product_id).price
        split = compute_fee_split(unit_amount, quantity, self._settings.PLATFORM_FEE_PERCENT)
        await self._require_charges_enabled(stripe_account_id)

        currency = (currency or self._settings.DEFAULT_CURRENCY).lower()
        params: dict[str, Any] = {
            "amount": split.total_amount,
            "currency": currency,
            "payment_method_types": ["card"],
            "application_fee_amount": split.platform_fee_amount,
            "transfer_data": {"destination": stripe_account_id},
            "metadata": {
                "productId": product_id,
                "stripeAccountId": stripe_account_id,
                "platformFee": str(split.platform_fee_amount),
            },
        }
        if customer_id:
            params["customer"] = customer_id
            params["setup_future_usage"] = "on_session"

        intent = await self._gateway.create_payment_intent(**params)

        self._audit.log_payment_event(
            "payment_intent_created",
            intent.id,
            stripe_account_id=stripe_account_id,
            amount=split.total_amount,
            platform_fee=split.platform_fee_amount,
            status=intent.status,
        )
        return PaymentIntentResponse(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            amount=split.total_amount,
            currency=currency,
            fees=_fees_response(split),
        )

    async def confirm_payment(
        self,
        payment_intent_id: str,
        payment_method_id: str,
    ) -> ConfirmPaymentResponse:
        """Confirm a PaymentIntent with a payment method.

        ``succeeded`` is terminal.  ``requires_action`` means the client must
        complete authentication (3-D Secure) and confirm again.  Any other
        status is reported as a failed payment.
        """
        if not payment_intent_id or not payment_method_id:
            raise ValidationError("paymentIntentId and paymentMethodId are required")

        intent = await self._gateway.confirm_payment_intent(payment_intent_id, payment_method_id)
        state = payment_intent_state(intent)
        self._audit.log_payment_event(
            "payment_confirmed", intent.id, status=intent.status,
        )

        if state is TransactionState.SUCCEEDED:
            return ConfirmPaymentResponse(
                payment_intent_id=intent.id,
                status=intent.status,
                state=state,
            )
        if state is TransactionState.REQUIRES_ACTION:
            return ConfirmPaymentResponse(
                payment_intent_id=intent.id,
                status=intent.status,
                state=state,
                client_secret=intent.client_secret,
                next_action=to_plain(intent.next_action) or None,
            )

        error = to_plain(intent.last_payment_error)
        raise UpstreamError(
            error.get("message") or f"Payment failed with status {intent.status}",
            status_code=402,
            code=error.get("code"),
            decline_code=error.get("decline_code"),
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def check_status(
        self,
        session_id: str | None = None,
        payment_intent_id: str | None = None,
    ) -> TransactionStatusResponse:
        """Normalized status of either a checkout session or a payment intent."""
        if bool(session_id) == bool(payment_intent_id):
            raise ValidationError("Provide exactly one of sessionId or paymentIntentId")

        if session_id:
            session = await self._gateway.retrieve_checkout_session(session_id)
            return TransactionStatusResponse(
                kind="checkout_session",
                id=session.id,
                status=session.payment_status,
                state=checkout_session_state(session),
                amount_total=session.amount_total,
                currency=session.currency,
                customer=session.customer,
                payment_intent=session.payment_intent,
                metadata=to_plain(session.metadata),
            )

        intent = await self._gateway.retrieve_payment_intent(payment_intent_id)
        return TransactionStatusResponse(
            kind="payment_intent",
            id=intent.id,
            status=intent.status,
            state=payment_intent_state(intent),
            amount_total=intent.amount,
            currency=intent.currency,
            customer=intent.customer,
            payment_intent=intent.id,
            metadata=to_plain(intent.metadata),
        )

    # ------------------------------------------------------------------
    # Catalog / payment log
    # ------------------------------------------------------------------

    def list_products(self) -> ProductListResponse:
        return ProductListResponse(
            products=[ProductModel.model_validate(p) for p in self._catalog.list()]
        )

    def add_product(
        self,
        name: str,
        price: Any,
        description: str | None = None,
        images: list[str] | None = None,
        product_id: str | None = None,
    ) -> AddProductResponse:
        if not name or not name.strip():
            raise ValidationError("Name and price are required")
        images = images or []
        if any(not isinstance(url, str) or not url.strip() for url in images):
            raise ValidationError("Image URLs must be non-empty strings")

        product = Product(
            id=product_id or f"prod_{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            description=description or "",
            price=to_minor_units(price),
            images=list(images),
        )
        self._catalog.add(product)
        log.info("product_added", product_id=product.id, price=product.price)
        return AddProductResponse(product=ProductModel.model_validate(product))

    def list_payments(self) -> PaymentHistoryResponse:
        return PaymentHistoryResponse(
            payments=[PaymentRecordModel.model_validate(r) for r in self._payment_log.list()]
        )
