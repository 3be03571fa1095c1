"""Checkout, payment intent and catalog endpoints -- /api/payments/*."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from connectpay.api.dependencies import get_checkout_engine
from connectpay.services.payment_service import (
    AddProductRequest,
    AddProductResponse,
    CheckoutEngine,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    PaymentHistoryResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    ProductListResponse,
    TransactionStatusResponse,
)

router = APIRouter(prefix="/api/payments", tags=["payments"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    body: CheckoutSessionRequest,
    engine: CheckoutEngine = Depends(get_checkout_engine),
):
    """Create a hosted Checkout Session paying out to a connected account."""
    return await engine.create_checkout_session(
        body.product_id,
        body.stripe_account_id,
        body.quantity,
        body.success_url,
        body.cancel_url,
        name=body.name,
        price=body.price,
        description=body.description,
        images=body.image,
    )


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    body: PaymentIntentRequest,
    engine: CheckoutEngine = Depends(get_checkout_engine),
):
    """Create a PaymentIntent for client-side confirmation."""
    return await engine.create_payment_intent(
        body.product_id,
        body.stripe_account_id,
        body.quantity,
        amount=body.amount,
        customer_id=body.customer_id,
        currency=body.currency,
    )


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    body: ConfirmPaymentRequest,
    engine: CheckoutEngine = Depends(get_checkout_engine),
):
    return await engine.confirm_payment(body.payment_intent_id, body.payment_method_id)


@router.get("/status", response_model=TransactionStatusResponse)
async def payment_status(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    payment_intent_id: Optional[str] = Query(default=None, alias="paymentIntentId"),
    engine: CheckoutEngine = Depends(get_checkout_engine),
):
    """Status of a checkout session or payment intent (exactly one id)."""
    return await engine.check_status(session_id=session_id, payment_intent_id=payment_intent_id)


@router.get("/status/{session_id}", response_model=TransactionStatusResponse)
async def session_status(
    session_id: str,
    engine: CheckoutEngine = Depends(get_checkout_engine),
):
    return await engine.check_status(session_id=session_id)


@router.get("/products", response_model=ProductListResponse)
async def list_products(engine: CheckoutEngine = Depends(get_checkout_engine)):
    return engine.list_products()


@router.post("/add-product", response_model=AddProductResponse)
async def add_product(
    body: AddProductRequest,
    engine: CheckoutEngine = Depends(get_checkout_engine),
):
    """Add a product to the in-memory catalog (price in major units)."""
    return engine.add_product(
        name=body.name,
        price=body.price,
        description=body.description,
        images=body.images,
        product_id=body.id,
    )


@router.get("/history", response_model=PaymentHistoryResponse)
async def payment_history(engine: CheckoutEngine = Depends(get_checkout_engine)):
    """Completed checkouts recorded from webhooks."""
    return engine.list_payments()
