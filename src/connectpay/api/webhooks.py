"""Stripe webhook endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from connectpay.api.dependencies import get_webhook_reconciler
from connectpay.services.webhook_service import WebhookReconciler

router = APIRouter(tags=["webhooks"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Receive and process Stripe webhook events.

    Reads the raw request body and the Stripe-Signature header,
    then delegates to the reconciler for verification and handling.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    return await reconciler.handle(payload, sig_header)
