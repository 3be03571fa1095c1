"""Hosted Stripe Connect onboarding endpoints -- /api/stripe/connect/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from connectpay.api.dependencies import get_account_manager
from connectpay.services.connect_service import (
    AccountRecordResponse,
    AccountStatusResponse,
    ConnectedAccountManager,
    CreateAccountRequest,
    CreateAccountResponse,
    OnboardingLinkResponse,
)

router = APIRouter(prefix="/api/stripe/connect", tags=["stripe-connect"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/create-account", response_model=CreateAccountResponse)
async def create_account(
    body: CreateAccountRequest,
    manager: ConnectedAccountManager = Depends(get_account_manager),
):
    """Create a Standard connected account and return its onboarding link."""
    return await manager.create_account(
        email=body.email,
        uid=body.uid,
        country=body.country,
        business_type=body.business_type,
        name=body.name,
        phone=body.phone,
    )


@router.get("/status/{account_id}", response_model=AccountStatusResponse)
async def account_status(
    account_id: str,
    manager: ConnectedAccountManager = Depends(get_account_manager),
):
    """Live onboarding status of a connected account."""
    return await manager.get_status(account_id)


@router.post("/refresh-onboarding/{uid}", response_model=OnboardingLinkResponse)
async def refresh_onboarding(
    uid: str,
    manager: ConnectedAccountManager = Depends(get_account_manager),
):
    """Issue a fresh onboarding link for a user who has not finished onboarding."""
    return await manager.refresh_onboarding_link(uid)


@router.get("/accounts/{uid}", response_model=AccountRecordResponse)
async def local_account(
    uid: str,
    manager: ConnectedAccountManager = Depends(get_account_manager),
):
    """Locally cached account record, as last reconciled from webhooks."""
    return manager.get_local_record(uid)
