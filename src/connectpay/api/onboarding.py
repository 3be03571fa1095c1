"""API-driven onboarding endpoints for custom accounts -- /api/stripe/onboarding/*."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from connectpay.api.dependencies import get_onboarding_flow
from connectpay.services.onboarding_service import (
    AcceptTermsRequest,
    BankAccountRequest,
    BasicInfoRequest,
    CreateCustomAccountRequest,
    CustomAccountResponse,
    CustomOnboardingFlow,
    OnboardingStepResponse,
    PersonalInfoRequest,
    ProgressResponse,
    RequirementsResponse,
)

router = APIRouter(prefix="/api/stripe/onboarding", tags=["stripe-onboarding"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/create-custom-account", response_model=CustomAccountResponse)
async def create_custom_account(
    body: CreateCustomAccountRequest,
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    """Create a Custom connected account for API-based onboarding."""
    return await flow.create_custom_account(
        email=body.email,
        uid=body.uid,
        country=body.country,
        business_type=body.business_type,
        name=body.name,
        phone=body.phone,
    )


@router.put("/accounts/{account_id}/basic-info", response_model=OnboardingStepResponse)
async def basic_info(
    account_id: str,
    body: BasicInfoRequest,
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    return await flow.update_basic_info(account_id, body)


@router.put("/accounts/{account_id}/personal-info", response_model=OnboardingStepResponse)
async def personal_info(
    account_id: str,
    body: PersonalInfoRequest,
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    return await flow.update_personal_info(account_id, body)


@router.post("/accounts/{account_id}/bank-account", response_model=OnboardingStepResponse)
async def bank_account(
    account_id: str,
    body: BankAccountRequest,
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    return await flow.add_bank_account(account_id, body)


@router.post("/accounts/{account_id}/accept-terms", response_model=OnboardingStepResponse)
async def accept_terms(
    account_id: str,
    request: Request,
    body: Optional[AcceptTermsRequest] = None,
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    """Record terms-of-service acceptance.

    IP address and user agent default to the calling client's when the body
    does not supply them.
    """
    body = body or AcceptTermsRequest()
    ip_address = body.ip_address or (request.client.host if request.client else None)
    user_agent = body.user_agent or request.headers.get("user-agent")
    return await flow.accept_terms(account_id, ip_address, user_agent)


@router.post("/accounts/{account_id}/upload-document", response_model=OnboardingStepResponse)
async def upload_document(
    account_id: str,
    document: UploadFile = File(...),
    document_type: str = Form(...),
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    """Upload the front or back of an identity document (image or PDF)."""
    data = await document.read()
    return await flow.upload_document(
        account_id,
        document_type=document_type,
        data=data,
        filename=document.filename or "document",
        content_type=document.content_type,
    )


@router.get("/accounts/{account_id}/requirements", response_model=RequirementsResponse)
async def requirements(
    account_id: str,
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    return await flow.get_requirements(account_id)


@router.get("/accounts/{account_id}/progress", response_model=ProgressResponse)
async def progress(
    account_id: str,
    flow: CustomOnboardingFlow = Depends(get_onboarding_flow),
):
    return await flow.get_progress(account_id)
