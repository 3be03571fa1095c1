"""API-driven onboarding for custom connected accounts.

Sellers submit business info, personal info, a bank account and terms
acceptance through our API instead of Stripe's hosted flow.  The step a
seller is on is always derived from the account's ``currently_due``
requirements as reported by Stripe -- callers cannot assert it.
"""

from __future__ import annotations

import time
from typing import Any, Iterable, Optional

import structlog
from pydantic import AliasChoices, Field

from connectpay.config import Settings
from connectpay.errors import ValidationError
from connectpay.integrations.stripe_gateway import StripeGateway, to_plain
from connectpay.models import ONBOARDING_STEPS, OnboardingSession, OnboardingStep
from connectpay.repositories import OnboardingSessionStore
from connectpay.schemas import AccountStatusFlags, ApiModel, Envelope, status_flags
from connectpay.services.audit_logger import AuditLogger
from connectpay.services.connect_service import requirements_snapshot, validate_account_id
from connectpay.services.fees import percentage

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Step inference
# ---------------------------------------------------------------------------

# First match wins.
STEP_PRIORITY: tuple[tuple[str, OnboardingStep], ...] = (
    ("tos_acceptance", OnboardingStep.TERMS_ACCEPTANCE),
    ("external_account", OnboardingStep.BANK_ACCOUNT),
    ("individual", OnboardingStep.PERSONAL_INFO),
    ("business_profile", OnboardingStep.BASIC_INFO),
)

# Requirement category checked to decide whether each step is done.
STEP_CATEGORIES: dict[OnboardingStep, str] = {
    step: category for category, step in STEP_PRIORITY
}


def _is_due(category: str, requirements: Iterable[str]) -> bool:
    return any(category in requirement for requirement in requirements)


def infer_step(requirements: Iterable[str]) -> OnboardingStep:
    """Return the outstanding step for a ``currently_due`` requirement list."""
    requirements = list(requirements)
    for category, step in STEP_PRIORITY:
        if _is_due(category, requirements):
            return step
    return OnboardingStep.COMPLETE


def completed_steps(requirements: Iterable[str]) -> list[OnboardingStep]:
    """Steps whose requirement category no longer appears in *requirements*."""
    requirements = list(requirements)
    return [
        step for step in ONBOARDING_STEPS
        if not _is_due(STEP_CATEGORIES[step], requirements)
    ]


def _currently_due(account) -> list[str]:
    requirements = account.requirements
    if requirements is None:
        return []
    return list(requirements.currently_due or [])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class CreateCustomAccountRequest(ApiModel):
    email: str
    uid: str
    country: Optional[str] = None
    business_type: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class BasicInfoRequest(ApiModel):
    business_name: Optional[str] = None
    business_url: Optional[str] = None
    product_description: Optional[str] = None
    support_phone: Optional[str] = None
    support_email: Optional[str] = None
    business_type: Optional[str] = None


class PersonalInfoRequest(ApiModel):
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    dob_day: int = Field(ge=1, le=31)
    dob_month: int = Field(ge=1, le=12)
    dob_year: int = Field(ge=1900)
    id_number: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("id_number", "idNumber", "cpf"),
    )
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None


class BankAccountRequest(ApiModel):
    account_holder_name: str
    account_holder_type: str = "individual"
    routing_number: str
    account_number: str


class AcceptTermsRequest(ApiModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class OnboardingStepResponse(Envelope):
    account_id: str
    requirements: dict[str, Any]
    current_step: OnboardingStep
    next_step: OnboardingStep
    status: AccountStatusFlags
    external_account_id: Optional[str] = None
    file_id: Optional[str] = None


class CustomAccountResponse(Envelope):
    account_id: str
    onboarding_steps: dict[str, Any]
    current_step: OnboardingStep
    status: AccountStatusFlags


class RequirementsResponse(Envelope):
    account_id: str
    current_step: OnboardingStep
    requirements: dict[str, Any]
    status: AccountStatusFlags
    capabilities: dict[str, Any] = {}


class ProgressSummary(ApiModel):
    completion_percentage: int
    completed_steps: int
    total_steps: int
    current_step: OnboardingStep


class ProgressStatus(AccountStatusFlags):
    is_complete: bool


class ProgressResponse(Envelope):
    account_id: str
    progress: ProgressSummary
    requirements: dict[str, Any]
    status: ProgressStatus


DOCUMENT_SLOTS = {"identity_front": "front", "identity_back": "back"}


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class CustomOnboardingFlow:
    """Step-by-step onboarding of a custom connected account."""

    def __init__(
        self,
        gateway: StripeGateway,
        sessions: OnboardingSessionStore,
        settings: Settings,
        audit: AuditLogger | None = None,
    ) -> None:
        self._gateway = gateway
        self._sessions = sessions
        self._settings = settings
        self._audit = audit or AuditLogger()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _step_response(
        self,
        account,
        submitted: OnboardingStep | None = None,
        fields: dict[str, Any] | None = None,
        **extra: Any,
    ) -> OnboardingStepResponse:
        step = infer_step(_currently_due(account))
        session = self._sessions.find_by_account(account.id)
        if session is not None and submitted is not None:
            session.record(submitted, fields or {}, step)
            self._sessions.save(session)

        log.info(
            "onboarding_step_processed",
            account_id=account.id,
            submitted=submitted.value if submitted else None,
            current_step=step.value,
        )
        return OnboardingStepResponse(
            account_id=account.id,
            requirements=requirements_snapshot(account),
            current_step=step,
            next_step=step,
            status=status_flags(account),
            **extra,
        )

    # ------------------------------------------------------------------
    # Account creation
    # ------------------------------------------------------------------

    async def create_custom_account(
        self,
        email: str,
        uid: str,
        country: str | None = None,
        business_type: str | None = None,
        name: str | None = None,
        phone: str | None = None,
    ) -> CustomAccountResponse:
        if not email or not email.strip() or not uid or not uid.strip():
            raise ValidationError("Email and user ID are required")

        account = await self._gateway.create_account(
            type="custom",
            country=country or self._settings.DEFAULT_COUNTRY,
            business_type=business_type or self._settings.DEFAULT_BUSINESS_TYPE,
            email=email,
            metadata={
                "user_id": uid,
                "app_name": self._settings.APP_NAME,
                "onboarding_type": "custom",
            },
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
        )

        step = infer_step(_currently_due(account))
        session = OnboardingSession(
            uid=uid,
            account_id=account.id,
            email=email,
            current_step=step,
        )
        if name or phone:
            session.collected["contact"] = {"name": name, "phone": phone}
        self._sessions.save(session)
        self._audit.log_account_event("created", account.id, uid=uid, account_type="custom")

        return CustomAccountResponse(
            account_id=account.id,
            onboarding_steps=requirements_snapshot(account),
            current_step=step,
            status=status_flags(account),
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def update_basic_info(
        self,
        account_id: str,
        body: BasicInfoRequest,
    ) -> OnboardingStepResponse:
        validate_account_id(account_id)
        params: dict[str, Any] = {
            "business_profile": {
                "name": body.business_name,
                "url": body.business_url,
                "product_description": body.product_description,
                "support_phone": body.support_phone,
                "support_email": body.support_email,
            }
        }
        if body.business_type:
            params["business_type"] = body.business_type

        account = await self._gateway.update_account(account_id, **params)
        return self._step_response(
            account, OnboardingStep.BASIC_INFO, body.model_dump(),
        )

    async def update_personal_info(
        self,
        account_id: str,
        body: PersonalInfoRequest,
    ) -> OnboardingStepResponse:
        validate_account_id(account_id)
        account = await self._gateway.update_account(
            account_id,
            individual={
                "first_name": body.first_name,
                "last_name": body.last_name,
                "email": body.email,
                "phone": body.phone,
                "dob": {
                    "day": body.dob_day,
                    "month": body.dob_month,
                    "year": body.dob_year,
                },
                "id_number": body.id_number,
                "address": {
                    "line1": body.address_line1,
                    "line2": body.address_line2,
                    "city": body.address_city,
                    "state": body.address_state,
                    "postal_code": body.address_postal_code,
                    "country": self._settings.DEFAULT_COUNTRY,
                },
            },
        )
        # The tax id is sent to Stripe only.
        collected = body.model_dump(exclude={"id_number"})
        return self._step_response(account, OnboardingStep.PERSONAL_INFO, collected)

    async def add_bank_account(
        self,
        account_id: str,
        body: BankAccountRequest,
    ) -> OnboardingStepResponse:
        validate_account_id(account_id)
        external_account = await self._gateway.create_external_account(
            account_id,
            {
                "object": "bank_account",
                "country": self._settings.DEFAULT_COUNTRY,
                "currency": self._settings.DEFAULT_CURRENCY,
                "account_holder_name": body.account_holder_name,
                "account_holder_type": body.account_holder_type,
                "routing_number": body.routing_number,
                "account_number": body.account_number,
            },
        )
        account = await self._gateway.retrieve_account(account_id)
        collected = {
            "account_holder_name": body.account_holder_name,
            "account_holder_type": body.account_holder_type,
            "last4": body.account_number[-4:],
        }
        return self._step_response(
            account,
            OnboardingStep.BANK_ACCOUNT,
            collected,
            external_account_id=external_account.id,
        )

    async def accept_terms(
        self,
        account_id: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> OnboardingStepResponse:
        validate_account_id(account_id)
        if not ip_address:
            raise ValidationError("The IP address of the accepting user is required")

        accepted_at = int(time.time())
        account = await self._gateway.update_account(
            account_id,
            tos_acceptance={
                "date": accepted_at,
                "ip": ip_address,
                "user_agent": user_agent,
            },
        )
        return self._step_response(
            account,
            OnboardingStep.TERMS_ACCEPTANCE,
            {"date": accepted_at, "ip": ip_address, "user_agent": user_agent},
        )

    async def upload_document(
        self,
        account_id: str,
        document_type: str,
        data: bytes,
        filename: str,
        content_type: str | None,
    ) -> OnboardingStepResponse:
        """Upload an identity document and attach it to the front/back slot."""
        validate_account_id(account_id)
        slot = DOCUMENT_SLOTS.get(document_type)
        if slot is None:
            raise ValidationError(
                "document_type must be one of: " + ", ".join(sorted(DOCUMENT_SLOTS))
            )
        if not data:
            raise ValidationError("No file was uploaded")
        if not content_type or not (
            content_type.startswith("image/") or content_type == "application/pdf"
        ):
            raise ValidationError("Only images and PDF files are accepted")
        if len(data) > self._settings.MAX_DOCUMENT_BYTES:
            raise ValidationError("File exceeds the maximum allowed size")

        file = await self._gateway.upload_identity_document(account_id, data, filename)
        account = await self._gateway.update_account(
            account_id,
            individual={"verification": {"document": {slot: file.id}}},
        )
        return self._step_response(
            account,
            None,
            file_id=file.id,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    async def get_requirements(self, account_id: str) -> RequirementsResponse:
        validate_account_id(account_id)
        account = await self._gateway.retrieve_account(account_id)
        return RequirementsResponse(
            account_id=account.id,
            current_step=infer_step(_currently_due(account)),
            requirements=requirements_snapshot(account),
            status=status_flags(account),
            capabilities=to_plain(account.capabilities),
        )

    async def get_progress(self, account_id: str) -> ProgressResponse:
        validate_account_id(account_id)
        account = await self._gateway.retrieve_account(account_id)

        done = len(completed_steps(_currently_due(account)))
        total = len(ONBOARDING_STEPS)
        current = ONBOARDING_STEPS[done] if done < total else OnboardingStep.COMPLETE
        flags = status_flags(account)
        snapshot = requirements_snapshot(account)

        return ProgressResponse(
            account_id=account.id,
            progress=ProgressSummary(
                completion_percentage=percentage(done, total),
                completed_steps=done,
                total_steps=total,
                current_step=current,
            ),
            requirements={
                "currently_due": snapshot["currently_due"],
                "past_due": snapshot["past_due"],
                "disabled_reason": snapshot["disabled_reason"],
            },
            status=ProgressStatus(
                **flags.model_dump(),
                is_complete=done == total and flags.details_submitted,
            ),
        )
