"""Connected account manager -- hosted (Stripe-managed) seller onboarding."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from connectpay.config import Settings
from connectpay.errors import ConflictError, NotFoundError, ValidationError
from connectpay.integrations.stripe_gateway import StripeGateway
from connectpay.models import AccountRecord
from connectpay.repositories import AccountDirectory
from connectpay.schemas import AccountStatusFlags, ApiModel, Envelope, status_flags
from connectpay.services.audit_logger import AuditLogger

log = structlog.get_logger()

ACCOUNT_ID_PREFIX = "acct_"


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class CreateAccountRequest(ApiModel):
    email: str
    uid: str
    country: Optional[str] = None
    business_type: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class CreateAccountResponse(Envelope):
    account_id: str
    onboarding_url: str
    status: AccountStatusFlags


class OnboardingLinkResponse(Envelope):
    account_id: str
    onboarding_url: str


class LiveAccountStatus(AccountStatusFlags):
    requirements: Optional[dict[str, Any]] = None


class AccountStatusResponse(Envelope):
    account_id: str
    status: LiveAccountStatus
    account_type: Optional[str] = None
    business_type: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    created: Optional[datetime] = None
    can_receive_payments: bool


class AccountRecordResponse(Envelope):
    uid: str
    stripe_account_id: str
    email: str
    charges_enabled: bool
    details_submitted: bool
    payouts_enabled: bool
    is_active: bool
    created_at: datetime
    last_updated: Optional[datetime] = None
    disconnected_at: Optional[datetime] = None


def validate_account_id(account_id: str) -> None:
    """Reject ids that do not follow Stripe's ``acct_`` convention."""
    if not account_id or not account_id.startswith(ACCOUNT_ID_PREFIX):
        raise ValidationError(
            f'Invalid Stripe account id. It must start with "{ACCOUNT_ID_PREFIX}"'
        )


def requirements_snapshot(account) -> dict[str, Any]:
    """Plain-dict copy of ``account.requirements`` (empty lists when absent)."""
    requirements = account.requirements
    if requirements is None:
        return {
            "currently_due": [],
            "eventually_due": [],
            "past_due": [],
            "pending_verification": [],
            "disabled_reason": None,
            "current_deadline": None,
        }
    return {
        "currently_due": list(requirements.currently_due or []),
        "eventually_due": list(requirements.eventually_due or []),
        "past_due": list(requirements.past_due or []),
        "pending_verification": list(requirements.pending_verification or []),
        "disabled_reason": requirements.disabled_reason,
        "current_deadline": requirements.current_deadline,
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ConnectedAccountManager:
    """Creates Stripe connected accounts and hands out onboarding links."""

    def __init__(
        self,
        gateway: StripeGateway,
        directory: AccountDirectory,
        settings: Settings,
        audit: AuditLogger | None = None,
    ) -> None:
        self._gateway = gateway
        self._directory = directory
        self._settings = settings
        self._audit = audit or AuditLogger()
        # uids with a create_account call in flight
        self._pending_uids: set[str] = set()

    def _onboarding_urls(self, uid: str) -> tuple[str, str]:
        base = self._settings.APP_URL.rstrip("/")
        return (
            f"{base}/stripe/reauth?uid={uid}",
            f"{base}/stripe/return?uid={uid}",
        )

    async def create_account(
        self,
        email: str,
        uid: str,
        country: str | None = None,
        business_type: str | None = None,
        name: str | None = None,
        phone: str | None = None,
    ) -> CreateAccountResponse:
        """Create a connected account plus its first onboarding link.

        A uid that already owns an account, or has a creation in flight, is
        rejected before Stripe is called; use :meth:`refresh_onboarding_link`
        to resume onboarding.
        """
        if not email or not email.strip() or not uid or not uid.strip():
            raise ValidationError("Email and user ID are required")
        if self._directory.get(uid) is not None or uid in self._pending_uids:
            raise ConflictError(f"User {uid} already has a connected account")

        self._pending_uids.add(uid)
        try:
            return await self._create_account(email, uid, country, business_type, name, phone)
        finally:
            self._pending_uids.discard(uid)

    async def _create_account(
        self,
        email: str,
        uid: str,
        country: str | None,
        business_type: str | None,
        name: str | None,
        phone: str | None,
    ) -> CreateAccountResponse:
        account = await self._gateway.create_account(
            type=self._settings.CONNECT_ACCOUNT_TYPE,
            email=email,
            country=country or self._settings.DEFAULT_COUNTRY,
            business_type=business_type or self._settings.DEFAULT_BUSINESS_TYPE,
            metadata={"user_id": uid, "app_name": self._settings.APP_NAME},
        )

        refresh_url, return_url = self._onboarding_urls(uid)
        link = await self._gateway.create_account_link(account.id, refresh_url, return_url)

        flags = status_flags(account)
        self._directory.add(
            AccountRecord(
                uid=uid,
                stripe_account_id=account.id,
                email=email,
                name=name,
                phone=phone,
                charges_enabled=flags.charges_enabled,
                details_submitted=flags.details_submitted,
                payouts_enabled=flags.payouts_enabled,
            )
        )
        self._audit.log_account_event("created", account.id, uid=uid, account_type="hosted")

        return CreateAccountResponse(
            account_id=account.id,
            onboarding_url=link.url,
            status=flags,
        )

    async def get_status(self, stripe_account_id: str) -> AccountStatusResponse:
        """Live account status straight from Stripe (never the local cache)."""
        validate_account_id(stripe_account_id)
        account = await self._gateway.retrieve_account(stripe_account_id)

        flags = status_flags(account)
        created = (
            datetime.fromtimestamp(account.created, tz=timezone.utc)
            if account.created
            else None
        )
        return AccountStatusResponse(
            account_id=stripe_account_id,
            status=LiveAccountStatus(
                **flags.model_dump(),
                requirements=requirements_snapshot(account),
            ),
            account_type=account.type,
            business_type=account.business_type,
            email=account.email,
            country=account.country,
            created=created,
            can_receive_payments=flags.charges_enabled,
        )

    async def refresh_onboarding_link(self, uid: str) -> OnboardingLinkResponse:
        record = self._directory.get(uid)
        if record is None:
            raise NotFoundError("User not found or no Stripe account connected")

        refresh_url, return_url = self._onboarding_urls(uid)
        link = await self._gateway.create_account_link(
            record.stripe_account_id, refresh_url, return_url,
        )
        log.info("onboarding_link_refreshed", uid=uid, account_id=record.stripe_account_id)
        return OnboardingLinkResponse(
            account_id=record.stripe_account_id,
            onboarding_url=link.url,
        )

    def get_local_record(self, uid: str) -> AccountRecordResponse:
        """Cached directory entry for *uid*, as last reconciled."""
        record = self._directory.get(uid)
        if record is None:
            raise NotFoundError("User not found or no Stripe account connected")
        return AccountRecordResponse(
            uid=record.uid,
            stripe_account_id=record.stripe_account_id,
            email=record.email,
            charges_enabled=record.charges_enabled,
            details_submitted=record.details_submitted,
            payouts_enabled=record.payouts_enabled,
            is_active=record.is_active,
            created_at=record.created_at,
            last_updated=record.last_updated,
            disconnected_at=record.disconnected_at,
        )
