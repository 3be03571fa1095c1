"""Connected-account records kept in the Account Directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AccountRecord:
    """Local view of one seller's Stripe connected account.

    ``stripe_account_id`` is fixed at creation.  The three capability flags
    change only from the creation response or from webhook reconciliation.
    """

    uid: str
    stripe_account_id: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    charges_enabled: bool = False
    details_submitted: bool = False
    payouts_enabled: bool = False
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)
    last_updated: Optional[datetime] = None
    disconnected_at: Optional[datetime] = None

    def apply_capabilities(
        self,
        charges_enabled: bool,
        details_submitted: bool,
        payouts_enabled: bool,
    ) -> None:
        self.charges_enabled = charges_enabled
        self.details_submitted = details_submitted
        self.payouts_enabled = payouts_enabled
        self.last_updated = _utcnow()

    def mark_disconnected(self) -> None:
        self.is_active = False
        self.disconnected_at = _utcnow()
