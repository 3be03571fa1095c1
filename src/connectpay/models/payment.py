"""Payment log entries and the normalized transaction states."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class TransactionState(str, enum.Enum):
    """Normalized lifecycle: created -> (requires_action | succeeded | failed)."""

    CREATED = "created"
    REQUIRES_ACTION = "requires_action"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PaymentRecord:
    session_id: str
    stripe_account_id: str
    product_id: str
    amount_total: int
    currency: str
    payment_status: str
    payment_intent_id: Optional[str] = None
    platform_fee: Optional[int] = None
    customer_email: Optional[str] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
