"""API-driven (custom account) onboarding sessions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class OnboardingStep(str, enum.Enum):
    BASIC_INFO = "basic_info"
    PERSONAL_INFO = "personal_info"
    BANK_ACCOUNT = "bank_account"
    TERMS_ACCEPTANCE = "terms_acceptance"
    COMPLETE = "complete"


# Collection order presented to sellers (``complete`` excluded).
ONBOARDING_STEPS: tuple[OnboardingStep, ...] = (
    OnboardingStep.BASIC_INFO,
    OnboardingStep.PERSONAL_INFO,
    OnboardingStep.BANK_ACCOUNT,
    OnboardingStep.TERMS_ACCEPTANCE,
)


# Rank used to keep a session's stored step moving forward only.
_STEP_RANK: dict[OnboardingStep, int] = {
    step: rank for rank, step in enumerate((*ONBOARDING_STEPS, OnboardingStep.COMPLETE))
}


@dataclass
class OnboardingSession:
    uid: str
    account_id: str
    email: str
    current_step: OnboardingStep = OnboardingStep.BASIC_INFO
    collected: dict[str, dict[str, Any]] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None

    def advance_to(self, step: OnboardingStep) -> None:
        """Move ``current_step`` to *step* unless that would go backwards."""
        if _STEP_RANK[step] > _STEP_RANK[self.current_step]:
            self.current_step = step

    def record(self, step: OnboardingStep, fields: dict[str, Any], current: OnboardingStep) -> None:
        """Store the fields submitted for *step* and advance to the provider-derived step.

        Stripe can add requirements back after a step was done; the stored
        step stays where it was while responses report *current* as inferred.
        """
        self.collected[step.value] = {k: v for k, v in fields.items() if v is not None}
        self.advance_to(current)
        self.updated_at = datetime.now(timezone.utc)
