"""In-memory record types -- re-exports every model."""

from connectpay.models.account import AccountRecord
from connectpay.models.catalog import Product
from connectpay.models.onboarding import ONBOARDING_STEPS, OnboardingSession, OnboardingStep
from connectpay.models.payment import PaymentRecord, TransactionState

__all__ = [
    "AccountRecord",
    "Product",
    "ONBOARDING_STEPS",
    "OnboardingSession",
    "OnboardingStep",
    "PaymentRecord",
    "TransactionState",
]
