"""Wires stores and services together.

``build_services`` is called once by ``connectpay.main``; tests call it with
their own settings (or gateway) to get fully isolated state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from connectpay.config import Settings
from connectpay.integrations.stripe_gateway import StripeGateway
from connectpay.repositories import (
    DEMO_PRODUCTS,
    InMemoryAccountDirectory,
    InMemoryOnboardingSessionStore,
    InMemoryPaymentLog,
    InMemoryProductCatalog,
)
from connectpay.services.audit_logger import AuditLogger
from connectpay.services.connect_service import ConnectedAccountManager
from connectpay.services.onboarding_service import CustomOnboardingFlow
from connectpay.services.payment_service import CheckoutEngine
from connectpay.services.webhook_service import WebhookReconciler


@dataclass
class Services:
    settings: Settings
    accounts: ConnectedAccountManager
    onboarding: CustomOnboardingFlow
    payments: CheckoutEngine
    webhooks: WebhookReconciler
    directory: InMemoryAccountDirectory
    sessions: InMemoryOnboardingSessionStore


def build_services(
    settings: Settings,
    gateway: StripeGateway | None = None,
) -> Services:
    gateway = gateway or StripeGateway(
        secret_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
    )
    audit = AuditLogger()

    directory = InMemoryAccountDirectory()
    sessions = InMemoryOnboardingSessionStore()
    payment_log = InMemoryPaymentLog()
    catalog = InMemoryProductCatalog(
        [replace(p, images=list(p.images)) for p in DEMO_PRODUCTS]
        if settings.SEED_DEMO_PRODUCTS
        else []
    )

    return Services(
        settings=settings,
        accounts=ConnectedAccountManager(gateway, directory, settings, audit),
        onboarding=CustomOnboardingFlow(gateway, sessions, settings, audit),
        payments=CheckoutEngine(gateway, catalog, payment_log, settings, audit),
        webhooks=WebhookReconciler(gateway, directory, payment_log, audit),
        directory=directory,
        sessions=sessions,
    )
