"""Shared FastAPI dependencies resolving services from ``app.state``."""

from __future__ import annotations

from fastapi import Depends, Request

from connectpay.container import Services
from connectpay.services.connect_service import ConnectedAccountManager
from connectpay.services.onboarding_service import CustomOnboardingFlow
from connectpay.services.payment_service import CheckoutEngine
from connectpay.services.webhook_service import WebhookReconciler


def get_services(request: Request) -> Services:
    """Return the service container attached by ``create_app``."""
    return request.app.state.services


def get_account_manager(services: Services = Depends(get_services)) -> ConnectedAccountManager:
    return services.accounts


def get_onboarding_flow(services: Services = Depends(get_services)) -> CustomOnboardingFlow:
    return services.onboarding


def get_checkout_engine(services: Services = Depends(get_services)) -> CheckoutEngine:
    return services.payments


def get_webhook_reconciler(services: Services = Depends(get_services)) -> WebhookReconciler:
    return services.webhooks
