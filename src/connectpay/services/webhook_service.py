"""Stripe webhook verification and reconciliation of local account state."""

from __future__ import annotations

from typing import Any, Callable

import structlog

from connectpay.errors import PaymentsError, WebhookProcessingError
from connectpay.integrations.stripe_gateway import StripeGateway
from connectpay.models import PaymentRecord
from connectpay.repositories import AccountDirectory, PaymentLog
from connectpay.services.audit_logger import AuditLogger

log = structlog.get_logger()


class WebhookReconciler:
    """Applies verified Stripe events to the Account Directory and Payment Log.

    Events are not deduplicated: a redelivered ``account.updated`` or
    deauthorization simply writes the same absolute values again.
    """

    def __init__(
        self,
        gateway: StripeGateway,
        directory: AccountDirectory,
        payment_log: PaymentLog,
        audit: AuditLogger | None = None,
    ) -> None:
        self._gateway = gateway
        self._directory = directory
        self._payment_log = payment_log
        self._audit = audit or AuditLogger()
        self._handlers: dict[str, Callable[[Any, Any], tuple[str | None, str]]] = {
            "account.updated": self._account_updated,
            "account.application.authorized": self._application_authorized,
            "account.application.deauthorized": self._application_deauthorized,
            "account.external_account.created": self._external_account_created,
            "capability.updated": self._capability_updated,
            "person.updated": self._person_updated,
            "checkout.session.completed": self._checkout_session_completed,
        }

    async def handle(self, payload: bytes, sig_header: str | None) -> dict:
        """Verify *payload* and dispatch it by event type.

        The gateway hands back the event as a plain ``dict``.  Signature
        problems raise ``SignatureError`` before the body is parsed.
        Handler failures raise ``WebhookProcessingError`` so Stripe retries.
        """
        event = self._gateway.construct_event(payload, sig_header)
        event_id = event.get("id")
        event_type = event["type"]
        log.info("webhook_received", stripe_event_id=event_id, stripe_event_type=event_type)

        handler = self._handlers.get(event_type)
        if handler is None:
            log.info("webhook_unhandled", stripe_event_id=event_id, stripe_event_type=event_type)
            self._audit.log_webhook_event(event_id, event_type, event.get("account"), "ignored")
            return {"received": True}

        try:
            account_id, outcome = handler(event, event["data"]["object"])
        except PaymentsError:
            raise
        except Exception as exc:
            log.exception(
                "webhook_handler_failed",
                stripe_event_id=event_id,
                stripe_event_type=event_type,
            )
            raise WebhookProcessingError(
                f"Error processing webhook event {event_type}: {exc}"
            ) from exc

        self._audit.log_webhook_event(event_id, event_type, account_id, outcome)
        return {"received": True}

    # ------------------------------------------------------------------
    # Handlers -- each returns (account_id, outcome)
    # ------------------------------------------------------------------

    def _account_updated(self, event, account) -> tuple[str | None, str]:
        account_id = account["id"]
        record = self._directory.find_by_stripe_account(account_id)
        if record is None:
            log.info("webhook_account_not_found", account_id=account_id)
            return account_id, "no_match"

        could_charge = record.charges_enabled
        # Fields absent from the payload keep their current value.
        record.apply_capabilities(
            charges_enabled=bool(account.get("charges_enabled", record.charges_enabled)),
            details_submitted=bool(account.get("details_submitted", record.details_submitted)),
            payouts_enabled=bool(account.get("payouts_enabled", record.payouts_enabled)),
        )
        self._audit.log_account_event(
            "updated",
            account_id,
            uid=record.uid,
            charges_enabled=record.charges_enabled,
            details_submitted=record.details_submitted,
            payouts_enabled=record.payouts_enabled,
        )
        if record.charges_enabled and not could_charge:
            log.info("account_can_receive_payments", uid=record.uid, account_id=account_id)
        return account_id, "updated"

    def _application_deauthorized(self, event, application) -> tuple[str | None, str]:
        # The object is the Connect application; the account is on the event.
        account_id = event.get("account") or application.get("id")
        record = self._directory.find_by_stripe_account(account_id)
        if record is None:
            log.info("webhook_account_not_found", account_id=account_id)
            return account_id, "no_match"

        record.mark_disconnected()
        self._audit.log_account_event("deauthorized", account_id, uid=record.uid)
        return account_id, "deauthorized"

    def _application_authorized(self, event, application) -> tuple[str | None, str]:
        account_id = event.get("account") or application.get("id")
        log.info("connect_application_authorized", account_id=account_id)
        return account_id, "logged"

    def _external_account_created(self, event, external_account) -> tuple[str | None, str]:
        account_id = external_account.get("account") or event.get("account")
        log.info(
            "external_account_created",
            account_id=account_id,
            external_account_id=external_account.get("id"),
        )
        return account_id, "logged"

    def _capability_updated(self, event, capability) -> tuple[str | None, str]:
        account_id = capability.get("account") or event.get("account")
        log.info(
            "capability_updated",
            account_id=account_id,
            capability=capability.get("id"),
            capability_status=capability.get("status"),
        )
        return account_id, "logged"

    def _person_updated(self, event, person) -> tuple[str | None, str]:
        account_id = person.get("account") or event.get("account")
        log.info("person_updated", account_id=account_id, person_id=person.get("id"))
        return account_id, "logged"

    def _checkout_session_completed(self, event, session) -> tuple[str | None, str]:
        metadata = session.get("metadata") or {}
        product_id = metadata.get("productId")
        account_id = metadata.get("stripeAccountId")
        if not product_id or not account_id:
            log.info("checkout_session_missing_metadata", session_id=session.get("id"))
            return account_id, "skipped"

        platform_fee = metadata.get("platformFee")
        customer_details = session.get("customer_details") or {}
        self._payment_log.append(
            PaymentRecord(
                session_id=session["id"],
                payment_intent_id=session.get("payment_intent"),
                stripe_account_id=account_id,
                product_id=product_id,
                amount_total=session.get("amount_total") or 0,
                currency=session.get("currency") or "",
                platform_fee=int(platform_fee) if platform_fee else None,
                payment_status=session.get("payment_status") or "unknown",
                customer_email=customer_details.get("email"),
            )
        )
        return account_id, "recorded"
