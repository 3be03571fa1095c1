"""Structured audit logger for connected-account and payment events.

Emits structured log entries via structlog for seller onboarding, account
status changes, charges and webhook deliveries.  Every entry carries an
``audit: true`` flag so production log pipelines can filter on it easily.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog


log = structlog.get_logger()


class AuditLogger:
    """Structured audit logger for marketplace payment events.

    All methods are synchronous -- they only emit log lines and perform
    no I/O beyond writing to the configured structlog sink.
    """

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def log_account_event(
        self,
        action: str,
        stripe_account_id: str,
        uid: str | None = None,
        **details,
    ) -> None:
        """Record an account lifecycle change (created, updated, deauthorized)."""
        log.info(
            "audit_event",
            event_type="account",
            action=action,
            timestamp=datetime.now(timezone.utc).isoformat(),
            stripe_account_id=stripe_account_id,
            uid=uid,
            audit=True,
            **details,
        )

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def log_payment_event(
        self,
        action: str,
        reference_id: str,
        stripe_account_id: str | None = None,
        amount: int | None = None,
        platform_fee: int | None = None,
        status: str | None = None,
    ) -> None:
        """Log a checkout session, payment intent or confirmation."""
        log.info(
            "audit_event",
            event_type="payment",
            action=action,
            timestamp=datetime.now(timezone.utc).isoformat(),
            reference_id=reference_id,
            stripe_account_id=stripe_account_id,
            amount=amount,
            platform_fee=platform_fee,
            status=status,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def log_webhook_event(
        self,
        stripe_event_id: str | None,
        stripe_event_type: str,
        account_id: str | None,
        outcome: str,
    ) -> None:
        """Log the outcome of one webhook delivery."""
        log.info(
            "audit_event",
            event_type="webhook",
            timestamp=datetime.now(timezone.utc).isoformat(),
            stripe_event_id=stripe_event_id,
            stripe_event_type=stripe_event_type,
            account_id=account_id,
            outcome=outcome,
            audit=True,
        )
