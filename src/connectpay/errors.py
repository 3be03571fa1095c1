"""Error taxonomy shared by every service and rendered by the API layer.

Each error carries the HTTP status it maps to, so routers never translate
exceptions themselves -- the handlers registered in ``connectpay.main`` turn
any ``PaymentsError`` into the ``{"success": false, "message": ...}`` envelope.
"""

from __future__ import annotations


class PaymentsError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PaymentsError):
    """Missing or malformed caller input; raised before any upstream call."""

    status_code = 400


class ConflictError(ValidationError):
    """The request collides with state that already exists."""

    status_code = 409


class NotFoundError(PaymentsError):
    """Product, account or payment object does not exist."""

    status_code = 404


class SignatureError(PaymentsError):
    """Webhook payload failed signature verification."""

    status_code = 400


class UpstreamError(PaymentsError):
    """Stripe rejected or failed the operation; the message is passed through."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        decline_code: str | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, code=code)
        self.decline_code = decline_code


class InternalError(PaymentsError):
    """Unexpected local fault."""

    status_code = 500


class WebhookProcessingError(InternalError):
    """A webhook handler failed; Stripe will redeliver on its own schedule."""
