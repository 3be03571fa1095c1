"""Pydantic base classes for the JSON wire format.

Payload keys are camelCase on the wire; request bodies also accept the
snake_case field names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(ApiModel):
    """Success envelope: ``{"success": true, ...payload}``."""

    success: bool = True


class AccountStatusFlags(BaseModel):
    charges_enabled: bool
    details_submitted: bool
    payouts_enabled: bool


def status_flags(account) -> AccountStatusFlags:
    """Pull the three capability flags off a Stripe account object."""
    return AccountStatusFlags(
        charges_enabled=bool(account.charges_enabled),
        details_submitted=bool(account.details_submitted),
        payouts_enabled=bool(account.payouts_enabled),
    )
