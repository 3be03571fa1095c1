"""State stores injected into the services.

Each store is described by a ``Protocol`` so a persistent backend can replace
the in-memory implementation without touching business logic.  The in-memory
versions are plain dicts/lists with no locking; concurrent writes to the same
key are last-write-wins.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from connectpay.errors import ConflictError
from connectpay.models import AccountRecord, OnboardingSession, PaymentRecord, Product


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------

class AccountDirectory(Protocol):
    def get(self, uid: str) -> Optional[AccountRecord]: ...

    def find_by_stripe_account(self, stripe_account_id: str) -> Optional[AccountRecord]: ...

    def add(self, record: AccountRecord) -> None: ...


class OnboardingSessionStore(Protocol):
    def get(self, uid: str) -> Optional[OnboardingSession]: ...

    def find_by_account(self, account_id: str) -> Optional[OnboardingSession]: ...

    def save(self, session: OnboardingSession) -> None: ...


class ProductCatalog(Protocol):
    def get(self, product_id: str) -> Optional[Product]: ...

    def list(self) -> list[Product]: ...

    def add(self, product: Product) -> None: ...


class PaymentLog(Protocol):
    def append(self, record: PaymentRecord) -> None: ...

    def list(self) -> list[PaymentRecord]: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------

class InMemoryAccountDirectory:
    """uid -> AccountRecord, with ``stripe_account_id`` unique across entries."""

    def __init__(self) -> None:
        self._records: dict[str, AccountRecord] = {}

    def get(self, uid: str) -> Optional[AccountRecord]:
        return self._records.get(uid)

    def find_by_stripe_account(self, stripe_account_id: str) -> Optional[AccountRecord]:
        for record in self._records.values():
            if record.stripe_account_id == stripe_account_id:
                return record
        return None

    def add(self, record: AccountRecord) -> None:
        if record.uid in self._records:
            raise ConflictError(f"User {record.uid} already has a connected account")
        if self.find_by_stripe_account(record.stripe_account_id) is not None:
            raise ConflictError(
                f"Stripe account {record.stripe_account_id} is already linked to another user"
            )
        self._records[record.uid] = record

    def __len__(self) -> int:
        return len(self._records)


class InMemoryOnboardingSessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, OnboardingSession] = {}

    def get(self, uid: str) -> Optional[OnboardingSession]:
        return self._sessions.get(uid)

    def find_by_account(self, account_id: str) -> Optional[OnboardingSession]:
        for session in self._sessions.values():
            if session.account_id == account_id:
                return session
        return None

    def save(self, session: OnboardingSession) -> None:
        self._sessions[session.uid] = session


class InMemoryProductCatalog:
    """Insertion-ordered product list; add/list only."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: dict[str, Product] = {}
        for product in products:
            self.add(product)

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def list(self) -> list[Product]:
        return list(self._products.values())

    def add(self, product: Product) -> None:
        if product.id in self._products:
            raise ConflictError(f"Product {product.id} already exists")
        self._products[product.id] = product


class InMemoryPaymentLog:
    def __init__(self) -> None:
        self._records: list[PaymentRecord] = []

    def append(self, record: PaymentRecord) -> None:
        self._records.append(record)

    def list(self) -> list[PaymentRecord]:
        return list(self._records)


DEMO_PRODUCTS = (
    Product(
        id="prod_001",
        name="Produto Premium",
        description="Um produto de alta qualidade",
        price=9900,
        images=["https://exemplo.com/imagem.jpg"],
    ),
    Product(
        id="prod_002",
        name="Serviço Básico",
        description="Um serviço essencial",
        price=4990,
        images=[],
    ),
)
