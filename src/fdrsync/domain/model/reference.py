"""Reference data owned by the local ledger and read by reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal


@dataclass(eq=False, kw_only=True)
class CreditorDomain:
    """A creditor institution configured to receive settlement flows.

    ``aux_digit`` selects the identifier scheme; ``segregation_code`` is only
    meaningful for the multi-intermediary scheme (``aux_digit == 3``).
    """

    domain_code: str
    business_name: str | None = None
    downloads_flows: bool = True
    aux_digit: int = 0
    segregation_code: int | None = None
    last_acquisition: datetime | None = None
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class PaymentPosition:
    """A debt position known locally, addressed by ``(domain_code, iuv)``."""

    domain_code: str
    iuv: str
    position_code: str | None = None
    application_code: str | None = None
    status: str | None = None
    items: list[PaymentPositionItem] = field(default_factory=list["PaymentPositionItem"])
    id: int | None = None

    def add_item(self, item: PaymentPositionItem) -> PaymentPositionItem:
        item.position = self
        if item not in self.items:
            self.items.append(item)
        return item

    def item_at(self, item_index: int) -> PaymentPositionItem | None:
        for item in self.items:
            if item.item_index == item_index:
                return item
        return None


@dataclass(eq=False, kw_only=True)
class PaymentPositionItem:
    item_index: int
    position: PaymentPosition | None = field(default=None, repr=False)
    amount_due: Decimal | None = None
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class Payment:
    """A receipted payment recorded locally."""

    domain_code: str
    iuv: str
    iur: str | None = None
    item_index: int | None = None
    paid_amount: Decimal | None = None
    revoked_amount: Decimal | None = None
    paid_at: datetime | None = None
    position_item: PaymentPositionItem | None = field(default=None, repr=False)
    id: int | None = None
