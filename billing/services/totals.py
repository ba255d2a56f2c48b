from __future__ import annotations

from typing import Any, Iterable, NamedTuple, Sequence

from billing.models.invoice import Milestone
from billing.models.quote import LineItem
from billing.services.money import coerce_number, round2


class DocumentTotals(NamedTuple):
    subtotal: float
    tax_rate: float
    tax_amount: float
    total: float


def items_subtotal(items: Iterable[LineItem]) -> float:
    return round2(sum(it.total for it in items))


def apply_tax(subtotal: float, tax_rate: Any) -> DocumentTotals:
    rate = coerce_number(tax_rate)
    tax_amount = round2(subtotal * rate / 100)
    return DocumentTotals(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax_amount,
        total=round2(subtotal + tax_amount),
    )


def aggregate_items(items: Sequence[LineItem], tax_rate: Any) -> DocumentTotals:
    """Flat document: subtotal over normalized items, then tax and total."""
    return apply_tax(items_subtotal(items), tax_rate)


def aggregate_milestones(milestones: Sequence[Milestone], tax_rate: Any) -> DocumentTotals:
    """Grouped document: sum of milestone subtotals, then tax and total."""
    return apply_tax(round2(sum(m.subtotal for m in milestones)), tax_rate)
