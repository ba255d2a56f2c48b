from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Union

from billing.models.invoice import Milestone, MilestoneInput
from billing.models.quote import LineItem, LineItemInput
from billing.services.money import clean_text, coerce_number, parse_date, round2
from billing.services.totals import items_subtotal

logger = logging.getLogger(__name__)

RawItem = Union[LineItemInput, Mapping[str, Any]]
RawMilestone = Union[MilestoneInput, Mapping[str, Any]]


def _to_dict(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, Mapping):
        return dict(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return dict(obj.__dict__)


def normalize_item(raw: RawItem) -> LineItem:
    d = _to_dict(raw)
    qty = coerce_number(d.get("quantity"))
    price = coerce_number(d.get("unit_price"))
    # negative values pass through unchanged
    return LineItem(
        description=clean_text(d.get("description")),
        quantity=qty,
        unit_price=price,
        total=round2(qty * price),
    )


def normalize_items(raw_items: Iterable[RawItem]) -> List[LineItem]:
    """Clean rows in input order; rows without a description are placeholders and are dropped."""
    out: List[LineItem] = []
    dropped = 0
    for raw in raw_items or []:
        item = normalize_item(raw)
        if not item.description:
            dropped += 1
            continue
        out.append(item)
    if dropped:
        logger.debug("Dropped %d line item(s) without description", dropped)
    return out


def normalize_milestone(raw: RawMilestone) -> Milestone:
    d = _to_dict(raw)
    items = normalize_items(d.get("items") or [])
    status = d.get("status") or "not_started"
    return Milestone(
        title=clean_text(d.get("title")),
        description=clean_text(d.get("description")),
        due_date=parse_date(d.get("due_date")),
        status=status,
        items=items,
        subtotal=items_subtotal(items),
    )


def normalize_milestones(raw_milestones: Iterable[RawMilestone]) -> List[Milestone]:
    """Milestones without a title or without any billable item are dropped."""
    out: List[Milestone] = []
    for raw in raw_milestones or []:
        m = normalize_milestone(raw)
        if not m.title or not m.items:
            logger.debug("Dropped milestone %r (%d item(s))", m.title, len(m.items))
            continue
        out.append(m)
    return out
