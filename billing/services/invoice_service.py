from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from billing.config import Settings, load_settings
from billing.errors import NotFoundError, ValidationError
from billing.models.common import Clock, SystemClock
from billing.models.context import DocumentContext
from billing.models.invoice import (
    BillingInput,
    BillingProfile,
    CreateInvoiceInput,
    Invoice,
    UpdateInvoiceInput,
)
from billing.services.deposit import compute_deposit, resolve_deposit_rate
from billing.services.money import clean_text, parse_date
from billing.services.normalizer import normalize_milestones
from billing.services.numbering import NumberSource, make_number_source
from billing.services.quote_service import parse_input, require_fields, require_user
from billing.services.totals import aggregate_milestones
from billing.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

NO_MILESTONES = "Invoice must contain at least one milestone with at least one item."
MILESTONES_REQUIRED = "To update tax rate or deposit, please include milestones in the update payload."


def build_billing(inp: Optional[BillingInput], default_business_name: str = "Company") -> BillingProfile:
    d = inp.model_dump() if inp is not None else {}
    fields = {k: clean_text(d.get(k)) for k in BillingProfile.model_fields}
    fields["business_name"] = fields["business_name"] or default_business_name
    return BillingProfile(**fields)


# ---------- Engine ---------- #

class InvoiceEngine:
    """
    Milestone-grouped invoices: items -> milestone subtotals -> document
    totals -> deposit. Nothing flows the other way.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        numbers: Optional[NumberSource] = None,
        prefix: str = "INV",
        default_business_name: str = "Company",
    ) -> None:
        self.clock = clock or SystemClock()
        self.numbers = numbers
        self.prefix = prefix
        self.default_business_name = default_business_name

    def create(
        self,
        context: DocumentContext,
        data: Union[CreateInvoiceInput, Mapping[str, Any]],
    ) -> Invoice:
        require_user(context)
        if not clean_text(context.project_id):
            raise ValidationError("projectId is required")
        inp = parse_input(CreateInvoiceInput, data, "invoice")

        client_name = clean_text(inp.client_name)
        client_email = clean_text(inp.client_email)
        require_fields(client_name=client_name, client_email=client_email)

        milestones = normalize_milestones(inp.milestones)
        if not milestones:
            raise ValidationError(NO_MILESTONES)
        totals = aggregate_milestones(milestones, inp.tax_rate)
        deposit = compute_deposit(totals.total, inp.deposit)

        if self.numbers is None:
            raise RuntimeError("InvoiceEngine has no number source")
        number = self.numbers.next_number(self.prefix, owner=context.user_id)
        now = self.clock.now()
        return Invoice(
            document_number=number,
            user_id=context.user_id,
            project_id=context.project_id,
            client_name=client_name,
            client_email=client_email,
            client_email_lower=client_email.lower(),
            client_address=clean_text(inp.client_address),
            client_phone=clean_text(inp.client_phone),
            billing=build_billing(inp.billing, self.default_business_name),
            milestones=milestones,
            subtotal=totals.subtotal,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total,
            deposit=deposit,
            status=inp.status,
            template_id=inp.template_id,
            due_date=parse_date(inp.due_date) or now.date(),
            created_at=now,
            updated_at=now,
        )

    def update(
        self,
        existing: Invoice,
        data: Union[UpdateInvoiceInput, Mapping[str, Any]],
    ) -> Invoice:
        """
        Document fields patch individually; milestones are replaced as a whole.
        Totals and deposit are always re-derived from milestone items, either
        the supplied ones or the existing ones, never copied from `existing`.
        """
        inp = parse_input(UpdateInvoiceInput, data, "invoice")

        if inp.milestones is None and (inp.tax_rate is not None or inp.deposit is not None):
            raise ValidationError(MILESTONES_REQUIRED)

        def pick(value: Any, current: str) -> str:
            return clean_text(value) if value is not None else current

        client_name = pick(inp.client_name, existing.client_name)
        client_email = pick(inp.client_email, existing.client_email)
        require_fields(client_name=client_name, client_email=client_email)

        if inp.milestones is not None:
            milestones = normalize_milestones(inp.milestones)
            tax_rate = inp.tax_rate if inp.tax_rate is not None else existing.tax_rate
            deposit_cfg = inp.deposit if inp.deposit is not None else existing.deposit.model_dump()
        else:
            milestones = normalize_milestones([m.model_dump() for m in existing.milestones])
            tax_rate = existing.tax_rate
            deposit_cfg = existing.deposit.model_dump()
        if not milestones:
            raise ValidationError(NO_MILESTONES)

        totals = aggregate_milestones(milestones, tax_rate)
        deposit = compute_deposit(totals.total, deposit_cfg)

        now = self.clock.now()
        if inp.due_date is not None:
            due_date = parse_date(inp.due_date) or now.date()
        else:
            due_date = existing.due_date

        return Invoice(
            id=existing.id,
            document_number=existing.document_number,
            user_id=existing.user_id,
            project_id=existing.project_id,
            client_name=client_name,
            client_email=client_email,
            client_email_lower=client_email.lower(),
            client_address=pick(inp.client_address, existing.client_address),
            client_phone=pick(inp.client_phone, existing.client_phone),
            billing=(
                build_billing(inp.billing, self.default_business_name)
                if inp.billing is not None else existing.billing
            ),
            milestones=milestones,
            subtotal=totals.subtotal,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total,
            deposit=deposit,
            status=inp.status if inp.status is not None else existing.status,
            template_id=inp.template_id if inp.template_id is not None else existing.template_id,
            due_date=due_date,
            created_at=existing.created_at,
            updated_at=now,
        )


# ---------- Service ---------- #

class InvoiceService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        clock: Optional[Clock] = None,
        numbers: Optional[NumberSource] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.repo = JsonRepository(
            self.settings.repo_path("invoices"),
            entity_name="invoice",
            key="id",
            backup_keep=self.settings.backup_keep,
        )
        self.engine = InvoiceEngine(
            clock=clock,
            numbers=numbers or make_number_source(self.settings.invoice_numbering, self.settings, clock),
            prefix=self.settings.invoice_prefix,
            default_business_name=self.settings.default_business_name,
        )

    def _hydrate(self, d: Dict[str, Any]) -> Optional[Invoice]:
        try:
            return Invoice.model_validate(d)
        except PydanticValidationError as e:
            logger.warning("Skipping unreadable invoice %s: %s", d.get("id"), e)
            return None

    # ----------- CRUD/list ----------- #

    def create_invoice(
        self,
        context: DocumentContext,
        data: Union[CreateInvoiceInput, Mapping[str, Any]],
    ) -> Invoice:
        inv = self.engine.create(context, data)
        self.repo.add(inv)
        logger.info(
            "Created invoice %s (%s) total=%.2f deposit=%.2f",
            inv.document_number, inv.id, inv.total_amount, inv.deposit.amount,
        )
        return inv

    def update_invoice(
        self,
        invoice_id: str,
        data: Union[UpdateInvoiceInput, Mapping[str, Any]],
    ) -> Invoice:
        existing = self.get_by_id(invoice_id)
        if existing is None:
            raise NotFoundError("invoice", invoice_id)
        inv = self.engine.update(existing, data)
        self.repo.update(inv)
        logger.info("Updated invoice %s (%s) total=%.2f", inv.document_number, inv.id, inv.total_amount)
        return inv

    def get_by_id(self, invoice_id: str) -> Optional[Invoice]:
        d = self.repo.get_by_id(invoice_id)
        return self._hydrate(d) if d else None

    def list_invoices(self, project_id: Optional[str] = None) -> List[Invoice]:
        rows = self.repo.find(lambda d: project_id is None or d.get("project_id") == project_id)
        out = [inv for inv in (self._hydrate(d) for d in rows) if inv is not None]
        out.sort(key=lambda inv: inv.created_at, reverse=True)
        return out

    def deposit_rate(self, preset: Union[float, int, str], custom_rate: Any = None) -> float:
        """Numeric rate for a preset chosen in the UI (configured presets or "custom")."""
        return resolve_deposit_rate(preset, custom_rate, presets=self.settings.deposit_presets)

    def delete_invoice(self, invoice_id: str) -> bool:
        deleted = self.repo.delete(invoice_id)
        if deleted:
            logger.info("Deleted invoice %s", invoice_id)
        return deleted
