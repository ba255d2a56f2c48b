from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from billing.config import Settings, load_settings
from billing.errors import NotFoundError, ValidationError
from billing.models.common import Clock, SystemClock
from billing.models.context import DocumentContext
from billing.models.quote import CreateQuotationInput, Quotation, UpdateQuotationInput
from billing.services.money import clean_text, parse_date
from billing.services.normalizer import normalize_items
from billing.services.numbering import NumberSource, make_number_source
from billing.services.profile_service import ProfileService
from billing.services.totals import aggregate_items
from billing.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ---------- Helpers ---------- #

def parse_input(model: Type[M], data: Union[M, Mapping[str, Any]], entity: str) -> M:
    """Validate caller input at the boundary; pydantic errors become user-facing ones."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, entity) from e


def require_fields(**fields: str) -> None:
    labels = {
        "client_name": "Client name",
        "client_email": "Client email",
        "client_address": "Client address",
    }
    for key, value in fields.items():
        if not value:
            raise ValidationError(f"{labels.get(key, key)} is required.")


def require_user(context: DocumentContext) -> None:
    if not clean_text(context.user_id):
        raise ValidationError("userId is required")


# ---------- Engine ---------- #

class QuotationEngine:
    """
    Pure computation of quotation documents. Reads only the injected clock and
    number source; persistence is the caller's job.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        numbers: Optional[NumberSource] = None,
        prefix: str = "QT",
    ) -> None:
        self.clock = clock or SystemClock()
        self.numbers = numbers
        self.prefix = prefix

    def _compute(self, inp: CreateQuotationInput) -> Dict[str, Any]:
        client_name = clean_text(inp.client_name)
        client_email = clean_text(inp.client_email)
        client_address = clean_text(inp.client_address)
        require_fields(client_name=client_name, client_email=client_email, client_address=client_address)

        items = normalize_items(inp.items)
        if not items:
            raise ValidationError("Quotation must contain at least one billable item.")
        totals = aggregate_items(items, inp.tax_rate)

        return {
            "client_name": client_name,
            "client_email": client_email,
            "client_email_lower": client_email.lower(),
            "client_address": client_address,
            "client_phone": clean_text(inp.client_phone),
            "items": items,
            "subtotal": totals.subtotal,
            "tax_rate": totals.tax_rate,
            "tax_amount": totals.tax_amount,
            "total": totals.total,
            "notes": clean_text(inp.notes),
            "valid_until": parse_date(inp.valid_until),
            "status": inp.status,
        }

    def create(
        self,
        context: DocumentContext,
        data: Union[CreateQuotationInput, Mapping[str, Any]],
    ) -> Quotation:
        require_user(context)
        inp = parse_input(CreateQuotationInput, data, "quotation")
        fields = self._compute(inp)

        if self.numbers is None:
            raise RuntimeError("QuotationEngine has no number source")
        number = self.numbers.next_number(self.prefix, owner=context.user_id)
        now = self.clock.now()
        return Quotation(
            document_number=number,
            user_id=context.user_id,
            project_id=context.project_id,
            company_name=clean_text(context.company_name),
            created_at=now,
            updated_at=now,
            **fields,
        )

    def update(
        self,
        existing: Quotation,
        data: Union[UpdateQuotationInput, Mapping[str, Any]],
    ) -> Quotation:
        """Full recompute from the supplied items; stored totals are never read."""
        inp = parse_input(UpdateQuotationInput, data, "quotation")
        fields = self._compute(inp)
        return Quotation(
            id=existing.id,
            document_number=existing.document_number,
            user_id=existing.user_id,
            project_id=existing.project_id,
            company_name=existing.company_name,
            created_at=existing.created_at,
            updated_at=self.clock.now(),
            **fields,
        )


# ---------- Service ---------- #

class QuoteService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        clock: Optional[Clock] = None,
        numbers: Optional[NumberSource] = None,
        profiles: Optional[ProfileService] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.repo = JsonRepository(
            self.settings.repo_path("quotations"),
            entity_name="quotation",
            key="id",
            backup_keep=self.settings.backup_keep,
        )
        self.profiles = profiles or ProfileService(self.settings)
        self.engine = QuotationEngine(
            clock=clock,
            numbers=numbers or make_number_source(self.settings.quotation_numbering, self.settings, clock),
            prefix=self.settings.quotation_prefix,
        )

    # ----- hydration ----- #

    def _hydrate(self, d: Dict[str, Any]) -> Optional[Quotation]:
        try:
            return Quotation.model_validate(d)
        except PydanticValidationError as e:
            logger.warning("Skipping unreadable quotation %s: %s", d.get("id"), e)
            return None

    # ----- CRUD ----- #

    def create_quotation(
        self,
        context: DocumentContext,
        data: Union[CreateQuotationInput, Mapping[str, Any]],
    ) -> Quotation:
        require_user(context)
        company_name = clean_text(context.company_name) or self.profiles.get_company_name(context.user_id)
        if not company_name:
            raise ValidationError("Company name not found. Please complete your profile.")
        ctx = context.model_copy(update={"company_name": company_name})

        q = self.engine.create(ctx, data)
        self.repo.add(q)
        logger.info("Created quotation %s (%s) total=%.2f", q.document_number, q.id, q.total)
        return q

    def update_quotation(
        self,
        quotation_id: str,
        data: Union[UpdateQuotationInput, Mapping[str, Any]],
    ) -> Quotation:
        existing = self.get_by_id(quotation_id)
        if existing is None:
            raise NotFoundError("quotation", quotation_id)
        q = self.engine.update(existing, data)
        self.repo.update(q)
        logger.info("Updated quotation %s (%s) total=%.2f", q.document_number, q.id, q.total)
        return q

    def get_by_id(self, quotation_id: str) -> Optional[Quotation]:
        d = self.repo.get_by_id(quotation_id)
        return self._hydrate(d) if d else None

    def list_quotations(
        self,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
        *,
        standalone: bool = False,
    ) -> List[Quotation]:
        """Newest first. `standalone=True` keeps only quotations without a project."""
        def keep(d: Dict[str, Any]) -> bool:
            if user_id is not None and d.get("user_id") != user_id:
                return False
            if project_id is not None and d.get("project_id") != project_id:
                return False
            if standalone and d.get("project_id"):
                return False
            return True

        out = [q for q in (self._hydrate(d) for d in self.repo.find(keep)) if q is not None]
        out.sort(key=lambda q: q.created_at, reverse=True)
        return out

    def delete_quotation(self, quotation_id: str) -> bool:
        deleted = self.repo.delete(quotation_id)
        if deleted:
            logger.info("Deleted quotation %s", quotation_id)
        return deleted
