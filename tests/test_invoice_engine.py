from datetime import date

import pytest

from billing.errors import ValidationError
from billing.models.context import DocumentContext
from billing.models.invoice import InvoiceStatus, InvoiceTemplate, MilestoneStatus


def _two_phase_milestones():
    return [
        {
            "title": "Phase 1",
            "status": "completed",
            "items": [{"description": "Demolition", "quantity": 1, "unit_price": 400}],
        },
        {
            "title": "Phase 2",
            "due_date": "2026-05-15",
            "items": [
                {"description": "Framing", "quantity": 4, "unit_price": 125.25},
                {"description": "", "quantity": 9, "unit_price": 9},
            ],
        },
    ]


class TestCreateInvoice:
    def test_totals_and_deposit(self, invoice_engine, context, invoice_input):
        inv = invoice_engine.create(context, invoice_input)
        assert inv.subtotal == 1000.0
        assert inv.total_amount == 1000.0
        assert inv.deposit.enabled is True
        assert inv.deposit.rate_percent == 15.0
        assert inv.deposit.amount == 150.0
        assert inv.balance_after_deposit() == 850.0

    def test_disabled_deposit(self, invoice_engine, context, invoice_input):
        invoice_input["deposit"] = {"enabled": False, "rate_percent": 30}
        inv = invoice_engine.create(context, invoice_input)
        assert inv.deposit.amount == 0.0
        assert inv.deposit.rate_percent == 30.0

    def test_milestone_grouping(self, invoice_engine, context, invoice_input):
        invoice_input["milestones"] = _two_phase_milestones()
        invoice_input["tax_rate"] = 15
        inv = invoice_engine.create(context, invoice_input)

        assert [m.subtotal for m in inv.milestones] == [400.0, 501.0]
        assert inv.milestones[0].status == MilestoneStatus.COMPLETED
        assert inv.milestones[1].status == MilestoneStatus.NOT_STARTED
        assert inv.milestones[1].due_date == date(2026, 5, 15)
        assert len(inv.milestones[1].items) == 1
        assert inv.subtotal == 901.0
        assert inv.tax_amount == 135.15
        assert inv.total_amount == 1036.15
        assert inv.deposit.amount == 155.42  # 15% of 1036.15 = 155.4225
        assert [it.description for it in inv.items] == ["Demolition", "Framing"]

    def test_identity_and_defaults(self, invoice_engine, context, invoice_input, clock):
        inv = invoice_engine.create(context, invoice_input)
        assert inv.document_number == "INV-00001"
        assert inv.status == InvoiceStatus.PENDING
        assert inv.template_id == InvoiceTemplate.CLASSIC
        assert inv.due_date == clock.now().date()
        assert inv.client_email_lower == "jane@example.com"
        assert inv.client_address == ""
        assert inv.billing.business_name == "Company"
        assert inv.billing.bank_name == ""

    def test_billing_profile_is_trimmed(self, invoice_engine, context, invoice_input):
        invoice_input["billing"] = {"business_name": "  Acme Builders ", "bank_name": " FNB "}
        inv = invoice_engine.create(context, invoice_input)
        assert inv.billing.business_name == "Acme Builders"
        assert inv.billing.bank_name == "FNB"

    def test_milestone_without_items_is_rejected(self, invoice_engine, numbers, context, invoice_input):
        invoice_input["milestones"] = [{"title": "Phase 1", "items": []}]
        with pytest.raises(ValidationError, match="at least one milestone"):
            invoice_engine.create(context, invoice_input)
        assert numbers.calls == []

    def test_no_milestones_is_rejected(self, invoice_engine, context, invoice_input):
        invoice_input["milestones"] = []
        with pytest.raises(ValidationError):
            invoice_engine.create(context, invoice_input)

    def test_project_is_required(self, invoice_engine, invoice_input):
        with pytest.raises(ValidationError, match="projectId"):
            invoice_engine.create(DocumentContext(user_id="user-1"), invoice_input)

    @pytest.mark.parametrize("field", ["client_name", "client_email"])
    def test_required_client_fields(self, invoice_engine, context, invoice_input, field):
        invoice_input[field] = ""
        with pytest.raises(ValidationError, match="is required"):
            invoice_engine.create(context, invoice_input)

    def test_bad_milestone_status(self, invoice_engine, context, invoice_input):
        invoice_input["milestones"][0]["status"] = "blocked"
        with pytest.raises(ValidationError):
            invoice_engine.create(context, invoice_input)


class TestUpdateInvoice:
    @pytest.fixture
    def invoice(self, invoice_engine, context, invoice_input):
        return invoice_engine.create(context, invoice_input)

    def test_tax_rate_change_without_milestones_is_rejected(self, invoice_engine, invoice):
        with pytest.raises(ValidationError, match="include milestones"):
            invoice_engine.update(invoice, {"tax_rate": 15})

    def test_deposit_change_without_milestones_is_rejected(self, invoice_engine, invoice):
        with pytest.raises(ValidationError, match="include milestones"):
            invoice_engine.update(invoice, {"deposit": {"enabled": True, "rate_percent": 50}})

    def test_milestones_with_tax_and_deposit(self, invoice_engine, invoice):
        inv = invoice_engine.update(invoice, {
            "milestones": _two_phase_milestones(),
            "tax_rate": 15,
            "deposit": {"enabled": True, "rate_percent": 50},
        })
        assert inv.subtotal == 901.0
        assert inv.total_amount == 1036.15
        assert inv.deposit.amount == 518.08  # 518.075

    def test_new_milestones_reuse_existing_tax_and_deposit_settings(self, invoice_engine, invoice):
        inv = invoice_engine.update(invoice, {"milestones": _two_phase_milestones()})
        assert inv.tax_rate == invoice.tax_rate
        assert inv.total_amount == 901.0
        assert inv.deposit.rate_percent == 15.0
        assert inv.deposit.amount == 135.15

    def test_document_number_never_changes(self, invoice_engine, numbers, invoice):
        inv = invoice_engine.update(invoice, {
            "document_number": "INV-HACKED",
            "milestones": _two_phase_milestones(),
            "status": "paid",
        })
        assert inv.document_number == invoice.document_number
        assert inv.id == invoice.id
        assert inv.status == InvoiceStatus.PAID
        assert len(numbers.calls) == 1

    def test_field_patch_recomputes_from_existing_items(self, invoice_engine, invoice, clock):
        stale = invoice.model_copy(update={"total_amount": 9999.0, "subtotal": 9999.0})
        clock.advance(days=1)
        inv = invoice_engine.update(stale, {"client_phone": " 555-0100 ", "template_id": "modern"})
        assert inv.client_phone == "555-0100"
        assert inv.template_id == InvoiceTemplate.MODERN
        assert inv.subtotal == 1000.0
        assert inv.total_amount == 1000.0
        assert inv.deposit.amount == 150.0
        assert inv.client_name == invoice.client_name
        assert inv.created_at == invoice.created_at
        assert inv.updated_at == clock.now()

    def test_clearing_client_email_is_rejected(self, invoice_engine, invoice):
        with pytest.raises(ValidationError, match="Client email"):
            invoice_engine.update(invoice, {"client_email": "  "})

    def test_replacing_with_empty_milestones_is_rejected(self, invoice_engine, invoice):
        with pytest.raises(ValidationError, match="at least one milestone"):
            invoice_engine.update(invoice, {"milestones": [{"title": "Phase 1", "items": []}]})

    def test_due_date(self, invoice_engine, invoice, clock):
        inv = invoice_engine.update(invoice, {"due_date": "2026-07-31"})
        assert inv.due_date == date(2026, 7, 31)
        inv = invoice_engine.update(inv, {"due_date": "garbage"})
        assert inv.due_date == clock.now().date()

    def test_disabling_deposit_keeps_rate(self, invoice_engine, invoice):
        inv = invoice_engine.update(invoice, {
            "milestones": [m.model_dump() for m in invoice.milestones],
            "deposit": {"enabled": False, "rate_percent": 15},
        })
        assert inv.deposit.amount == 0.0
        assert inv.deposit.rate_percent == 15.0
