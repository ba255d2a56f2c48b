from datetime import datetime, timezone

import pytest

from billing.config import Settings
from billing.models.common import FixedClock
from billing.models.context import DocumentContext
from billing.services.invoice_service import InvoiceEngine, InvoiceService
from billing.services.profile_service import ProfileService
from billing.services.quote_service import QuotationEngine, QuoteService

T0 = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


class CountingNumbers:
    """Deterministic number source that records every call."""

    def __init__(self):
        self.calls = []

    def next_number(self, prefix, owner=None):
        self.calls.append((prefix, owner))
        return f"{prefix}-{len(self.calls):05d}"


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def numbers():
    return CountingNumbers()


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", backup_keep=2)


@pytest.fixture
def quotation_engine(clock, numbers):
    return QuotationEngine(clock=clock, numbers=numbers)


@pytest.fixture
def invoice_engine(clock, numbers):
    return InvoiceEngine(clock=clock, numbers=numbers)


@pytest.fixture
def context():
    return DocumentContext(user_id="user-1", project_id="proj-1", company_name="Acme Builders")


@pytest.fixture
def profiles(settings):
    p = ProfileService(settings)
    p.set_company_name("user-1", "  Acme Builders ")
    return p


@pytest.fixture
def quote_service(settings, clock, profiles):
    return QuoteService(settings, clock=clock, profiles=profiles)


@pytest.fixture
def invoice_service(settings, clock):
    return InvoiceService(settings, clock=clock)


@pytest.fixture
def quotation_input():
    return {
        "client_name": " Jane Smith ",
        "client_email": " Jane@Example.COM ",
        "client_address": "12 Main Rd",
        "items": [
            {"description": "Labour", "quantity": 10, "unit_price": 25},
            {"description": "Materials", "quantity": 1, "unit_price": 500},
        ],
        "tax_rate": 15,
    }


@pytest.fixture
def invoice_input():
    return {
        "client_name": "Jane Smith",
        "client_email": "Jane@Example.com",
        "milestones": [
            {
                "title": "Phase 1",
                "items": [
                    {"description": "Foundations", "quantity": 2, "unit_price": 250},
                    {"description": "Concrete", "quantity": 1, "unit_price": 500},
                ],
            },
        ],
        "tax_rate": 0,
        "deposit": {"enabled": True, "rate_percent": 15},
    }
