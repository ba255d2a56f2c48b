from billing.services.migrations import backfill_client_email_lower
from billing.storage.json_repo import JsonRepository


def test_backfill_client_email_lower(tmp_path):
    quotes = JsonRepository(tmp_path / "quotations.json", entity_name="quotation")
    invoices = JsonRepository(tmp_path / "invoices.json", entity_name="invoice")
    quotes.add({"id": "q1", "user_id": "u1", "client_email": " Bob@Site.IO "})
    quotes.add({"id": "q2", "user_id": "u1", "client_email": "a@b.c", "client_email_lower": "a@b.c"})
    quotes.add({"id": "q3", "user_id": "u2", "client_email": "X@Y.Z"})
    invoices.add({"id": "i1", "user_id": "u1", "client_email": "INV@Mail.com"})
    invoices.add({"id": "i2", "user_id": "u1", "client_email": ""})

    assert backfill_client_email_lower([quotes, invoices], user_id="u1") == 2
    assert quotes.get_by_id("q1")["client_email_lower"] == "bob@site.io"
    assert "client_email_lower" not in quotes.get_by_id("q3")
    assert invoices.get_by_id("i1")["client_email_lower"] == "inv@mail.com"
    assert "client_email_lower" not in invoices.get_by_id("i2")

    assert backfill_client_email_lower([quotes, invoices]) == 1
    assert backfill_client_email_lower([quotes, invoices]) == 0
