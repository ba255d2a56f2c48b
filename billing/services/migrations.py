from __future__ import annotations

import logging
from typing import Iterable

from billing.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)


def backfill_client_email_lower(repos: Iterable[JsonRepository], user_id: str | None = None) -> int:
    """Fill `client_email_lower` on stored documents that predate the field."""
    updated = 0
    for repo in repos:
        with repo.lock:
            data = repo.list_all()
            changed = False
            for rec in data:
                if user_id is not None and rec.get("user_id") != user_id:
                    continue
                email = str(rec.get("client_email") or "").strip().lower()
                if not rec.get("client_email_lower") and email:
                    rec["client_email_lower"] = email
                    changed = True
                    updated += 1
            if changed:
                repo.replace_all(data)
        logger.info("client_email_lower backfill on %s: %d record(s) so far", repo.filepath.name, updated)
    return updated
