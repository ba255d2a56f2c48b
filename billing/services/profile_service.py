from __future__ import annotations
from typing import Optional

from billing.config import Settings, load_settings
from billing.services.money import clean_text
from billing.storage.json_repo import JsonRepository


class ProfileService:
    """Issuing business profile, keyed by user id."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()
        self.repo = JsonRepository(
            self.settings.repo_path("profiles"),
            entity_name="profile",
            key="id",
            backup_keep=self.settings.backup_keep,
        )

    def get_company_name(self, user_id: str) -> str:
        rec = self.repo.get_by_id(user_id) or {}
        return clean_text(rec.get("company_name"))

    def set_company_name(self, user_id: str, company_name: str) -> None:
        self.repo.upsert({"id": user_id, "company_name": clean_text(company_name)})
