from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = ROOT_DIR / "data"

NumberingStrategy = Literal["sequence", "timestamp"]


class Settings(BaseModel):
    data_dir: Path = DATA_DIR

    quotation_prefix: str = "QT"
    invoice_prefix: str = "INV"
    quotation_numbering: NumberingStrategy = "sequence"
    invoice_numbering: NumberingStrategy = "timestamp"
    sequence_width: int = Field(5, ge=1)

    deposit_presets: List[float] = Field(default_factory=lambda: [15.0, 30.0, 50.0])
    default_business_name: str = "Company"

    backup_keep: int = Field(5, ge=0)

    @property
    def settings_json(self) -> Path:
        return self.data_dir / "settings.json"

    def repo_path(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"


def _load_json(path: Path):
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Unreadable settings file %s (%s), using defaults", path, e)
        return None


def load_settings(data_dir: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build the settings:
    - explicit data_dir, else BILLING_DATA_DIR, else <repo>/data
    - <data_dir>/settings.json (optional)
    - BILLING_QUOTATION_PREFIX / BILLING_INVOICE_PREFIX env overrides
    """
    base = Path(data_dir or os.environ.get("BILLING_DATA_DIR") or DATA_DIR)

    raw = _load_json(base / "settings.json")
    values = dict(raw) if isinstance(raw, dict) else {}
    values["data_dir"] = base

    for env_key, field in (
        ("BILLING_QUOTATION_PREFIX", "quotation_prefix"),
        ("BILLING_INVOICE_PREFIX", "invoice_prefix"),
    ):
        val = os.environ.get(env_key)
        if val:
            values[field] = val.strip()

    try:
        return Settings.model_validate(values)
    except PydanticValidationError as e:
        logger.warning("Invalid settings in %s (%s), using defaults", base / "settings.json", e)
        return Settings(data_dir=base)
