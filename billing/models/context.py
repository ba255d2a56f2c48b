from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class DocumentContext(BaseModel):
    """Who is creating the document and where it belongs."""

    user_id: str
    project_id: Optional[str] = None  # None -> standalone quotation
    company_name: str = ""

    class Config:
        frozen = True
