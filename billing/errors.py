from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """Input problem the user can fix. The message is shown as-is."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @classmethod
    def from_pydantic(cls, exc: Any, entity: str = "document") -> "ValidationError":
        # pydantic.ValidationError -> one readable line per field
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
            msg = err.get("msg", "invalid value")
            parts.append(f"{loc}: {msg}" if loc else msg)
        detail = "; ".join(parts) or "invalid input"
        return cls(f"Invalid {entity}: {detail}")


class NotFoundError(LookupError):
    def __init__(self, entity: str, key: Any) -> None:
        super().__init__(f"{entity} {key} not found")
        self.entity = entity
        self.key = key
