from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from billing.errors import ValidationError
from billing.models.invoice import Deposit, DepositInput
from billing.services.money import clamp, clean_text, coerce_number, parse_date, round2

DEPOSIT_PRESETS: Sequence[float] = (15.0, 30.0, 50.0)
CUSTOM = "custom"


def resolve_deposit_rate(
    preset: Union[float, int, str],
    custom_rate: Any = None,
    presets: Sequence[float] = DEPOSIT_PRESETS,
) -> float:
    """
    Turn the caller-facing choice (one of the presets, or "custom" plus a
    free rate) into the numeric percentage the engine works with.
    """
    if isinstance(preset, str) and preset.strip().lower() == CUSTOM:
        return clamp(coerce_number(custom_rate), 0.0, 100.0)
    rate = coerce_number(preset)
    if rate not in presets:
        raise ValueError(f"Unknown deposit preset {preset!r}, expected one of {list(presets)} or 'custom'")
    return rate


def compute_deposit(
    total_amount: float,
    deposit: Optional[Union[DepositInput, Mapping[str, Any]]] = None,
) -> Deposit:
    """
    Deposit for an already-computed invoice total. The rate is clamped to
    [0, 100] and kept even when the deposit is disabled.
    """
    if deposit is None:
        deposit = DepositInput()
    elif isinstance(deposit, Mapping):
        try:
            deposit = DepositInput.model_validate(dict(deposit))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "deposit") from e
    d = deposit.model_dump()

    enabled = bool(d.get("enabled"))
    rate = clamp(coerce_number(d.get("rate_percent")), 0.0, 100.0)
    amount = round2(total_amount * rate / 100) if enabled else 0.0
    return Deposit(
        enabled=enabled,
        rate_percent=rate,
        amount=amount,
        due_date=parse_date(d.get("due_date")),
        notes=clean_text(d.get("notes")),
    )
