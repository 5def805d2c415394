"""
Margin & retention stage.

    margin_amount    = subtotal × margin_pct / 100
    retention_base   = depends on RetentionBaseMode
    retention_amount = retention_base × retention_pct / 100   (0 when disabled)
    total            = subtotal + margin_amount - retention_amount

Percentages are NOT clamped here. Range checks belong to the boundary that
assembles the quote (see validation.py); this stage computes whatever it's given.
"""

import enum

from pydantic import BaseModel


class RetentionBaseMode(str, enum.Enum):
    """Which amount the retention percentage is applied to.

    Values are versioned so persisted quotes record the formula they were
    priced with. Changing the default means a new member plus a
    recalculate_quotes() run, never an in-place formula edit.
    """
    SUBTOTAL = "subtotal_v1"
    SUBTOTAL_PLUS_MARGIN = "subtotal_plus_margin_v2"


CURRENT_RETENTION_BASE = RetentionBaseMode.SUBTOTAL_PLUS_MARGIN


class MarginRetention(BaseModel):
    margin_amount: float
    retention_base: float
    retention_amount: float
    total: float


def retention_base_for(mode, subtotal: float, margin_amount: float) -> float:
    mode = RetentionBaseMode(mode)
    if mode is RetentionBaseMode.SUBTOTAL:
        return subtotal
    return subtotal + margin_amount


def compute_margin_and_retention(
    subtotal: float,
    margin_percentage: float,
    retention_enabled: bool,
    retention_percentage: float,
    retention_base_mode=CURRENT_RETENTION_BASE,
) -> MarginRetention:
    margin_amount = subtotal * margin_percentage / 100.0
    retention_base = retention_base_for(retention_base_mode, subtotal, margin_amount)
    retention_amount = (
        retention_base * retention_percentage / 100.0 if retention_enabled else 0.0
    )
    return MarginRetention(
        margin_amount=margin_amount,
        retention_base=retention_base,
        retention_amount=retention_amount,
        total=subtotal + margin_amount - retention_amount,
    )
