"""
Margin and retention stage tests.

The retention base changed from the subtotal to subtotal + margin. The
regression case below pins the current formula.
"""

import pytest

from event_pricing.pricing.margin import (
    CURRENT_RETENTION_BASE,
    RetentionBaseMode,
    compute_margin_and_retention,
    retention_base_for,
)


def test_retention_applies_to_subtotal_plus_margin():
    """1.000.000 at 20% margin, 4% retention → 48.000, not 40.000."""
    result = compute_margin_and_retention(1_000_000, 20, True, 4)
    assert result.margin_amount == 200_000
    assert result.retention_base == 1_200_000
    assert result.retention_amount == pytest.approx(48_000)
    assert result.total == pytest.approx(1_152_000)


def test_legacy_subtotal_mode_still_computes_old_figure():
    result = compute_margin_and_retention(
        1_000_000, 20, True, 4, RetentionBaseMode.SUBTOTAL,
    )
    assert result.retention_amount == pytest.approx(40_000)
    assert result.total == pytest.approx(1_160_000)


def test_retention_disabled_is_zero():
    result = compute_margin_and_retention(1_000_000, 20, False, 4)
    assert result.retention_amount == 0
    assert result.total == 1_200_000


def test_zero_subtotal():
    result = compute_margin_and_retention(0, 30, True, 4)
    assert result.margin_amount == 0
    assert result.retention_amount == 0
    assert result.total == 0


@pytest.mark.parametrize("margin, retention, expected_total", [
    (250, 0, 350_000),        # margin above 200 is computed as given
    (-10, 0, 90_000),         # negative margin too
    (0, 150, -50_000),        # retention above 100 can push the total negative
])
def test_percentages_are_not_clamped(margin, retention, expected_total):
    result = compute_margin_and_retention(100_000, margin, True, retention)
    assert result.total == pytest.approx(expected_total)


def test_retention_base_modes_accept_raw_values():
    assert retention_base_for("subtotal_v1", 100, 30) == 100
    assert retention_base_for("subtotal_plus_margin_v2", 100, 30) == 130
    with pytest.raises(ValueError):
        retention_base_for("subtotal_v3", 100, 30)


def test_current_mode_is_subtotal_plus_margin():
    assert CURRENT_RETENTION_BASE is RetentionBaseMode.SUBTOTAL_PLUS_MARGIN
