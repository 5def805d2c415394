"""
Input-boundary checks for a quote, run before or alongside the engine.

The calculator stages never clamp or correct their inputs. These checks are
where out-of-range configuration is rejected (authoritative path) or turned
into warnings (live preview).
"""

import math
from typing import List, Optional

from ..exceptions import AllocationMismatchError, OutOfRangeConfigurationError
from ..schemas import (
    DisposableLine,
    EmployeeLine,
    MachineryLine,
    MachineryRentalLine,
    ManualOverride,
    ProductLine,
    QuoteInput,
    TransportZoneInput,
    UnitPriceOverride,
)
from .rates import employee_daily_hours

MARGIN_RANGE = (0.0, 200.0)
RETENTION_RANGE = (0.0, 100.0)
MAX_SINGLE_DAY_HOURS = 24.0
MAX_MULTIDAY_HOURS = 168.0  # 7 days × 24h


def validate_percentages(margin_percentage: float, retention_percentage: float) -> None:
    """Raise OutOfRangeConfigurationError for margin outside [0, 200] or retention outside [0, 100]."""
    low, high = MARGIN_RANGE
    if not low <= margin_percentage <= high:
        raise OutOfRangeConfigurationError("margin_percentage", margin_percentage, low, high)
    low, high = RETENTION_RANGE
    if not low <= retention_percentage <= high:
        raise OutOfRangeConfigurationError("retention_percentage", retention_percentage, low, high)


def _positive(field: str, value: float, what: str) -> Optional[OutOfRangeConfigurationError]:
    if value > 0:
        return None
    return OutOfRangeConfigurationError(
        field, value, 0.0, None, message=f"{what} must be greater than 0, got {value:g}",
    )


def _employee_hours_error(field: str, line: EmployeeLine) -> Optional[OutOfRangeConfigurationError]:
    days = employee_daily_hours(line)
    if len(days) > 1:
        total = sum(days)
        if total > MAX_MULTIDAY_HOURS:
            return OutOfRangeConfigurationError(
                field, total, 0.0, MAX_MULTIDAY_HOURS,
                message=f"Employee hours across all days cannot exceed "
                        f"{MAX_MULTIDAY_HOURS:g}, got {total:g}",
            )
        return _positive(field, total, "Employee hours")

    hours = days[0] if days else line.hours
    if hours > MAX_SINGLE_DAY_HOURS:
        return OutOfRangeConfigurationError(
            field, hours, 0.0, MAX_SINGLE_DAY_HOURS,
            message=f"Employee hours for a single day cannot exceed "
                    f"{MAX_SINGLE_DAY_HOURS:g}, got {hours:g}",
        )
    return _positive(field, hours, "Employee hours")


def line_item_errors(quote: QuoteInput) -> List[OutOfRangeConfigurationError]:
    """
    Every line-item problem that would put nonsense (or negative money) into a quote.

    Quantities and hours must be positive, an employee works at most 24h in a
    single day or 168h over a multi-day event, and override prices cannot be
    negative. Missing reference entities are left to the pricers, which raise
    InvalidReferenceError.
    """
    errors = []
    for index, line in enumerate(quote.items):
        prefix = f"items[{index}]"

        if isinstance(line, EmployeeLine):
            errors.append(_employee_hours_error(f"{prefix}.hours", line))
            if line.extra_cost < 0:
                errors.append(OutOfRangeConfigurationError(
                    f"{prefix}.extra_cost", line.extra_cost, 0.0, None,
                    message=f"Extra cost cannot be negative, got {line.extra_cost:g}",
                ))
        elif isinstance(line, (ProductLine, DisposableLine)):
            errors.append(_positive(f"{prefix}.quantity", line.quantity, "Quantity"))
        elif isinstance(line, (MachineryLine, MachineryRentalLine)):
            errors.append(_positive(f"{prefix}.hours", line.hours, "Machinery hours"))

        cost = getattr(line, "cost", None)
        if isinstance(cost, (UnitPriceOverride, ManualOverride)) and cost.value < 0:
            errors.append(OutOfRangeConfigurationError(
                f"{prefix}.cost.value", cost.value, 0.0, None,
                message=f"Custom price cannot be negative, got {cost.value:g}",
            ))

    return [e for e in errors if e is not None]


def validate_line_items(quote: QuoteInput) -> None:
    """Raise the first line-item problem, if any."""
    errors = line_item_errors(quote)
    if errors:
        raise errors[0]


def validate_quote(quote: QuoteInput) -> None:
    """Boundary checks every persisted computation runs before the engine."""
    validate_percentages(quote.margin_percentage, quote.retention_percentage)
    validate_line_items(quote)


def uses_manual_allocation(zone_input: TransportZoneInput) -> bool:
    # Same rule as transport.allocate: an empty list falls back to automatic
    return zone_input.use_flexible_transport and bool(zone_input.transport_allocations)


def allocation_mismatch(zone_input: TransportZoneInput) -> Optional[float]:
    """Allocated quantity when a manual zone doesn't add up to transport_count, else None."""
    if not uses_manual_allocation(zone_input):
        return None
    allocated = math.fsum(a.quantity for a in zone_input.transport_allocations)
    if math.isclose(allocated, zone_input.transport_count, rel_tol=1e-9, abs_tol=1e-9):
        return None
    return allocated


def require_allocation_totals(quote: QuoteInput) -> None:
    """Hard precondition for persisted totals: every manual zone sums to its transport_count."""
    for zone_input in quote.transport_zones:
        allocated = allocation_mismatch(zone_input)
        if allocated is not None:
            raise AllocationMismatchError(zone_input.label, zone_input.transport_count, allocated)


def collect_warnings(quote: QuoteInput) -> List[str]:
    """Soft warnings for live editing. Never raises."""
    warnings = []

    for zone_input in quote.transport_zones:
        allocated = allocation_mismatch(zone_input)
        if allocated is not None:
            warnings.append(
                f"Zone {zone_input.label}: {allocated:g} of {zone_input.transport_count} "
                f"transports allocated"
            )

    try:
        validate_percentages(quote.margin_percentage, quote.retention_percentage)
    except OutOfRangeConfigurationError as e:
        warnings.append(e.message)

    warnings.extend(e.message for e in line_item_errors(quote))

    if quote.client_id is None:
        warnings.append("No client selected")

    return warnings
