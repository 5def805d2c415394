"""
Rate/cost primitives: one resource + quantity in, one cost out.

No rounding anywhere in here. Currency is COP as a float; fractional
results propagate untouched and rounding happens only when displaying.

A referenced entity that is absent (None) raises InvalidReferenceError.
An optional numeric field that is absent (setup cost, fuel, ...) counts as 0.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..exceptions import InvalidReferenceError
from ..schemas import (
    DisposableLine,
    Employee,
    EmployeeLine,
    EventSubcontractLine,
    HourlyRateTier,
    MachineryLine,
    MachineryRentalLine,
    ManualOverride,
    MarginOverride,
    PricedLineItem,
    ProductLine,
    TransportZone,
    UnitPriceOverride,
)

logger = logging.getLogger(__name__)

# Rentals and owned machinery switch to the daily rate at this many hours
DAILY_RATE_THRESHOLD_HOURS = 8.0

# A scheduled day never bills less than half an hour
MIN_SCHEDULED_HOURS = 0.5


def _or_zero(value: Optional[float]) -> float:
    return value if value is not None else 0.0


def _require(entity, name: str, field: str):
    if entity is None:
        raise InvalidReferenceError(name, field=field)
    return entity


# --- Employees ---

def resolve_tier_rate(tiers: List[HourlyRateTier], hours: float) -> float:
    """First tier whose [min_hours, max_hours] range contains `hours`; 0 if none does."""
    for tier in tiers:
        if hours >= tier.min_hours and (tier.max_hours is None or hours <= tier.max_hours):
            return tier.rate
    logger.warning("No hourly rate tier covers %s hours, rate defaults to 0", hours)
    return 0.0


def employee_rate_tiers(employee: Employee) -> List[HourlyRateTier]:
    """Category rate card first, then the employee's individual tiers."""
    if employee.category is not None and employee.category.default_hourly_rates:
        return employee.category.default_hourly_rates
    return employee.hourly_rates


def employee_hourly_rate(employee: Employee, hours: float) -> float:
    """Flat hourly_rate wins; otherwise resolve from category or individual tiers."""
    if employee.hourly_rate is not None:
        return employee.hourly_rate
    tiers = employee_rate_tiers(employee)
    if not tiers:
        raise InvalidReferenceError(
            "employee hourly rates", field="employee.hourly_rates", reference_id=employee.id,
        )
    return resolve_tier_rate(tiers, hours)


def employee_cost(employee: Employee, hours: float, extra_cost: float = 0.0) -> float:
    """hours × hourly_rate + extra_cost."""
    return hours * employee_hourly_rate(employee, hours) + extra_cost


def employee_multiday_cost(employee: Employee, daily_hours: List[float],
                           extra_cost: float = 0.0) -> float:
    """Each day picks its own tier; extra_cost is charged once for the whole line."""
    base = sum(h * employee_hourly_rate(employee, h) for h in daily_hours)
    return base + extra_cost


def hours_between(start: str, end: str) -> float:
    """
    Billable hours for one scheduled day given 'HH:MM' (or 'HH:MM:SS') strings.
    End before start means the shift runs past midnight.
    """
    start_h, start_m = (int(p) for p in start.split(":")[:2])
    end_h, end_m = (int(p) for p in end.split(":")[:2])
    hours = ((end_h * 60 + end_m) - (start_h * 60 + start_m)) / 60.0
    if hours < 0:
        hours += 24
    return max(MIN_SCHEDULED_HOURS, hours)


def employee_daily_hours(line: EmployeeLine) -> List[float]:
    """Per-day hours of a line: daily_hours as given, else derived from daily_schedules."""
    if line.daily_hours:
        return list(line.daily_hours)
    return [hours_between(s.start_time, s.end_time) for s in line.daily_schedules]


# --- Products ---

def product_unit_cost(quantity: float, base_price: float) -> float:
    return quantity * base_price


def product_measurement_cost(quantity: float, units_per_product: float,
                             base_price: float) -> float:
    """e.g. 100 frappes × 7 oz × $200/oz."""
    return quantity * units_per_product * base_price


# --- Machinery ---

def machinery_cost(hourly_rate: float, daily_rate: float, hours: float,
                   include_operator: bool = False,
                   operator_hourly_rate: Optional[float] = None,
                   setup_cost: Optional[float] = None,
                   maintenance_cost_per_use: Optional[float] = None,
                   fuel_cost_per_hour: Optional[float] = None) -> float:
    base = daily_rate if hours >= DAILY_RATE_THRESHOLD_HOURS else hourly_rate * hours
    operator = _or_zero(operator_hourly_rate) * hours if include_operator else 0.0
    return (
        base
        + operator
        + _or_zero(setup_cost)
        + _or_zero(maintenance_cost_per_use) * hours
        + _or_zero(fuel_cost_per_hour) * hours
    )


def machinery_rental_cost(sue_hourly_rate: float, sue_daily_rate: float, hours: float,
                          include_operator: bool = False,
                          operator_cost: Optional[float] = None,
                          setup_cost: Optional[float] = None,
                          include_delivery: bool = False,
                          delivery_cost: Optional[float] = None,
                          include_pickup: bool = False,
                          pickup_cost: Optional[float] = None) -> float:
    """Price charged to the client for rented equipment (sue_* rates, not supplier rates)."""
    base = sue_daily_rate if hours >= DAILY_RATE_THRESHOLD_HOURS else sue_hourly_rate * hours
    operator = _or_zero(operator_cost) * hours if include_operator else 0.0
    delivery = _or_zero(delivery_cost) if include_delivery else 0.0
    pickup = _or_zero(pickup_cost) if include_pickup else 0.0
    return base + operator + _or_zero(setup_cost) + delivery + pickup


# --- Subcontracts & disposables ---

def subcontract_price_with_margin(supplier_cost: float, margin_percentage: float) -> float:
    return supplier_cost * (1 + margin_percentage / 100.0)


def disposable_cost(quantity: float, unit_price: float, minimum_quantity: float = 0) -> float:
    """Disposables are sold in at least minimum_quantity units."""
    return max(quantity, minimum_quantity) * unit_price


# --- Transport ---

def zone_unit_cost(zone: Optional[TransportZone], include_equipment: bool) -> float:
    """Cost of one transport to `zone`. Missing equipment surcharge counts as 0."""
    if zone is None:
        raise InvalidReferenceError("transport zone", field="zone")
    equipment = _or_zero(zone.additional_equipment_cost) if include_equipment else 0.0
    return zone.base_cost + equipment


# ---------------------------------------------------------------------------
# Line item pricing, one function per item_type, dispatched via LINE_PRICERS
# ---------------------------------------------------------------------------

def _price_employee(line: EmployeeLine) -> PricedLineItem:
    employee = _require(line.employee, "employee", "employee")
    days = employee_daily_hours(line)
    if len(days) > 1:
        hours = sum(days)
        total = employee_multiday_cost(employee, days, line.extra_cost)
    else:
        hours = days[0] if days else line.hours
        total = employee_cost(employee, hours, line.extra_cost)
    base = total - line.extra_cost
    description = f"{employee.name} ({employee.employee_type})"
    if line.extra_cost and line.extra_cost_reason:
        description += f" + {line.extra_cost_reason}"
    return PricedLineItem(
        item_type=line.item_type,
        reference_id=employee.id,
        description=description,
        quantity=hours,
        unit_price=base / hours if hours else 0.0,
        total_price=total,
    )


def _price_product(line: ProductLine) -> PricedLineItem:
    product = _require(line.product, "product", "product")
    if isinstance(line.cost, UnitPriceOverride):
        unit_price = line.cost.value
        total = product_unit_cost(line.quantity, unit_price)
    elif product.pricing_type == "measurement":
        units = line.units_per_product
        if not units or units <= 0:
            logger.warning(
                "Measurement product %s has no units_per_product, using 1 %s per product",
                product.id, product.unit,
            )
            units = 1.0
        unit_price = product.base_price
        total = product_measurement_cost(line.quantity, units, unit_price)
    else:
        unit_price = product.base_price
        total = product_unit_cost(line.quantity, unit_price)
    return PricedLineItem(
        item_type=line.item_type,
        reference_id=product.id,
        product_id=product.id,
        description=product.name,
        quantity=line.quantity,
        unit_price=unit_price,
        total_price=total,
        is_override=isinstance(line.cost, UnitPriceOverride),
    )


def _price_machinery(line: MachineryLine) -> PricedLineItem:
    machinery = _require(line.machinery, "machinery", "machinery")
    total = machinery_cost(
        machinery.hourly_rate,
        machinery.daily_rate,
        line.hours,
        include_operator=line.include_operator,
        operator_hourly_rate=machinery.operator_hourly_rate,
        setup_cost=machinery.setup_cost if line.include_setup else None,
        maintenance_cost_per_use=machinery.maintenance_cost_per_use,
        fuel_cost_per_hour=machinery.fuel_cost_per_hour,
    )
    return PricedLineItem(
        item_type=line.item_type,
        reference_id=machinery.id,
        description=machinery.name,
        quantity=line.hours,
        unit_price=total / line.hours if line.hours else total,
        total_price=total,
    )


def _price_machinery_rental(line: MachineryRentalLine) -> PricedLineItem:
    rental = _require(line.rental, "machinery rental", "rental")
    if isinstance(line.cost, ManualOverride):
        total = line.cost.value
    else:
        total = machinery_rental_cost(
            rental.sue_hourly_rate,
            rental.sue_daily_rate,
            line.hours,
            include_operator=line.include_operator,
            operator_cost=rental.operator_cost,
            setup_cost=rental.setup_cost,
            include_delivery=line.include_delivery,
            delivery_cost=rental.delivery_cost,
            include_pickup=line.include_pickup,
            pickup_cost=rental.pickup_cost,
        )
    return PricedLineItem(
        item_type=line.item_type,
        reference_id=rental.id,
        description=rental.machinery_name,
        quantity=line.hours,
        unit_price=total / line.hours if line.hours else total,
        total_price=total,
        is_override=isinstance(line.cost, ManualOverride),
    )


def _price_event_subcontract(line: EventSubcontractLine) -> PricedLineItem:
    subcontract = _require(line.subcontract, "event subcontract", "subcontract")
    if isinstance(line.cost, ManualOverride):
        total = line.cost.value
    elif isinstance(line.cost, MarginOverride):
        total = subcontract_price_with_margin(subcontract.supplier_cost, line.cost.percentage)
    else:
        total = subcontract.sue_price
    description = subcontract.service_name
    if line.attendees:
        description += f" ({line.attendees} asistentes)"
    return PricedLineItem(
        item_type=line.item_type,
        reference_id=subcontract.id,
        description=description,
        quantity=1,
        unit_price=total,
        total_price=total,
        is_override=line.cost.kind != "computed",
    )


def _price_disposable(line: DisposableLine) -> PricedLineItem:
    item = _require(line.item, "disposable item", "item")
    if isinstance(line.cost, ManualOverride):
        total = line.cost.value
        quantity = line.quantity
        unit_price = total / quantity if quantity > 0 else total
    else:
        unit_price = (
            line.cost.value if isinstance(line.cost, UnitPriceOverride) else item.sale_price
        )
        quantity = max(line.quantity, item.minimum_quantity)
        total = disposable_cost(line.quantity, unit_price, item.minimum_quantity)
    return PricedLineItem(
        item_type=line.item_type,
        reference_id=item.id,
        description=item.name,
        quantity=quantity,
        unit_price=unit_price,
        total_price=total,
        is_override=line.cost.kind != "computed",
    )


LINE_PRICERS: Dict[str, Callable] = {
    "employee": _price_employee,
    "product": _price_product,
    "machinery": _price_machinery,
    "machinery_rental": _price_machinery_rental,
    "event_subcontract": _price_event_subcontract,
    "disposable_item": _price_disposable,
}


def price_line_item(line) -> PricedLineItem:
    """Price any line item. Raises ValueError for an unknown item_type."""
    item_type = getattr(line, "item_type", None)
    if item_type not in LINE_PRICERS:
        raise ValueError(
            f"No pricer registered for item type: {item_type}. "
            f"Available: {list(LINE_PRICERS.keys())}"
        )
    return LINE_PRICERS[item_type](line)
