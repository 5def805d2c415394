"""
Plain data shapes the pricing engine consumes and returns.

Reference entities (employees, products, machinery, suppliers' offerings,
transport zones) arrive already validated by whoever fetched them. The engine
trusts their numeric ranges; the only hard checks are "entity present" and the
zone constraints declared on TransportZone.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .pricing.margin import CURRENT_RETENTION_BASE, RetentionBaseMode


# --- Cost modes (replace is_custom_* flags + optional override fields) ---

class ComputedCost(BaseModel):
    kind: Literal["computed"] = "computed"


class UnitPriceOverride(BaseModel):
    """Replaces the catalog unit price; quantity rules still apply."""
    kind: Literal["unit_price_override"] = "unit_price_override"
    value: float


class MarginOverride(BaseModel):
    """Resale price = supplier cost marked up by this percentage."""
    kind: Literal["margin_override"] = "margin_override"
    percentage: float


class ManualOverride(BaseModel):
    """The line's total is exactly this value."""
    kind: Literal["manual_override"] = "manual_override"
    value: float


ProductCostMode = Annotated[
    Union[ComputedCost, UnitPriceOverride], Field(discriminator="kind")
]
RentalCostMode = Annotated[
    Union[ComputedCost, ManualOverride], Field(discriminator="kind")
]
SubcontractCostMode = Annotated[
    Union[ComputedCost, MarginOverride, ManualOverride], Field(discriminator="kind")
]
DisposableCostMode = Annotated[
    Union[ComputedCost, UnitPriceOverride, ManualOverride], Field(discriminator="kind")
]


# --- Reference entities ---

class HourlyRateTier(BaseModel):
    min_hours: float
    max_hours: Optional[float] = None  # None = open ended
    rate: float


class EmployeeCategory(BaseModel):
    """Shared rate card for a group of employees (chefs, bartenders...)."""
    id: int
    name: str
    default_hourly_rates: List[HourlyRateTier] = []

    class Config:
        from_attributes = True


class Employee(BaseModel):
    id: int
    name: str
    employee_type: str = "operario"
    hourly_rate: Optional[float] = None
    category: Optional[EmployeeCategory] = None
    hourly_rates: List[HourlyRateTier] = []  # individual tiers, used when the category has none

    class Config:
        from_attributes = True


class Product(BaseModel):
    id: int
    name: str
    pricing_type: Literal["unit", "measurement"] = "unit"
    base_price: float
    unit: str = "unidad"
    category: Optional[str] = None

    class Config:
        from_attributes = True


class Machinery(BaseModel):
    id: int
    name: str
    hourly_rate: float
    daily_rate: float
    setup_cost: Optional[float] = None
    operator_hourly_rate: Optional[float] = None
    maintenance_cost_per_use: Optional[float] = None
    fuel_cost_per_hour: Optional[float] = None

    class Config:
        from_attributes = True


class MachineryRental(BaseModel):
    id: int
    machinery_name: str
    sue_hourly_rate: float
    sue_daily_rate: float
    operator_cost: Optional[float] = None
    setup_cost: Optional[float] = None
    delivery_cost: Optional[float] = None
    pickup_cost: Optional[float] = None

    class Config:
        from_attributes = True


class EventSubcontract(BaseModel):
    id: int
    service_name: str
    supplier_cost: float
    sue_price: float

    class Config:
        from_attributes = True


class DisposableItem(BaseModel):
    id: int
    name: str
    sale_price: float
    minimum_quantity: float = 0

    class Config:
        from_attributes = True


class TransportZone(BaseModel):
    id: int
    name: str
    base_cost: float = Field(ge=0)
    additional_equipment_cost: Optional[float] = Field(default=0.0, ge=0)
    estimated_travel_time_minutes: Optional[float] = Field(default=None, gt=0, le=600)

    class Config:
        from_attributes = True


# --- Line items (discriminated on item_type) ---

class DailySchedule(BaseModel):
    start_time: str  # "HH:MM" or "HH:MM:SS"
    end_time: str


class EmployeeLine(BaseModel):
    item_type: Literal["employee"] = "employee"
    employee: Optional[Employee]
    hours: float
    daily_hours: List[float] = []  # multi-day events: one entry per day
    daily_schedules: List[DailySchedule] = []  # same, as start/end times
    extra_cost: float = 0.0        # ARL, bonuses, other manual surcharges
    extra_cost_reason: Optional[str] = None


class ProductLine(BaseModel):
    item_type: Literal["product"] = "product"
    product: Optional[Product]
    quantity: float
    units_per_product: Optional[float] = None
    cost: ProductCostMode = ComputedCost()


class MachineryLine(BaseModel):
    item_type: Literal["machinery"] = "machinery"
    machinery: Optional[Machinery]
    hours: float
    include_operator: bool = False
    include_setup: bool = True


class MachineryRentalLine(BaseModel):
    item_type: Literal["machinery_rental"] = "machinery_rental"
    rental: Optional[MachineryRental]
    hours: float
    include_operator: bool = False
    include_delivery: bool = False
    include_pickup: bool = False
    cost: RentalCostMode = ComputedCost()


class EventSubcontractLine(BaseModel):
    item_type: Literal["event_subcontract"] = "event_subcontract"
    subcontract: Optional[EventSubcontract]
    attendees: Optional[int] = None
    cost: SubcontractCostMode = ComputedCost()


class DisposableLine(BaseModel):
    item_type: Literal["disposable_item"] = "disposable_item"
    item: Optional[DisposableItem]
    quantity: float
    cost: DisposableCostMode = ComputedCost()


LineItem = Annotated[
    Union[
        EmployeeLine,
        ProductLine,
        MachineryLine,
        MachineryRentalLine,
        EventSubcontractLine,
        DisposableLine,
    ],
    Field(discriminator="item_type"),
]


# --- Transport configuration ---

class TransportAllocation(BaseModel):
    product_id: Optional[int] = None
    quantity: float


class TransportZoneInput(BaseModel):
    zone: Optional[TransportZone] = None
    zone_id: Optional[int] = None
    transport_count: int = Field(default=1, ge=1)
    include_equipment_transport: bool = False
    use_flexible_transport: bool = False
    transport_allocations: List[TransportAllocation] = []
    selected_product_ids: List[int] = []

    @property
    def label(self) -> str:
        if self.zone is not None:
            return self.zone.name
        return f"#{self.zone_id}" if self.zone_id is not None else "<unset>"


# --- Quote aggregate ---

class QuoteInput(BaseModel):
    client_id: Optional[int] = None
    client_type: Literal["social", "corporativo"] = "social"
    margin_percentage: float = 0.0
    enable_retention: bool = False
    retention_percentage: float = 0.0
    retention_base_mode: RetentionBaseMode = CURRENT_RETENTION_BASE
    items: List[LineItem] = []
    transport_zones: List[TransportZoneInput] = []


# --- Engine output ---

class PricedLineItem(BaseModel):
    item_type: str
    reference_id: int
    product_id: Optional[int] = None
    description: str
    quantity: float
    unit_price: float
    total_price: float
    is_override: bool = False


class AllocationResult(BaseModel):
    zone_id: Optional[int] = None
    zone_name: Optional[str] = None
    product_id: Optional[int] = None
    quantity: float
    cost: float


class PaymentTerms(BaseModel):
    days: int
    requires_advance: bool
    advance_percentage: float


class QuoteTotals(BaseModel):
    items_subtotal: float
    transport_cost: float
    subtotal: float
    margin_percentage: float
    margin_amount: float
    retention_enabled: bool
    retention_percentage: float
    retention_base_mode: RetentionBaseMode
    retention_base: float
    retention_amount: float
    total: float
    category_subtotals: Dict[str, float] = {}
    line_items: List[PricedLineItem] = []
    transport_allocations: List[AllocationResult] = []
    payment_terms: PaymentTerms
