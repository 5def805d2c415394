"""
Transport allocator: spreads a zone's transports (and their cost) over products.

Two modes, chosen per zone:
  manual    use_flexible_transport=True AND a non-empty allocation list.
            Each (product_id, quantity) pair costs quantity × zone unit cost.
            Quantities are taken as given: zero, fractional or summing to
            something other than transport_count all pass straight through.
            Checking the sum is the caller's job (validation.py).
  automatic everything else, including manual mode with an empty list.
            transport_count / N per selected product, NOT rounded
            (3 transports over 2 products = 1.5 each). No products selected
            means one unattributed row carrying the whole zone.
"""

from typing import List, Optional, Sequence

from ..exceptions import InvalidReferenceError
from ..schemas import AllocationResult, TransportAllocation, TransportZone, TransportZoneInput
from .rates import zone_unit_cost


def allocate(
    zone: Optional[TransportZone],
    transport_count: float,
    include_equipment: bool,
    use_flexible_transport: bool,
    transport_allocations: Optional[Sequence[TransportAllocation]] = None,
    selected_product_ids: Optional[Sequence[int]] = None,
) -> List[AllocationResult]:
    # Raises InvalidReferenceError when the zone is missing
    unit_cost = zone_unit_cost(zone, include_equipment)

    if use_flexible_transport and transport_allocations:
        return allocate_manual(zone, unit_cost, transport_allocations)
    return allocate_automatic(zone, unit_cost, transport_count, selected_product_ids or [])


def allocate_manual(zone: TransportZone, unit_cost: float,
                    transport_allocations: Sequence[TransportAllocation]) -> List[AllocationResult]:
    return [
        AllocationResult(
            zone_id=zone.id,
            zone_name=zone.name,
            product_id=allocation.product_id,
            quantity=allocation.quantity,
            cost=allocation.quantity * unit_cost,
        )
        for allocation in transport_allocations
    ]


def allocate_automatic(zone: TransportZone, unit_cost: float, transport_count: float,
                       selected_product_ids: Sequence[int]) -> List[AllocationResult]:
    if not selected_product_ids:
        return [AllocationResult(
            zone_id=zone.id,
            zone_name=zone.name,
            product_id=None,
            quantity=transport_count,
            cost=transport_count * unit_cost,
        )]

    per_product = transport_count / len(selected_product_ids)
    return [
        AllocationResult(
            zone_id=zone.id,
            zone_name=zone.name,
            product_id=product_id,
            quantity=per_product,
            cost=per_product * unit_cost,
        )
        for product_id in selected_product_ids
    ]


def allocate_zone(zone_input: TransportZoneInput) -> List[AllocationResult]:
    """Run the allocator for one zone of a quote's transport configuration."""
    if zone_input.zone is None:
        raise InvalidReferenceError(
            "transport zone", field="transport_zones.zone", reference_id=zone_input.zone_id,
        )
    return allocate(
        zone_input.zone,
        zone_input.transport_count,
        zone_input.include_equipment_transport,
        zone_input.use_flexible_transport,
        zone_input.transport_allocations,
        zone_input.selected_product_ids,
    )


def total_transport_cost(allocations: Sequence[AllocationResult]) -> float:
    return sum(a.cost for a in allocations)
