"""
Transport allocator tests.

Tests:
1-4. Manual allocation (equipment on/off, zero quantity, empty list fallback)
5-7. Automatic allocation (fractional split, whole-zone row, conservation)
8-9. Zone cost edge cases
10.  Missing zone
"""

import pytest

from event_pricing.exceptions import InvalidReferenceError
from event_pricing.pricing.transport import allocate, allocate_zone, total_transport_cost
from event_pricing.schemas import TransportAllocation, TransportZone, TransportZoneInput


def _manual(*pairs):
    return [TransportAllocation(product_id=pid, quantity=qty) for pid, qty in pairs]


# ============================================================
# 1-4. Manual allocation
# ============================================================

def test_manual_allocation_without_equipment(zona_norte):
    """1 transport to product 101, 2 to product 102 at $50.000 each."""
    results = allocate(
        zona_norte, 3, include_equipment=False, use_flexible_transport=True,
        transport_allocations=_manual((101, 1), (102, 2)),
    )
    assert [r.cost for r in results] == [50000, 100000]
    assert [r.product_id for r in results] == [101, 102]
    assert all(r.zone_name == "Zona Norte" for r in results)
    assert total_transport_cost(results) == 150000


def test_manual_allocation_with_equipment(zona_norte):
    results = allocate(
        zona_norte, 3, include_equipment=True, use_flexible_transport=True,
        transport_allocations=_manual((101, 1), (102, 2)),
    )
    assert [r.cost for r in results] == [75000, 150000]


def test_manual_allocation_zero_quantity_costs_nothing(zona_norte):
    results = allocate(
        zona_norte, 2, include_equipment=False, use_flexible_transport=True,
        transport_allocations=_manual((101, 0), (102, 2)),
    )
    assert results[0].cost == 0
    assert results[1].cost == 100000


def test_manual_allocation_quantities_pass_through_unchecked(zona_norte):
    """The allocator never checks the sum. That is validation's job."""
    results = allocate(
        zona_norte, 2, include_equipment=False, use_flexible_transport=True,
        transport_allocations=_manual((101, 2), (102, 3)),
    )
    assert total_transport_cost(results) == 250000


def test_empty_manual_list_falls_back_to_automatic(zona_norte):
    results = allocate(
        zona_norte, 2, include_equipment=False, use_flexible_transport=True,
        transport_allocations=[], selected_product_ids=[101, 102],
    )
    assert [r.quantity for r in results] == [1, 1]
    assert total_transport_cost(results) == 100000


# ============================================================
# 5-7. Automatic allocation
# ============================================================

def test_automatic_split_is_not_rounded(zona_norte):
    """3 transports over 2 products = 1.5 each."""
    results = allocate(
        zona_norte, 3, include_equipment=False, use_flexible_transport=False,
        selected_product_ids=[101, 102],
    )
    assert [r.quantity for r in results] == [1.5, 1.5]
    assert [r.cost for r in results] == [75000, 75000]


def test_automatic_without_products_charges_whole_zone(zona_norte):
    results = allocate(zona_norte, 2, include_equipment=True, use_flexible_transport=False)
    assert len(results) == 1
    assert results[0].product_id is None
    assert results[0].quantity == 2
    assert results[0].cost == 150000


def test_manual_flag_off_ignores_allocation_list(zona_norte):
    results = allocate(
        zona_norte, 2, include_equipment=False, use_flexible_transport=False,
        transport_allocations=_manual((101, 5)), selected_product_ids=[101],
    )
    assert results[0].quantity == 2


@pytest.mark.parametrize("product_count", range(0, 8))
@pytest.mark.parametrize("transport_count", [1, 2, 3, 7])
def test_automatic_allocation_conserves_cost(zona_norte, product_count, transport_count):
    """Whatever the split, the zone is charged transport_count × unit cost."""
    results = allocate(
        zona_norte, transport_count, include_equipment=True, use_flexible_transport=False,
        selected_product_ids=list(range(1, product_count + 1)),
    )
    assert sum(r.quantity for r in results) == pytest.approx(transport_count)
    assert total_transport_cost(results) == pytest.approx(transport_count * 75000)


# ============================================================
# 8-9. Zone cost edge cases
# ============================================================

def test_zero_cost_zone():
    zone = TransportZone(id=5, name="Local", base_cost=0, additional_equipment_cost=0)
    results = allocate(zone, 4, include_equipment=True, use_flexible_transport=False,
                       selected_product_ids=[1, 2])
    assert total_transport_cost(results) == 0


def test_missing_equipment_cost_means_base_only():
    zone = TransportZone(id=6, name="Sur", base_cost=40000, additional_equipment_cost=None)
    results = allocate(zone, 1, include_equipment=True, use_flexible_transport=False)
    assert results[0].cost == 40000


# ============================================================
# 10. Missing zone
# ============================================================

def test_allocate_zone_without_resolved_zone_raises():
    zone_input = TransportZoneInput(zone_id=99, transport_count=2)
    with pytest.raises(InvalidReferenceError) as exc_info:
        allocate_zone(zone_input)
    assert exc_info.value.field == "transport_zones.zone"
    assert "99" in exc_info.value.message


def test_allocate_zone_passes_input_through(zona_norte):
    zone_input = TransportZoneInput(
        zone=zona_norte,
        transport_count=3,
        use_flexible_transport=True,
        transport_allocations=_manual((101, 1), (102, 2)),
    )
    assert total_transport_cost(allocate_zone(zone_input)) == 150000
