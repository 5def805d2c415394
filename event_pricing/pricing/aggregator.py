"""
Line-item aggregator.

subtotal = Σ line item total_price + Σ transport allocation cost

Nothing item-specific lives here: by the time items arrive they already carry
a computed total_price (rates.price_line_item) and allocations carry a cost
(transport.allocate). Empty inputs give 0.
"""

from typing import Dict, Sequence


def aggregate(items: Sequence, transport_allocations: Sequence = ()) -> float:
    items_total = sum(item.total_price for item in items)
    transport_total = sum(allocation.cost for allocation in transport_allocations)
    return items_total + transport_total


def subtotals_by_category(items: Sequence) -> Dict[str, float]:
    """Line totals grouped by item_type, in first-seen order."""
    subtotals: Dict[str, float] = {}
    for item in items:
        subtotals[item.item_type] = subtotals.get(item.item_type, 0.0) + item.total_price
    return subtotals
