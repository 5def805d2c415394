"""
Quote totals orchestrator.

The single code path for quote totals. Live preview and persisted
recalculation both call compute_quote_totals; nothing else is allowed to
add up a quote.

Pipeline (always the full pipeline, never an incremental patch):
  1. allocate every transport zone → transport_cost
  2. price line items, aggregate them WITH the allocations → subtotal
     (transport is inside the subtotal, so margin and retention see it)
  3. margin & retention on that subtotal
  4. return the full breakdown

Input: QuoteInput
Output: QuoteTotals
"""

import logging

from ..schemas import PaymentTerms, QuoteInput, QuoteTotals
from .aggregator import aggregate, subtotals_by_category
from .margin import compute_margin_and_retention
from .rates import price_line_item
from .transport import allocate_zone, total_transport_cost
from .validation import require_allocation_totals

logger = logging.getLogger(__name__)


class QuotePricingEngine:
    """Stateless, one instance can serve every request."""

    # Payment terms by client type (days)
    PAYMENT_DAYS = {"corporativo": 30, "social": 15}
    ADVANCE_THRESHOLD = 500_000.0   # COP; totals above this need an advance
    ADVANCE_PERCENTAGE = 50.0

    def compute_totals(self, quote: QuoteInput,
                       enforce_allocation_totals: bool = True) -> QuoteTotals:
        """
        Compute the full breakdown for a quote.

        Args:
            quote: the complete current quote with all its items and zones
            enforce_allocation_totals: True on the authoritative path; manual
                transport allocations must then sum to transport_count or
                AllocationMismatchError is raised. Live preview passes False
                and reports the mismatch as a warning instead.

        Raises:
            InvalidReferenceError, AllocationMismatchError. Never returns a
            partial breakdown.
        """
        if enforce_allocation_totals:
            require_allocation_totals(quote)

        # 1. Transport
        allocations = []
        for zone_input in quote.transport_zones:
            allocations.extend(allocate_zone(zone_input))
        transport_cost = total_transport_cost(allocations)

        # 2. Line items + transport
        priced_items = [price_line_item(item) for item in quote.items]
        items_subtotal = aggregate(priced_items)
        subtotal = aggregate(priced_items, allocations)

        # 3. Margin & retention
        mr = compute_margin_and_retention(
            subtotal,
            quote.margin_percentage,
            quote.enable_retention,
            quote.retention_percentage,
            quote.retention_base_mode,
        )

        logger.debug(
            "Quote totals: items=%s transport=%s subtotal=%s margin=%s retention=%s total=%s",
            items_subtotal, transport_cost, subtotal, mr.margin_amount,
            mr.retention_amount, mr.total,
        )

        # 4. Breakdown
        return QuoteTotals(
            items_subtotal=items_subtotal,
            transport_cost=transport_cost,
            subtotal=subtotal,
            margin_percentage=quote.margin_percentage,
            margin_amount=mr.margin_amount,
            retention_enabled=quote.enable_retention,
            retention_percentage=quote.retention_percentage if quote.enable_retention else 0.0,
            retention_base_mode=quote.retention_base_mode,
            retention_base=mr.retention_base,
            retention_amount=mr.retention_amount,
            total=mr.total,
            category_subtotals=subtotals_by_category(priced_items),
            line_items=priced_items,
            transport_allocations=allocations,
            payment_terms=self._build_payment_terms(quote.client_type, mr.total),
        )

    def _build_payment_terms(self, client_type: str, total: float) -> PaymentTerms:
        requires_advance = total > self.ADVANCE_THRESHOLD
        return PaymentTerms(
            days=self.PAYMENT_DAYS.get(client_type, self.PAYMENT_DAYS["social"]),
            requires_advance=requires_advance,
            advance_percentage=self.ADVANCE_PERCENTAGE if requires_advance else 0.0,
        )


# Singleton engine, no state
engine = QuotePricingEngine()


def compute_quote_totals(quote: QuoteInput, enforce_allocation_totals: bool = True) -> QuoteTotals:
    return engine.compute_totals(quote, enforce_allocation_totals=enforce_allocation_totals)
