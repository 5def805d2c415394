"""
Quote persistence around the pricing engine.

Everything that touches the database lives here: quote numbering, resolving
transport zones by id, client-type defaults, writing the totals snapshot, and
the bulk recalculation used when the retention formula changes.

Totals are always produced by pricing.engine.compute_quote_totals, the same
function the live preview calls.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..config import settings
from ..exceptions import PricingError
from ..pricing.engine import compute_quote_totals
from ..pricing.margin import RetentionBaseMode
from ..pricing.validation import validate_quote
from ..schemas import QuoteInput, QuoteTotals, TransportZone

logger = logging.getLogger(__name__)

QUOTE_NUMBER_ATTEMPTS = 3


def generate_quote_number(db: Session, prefix: Optional[str] = None,
                          year: Optional[int] = None) -> str:
    """
    Next quote number in the form PREFIX-YYYY-NNN.

    Highest existing number for the year plus one, zero padded to 3 digits.
    Numbering restarts at 001 every year.
    """
    prefix = prefix or settings.QUOTE_NUMBER_PREFIX
    year = year or datetime.utcnow().year
    head = f"{prefix}-{year}-"

    rows = db.query(models.Quote.quote_number).filter(
        models.Quote.quote_number.like(f"{head}%")
    ).all()

    max_number = 0
    for (quote_number,) in rows:
        tail = quote_number[len(head):]
        if tail.isdigit():
            max_number = max(max_number, int(tail))

    return f"{head}{str(max_number + 1).zfill(3)}"


def defaults_for_client_type(client_type: str) -> dict:
    """Starting margin/retention for a new quote. Operators can change any of them."""
    if client_type == "corporativo":
        return {
            "margin_percentage": settings.DEFAULT_MARGIN_CORPORATIVO,
            "enable_retention": True,
            "retention_percentage": settings.DEFAULT_RETENTION_PCT,
        }
    return {
        "margin_percentage": settings.DEFAULT_MARGIN_SOCIAL,
        "enable_retention": False,
        "retention_percentage": 0.0,
    }


def resolve_transport_zones(db: Session, quote_input: QuoteInput) -> QuoteInput:
    """
    Fill in zones given only by zone_id from the transport_zones table.

    An unknown id leaves the zone empty; the engine then raises
    InvalidReferenceError naming that id rather than pricing it at 0.
    """
    resolved = []
    for zone_input in quote_input.transport_zones:
        if zone_input.zone is None and zone_input.zone_id is not None:
            row = db.query(models.TransportZone).filter(
                models.TransportZone.id == zone_input.zone_id
            ).first()
            if row is not None:
                zone_input = zone_input.model_copy(
                    update={"zone": TransportZone.model_validate(row)}
                )
            else:
                logger.warning("Transport zone %s not found", zone_input.zone_id)
        resolved.append(zone_input)
    return quote_input.model_copy(update={"transport_zones": resolved})


def quote_input_from_row(quote: models.Quote) -> QuoteInput:
    """Rebuild the engine input from a persisted quote. Config columns win over inputs_json."""
    inputs = dict(quote.inputs_json or {})
    inputs.update({
        "client_id": quote.client_id,
        "client_type": quote.client_type,
        "margin_percentage": quote.margin_percentage or 0.0,
        "enable_retention": bool(quote.enable_retention),
        "retention_percentage": quote.retention_percentage or 0.0,
        "retention_base_mode": quote.retention_base_mode,
    })
    return QuoteInput.model_validate(inputs)


def apply_totals(quote: models.Quote, quote_input: QuoteInput, totals: QuoteTotals) -> None:
    """Overwrite the quote's snapshot (config, inputs, totals, item rows) with a fresh computation."""
    quote.client_type = quote_input.client_type
    quote.margin_percentage = quote_input.margin_percentage
    quote.enable_retention = quote_input.enable_retention
    quote.retention_percentage = quote_input.retention_percentage
    quote.retention_base_mode = quote_input.retention_base_mode.value
    quote.inputs_json = quote_input.model_dump(mode="json")
    quote.outputs_json = totals.model_dump(mode="json")

    quote.subtotal = totals.subtotal
    quote.transport_cost = totals.transport_cost
    quote.margin_amount = totals.margin_amount
    quote.tax_retention_amount = totals.retention_amount
    quote.total_cost = totals.total
    quote.updated_at = datetime.utcnow()

    quote.items = [
        models.QuoteItem(position=position, **line.model_dump())
        for position, line in enumerate(totals.line_items)
    ]


def price_for_persistence(db: Session, quote_input: QuoteInput):
    """Authoritative computation: inputs in range, zones resolved, allocations must add up."""
    validate_quote(quote_input)
    quote_input = resolve_transport_zones(db, quote_input)
    return quote_input, compute_quote_totals(quote_input, enforce_allocation_totals=True)


def create_quote(db: Session, client: models.Client, quote_input: QuoteInput,
                 event_title: Optional[str] = None) -> models.Quote:
    """
    Price and insert a new quote.

    The number is max+1 for the year, so two creates racing for it can
    collide on the unique index. The loser rolls back and takes the next
    number, up to QUOTE_NUMBER_ATTEMPTS times.
    """
    quote_input = quote_input.model_copy(
        update={"client_id": client.id, "client_type": client.client_type}
    )
    quote_input, totals = price_for_persistence(db, quote_input)
    client_id = client.id

    for attempt in range(1, QUOTE_NUMBER_ATTEMPTS + 1):
        quote_number = generate_quote_number(db)
        quote = models.Quote(
            quote_number=quote_number,
            client_id=client_id,
            event_title=event_title,
        )
        apply_totals(quote, quote_input, totals)
        db.add(quote)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if attempt == QUOTE_NUMBER_ATTEMPTS:
                raise
            logger.warning("Quote number %s already taken, retrying", quote_number)
            continue
        break

    db.refresh(quote)
    logger.info("Created quote %s, total %.2f", quote.quote_number, quote.total_cost)
    return quote


def update_quote(db: Session, quote: models.Quote, quote_input: QuoteInput) -> models.Quote:
    """Replace a quote's configuration and items, recompute from scratch, save."""
    quote_input = quote_input.model_copy(
        update={"client_id": quote.client_id, "client_type": quote.client_type}
    )
    quote_input, totals = price_for_persistence(db, quote_input)
    apply_totals(quote, quote_input, totals)
    db.commit()
    db.refresh(quote)
    return quote


def recalculate_quote(db: Session, quote: models.Quote) -> models.Quote:
    """Recompute a persisted quote from its stored inputs."""
    quote_input, totals = price_for_persistence(db, quote_input_from_row(quote))
    apply_totals(quote, quote_input, totals)
    db.commit()
    db.refresh(quote)
    return quote


def recalculate_quotes(db: Session, retention_base_mode: Optional[str] = None,
                       client_type: Optional[str] = None,
                       dry_run: bool = False) -> List[dict]:
    """
    Bulk recomputation of persisted quotes. The migration path when the
    retention formula (or anything else in the engine) changes.

    Args:
        retention_base_mode: move every quote to this RetentionBaseMode value;
            None keeps each quote's stored mode
        client_type: only quotes for this client type
        dry_run: report differences without writing

    Returns:
        one dict per quote: quote_number, old_total, new_total, difference
        (or an "error" message when the quote can't be priced)
    """
    mode = RetentionBaseMode(retention_base_mode) if retention_base_mode else None

    query = db.query(models.Quote)
    if client_type:
        query = query.filter(models.Quote.client_type == client_type)
    quotes = query.order_by(models.Quote.created_at.desc()).all()
    logger.info("Recalculating %d quotes (dry_run=%s)", len(quotes), dry_run)

    report = []
    for quote in quotes:
        try:
            quote_input = quote_input_from_row(quote)
            if mode is not None:
                quote_input = quote_input.model_copy(update={"retention_base_mode": mode})
            validate_quote(quote_input)
            totals = compute_quote_totals(quote_input, enforce_allocation_totals=True)
        except PricingError as e:
            logger.error("Cannot recalculate %s: %s", quote.quote_number, e.message)
            report.append({"quote_number": quote.quote_number, "error": e.message})
            continue

        old_total = quote.total_cost or 0.0
        entry = {
            "quote_number": quote.quote_number,
            "old_total": old_total,
            "new_total": totals.total,
            "difference": totals.total - old_total,
            "retention_base_mode": quote_input.retention_base_mode.value,
        }
        report.append(entry)
        logger.info(
            "%s: %.2f → %.2f (%+.2f)",
            quote.quote_number, old_total, totals.total, entry["difference"],
        )

        if not dry_run:
            apply_totals(quote, quote_input, totals)

    if not dry_run:
        db.commit()
    return report
