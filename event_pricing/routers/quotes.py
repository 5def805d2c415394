"""
Quotes API. Live preview and persisted recalculation share one engine.

POST /api/quotes/preview            totals for unsaved form state (+ warnings)
POST /api/quotes                    create a quote, compute and store its snapshot
GET  /api/quotes/{id}               stored snapshot
PUT  /api/quotes/{id}               replace config/items, recompute, store
POST /api/quotes/{id}/recalculate   recompute from stored inputs
GET  /api/quotes/{id}/summary       plain-text breakdown
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import models
from ..config import settings
from ..database import get_db
from ..exceptions import PricingError
from ..pricing.engine import compute_quote_totals
from ..pricing.margin import RetentionBaseMode
from ..pricing.summary import build_quote_summary
from ..pricing.validation import collect_warnings
from ..schemas import LineItem, QuoteInput, QuoteTotals, TransportZoneInput
from ..services import quote_service

router = APIRouter(prefix="/quotes", tags=["quotes"])


# --- Request schemas ---

class QuoteCreate(BaseModel):
    client_id: int
    event_title: Optional[str] = None
    # None → defaults for the client's type
    margin_percentage: Optional[float] = None
    enable_retention: Optional[bool] = None
    retention_percentage: Optional[float] = None
    retention_base_mode: Optional[RetentionBaseMode] = None
    items: List[LineItem] = []
    transport_zones: List[TransportZoneInput] = []


class QuoteUpdate(BaseModel):
    margin_percentage: float
    enable_retention: bool
    retention_percentage: float
    retention_base_mode: Optional[RetentionBaseMode] = None
    items: List[LineItem] = []
    transport_zones: List[TransportZoneInput] = []
    version: Optional[int] = None  # optimistic lock: the version the editor loaded


class PreviewResponse(BaseModel):
    totals: QuoteTotals
    warnings: List[str] = []


# --- Endpoints ---

@router.post("/preview", response_model=PreviewResponse)
def preview_quote(quote: QuoteInput, db: Session = Depends(get_db)):
    """
    Live recalculation while the operator edits. Allocation mismatches and
    out-of-range percentages come back as warnings, not errors.
    """
    quote = quote_service.resolve_transport_zones(db, quote)
    try:
        totals = compute_quote_totals(quote, enforce_allocation_totals=False)
    except PricingError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    return PreviewResponse(totals=totals, warnings=collect_warnings(quote))


@router.post("/")
def create_quote(request: QuoteCreate, db: Session = Depends(get_db)):
    client = db.query(models.Client).filter(models.Client.id == request.client_id).first()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    config = quote_service.defaults_for_client_type(client.client_type)
    for field in ("margin_percentage", "enable_retention", "retention_percentage"):
        value = getattr(request, field)
        if value is not None:
            config[field] = value

    quote_input = QuoteInput(
        client_id=client.id,
        client_type=client.client_type,
        retention_base_mode=request.retention_base_mode or settings.RETENTION_BASE_MODE,
        items=request.items,
        transport_zones=request.transport_zones,
        **config,
    )
    try:
        quote = quote_service.create_quote(db, client, quote_input, event_title=request.event_title)
    except PricingError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=e.to_dict())
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Could not assign a quote number, retry")
    return _quote_to_dict(quote)


@router.get("/{quote_id}")
def get_quote(quote_id: int, db: Session = Depends(get_db)):
    return _quote_to_dict(_get_quote_or_404(db, quote_id))


@router.put("/{quote_id}")
def update_quote(quote_id: int, update: QuoteUpdate, db: Session = Depends(get_db)):
    quote = _get_quote_or_404(db, quote_id)
    if update.version is not None and update.version != quote.version:
        raise HTTPException(
            status_code=409,
            detail=f"Quote {quote.quote_number} changed since version {update.version} "
                   f"(now {quote.version}), reload before saving",
        )

    quote_input = QuoteInput(
        client_id=quote.client_id,
        client_type=quote.client_type,
        margin_percentage=update.margin_percentage,
        enable_retention=update.enable_retention,
        retention_percentage=update.retention_percentage,
        retention_base_mode=update.retention_base_mode or quote.retention_base_mode,
        items=update.items,
        transport_zones=update.transport_zones,
    )
    try:
        quote = quote_service.update_quote(db, quote, quote_input)
    except PricingError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=e.to_dict())
    except StaleDataError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Quote was modified concurrently, reload")
    return _quote_to_dict(quote)


@router.post("/{quote_id}/recalculate")
def recalculate_quote(quote_id: int, db: Session = Depends(get_db)):
    quote = _get_quote_or_404(db, quote_id)
    try:
        quote = quote_service.recalculate_quote(db, quote)
    except PricingError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=e.to_dict())
    except StaleDataError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Quote was modified concurrently, reload")
    return _quote_to_dict(quote)


@router.get("/{quote_id}/summary", response_class=PlainTextResponse)
def get_quote_summary(quote_id: int, db: Session = Depends(get_db)):
    quote = _get_quote_or_404(db, quote_id)
    if not quote.outputs_json:
        raise HTTPException(status_code=409, detail="Quote has no computed totals yet")
    totals = QuoteTotals.model_validate(quote.outputs_json)
    return build_quote_summary(totals, quote.client_type)


def _get_quote_or_404(db: Session, quote_id: int) -> models.Quote:
    quote = db.query(models.Quote).filter(models.Quote.id == quote_id).first()
    if not quote:
        raise HTTPException(status_code=404, detail="Quote not found")
    return quote


def _quote_to_dict(q: models.Quote) -> dict:
    return {
        "id": q.id,
        "quote_number": q.quote_number,
        "status": q.status,
        "client_id": q.client_id,
        "client_type": q.client_type,
        "event_title": q.event_title,
        "margin_percentage": q.margin_percentage,
        "enable_retention": q.enable_retention,
        "retention_percentage": q.retention_percentage,
        "retention_base_mode": q.retention_base_mode,
        "subtotal": q.subtotal,
        "transport_cost": q.transport_cost,
        "margin_amount": q.margin_amount,
        "tax_retention_amount": q.tax_retention_amount,
        "total_cost": q.total_cost,
        "version": q.version,
        "created_at": q.created_at.isoformat() if q.created_at else None,
        "updated_at": q.updated_at.isoformat() if q.updated_at else None,
        "items": [_item_to_dict(i) for i in q.items],
        "transport_allocations": (q.outputs_json or {}).get("transport_allocations", []),
    }


def _item_to_dict(i: models.QuoteItem) -> dict:
    return {
        "id": i.id,
        "item_type": i.item_type,
        "reference_id": i.reference_id,
        "product_id": i.product_id,
        "description": i.description,
        "quantity": i.quantity,
        "unit_price": i.unit_price,
        "total_price": i.total_price,
        "is_override": i.is_override,
    }
