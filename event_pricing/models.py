from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
import enum


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    client_type = Column(String, nullable=False, default="social")  # 'social' | 'corporativo'
    tax_id = Column(String, nullable=True)  # NIT for corporate clients
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    quotes = relationship("Quote", back_populates="client")


class TransportZone(Base):
    """Reference data. Quotes point at zones, they never own them."""
    __tablename__ = "transport_zones"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    base_cost = Column(Float, nullable=False, default=0.0)
    additional_equipment_cost = Column(Float, nullable=True, default=0.0)
    estimated_travel_time_minutes = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Quote(Base):
    """
    Persisted quote snapshot.

    inputs_json holds the full QuoteInput (items + transport zones) the totals
    were computed from; the numeric columns are the engine's output at that
    moment. Every change recomputes everything, nothing is patched in place.

    `version` is an optimistic lock: two concurrent recalculate-and-save calls
    on the same quote can't both win.
    """
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    quote_number = Column(String, unique=True, index=True, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    client_type = Column(String, nullable=False, default="social")
    status = Column(String, default=QuoteStatus.DRAFT.value)
    event_title = Column(String, nullable=True)
    event_date = Column(DateTime, nullable=True)

    # Pricing configuration
    margin_percentage = Column(Float, default=0.0)
    enable_retention = Column(Boolean, default=False)
    retention_percentage = Column(Float, default=0.0)
    retention_base_mode = Column(String, nullable=False, default="subtotal_plus_margin_v2")

    inputs_json = Column(JSON, nullable=True)
    outputs_json = Column(JSON, nullable=True)

    # Snapshot of the last computation
    subtotal = Column(Float, default=0.0)
    transport_cost = Column(Float, default=0.0)
    margin_amount = Column(Float, default=0.0)
    tax_retention_amount = Column(Float, default=0.0)
    total_cost = Column(Float, default=0.0)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="quotes")
    items = relationship("QuoteItem", back_populates="quote", cascade="all, delete-orphan",
                         order_by="QuoteItem.position")

    __mapper_args__ = {"version_id_col": version}


class QuoteItem(Base):
    """One priced line of a quote snapshot (rewritten on every recalculation)."""
    __tablename__ = "quote_items"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    item_type = Column(String, nullable=False)
    reference_id = Column(Integer, nullable=True)
    product_id = Column(Integer, nullable=True)
    description = Column(String, nullable=False)
    quantity = Column(Float, default=0.0)
    unit_price = Column(Float, default=0.0)
    total_price = Column(Float, default=0.0)
    is_override = Column(Boolean, default=False)

    quote = relationship("Quote", back_populates="items")
