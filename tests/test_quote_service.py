"""
Quote persistence tests: numbering, defaults, zone resolution, snapshots, backfill.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from event_pricing import models
from event_pricing.exceptions import AllocationMismatchError, OutOfRangeConfigurationError
from event_pricing.pricing.margin import RetentionBaseMode
from event_pricing.schemas import (
    Employee,
    EmployeeLine,
    Product,
    ProductLine,
    QuoteInput,
    TransportZoneInput,
)
from event_pricing.services import quote_service


def _sample_client(db, client_type="corporativo"):
    client = models.Client(name="Bancolombia Eventos", client_type=client_type, tax_id="890903938")
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def _sample_zone(db):
    zone = models.TransportZone(
        name="Zona Norte", base_cost=50000, additional_equipment_cost=25000,
        estimated_travel_time_minutes=45,
    )
    db.add(zone)
    db.commit()
    db.refresh(zone)
    return zone


def _million_quote(**overrides):
    data = {
        "margin_percentage": 20,
        "enable_retention": True,
        "retention_percentage": 4,
        "items": [ProductLine(product=Product(id=1, name="Banquete", base_price=100000),
                              quantity=10)],
    }
    data.update(overrides)
    return QuoteInput(**data)


# --- Numbering ---

def test_first_quote_number_of_the_year(db):
    assert quote_service.generate_quote_number(db, year=2025) == "SUE-2025-001"


def test_quote_number_is_max_plus_one(db):
    client = _sample_client(db)
    for number in ("SUE-2025-001", "SUE-2025-007", "SUE-2024-031"):
        db.add(models.Quote(quote_number=number, client_id=client.id))
    db.commit()

    assert quote_service.generate_quote_number(db, year=2025) == "SUE-2025-008"
    # Numbering restarts each year
    assert quote_service.generate_quote_number(db, year=2026) == "SUE-2026-001"


# --- Defaults & zones ---

def test_defaults_by_client_type():
    corporate = quote_service.defaults_for_client_type("corporativo")
    assert corporate == {
        "margin_percentage": 30.0, "enable_retention": True, "retention_percentage": 4.0,
    }
    social = quote_service.defaults_for_client_type("social")
    assert social["margin_percentage"] == 25.0
    assert social["enable_retention"] is False


def test_resolve_transport_zones_by_id(db):
    zone = _sample_zone(db)
    quote_input = QuoteInput(transport_zones=[
        TransportZoneInput(zone_id=zone.id, transport_count=2),
        TransportZoneInput(zone_id=999),
    ])
    resolved = quote_service.resolve_transport_zones(db, quote_input)

    assert resolved.transport_zones[0].zone.name == "Zona Norte"
    assert resolved.transport_zones[0].zone.base_cost == 50000
    assert resolved.transport_zones[1].zone is None


# --- Create / recalculate ---

def test_create_quote_stores_snapshot(db):
    client = _sample_client(db)
    zone = _sample_zone(db)
    quote_input = _million_quote(transport_zones=[TransportZoneInput(zone_id=zone.id)])

    quote = quote_service.create_quote(db, client, quote_input, event_title="Cierre de año")

    assert quote.quote_number.startswith("SUE-")
    assert quote.client_type == "corporativo"
    assert quote.transport_cost == 50000
    assert quote.subtotal == 1_050_000
    assert quote.margin_amount == pytest.approx(210_000)
    assert quote.tax_retention_amount == pytest.approx(50_400)
    assert quote.total_cost == pytest.approx(1_209_600)
    assert quote.retention_base_mode == "subtotal_plus_margin_v2"
    assert len(quote.items) == 1
    assert quote.items[0].description == "Banquete"
    # The resolved zone is kept with the inputs
    assert quote.inputs_json["transport_zones"][0]["zone"]["name"] == "Zona Norte"
    assert quote.version == 1


def test_create_quote_rejects_out_of_range_margin(db):
    client = _sample_client(db)
    with pytest.raises(OutOfRangeConfigurationError):
        quote_service.create_quote(db, client, _million_quote(margin_percentage=201))
    assert db.query(models.Quote).count() == 0


def test_create_quote_rejects_allocation_mismatch(db, zona_norte):
    client = _sample_client(db)
    quote_input = _million_quote(transport_zones=[TransportZoneInput(
        zone=zona_norte,
        transport_count=3,
        use_flexible_transport=True,
        transport_allocations=[{"product_id": 1, "quantity": 1}],
    )])
    with pytest.raises(AllocationMismatchError):
        quote_service.create_quote(db, client, quote_input)


def test_recalculate_quote_is_idempotent(db):
    client = _sample_client(db)
    quote = quote_service.create_quote(db, client, _million_quote())
    before = quote.total_cost

    quote = quote_service.recalculate_quote(db, quote)
    assert quote.total_cost == before
    assert quote.version == 2


def test_update_quote_replaces_items(db):
    client = _sample_client(db)
    quote = quote_service.create_quote(db, client, _million_quote())

    updated = quote_service.update_quote(db, quote, _million_quote(
        enable_retention=False,
        items=[ProductLine(product=Product(id=2, name="Café", base_price=3000), quantity=50)],
    ))
    assert [i.description for i in updated.items] == ["Café"]
    assert updated.subtotal == 150000
    assert updated.total_cost == pytest.approx(180000)


# --- Backfill ---

def test_backfill_dry_run_reports_without_writing(db):
    client = _sample_client(db)
    quote = quote_service.create_quote(
        db, client, _million_quote(retention_base_mode=RetentionBaseMode.SUBTOTAL),
    )
    assert quote.total_cost == pytest.approx(1_160_000)

    report = quote_service.recalculate_quotes(
        db, retention_base_mode="subtotal_plus_margin_v2", dry_run=True,
    )
    assert len(report) == 1
    assert report[0]["old_total"] == pytest.approx(1_160_000)
    assert report[0]["new_total"] == pytest.approx(1_152_000)
    assert report[0]["difference"] == pytest.approx(-8_000)

    db.expire_all()
    assert db.query(models.Quote).one().retention_base_mode == "subtotal_v1"


def test_backfill_writes_new_mode(db):
    client = _sample_client(db)
    quote_service.create_quote(
        db, client, _million_quote(retention_base_mode=RetentionBaseMode.SUBTOTAL),
    )

    quote_service.recalculate_quotes(db, retention_base_mode="subtotal_plus_margin_v2")

    db.expire_all()
    quote = db.query(models.Quote).one()
    assert quote.retention_base_mode == "subtotal_plus_margin_v2"
    assert quote.tax_retention_amount == pytest.approx(48_000)
    assert quote.total_cost == pytest.approx(1_152_000)


def test_backfill_filters_by_client_type(db):
    corporate = _sample_client(db)
    social = _sample_client(db, client_type="social")
    quote_service.create_quote(db, corporate, _million_quote())
    quote_service.create_quote(db, social, _million_quote())

    report = quote_service.recalculate_quotes(db, client_type="social", dry_run=True)
    assert len(report) == 1


def test_backfill_reports_unpriceable_quotes(db):
    client = _sample_client(db)
    db.add(models.Quote(
        quote_number="SUE-2025-050",
        client_id=client.id,
        client_type="corporativo",
        inputs_json={"transport_zones": [{"zone_id": 77}]},
        total_cost=1000,
    ))
    db.commit()

    report = quote_service.recalculate_quotes(db, dry_run=True)
    assert report[0]["quote_number"] == "SUE-2025-050"
    assert "error" in report[0]


def test_backfill_applies_the_same_range_checks(db):
    client = _sample_client(db)
    db.add(models.Quote(
        quote_number="SUE-2025-051",
        client_id=client.id,
        client_type="corporativo",
        margin_percentage=350,
        inputs_json={},
        total_cost=0,
    ))
    db.commit()

    report = quote_service.recalculate_quotes(db, dry_run=True)
    assert "margin_percentage" in report[0]["error"]


# --- Line-item checks on the persisted path ---

def test_create_quote_rejects_negative_quantity(db):
    client = _sample_client(db)
    quote_input = _million_quote(items=[
        ProductLine(product=Product(id=1, name="Banquete", base_price=5000), quantity=-10),
    ])
    with pytest.raises(OutOfRangeConfigurationError) as exc_info:
        quote_service.create_quote(db, client, quote_input)
    assert exc_info.value.field == "items[0].quantity"
    assert db.query(models.Quote).count() == 0


def test_create_quote_rejects_single_day_over_24_hours(db):
    client = _sample_client(db)
    quote_input = _million_quote(items=[
        EmployeeLine(employee=Employee(id=1, name="Ana", hourly_rate=10000), hours=40),
    ])
    with pytest.raises(OutOfRangeConfigurationError):
        quote_service.create_quote(db, client, quote_input)


# --- Quote number collisions ---

def test_create_quote_retries_taken_number(db, monkeypatch):
    client = _sample_client(db)
    db.add(models.Quote(quote_number="SUE-2025-001", client_id=client.id))
    db.commit()

    numbers = iter(["SUE-2025-001", "SUE-2025-002"])
    monkeypatch.setattr(quote_service, "generate_quote_number", lambda db: next(numbers))

    quote = quote_service.create_quote(db, client, _million_quote())
    assert quote.quote_number == "SUE-2025-002"
    assert db.query(models.Quote).count() == 2


def test_create_quote_gives_up_after_repeated_collisions(db, monkeypatch):
    client = _sample_client(db)
    db.add(models.Quote(quote_number="SUE-2025-001", client_id=client.id))
    db.commit()

    monkeypatch.setattr(quote_service, "generate_quote_number", lambda db: "SUE-2025-001")
    with pytest.raises(IntegrityError):
        quote_service.create_quote(db, client, _million_quote())
    assert db.query(models.Quote).count() == 1
