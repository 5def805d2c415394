"""
Plain-text quote summary for logs, emails and the /summary endpoint.

Rounding happens only here, at display time. The engine's numbers are never rounded.
"""

from ..schemas import QuoteTotals

CATEGORY_LABELS = {
    "employee": "Personal",
    "product": "Productos",
    "machinery": "Maquinaria",
    "machinery_rental": "Alquiler de maquinaria",
    "event_subcontract": "Subcontratación",
    "disposable_item": "Desechables",
}


def format_currency(amount: float) -> str:
    """COP, no decimals, dot thousands separator: 1234567.8 → '$ 1.234.568'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}$ {abs(amount):,.0f}".replace(",", ".")


def format_percentage(percentage: float) -> str:
    return f"{percentage:.1f}%"


def build_quote_summary(totals: QuoteTotals, client_type: str = "") -> str:
    lines = ["=== RESUMEN DE COTIZACIÓN ==="]
    if client_type:
        lines.append(f"Cliente: {client_type}")
    lines.append("")

    for item_type, subtotal in totals.category_subtotals.items():
        label = CATEGORY_LABELS.get(item_type, item_type)
        items = [i for i in totals.line_items if i.item_type == item_type]
        lines.append(f"{label.upper()} ({len(items)}):")
        for item in items:
            lines.append(
                f"  {item.description}: {item.quantity:g} x "
                f"{format_currency(item.unit_price)} = {format_currency(item.total_price)}"
            )
        lines.append(f"  Subtotal {label}: {format_currency(subtotal)}")
        lines.append("")

    if totals.transport_allocations:
        lines.append("TRANSPORTE:")
        for allocation in totals.transport_allocations:
            target = f"producto {allocation.product_id}" if allocation.product_id is not None else "zona completa"
            lines.append(
                f"  {allocation.zone_name} ({target}): {allocation.quantity:g} viajes = "
                f"{format_currency(allocation.cost)}"
            )
        lines.append(f"  Subtotal Transporte: {format_currency(totals.transport_cost)}")
        lines.append("")

    lines.append("TOTALES:")
    lines.append(f"  Subtotal: {format_currency(totals.subtotal)}")
    lines.append(
        f"  Margen {format_percentage(totals.margin_percentage)}: "
        f"{format_currency(totals.margin_amount)}"
    )
    if totals.retention_enabled:
        lines.append(
            f"  Retención {format_percentage(totals.retention_percentage)}: "
            f"-{format_currency(totals.retention_amount)}"
        )
    lines.append(f"  TOTAL FINAL: {format_currency(totals.total)}")
    lines.append("")

    terms = totals.payment_terms
    lines.append("TÉRMINOS DE PAGO:")
    lines.append(f"  Plazo: {terms.days} días")
    if terms.requires_advance:
        lines.append(f"  Anticipo: {format_percentage(terms.advance_percentage)}")
    else:
        lines.append("  Sin anticipo requerido")

    return "\n".join(lines)
