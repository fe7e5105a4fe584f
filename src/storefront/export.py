"""CSV export in the ZR Express import format."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from .models import Order

ZR_EXPRESS_HEADERS = [
    "nom complet",
    "telephone1",
    "telephone2",
    "produit",
    "quantite",
    "Sku",
    "type de stock",
    "Adresse",
    "Wilaya",
    "Commune",
    "prix total de la commande",
    "Note",
    "ID",
    "Stopdesk",
    "Nom stopDesk",
]


def format_amount(value: float | int | None) -> str:
    """Render a number the way the shipping provider expects (10350, not 10350.0)."""
    if value is None:
        return "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _quote(cell: object) -> str:
    return '"' + str(cell).replace('"', '""') + '"'


def order_row(order: Order) -> list[str]:
    """The 15 cells of one order."""
    first = order.lines[0] if order.lines else None
    return [
        order.customer_name or "",
        order.customer_phone or "",
        order.customer_phone2 or "",
        ", ".join(line.title for line in order.lines),
        ", ".join(str(line.quantity) for line in order.lines),
        first.product_id if first else "",
        "",
        order.address or "",
        order.region or "",
        order.commune or "",
        format_amount(order.total),
        order.notes or "",
        order.id or "",
        "",
        "",
    ]


def export_csv(orders: Iterable[Order], order_ids: set[str] | None = None) -> str:
    """
    Build the ZR Express CSV for a set of orders.

    Args:
        orders: Candidate orders.
        order_ids: Restrict to these ids (all orders when None or empty).

    Returns:
        CSV text: unquoted header row, then one quoted row per order, newest
        first, cancelled orders excluded, rows joined by "\\n".
    """
    selected = [
        o for o in orders
        if o.status != "cancelled" and (not order_ids or o.id in order_ids)
    ]
    selected.sort(key=lambda o: o.created_at, reverse=True)

    rows = [",".join(ZR_EXPRESS_HEADERS)]
    rows.extend(",".join(_quote(cell) for cell in order_row(o)) for o in selected)
    return "\n".join(rows)


def export_filename(now: datetime | None = None) -> str:
    """Attachment name, e.g. ZR_Express_1718000000000.csv."""
    now = now or datetime.now(timezone.utc)
    return f"ZR_Express_{int(now.timestamp() * 1000)}.csv"
