"""Tests for the ZR Express CSV export."""

from datetime import datetime, timezone

from storefront.export import (
    ZR_EXPRESS_HEADERS,
    export_csv,
    export_filename,
    format_amount,
    order_row,
)
from storefront.models import Order, OrderLine


def make_order(order_id, status="pending", created_at="2024-05-01T10:00:00Z", **fields):
    values = {
        "id": order_id,
        "customer_name": "Sara",
        "customer_phone": "0551925318",
        "region": "Alger",
        "commune": "Hydra",
        "lines": [OrderLine(product_id="p1", title="Bague Or", unit_price=5000, quantity=2)],
        "subtotal": 10000,
        "delivery_price": 350,
        "total": 10350,
        "status": status,
        "created_at": created_at,
    }
    values.update(fields)
    return Order(**values)


class TestExportCsv:
    def test_header_row(self):
        lines = export_csv([]).split("\n")
        assert lines == [",".join(ZR_EXPRESS_HEADERS)]
        assert len(ZR_EXPRESS_HEADERS) == 15

    def test_excludes_cancelled(self):
        content = export_csv([make_order("ord-1"), make_order("ord-2", status="cancelled")])
        lines = content.split("\n")
        assert len(lines) == 2
        assert '"ord-1"' in lines[1]
        assert "ord-2" not in content

    def test_row_cells(self):
        order = make_order(
            "42",
            customer_phone2="0661234567",
            address="12 rue Didouche",
            notes="Appeler avant",
            lines=[
                OrderLine(product_id="p1", title="Bague Or", unit_price=5000, quantity=2),
                OrderLine(product_id="p2", title="Collier", unit_price=1000, quantity=1),
            ],
        )
        assert order_row(order) == [
            "Sara",
            "0551925318",
            "0661234567",
            "Bague Or, Collier",
            "2, 1",
            "p1",
            "",
            "12 rue Didouche",
            "Alger",
            "Hydra",
            "10350",
            "Appeler avant",
            "42",
            "",
            "",
        ]

    def test_quotes_embedded_quotes(self):
        content = export_csv([make_order("1", notes='porte "B"')])
        assert '"porte ""B"""' in content

    def test_filter_by_ids_and_newest_first(self):
        orders = [
            make_order("old", created_at="2024-01-01T00:00:00Z"),
            make_order("new", created_at="2024-06-01T00:00:00Z"),
            make_order("skip", created_at="2024-07-01T00:00:00Z"),
        ]
        lines = export_csv(orders, {"old", "new"}).split("\n")
        assert len(lines) == 3
        assert '"new"' in lines[1]
        assert '"old"' in lines[2]


class TestFormatting:
    def test_format_amount(self):
        assert format_amount(10350.0) == "10350"
        assert format_amount(10350) == "10350"
        assert format_amount(99.5) == "99.5"
        assert format_amount(None) == "0"

    def test_export_filename(self):
        now = datetime(2024, 6, 10, 6, 13, 20, tzinfo=timezone.utc)
        assert export_filename(now) == "ZR_Express_1718000000000.csv"
