"""Tests for mapping invoice rows in the PostgreSQL settlement repository."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from backend.app.currency import CurrencyCode
from backend.app.settlement import PostgresSettlementRepository, SettlementError


class FakeCursor:
    def __init__(self, row: Optional[Dict[str, Any]]) -> None:
        self.row = row
        self.executed: List[tuple] = []

    def execute(self, query: str, params=None) -> None:
        self.executed.append((query, params))

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self.row

    def close(self) -> None:
        return None


class FakeConnection:
    def __init__(self, row: Optional[Dict[str, Any]]) -> None:
        self.cursor_obj = FakeCursor(row)

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return self.cursor_obj


def _row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "id": "inv_1",
        "amount": "100.00",
        "currency": "USD",
        "status": "sent",
        "exchange_rate": None,
        "invoice_number": "INV-0001",
        "business_name": "Kente Works",
    }
    row.update(overrides)
    return row


def test_get_invoice_maps_row() -> None:
    repository = PostgresSettlementRepository(conn=FakeConnection(_row(exchange_rate="12.5")))

    invoice = repository.get_invoice("inv_1")

    assert invoice is not None
    assert invoice.amount == 100.0
    assert invoice.currency == CurrencyCode.USD
    assert invoice.exchange_rate == 12.5
    assert invoice.business_name == "Kente Works"


def test_get_invoice_missing_row() -> None:
    assert PostgresSettlementRepository(conn=FakeConnection(None)).get_invoice("inv_1") is None


@pytest.mark.parametrize(
    "overrides",
    [{"amount": "0"}, {"currency": "NGN"}, {"status": "archived"}],
)
def test_unsettleable_invoice_row_raises_settlement_error(overrides) -> None:
    repository = PostgresSettlementRepository(conn=FakeConnection(_row(**overrides)))

    with pytest.raises(SettlementError) as excinfo:
        repository.get_invoice("inv_1")

    assert excinfo.value.code == "invalid_invoice"
    assert excinfo.value.status_code == 400
