# This test file validates carry-forward persistence in memory and in SQL.
# SQL runs against a SQLite file so the replace-in-one-transaction behavior is exercised for real.

from __future__ import annotations

from datetime import UTC, date, datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine

from src.rent_pricing.carry_forward_store import (
    CarryForwardSnapshot,
    InMemoryCarryForwardStore,
    SqlCarryForwardStore,
    snapshot_from_result,
)
from src.rent_pricing.models import CarryForwardBaseline
from src.rent_pricing.pricing_engine import price_all_units
from tests.rent_pricing.support import context, standard_config, unit

CALCULATED_AT = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


def _snapshot(rents: dict[str, float], *, at: str = "2025-01-15T12:00:00+00:00") -> CarryForwardSnapshot:
    return CarryForwardSnapshot(
        property_id="prop-1",
        fp_baselines={"A1": max(rents.values())},
        at=at,
        units={
            unit_id: CarryForwardBaseline(
                unit_id=unit_id,
                floorplan_code="A1",
                prior_approved_rent=rent,
                prior_approved_date="2025-01-15",
                term=14,
            )
            for unit_id, rent in rents.items()
        },
    )


def _sql_store(tmp_path: Path) -> SqlCarryForwardStore:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'carry_forward.db'}", future=True)
    return SqlCarryForwardStore(engine=engine)


def test_snapshot_from_result_keeps_reference_rents() -> None:
    result = price_all_units(
        [unit("A1-101", "A1", current_rent=1500), unit("A1-102", "A1", current_rent=1400)],
        standard_config(),
        context({"A1": 0.945}),
        calculated_at=CALCULATED_AT,
    )

    snapshot = snapshot_from_result(result, property_id="prop-1", today=date(2025, 1, 15))

    assert snapshot.at == CALCULATED_AT.isoformat()
    assert snapshot.units["A1-101"].prior_approved_rent == 1500
    assert snapshot.units["A1-102"].prior_approved_date == "2025-01-15"
    assert snapshot.units["A1-102"].term == 14
    assert "A1" in snapshot.fp_baselines


def test_in_memory_store_round_trip() -> None:
    store = InMemoryCarryForwardStore()

    assert store.load("prop-1") is None
    store.save("prop-1", _snapshot({"A1-101": 1450}))
    assert store.load("prop-1").units["A1-101"].prior_approved_rent == 1450


def test_sql_store_round_trip(tmp_path: Path) -> None:
    store = _sql_store(tmp_path)

    assert store.load("prop-1") is None
    store.save("prop-1", _snapshot({"A1-101": 1450, "A1-102": 1390}))
    loaded = store.load("prop-1")

    assert loaded is not None
    assert loaded.fp_baselines == {"A1": 1450.0}
    assert loaded.at == "2025-01-15T12:00:00+00:00"
    assert sorted(loaded.units) == ["A1-101", "A1-102"]
    assert loaded.units["A1-102"].prior_approved_rent == 1390.0
    assert loaded.units["A1-102"].term == 14


def test_sql_store_save_replaces_previous_rows(tmp_path: Path) -> None:
    store = _sql_store(tmp_path)
    store.save("prop-1", _snapshot({"A1-101": 1450, "A1-102": 1390}))
    store.save("prop-1", _snapshot({"A1-101": 1460}, at="2025-01-16T12:00:00+00:00"))
    store.save("prop-2", _snapshot({"B2-201": 1900}))

    loaded = store.load("prop-1")

    assert loaded is not None
    assert list(loaded.units) == ["A1-101"]
    assert loaded.units["A1-101"].prior_approved_rent == 1460.0
    assert loaded.at == "2025-01-16T12:00:00+00:00"
    assert list(store.load("prop-2").units) == ["B2-201"]


def test_sql_store_rejects_unsafe_table_name(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'unsafe.db'}", future=True)
    with pytest.raises(ValueError, match="Unsafe SQL identifier"):
        SqlCarryForwardStore(engine=engine, unit_table_name="baselines; DROP TABLE x")
