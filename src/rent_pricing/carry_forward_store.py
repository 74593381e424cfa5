# This module persists approved rents between pricing runs so prices do not snap back.
# It exists behind a small repository interface so the pricing rules never touch storage directly.
# The SQL store replaces a property's rows inside one transaction, which keeps reruns idempotent.
# Identifiers are allowlisted before they are interpolated into any statement.

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Protocol

import pandas as pd
from sqlalchemy import text
from sqlalchemy.engine import Engine

from src.rent_pricing.models import CarryForwardBaseline, positive_or_none
from src.rent_pricing.pricing_engine import PricingEngineResult

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _safe_identifier(identifier: str) -> str:
    if not _IDENTIFIER_RE.match(identifier):
        raise ValueError(f"Unsafe SQL identifier: {identifier!r}")
    return identifier


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class CarryForwardSnapshot:
    property_id: str
    fp_baselines: dict[str, float]
    at: str
    units: dict[str, CarryForwardBaseline] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "property_id": self.property_id,
            "fp_baselines": dict(self.fp_baselines),
            "at": self.at,
            "units": [baseline.to_dict() for baseline in self.units.values()],
        }


class CarryForwardStore(Protocol):
    def load(self, property_id: str) -> CarryForwardSnapshot | None: ...

    def save(self, property_id: str, snapshot: CarryForwardSnapshot) -> None: ...


def snapshot_from_result(
    result: PricingEngineResult,
    *,
    property_id: str,
    today: date,
    at: datetime | None = None,
) -> CarryForwardSnapshot:
    units: dict[str, CarryForwardBaseline] = {}
    for unit_id, unit_result in result.unit_pricing.items():
        if unit_result.reference_rent <= 0:
            continue
        units[unit_id] = CarryForwardBaseline(
            unit_id=unit_id,
            floorplan_code=unit_result.floorplan_code,
            prior_approved_rent=float(unit_result.reference_rent),
            prior_approved_date=today.isoformat(),
            term=unit_result.reference_term,
        )

    fp_baselines = {
        code: float(fp.baseline_rent)
        for code, fp in result.floorplan_pricing.items()
        if fp.baseline_rent > 0
    }
    return CarryForwardSnapshot(
        property_id=property_id,
        fp_baselines=fp_baselines,
        at=(at or result.calculated_at).isoformat(),
        units=units,
    )


class InMemoryCarryForwardStore:
    def __init__(self) -> None:
        self._snapshots: dict[str, CarryForwardSnapshot] = {}

    def load(self, property_id: str) -> CarryForwardSnapshot | None:
        return self._snapshots.get(property_id)

    def save(self, property_id: str, snapshot: CarryForwardSnapshot) -> None:
        self._snapshots[property_id] = snapshot


class SqlCarryForwardStore:
    """Carry-forward repository backed by two tables: unit rows and floorplan rows."""

    def __init__(
        self,
        *,
        engine: Engine,
        unit_table_name: str = "carry_forward_baselines",
        floorplan_table_name: str = "carry_forward_floorplans",
    ) -> None:
        self.engine = engine
        self.unit_table = _safe_identifier(unit_table_name)
        self.floorplan_table = _safe_identifier(floorplan_table_name)

    def ensure_tables(self) -> None:
        with self.engine.begin() as connection:
            connection.execute(
                text(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.unit_table} (
                        property_id VARCHAR(64) NOT NULL,
                        unit_id VARCHAR(64) NOT NULL,
                        floorplan_code VARCHAR(32) NOT NULL,
                        prior_approved_rent DOUBLE PRECISION NOT NULL,
                        prior_approved_date VARCHAR(32),
                        term INTEGER,
                        saved_at VARCHAR(40) NOT NULL,
                        PRIMARY KEY (property_id, unit_id)
                    )
                    """
                )
            )
            connection.execute(
                text(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.floorplan_table} (
                        property_id VARCHAR(64) NOT NULL,
                        floorplan_code VARCHAR(32) NOT NULL,
                        baseline_rent DOUBLE PRECISION NOT NULL,
                        saved_at VARCHAR(40) NOT NULL,
                        PRIMARY KEY (property_id, floorplan_code)
                    )
                    """
                )
            )

    def load(self, property_id: str) -> CarryForwardSnapshot | None:
        self.ensure_tables()
        unit_frame = pd.read_sql_query(
            text(
                f"""
                SELECT unit_id, floorplan_code, prior_approved_rent, prior_approved_date, term, saved_at
                FROM {self.unit_table}
                WHERE property_id = :property_id
                ORDER BY unit_id
                """
            ),
            con=self.engine,
            params={"property_id": property_id},
        )
        fp_frame = pd.read_sql_query(
            text(
                f"""
                SELECT floorplan_code, baseline_rent, saved_at
                FROM {self.floorplan_table}
                WHERE property_id = :property_id
                ORDER BY floorplan_code
                """
            ),
            con=self.engine,
            params={"property_id": property_id},
        )
        if unit_frame.empty and fp_frame.empty:
            return None

        units: dict[str, CarryForwardBaseline] = {}
        for row in unit_frame.to_dict(orient="records"):
            rent = positive_or_none(row["prior_approved_rent"])
            if rent is None:
                continue
            units[str(row["unit_id"])] = CarryForwardBaseline(
                unit_id=str(row["unit_id"]),
                floorplan_code=str(row["floorplan_code"]),
                prior_approved_rent=rent,
                prior_approved_date=row["prior_approved_date"],
                term=int(row["term"]) if pd.notna(row["term"]) else None,
            )

        saved_at_values = pd.concat([unit_frame["saved_at"], fp_frame["saved_at"]]).dropna().astype(str)
        return CarryForwardSnapshot(
            property_id=property_id,
            fp_baselines={
                str(code): float(rent) for code, rent in zip(fp_frame["floorplan_code"], fp_frame["baseline_rent"], strict=False)
            },
            at=str(saved_at_values.max()) if not saved_at_values.empty else "",
            units=units,
        )

    def save(self, property_id: str, snapshot: CarryForwardSnapshot) -> None:
        self.ensure_tables()
        unit_rows = [
            {
                "property_id": property_id,
                "unit_id": baseline.unit_id,
                "floorplan_code": baseline.floorplan_code,
                "prior_approved_rent": float(baseline.prior_approved_rent),
                "prior_approved_date": baseline.prior_approved_date,
                "term": baseline.term,
                "saved_at": snapshot.at,
            }
            for baseline in snapshot.units.values()
            if positive_or_none(baseline.prior_approved_rent) is not None
        ]
        fp_rows = [
            {"property_id": property_id, "floorplan_code": code, "baseline_rent": float(rent), "saved_at": snapshot.at}
            for code, rent in snapshot.fp_baselines.items()
        ]

        with self.engine.begin() as connection:
            connection.execute(
                text(f"DELETE FROM {self.unit_table} WHERE property_id = :property_id"),
                {"property_id": property_id},
            )
            connection.execute(
                text(f"DELETE FROM {self.floorplan_table} WHERE property_id = :property_id"),
                {"property_id": property_id},
            )
            if unit_rows:
                connection.execute(
                    text(
                        f"""
                        INSERT INTO {self.unit_table} (
                            property_id, unit_id, floorplan_code, prior_approved_rent,
                            prior_approved_date, term, saved_at
                        ) VALUES (
                            :property_id, :unit_id, :floorplan_code, :prior_approved_rent,
                            :prior_approved_date, :term, :saved_at
                        )
                        """
                    ),
                    unit_rows,
                )
            if fp_rows:
                connection.execute(
                    text(
                        f"""
                        INSERT INTO {self.floorplan_table} (property_id, floorplan_code, baseline_rent, saved_at)
                        VALUES (:property_id, :floorplan_code, :baseline_rent, :saved_at)
                        """
                    ),
                    fp_rows,
                )
