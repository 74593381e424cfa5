# This module is the end-to-end entrypoint for one property's rent pricing run.
# It loads inputs, prices every unit, checks invariants, writes artifacts, and saves carry-forward baselines.
# Steps are ordered so operators can stop after any checkpoint without persisting anything.
# Each run writes a run summary under reports/ so every pricing decision is traceable.

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import uuid
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd

from src.common.logging import configure_logging
from src.rent_pricing.carry_forward_store import (
    CarryForwardStore,
    InMemoryCarryForwardStore,
    SqlCarryForwardStore,
    snapshot_from_result,
    utc_now,
)
from src.rent_pricing.data_provider import FrameDataProvider, PricingDataProvider, build_market_context
from src.rent_pricing.pricing_checks import PricingCheckError, enforce_pricing_checks, run_pricing_checks
from src.rent_pricing.pricing_config import PricingConfig, load_pricing_config
from src.rent_pricing.pricing_engine import price_all_units
from src.rent_pricing.pricing_frames import floorplan_results_to_frame, reason_type_summary, unit_results_to_frame

LOGGER = logging.getLogger("pricing")

STEP_ORDER = [
    "load-inputs",
    "price",
    "validate",
    "save",
]
DEFAULT_REPORTS_ROOT = Path("reports/rent_pricing")


def _reports_dir(reports_root: Path, run_id: str) -> Path:
    out = reports_root / run_id
    out.mkdir(parents=True, exist_ok=True)
    return out


def _write_artifacts(
    *,
    reports_root: Path,
    run_id: str,
    unit_frame: pd.DataFrame,
    floorplan_frame: pd.DataFrame,
    run_summary: dict[str, Any],
    sample_size: int,
) -> str:
    out_dir = _reports_dir(reports_root, run_id)

    unit_frame.head(sample_size).to_csv(out_dir / "pricing_sample.csv", index=False)
    floorplan_frame.to_csv(out_dir / "floorplan_pricing.csv", index=False)
    reason_type_summary(unit_frame).to_csv(out_dir / "reason_summary.csv", index=False)
    (out_dir / "run_summary.json").write_text(json.dumps(run_summary, indent=2, default=str), encoding="utf-8")

    return str(out_dir)


def _step_reached(*, requested_step: str, checkpoint: str) -> bool:
    return STEP_ORDER.index(requested_step) >= STEP_ORDER.index(checkpoint)


def _flag_count(frame: pd.DataFrame, column: str) -> int:
    if frame.empty or column not in frame.columns:
        return 0
    return int(frame[column].fillna(False).astype(bool).sum())


def run_pricing(
    *,
    provider: PricingDataProvider,
    store: CarryForwardStore,
    property_id: str,
    run_id: str | None = None,
    step: str = "save",
    config: PricingConfig | None = None,
    today: date | None = None,
    reports_root: Path = DEFAULT_REPORTS_ROOT,
) -> dict[str, Any]:
    if step not in STEP_ORDER:
        raise ValueError(f"step must be one of {STEP_ORDER}, got {step!r}")

    configure_logging()

    pricing_config = config or load_pricing_config()
    current_run_id = run_id or str(uuid.uuid4())
    started_at = utc_now()
    empty_units = pd.DataFrame()
    empty_floorplans = pd.DataFrame()
    check_summary: dict[str, Any] | None = None

    try:
        context = build_market_context(provider, pricing_config)
        if today is not None:
            context = dataclasses.replace(context, today=today)
        units = provider.get_units()
        LOGGER.info(
            "Loaded inputs run_id=%s property_id=%s units=%d floorplans=%d carry_forward=%d",
            current_run_id,
            property_id,
            len(units),
            len(context.floorplan_trends),
            len(context.carry_forward_baselines),
        )
        if not _step_reached(requested_step=step, checkpoint="price"):
            return {
                "run_id": current_run_id,
                "status": "succeeded",
                "step": step,
                "property_id": property_id,
                "unit_count": len(units),
                "floorplan_count": len(context.floorplan_trends),
                "provider_type": provider.provider_type,
            }

        result = price_all_units(units, pricing_config, context, calculated_at=started_at)
        unit_frame = unit_results_to_frame(result)
        floorplan_frame = floorplan_results_to_frame(result)
        LOGGER.info("Priced run_id=%s units=%d", current_run_id, len(unit_frame))

        run_summary: dict[str, Any] = {
            "run_id": current_run_id,
            "status": "succeeded",
            "step": step,
            "property_id": property_id,
            "pricing_policy_version": pricing_config.pricing_policy_version,
            "as_of_date": context.today.isoformat(),
            "started_at": started_at.isoformat(),
            "unit_count": int(len(unit_frame)),
            "floorplan_count": int(len(floorplan_frame)),
            "carry_forward_used_count": _flag_count(unit_frame, "flag_carry_forward_used"),
            "cap_clamped_count": _flag_count(unit_frame, "flag_cap_clamped"),
            "floor_clamped_count": _flag_count(unit_frame, "flag_floor_clamped"),
            "tier_gap_enforced_count": _flag_count(unit_frame, "flag_tier_gap_enforced"),
            "buffer_guardrail_count": _flag_count(unit_frame, "flag_buffer_guardrail"),
        }

        if _step_reached(requested_step=step, checkpoint="validate"):
            checks = run_pricing_checks(
                pricing_frame=unit_frame,
                expected_units=len(units),
                pricing_config=pricing_config,
            )
            check_summary = checks.to_dict()
            run_summary["check_summary"] = check_summary
            enforce_pricing_checks(checks, strict_checks=pricing_config.strict_checks)
            if not checks.passed:
                LOGGER.warning("Pricing checks failed in non-strict mode run_id=%s", current_run_id)
                run_summary["status"] = "failed_checks"

        if _step_reached(requested_step=step, checkpoint="save") and run_summary["status"] == "succeeded":
            snapshot = snapshot_from_result(result, property_id=property_id, today=context.today)
            store.save(property_id, snapshot)
            run_summary["saved_baselines"] = len(snapshot.units)
            LOGGER.info("Saved carry-forward baselines run_id=%s rows=%d", current_run_id, len(snapshot.units))

        artifacts_path = _write_artifacts(
            reports_root=reports_root,
            run_id=current_run_id,
            unit_frame=unit_frame,
            floorplan_frame=floorplan_frame,
            run_summary=run_summary,
            sample_size=pricing_config.report_sample_size,
        )
        return run_summary | {"artifacts_path": artifacts_path}

    except PricingCheckError as exc:
        LOGGER.exception("Pricing checks failed for run_id=%s", current_run_id)
        error_details = exc.details if isinstance(exc.details, dict) else {"message": str(exc)}
        _write_artifacts(
            reports_root=reports_root,
            run_id=current_run_id,
            unit_frame=empty_units,
            floorplan_frame=empty_floorplans,
            run_summary={
                "run_id": current_run_id,
                "status": "failed",
                "step": step,
                "error": str(exc),
                "check_summary": error_details,
            },
            sample_size=pricing_config.report_sample_size,
        )
        raise
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Pricing run failed for run_id=%s", current_run_id)
        _write_artifacts(
            reports_root=reports_root,
            run_id=current_run_id,
            unit_frame=empty_units,
            floorplan_frame=empty_floorplans,
            run_summary={"run_id": current_run_id, "status": "failed", "step": step, "error": str(exc), "check_summary": check_summary},
            sample_size=pricing_config.report_sample_size,
        )
        raise


def _parse_iso_date(value: str | None) -> date | None:
    if value is None or value.strip() == "":
        return None
    return date.fromisoformat(value.strip())


def build_store(kind: str) -> CarryForwardStore:
    if kind == "memory":
        return InMemoryCarryForwardStore()
    if kind == "sql":
        from src.common.db import get_engine

        return SqlCarryForwardStore(engine=get_engine())
    raise ValueError(f"store must be 'sql' or 'memory', got {kind!r}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rent pricing orchestrator")
    parser.add_argument("--units-csv", type=str, required=True, help="Normalized unit rent roll CSV")
    parser.add_argument("--floorplans-csv", type=str, required=True, help="Floorplan setup CSV")
    parser.add_argument("--property-id", type=str, default="default")
    parser.add_argument("--run-id", type=str, default=None, help="Optional run id for traceability")
    parser.add_argument("--step", type=str, default="save", choices=STEP_ORDER)
    parser.add_argument("--today", type=str, default=None, help="As-of date (YYYY-MM-DD); defaults to today")
    parser.add_argument("--config-path", type=str, default="configs/pricing_policy.yaml")
    parser.add_argument("--store", type=str, default="sql", choices=["sql", "memory"])
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    pricing_config = load_pricing_config(config_path=args.config_path)
    store = build_store(args.store)
    as_of = _parse_iso_date(args.today) or date.today()
    provider = FrameDataProvider.from_csv(
        units_csv=args.units_csv,
        floorplans_csv=args.floorplans_csv,
        today=as_of,
        property_id=args.property_id,
        carry_forward_store=store,
    )
    result = run_pricing(
        provider=provider,
        store=store,
        property_id=args.property_id,
        run_id=args.run_id,
        step=args.step,
        config=pricing_config,
    )
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
