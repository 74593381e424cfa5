# This module defines the audit trail attached to every proposed rent.
# Reasons are tagged records and flags are a fixed boolean struct, both immutable once built.
# A deterministic primary reason and a short summary are derived for reports and API consumers.

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

REASON_TYPES = (
    "trend",
    "conversion",
    "carryForward",
    "shortTerm",
    "overCap",
    "seasonality",
    "vacancyAge",
    "cap",
    "floor",
    "tierGap",
    "buffer",
    "dataQuality",
)

PRIMARY_REASON_PRIORITY = [
    "floor",
    "cap",
    "tierGap",
    "buffer",
    "vacancyAge",
    "conversion",
    "trend",
    "dataQuality",
    "carryForward",
]

DEFAULT_PRIMARY_REASON = "carryForward"


@dataclass(frozen=True)
class PriceReason:
    type: str
    description: str
    value: float
    applied: bool = True

    def __post_init__(self) -> None:
        if self.type not in REASON_TYPES:
            raise ValueError(f"Unknown reason type: {self.type!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PriceFlags:
    trend_up: bool = False
    trend_down: bool = False
    inside_comfort_band: bool = False
    conversion_nudge_up: bool = False
    conversion_nudge_down: bool = False
    carry_forward_used: bool = False
    short_term_premium: bool = False
    over_cap_premium: bool = False
    seasonal_uplift: bool = False
    cap_clamped: bool = False
    floor_clamped: bool = False
    tier_gap_enforced: bool = False
    buffer_guardrail: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    def active(self) -> list[str]:
        return [name for name, value in self.to_dict().items() if value]


def primary_reason(reasons: tuple[PriceReason, ...] | list[PriceReason], priority_order: list[str] | None = None) -> str:
    applied_types = [reason.type for reason in reasons if reason.applied]
    for reason_type in priority_order or PRIMARY_REASON_PRIORITY:
        if reason_type in applied_types:
            return reason_type
    if applied_types:
        return applied_types[0]
    return DEFAULT_PRIMARY_REASON


def reason_summary(reasons: tuple[PriceReason, ...] | list[PriceReason], *, limit: int = 3) -> str:
    snippets = [reason.description for reason in reasons if reason.applied and reason.description.strip()]
    if not snippets:
        return "Priced from baseline with no adjustments."
    return " | ".join(snippets[:limit])
