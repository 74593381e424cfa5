# This file defines the immutable policy bundle used by every rent pricing run.
# It exists so CLI runs, API quotes, and tests all price against one consistent policy surface.
# The loader merges YAML defaults with PRICING_* environment overrides and validates the knobs.
# A frozen config plus its dict snapshot makes every proposed rent reproducible and auditable.

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import yaml

VALID_PRICE_RESPONSES = {"fast", "standard", "gentle"}
MAX_MOVE_BY_RESPONSE = {"fast": 0.08, "standard": 0.05, "gentle": 0.03}
DEFAULT_TERMS = [2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14]
DEFAULT_SEASONALITY = [1.0, 1.0, 1.05, 1.08, 1.10, 1.12, 1.10, 1.08, 1.05, 1.02, 1.0, 1.0]


def _load_yaml(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config at {path} must be a mapping, got: {type(loaded).__name__}")
    return dict(loaded)


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return float(default)
    return float(value)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return int(default)
    return int(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return bool(default)
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value (true/false), got: {value!r}")


def _env_int_list(name: str, default: list[int]) -> list[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return list(default)
    return [int(item.strip()) for item in value.split(",") if item.strip()]


def _as_float_mapping(value: Any, field_name: str) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a mapping of string->float")
    mapped: dict[str, float] = {}
    for key, raw in value.items():
        mapped[str(key)] = float(raw)
    return mapped


@dataclass(frozen=True)
class VacancyAgePolicy:
    enabled: bool = False
    discount_per_day: float = 0.002
    max_discount: float = 0.10
    threshold_days: int = 30

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "discount_per_day": self.discount_per_day,
            "max_discount": self.max_discount,
            "threshold_days": self.threshold_days,
        }


@dataclass(frozen=True)
class PricingConfig:
    pricing_policy_version: str = "rp1"
    price_response: str = "standard"
    comfort_target: float = 0.95
    band_low: float = 0.93
    band_high: float = 0.96

    max_weekly_dec: float = 0.05
    min_floor_vs_current_rent: float = 0.90
    min_gap_to_next_tier: dict[str, float] = field(default_factory=dict)
    stop_down_buffer: dict[str, float] = field(default_factory=dict)

    reference_term: int = 14
    available_terms: list[int] = field(default_factory=lambda: list(DEFAULT_TERMS))
    vacancy_age_pricing: VacancyAgePolicy = field(default_factory=VacancyAgePolicy)
    seasonality_enabled: bool = False
    seasonality_multipliers: list[float] = field(default_factory=lambda: list(DEFAULT_SEASONALITY))
    trend_override_pct_by_fp: dict[str, float] = field(default_factory=dict)

    enable_carry_forward: bool = True
    enable_simulation: bool = False
    leads_apps_window_days: int = 30

    strict_checks: bool = True
    report_sample_size: int = 300

    def max_move(self) -> float:
        return MAX_MOVE_BY_RESPONSE.get(self.price_response, MAX_MOVE_BY_RESPONSE["standard"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "pricing_policy_version": self.pricing_policy_version,
            "price_response": self.price_response,
            "comfort_target": self.comfort_target,
            "band_low": self.band_low,
            "band_high": self.band_high,
            "max_weekly_dec": self.max_weekly_dec,
            "min_floor_vs_current_rent": self.min_floor_vs_current_rent,
            "min_gap_to_next_tier": dict(self.min_gap_to_next_tier),
            "stop_down_buffer": dict(self.stop_down_buffer),
            "reference_term": self.reference_term,
            "available_terms": list(self.available_terms),
            "vacancy_age_pricing": self.vacancy_age_pricing.to_dict(),
            "seasonality_enabled": self.seasonality_enabled,
            "seasonality_multipliers": list(self.seasonality_multipliers),
            "trend_override_pct_by_fp": dict(self.trend_override_pct_by_fp),
            "enable_carry_forward": self.enable_carry_forward,
            "enable_simulation": self.enable_simulation,
            "leads_apps_window_days": self.leads_apps_window_days,
            "strict_checks": self.strict_checks,
            "report_sample_size": self.report_sample_size,
        }

    @classmethod
    def from_mapping(cls, cfg: dict[str, Any]) -> PricingConfig:
        """Build and validate a config from an in-memory mapping (no env overrides)."""

        vacancy_cfg = dict(cfg.get("vacancy_age_pricing") or {})
        flags_cfg = dict(cfg.get("flags") or {})
        config = cls(
            pricing_policy_version=str(cfg.get("pricing_policy_version", "rp1")),
            price_response=str(cfg.get("price_response", "standard")),
            comfort_target=float(cfg.get("comfort_target", 0.95)),
            band_low=float(cfg.get("band_low", 0.93)),
            band_high=float(cfg.get("band_high", 0.96)),
            max_weekly_dec=float(cfg.get("max_weekly_dec", 0.05)),
            min_floor_vs_current_rent=float(cfg.get("min_floor_vs_current_rent", 0.90)),
            min_gap_to_next_tier=_as_float_mapping(cfg.get("min_gap_to_next_tier"), "min_gap_to_next_tier"),
            stop_down_buffer=_as_float_mapping(cfg.get("stop_down_buffer"), "stop_down_buffer"),
            reference_term=int(cfg.get("reference_term", 14)),
            available_terms=[int(term) for term in list(cfg.get("available_terms") or DEFAULT_TERMS)],
            vacancy_age_pricing=VacancyAgePolicy(
                enabled=bool(vacancy_cfg.get("enabled", False)),
                discount_per_day=float(vacancy_cfg.get("discount_per_day", 0.002)),
                max_discount=float(vacancy_cfg.get("max_discount", 0.10)),
                threshold_days=int(vacancy_cfg.get("threshold_days", 30)),
            ),
            seasonality_enabled=bool(cfg.get("seasonality_enabled", False)),
            seasonality_multipliers=[
                float(item) for item in list(cfg.get("seasonality_multipliers") or DEFAULT_SEASONALITY)
            ],
            trend_override_pct_by_fp=_as_float_mapping(cfg.get("trend_override_pct_by_fp"), "trend_override_pct_by_fp"),
            enable_carry_forward=bool(flags_cfg.get("enable_carry_forward", cfg.get("enable_carry_forward", True))),
            enable_simulation=bool(flags_cfg.get("enable_simulation", cfg.get("enable_simulation", False))),
            leads_apps_window_days=int(cfg.get("leads_apps_window_days", 30)),
            strict_checks=bool(cfg.get("strict_checks", True)),
            report_sample_size=int(cfg.get("report_sample_size", 300)),
        )
        validate_pricing_config(config)
        return config


def validate_pricing_config(config: PricingConfig) -> None:
    if config.price_response not in VALID_PRICE_RESPONSES:
        raise ValueError(
            f"price_response must be one of {sorted(VALID_PRICE_RESPONSES)}, got {config.price_response!r}"
        )
    for name in ("comfort_target", "band_low", "band_high", "max_weekly_dec", "min_floor_vs_current_rent"):
        value = float(getattr(config, name))
        if not (0 <= value <= 1):
            raise ValueError(f"{name} must be in [0, 1], got {value}")
    if config.band_low >= config.band_high:
        raise ValueError("band_low must be lower than band_high")

    if not config.available_terms:
        raise ValueError("available_terms must not be empty")
    if any(term <= 0 for term in config.available_terms):
        raise ValueError("available_terms must contain positive month counts")
    if config.reference_term not in config.available_terms:
        raise ValueError(
            f"reference_term {config.reference_term} must be one of available_terms {config.available_terms}"
        )

    vacancy = config.vacancy_age_pricing
    if vacancy.discount_per_day < 0 or not (0 <= vacancy.max_discount <= 1):
        raise ValueError("vacancy_age_pricing discount_per_day must be >= 0 and max_discount in [0, 1]")
    if vacancy.threshold_days < 0:
        raise ValueError("vacancy_age_pricing threshold_days must be nonnegative")

    if len(config.seasonality_multipliers) != 12:
        raise ValueError("seasonality_multipliers must contain 12 monthly values")
    if any(value <= 0 for value in config.seasonality_multipliers):
        raise ValueError("seasonality_multipliers must be positive")

    for name in ("min_gap_to_next_tier", "stop_down_buffer"):
        negative = sorted(code for code, dollars in getattr(config, name).items() if dollars < 0)
        if negative:
            raise ValueError(f"{name} must be nonnegative dollars, invalid codes: {negative}")

    if config.leads_apps_window_days <= 0:
        raise ValueError("leads_apps_window_days must be > 0")
    if config.report_sample_size <= 0:
        raise ValueError("report_sample_size must be > 0")


def load_pricing_config(*, config_path: str = "configs/pricing_policy.yaml") -> PricingConfig:
    cfg = _load_yaml(config_path)
    vacancy_cfg = dict(cfg.get("vacancy_age_pricing") or {})
    flags_cfg = dict(cfg.get("flags") or {})

    pricing_policy_version = str(_env_str("PRICING_POLICY_VERSION", str(cfg.get("pricing_policy_version", "rp1"))))
    price_response = str(_env_str("PRICING_PRICE_RESPONSE", str(cfg.get("price_response", "standard")))).lower()
    comfort_target = _env_float("PRICING_COMFORT_TARGET", float(cfg.get("comfort_target", 0.95)))
    band_low = _env_float("PRICING_BAND_LOW", float(cfg.get("band_low", 0.93)))
    band_high = _env_float("PRICING_BAND_HIGH", float(cfg.get("band_high", 0.96)))

    max_weekly_dec = _env_float("PRICING_MAX_WEEKLY_DEC", float(cfg.get("max_weekly_dec", 0.05)))
    min_floor_vs_current_rent = _env_float(
        "PRICING_MIN_FLOOR_VS_CURRENT_RENT", float(cfg.get("min_floor_vs_current_rent", 0.90))
    )
    min_gap_to_next_tier = _as_float_mapping(cfg.get("min_gap_to_next_tier", {}), "min_gap_to_next_tier")
    stop_down_buffer = _as_float_mapping(cfg.get("stop_down_buffer", {}), "stop_down_buffer")

    reference_term = _env_int("PRICING_REFERENCE_TERM", int(cfg.get("reference_term", 14)))
    available_terms = _env_int_list(
        "PRICING_AVAILABLE_TERMS", [int(term) for term in list(cfg.get("available_terms") or DEFAULT_TERMS)]
    )

    vacancy_age_pricing = VacancyAgePolicy(
        enabled=_env_bool("PRICING_VACANCY_AGE_ENABLED", bool(vacancy_cfg.get("enabled", False))),
        discount_per_day=_env_float(
            "PRICING_VACANCY_DISCOUNT_PER_DAY", float(vacancy_cfg.get("discount_per_day", 0.002))
        ),
        max_discount=_env_float("PRICING_VACANCY_MAX_DISCOUNT", float(vacancy_cfg.get("max_discount", 0.10))),
        threshold_days=_env_int("PRICING_VACANCY_THRESHOLD_DAYS", int(vacancy_cfg.get("threshold_days", 30))),
    )
    seasonality_enabled = _env_bool("PRICING_SEASONALITY_ENABLED", bool(cfg.get("seasonality_enabled", False)))
    seasonality_multipliers = [
        float(item) for item in list(cfg.get("seasonality_multipliers") or DEFAULT_SEASONALITY)
    ]
    trend_override_pct_by_fp = _as_float_mapping(
        cfg.get("trend_override_pct_by_fp", {}), "trend_override_pct_by_fp"
    )

    enable_carry_forward = _env_bool(
        "PRICING_ENABLE_CARRY_FORWARD", bool(flags_cfg.get("enable_carry_forward", True))
    )
    enable_simulation = _env_bool("PRICING_ENABLE_SIMULATION", bool(flags_cfg.get("enable_simulation", False)))
    leads_apps_window_days = _env_int(
        "PRICING_LEADS_APPS_WINDOW_DAYS", int(cfg.get("leads_apps_window_days", 30))
    )

    strict_checks = _env_bool("PRICING_STRICT_CHECKS", bool(cfg.get("strict_checks", True)))
    report_sample_size = _env_int("PRICING_REPORT_SAMPLE_SIZE", int(cfg.get("report_sample_size", 300)))

    config = PricingConfig(
        pricing_policy_version=pricing_policy_version,
        price_response=price_response,
        comfort_target=comfort_target,
        band_low=band_low,
        band_high=band_high,
        max_weekly_dec=max_weekly_dec,
        min_floor_vs_current_rent=min_floor_vs_current_rent,
        min_gap_to_next_tier=min_gap_to_next_tier,
        stop_down_buffer=stop_down_buffer,
        reference_term=reference_term,
        available_terms=available_terms,
        vacancy_age_pricing=vacancy_age_pricing,
        seasonality_enabled=seasonality_enabled,
        seasonality_multipliers=seasonality_multipliers,
        trend_override_pct_by_fp=trend_override_pct_by_fp,
        enable_carry_forward=enable_carry_forward,
        enable_simulation=enable_simulation,
        leads_apps_window_days=leads_apps_window_days,
        strict_checks=strict_checks,
        report_sample_size=report_sample_size,
    )
    validate_pricing_config(config)
    return config
