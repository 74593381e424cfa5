# This file defines runtime settings for the API layer in one place.
# It exists so versioning, the policy file, and the carry-forward store can be configured without code edits.
# The config loader reads environment variables and applies safe defaults for local development.
# It also validates table names and version paths to prevent unsafe SQL identifier usage.

from __future__ import annotations

import os
import re
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
VALID_STORE_KINDS = {"sql", "memory"}


class ApiConfig(BaseModel):
    """Typed API runtime configuration."""

    model_config = ConfigDict(extra="ignore")

    api_name: str = "Rent Pricing API"
    api_version_path: str = "/api/v1"
    schema_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "local"
    database_url: str
    allowed_origins: list[str] = Field(default_factory=list)
    policy_config_path: str = "configs/pricing_policy.yaml"
    carry_forward_store: str = "sql"
    carry_forward_table_name: str = "carry_forward_baselines"
    carry_forward_floorplan_table_name: str = "carry_forward_floorplans"
    app_version: str = "0.1.0"

    @field_validator("api_version_path")
    @classmethod
    def validate_api_version_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("api_version_path must start with '/'.")
        parts = [part for part in value.split("/") if part]
        if len(parts) < 2 or parts[-1].startswith("v") is False:
            raise ValueError("api_version_path must look like '/api/v1'.")
        return value.rstrip("/")

    @field_validator("carry_forward_table_name", "carry_forward_floorplan_table_name")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"Unsafe SQL identifier: {value!r}")
        return value

    @field_validator("carry_forward_store")
    @classmethod
    def validate_store_kind(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in VALID_STORE_KINDS:
            raise ValueError(f"carry_forward_store must be one of {sorted(VALID_STORE_KINDS)}")
        return normalized


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_list(name: str, default: list[str] | None = None) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_api_config(*, load_env: bool = True) -> ApiConfig:
    """Load API configuration from `.env` and process environment."""

    if load_env:
        load_dotenv()

    config_values: dict[str, object] = {
        "api_name": os.getenv("API_NAME", "Rent Pricing API"),
        "api_version_path": os.getenv("API_VERSION_PATH", "/api/v1"),
        "schema_version": os.getenv("API_SCHEMA_VERSION", "1.0.0"),
        "host": os.getenv("API_HOST", "0.0.0.0"),
        "port": _env_int("API_PORT", 8000),
        "environment": os.getenv("ENV", "local"),
        "database_url": os.getenv("DATABASE_URL", ""),
        "allowed_origins": _env_list("API_ALLOWED_ORIGINS", []),
        "policy_config_path": os.getenv("API_POLICY_CONFIG_PATH", "configs/pricing_policy.yaml"),
        "carry_forward_store": os.getenv("API_CARRY_FORWARD_STORE", "sql"),
        "carry_forward_table_name": os.getenv("API_CARRY_FORWARD_TABLE_NAME", "carry_forward_baselines"),
        "carry_forward_floorplan_table_name": os.getenv(
            "API_CARRY_FORWARD_FLOORPLAN_TABLE_NAME", "carry_forward_floorplans"
        ),
        "app_version": os.getenv("APP_VERSION", "0.1.0"),
    }
    if not config_values["database_url"]:
        raise RuntimeError("DATABASE_URL is required for API startup.")

    return ApiConfig.model_validate(config_values)


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """Cached accessor for API config."""

    return load_api_config()
