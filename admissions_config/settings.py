"""
Settings loader (``admissions_config.settings``).

Responsibility
--------------
Reads the YAML settings file, applies the environment overrides and
validates the result into a frozen ``AdmissionsSettings``.  Runtime code
obtains settings through ``admissions_config.get_active_settings()`` only.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, wrong types or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from admissions_kernel.domain.values import PaymentMode

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# environment variable -> settings key
ENV_OVERRIDES: dict[str, str] = {
    "ADMISSIONS_DATABASE_URL": "database_url",
    "ADMISSIONS_LOG_LEVEL": "log_level",
    "ADMISSIONS_MAX_RECOMPUTE_ATTEMPTS": "max_recompute_attempts",
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class AdmissionsSettings:
    database_url: str = "sqlite:///:memory:"
    echo_sql: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    log_level: str = "INFO"
    max_recompute_attempts: int = 5
    cash_payment_mode: str = PaymentMode.CASH.value
    default_page_limit: int = 10
    max_page_limit: int = 100

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith("postgresql")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a mapping: {path}")
    return data


def _as_int(key: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}") from None
    if number < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {number}")
    return number


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes", "false", "0", "no"):
        return value.lower() in ("true", "1", "yes")
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def parse_settings(data: Mapping[str, Any]) -> AdmissionsSettings:
    """Validate a raw mapping into settings.  Raises ValueError."""
    known = {f.name for f in fields(AdmissionsSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    values = dict(data)
    if "database_url" in values:
        url = str(values["database_url"] or "").strip()
        if not url:
            raise ValueError("database_url must not be empty")
        values["database_url"] = url
    if "echo_sql" in values:
        values["echo_sql"] = _as_bool("echo_sql", values["echo_sql"])
    for key, minimum in (
        ("pool_size", 1),
        ("max_overflow", 0),
        ("max_recompute_attempts", 1),
        ("default_page_limit", 1),
        ("max_page_limit", 1),
    ):
        if key in values:
            values[key] = _as_int(key, values[key], minimum)
    if "log_level" in values:
        level = str(values["log_level"]).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {level!r}")
        values["log_level"] = level
    if "cash_payment_mode" in values:
        try:
            values["cash_payment_mode"] = PaymentMode(values["cash_payment_mode"]).value
        except ValueError:
            raise ValueError(
                f"cash_payment_mode is not a payment mode: {values['cash_payment_mode']!r}"
            ) from None

    settings = AdmissionsSettings(**values)
    if settings.default_page_limit > settings.max_page_limit:
        raise ValueError("default_page_limit must not exceed max_page_limit")
    return settings


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AdmissionsSettings:
    """Defaults file, then ``path`` on top, then environment overrides."""
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data.update(load_yaml_file(Path(path)))

    env = os.environ if environ is None else environ
    for var, key in ENV_OVERRIDES.items():
        if env.get(var):
            data[key] = env[var]

    return parse_settings(data)
