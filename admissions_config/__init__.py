"""
admissions_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits above ``admissions_kernel`` and below
    ``admissions_services``; the kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from admissions_config.settings import (
    DEFAULTS_PATH,
    ENV_OVERRIDES,
    AdmissionsSettings,
    load_settings,
    parse_settings,
)

_logger = logging.getLogger("admissions_kernel.config")


def get_active_settings(path: Path | str | None = None) -> AdmissionsSettings:
    """
    Load and validate the active settings.

    Args:
        path: Optional YAML file layered over ``defaults.yaml``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If validation fails.
    """
    settings = load_settings(Path(path) if path is not None else None)
    _logger.info(
        "settings_loaded",
        extra={
            "settings_path": str(path) if path is not None else str(DEFAULTS_PATH),
            "database_backend": "postgresql" if settings.is_postgres else "other",
            "max_recompute_attempts": settings.max_recompute_attempts,
        },
    )
    return settings


__all__ = [
    "AdmissionsSettings",
    "ENV_OVERRIDES",
    "get_active_settings",
    "load_settings",
    "parse_settings",
]
