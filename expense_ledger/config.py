"""
Module: expense_ledger.config
Responsibility: Runtime settings for the ledger and its HTTP surface.  Values
    are read from an optional YAML file and then overridden by environment
    variables, producing one frozen ``LedgerSettings`` instance.
Architecture position: Outermost configuration layer.  Imported by db/engine
    consumers, the ledger facade and the API; imports nothing from the ledger.

Failure modes:
    - FileNotFoundError when EXPENSE_LEDGER_CONFIG points at a missing file.
    - yaml.YAMLError on malformed YAML.
    - ValueError on unknown YAML keys or non-integer numeric settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

CONFIG_PATH_ENV = "EXPENSE_LEDGER_CONFIG"


@dataclass(frozen=True)
class LedgerSettings:
    database_url: str = "sqlite:///./expense_ledger.db"
    max_batch_size: int = 50
    application_number_prefix: str = "F"
    business_timezone: str = "Asia/Bangkok"
    lock_timeout_seconds: int = 5
    pool_size: int = 20
    max_overflow: int = 10
    log_level: str = "INFO"
    echo_sql: bool = False


# env var -> settings field
_ENV_OVERRIDES: dict[str, str] = {
    "DATABASE_URL": "database_url",
    "EXPENSE_MAX_BATCH_SIZE": "max_batch_size",
    "EXPENSE_APPLICATION_PREFIX": "application_number_prefix",
    "EXPENSE_TIMEZONE": "business_timezone",
    "EXPENSE_LOCK_TIMEOUT": "lock_timeout_seconds",
    "DB_POOL_SIZE": "pool_size",
    "DB_MAX_OVERFLOW": "max_overflow",
    "LOG_LEVEL": "log_level",
    "DB_ECHO": "echo_sql",
}

_INT_FIELDS = {"max_batch_size", "lock_timeout_seconds", "pool_size", "max_overflow"}
_BOOL_FIELDS = {"echo_sql"}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _coerce(name: str, value: Any) -> Any:
    if name in _INT_FIELDS:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Setting '{name}' must be an integer, got {value!r}") from exc
    if name in _BOOL_FIELDS:
        return _parse_bool(value)
    return str(value)


def load_yaml_settings(path: Path) -> dict[str, Any]:
    """
    Load a settings YAML file and return its validated key/value pairs.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the file has unknown keys or is not a mapping.
    """
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")

    known = {f.name for f in fields(LedgerSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings in {path}: {', '.join(unknown)}")
    return {key: _coerce(key, value) for key, value in data.items()}


def load_settings(
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> LedgerSettings:
    """Build settings from defaults, then YAML, then environment."""
    env = os.environ if environ is None else environ
    settings = LedgerSettings()

    path = config_path or env.get(CONFIG_PATH_ENV)
    if path:
        settings = replace(settings, **load_yaml_settings(Path(path)))

    overrides = {
        field_name: _coerce(field_name, env[var])
        for var, field_name in _ENV_OVERRIDES.items()
        if env.get(var) not in (None, "")
    }
    if overrides:
        settings = replace(settings, **overrides)
    return settings
