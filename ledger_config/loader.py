"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML configuration file and parses it into a ``LedgerConfig``.
Runtime callers use ``ledger_config.get_active_config()`` instead.

Invariants enforced
-------------------
* Every account role known to the kernel has a non-empty code.
* The balance tolerance is a positive decimal.
* Chart rows use one of the five account types.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or invalid data  -> ``InvalidConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import ChartAccountDef, LedgerConfig
from ledger_kernel.domain.accounts import AccountRole, AccountType
from ledger_kernel.exceptions import InvalidConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _str_map(data: dict[str, Any], key: str, source: str) -> dict[str, str]:
    raw = data.get(key) or {}
    if not isinstance(raw, dict):
        raise InvalidConfigurationError(source, f"'{key}' must be a mapping")
    # YAML reads bare 1000 as int; codes are strings.
    return {str(k): str(v) for k, v in raw.items()}


def parse_account_roles(data: dict[str, Any], source: str) -> dict[str, str]:
    roles = _str_map(data, "account_roles", source)
    unknown = sorted(set(roles) - {r.value for r in AccountRole})
    if unknown:
        raise InvalidConfigurationError(source, f"unknown account roles: {', '.join(unknown)}")
    missing = [r.value for r in AccountRole if not roles.get(r.value, "").strip()]
    if missing:
        raise InvalidConfigurationError(source, f"no account code for roles: {', '.join(missing)}")
    return roles


def parse_tolerance(value: Any, source: str) -> Decimal:
    try:
        tolerance = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidConfigurationError(source, f"balance_tolerance is not a number: {value!r}")
    if not tolerance.is_finite() or tolerance <= 0:
        raise InvalidConfigurationError(source, f"balance_tolerance must be positive: {value!r}")
    return tolerance


def parse_chart(data: dict[str, Any], source: str) -> tuple[ChartAccountDef, ...]:
    valid_types = {t.value for t in AccountType}
    rows = []
    seen: set[str] = set()
    for item in data.get("chart_of_accounts") or ():
        try:
            code, name, account_type = str(item["code"]), item["name"], item["type"]
        except (KeyError, TypeError):
            raise InvalidConfigurationError(
                source, f"chart_of_accounts entry needs code, name and type: {item!r}"
            )
        if account_type not in valid_types:
            raise InvalidConfigurationError(
                source, f"account {code} has unknown type {account_type!r}"
            )
        if code in seen:
            raise InvalidConfigurationError(source, f"duplicate account code {code}")
        seen.add(code)
        rows.append(ChartAccountDef(code=code, name=str(name), account_type=account_type))
    return tuple(rows)


def parse_ledger_config(data: dict[str, Any], source: str = "<memory>") -> LedgerConfig:
    """
    Parse a configuration dict.

    Raises:
        InvalidConfigurationError: if required data is missing or invalid.
    """
    if not data:
        raise InvalidConfigurationError(source, "configuration is empty")
    return LedgerConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        account_roles=parse_account_roles(data, source),
        charter_revenue_accounts=_str_map(data, "charter_revenue_accounts", source),
        petty_cash_accounts={
            k.upper(): v for k, v in _str_map(data, "petty_cash_accounts", source).items()
        },
        balance_tolerance=parse_tolerance(data.get("balance_tolerance", "0.01"), source),
        default_currency=str(data.get("default_currency", "THB")).upper(),
        chart_of_accounts=parse_chart(data, source),
        checksum=compute_checksum(data),
    )


def load_ledger_config(path: Path) -> LedgerConfig:
    return parse_ledger_config(load_yaml_file(path), source=str(path))
