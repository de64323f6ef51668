"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains the
    default account table, charter revenue map, petty cash map, balance
    tolerance and chart-of-accounts seed.

Architecture position:
    Configuration.  Sits above ``ledger_kernel``; the kernel never imports
    this package.  ``bridges`` translates the loaded config into kernel
    DTOs.

Failure modes:
    - ``FileNotFoundError`` when the file does not exist.
    - ``InvalidConfigurationError`` when required data is missing.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log record with
    the config id, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_ledger_config
from ledger_config.schema import ChartAccountDef, LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """Load and validate the ledger configuration.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults.yaml``.

    Returns:
        A frozen LedgerConfig.  Not cached; callers hold on to it.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_ledger_config(path)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "role_binding_count": len(config.account_roles),
            "chart_account_count": len(config.chart_of_accounts),
        },
    )
    return config


__all__ = ["ChartAccountDef", "LedgerConfig", "get_active_config"]
