"""
earnings_config -- single public entrypoint for earnings configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``: the platform conversion table and the
    calculation and lifecycle settings.

Architecture position:
    Configuration -- sits above ``earnings_kernel`` and
    ``earnings_engines``.  The kernel MUST NEVER import from this package;
    callers hand the loaded values to the engines and services.

Invariants enforced:
    - Deterministic: the same YAML always produces the same checksum.
    - Every successful load emits an ``EARNINGS_CONFIG_TRACE`` log entry.

Failure modes:
    - ``FileNotFoundError`` -- the configuration set does not exist.
    - ``KeyError`` / ``ValueError`` -- a file fails to parse.
"""

from __future__ import annotations

import logging
from pathlib import Path

from earnings_config.loader import load_config_set
from earnings_config.schema import EarningsConfig, EarningsSettings, LifecycleSettings

_logger = logging.getLogger("earnings_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_ID = "default"


def get_active_config(
    config_dir: Path | None = None,
    config_id: str = _DEFAULT_CONFIG_ID,
) -> EarningsConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to earnings_config/sets/.
        config_id: Name of the set subdirectory to load.

    Raises:
        FileNotFoundError: If the configuration set is missing.
        KeyError, ValueError: If a file fails to parse.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    set_dir = sets_dir / config_id
    if not set_dir.is_dir():
        raise FileNotFoundError(f"Configuration set not found: {set_dir}")

    config = load_config_set(set_dir)

    _logger.info(
        "EARNINGS_CONFIG_TRACE",
        extra={
            "trace_type": "EARNINGS_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "rule_count": len(config.platform_rules),
            "default_percentage": str(config.settings.default_percentage),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "EarningsConfig",
    "EarningsSettings",
    "LifecycleSettings",
]
