"""
Configuration Loader (``earnings_config.loader``).

Responsibility
--------------
Loads the YAML files of a configuration set and parses them into the
frozen dataclasses of ``earnings_config.schema``.  Runtime callers go
through ``earnings_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Numeric values are parsed into ``Decimal`` via ``str`` so YAML floats
  never leak binary rounding into the rule table.
* ``compute_checksum`` is a deterministic SHA-256 of the parsed content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from earnings_config.schema import EarningsConfig, EarningsSettings, LifecycleSettings
from earnings_kernel.domain.values import PlatformRule

ROOT_FILE = "root.yaml"
RULES_FILE = "platform_rules.yaml"
SETTINGS_FILE = "settings.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a YAML scalar into Decimal; bools and blanks are rejected."""
    if isinstance(value, bool) or value is None or value == "":
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: expected a number, got {value!r}") from exc


def parse_platform_rule(data: dict[str, Any]) -> PlatformRule:
    """
    Parse a ``PlatformRule`` from a dict.

    ``rule_id`` and ``currency`` are required; factors default to 1 and
    ``full_share`` to false.
    """
    rule_id = data["rule_id"]
    currency = str(data["currency"]).upper()
    conversion = parse_decimal(
        data.get("conversion_factor", "1"), f"{rule_id}.conversion_factor"
    )
    deduction = parse_decimal(
        data.get("deduction_factor", "1"), f"{rule_id}.deduction_factor"
    )
    if conversion <= 0 or deduction <= 0:
        raise ValueError(f"{rule_id}: conversion and deduction factors must be positive")
    return PlatformRule(
        rule_id=rule_id,
        currency=currency,
        conversion_factor=conversion,
        deduction_factor=deduction,
        full_share=bool(data.get("full_share", False)),
    )


def parse_lifecycle(data: dict[str, Any]) -> LifecycleSettings:
    """Parse the ``lifecycle`` block of settings.yaml."""
    settings = LifecycleSettings(
        lock_staleness_seconds=int(data["lock_staleness_seconds"]),
        archive_max_retries=int(data["archive_max_retries"]),
        archive_retry_backoff_seconds=float(data["archive_retry_backoff_seconds"]),
    )
    if settings.lock_staleness_seconds <= 0:
        raise ValueError("lock_staleness_seconds must be positive")
    if settings.archive_max_retries < 1:
        raise ValueError("archive_max_retries must be at least 1")
    if settings.archive_retry_backoff_seconds < 0:
        raise ValueError("archive_retry_backoff_seconds cannot be negative")
    return settings


def parse_settings(data: dict[str, Any]) -> EarningsSettings:
    """Parse settings.yaml."""
    percentage = parse_decimal(data["default_percentage"], "default_percentage")
    if not (0 <= percentage <= 100):
        raise ValueError(f"default_percentage must be within 0..100, got {percentage}")
    advance_ratio = parse_decimal(data["advance_ratio"], "advance_ratio")
    if not (0 <= advance_ratio <= 1):
        raise ValueError(f"advance_ratio must be within 0..1, got {advance_ratio}")
    return EarningsSettings(
        default_percentage=percentage,
        default_min_quota=parse_decimal(data["default_min_quota"], "default_min_quota"),
        advance_ratio=advance_ratio,
        default_currency=str(data.get("default_currency", "USD")).upper(),
        lifecycle=parse_lifecycle(data["lifecycle"]),
    )


def load_config_set(directory: Path) -> EarningsConfig:
    """
    Load root.yaml, platform_rules.yaml and settings.yaml from ``directory``.

    Raises:
        FileNotFoundError: a required file is missing.
        KeyError / ValueError: a file fails to parse.
    """
    root = load_yaml_file(directory / ROOT_FILE)
    rules_data = load_yaml_file(directory / RULES_FILE)
    settings_data = load_yaml_file(directory / SETTINGS_FILE)

    rules = tuple(parse_platform_rule(r) for r in rules_data["rules"])
    seen: set[str] = set()
    for rule in rules:
        if rule.rule_id in seen:
            raise ValueError(f"Duplicate platform rule: {rule.rule_id}")
        seen.add(rule.rule_id)

    config = EarningsConfig(
        config_id=root["config_id"],
        version=int(root["version"]),
        platform_rules=rules,
        settings=parse_settings(settings_data),
    )
    return EarningsConfig(
        config_id=config.config_id,
        version=config.version,
        platform_rules=config.platform_rules,
        settings=config.settings,
        checksum=compute_checksum(asdict(config)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
