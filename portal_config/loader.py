"""
Configuration Loader (``portal_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into ``PortalConfig``.
This is internal tooling; runtime callers use
``portal_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` from the section dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from portal_config.schema import DatabaseConfig, NumberingConfig, PortalConfig
from portal_kernel.domain.documents import DocumentKind, Role
from portal_modules.inventory.config import InventoryConfig
from portal_modules.procurement.config import ProcurementConfig
from portal_modules.production.config import ProductionConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its top-level mapping."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form.  Identical data, identical checksum."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=str(data.get("url", "sqlite://")),
        echo=bool(data.get("echo", False)),
    )


def parse_numbering(data: dict[str, Any]) -> NumberingConfig:
    prefixes = {
        DocumentKind(kind): str(prefix)
        for kind, prefix in data.get("prefixes", {}).items()
    }
    kwargs: dict[str, Any] = {}
    if prefixes:
        kwargs["prefixes"] = prefixes
    if "width" in data:
        kwargs["width"] = int(data["width"])
    return NumberingConfig(**kwargs)


def parse_procurement(data: dict[str, Any]) -> ProcurementConfig:
    kwargs: dict[str, Any] = {}
    if "batch_roles" in data:
        kwargs["batch_roles"] = frozenset(Role(r) for r in data["batch_roles"])
    if "default_delivery_location" in data:
        kwargs["default_delivery_location"] = data["default_delivery_location"]
    if "batch_note_template" in data:
        kwargs["batch_note_template"] = str(data["batch_note_template"])
    return ProcurementConfig(**kwargs)


def parse_production(data: dict[str, Any]) -> ProductionConfig:
    kwargs: dict[str, Any] = {}
    if "bom_max_depth" in data:
        kwargs["bom_max_depth"] = int(data["bom_max_depth"])
    if "enforce_bom_ready" in data:
        kwargs["enforce_bom_ready"] = bool(data["enforce_bom_ready"])
    return ProductionConfig(**kwargs)


def parse_inventory(data: dict[str, Any]) -> InventoryConfig:
    if "warehouses" not in data:
        return InventoryConfig()
    return InventoryConfig(warehouses=tuple(str(w) for w in data["warehouses"]))


def parse_config(data: dict[str, Any]) -> PortalConfig:
    """Parse a loaded configuration mapping.  ``config_id`` and ``version`` are required."""
    return PortalConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        checksum=compute_checksum(data),
        database=parse_database(data.get("database", {})),
        numbering=parse_numbering(data.get("numbering", {})),
        procurement=parse_procurement(data.get("procurement", {})),
        production=parse_production(data.get("production", {})),
        inventory=parse_inventory(data.get("inventory", {})),
    )
