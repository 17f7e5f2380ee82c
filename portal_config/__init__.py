"""
portal_config -- single public entrypoint for portal configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- YAML-driven settings.  Sits above ``portal_kernel``
    and ``portal_modules`` (whose config dataclasses it populates) and
    below ``portal_services``.  The kernel MUST NEVER import from here.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the given name.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PORTAL_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying behavior back to the exact configuration in force.
"""

from __future__ import annotations

from pathlib import Path

from portal_config.loader import load_yaml_file, parse_config
from portal_config.schema import DatabaseConfig, NumberingConfig, PortalConfig
from portal_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> PortalConfig:
    """The ONLY public configuration entrypoint.

    Args:
        name: Configuration set name; loads ``{config_dir}/{name}.yaml``.
        config_dir: Override path to the configuration sets directory.
            Defaults to portal_config/sets/.

    Raises:
        FileNotFoundError: If the named set does not exist.
        ValueError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"No configuration set {name!r} in {sets_dir}")

    config = parse_config(load_yaml_file(path))

    _logger.info(
        "PORTAL_CONFIG_TRACE",
        extra={
            "trace_type": "PORTAL_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "warehouses": list(config.inventory.warehouses),
        },
    )
    return config


__all__ = [
    "DatabaseConfig",
    "NumberingConfig",
    "PortalConfig",
    "get_active_config",
]
