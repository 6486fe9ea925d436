"""Load generation settings from YAML.

Example file::

    feed_rate: 800
    spindle_speed: 18000
    tool_diameter: 6
    units: mm
    safe_z: 10
    pocket:
      enabled: true
      stepover: 2.4
      detect_islands: true
    multi_pass:
      enabled: true
      total_depth: 6
      depth_per_pass: 2
    template: grbl            # a preset name, or a mapping of template entries

Every key is optional; missing keys keep the GCodeSettings defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .gcode import GCodeSettings, Units
from .presets import TemplateLibrary
from .templates import MotionTemplate

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def _parse_template(
    raw: Any,
    library: Optional[TemplateLibrary],
) -> Optional[MotionTemplate]:
    if raw is None:
        return None
    if isinstance(raw, str):
        if library is None:
            library = TemplateLibrary()
        template = library.get(raw)
        if template is None:
            raise ConfigError(f"Unknown template preset: {raw}")
        return template
    if isinstance(raw, dict):
        return MotionTemplate.from_dict(raw)
    raise ConfigError("'template' must be a preset name or a mapping")


def settings_from_dict(
    data: dict[str, Any],
    library: Optional[TemplateLibrary] = None,
) -> GCodeSettings:
    """Build GCodeSettings from a parsed YAML mapping.

    Raises:
        ConfigError: If a value is missing, has the wrong type or is out of range
    """
    defaults = GCodeSettings()

    try:
        offset = _section(data, "path_offset")
        pocket = _section(data, "pocket")
        multi_pass = _section(data, "multi_pass")
        splines = _section(data, "splines")

        amount = offset.get("amount", defaults.path_offset_amount)

        settings = GCodeSettings(
            feed_rate=float(data.get("feed_rate", defaults.feed_rate)),
            spindle_speed=int(data.get("spindle_speed", defaults.spindle_speed)),
            tool_diameter=float(data.get("tool_diameter", defaults.tool_diameter)),
            units=Units(data.get("units", defaults.units.value)),
            safe_z=float(data.get("safe_z", defaults.safe_z)),
            plunge_depth=float(data.get("plunge_depth", defaults.plunge_depth)),
            retract_z=float(data.get("retract_z", defaults.retract_z)),
            template=_parse_template(data.get("template"), library),
            enable_path_offset=bool(offset.get("enabled", defaults.enable_path_offset)),
            path_offset_amount=None if amount is None else float(amount),
            offset_inward=bool(offset.get("inward", defaults.offset_inward)),
            enable_pocket=bool(pocket.get("enabled", defaults.enable_pocket)),
            pocket_stepover=float(pocket.get("stepover", defaults.pocket_stepover)),
            detect_islands=bool(pocket.get("detect_islands", defaults.detect_islands)),
            enable_multi_pass=bool(multi_pass.get("enabled", defaults.enable_multi_pass)),
            total_depth=float(multi_pass.get("total_depth", defaults.total_depth)),
            depth_per_pass=float(multi_pass.get("depth_per_pass", defaults.depth_per_pass)),
            convert_splines=bool(splines.get("convert_to_arcs", defaults.convert_splines)),
            arc_tolerance=float(splines.get("arc_tolerance", defaults.arc_tolerance)),
        )
    except KeyError as exc:
        raise ConfigError(f"Invalid configuration key: {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    _validate_settings(settings)
    return settings


def _validate_settings(settings: GCodeSettings) -> None:
    if settings.feed_rate <= 0:
        raise ConfigError(f"feed_rate must be positive, got {settings.feed_rate}")
    if settings.spindle_speed < 0:
        raise ConfigError(f"spindle_speed must not be negative, got {settings.spindle_speed}")
    if settings.tool_diameter <= 0:
        raise ConfigError(f"tool_diameter must be positive, got {settings.tool_diameter}")
    if settings.enable_pocket and settings.pocket_stepover <= 0:
        raise ConfigError(f"pocket.stepover must be positive, got {settings.pocket_stepover}")


def load_settings(
    path: str | Path,
    library: Optional[TemplateLibrary] = None,
) -> GCodeSettings:
    """Load and validate generation settings from a YAML file.

    Args:
        path: YAML settings file
        library: Template library used to resolve preset names

    Raises:
        FileNotFoundError: If path does not exist
        ConfigError: If the file is empty or invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading settings from %s", path)

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc

    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")

    return settings_from_dict(data, library)
