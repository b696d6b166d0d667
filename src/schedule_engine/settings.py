from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .schedule_models import ScheduleError

# Pixel defaults for the label column, rows and per-level indentation.
LABEL_COLUMN_WIDTH_PX = 320.0
INDENT_PX = 20.0
ROW_HEIGHT_PX = 48.0
MIN_AVAILABLE_WIDTH_PX = 100.0
MIN_BAR_WIDTH_PX = 4.0


class SettingsError(ScheduleError, ValueError):
    """Raised when a settings mapping has unknown keys or bad values."""


@dataclass(frozen=True)
class LayoutSettings:
    """Geometry knobs shared by the mapper, composer and renderer."""

    label_column_width_px: float = LABEL_COLUMN_WIDTH_PX
    indent_px: float = INDENT_PX
    row_height_px: float = ROW_HEIGHT_PX
    min_available_width_px: float = MIN_AVAILABLE_WIDTH_PX
    min_bar_width_px: float = MIN_BAR_WIDTH_PX

    def with_overrides(self, **overrides: Any) -> "LayoutSettings":
        return parse_settings(overrides, base=self)


DEFAULT_SETTINGS = LayoutSettings()


def parse_settings(data: Any, base: LayoutSettings = DEFAULT_SETTINGS) -> LayoutSettings:
    """Build settings from a mapping, starting from `base` for absent keys."""

    if data is None:
        return base
    if not isinstance(data, dict):
        raise SettingsError("settings: expected mapping")

    allowed = {f.name for f in dataclasses.fields(LayoutSettings)}
    extras = sorted(set(data) - allowed)
    if extras:
        raise SettingsError(f"settings: unexpected fields {extras}")

    values: dict[str, float] = {}
    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SettingsError(f"settings.{key}: expected number")
        if value < 0:
            raise SettingsError(f"settings.{key}: must not be negative")
        values[key] = float(value)
    return dataclasses.replace(base, **values)


def load_settings(path: str | Path) -> LayoutSettings:
    """Read the optional `settings:` block of a snapshot YAML file."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, dict):
        return DEFAULT_SETTINGS
    return parse_settings(raw.get("settings"))
