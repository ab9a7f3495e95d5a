"""
View presets - per-surface tuning for the single heatmap engine.

desktop     full page dashboard
panoramic   wide wall display, thinner headers
mobile      narrow portrait screen, scaled-down label thresholds
embed       iframe widget inside another page
mini        thumbnail, colors only

Fields left as None inherit the application config (layout/render/color
sections), so a preset only states what makes its surface different.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Mapping, Optional

from ....utils.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_PRESET = "desktop"


@dataclass(frozen=True)
class ViewPreset:
    """Surface size and rendering knobs for one kind of view."""

    name: str
    width: int
    height: int
    header_height: Optional[float] = None
    batch_size: Optional[int] = None
    label_scale: float = 1.0  # Multiplies detail tier thresholds
    show_labels: Optional[bool] = None
    color_scheme: Optional[str] = None
    show_stats: bool = True
    show_legend: bool = True

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Preset '{self.name}' needs a positive size, got {self.width}x{self.height}")
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError(f"Preset '{self.name}' batch_size must be >= 1, got {self.batch_size}")
        if self.header_height is not None and self.header_height < 0:
            raise ValueError(f"Preset '{self.name}' header_height must be >= 0, got {self.header_height}")
        if self.label_scale <= 0:
            raise ValueError(f"Preset '{self.name}' label_scale must be > 0, got {self.label_scale}")


PRESETS: Dict[str, ViewPreset] = {
    "desktop": ViewPreset(name="desktop", width=1200, height=800),
    "panoramic": ViewPreset(name="panoramic", width=1920, height=1080, header_height=24.0, batch_size=80),
    "mobile": ViewPreset(
        name="mobile",
        width=390,
        height=760,
        header_height=20.0,
        batch_size=30,
        label_scale=0.5,
        show_legend=False,
    ),
    "embed": ViewPreset(name="embed", width=800, height=500, header_height=22.0, show_stats=False),
    "mini": ViewPreset(
        name="mini",
        width=400,
        height=260,
        header_height=0.0,
        show_labels=False,
        show_stats=False,
        show_legend=False,
    ),
}

_PRESET_FIELDS = {f.name for f in fields(ViewPreset)} - {"name"}


def list_presets() -> List[str]:
    return list(PRESETS)


def get_preset(name: Optional[str], overrides: Optional[Mapping[str, Any]] = None) -> ViewPreset:
    """
    Look up a preset by name, applying optional field overrides.

    Unknown names fall back to desktop with a warning; unknown override
    keys are ignored with a warning.
    """
    key = (name or DEFAULT_PRESET).lower()
    preset = PRESETS.get(key)
    if preset is None:
        logger.warning(f"Unknown view preset '{name}', using '{DEFAULT_PRESET}'")
        preset = PRESETS[DEFAULT_PRESET]

    if not overrides:
        return preset

    unknown = set(overrides) - _PRESET_FIELDS
    if unknown:
        logger.warning(f"Ignoring unknown preset fields for '{preset.name}': {sorted(unknown)}")
    changes = {k: v for k, v in overrides.items() if k in _PRESET_FIELDS}
    return replace(preset, **changes)
