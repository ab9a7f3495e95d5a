"""
Color Scale - diverging palette keyed on percent change.

Discrete buckets, symmetric for gains and losses:

    |change| < 0.01       -> flat (neutral)
    0.01 .. 0.25          -> level 1
    0.25 .. 1             -> level 2
    1 .. 2                -> level 3
    2 .. 3                -> level 4
    >= 3                  -> level 5 (saturates, +/-inf included)

NaN, None and non-numeric input map to the neutral color. Every function
here is total and deterministic.

Bucket colors are linear RGB interpolations from a pure gray neutral toward
the scheme's max color, which makes HSV saturation strictly increase with
magnitude.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...utils.logging_setup import get_logger

logger = get_logger(__name__)

# Magnitude thresholds for levels 2..5 (level 1 is anything above epsilon)
DEFAULT_THRESHOLDS: Tuple[float, ...] = (0.25, 1.0, 2.0, 3.0)
FLAT_EPSILON = 0.01

# Interpolation intensity for levels 1..5
_LEVEL_INTENSITY: Tuple[float, ...] = (0.2, 0.4, 0.6, 0.8, 1.0)

FLAT_BUCKET = "flat"


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    color = color.lstrip("#")
    return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16)


def _interpolate(start: str, end: str, t: float) -> str:
    r0, g0, b0 = hex_to_rgb(start)
    r1, g1, b1 = hex_to_rgb(end)
    r = round(r0 + (r1 - r0) * t)
    g = round(g0 + (g1 - g0) * t)
    b = round(b0 + (b1 - b0) * t)
    return f"#{r:02x}{g:02x}{b:02x}"


@dataclass(frozen=True)
class ColorScheme:
    """Diverging scheme: neutral gray plus fully saturated gain/loss colors."""

    name: str
    neutral: str
    gain_max: str
    loss_max: str
    text: str = "#ffffff"
    gains: Tuple[str, ...] = field(init=False)
    losses: Tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        gains = tuple(_interpolate(self.neutral, self.gain_max, t) for t in _LEVEL_INTENSITY)
        losses = tuple(_interpolate(self.neutral, self.loss_max, t) for t in _LEVEL_INTENSITY)
        object.__setattr__(self, "gains", gains)
        object.__setattr__(self, "losses", losses)


COLOR_SCHEMES: Dict[str, ColorScheme] = {
    "default": ColorScheme("default", neutral="#4b4b4b", gain_max="#30cc5a", loss_max="#f63538"),
    "blue_red": ColorScheme("blue_red", neutral="#9e9e9e", gain_max="#0d47a1", loss_max="#b71c1c"),
    "green_red": ColorScheme(
        "green_red", neutral="#bdbdbd", gain_max="#2e7d32", loss_max="#c62828", text="#212121"
    ),
}


def get_color_scheme(name: Optional[str]) -> ColorScheme:
    """Look up a scheme by name, falling back to the default scheme."""
    if name is None:
        return COLOR_SCHEMES["default"]
    scheme = COLOR_SCHEMES.get(name.lower().replace("-", "_"))
    if scheme is None:
        logger.warning(f"Unknown color scheme '{name}', using default")
        return COLOR_SCHEMES["default"]
    return scheme


def _as_change(value: Any) -> Optional[float]:
    """Coerce input to a float, None when it has no usable value."""
    if value is None or isinstance(value, bool):
        return None
    try:
        change = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(change):
        return None
    return change


class ColorScale:
    """
    Stateless mapping change_percent -> hex color.

    Thresholds and epsilon are configurable per surface; the mapping stays
    symmetric (same thresholds for gains and losses, different hue).
    """

    def __init__(
        self,
        scheme: ColorScheme | str | None = None,
        thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
        flat_epsilon: float = FLAT_EPSILON,
    ) -> None:
        if isinstance(scheme, ColorScheme):
            self.scheme = scheme
        else:
            self.scheme = get_color_scheme(scheme)

        ordered = tuple(float(t) for t in thresholds)
        if len(ordered) != 4 or list(ordered) != sorted(ordered) or ordered[0] <= 0:
            raise ValueError(f"thresholds must be 4 ascending positive values, got {thresholds!r}")
        if flat_epsilon < 0:
            raise ValueError(f"flat_epsilon must be >= 0, got {flat_epsilon!r}")
        self.thresholds = ordered
        self.flat_epsilon = float(flat_epsilon)

    def level_for(self, change_percent: Any) -> int:
        """Signed bucket level in [-5, 5]; 0 is flat."""
        change = _as_change(change_percent)
        if change is None or abs(change) < self.flat_epsilon:
            return 0

        magnitude = abs(change)
        level = 1
        for threshold in self.thresholds:
            if magnitude >= threshold:
                level += 1
        return level if change > 0 else -level

    def bucket_for(self, change_percent: Any) -> str:
        """CSS-style bucket name: 'flat', 'gain-1'..'gain-5', 'loss-1'..'loss-5'."""
        level = self.level_for(change_percent)
        if level == 0:
            return FLAT_BUCKET
        return f"gain-{level}" if level > 0 else f"loss-{-level}"

    def color_for(self, change_percent: Any) -> str:
        level = self.level_for(change_percent)
        if level == 0:
            return self.scheme.neutral
        if level > 0:
            return self.scheme.gains[level - 1]
        return self.scheme.losses[-level - 1]

    __call__ = color_for

    def legend(self) -> List[Tuple[str, str]]:
        """(label, color) pairs from deepest loss to deepest gain."""
        t = self.thresholds
        entries: List[Tuple[str, str]] = []
        for level in range(5, 0, -1):
            label = f"<= -{t[level - 2]:g}%" if level > 1 else "< 0%"
            entries.append((label, self.scheme.losses[level - 1]))
        entries.append(("0%", self.scheme.neutral))
        for level in range(1, 6):
            label = f">= +{t[level - 2]:g}%" if level > 1 else "> 0%"
            entries.append((label, self.scheme.gains[level - 1]))
        return entries

    def css_rules(self, prefix: str = ".treemap-stock") -> str:
        """CSS background rules for each bucket class."""
        rules = [f"{prefix}.{FLAT_BUCKET} {{ background-color: {self.scheme.neutral}; }}"]
        for level in range(1, 6):
            rules.append(f"{prefix}.gain-{level} {{ background-color: {self.scheme.gains[level - 1]}; }}")
            rules.append(f"{prefix}.loss-{level} {{ background-color: {self.scheme.losses[level - 1]}; }}")
        return "\n".join(rules)


_DEFAULT_SCALE = ColorScale()


def color_for(change_percent: Any) -> str:
    """Map change percent to a color using the default scale."""
    return _DEFAULT_SCALE.color_for(change_percent)


def bucket_for(change_percent: Any) -> str:
    """Map change percent to a bucket name using the default scale."""
    return _DEFAULT_SCALE.bucket_for(change_percent)
