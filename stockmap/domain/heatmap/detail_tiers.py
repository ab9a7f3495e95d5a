"""
Detail tiers for stock cells.

Cells are bucketed by area into five discrete tiers, each with a fixed
font size and label visibility profile, so label rendering never scales
continuously:

    xs  area <= 600     no text
    sm  area <= 1500    ticker + change
    md  area <= 4000    name + ticker + change
    lg  area <= 10000   name + ticker + change (larger)
    xl  area > 10000    name + ticker + change (largest)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class DetailTier(Enum):
    XS = "xs"
    SM = "sm"
    MD = "md"
    LG = "lg"
    XL = "xl"

    @property
    def css_class(self) -> str:
        return f"detail-{self.value}"


@dataclass(frozen=True)
class TierProfile:
    """Label visibility and font size for one tier."""

    tier: DetailTier
    font_size: int
    show_ticker: bool
    show_change: bool
    show_name: bool

    @property
    def has_text(self) -> bool:
        return self.show_ticker or self.show_change or self.show_name


TIER_PROFILES: Dict[DetailTier, TierProfile] = {
    DetailTier.XS: TierProfile(DetailTier.XS, font_size=0, show_ticker=False, show_change=False, show_name=False),
    DetailTier.SM: TierProfile(DetailTier.SM, font_size=10, show_ticker=True, show_change=True, show_name=False),
    DetailTier.MD: TierProfile(DetailTier.MD, font_size=12, show_ticker=True, show_change=True, show_name=True),
    DetailTier.LG: TierProfile(DetailTier.LG, font_size=16, show_ticker=True, show_change=True, show_name=True),
    DetailTier.XL: TierProfile(DetailTier.XL, font_size=22, show_ticker=True, show_change=True, show_name=True),
}


@dataclass(frozen=True)
class TierThresholds:
    """Lower area bounds (exclusive, px^2) for sm/md/lg/xl."""

    sm: float = 600.0
    md: float = 1500.0
    lg: float = 4000.0
    xl: float = 10000.0

    def __post_init__(self) -> None:
        if not (0 <= self.sm <= self.md <= self.lg <= self.xl):
            raise ValueError(
                f"Tier thresholds must be ascending: sm={self.sm} md={self.md} lg={self.lg} xl={self.xl}"
            )

    def scaled(self, factor: float) -> "TierThresholds":
        """Thresholds multiplied by `factor` (small surfaces use < 1)."""
        return TierThresholds(
            sm=self.sm * factor,
            md=self.md * factor,
            lg=self.lg * factor,
            xl=self.xl * factor,
        )


DEFAULT_THRESHOLDS = TierThresholds()


def tier_for_area(area: float, thresholds: Optional[TierThresholds] = None) -> DetailTier:
    """Classify a cell area into a detail tier."""
    t = thresholds or DEFAULT_THRESHOLDS
    if area > t.xl:
        return DetailTier.XL
    if area > t.lg:
        return DetailTier.LG
    if area > t.md:
        return DetailTier.MD
    if area > t.sm:
        return DetailTier.SM
    return DetailTier.XS


def profile_for_area(area: float, thresholds: Optional[TierThresholds] = None) -> TierProfile:
    return TIER_PROFILES[tier_for_area(area, thresholds)]
