"""
Heatmap Builder - static HTML (and JSON) reports.

Three steps per report:
1. Normalize records and compute market statistics
2. Paint the treemap onto an HtmlSurface through HeatmapRenderer
3. Wrap the surface markup in the page template, write the theme CSS to
   assets/heatmap-theme.css

Sector view: `sector=` filters to one sector, renders it ungrouped and
adds a back link to the market view. Pages are named heatmap.html and
heatmap_<slug>.html; market sector titles link to the sector page and
save_report_set() writes both.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple, Union

from ....domain.heatmap.grouping import compute_market_stats, filter_sector, sector_slug
from ....utils.logging_setup import get_logger
from .css import build_theme_css
from .html_surface import HtmlSurface
from .html_template import render_heatmap_page, render_legend, render_stats_bar
from .presets import DEFAULT_PRESET, ViewPreset, get_preset
from .renderer import HeatmapRenderer, RecordLike, RenderOptions, RenderOutcome, RenderState, coerce_items
from .surface import InMemorySurface

if TYPE_CHECKING:
    from config.models import AppConfig

logger = get_logger(__name__)

CSS_ASSET = "assets/heatmap-theme.css"
MARKET_REPORT = "heatmap.html"
SECTOR_REPORT = "heatmap_{slug}.html"
DEFAULT_TITLE = "Market Heatmap"


class HeatmapBuilder:
    """
    Builds heatmap report pages from stock records.

    Works without a config (built-in defaults plus preset); with one,
    render options come from RenderOptions.from_config.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        preset: Union[ViewPreset, str, None] = None,
        title: Optional[str] = None,
        market_href: str = MARKET_REPORT,
        sector_href: str = SECTOR_REPORT,
    ) -> None:
        """
        Initialize heatmap builder.

        Args:
            config: Application config (optional)
            preset: Preset name or instance; defaults to the config's
                dashboard.default_preset, then desktop
            title: Page title; defaults to dashboard.title
            market_href: Market page file name; sector views link back to it
            sector_href: Sector page file name template ({slug} or {sector});
                market view sector titles link to it
        """
        self._config = config
        if isinstance(preset, ViewPreset):
            self._preset = preset
        else:
            name = (preset or (config.dashboard.default_preset if config else DEFAULT_PRESET)).lower()
            overrides = config.presets.get(name) if config else None
            self._preset = get_preset(name, overrides)
        self._title = title or (config.dashboard.title if config else DEFAULT_TITLE)
        self._market_href = market_href
        self._sector_href = sector_href

    @property
    def preset(self) -> ViewPreset:
        return self._preset

    def report_filename(self, sector: Optional[str] = None) -> str:
        """File name save_heatmap() uses for the market view or a sector view."""
        if not sector:
            return self._market_href
        return self._sector_href.format(sector=sector, slug=sector_slug(sector))

    def build_options(self, **overrides: Any) -> RenderOptions:
        overrides.setdefault("sector_url_template", self._sector_href)
        if self._config is not None:
            return RenderOptions.from_config(self._config, self._preset, **overrides)
        return RenderOptions().with_preset(self._preset, **overrides)

    async def build_page(
        self,
        records: Iterable[RecordLike],
        sector: Optional[str] = None,
        group_by_sector: Optional[bool] = None,
        generated_at: Optional[datetime] = None,
        css_path: str = CSS_ASSET,
    ) -> Tuple[str, RenderOutcome]:
        """
        Render a full page.

        Returns:
            (HTML page, render outcome)
        """
        options = self.build_options()
        items = coerce_items(records)
        title = self._title
        back_href = None

        if sector:
            items = filter_sector(items, sector, options.default_sector)
            options.group_by_sector = False
            title = f"{sector} - {self._title}"
            back_href = self._market_href
            logger.info(f"Sector view '{sector}': {len(items)} stocks")
        elif group_by_sector is not None:
            options.group_by_sector = group_by_sector

        surface = HtmlSurface(self._preset.width, self._preset.height)
        renderer = HeatmapRenderer(surface, options)
        outcome = await renderer.render(items)
        if outcome.state is RenderState.FAILED:
            logger.error(f"Heatmap page rendered in failed state: {outcome.error}")

        stats_html = render_stats_bar(compute_market_stats(items)) if self._preset.show_stats else ""
        legend_html = render_legend(options.color_scale.legend()) if self._preset.show_legend else ""
        page = render_heatmap_page(
            title=title,
            heatmap_html=surface.to_html(),
            css_path=css_path,
            generated_at=generated_at or datetime.now(),
            stats_html=stats_html,
            legend_html=legend_html,
            back_href=back_href,
        )
        return page, outcome

    def _ensure_css_asset(self, output_dir: Path) -> str:
        """
        Write CSS to assets/ directory and return relative path.

        Args:
            output_dir: Report output directory

        Returns:
            Relative path to CSS file (e.g., "assets/heatmap-theme.css")
        """
        assets_dir = output_dir / "assets"
        assets_dir.mkdir(parents=True, exist_ok=True)

        css_path = output_dir / CSS_ASSET
        css_path.write_text(build_theme_css(self.build_options().color_scale), encoding="utf-8")

        logger.debug(f"Wrote heatmap CSS to {css_path}")
        return CSS_ASSET

    def render_html(
        self,
        records: Iterable[RecordLike],
        output_dir: Optional[Path] = None,
        sector: Optional[str] = None,
        group_by_sector: Optional[bool] = None,
    ) -> str:
        """
        Render records to an HTML page (synchronous entry point).

        Writes the CSS asset when `output_dir` is given. Must not be called
        from a running event loop; use build_page() there.
        """
        css_path = self._ensure_css_asset(output_dir) if output_dir is not None else CSS_ASSET
        page, _ = asyncio.run(self.build_page(records, sector=sector, group_by_sector=group_by_sector, css_path=css_path))
        return page

    def save_heatmap(
        self,
        records: Iterable[RecordLike],
        output_dir: Path,
        filename: Optional[str] = None,
        sector: Optional[str] = None,
        group_by_sector: Optional[bool] = None,
    ) -> Path:
        """
        Build and save heatmap HTML to file.

        Args:
            records: Stock records or StockItems
            output_dir: Output directory
            filename: Output filename; defaults to report_filename(sector)
            sector: Render a single-sector view
            group_by_sector: Override grouping for the market view

        Returns:
            Path to saved file
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / (filename or self.report_filename(sector))

        html = self.render_html(records, output_dir, sector=sector, group_by_sector=group_by_sector)
        output_path.write_text(html, encoding="utf-8")

        logger.info(f"Saved heatmap to {output_path}")
        return output_path

    def save_report_set(
        self,
        records: Iterable[RecordLike],
        output_dir: Path,
        group_by_sector: Optional[bool] = None,
    ) -> List[Path]:
        """
        Save the market page plus one page per sector, so every sector
        title link on the market page resolves to a written file.

        Returns:
            Paths written, market page first
        """
        items = coerce_items(records)
        paths = [self.save_heatmap(items, output_dir, group_by_sector=group_by_sector)]

        options = self.build_options()
        grouped = options.group_by_sector if group_by_sector is None else group_by_sector
        if grouped:
            for sector in dict.fromkeys(i.sector or options.default_sector for i in items):
                paths.append(self.save_heatmap(items, output_dir, sector=sector))

        logger.info(f"Saved {len(paths)} heatmap pages to {output_dir}")
        return paths

    async def build_layout(
        self,
        records: Iterable[RecordLike],
        sector: Optional[str] = None,
        group_by_sector: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Paint onto an InMemorySurface and return it as a dict."""
        options = self.build_options()
        items = coerce_items(records)
        if sector:
            items = filter_sector(items, sector, options.default_sector)
            options.group_by_sector = False
        elif group_by_sector is not None:
            options.group_by_sector = group_by_sector

        surface = InMemorySurface(self._preset.width, self._preset.height)
        outcome = await HeatmapRenderer(surface, options).render(items)
        payload = surface.to_dict()
        payload["outcome"] = outcome.to_dict()
        payload["preset"] = self._preset.name
        return payload

    def save_layout_json(
        self,
        records: Iterable[RecordLike],
        output_path: Path,
        sector: Optional[str] = None,
        group_by_sector: Optional[bool] = None,
    ) -> Path:
        """Write the painted cell geometry as JSON."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = asyncio.run(self.build_layout(records, sector=sector, group_by_sector=group_by_sector))
        output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info(f"Saved heatmap layout to {output_path}")
        return output_path
