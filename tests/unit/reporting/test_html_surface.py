"""Tests for the HTML surface and page template."""

from datetime import datetime

import pytest

from stockmap.domain.heatmap.color_scale import ColorScale
from stockmap.domain.heatmap.grouping import compute_market_stats
from stockmap.infrastructure.reporting.heatmap.css import build_theme_css
from stockmap.infrastructure.reporting.heatmap.html_surface import HtmlSurface
from stockmap.infrastructure.reporting.heatmap.html_template import (
    render_heatmap_page,
    render_legend,
    render_stats_bar,
)
from stockmap.infrastructure.reporting.heatmap.renderer import HeatmapRenderer, RenderOptions
from stockmap.models.heatmap import StockItem


async def _painted(items, **options) -> HtmlSurface:
    surface = HtmlSurface(1200, 800)
    await HeatmapRenderer(surface, RenderOptions(**options)).render(items)
    return surface


class TestHtmlSurface:
    """Markup for painted cells."""

    @pytest.mark.asyncio
    async def test_cells_and_attributes(self, sample_items):
        surface = await _painted(sample_items, detail_url_template="/?page=stock&symbol={symbol}")
        markup = surface.markup()

        assert surface.cell_count == 7
        assert markup.count('class="treemap-stock') == 5
        assert markup.count('class="treemap-sector"') == 2
        assert 'data-symbol="AAPL"' in markup
        assert 'data-href="/?page=stock&amp;symbol=AAPL"' in markup
        assert "gain-3" in markup
        assert 'class="stock-ticker"' in markup
        assert ">+1.23%</span>" in markup

    @pytest.mark.asyncio
    async def test_sector_title_links_to_drill_down(self, sample_items):
        surface = await _painted(sample_items, sector_url_template="?sector={sector}")
        assert '<a class="treemap-sector-title" data-href="?sector=Technology"' in surface.markup()

    @pytest.mark.asyncio
    async def test_text_is_escaped(self):
        items = [StockItem("T", "AT&T <Inc>", 100.0, -0.5, "Telecom")]
        markup = (await _painted(items)).markup()
        assert "AT&amp;T &lt;Inc&gt;" in markup
        assert "<Inc>" not in markup

    @pytest.mark.asyncio
    async def test_one_listener_per_event_type(self, large_universe):
        surface = await _painted(large_universe, min_cell_px=0)
        script = surface.script()

        assert surface.cell_count == 448
        assert script.count("addEventListener(") == 4
        assert "data-cell-id" not in script

    def test_no_handlers_no_listeners(self):
        assert "addEventListener" not in HtmlSurface(100, 100).script()

    @pytest.mark.asyncio
    async def test_placeholder(self):
        surface = await _painted([], empty_message="Data is refreshing")
        markup = surface.markup()
        assert '<div class="treemap-placeholder">Data is refreshing</div>' in markup
        assert "treemap-stock" not in markup

    def test_retry_overlay(self):
        surface = HtmlSurface(100, 100)
        surface.show_retry("Heatmap failed to render.")
        markup = surface.markup()
        assert 'class="treemap-error"' in markup
        assert 'class="treemap-retry"' in markup

    def test_clear_drops_overlay(self):
        surface = HtmlSurface(100, 100)
        surface.show_placeholder("empty")
        surface.clear()
        assert "treemap-placeholder" not in surface.markup()

    def test_to_html_includes_tooltip_and_script(self):
        html = HtmlSurface(640, 480, container_id="hm").to_html()
        assert 'id="hm"' in html
        assert 'id="heatmap-tooltip"' in html
        assert "<script>" in html
        assert "width:640.00px" in html


class TestTemplate:
    def test_stats_bar(self, sample_items):
        html = render_stats_bar(compute_market_stats(sample_items))
        assert "Advancers" in html
        assert '<span class="hm-stat-value up">2</span>' in html
        assert "$7.70B" in html

    def test_legend(self):
        html = render_legend(ColorScale().legend())
        assert html.count("hm-legend-item") == 11
        assert "&lt;= -3%" in html

    def test_page(self):
        page = render_heatmap_page(
            title="Tech & Friends",
            heatmap_html="<div id='x'></div>",
            css_path="assets/heatmap-theme.css",
            generated_at=datetime(2024, 3, 15, 9, 30),
            back_href="heatmap.html",
        )
        assert "<title>Tech &amp; Friends</title>" in page
        assert "Generated: 2024-03-15 09:30" in page
        assert 'href="assets/heatmap-theme.css"' in page
        assert 'class="hm-back" href="heatmap.html"' in page

    def test_page_without_back_link(self):
        page = render_heatmap_page("Market", "", "style.css")
        assert "hm-back" not in page
        assert "Generated: N/A" in page

    def test_theme_css_uses_scale(self):
        css = build_theme_css(ColorScale("green_red"))
        assert ".treemap-container" in css
        assert ColorScale("green_red").scheme.gains[4] in css
