"""Tests for HeatmapRenderer (batched paint, cancellation, events, resize)."""

import asyncio
import json
import math
from typing import Callable, List, Optional

import pytest

from stockmap.domain.heatmap.color_scale import ColorScale
from stockmap.infrastructure.reporting.heatmap.renderer import (
    HeatmapRenderer,
    RenderOptions,
    RenderState,
    coerce_items,
)
from stockmap.infrastructure.reporting.heatmap.surface import (
    EVENT_CLICK,
    EVENT_HOVER,
    EVENT_LEAVE,
    EVENT_RETRY,
    CellSpec,
    InMemorySurface,
    LabelRole,
)
from stockmap.models.heatmap import StockItem


class HookedSurface(InMemorySurface):
    """InMemorySurface that runs a hook on every yield to the host."""

    def __init__(self, *args, on_yield: Optional[Callable[[int], None]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.on_yield = on_yield
        self.cells_at_first_yield: Optional[int] = None

    async def yield_to_host(self) -> None:
        await super().yield_to_host()
        if self.cells_at_first_yield is None:
            self.cells_at_first_yield = len(self.cells)
        if self.on_yield:
            self.on_yield(self.yield_count)


class BrokenSurface(InMemorySurface):
    """Fails to create rectangles until repaired."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.broken = True

    def create_rect(self, spec: CellSpec) -> str:
        if self.broken:
            raise RuntimeError("canvas lost")
        return super().create_rect(spec)


class TestRenderPass:
    """Layout plus batched paint."""

    @pytest.mark.asyncio
    async def test_large_universe_paints_every_cell(self, large_universe):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(min_cell_px=0, batch_size=50))

        outcome = await renderer.render(large_universe)

        assert outcome.state is RenderState.PAINTED
        assert outcome.painted_cells == 437
        assert len(surface.stock_cells) == 437
        assert outcome.sector_count == 11
        assert len(surface.sector_cells) == 11
        assert outcome.batches == 9
        assert surface.yield_count == 9
        assert renderer.painted_count == 437

    @pytest.mark.asyncio
    async def test_sectors_painted_before_first_yield(self, large_universe):
        surface = HookedSurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(min_cell_px=0))

        await renderer.render(large_universe)

        assert surface.cells_at_first_yield == 11

    @pytest.mark.asyncio
    async def test_cells_sorted_by_weight(self, sample_items):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(group_by_sector=False))

        await renderer.render(list(reversed(sample_items)))

        assert surface.cells["stock-0"].data["symbol"] == "AAPL"
        assert surface.cells["stock-4"].data["symbol"] == "BAC"

    @pytest.mark.asyncio
    async def test_unsorted_keeps_input_order(self, sample_items):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(group_by_sector=False, sort_by_weight=False))

        await renderer.render(list(reversed(sample_items)))

        assert surface.cells["stock-0"].data["symbol"] == "BAC"

    @pytest.mark.asyncio
    async def test_geometry_fills_container(self, sample_items):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(group_by_sector=False))

        await renderer.render(sample_items)

        assert sum(c.area for c in surface.stock_cells) == pytest.approx(1200 * 800)

    @pytest.mark.asyncio
    async def test_explicit_size_overrides_surface(self, sample_items):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(group_by_sector=False))

        await renderer.render(sample_items, 300, 200)

        assert max(c.x + c.width for c in surface.stock_cells) == pytest.approx(300)
        assert max(c.y + c.height for c in surface.stock_cells) == pytest.approx(200)

    @pytest.mark.asyncio
    async def test_cell_color_and_classes(self, sample_items):
        surface = InMemorySurface(1200, 800)
        scale = ColorScale("blue_red")
        renderer = HeatmapRenderer(surface, RenderOptions(color_scale=scale))

        await renderer.render(sample_items)

        nvda = surface.find_stock("NVDA")
        assert nvda.color == scale.color_for(3.4)
        assert "treemap-stock" in nvda.css_classes
        assert "gain-5" in nvda.css_classes
        assert any(c.startswith("detail-") for c in nvda.css_classes)
        assert surface.find_stock("BAC").color == scale.scheme.neutral

    @pytest.mark.asyncio
    async def test_tiny_cells_skipped(self):
        items = [StockItem("BIG", "Big", 1000.0, 1.0), StockItem("DUST", "Dust", 0.001, 1.0)]
        surface = InMemorySurface(100, 100)
        renderer = HeatmapRenderer(surface, RenderOptions(group_by_sector=False, min_cell_px=4))

        outcome = await renderer.render(items)

        assert outcome.painted_cells == 1
        assert outcome.skipped_cells == 1
        assert surface.find_stock("DUST") is None

    @pytest.mark.asyncio
    async def test_raw_records_accepted(self, sample_records):
        surface = InMemorySurface(800, 600)
        renderer = HeatmapRenderer(surface)

        outcome = await renderer.render(sample_records + [{"name": "no symbol"}])

        assert outcome.state is RenderState.PAINTED
        assert outcome.painted_cells == 3
        assert {c.data["sector"] for c in surface.stock_cells} == {"Technology", "Energy", "Health Care"}

    @pytest.mark.asyncio
    async def test_non_finite_stock_item_values_zeroed(self):
        """NaN change on a prebuilt StockItem renders as flat, never as 'nan'."""
        items = [
            StockItem("A", "Alpha", 100.0, math.nan, price=math.inf),
            StockItem("B", "Beta", math.nan, 1.0),
        ]
        surface = InMemorySurface(400, 300)
        renderer = HeatmapRenderer(surface, RenderOptions(group_by_sector=False))

        outcome = await renderer.render(items)

        assert outcome.painted_cells == 1
        cell = surface.find_stock("A")
        assert cell.data["change_percent"] == 0.0
        assert "flat" in cell.css_classes
        changes = [lbl.text for lbl in surface.labels_for(cell.cell_id) if lbl.role is LabelRole.CHANGE]
        assert changes == ["+0.00%"]
        assert "nan" not in cell.tooltip.lower()
        assert "inf" not in cell.tooltip.lower()
        assert "NaN" not in json.dumps(surface.to_dict())

    @pytest.mark.asyncio
    async def test_render_ids_unique(self, sample_items):
        renderer = HeatmapRenderer(InMemorySurface())
        first = await renderer.render(sample_items)
        second = await renderer.rerender()
        assert first.render_id != second.render_id
        assert second.painted_cells == first.painted_cells


class TestLabels:
    """Detail tier labels."""

    @pytest.mark.asyncio
    async def test_large_cell_has_name_ticker_change(self, sample_items):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface)

        await renderer.render(sample_items)

        aapl = surface.find_stock("AAPL")
        labels = {lbl.role: lbl for lbl in surface.labels_for(aapl.cell_id)}
        assert labels[LabelRole.NAME].text == "Apple Inc."
        assert labels[LabelRole.TICKER].text == "AAPL"
        assert labels[LabelRole.CHANGE].text == "+1.23%"
        assert labels[LabelRole.NAME].font_size == labels[LabelRole.TICKER].font_size - 2

    @pytest.mark.asyncio
    async def test_sector_title_label(self, sample_items):
        surface = InMemorySurface(1200, 800)
        await HeatmapRenderer(surface).render(sample_items)

        titles = [surface.labels_for(c.cell_id)[0].text for c in surface.sector_cells]
        assert titles == ["Technology", "Financials"]

    @pytest.mark.asyncio
    async def test_thin_header_has_no_title(self, sample_items):
        surface = InMemorySurface(1200, 800)
        await HeatmapRenderer(surface, RenderOptions(header_height=5)).render(sample_items)

        assert all(not surface.labels_for(c.cell_id) for c in surface.sector_cells)

    @pytest.mark.asyncio
    async def test_labels_disabled(self, sample_items):
        surface = InMemorySurface(1200, 800)
        await HeatmapRenderer(surface, RenderOptions(show_labels=False)).render(sample_items)

        assert surface.labels == {}

    @pytest.mark.asyncio
    async def test_xs_cells_have_no_text(self):
        items = [StockItem("BIG", "Big", 1000.0, 1.0), StockItem("TINY", "Tiny", 25.0, 1.0)]
        surface = InMemorySurface(200, 100)
        await HeatmapRenderer(surface, RenderOptions(group_by_sector=False)).render(items)

        tiny = surface.find_stock("TINY")
        assert tiny.area < 600
        assert surface.labels_for(tiny.cell_id) == []

    @pytest.mark.asyncio
    async def test_urls(self):
        items = [StockItem("BRK B", "Berkshire", 100.0, 0.5, "S&P Financials")]
        surface = InMemorySurface(400, 300)
        options = RenderOptions(
            detail_url_template="/?page=stock&symbol={symbol}",
            sector_url_template="?sector={sector}",
        )
        await HeatmapRenderer(surface, options).render(items)

        assert surface.stock_cells[0].href == "/?page=stock&symbol=BRK%20B"
        assert surface.sector_cells[0].href == "?sector=S%26P%20Financials"

    @pytest.mark.asyncio
    async def test_sector_url_slug(self):
        items = [StockItem("T", "Telecom", 100.0, 0.5, "Communication Services")]
        surface = InMemorySurface(400, 300)
        options = RenderOptions(sector_url_template="heatmap_{slug}.html")
        await HeatmapRenderer(surface, options).render(items)

        assert surface.sector_cells[0].href == "heatmap_communication_services.html"


class TestEmptyAndFailure:
    """Placeholder and retry states."""

    @pytest.mark.asyncio
    async def test_empty_input_shows_placeholder(self):
        surface = InMemorySurface()
        renderer = HeatmapRenderer(surface, RenderOptions(empty_message="Nothing here"))

        outcome = await renderer.render([])

        assert outcome.state is RenderState.EMPTY
        assert outcome.ok
        assert surface.placeholder == "Nothing here"
        assert surface.cells == {}

    @pytest.mark.asyncio
    async def test_zero_weight_only_is_empty(self):
        surface = InMemorySurface()
        outcome = await HeatmapRenderer(surface).render([StockItem("A", "A", 0.0, 1.0)])
        assert outcome.state is RenderState.EMPTY
        assert surface.placeholder is not None

    @pytest.mark.asyncio
    async def test_render_without_items_is_empty(self):
        outcome = await HeatmapRenderer(InMemorySurface()).rerender()
        assert outcome.state is RenderState.EMPTY

    @pytest.mark.asyncio
    async def test_paint_error_shows_retry(self, sample_items):
        surface = BrokenSurface()
        renderer = HeatmapRenderer(surface, RenderOptions(error_message="Render failed"))

        outcome = await renderer.render(sample_items)

        assert outcome.state is RenderState.FAILED
        assert not outcome.ok
        assert "canvas lost" in outcome.error
        assert surface.retry_message == "Render failed"
        assert renderer.last_outcome is outcome

    @pytest.mark.asyncio
    async def test_retry_event_rerenders(self, sample_items):
        surface = BrokenSurface()
        renderer = HeatmapRenderer(surface)
        await renderer.render(sample_items)

        surface.broken = False
        assert surface.dispatch(EVENT_RETRY)
        outcome = await renderer.wait_for_retry()

        assert outcome.state is RenderState.PAINTED
        assert surface.retry_message is None
        assert len(surface.stock_cells) == len(sample_items)

    @pytest.mark.asyncio
    async def test_invalid_size_fails_softly(self, sample_items):
        surface = InMemorySurface()
        outcome = await HeatmapRenderer(surface).render(sample_items, 0, 600)

        assert outcome.state is RenderState.FAILED
        assert "Invalid layout bounds" in outcome.error
        assert surface.retry_message is not None


class TestCancellation:
    """Generation-based supersession."""

    @pytest.mark.asyncio
    async def test_cancel_stops_at_batch_boundary(self, large_universe):
        surface = HookedSurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(min_cell_px=0, batch_size=20))
        surface.on_yield = lambda count: renderer.cancel() if count == 3 else None

        outcome = await renderer.render(large_universe)

        assert outcome.state is RenderState.CANCELLED
        assert outcome.batches == 2
        assert outcome.painted_cells == 40
        assert len(surface.stock_cells) == 40
        assert renderer.last_outcome is None

    @pytest.mark.asyncio
    async def test_new_render_supersedes_running_one(self, large_universe, sample_items):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(min_cell_px=0, batch_size=10))

        first = asyncio.get_running_loop().create_task(renderer.render(large_universe))
        await asyncio.sleep(0)  # first render reaches its first batch boundary
        second = await renderer.render(sample_items)
        first_outcome = await first

        assert first_outcome.state is RenderState.CANCELLED
        assert second.state is RenderState.PAINTED
        assert {c.data["symbol"] for c in surface.stock_cells} == {i.symbol for i in sample_items}
        assert renderer.last_outcome is second


class TestDelegatedEvents:
    """One handler per event type, resolved through the cell registry."""

    @pytest.mark.asyncio
    async def test_listener_count_independent_of_cells(self, large_universe):
        surface = InMemorySurface()
        renderer = HeatmapRenderer(surface, RenderOptions(min_cell_px=0))
        assert surface.listener_count == 4

        await renderer.render(large_universe)
        await renderer.rerender()

        assert surface.listener_count == 4
        assert sorted(surface.event_types) == sorted([EVENT_CLICK, EVENT_HOVER, EVENT_LEAVE, EVENT_RETRY])

    @pytest.mark.asyncio
    async def test_click_by_target(self, sample_items):
        clicked: List[StockItem] = []
        surface = InMemorySurface()
        renderer = HeatmapRenderer(surface, RenderOptions(on_cell_click=clicked.append))
        await renderer.render(sample_items)

        cell = surface.find_stock("MSFT")
        surface.dispatch(EVENT_CLICK, target_id=cell.cell_id)

        assert [i.symbol for i in clicked] == ["MSFT"]

    @pytest.mark.asyncio
    async def test_click_by_coordinates(self, sample_items):
        clicked: List[StockItem] = []
        surface = InMemorySurface()
        renderer = HeatmapRenderer(surface, RenderOptions(on_cell_click=clicked.append))
        await renderer.render(sample_items)

        cell = surface.find_stock("JPM")
        surface.dispatch(EVENT_CLICK, x=cell.x + cell.width / 2, y=cell.y + cell.height / 2)

        assert [i.symbol for i in clicked] == ["JPM"]

    @pytest.mark.asyncio
    async def test_sector_header_click(self, sample_items):
        sectors = []
        clicked = []
        surface = InMemorySurface()
        options = RenderOptions(on_sector_click=sectors.append, on_cell_click=clicked.append)
        await HeatmapRenderer(surface, options).render(sample_items)

        header = surface.sector_cells[1]
        surface.dispatch(EVENT_CLICK, x=header.x + 2, y=header.y + 2)

        assert [g.name for g in sectors] == ["Financials"]
        assert clicked == []

    @pytest.mark.asyncio
    async def test_click_outside_cells_ignored(self, sample_items):
        clicked = []
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(on_cell_click=clicked.append))
        await renderer.render(sample_items)

        surface.dispatch(EVENT_CLICK, x=5000, y=5000)
        surface.dispatch(EVENT_CLICK, target_id="stock-999")

        assert clicked == []
        assert renderer.hit_test(-1, -1) is None

    @pytest.mark.asyncio
    async def test_hover_enter_move_leave(self, sample_items):
        hovered: List[Optional[StockItem]] = []
        surface = InMemorySurface()
        renderer = HeatmapRenderer(surface, RenderOptions(on_cell_hover=hovered.append))
        await renderer.render(sample_items)

        cell = surface.find_stock("AAPL")
        surface.dispatch(EVENT_HOVER, x=cell.x + 5, y=cell.y + 5)
        surface.dispatch(EVENT_HOVER, x=cell.x + 10, y=cell.y + 10)
        surface.dispatch(EVENT_LEAVE)
        surface.dispatch(EVENT_LEAVE)

        assert [i.symbol if i else None for i in hovered] == ["AAPL", None]

    @pytest.mark.asyncio
    async def test_hover_reset_on_rerender(self, sample_items):
        hovered = []
        surface = InMemorySurface()
        renderer = HeatmapRenderer(surface, RenderOptions(on_cell_hover=hovered.append))
        await renderer.render(sample_items)

        surface.dispatch(EVENT_HOVER, target_id=surface.find_stock("NVDA").cell_id)
        await renderer.rerender()

        assert [i.symbol if i else None for i in hovered] == ["NVDA", None]

    @pytest.mark.asyncio
    async def test_node_for(self, sample_items):
        surface = InMemorySurface()
        renderer = HeatmapRenderer(surface)
        await renderer.render(sample_items)

        assert renderer.node_for("sector-0").ref.name == "Technology"
        assert renderer.node_for(surface.find_stock("BAC").cell_id).ref.symbol == "BAC"
        assert renderer.node_for("missing") is None

    def test_unknown_event_type_rejected(self):
        with pytest.raises(ValueError):
            InMemorySurface().on("dblclick", lambda event: None)


class TestResize:
    """Debounced re-layout."""

    @pytest.mark.asyncio
    async def test_resize_storm_relayouts_once(self, sample_items):
        surface = InMemorySurface(1200, 800)
        renderer = HeatmapRenderer(surface, RenderOptions(resize_debounce_ms=100))
        await renderer.render(sample_items)
        assert renderer.layout_count == 1

        for step in range(10):
            renderer.request_resize(1000 + step * 10, 700)
            await asyncio.sleep(0.005)
        assert renderer.resize_pending

        await renderer.wait_for_resize()

        assert renderer.layout_count == 2
        assert not renderer.resize_pending
        assert max(n.right for n in renderer.nodes) == pytest.approx(1090)

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_resize(self, render_options, sample_items):
        renderer = HeatmapRenderer(InMemorySurface(), render_options)
        await renderer.render(sample_items)

        renderer.request_resize(640, 480)
        renderer.cancel()
        await renderer.wait_for_resize()

        assert renderer.layout_count == 1

    @pytest.mark.asyncio
    async def test_size_sticks_for_rerender(self, render_options, sample_items):
        renderer = HeatmapRenderer(InMemorySurface(1200, 800), render_options)
        await renderer.render(sample_items, 640, 480)
        await renderer.rerender()

        assert max(n.bottom for n in renderer.nodes) == pytest.approx(480)


class TestRenderOptions:
    def test_validation(self):
        with pytest.raises(ValueError):
            RenderOptions(batch_size=0)
        with pytest.raises(ValueError):
            RenderOptions(min_cell_px=-1)

    def test_coerce_items_passes_stock_items(self, sample_items):
        assert coerce_items(sample_items) == sample_items

    def test_coerce_items_skips_invalid(self, sample_records):
        assert len(coerce_items(sample_records + [None, {"ticker": ""}])) == 3

    def test_coerce_items_zeroes_non_finite_stock_items(self):
        (item,) = coerce_items([StockItem("A", "Alpha", math.inf, math.nan, volume=math.nan)])
        assert item.weight == 0.0
        assert item.change_percent == 0.0
        assert item.volume is None

    @pytest.mark.asyncio
    async def test_outcome_to_dict(self, sample_items):
        outcome = await HeatmapRenderer(InMemorySurface()).render(sample_items)
        data = outcome.to_dict()
        assert data["state"] == "painted"
        assert data["painted_cells"] == 5
        assert data["sector_count"] == 2
        assert data["error"] is None
