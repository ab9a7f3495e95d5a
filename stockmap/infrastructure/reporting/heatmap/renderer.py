"""
Heatmap Renderer - paints the treemap onto a VisualSurface.

Render pass:
    normalize records -> sort by weight -> layout (pure)
        -> paint sector containers (synchronous)
        -> paint leaf cells in batches, yielding to the host loop between them

Each pass gets a generation number. Starting a new pass (or cancel())
makes the in-flight pass stop at its next batch boundary, so two passes
never interleave their paints.

Interaction uses one delegated handler per event type registered on the
surface; targets resolve through the per-render cell registry, by cell
id or by coordinate hit test.

Failures never reach the host: empty input shows a placeholder, any
layout/paint error is logged and the surface shows a retry state whose
retry event re-runs the last render.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)
from urllib.parse import quote

from ....domain.heatmap.aliases import coerce_float, normalize_record
from ....domain.heatmap.color_scale import ColorScale
from ....domain.heatmap.detail_tiers import TierThresholds, profile_for_area
from ....domain.heatmap.grouping import DEFAULT_SECTOR, group_by_sector, sector_slug
from ....domain.heatmap.layout import iter_leaves, layout, layout_sectors
from ....models.heatmap import LayoutNode, SectorGroup, StockItem
from ....utils.debounce import Debouncer
from ....utils.logging_setup import get_logger
from ....utils.perf_logger import log_timing, log_timing_async
from ....utils.trace_context import new_render_pass
from .formatters import format_change, format_tooltip
from .presets import ViewPreset, get_preset
from .surface import (
    EVENT_CLICK,
    EVENT_HOVER,
    EVENT_LEAVE,
    EVENT_RETRY,
    CellKind,
    CellSpec,
    LabelRole,
    SurfaceEvent,
    VisualSurface,
)

if TYPE_CHECKING:
    from config.models import AppConfig

logger = get_logger(__name__)

SECTOR_BACKGROUND = "#262931"
SECTOR_TITLE_FONT = 12
MIN_TITLE_HEADER = 10.0  # Headers thinner than this get no title label
MIN_NAME_FONT = 8

RecordLike = Union[StockItem, Mapping[str, Any]]


class RenderState(Enum):
    PAINTED = "painted"
    EMPTY = "empty"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class RenderOutcome:
    """Result of one render pass."""

    state: RenderState
    render_id: str
    painted_cells: int = 0
    skipped_cells: int = 0
    sector_count: int = 0
    batches: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state in (RenderState.PAINTED, RenderState.EMPTY)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "render_id": self.render_id,
            "painted_cells": self.painted_cells,
            "skipped_cells": self.skipped_cells,
            "sector_count": self.sector_count,
            "batches": self.batches,
            "error": self.error,
        }


@dataclass
class RenderOptions:
    """Renderer knobs. Callbacks receive domain objects, never surface ids."""

    group_by_sector: bool = True
    sort_by_weight: bool = True
    header_height: float = 30.0
    default_sector: str = DEFAULT_SECTOR
    color_scale: ColorScale = field(default_factory=ColorScale)
    tier_thresholds: TierThresholds = field(default_factory=TierThresholds)
    show_labels: bool = True
    min_cell_px: float = 4.0
    batch_size: int = 50
    resize_debounce_ms: float = 250.0
    detail_url_template: Optional[str] = None
    sector_url_template: Optional[str] = None  # {sector} (URL-quoted) or {slug}
    empty_message: str = "No data available. The backend may be refreshing, please try again shortly."
    error_message: str = "Heatmap failed to render."

    on_cell_click: Optional[Callable[[StockItem], Any]] = None
    on_cell_hover: Optional[Callable[[Optional[StockItem]], Any]] = None
    on_sector_click: Optional[Callable[[SectorGroup], Any]] = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.min_cell_px < 0:
            raise ValueError(f"min_cell_px must be >= 0, got {self.min_cell_px}")

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        preset: Union[ViewPreset, str, None] = None,
        **overrides: Any,
    ) -> "RenderOptions":
        """
        Build options from app config and a view preset.

        Preset fields left as None inherit the config; config `presets`
        entries override the named preset's fields. Keyword overrides
        (typically callbacks) win over both.
        """
        if not isinstance(preset, ViewPreset):
            name = (preset or config.dashboard.default_preset).lower()
            preset = get_preset(name, config.presets.get(name))

        tiers = config.detail_tiers
        base = cls(
            group_by_sector=config.layout.group_by_sector,
            sort_by_weight=config.layout.sort_by_weight,
            header_height=config.layout.header_height,
            default_sector=config.layout.default_sector,
            color_scale=ColorScale(
                scheme=config.color.scheme,
                thresholds=config.color.thresholds,
                flat_epsilon=config.color.flat_epsilon,
            ),
            tier_thresholds=TierThresholds(sm=tiers.sm, md=tiers.md, lg=tiers.lg, xl=tiers.xl),
            show_labels=config.render.show_labels,
            min_cell_px=config.render.min_cell_px,
            batch_size=config.render.batch_size,
            resize_debounce_ms=config.render.resize_debounce_ms,
            detail_url_template=config.render.detail_url_template,
            sector_url_template=config.render.sector_url_template,
            empty_message=config.render.empty_message,
            error_message=config.render.error_message,
        )
        return base.with_preset(preset, **overrides)

    def with_preset(self, preset: ViewPreset, **overrides: Any) -> "RenderOptions":
        """Copy with the preset's non-None fields (and overrides) applied."""
        changes: Dict[str, Any] = {}
        if preset.header_height is not None:
            changes["header_height"] = preset.header_height
        if preset.batch_size is not None:
            changes["batch_size"] = preset.batch_size
        if preset.show_labels is not None:
            changes["show_labels"] = preset.show_labels
        if preset.color_scheme is not None:
            changes["color_scale"] = ColorScale(
                scheme=preset.color_scheme,
                thresholds=self.color_scale.thresholds,
                flat_epsilon=self.color_scale.flat_epsilon,
            )
        if preset.label_scale != 1.0:
            changes["tier_thresholds"] = self.tier_thresholds.scaled(preset.label_scale)
        changes.update(overrides)
        return replace(self, **changes)


def coerce_items(records: Iterable[RecordLike]) -> List[StockItem]:
    """
    StockItems pass through (non-finite numbers zeroed); raw records go
    through the alias table.

    Invalid records are skipped with a warning, never raised.
    """
    prepared: List[StockItem] = []
    skipped = 0
    for index, record in enumerate(records):
        item = _sanitize(record) if isinstance(record, StockItem) else normalize_record(record)
        if item is None:
            skipped += 1
            logger.warning(f"Skipping record #{index}: not a mapping or missing symbol")
            continue
        prepared.append(item)
    if skipped:
        logger.warning(f"Skipped {skipped} invalid record(s), {len(prepared)} usable")
    return prepared


def _sanitize(item: StockItem) -> StockItem:
    """Non-finite numbers on a prebuilt StockItem become 0 (extras become None)."""
    changes: Dict[str, Any] = {}
    if not _finite(item.weight):
        changes["weight"] = coerce_float(item.weight)
    if not _finite(item.change_percent):
        changes["change_percent"] = coerce_float(item.change_percent)
    for name in ("volume", "price"):
        value = getattr(item, name)
        if value is not None and not _finite(value):
            changes[name] = None
    if not changes:
        return item
    logger.debug(f"Coerced non-finite fields {sorted(changes)} on {item.symbol}")
    return replace(item, **changes)


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class HeatmapRenderer:
    """
    Treemap renderer bound to one surface.

    The cell registry (cell id -> layout node) is per render pass and is
    rebuilt from scratch each time; nothing is cached across passes.
    """

    def __init__(self, surface: VisualSurface, options: Optional[RenderOptions] = None):
        self._surface = surface
        self._options = options or RenderOptions()

        self._generation = 0
        self._items: Optional[List[StockItem]] = None
        self._size: Optional[Tuple[float, float]] = None
        self._nodes: List[LayoutNode] = []
        self._leaf_cells: Dict[str, LayoutNode] = {}
        self._sector_cells: Dict[str, LayoutNode] = {}
        self._hovered: Optional[str] = None
        self._last_outcome: Optional[RenderOutcome] = None
        self._retry_task: Optional[asyncio.Task] = None
        self.layout_count = 0

        self._resize_debouncer = Debouncer(self._on_resize_settled, delay_ms=self._options.resize_debounce_ms)

        # One delegated handler per event type, registered once
        self._surface.on(EVENT_CLICK, self._handle_click)
        self._surface.on(EVENT_HOVER, self._handle_hover)
        self._surface.on(EVENT_LEAVE, self._handle_leave)
        self._surface.on(EVENT_RETRY, self._handle_retry)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def surface(self) -> VisualSurface:
        return self._surface

    @property
    def options(self) -> RenderOptions:
        return self._options

    @property
    def items(self) -> List[StockItem]:
        return list(self._items or [])

    @property
    def nodes(self) -> List[LayoutNode]:
        """Layout tree of the last pass."""
        return list(self._nodes)

    @property
    def last_outcome(self) -> Optional[RenderOutcome]:
        return self._last_outcome

    @property
    def painted_count(self) -> int:
        return len(self._leaf_cells)

    @property
    def resize_pending(self) -> bool:
        return self._resize_debouncer.pending

    # -------------------------------------------------------------------------
    # Render
    # -------------------------------------------------------------------------

    async def render(
        self,
        items: Optional[Iterable[RecordLike]] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> RenderOutcome:
        """
        Lay out and paint items.

        Args:
            items: StockItems or raw records; None re-renders the last input
            width, height: Container size; defaults to the last requested
                size, then to the surface's own size

        Returns:
            RenderOutcome (never raises for layout/paint failures)
        """
        self._generation += 1
        generation = self._generation

        with new_render_pass() as render_id:
            try:
                if items is not None:
                    self._items = coerce_items(items)
                if width is not None and height is not None:
                    self._size = (width, height)
                outcome = await self._render(generation, render_id, width, height)
            except Exception as e:
                if generation != self._generation:
                    logger.warning(f"[{render_id}] Superseded render failed: {e}")
                    return RenderOutcome(state=RenderState.CANCELLED, render_id=render_id, error=str(e))
                logger.exception(f"[{render_id}] Heatmap render failed: {e}")
                self._reset_registry()
                self._show_retry()
                outcome = RenderOutcome(state=RenderState.FAILED, render_id=render_id, error=str(e))

        if outcome.state is not RenderState.CANCELLED:
            self._last_outcome = outcome
        return outcome

    def set_items(self, items: Iterable[RecordLike]) -> None:
        """Replace the input without rendering (surface not sized yet)."""
        self._items = coerce_items(items)

    async def rerender(self, width: Optional[float] = None, height: Optional[float] = None) -> RenderOutcome:
        """Re-run the last render (retry, resize, option change)."""
        return await self.render(None, width, height)

    def cancel(self) -> None:
        """Stop the in-flight render at its next batch boundary."""
        self._generation += 1
        self._resize_debouncer.cancel()

    def request_resize(self, width: float, height: float) -> None:
        """Debounced re-layout; a burst of calls produces one render."""
        self._resize_debouncer.trigger(width, height)

    async def wait_for_resize(self) -> None:
        """Wait until a pending debounced resize has rendered."""
        await self._resize_debouncer.flush()

    def _on_resize_settled(self, width: float, height: float):
        logger.debug(f"Resize settled at {width:.0f}x{height:.0f}")
        return self.rerender(width, height)

    async def _render(
        self,
        generation: int,
        render_id: str,
        width: Optional[float],
        height: Optional[float],
    ) -> RenderOutcome:
        opts = self._options
        fallback_w, fallback_h = self._size or self._surface.size
        width = fallback_w if width is None else width
        height = fallback_h if height is None else height

        self._surface.clear()
        self._reset_registry()

        items = [i for i in (self._items or []) if math.isfinite(i.weight) and i.weight > 0]
        if not items:
            logger.info(f"[{render_id}] No data to render, showing placeholder")
            self._surface.show_placeholder(opts.empty_message)
            return RenderOutcome(state=RenderState.EMPTY, render_id=render_id)

        if opts.sort_by_weight:
            # Stable: equal weights keep input order
            items = sorted(items, key=lambda i: -i.weight)

        with log_timing("layout", warn_threshold_ms=50, error_threshold_ms=250, extra={"items": len(items)}) as ctx:
            nodes = self._compute_layout(items, width, height)
            ctx["nodes"] = len(nodes)
        self.layout_count += 1
        self._nodes = nodes

        # Sector containers are few; paint them synchronously before leaves
        sector_count = 0
        for node in nodes:
            if node.is_group:
                self._paint_sector(node, sector_count)
                sector_count += 1

        leaves = list(iter_leaves(nodes))
        placements = [n for n in leaves if n.width >= opts.min_cell_px and n.height >= opts.min_cell_px]
        skipped = len(leaves) - len(placements)

        painted = 0
        batches = 0
        async with log_timing_async("paint", extra={"cells": len(placements)}) as ctx:
            for start in range(0, len(placements), opts.batch_size):
                await self._surface.yield_to_host()
                if generation != self._generation:
                    logger.debug(f"[{render_id}] Render superseded after {batches} batch(es)")
                    return RenderOutcome(
                        state=RenderState.CANCELLED,
                        render_id=render_id,
                        painted_cells=painted,
                        skipped_cells=skipped,
                        sector_count=sector_count,
                        batches=batches,
                    )
                for node in placements[start:start + opts.batch_size]:
                    self._paint_leaf(node, painted)
                    painted += 1
                batches += 1
            ctx["batches"] = batches

        logger.info(
            f"[{render_id}] Painted {painted} cells in {batches} batch(es), "
            f"{sector_count} sectors, {skipped} skipped ({width:.0f}x{height:.0f})"
        )
        return RenderOutcome(
            state=RenderState.PAINTED,
            render_id=render_id,
            painted_cells=painted,
            skipped_cells=skipped,
            sector_count=sector_count,
            batches=batches,
        )

    def _compute_layout(self, items: List[StockItem], width: float, height: float) -> List[LayoutNode]:
        opts = self._options
        if not opts.group_by_sector:
            return layout(items, 0, 0, width, height)

        groups = group_by_sector(items, opts.default_sector)
        if opts.sort_by_weight:
            groups.sort(key=lambda g: -g.total_weight)
        return layout_sectors(groups, 0, 0, width, height, header_height=opts.header_height)

    # -------------------------------------------------------------------------
    # Painting
    # -------------------------------------------------------------------------

    def _paint_sector(self, node: LayoutNode, index: int) -> None:
        group: SectorGroup = node.ref
        spec = CellSpec(
            cell_id=f"sector-{index}",
            kind=CellKind.SECTOR,
            x=node.x,
            y=node.y,
            width=node.width,
            height=node.height,
            color=SECTOR_BACKGROUND,
            css_classes=("treemap-sector",),
            tooltip=f"{group.name}: {len(group.items)} stocks",
            href=self._url(self._options.sector_url_template, sector=group.name, slug=sector_slug(group.name)),
            data={"sector": group.name, "count": len(group.items), "market_cap": group.total_weight},
        )
        cell_id = self._surface.create_rect(spec)
        self._sector_cells[cell_id] = node
        if self._options.show_labels and node.header_height >= MIN_TITLE_HEADER:
            self._surface.create_label(cell_id, group.name, LabelRole.TITLE, SECTOR_TITLE_FONT)

    def _paint_leaf(self, node: LayoutNode, index: int) -> None:
        opts = self._options
        item: StockItem = node.ref
        profile = profile_for_area(node.area, opts.tier_thresholds)
        spec = CellSpec(
            cell_id=f"stock-{index}",
            kind=CellKind.STOCK,
            x=node.x,
            y=node.y,
            width=node.width,
            height=node.height,
            color=opts.color_scale.color_for(item.change_percent),
            css_classes=(
                "treemap-stock",
                opts.color_scale.bucket_for(item.change_percent),
                profile.tier.css_class,
            ),
            tooltip=format_tooltip(item, opts.default_sector),
            href=self._url(opts.detail_url_template, symbol=item.symbol),
            data={
                "symbol": item.symbol,
                "name": item.label,
                "change_percent": item.change_percent,
                "market_cap": item.weight,
                "sector": item.sector or opts.default_sector,
            },
        )
        cell_id = self._surface.create_rect(spec)
        self._leaf_cells[cell_id] = node

        if not (opts.show_labels and profile.has_text):
            return
        if profile.show_name:
            name_font = max(profile.font_size - 2, MIN_NAME_FONT)
            self._surface.create_label(cell_id, item.label, LabelRole.NAME, name_font)
        if profile.show_ticker:
            self._surface.create_label(cell_id, item.symbol, LabelRole.TICKER, profile.font_size)
        if profile.show_change:
            self._surface.create_label(
                cell_id, format_change(item.change_percent), LabelRole.CHANGE, profile.font_size
            )

    def _url(self, template: Optional[str], **values: str) -> Optional[str]:
        if not template:
            return None
        return template.format(**{k: quote(v) for k, v in values.items()})

    def _show_retry(self) -> None:
        try:
            self._surface.show_retry(self._options.error_message)
        except Exception as e:
            logger.exception(f"Surface could not show retry state: {e}")

    def _reset_registry(self) -> None:
        self._nodes = []
        self._leaf_cells = {}
        self._sector_cells = {}
        if self._hovered is not None:
            self._hovered = None
            if self._options.on_cell_hover:
                self._options.on_cell_hover(None)

    # -------------------------------------------------------------------------
    # Interaction
    # -------------------------------------------------------------------------

    def hit_test(self, x: float, y: float) -> Optional[str]:
        """
        Cell id at a container coordinate.

        Leaves win; a sector resolves only inside its header strip.
        """
        for cell_id, node in self._leaf_cells.items():
            if node.contains(x, y):
                return cell_id
        for cell_id, node in self._sector_cells.items():
            if node.contains(x, y) and y < node.y + node.header_height:
                return cell_id
        return None

    def node_for(self, cell_id: str) -> Optional[LayoutNode]:
        node = self._leaf_cells.get(cell_id)
        if node is None:
            node = self._sector_cells.get(cell_id)
        return node

    def _resolve(self, event: SurfaceEvent) -> Optional[Tuple[str, LayoutNode]]:
        cell_id = event.target_id
        if cell_id is None and event.x is not None and event.y is not None:
            cell_id = self.hit_test(event.x, event.y)
        if cell_id is None:
            return None
        node = self.node_for(cell_id)
        if node is None:
            return None
        return cell_id, node

    def _handle_click(self, event: SurfaceEvent) -> None:
        target = self._resolve(event)
        if target is None:
            return
        cell_id, node = target
        if node.is_group:
            logger.debug(f"Sector click: {node.ref.name}")
            if self._options.on_sector_click:
                self._options.on_sector_click(node.ref)
        else:
            logger.debug(f"Cell click: {node.ref.symbol}")
            if self._options.on_cell_click:
                self._options.on_cell_click(node.ref)

    def _handle_hover(self, event: SurfaceEvent) -> None:
        target = self._resolve(event)
        cell_id = target[0] if target is not None and not target[1].is_group else None
        if cell_id == self._hovered:
            return
        self._hovered = cell_id
        if self._options.on_cell_hover:
            self._options.on_cell_hover(self._leaf_cells[cell_id].ref if cell_id else None)

    def _handle_leave(self, event: SurfaceEvent) -> None:
        if self._hovered is None:
            return
        self._hovered = None
        if self._options.on_cell_hover:
            self._options.on_cell_hover(None)

    def _handle_retry(self, event: SurfaceEvent) -> None:
        logger.info("Retry requested, re-rendering last input")
        self._retry_task = asyncio.get_running_loop().create_task(self.rerender())

    async def wait_for_retry(self) -> Optional[RenderOutcome]:
        """Await the render started by the last retry event, if any."""
        if self._retry_task is None:
            return None
        return await self._retry_task
