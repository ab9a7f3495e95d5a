"""
Heatmap panel widget.

TerminalSurface paints treemap cells onto a character grid; each terminal
cell stands for CELL_WIDTH x CELL_HEIGHT pixels so the renderer's pixel
thresholds (min cell size, detail tiers) carry over unchanged.

HeatmapPanel hosts the surface and a HeatmapRenderer:
- mouse events are forwarded to the surface's delegated handlers
- resize events go through the renderer's debounced re-layout
- clicks/hover come back as Textual messages
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget
from textual.worker import Worker, WorkerState

from ...domain.heatmap.color_scale import hex_to_rgb
from ...infrastructure.reporting.heatmap.formatters import format_tooltip
from ...infrastructure.reporting.heatmap.renderer import (
    HeatmapRenderer,
    RecordLike,
    RenderOptions,
    RenderOutcome,
)
from ...infrastructure.reporting.heatmap.surface import (
    EVENT_CLICK,
    EVENT_HOVER,
    EVENT_LEAVE,
    EVENT_RETRY,
    CellKind,
    CellSpec,
    Label,
    LabelRole,
    VisualSurface,
)
from ...models.heatmap import SectorGroup, StockItem

CELL_WIDTH = 8
CELL_HEIGHT = 16

# Terminal line order inside a stock cell, most important first
_LEAF_LINE_ORDER = (LabelRole.TICKER, LabelRole.CHANGE, LabelRole.NAME)


def _text_color(background: str) -> str:
    r, g, b = hex_to_rgb(background)
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return "#000000" if luminance > 0.6 else "#ffffff"


class TerminalSurface(VisualSurface):
    """VisualSurface backed by a character grid."""

    def __init__(self, columns: int = 0, rows: int = 0) -> None:
        super().__init__()
        self.columns = columns
        self.rows = rows
        self._cells: List[CellSpec] = []
        self._labels: Dict[str, List[Label]] = {}
        self.placeholder: Optional[str] = None
        self.retry_message: Optional[str] = None
        self.version = 0  # Bumped on every change; the panel repaints when it moves

    @property
    def size(self) -> Tuple[float, float]:
        return float(self.columns * CELL_WIDTH), float(self.rows * CELL_HEIGHT)

    @property
    def is_sized(self) -> bool:
        return self.columns > 0 and self.rows > 0

    def set_grid(self, columns: int, rows: int) -> None:
        self.columns = max(0, columns)
        self.rows = max(0, rows)
        self.version += 1

    def clear(self) -> None:
        self._cells = []
        self._labels = {}
        self.placeholder = None
        self.retry_message = None
        self.version += 1

    def create_rect(self, spec: CellSpec) -> str:
        self._cells.append(spec)
        self.version += 1
        return spec.cell_id

    def create_label(self, cell_id: str, text: str, role: LabelRole, font_size: int) -> None:
        self._labels.setdefault(cell_id, []).append(Label(role=role, text=text, font_size=font_size))
        self.version += 1

    def show_placeholder(self, message: str) -> None:
        self.placeholder = message
        self.version += 1

    def show_retry(self, message: str) -> None:
        self.retry_message = message
        self.version += 1

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    @staticmethod
    def to_pixels(column: int, row: int) -> Tuple[float, float]:
        """Center of a terminal cell in surface pixels."""
        return column * CELL_WIDTH + CELL_WIDTH / 2, row * CELL_HEIGHT + CELL_HEIGHT / 2

    # -------------------------------------------------------------------------
    # Rasterization
    # -------------------------------------------------------------------------

    def render_lines(self) -> List[Text]:
        """Rasterize cells into one rich Text per terminal row."""
        if not self.is_sized:
            return []

        chars = [[" "] * self.columns for _ in range(self.rows)]
        styles = [[""] * self.columns for _ in range(self.rows)]

        for cell in self._cells:
            c0, r0, c1, r1 = self._cell_bounds(cell)
            if c1 <= c0 or r1 <= r0:
                continue
            background = f"on {cell.color}"
            for row in range(r0, r1):
                for col in range(c0, c1):
                    chars[row][col] = " "
                    styles[row][col] = background
            self._write_labels(cell, (c0, r0, c1, r1), chars, styles)

        message = self.retry_message or self.placeholder
        if message:
            if self.retry_message:
                message = f"{message} [click to retry]"
            self._write_centered(message, chars, styles)

        lines: List[Text] = []
        for row in range(self.rows):
            line = Text()
            start = 0
            for col in range(1, self.columns + 1):
                if col == self.columns or styles[row][col] != styles[row][start]:
                    line.append("".join(chars[row][start:col]), style=styles[row][start] or None)
                    start = col
            lines.append(line)
        return lines

    def _cell_bounds(self, cell: CellSpec) -> Tuple[int, int, int, int]:
        # Shared pixel edges round to the same column/row, so cells never overlap
        c0 = min(self.columns, round(cell.x / CELL_WIDTH))
        c1 = min(self.columns, round((cell.x + cell.width) / CELL_WIDTH))
        r0 = min(self.rows, round(cell.y / CELL_HEIGHT))
        r1 = min(self.rows, round((cell.y + cell.height) / CELL_HEIGHT))
        return c0, r0, c1, r1

    def _write_labels(
        self,
        cell: CellSpec,
        bounds: Tuple[int, int, int, int],
        chars: List[List[str]],
        styles: List[List[str]],
    ) -> None:
        c0, r0, c1, r1 = bounds
        labels = self._labels.get(cell.cell_id, [])
        if not labels:
            return

        width = c1 - c0
        foreground = _text_color(cell.color)
        if cell.kind is CellKind.SECTOR:
            title = next((lbl.text for lbl in labels if lbl.role is LabelRole.TITLE), None)
            if title:
                self._put(chars, styles, r0, c0, title[:width], f"bold {foreground} on {cell.color}")
            return

        by_role = {lbl.role: lbl.text for lbl in labels}
        lines = [by_role[role] for role in _LEAF_LINE_ORDER if role in by_role]
        lines = [text for text in lines if len(text) <= width][: r1 - r0]
        top = r0 + max(0, (r1 - r0 - len(lines)) // 2)
        for offset, text in enumerate(lines):
            col = c0 + (width - len(text)) // 2
            style = f"{'bold ' if offset == 0 else ''}{foreground} on {cell.color}"
            self._put(chars, styles, top + offset, col, text, style)

    def _write_centered(self, message: str, chars: List[List[str]], styles: List[List[str]]) -> None:
        text = message[: self.columns]
        row = self.rows // 2
        col = max(0, (self.columns - len(text)) // 2)
        self._put(chars, styles, row, col, text, "bold")

    @staticmethod
    def _put(chars: List[List[str]], styles: List[List[str]], row: int, col: int, text: str, style: str) -> None:
        for i, ch in enumerate(text):
            if col + i < len(chars[row]):
                chars[row][col + i] = ch
                styles[row][col + i] = style


class HeatmapPanel(Widget):
    """Treemap heatmap rendered in the terminal."""

    DEFAULT_CSS = """
    HeatmapPanel {
        height: 1fr;
        width: 1fr;
    }
    """

    class StockSelected(Message):
        """A stock cell was clicked."""

        def __init__(self, item: StockItem) -> None:
            self.item = item
            super().__init__()

    class SectorSelected(Message):
        """A sector header was clicked."""

        def __init__(self, group: SectorGroup) -> None:
            self.group = group
            super().__init__()

    class StockHovered(Message):
        """Hover moved onto a stock (item) or off all stocks (None)."""

        def __init__(self, item: Optional[StockItem]) -> None:
            self.item = item
            super().__init__()

    class Rendered(Message):
        """A render pass finished (any state)."""

        def __init__(self, outcome: RenderOutcome) -> None:
            self.outcome = outcome
            super().__init__()

    def __init__(self, options: Optional[RenderOptions] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        # Private copy: callbacks and grouping changes stay on this panel
        options = replace(
            options or RenderOptions(),
            on_cell_click=self._on_cell_click,
            on_cell_hover=self._on_cell_hover,
            on_sector_click=self._on_sector_click,
        )
        self._surface = TerminalSurface()
        self._renderer = HeatmapRenderer(self._surface, options)
        self._render_worker: Optional[Worker] = None
        self._drawn_version = -1
        self._sync_timer = None

    @property
    def surface(self) -> TerminalSurface:
        return self._surface

    @property
    def renderer(self) -> HeatmapRenderer:
        return self._renderer

    @property
    def group_by_sector(self) -> bool:
        return self._renderer.options.group_by_sector

    def on_mount(self) -> None:
        """Repaint when the surface changes (batched paints, debounced resizes)."""
        self._sync_timer = self.set_interval(0.1, self._sync_surface)

    def on_unmount(self) -> None:
        """Clean up timer and pending work on unmount."""
        if self._sync_timer:
            self._sync_timer.stop()
        self._renderer.cancel()

    def render(self) -> Text:
        self._drawn_version = self._surface.version
        return Text("\n").join(self._surface.render_lines())

    def _sync_surface(self) -> None:
        if self._surface.version != self._drawn_version:
            self.refresh()

    # -------------------------------------------------------------------------
    # Data
    # -------------------------------------------------------------------------

    def show_items(self, items: Iterable[RecordLike], group_by_sector: Optional[bool] = None) -> None:
        """Render new data (deferred until the panel has a size)."""
        if group_by_sector is not None:
            self._renderer.options.group_by_sector = group_by_sector
        if self._surface.is_sized:
            self._start_render(items)
        else:
            self._renderer.set_items(items)

    def set_grouping(self, group_by_sector: bool) -> None:
        self._renderer.options.group_by_sector = group_by_sector
        if self._surface.is_sized:
            self._start_render(None)

    def _start_render(self, items: Optional[Iterable[RecordLike]]) -> None:
        self._render_worker = self.run_worker(self._render(items), group="heatmap-render")

    async def _render(self, items: Optional[Iterable[RecordLike]]) -> RenderOutcome:
        outcome = await self._renderer.render(items, *self._surface.size)
        self.refresh()
        self.post_message(self.Rendered(outcome))
        return outcome

    async def wait_idle(self) -> None:
        """Wait for pending debounced resizes and the running render."""
        await self._renderer.wait_for_resize()
        worker = self._render_worker
        if worker is not None:
            if worker.state is WorkerState.PENDING:
                # Not started yet; wait() refuses pending workers
                await asyncio.sleep(0)
            await worker.wait()
        await self._renderer.wait_for_retry()

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on_resize(self, event: events.Resize) -> None:
        was_sized = self._surface.is_sized
        self._surface.set_grid(event.size.width, event.size.height)
        if not self._surface.is_sized:
            return
        if was_sized:
            self._renderer.request_resize(*self._surface.size)
        else:
            # First real size: paint immediately
            self._start_render(None)

    def on_click(self, event: events.Click) -> None:
        if self._surface.retry_message:
            self._surface.dispatch(EVENT_RETRY)
            return
        x, y = TerminalSurface.to_pixels(event.x, event.y)
        self._surface.dispatch(EVENT_CLICK, x=x, y=y)

    def on_mouse_move(self, event: events.MouseMove) -> None:
        x, y = TerminalSurface.to_pixels(event.x, event.y)
        self._surface.dispatch(EVENT_HOVER, x=x, y=y)

    def on_leave(self, event: events.Leave) -> None:
        self._surface.dispatch(EVENT_LEAVE)

    # Renderer callbacks -> Textual messages

    def _on_cell_click(self, item: StockItem) -> None:
        self.post_message(self.StockSelected(item))

    def _on_sector_click(self, group: SectorGroup) -> None:
        self.post_message(self.SectorSelected(group))

    def _on_cell_hover(self, item: Optional[StockItem]) -> None:
        self.tooltip = format_tooltip(item, self._renderer.options.default_sector) if item else None
        self.post_message(self.StockHovered(item))
