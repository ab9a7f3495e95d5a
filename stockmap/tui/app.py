"""
Stockmap Dashboard - Textual terminal heatmap.

Layout:
- Stats header (market breadth, average and cap-weighted change)
- Heatmap panel (sector-grouped treemap, or one sector in drill-down)
- Footer with key bindings

Data comes from a StockFileLoader and reloads every
dashboard.refresh_interval_sec.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.reactive import reactive
from textual.widgets import Footer, Static

from ..domain.heatmap.errors import DataFileError
from ..domain.heatmap.grouping import compute_market_stats, filter_sector
from ..infrastructure.adapters.file_loader import StockFileLoader
from ..infrastructure.reporting.heatmap.renderer import RenderOptions
from ..models.heatmap import StockItem
from ..utils.logging_setup import get_logger
from .formatters import format_stats_line
from .widgets.heatmap_panel import HeatmapPanel

if TYPE_CHECKING:
    from config.models import AppConfig

logger = get_logger(__name__)


class HeatmapApp(App):
    """Terminal market heatmap."""

    CSS = """
    #stats {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    #heatmap {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("g", "toggle_grouping", "Group", show=True),
        Binding("r", "reload", "Reload", show=True),
        Binding("escape", "market_view", "Market", show=True),
        Binding("q", "quit", "Quit", show=True),
    ]

    # Sector drill-down (None = whole market)
    sector: reactive[Optional[str]] = reactive(None, init=False)

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        loader: Optional[StockFileLoader] = None,
        items: Optional[List[StockItem]] = None,
        preset: Optional[str] = None,
        sector: Optional[str] = None,
        **kwargs,
    ):
        """
        Initialize the dashboard.

        Args:
            config: Application config (render options, refresh interval).
            loader: Data file loader; enables reload and auto-refresh.
            items: Initial items when no loader is given.
            preset: View preset name (defaults to dashboard.default_preset).
            sector: Start in the drill-down view of this sector.
        """
        super().__init__(**kwargs)
        self.config = config
        self.loader = loader
        self._items: List[StockItem] = list(items or [])
        self._preset = preset
        self._initial_sector = sector
        self._refresh_timer = None
        self._grouped: Optional[bool] = None  # Market view grouping toggled with "g"
        if config is not None:
            self.title = config.dashboard.title

    def compose(self) -> ComposeResult:
        """Compose the dashboard layout."""
        yield Static("", id="stats")
        yield HeatmapPanel(options=self._build_options(), id="heatmap")
        yield Footer()

    def _build_options(self) -> RenderOptions:
        if self.config is None:
            return RenderOptions()
        return RenderOptions.from_config(self.config, self._preset)

    @property
    def panel(self) -> HeatmapPanel:
        return self.query_one("#heatmap", HeatmapPanel)

    @property
    def items(self) -> List[StockItem]:
        return list(self._items)

    def on_mount(self) -> None:
        """Load data and schedule auto-reload."""
        if self.loader is not None:
            self._load()
            interval = self.config.dashboard.refresh_interval_sec if self.config else 0
            if interval > 0:
                self._refresh_timer = self.set_interval(interval, self._auto_reload)
        if self._initial_sector:
            self.sector = self._initial_sector  # watch_sector shows the view
        else:
            self._show()

    def on_unmount(self) -> None:
        """Clean up timer on unmount."""
        if self._refresh_timer:
            self._refresh_timer.stop()

    def _load(self) -> bool:
        """Reload items from the loader. Keeps the previous items on failure."""
        try:
            self._items = self.loader.load()
            return True
        except (FileNotFoundError, DataFileError) as e:
            logger.error(f"Failed to load stock data: {e}")
            self.notify(str(e), title="Data load failed", severity="error")
            return False

    def _auto_reload(self) -> None:
        if self.loader is not None and self.loader.has_changed() and self._load():
            logger.info("Data file changed, refreshing heatmap")
            self._show()

    def _show(self) -> None:
        """Push the current view (market or sector) to the panel and header."""
        panel = self.panel
        if self.sector:
            visible = filter_sector(self._items, self.sector, panel.renderer.options.default_sector)
            panel.show_items(visible, group_by_sector=False)
            grouped = False
        else:
            grouped = self._market_grouping()
            panel.show_items(self._items, group_by_sector=grouped)
            visible = self._items
        self.query_one("#stats", Static).update(
            format_stats_line(compute_market_stats(visible), sector=self.sector, grouped=grouped)
        )

    def _market_grouping(self) -> bool:
        if self._grouped is not None:
            return self._grouped
        return self.config.layout.group_by_sector if self.config else True

    def watch_sector(self, sector: Optional[str]) -> None:
        self._show()

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def action_toggle_grouping(self) -> None:
        """Toggle sector grouping in the market view."""
        if self.sector:
            return
        self._grouped = not self._market_grouping()
        self._show()

    def action_reload(self) -> None:
        """Reload the data file now."""
        if self.loader is None:
            self.notify("No data file configured", severity="warning")
            return
        if self._load():
            self.notify(f"Loaded {len(self._items)} stocks")
            self._show()

    def action_market_view(self) -> None:
        """Leave the sector drill-down."""
        self.sector = None

    # -------------------------------------------------------------------------
    # Panel messages
    # -------------------------------------------------------------------------

    def on_heatmap_panel_sector_selected(self, message: HeatmapPanel.SectorSelected) -> None:
        self.sector = message.group.name

    def on_heatmap_panel_stock_selected(self, message: HeatmapPanel.StockSelected) -> None:
        item = message.item
        options = self.panel.renderer.options
        detail = options.detail_url_template.format(symbol=item.symbol) if options.detail_url_template else ""
        self.notify(f"{item.label} {detail}".strip(), title=item.symbol)
