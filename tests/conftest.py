"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import List

import pytest

from config.config_manager import ConfigManager
from config.models import AppConfig
from stockmap.infrastructure.reporting.heatmap.renderer import RenderOptions
from stockmap.infrastructure.reporting.heatmap.surface import InMemorySurface
from stockmap.models.heatmap import StockItem

PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def sample_items() -> List[StockItem]:
    """Small two-sector universe fixture."""
    return [
        StockItem("AAPL", "Apple Inc.", 3000.0, 1.23, "Technology", volume=54_000_000, price=189.71),
        StockItem("MSFT", "Microsoft Corp.", 2800.0, -0.42, "Technology"),
        StockItem("NVDA", "NVIDIA Corp.", 1200.0, 3.4, "Technology"),
        StockItem("JPM", "JPMorgan Chase", 450.0, -2.1, "Financials"),
        StockItem("BAC", "Bank of America", 250.0, 0.0, "Financials"),
    ]


@pytest.fixture
def sample_records() -> List[dict]:
    """Raw upstream records using mixed field aliases."""
    return [
        {"ticker": "AAPL", "name": "Apple Inc.", "sector": "Technology", "marketCap": 3000, "changePercent": 1.23},
        {"symbol": "XOM", "companyName": "Exxon Mobil", "industry": "Energy", "market_cap": "420", "pct_change": "-0.44%"},
        {"code": "JNJ", "name_zh": "Johnson & Johnson", "sector_zh": "Health Care", "totalMarketCap": 380, "avgChange": 0.29},
    ]


@pytest.fixture
def large_universe() -> List[StockItem]:
    """437 stocks across 11 sectors with a long-tailed cap distribution."""
    sectors = [f"Sector {i}" for i in range(11)]
    return [
        StockItem(
            symbol=f"S{i:03d}",
            label=f"Stock {i}",
            weight=10_000.0 / (i + 1),
            change_percent=((i * 37) % 81 - 40) / 10.0,
            sector=sectors[i % len(sectors)],
        )
        for i in range(437)
    ]


@pytest.fixture
def surface() -> InMemorySurface:
    """Desktop-sized headless surface."""
    return InMemorySurface(1200, 800)


@pytest.fixture
def render_options() -> RenderOptions:
    """Render options with a short resize debounce for fast tests."""
    return RenderOptions(resize_debounce_ms=20)


@pytest.fixture
def sample_data_file() -> Path:
    """Bundled sample snapshot (43 stocks, 11 sectors)."""
    return PROJECT_ROOT / "examples" / "sample_stocks.json"


@pytest.fixture
def app_config() -> AppConfig:
    """AppConfig parsed from the shipped config/base.yaml."""
    return ConfigManager(config_dir=PROJECT_ROOT / "config", env="none").load()
