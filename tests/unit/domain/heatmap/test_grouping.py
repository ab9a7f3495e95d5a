"""Tests for sector grouping and market statistics."""

import pytest

from stockmap.domain.heatmap.grouping import (
    compute_market_stats,
    compute_sector_stats,
    filter_sector,
    find_sector_stats,
    group_by_sector,
    sector_slug,
)
from stockmap.models.heatmap import StockItem


class TestGroupBySector:
    def test_first_seen_order(self, sample_items):
        groups = group_by_sector(list(reversed(sample_items)))
        assert [g.name for g in groups] == ["Financials", "Technology"]

    def test_missing_sector_uses_default(self):
        items = [StockItem("A", "A", 1.0, 0.0), StockItem("B", "B", 2.0, 0.0, "Energy")]
        groups = group_by_sector(items, default_sector="Unclassified")
        assert [g.name for g in groups] == ["Unclassified", "Energy"]

    def test_total_weight(self, sample_items):
        tech = group_by_sector(sample_items)[0]
        assert tech.total_weight == pytest.approx(7000.0)
        assert len(tech.items) == 3

    def test_filter_sector(self, sample_items):
        assert [i.symbol for i in filter_sector(sample_items, "Financials")] == ["JPM", "BAC"]
        assert filter_sector(sample_items, "Utilities") == []

    @pytest.mark.parametrize(
        "name,slug",
        [
            ("Technology", "technology"),
            ("Communication Services", "communication_services"),
            ("S&P Financials", "s_p_financials"),
        ],
    )
    def test_sector_slug(self, name, slug):
        assert sector_slug(name) == slug


class TestMarketStats:
    def test_counts_and_averages(self, sample_items):
        stats = compute_market_stats(sample_items)
        assert stats.total == 5
        assert stats.advancers == 2
        assert stats.decliners == 2
        assert stats.unchanged == 1
        assert stats.avg_change_pct == pytest.approx(round((1.23 - 0.42 + 3.4 - 2.1 + 0.0) / 5, 2))
        assert stats.total_market_cap == pytest.approx(7700.0)

    def test_cap_weighted_change(self):
        items = [StockItem("A", "A", 300.0, 1.0), StockItem("B", "B", 100.0, -1.0)]
        assert compute_market_stats(items).weighted_change_pct == pytest.approx(0.5)

    def test_empty(self):
        stats = compute_market_stats([])
        assert stats.total == 0
        assert stats.to_dict()["avg_change_pct"] == 0.0


class TestSectorStats:
    def test_largest_sector_first(self, sample_items):
        stats = compute_sector_stats(sample_items)
        assert [s.sector for s in stats] == ["Technology", "Financials"]

        financials = find_sector_stats(stats, "Financials")
        assert financials.count == 2
        assert financials.decliners == 1
        assert financials.total_market_cap == pytest.approx(700.0)
        assert financials.weighted_change_pct == pytest.approx(round(450 * -2.1 / 700, 2))

    def test_volume_treats_missing_as_zero(self, sample_items):
        tech = find_sector_stats(compute_sector_stats(sample_items), "Technology")
        assert tech.total_volume == pytest.approx(54_000_000)

    def test_unknown_sector(self, sample_items):
        assert find_sector_stats(compute_sector_stats(sample_items), "Energy") is None

    def test_empty(self):
        assert compute_sector_stats([]) == []
