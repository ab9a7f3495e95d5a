"""Tests for upstream field alias resolution."""

import math

import pytest

from stockmap.domain.heatmap.aliases import coerce_float, normalize_record, normalize_records, resolve_field


class TestResolveField:
    def test_first_alias_wins(self):
        record = {"symbol": "AAPL", "ticker": "IGNORED"}
        assert resolve_field(record, "symbol") == "AAPL"

    def test_null_alias_is_skipped(self):
        record = {"marketCap": None, "market_cap": 12.5}
        assert resolve_field(record, "market_cap") == 12.5

    def test_missing(self):
        assert resolve_field({}, "price") is None

    def test_unknown_field_looked_up_verbatim(self):
        assert resolve_field({"exchange": "NASDAQ"}, "exchange") == "NASDAQ"


class TestCoerceFloat:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (1.5, 1.5),
            (3, 3.0),
            ("2.25", 2.25),
            ("-0.44%", -0.44),
            ("1,234.5", 1234.5),
            (" 7 ", 7.0),
        ],
    )
    def test_parses(self, value, expected):
        assert coerce_float(value) == expected

    @pytest.mark.parametrize("value", [None, "", "n/a", math.nan, math.inf, True, [1]])
    def test_falls_back_to_default(self, value):
        assert coerce_float(value) == 0.0
        assert coerce_float(value, default=-1.0) == -1.0


class TestNormalizeRecord:
    def test_full_record(self):
        item = normalize_record(
            {
                "ticker": " NVDA ",
                "companyName": "NVIDIA Corp.",
                "industry": "Technology",
                "totalMarketCap": "1,210,000",
                "changePercent": "3.41%",
                "totalVolume": 43_120_000,
                "currentPrice": "495.22",
            }
        )
        assert item.symbol == "NVDA"
        assert item.label == "NVIDIA Corp."
        assert item.sector == "Technology"
        assert item.weight == 1_210_000
        assert item.change_percent == 3.41
        assert item.volume == 43_120_000
        assert item.price == 495.22

    def test_defaults(self):
        item = normalize_record({"code": "XYZ"})
        assert item.label == "XYZ"
        assert item.weight == 0.0
        assert item.change_percent == 0.0
        assert item.sector is None
        assert item.volume is None and item.price is None

    def test_negative_cap_clamped(self):
        assert normalize_record({"symbol": "X", "market_cap": -50}).weight == 0.0

    def test_blank_sector_is_none(self):
        assert normalize_record({"symbol": "X", "sector": "  "}).sector is None

    @pytest.mark.parametrize("record", [None, "AAPL", 42, {}, {"symbol": ""}, {"name": "No Symbol"}])
    def test_rejected(self, record):
        assert normalize_record(record) is None

    def test_normalize_records_skips_invalid(self, sample_records):
        items = normalize_records(sample_records + [{"name": "orphan"}, "garbage"])
        assert [i.symbol for i in items] == ["AAPL", "XOM", "JNJ"]
        assert items[1].change_percent == -0.44
        assert items[2].sector == "Health Care"
