"""
Field alias resolution for upstream stock records.

Upstream payloads (database rows, cached API responses, partner feeds) use
different names for the same field. Resolution happens once, here, at
ingestion; nothing downstream looks at raw records.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ...models.heatmap import StockItem
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)

# Canonical field -> accepted aliases, in priority order
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "symbol": ("symbol", "ticker", "code"),
    "name": ("name", "name_zh", "companyName", "company_name"),
    "change_percent": ("changePercent", "change_percent", "pct_change", "avgChange"),
    "market_cap": ("marketCap", "market_cap", "totalMarketCap", "mcap", "cap"),
    "volume": ("volume", "totalVolume", "vol"),
    "price": ("price", "currentPrice", "last_price"),
    "sector": ("sector", "sector_zh", "industry", "industry_zh"),
}


def resolve_field(record: Mapping[str, Any], field: str) -> Any:
    """
    First non-null value among the aliases of `field`.

    Unknown canonical names are looked up verbatim.
    """
    for key in FIELD_ALIASES.get(field, (field,)):
        value = record.get(key)
        if value is not None:
            return value
    return None


def coerce_float(value: Any, default: float = 0.0) -> float:
    """
    Coerce a numeric-ish value to a finite float.

    Strings are parsed ("1,234.5" and "2.3%" included); None, NaN,
    infinities, booleans and garbage all become `default`.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "").rstrip("%")
        if not value:
            return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    result = coerce_float(value, default=math.nan)
    return None if math.isnan(result) else result


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def normalize_record(record: Any) -> Optional[StockItem]:
    """
    Convert one raw record to a StockItem.

    Returns:
        StockItem, or None if the record is not a mapping or has no symbol
    """
    if not isinstance(record, Mapping):
        return None

    symbol = _clean_text(resolve_field(record, "symbol"))
    if not symbol:
        return None

    weight = coerce_float(resolve_field(record, "market_cap"))
    if weight < 0:
        weight = 0.0

    return StockItem(
        symbol=symbol,
        label=_clean_text(resolve_field(record, "name")) or symbol,
        weight=weight,
        change_percent=coerce_float(resolve_field(record, "change_percent")),
        sector=_clean_text(resolve_field(record, "sector")),
        volume=_optional_float(resolve_field(record, "volume")),
        price=_optional_float(resolve_field(record, "price")),
    )


def normalize_records(records: Iterable[Any]) -> List[StockItem]:
    """
    Normalize a batch of raw records, skipping unusable ones.

    A malformed record is logged and dropped; it never aborts the batch.
    """
    items: List[StockItem] = []
    skipped = 0
    for index, record in enumerate(records):
        item = normalize_record(record)
        if item is None:
            skipped += 1
            logger.warning(f"Skipping record #{index}: not a mapping or missing symbol")
            continue
        items.append(item)

    if skipped:
        logger.info(f"Normalized {len(items)} records ({skipped} skipped)")
    return items
