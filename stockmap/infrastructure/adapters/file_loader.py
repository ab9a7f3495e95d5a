"""
File loader for stock snapshot files.

Reads the upstream API payload saved to disk (or any export with the same
fields) and normalizes it into StockItems through the alias table.

Supported formats:
- .json: array of records, or the API envelope {"data": [...]}
- .csv: one record per row (pandas)
- .yaml/.yml: list of records, or a mapping with "data" / "stocks"
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd
import yaml

from ...domain.heatmap.aliases import normalize_records
from ...domain.heatmap.errors import DataFileError
from ...models.heatmap import StockItem
from ...utils.logging_setup import get_logger
from ...utils.perf_logger import log_timing

logger = get_logger(__name__)

SUPPORTED_SUFFIXES = (".json", ".csv", ".yaml", ".yml")
ENVELOPE_KEYS = ("data", "stocks")


class StockFileLoader:
    """
    Stock snapshot file loader.

    Supports hot-reload: fetch() re-reads the file when the reload
    interval has elapsed or the file's mtime changed.
    """

    def __init__(self, file_path: str | Path, reload_interval_sec: int = 300):
        """
        Initialize file loader.

        Args:
            file_path: Path to the data file.
            reload_interval_sec: Auto-reload interval in seconds.
        """
        self.file_path = Path(file_path)
        self.reload_interval_sec = reload_interval_sec
        self._items: List[StockItem] = []
        self._last_loaded: Optional[float] = None
        self._last_mtime: Optional[float] = None

        suffix = self.file_path.suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise DataFileError(f"Unsupported data file type '{suffix}' (expected one of {SUPPORTED_SUFFIXES})")
        self._suffix = suffix

    @property
    def items(self) -> List[StockItem]:
        return list(self._items)

    def load(self) -> List[StockItem]:
        """
        Read and normalize the file.

        Returns:
            StockItems in file order (invalid records skipped).

        Raises:
            FileNotFoundError: If the file does not exist.
            DataFileError: If the file is malformed.
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Data file not found: {self.file_path}")

        with log_timing("data_file_load", extra={"file": str(self.file_path)}) as ctx:
            records = self._read_records()
            items = normalize_records(records)
            ctx["records"] = len(records)
            ctx["items"] = len(items)

        self._items = items
        self._last_loaded = time.monotonic()
        self._last_mtime = self._mtime()
        logger.info(f"Loaded {len(items)} stocks from {self.file_path} ({len(records)} records)")
        return list(items)

    async def fetch(self) -> List[StockItem]:
        """Return items, reloading first if due."""
        if self._should_reload():
            self.load()
        return list(self._items)

    def has_changed(self) -> bool:
        """True if the file's mtime differs from the last load."""
        if self._last_mtime is None:
            return True
        return self._mtime() != self._last_mtime

    def _should_reload(self) -> bool:
        """Check if file should be reloaded based on interval or mtime."""
        if self._last_loaded is None:
            return True
        elapsed = time.monotonic() - self._last_loaded
        return elapsed >= self.reload_interval_sec or self.has_changed()

    def _mtime(self) -> Optional[float]:
        try:
            return self.file_path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _read_records(self) -> List[Any]:
        try:
            if self._suffix == ".csv":
                frame = pd.read_csv(self.file_path)
                # NaN cells become None so the alias table treats them as missing
                frame = frame.astype(object).where(frame.notna(), None)
                return frame.to_dict("records")

            with open(self.file_path, "r", encoding="utf-8") as f:
                if self._suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except json.JSONDecodeError as e:
            raise DataFileError(f"Invalid JSON in {self.file_path}: {e}") from e
        except yaml.YAMLError as e:
            raise DataFileError(f"Invalid YAML in {self.file_path}: {e}") from e
        except pd.errors.EmptyDataError:
            return []
        except pd.errors.ParserError as e:
            raise DataFileError(f"Invalid CSV in {self.file_path}: {e}") from e

        return self._unwrap(data)

    def _unwrap(self, data: Any) -> List[Any]:
        if data is None:
            return []
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ENVELOPE_KEYS:
                if key in data:
                    payload = data[key]
                    if payload is None:
                        return []
                    if not isinstance(payload, list):
                        raise DataFileError(f"'{key}' in {self.file_path} must be a list")
                    return payload
        raise DataFileError(
            f"{self.file_path} must contain a list of records or a {{'data': [...]}} envelope"
        )
