"""
Configuration manager with environment-based loading.

Supports:
- Base configuration (base.yaml)
- Environment-specific overrides (dev.yaml, prod.yaml)
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Any
import math
import yaml
import logging

from .models import (
    AppConfig,
    LayoutConfig,
    RenderConfig,
    ColorConfig,
    DetailTierConfig,
    DashboardConfig,
    LoggingConfig,
)


logger = logging.getLogger(__name__)

VALID_SCHEMES = ("default", "blue_red", "green_red")
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigManager:
    """
    Configuration manager with environment support.

    Loads configuration in this order:
    1. base.yaml (default config)
    2. {env}.yaml (environment-specific, e.g., dev.yaml)

    Later configs override earlier ones.
    """

    def __init__(self, config_dir: str | Path = "config", env: str = "dev"):
        """
        Initialize config manager.

        Args:
            config_dir: Directory containing config files.
            env: Environment name (dev, prod, etc).
        """
        self.config_dir = Path(config_dir)
        self.env = env
        self.config: Dict[str, Any] = {}

    def load(self) -> AppConfig:
        """
        Load configuration from YAML files.

        Returns:
            AppConfig object.

        Raises:
            FileNotFoundError: If base config not found.
            ValueError: If config is invalid.
        """
        base_path = self.config_dir / "base.yaml"
        if not base_path.exists():
            raise FileNotFoundError(f"Base config not found: {base_path}")

        self.config = self._load_yaml(base_path)
        logger.info(f"Loaded base config from {base_path}")

        # Load environment-specific config (optional)
        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self.config = self._merge_dicts(self.config, env_config)
            logger.info(f"Loaded {self.env} config from {env_path}")

        return self._parse_config()

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load YAML file."""
        with open(path, "r") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
        return data

    def _merge_dicts(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def _parse_config(self) -> AppConfig:
        """Parse raw dict into AppConfig."""
        try:
            layout_raw = self.config.get("layout", {})
            layout = LayoutConfig(
                header_height=float(layout_raw.get("header_height", 30.0)),
                sort_by_weight=bool(layout_raw.get("sort_by_weight", True)),
                group_by_sector=bool(layout_raw.get("group_by_sector", True)),
                default_sector=str(layout_raw.get("default_sector", "Other")),
            )

            render_raw = self.config.get("render", {})
            render = RenderConfig(
                batch_size=int(render_raw.get("batch_size", 50)),
                min_cell_px=float(render_raw.get("min_cell_px", 4.0)),
                resize_debounce_ms=float(render_raw.get("resize_debounce_ms", 250.0)),
                show_labels=bool(render_raw.get("show_labels", True)),
                empty_message=render_raw.get(
                    "empty_message",
                    "No data available. The backend may be refreshing, please try again shortly.",
                ),
                error_message=render_raw.get("error_message", "Heatmap failed to render."),
                detail_url_template=render_raw.get("detail_url_template", "/?page=stock&symbol={symbol}"),
                sector_url_template=render_raw.get("sector_url_template", "heatmap_{slug}.html"),
            )

            color_raw = self.config.get("color", {})
            color = ColorConfig(
                scheme=color_raw.get("scheme", "default"),
                thresholds=[float(t) for t in color_raw.get("thresholds", [0.25, 1.0, 2.0, 3.0])],
                flat_epsilon=float(color_raw.get("flat_epsilon", 0.01)),
            )

            tiers_raw = self.config.get("detail_tiers", {})
            detail_tiers = DetailTierConfig(
                sm=float(tiers_raw.get("sm", 600)),
                md=float(tiers_raw.get("md", 1500)),
                lg=float(tiers_raw.get("lg", 4000)),
                xl=float(tiers_raw.get("xl", 10000)),
            )

            dashboard_raw = self.config.get("dashboard", {})
            dashboard = DashboardConfig(
                title=dashboard_raw.get("title", "Market Heatmap"),
                data_file=dashboard_raw.get("data_file"),
                refresh_interval_sec=int(dashboard_raw.get("refresh_interval_sec", 300)),
                default_preset=dashboard_raw.get("default_preset", "desktop"),
                output_dir=dashboard_raw.get("output_dir", "./reports"),
            )

            logging_raw = self.config.get("logging", {})
            logging_config = LoggingConfig(
                level=str(logging_raw.get("level", "INFO")).upper(),
                directory=logging_raw.get("directory", "./logs"),
                console=bool(logging_raw.get("console", False)),
                timezone=logging_raw.get("timezone", "local"),  # Default to local time
            )

            presets = self.config.get("presets") or {}
            if not isinstance(presets, dict) or not all(isinstance(v, dict) for v in presets.values()):
                raise ValueError("presets must map preset names to field overrides")

            app_config = AppConfig(
                layout=layout,
                render=render,
                color=color,
                detail_tiers=detail_tiers,
                dashboard=dashboard,
                logging=logging_config,
                presets=presets,
                raw=self.config,
            )

        except Exception as e:
            raise ValueError(f"Failed to parse config: {e}") from e

        self._validate(app_config)
        return app_config

    def _validate(self, config: AppConfig) -> None:
        """Reject values the renderer cannot work with."""
        errors = []
        if not math.isfinite(config.layout.header_height) or config.layout.header_height < 0:
            errors.append(f"layout.header_height must be >= 0, got {config.layout.header_height}")
        if config.render.batch_size < 1:
            errors.append(f"render.batch_size must be >= 1, got {config.render.batch_size}")
        if config.render.min_cell_px < 0:
            errors.append(f"render.min_cell_px must be >= 0, got {config.render.min_cell_px}")
        if config.render.resize_debounce_ms < 0:
            errors.append(f"render.resize_debounce_ms must be >= 0, got {config.render.resize_debounce_ms}")
        if config.color.scheme not in VALID_SCHEMES:
            errors.append(f"color.scheme must be one of {VALID_SCHEMES}, got '{config.color.scheme}'")
        thresholds = config.color.thresholds
        if len(thresholds) != 4 or thresholds != sorted(thresholds) or thresholds[0] <= 0:
            errors.append(f"color.thresholds must be 4 ascending positive values, got {thresholds}")
        tiers = config.detail_tiers
        if not (0 <= tiers.sm <= tiers.md <= tiers.lg <= tiers.xl):
            errors.append(f"detail_tiers must be ascending, got sm={tiers.sm} md={tiers.md} lg={tiers.lg} xl={tiers.xl}")
        if config.dashboard.refresh_interval_sec < 0:
            errors.append(f"dashboard.refresh_interval_sec must be >= 0, got {config.dashboard.refresh_interval_sec}")
        if config.logging.level not in VALID_LEVELS:
            errors.append(f"logging.level must be one of {VALID_LEVELS}, got '{config.logging.level}'")

        if errors:
            raise ValueError("Invalid config: " + "; ".join(errors))
