"""
Stockmap - Market Heatmap - Main Entry Point

Usage:
    python main.py --input data/stocks.json                 # HTML market + sector pages (desktop preset)
    python main.py --input data/stocks.json --preset mobile
    python main.py --input data/stocks.json --sector Technology
    python main.py --input data/stocks.json --output out/layout.json   # JSON layout export
    python main.py --input data/stocks.json --tui           # Terminal dashboard
"""

from __future__ import annotations
import argparse
import sys
from pathlib import Path

from config.config_manager import ConfigManager
from stockmap.domain.heatmap.errors import DataFileError
from stockmap.infrastructure.adapters import StockFileLoader
from stockmap.infrastructure.reporting.heatmap import HeatmapBuilder, list_presets
from stockmap.infrastructure.reporting.heatmap.builder import MARKET_REPORT
from stockmap.utils import flush_all_loggers, get_logger, set_log_timezone, setup_category_logging, shutdown_logging


def parse_args(argv: list | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Stock market treemap heatmap",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --input examples/sample_stocks.json
  python main.py --input examples/sample_stocks.json --preset panoramic --no-group
  python main.py --input examples/sample_stocks.json --tui
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        help="Stock data file (.json, .csv, .yaml); defaults to dashboard.data_file"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Output file; .json writes the painted layout, anything else HTML. "
             "The market page is written with one heatmap_<sector>.html page per sector "
             "(default: <dashboard.output_dir>/heatmap.html)"
    )

    parser.add_argument(
        "--preset",
        type=str,
        choices=list_presets(),
        help="View preset (default: dashboard.default_preset)"
    )

    parser.add_argument(
        "--sector",
        type=str,
        help="Render a single sector (drill-down view)"
    )

    parser.add_argument(
        "--no-group",
        action="store_true",
        help="Flat treemap without sector grouping"
    )

    parser.add_argument(
        "--tui",
        action="store_true",
        help="Run the interactive terminal dashboard"
    )

    parser.add_argument(
        "--env",
        type=str,
        default="dev",
        help="Environment config to merge over base.yaml (default: dev)"
    )

    parser.add_argument(
        "--config-dir",
        type=str,
        default="config",
        help="Directory containing base.yaml (default: config)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level for all categories)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set log level (default: logging.level from config, ignored if --verbose is set)"
    )

    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    """Load config, set up logging and produce the requested view."""
    config = ConfigManager(config_dir=args.config_dir, env=args.env).load()

    # Set timezone for logging (before creating loggers)
    log_tz = config.logging.timezone
    if log_tz and log_tz.lower() != "local":
        set_log_timezone(log_tz)
    else:
        set_log_timezone(None)

    setup_category_logging(
        env=args.env,
        log_dir=config.logging.directory,
        level=args.log_level or config.logging.level,
        console=config.logging.console and not args.tui,  # Console output only without the TUI
        verbose=args.verbose,
    )
    logger = get_logger("stockmap.main")

    data_file = args.input or config.dashboard.data_file
    if not data_file:
        logger.error("No input file given and dashboard.data_file is not set")
        print("Error: no input file (use --input or set dashboard.data_file)", file=sys.stderr)
        return 2

    loader = StockFileLoader(data_file, reload_interval_sec=config.dashboard.refresh_interval_sec)
    preset = args.preset or config.dashboard.default_preset

    if args.tui:
        from stockmap.tui import HeatmapApp

        if args.no_group:
            config.layout.group_by_sector = False
        app = HeatmapApp(config=config, loader=loader, preset=preset, sector=args.sector)
        app.run()
        return 0

    items = loader.load()
    group = False if args.no_group else None
    output = Path(args.output) if args.output else None
    output_dir = output.parent if output else Path(config.dashboard.output_dir)
    # A custom market page name is also the sector pages' back-link target
    market_href = output.name if output and not args.sector else MARKET_REPORT
    builder = HeatmapBuilder(config, preset=preset, market_href=market_href)

    if output is not None and output.suffix.lower() == ".json":
        path = builder.save_layout_json(items, output, sector=args.sector, group_by_sector=group)
    elif args.sector:
        path = builder.save_heatmap(
            items, output_dir, filename=output.name if output else None, sector=args.sector
        )
    else:
        path = builder.save_report_set(items, output_dir, group_by_sector=group)[0]

    logger.info(f"Heatmap written to {path} ({len(items)} stocks, preset={builder.preset.name})")
    print(path)
    return 0


def main() -> None:
    """Main entry point."""
    args = parse_args()

    try:
        exit_code = run(args)
    except KeyboardInterrupt:
        print("Shutdown requested")
        exit_code = 0
    except (FileNotFoundError, DataFileError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    finally:
        flush_all_loggers()
        shutdown_logging()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
