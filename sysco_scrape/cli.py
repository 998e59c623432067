"""Command-line interface for the scraper."""

import argparse
import asyncio
import sys
from typing import List, Optional

from sysco_scrape.config import CATEGORIES, ScraperConfig, load_config, parse_size
from sysco_scrape.csv_utils import default_export_path, export_to_csv
from sysco_scrape.db import close_db, get_statistics, init_db
from sysco_scrape.logging_config import get_logger, setup_logging
from sysco_scrape.workflows import run_scraper

__all__ = ["main", "parse_args", "show_stats"]

logger = get_logger("cli")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sysco-scraper",
        description="Sysco product scraper with SQLite storage and CSV export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scrape every configured category
  python -m sysco_scrape scrape

  # Two categories, at most 2 pages each, with a visible browser
  python -m sysco_scrape scrape --categories Produce "Dairy & Eggs" --max-pages 2 --headed

  # Create the database and show statistics
  python -m sysco_scrape setup

  # Export the database to CSV (all columns)
  python -m sysco_scrape export --output data/export.csv
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        help="Console log level (default: LOG_LEVEL or info)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # scrape
    scrape_parser = subparsers.add_parser("scrape", help="Run the full scrape")
    scrape_parser.add_argument(
        "--categories",
        nargs="+",
        choices=CATEGORIES,
        metavar="CATEGORY",
        help=f"Categories to scrape, in order (default: all). Choices: {CATEGORIES}",
    )
    scrape_parser.add_argument(
        "--max-pages",
        type=int,
        help="Maximum pages per category (default: MAX_PAGES_PER_CATEGORY or 10)",
    )
    scrape_parser.add_argument(
        "--max-products",
        type=int,
        help="Maximum products per category (default: MAX_PRODUCTS_PER_CATEGORY or 500)",
    )
    scrape_parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )
    scrape_parser.add_argument("--db", help="SQLite database path (default: SYSCO_DB_PATH)")

    # setup
    setup_parser = subparsers.add_parser("setup", help="Create the database schema and show statistics")
    setup_parser.add_argument("--db", help="SQLite database path (default: SYSCO_DB_PATH)")

    # export
    export_parser = subparsers.add_parser("export", help="Export the database to CSV")
    export_parser.add_argument("--db", help="SQLite database path (default: SYSCO_DB_PATH)")
    export_parser.add_argument(
        "--output",
        metavar="PATH",
        help="CSV path (default: <output dir>/sysco_products_full_<date>.csv)",
    )
    export_parser.add_argument(
        "--required-only",
        action="store_true",
        help="Only export the required columns",
    )

    return parser.parse_args(argv)


def show_stats(db_path: str) -> None:
    """Display database statistics."""
    stats = get_statistics(db_path)

    print(f"\n{'='*50}")
    print(f"Database: {db_path}")
    print(f"{'='*50}")

    print(f"\nTotal products: {stats['total']}")
    print(f"Products with images: {stats['with_images']}")
    print(f"Scraped today: {stats['recently_scraped']}")

    print("\nProducts by category:")
    if stats["by_category"]:
        for row in stats["by_category"]:
            print(f"  {row['category'] or '(none)'}: {row['count']}")
    else:
        print("  No products yet")

    if stats["by_brand"]:
        print("\nTop brands:")
        for row in stats["by_brand"]:
            print(f"  {row['brand_name'] or '(none)'}: {row['count']}")

    print()


def run_scrape(args: argparse.Namespace, config: ScraperConfig) -> int:
    changes = {}
    if args.categories:
        changes["categories"] = list(args.categories)
    if args.max_pages is not None:
        changes["max_pages_per_category"] = args.max_pages
    if args.max_products is not None:
        changes["max_products_per_category"] = args.max_products
    if args.headed:
        changes["headless"] = False
    if args.db:
        changes["db_path"] = args.db
    config = config.copy(**changes)

    summary = asyncio.run(run_scraper(config))

    print(f"\nSession: {summary.session_id}")
    print(f"Products scraped: {summary.total_products}")
    for category, count in summary.category_counts.items():
        print(f"  {category}: {count}")
    if summary.failed_categories:
        print(f"Failed categories: {', '.join(summary.failed_categories)}")
    if summary.export_path:
        print(f"CSV export: {summary.export_path}")
    return 0


def run_setup(args: argparse.Namespace, config: ScraperConfig) -> int:
    db_path = args.db or config.db_path
    init_db(db_path)
    show_stats(db_path)
    return 0


def run_export(args: argparse.Namespace, config: ScraperConfig) -> int:
    db_path = args.db or config.db_path
    include_all = not args.required_only
    output_path = args.output or default_export_path(config.output_dir, full=include_all)

    init_db(db_path)
    try:
        result = export_to_csv(db_path, output_path=output_path, include_all=include_all)
    except ValueError as e:
        print(f"{e}. Run 'scrape' first.")
        return 0

    print(f"Exported {result['total_products']} products "
          f"({result['categories']} categories, {result['columns']} columns) "
          f"to {result['file_path']}")
    return 0


_COMMANDS = {
    "scrape": run_scrape,
    "setup": run_setup,
    "export": run_export,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for CLI."""
    args = parse_args(argv)

    config = load_config()
    if args.log_level:
        config.log_level = args.log_level

    setup_logging(
        config.log_level,
        log_dir=config.log_dir,
        max_bytes=parse_size(config.log_max_size),
        backup_count=config.log_max_files,
    )

    try:
        exit_code = _COMMANDS[args.command](args, config)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        exit_code = 130
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        exit_code = 1
    finally:
        close_db()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
