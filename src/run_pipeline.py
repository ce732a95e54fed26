"""Pipeline CLI Entry Point

Provides the command-line interface for running the catalog extraction
pipeline over page captures recorded by the browser-automation layer.
Handles argument parsing, logging configuration, and a run summary.

Usage:
    python -m run_pipeline --input data/page_captures.json --output-dir output --target-count 50
"""

import argparse
import logging
import time
from pathlib import Path

from catalog_pipeline import config
from catalog_pipeline.pipeline import run_pipeline


def configure_logging(log_dir: Path = Path("logs")) -> None:
    """Configure logging with both console and file output.

    Sets up:
      - Root logger at DEBUG level
      - Console handler at INFO level for user-facing messages
      - File handler at DEBUG level for detailed troubleshooting
    """
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / "pipeline.log"

    # Root logger
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    # Console handler: high-level INFO+
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    # File handler: detailed DEBUG+
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Clear existing handlers to avoid duplicates if run multiple times
    logger.handlers.clear()
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Catalog extraction pipeline"
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=Path("data/page_captures.json"),
        help="Path to the page captures JSON file.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory where output files will be written.",
    )
    parser.add_argument(
        "--target-count",
        type=int,
        default=config.DEFAULT_TARGET_COUNT,
        help=f"Stop once this many unique products are saved (default: {config.DEFAULT_TARGET_COUNT}).",
    )
    parser.add_argument(
        "--base-url",
        default=config.SITE_URL,
        help=f"Site origin used for product URLs (default: {config.SITE_URL}).",
    )
    parser.add_argument(
        "--locale",
        default=None,
        help="Locale such as 'uk/en' for captures whose URL carries none.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of page captures processed concurrently (default: 1).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Process data but don't write any output files.",
    )
    parser.add_argument(
        "--no-history",
        action="store_true",
        help="Overwrite output files instead of creating timestamped versions.",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=Path("logs"),
        help="Directory for pipeline.log (default: logs).",
    )
    return parser


def main(argv=None) -> int:
    """
    CLI entrypoint for the catalog extraction pipeline.

    Parses command-line arguments, runs the pipeline end-to-end,
    and returns a Unix-style exit code (0 on success, non-zero on failure).
    """
    args = build_parser().parse_args(argv)

    configure_logging(args.log_dir)
    logger = logging.getLogger(__name__)

    if args.target_count < 1:
        logger.error("--target-count must be a positive integer (got %d)", args.target_count)
        return 2

    logger.info("=== Starting catalog extraction pipeline ===")
    logger.info("Input: %s", args.input)
    logger.info("Output directory: %s", args.output_dir)
    logger.info("Target count: %d", args.target_count)
    logger.info("Base URL: %s", args.base_url)
    logger.info("Workers: %d", args.workers)
    logger.info("Dry_run: %s", args.dry_run)
    logger.info("Keep history: %s", not args.no_history)

    try:
        start_time = time.time()

        total_pages, saved_count, output_paths = run_pipeline(
            input_path=args.input,
            output_dir=args.output_dir,
            target_count=args.target_count,
            base_url=args.base_url,
            locale=args.locale,
            max_workers=args.workers,
            dry_run=args.dry_run,
            keep_history=not args.no_history,
        )

        elapsed_time = time.time() - start_time

        logger.info("=" * 70)
        logger.info("Pipeline completed successfully in %.2fs", elapsed_time)
        logger.info("")
        logger.info("Summary:")
        logger.info("  Input:      %s", args.input)
        logger.info("  Pages:      %d", total_pages)
        logger.info("  Saved:      %d/%d products", saved_count, args.target_count)
        logger.info("")
        logger.info("Output files:")
        for name, path in output_paths.items():
            logger.info("  %-12s %s", f"{name}:", path)
        logger.info("=" * 70)

    except Exception as e:
        logger.exception("Pipeline failed with an unhandled exception: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
