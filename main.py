# main.py

"""Entry point for the dkprice command-line tracker."""

import argparse
import asyncio
import logging
import sys

from dkprice.config.logging_config import setup_logging

logger = logging.getLogger("dkprice.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="dkprice",
        description="Digikala product price extraction and history.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    track = sub.add_parser(
        "track", help="Extract pricing facts from a product page.",
    )
    track.add_argument("url", help="Product page URL (…/dkp-<id>/…).")
    track.add_argument(
        "--ingest",
        action="store_true",
        default=False,
        help="Forward the extracted record to the backend.",
    )
    track.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        dest="timeout_ms",
        help="How long to wait for a token in API traffic.",
    )

    history = sub.add_parser(
        "history", help="Show merged price history from the backend.",
    )
    history.add_argument("product_id", help="Numeric dkp id.")
    history.add_argument(
        "--variant",
        default=None,
        dest="variant_id",
        help="Limit history to one variant.",
    )

    for command in (track, history):
        command.add_argument(
            "-f",
            "--format",
            choices=["json", "table"],
            default="json",
            dest="output_format",
            help="Output format (default: json).",
        )
    return parser


def _run_track(args: argparse.Namespace) -> None:
    """Run the extraction pipeline for one URL and exit."""
    from dkprice.cli.runner import track_product

    exit_code = asyncio.run(
        track_product(
            url=args.url,
            ingest=args.ingest,
            timeout_ms=args.timeout_ms,
            output_format=args.output_format,
        )
    )
    sys.exit(exit_code)


def _run_history(args: argparse.Namespace) -> None:
    """Print merged backend history and exit."""
    from dkprice.cli.runner import show_history

    exit_code = show_history(
        product_id=args.product_id,
        variant_id=args.variant_id,
        output_format=args.output_format,
    )
    sys.exit(exit_code)


def main() -> None:
    """Route to the requested sub-command."""
    log_file = setup_logging()
    logger.info("dkprice starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "track":
        _run_track(args)
    else:
        _run_history(args)


if __name__ == "__main__":
    main()
