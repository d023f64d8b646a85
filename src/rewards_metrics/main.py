"""Entry point for the rewards metrics report.

Loads settings from the environment (REPORT_* variables or a .env file),
lets command-line flags override the input path, output path and debug
line limit, then runs the report. Exits non-zero when a data line is
malformed, naming the line and identifier.
"""

import argparse
import sys

from rewards_metrics.config import AppSettings
from rewards_metrics.exceptions import MalformedRecordError
from rewards_metrics.logging import get_logger, setup_logging
from rewards_metrics.runner import run_report


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rewards-metrics",
        description="Aggregate a per-user rewards export into a metrics report.",
    )
    parser.add_argument("--input", help="Path to the rewards export (overrides REPORT_INPUT_PATH).")
    parser.add_argument("--output", help="Path of the JSON report (overrides REPORT_OUTPUT_PATH).")
    parser.add_argument(
        "--max-lines",
        type=int,
        help="Debug mode: read at most this many lines (overrides REPORT_MAX_LINES).",
    )
    parser.add_argument(
        "--debug-output",
        help="Debug mode: also dump the decoded rows here (overrides REPORT_DEBUG_OUTPUT_PATH).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Synchronous entry point. Returns the process exit code."""
    args = _parse_args(argv)

    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("rewards_metrics.main")

    overrides: dict[str, object] = {}
    if args.input is not None:
        overrides["input_path"] = args.input
    if args.output is not None:
        overrides["output_path"] = args.output
    if args.max_lines is not None:
        overrides["max_lines"] = args.max_lines
    if args.debug_output is not None:
        overrides["debug_output_path"] = args.debug_output
    report_settings = settings.report.model_copy(update=overrides)

    try:
        run_report(report_settings)
    except MalformedRecordError as e:
        logger.error(
            "report_run_failed",
            line_number=e.line_number,
            user_id=e.user_id,
            reason=e.reason,
        )
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
