"""High-level entry points for producing a rewards metrics report.

Provides RewardsPipeline for driving the decoder, accumulator and finalizer
over any iterable of lines, and run_report() for the file-in, JSON-out run.

Lines are processed strictly one at a time in input order. A malformed
data line stops the run with its line number and identifier; every other
anomaly is absorbed by the accumulator.
"""

import json
import time
from collections.abc import Iterable
from pathlib import Path

from rewards_metrics.aggregation.accumulator import accumulate
from rewards_metrics.aggregation.finalizer import finalize
from rewards_metrics.aggregation.models import AggregateState, RewardsMetrics
from rewards_metrics.config import ReportSettings
from rewards_metrics.decoder import decode_line
from rewards_metrics.exceptions import MalformedRecordError
from rewards_metrics.logging import get_logger, run_context

logger = get_logger(__name__)


class RewardsPipeline:
    """Drives one report run: decode, accumulate, then finalize once.

    The aggregate state is owned by the pipeline instance, so independent
    runs never share state.

    Args:
        settings: Report settings (line format, holder cap, debug line limit).
    """

    def __init__(self, settings: ReportSettings | None = None) -> None:
        self._settings = settings or ReportSettings()
        self._state = AggregateState()
        self._lines_read = 0
        # Decoded rows are kept only in debug mode, where the line count is bounded
        self._debug_rows: dict[str, list[dict]] | None = (
            {}
            if self._settings.debug_output_path and self._settings.max_lines is not None
            else None
        )

    @property
    def state(self) -> AggregateState:
        """The running aggregate. Read it, never mutate it."""
        return self._state

    @property
    def lines_read(self) -> int:
        return self._lines_read

    @property
    def debug_rows(self) -> dict[str, list[dict]] | None:
        """Decoded records per user in debug mode, None otherwise."""
        return self._debug_rows

    def feed(self, line: str) -> bool:
        """Decode and accumulate a single input line.

        Blank lines and the header row are skipped.

        Args:
            line: Raw input line.

        Returns:
            True if the line was a data row and was accumulated.

        Raises:
            MalformedRecordError: If the line is a data row that cannot be decoded.
        """
        self._lines_read += 1
        if not line.strip():
            return False

        try:
            row = decode_line(
                line,
                header_identifier=self._settings.header_identifier,
                delimiter=self._settings.delimiter,
            )
        except MalformedRecordError as e:
            error = e.at_line(self._lines_read)
            logger.error(
                "malformed_record",
                line_number=self._lines_read,
                user_id=error.user_id,
                reason=error.reason,
            )
            raise error from e

        if row is None:
            return False

        accumulate(row.user_id, row.records, self._state)
        if self._debug_rows is not None:
            self._debug_rows[row.user_id] = [record.to_dict() for record in row.records]

        interval = self._settings.progress_interval
        if interval > 0 and self._state.metrics.stats.total_users % interval == 0:
            logger.info(
                "report_progress",
                users=self._state.metrics.stats.total_users,
                coins=len(self._state.metrics.portfolio),
            )
        return True

    def run(self, lines: Iterable[str]) -> RewardsMetrics:
        """Consume every line, then finalize.

        In debug mode (``max_lines`` set) reading stops after that many
        lines and the report covers only those.

        Args:
            lines: Input lines in file order.

        Returns:
            The finalized RewardsMetrics report.
        """
        max_lines = self._settings.max_lines
        for line in lines:
            if max_lines is not None and self._lines_read >= max_lines:
                logger.warning(
                    "debug_line_limit_reached",
                    max_lines=max_lines,
                    note="Report covers only the lines read so far.",
                )
                break
            self.feed(line)

        return finalize(self._state, top_holders_limit=self._settings.top_holders_limit)


def _write_json(document: dict, output_path: str, indent: int) -> None:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=indent) + "\n", encoding="utf-8")


def write_report(metrics: RewardsMetrics, output_path: str, indent: int = 2) -> None:
    """Write the report as JSON, creating parent directories as needed."""
    _write_json(metrics.to_dict(), output_path, indent)


def write_debug_rows(rows: dict[str, list[dict]], output_path: str, indent: int = 2) -> None:
    """Write decoded debug rows as JSON, ``{user_id: [record, ...]}``."""
    _write_json(rows, output_path, indent)


def run_report(settings: ReportSettings | None = None) -> RewardsMetrics:
    """Read the rewards export, build the report, and write it to disk.

    Args:
        settings: Report settings. Defaults to environment-loaded values.

    Returns:
        The finalized RewardsMetrics report.

    Raises:
        MalformedRecordError: If a data line cannot be decoded.
        OSError: If the input cannot be read or the output cannot be written.
    """
    if settings is None:
        settings = ReportSettings()

    start_time = time.monotonic()
    logger.info(
        "report_run_starting",
        input_path=settings.input_path,
        output_path=settings.output_path,
        max_lines=settings.max_lines,
    )

    pipeline = RewardsPipeline(settings)
    with run_context(input_path=settings.input_path):
        with open(settings.input_path, encoding="utf-8-sig") as input_file:
            metrics = pipeline.run(input_file)

    write_report(metrics, settings.output_path, indent=settings.json_indent)
    if pipeline.debug_rows is not None:
        write_debug_rows(pipeline.debug_rows, settings.debug_output_path, indent=settings.json_indent)
        logger.info(
            "debug_rows_written",
            output_path=settings.debug_output_path,
            users=len(pipeline.debug_rows),
        )
    elif settings.debug_output_path:
        logger.warning(
            "debug_output_ignored",
            debug_output_path=settings.debug_output_path,
            note="Decoded rows are only dumped when max_lines is set.",
        )

    logger.info(
        "report_written",
        output_path=settings.output_path,
        lines_read=pipeline.lines_read,
        total_users=metrics.stats.total_users,
        coins=len(metrics.portfolio),
        elapsed_seconds=round(time.monotonic() - start_time, 2),
    )
    return metrics
