"""Custom exceptions for the rewards metrics pipeline.

Recoverable data anomalies (unknown loyalty tiers, missing opening
balances, an empty dataset) never raise; they are logged and counted.
Only the conditions below stop a run.
"""


class RewardsMetricsError(Exception):
    """Base exception for all rewards metrics errors."""


class MalformedRecordError(RewardsMetricsError):
    """Raised when a data line cannot be decoded into coin records.

    A corrupt row would skew every ranking without any visible trace, so
    the run stops and reports the offending line and identifier.
    """

    def __init__(
        self,
        reason: str,
        user_id: str | None = None,
        line_number: int | None = None,
    ) -> None:
        self.reason = reason
        self.user_id = user_id
        self.line_number = line_number
        super().__init__(self._format())

    def _format(self) -> str:
        location = []
        if self.line_number is not None:
            location.append(f"line {self.line_number}")
        if self.user_id is not None:
            location.append(f"user {self.user_id!r}")
        if not location:
            return self.reason
        return f"{', '.join(location)}: {self.reason}"

    def at_line(self, line_number: int) -> "MalformedRecordError":
        """Return a copy of this error tagged with the input line number."""
        return MalformedRecordError(self.reason, self.user_id, line_number)


class ReportAlreadyFinalizedError(RewardsMetricsError):
    """Raised when a finalized aggregate is finalized, mutated, or merged again."""
