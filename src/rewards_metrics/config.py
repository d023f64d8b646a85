"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class ReportSettings(BaseSettings):
    """Rewards report run parameters.

    Controls where the rewards export is read from, where the aggregate
    report is written, how input lines are split, and how large the
    per-coin holder lists may grow. All fields configurable via REPORT_
    environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    input_path: str = "data/rewards.csv"
    output_path: str = "data/rewards-metrics.json"
    header_identifier: str = "id"  # identifier of the header row
    delimiter: str = ","
    top_holders_limit: int = 500000  # rows kept per coin after sorting
    max_lines: int | None = None  # debug mode: stop after this many input lines
    progress_interval: int = 100000  # users between progress log lines
    json_indent: int = 2
    # debug mode only: decoded rows of the lines read, keyed by user
    debug_output_path: str | None = None


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str | None = None  # "json" or "console"; LOG_FORMAT env var otherwise
    report: ReportSettings = ReportSettings()
