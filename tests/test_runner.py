"""Tests for the pipeline driver, report writer, and CLI entry point."""

import json
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from rewards_metrics.config import ReportSettings
from rewards_metrics.exceptions import MalformedRecordError
from rewards_metrics.main import main
from rewards_metrics.runner import RewardsPipeline, run_report


def _coin(
    coin: str,
    balance: str,
    interest_coin: str | None = None,
    usd: str = "1",
    tier: str = "GOLD",
    cel: bool = False,
) -> dict:
    return {
        "originalInterestCoin": coin,
        "interestCoin": interest_coin or coin,
        "totalInterestInCoin": "0.5",
        "totalInterestInUsd": usd,
        "earningInterestInCel": cel,
        "loyaltyTier": {"title": tier},
        "distributionData": [
            {"type": "initialBalance", "value": balance, "newBalance": balance},
        ],
    }


def _line(user_id: str, *coins: dict) -> str:
    return f"{user_id}," + json.dumps({"version": 1, "data": list(coins)}) + "\n"


LINES = [
    "id,data\n",
    _line("u1", _coin("BTC", "1.5")),
    _line("u2", _coin("USDT ERC20", "100"), _coin("ETH", "2", interest_coin="CEL", tier="GOLD")),
    _line("u3", _coin("USDT ERC20", "50", usd="3", tier="platinum")),
    _line("u4", _coin("BTC", "0.25", tier="unknown-tier")),
]


@pytest.fixture
def input_file(report_settings: ReportSettings) -> Path:
    path = Path(report_settings.input_path)
    path.write_text("".join(LINES), encoding="utf-8")
    return path


class TestRewardsPipeline:
    """Tests for RewardsPipeline.run."""

    def test_counts_only_data_rows(self, report_settings: ReportSettings) -> None:
        metrics = RewardsPipeline(report_settings).run(LINES)
        assert metrics.stats.total_users == 4

    def test_report_contents(self, report_settings: ReportSettings) -> None:
        report = RewardsPipeline(report_settings).run(LINES).to_dict()

        assert report["portfolio"]["BTC"]["total"] == "1.75"
        assert report["portfolio"]["USDT"]["numberOfUsersHolding"] == "2"
        assert "USDT ERC20" not in report["portfolio"]
        assert report["portfolio"]["CEL"]["totalInterestInUsd"] == "1"
        assert report["stats"]["totalUsersEarningInCel"] == "1"
        assert report["stats"]["totalPortfolioCoinPositions"] == "5"
        assert report["stats"]["maximumPortfolioSize"] == "2"
        assert report["stats"]["totalInterestPaidInUsd"] == "7"
        assert report["loyaltyTierSummary"]["gold"] == "2"
        assert report["loyaltyTierSummary"]["platinum"] == "1"
        assert report["loyaltyTierSummary"]["uncategorized"] == "1"
        assert [row["uuid"] for row in report["coinDistributions"]["USDT"]] == ["u2", "u3"]

    def test_blank_lines_skipped(self, report_settings: ReportSettings) -> None:
        metrics = RewardsPipeline(report_settings).run([*LINES, "\n", "   \n"])
        assert metrics.stats.total_users == 4

    def test_header_only(self, report_settings: ReportSettings) -> None:
        report = RewardsPipeline(report_settings).run(["id,data\n"]).to_dict()

        assert report["stats"]["totalUsers"] == "0"
        assert report["stats"]["averageInterestPerUser"] == "0"
        assert report["stats"]["averageNumberOfCoinsPerUser"] == "0"

    def test_malformed_line_stops_run(self, report_settings: ReportSettings) -> None:
        pipeline = RewardsPipeline(report_settings)
        lines = [LINES[0], LINES[1], "bad-user,{broken\n", LINES[2]]

        with pytest.raises(MalformedRecordError) as exc_info:
            pipeline.run(lines)

        assert exc_info.value.line_number == 3
        assert exc_info.value.user_id == "bad-user"
        assert "line 3" in str(exc_info.value)
        assert pipeline.state.metrics.stats.total_users == 1
        assert pipeline.state.finalized is False

    def test_max_lines_debug_mode(self, report_settings: ReportSettings) -> None:
        settings = report_settings.model_copy(update={"max_lines": 3})
        pipeline = RewardsPipeline(settings)
        metrics = pipeline.run(LINES)

        assert pipeline.lines_read == 3
        assert metrics.stats.total_users == 2

    def test_holder_cap_from_settings(self, report_settings: ReportSettings) -> None:
        settings = report_settings.model_copy(update={"top_holders_limit": 1})
        report = RewardsPipeline(settings).run(LINES).to_dict()

        assert [row["uuid"] for row in report["coinDistributions"]["USDT"]] == ["u2"]
        assert report["portfolio"]["USDT"]["numberOfUsersHolding"] == "2"

    def test_independent_runs_do_not_share_state(self, report_settings: ReportSettings) -> None:
        first = RewardsPipeline(report_settings).run(LINES)
        second = RewardsPipeline(report_settings).run(LINES)
        assert first is not second
        assert second.stats.total_users == 4

    @pytest.mark.parametrize(
        ("interval", "expected_users"),
        [(1, [1, 2, 3, 4]), (3, [3]), (0, [])],
    )
    def test_progress_logging_interval(
        self, report_settings: ReportSettings, interval: int, expected_users: list[int]
    ) -> None:
        settings = report_settings.model_copy(update={"progress_interval": interval})
        with patch("rewards_metrics.runner.logger") as mock_logger:
            metrics = RewardsPipeline(settings).run(LINES)

        progress = [
            call.kwargs["users"]
            for call in mock_logger.info.call_args_list
            if call.args[0] == "report_progress"
        ]
        assert progress == expected_users
        assert metrics.stats.total_users == 4

    def test_debug_rows_collected_in_debug_mode(
        self, report_settings: ReportSettings, tmp_path: Path
    ) -> None:
        settings = report_settings.model_copy(
            update={"max_lines": 3, "debug_output_path": str(tmp_path / "debug.json")}
        )
        pipeline = RewardsPipeline(settings)
        pipeline.run(LINES)

        assert list(pipeline.debug_rows) == ["u1", "u2"]
        assert [record["originalInterestCoin"] for record in pipeline.debug_rows["u2"]] == [
            "USDT ERC20",
            "ETH",
        ]
        assert pipeline.debug_rows["u1"][0]["distributionData"][0]["newBalance"] == "1.5"

    def test_debug_rows_not_kept_without_line_limit(
        self, report_settings: ReportSettings, tmp_path: Path
    ) -> None:
        settings = report_settings.model_copy(
            update={"debug_output_path": str(tmp_path / "debug.json")}
        )
        pipeline = RewardsPipeline(settings)
        pipeline.run(LINES)

        assert pipeline.debug_rows is None


class TestRunReport:
    """Tests for run_report (file in, JSON out)."""

    def test_writes_json_report(self, report_settings: ReportSettings, input_file: Path) -> None:
        metrics = run_report(report_settings)

        output = json.loads(Path(report_settings.output_path).read_text(encoding="utf-8"))
        assert output == metrics.to_dict()
        assert output["stats"]["totalUsers"] == "4"
        assert Decimal(output["portfolio"]["USDT"]["total"]) == Decimal("150")

    def test_identical_input_gives_identical_bytes(
        self, report_settings: ReportSettings, input_file: Path
    ) -> None:
        run_report(report_settings)
        first = Path(report_settings.output_path).read_bytes()
        run_report(report_settings)
        second = Path(report_settings.output_path).read_bytes()

        assert first == second

    def test_byte_order_mark_does_not_hide_header(self, report_settings: ReportSettings) -> None:
        Path(report_settings.input_path).write_text("\ufeff" + "".join(LINES), encoding="utf-8")

        metrics = run_report(report_settings)

        assert metrics.stats.total_users == 4

    def test_writes_debug_rows(self, report_settings: ReportSettings, input_file: Path) -> None:
        debug_path = Path(report_settings.output_path).parent / "debug" / "rows.json"
        settings = report_settings.model_copy(
            update={"max_lines": 2, "debug_output_path": str(debug_path)}
        )
        run_report(settings)

        rows = json.loads(debug_path.read_text(encoding="utf-8"))
        assert list(rows) == ["u1"]
        assert rows["u1"][0]["originalInterestCoin"] == "BTC"
        assert rows["u1"][0]["totalInterestInUsd"] == "1"

    def test_debug_output_ignored_without_line_limit(
        self, report_settings: ReportSettings, input_file: Path
    ) -> None:
        debug_path = Path(report_settings.output_path).parent / "rows.json"
        settings = report_settings.model_copy(update={"debug_output_path": str(debug_path)})
        run_report(settings)

        assert not debug_path.exists()

    def test_missing_input_raises(self, report_settings: ReportSettings) -> None:
        with pytest.raises(OSError):
            run_report(report_settings)


class TestMain:
    """Tests for the CLI entry point."""

    def test_success(self, report_settings: ReportSettings, input_file: Path, tmp_path: Path) -> None:
        output = tmp_path / "cli" / "report.json"
        code = main(["--input", str(input_file), "--output", str(output)])

        assert code == 0
        assert json.loads(output.read_text(encoding="utf-8"))["stats"]["totalUsers"] == "4"

    def test_max_lines_flag(self, input_file: Path, tmp_path: Path) -> None:
        output = tmp_path / "report.json"
        code = main(["--input", str(input_file), "--output", str(output), "--max-lines", "2"])

        assert code == 0
        assert json.loads(output.read_text(encoding="utf-8"))["stats"]["totalUsers"] == "1"

    def test_debug_output_flag(self, input_file: Path, tmp_path: Path) -> None:
        output = tmp_path / "report.json"
        debug_path = tmp_path / "debug.json"
        code = main(
            [
                "--input",
                str(input_file),
                "--output",
                str(output),
                "--max-lines",
                "3",
                "--debug-output",
                str(debug_path),
            ]
        )

        assert code == 0
        assert list(json.loads(debug_path.read_text(encoding="utf-8"))) == ["u1", "u2"]

    def test_malformed_input_exit_code(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.csv"
        bad.write_text("id,data\nu1,{oops\n", encoding="utf-8")
        output = tmp_path / "report.json"

        assert main(["--input", str(bad), "--output", str(output)]) == 1
        assert not output.exists()
