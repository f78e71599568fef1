import json
import math
from pathlib import Path

import pytest

import smb_metrics.logging_setup as logging_setup
from smb_metrics import __version__
from smb_metrics.cli import main


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch):
    # Run away from the repository's own config file and keep the
    # package logger untouched.
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(logging_setup, "_configured", True)


@pytest.fixture
def inputs(tmp_path: Path) -> tuple[str, str]:
    transactions = tmp_path / "transactions.json"
    transactions.write_text(
        json.dumps(
            {
                "data": [
                    {"transactionDate": "2024-01-02", "revenue": 1000, "tenChuan": "A"},
                    {"transactionDate": "2024-01-05", "revenue": 3000, "tenChuan": "B"},
                ]
            }
        ),
        encoding="utf-8",
    )
    expenses = tmp_path / "expenses.csv"
    expenses.write_text(
        "date,amount,type\n"
        "2024/01/03,500,Marketing Facebook\n"
        '2024/01/04,"1,000",License Adobe\n',
        encoding="utf-8",
    )
    return str(transactions), str(expenses)


def test_version(capsys) -> None:
    main(["--version"])
    assert capsys.readouterr().out.strip() == f"smb_metrics version {__version__}"


def test_json_metrics_output(inputs, capsys) -> None:
    transactions, expenses = inputs
    main(
        [
            "--transactions",
            transactions,
            "--expenses",
            expenses,
            "--scope",
            "metrics",
            "--display-mode",
            "json",
        ]
    )
    payload = json.loads(capsys.readouterr().out)

    assert set(payload) == {"metrics"}
    metrics = payload["metrics"]
    assert metrics["financial"]["totalRevenue"] == pytest.approx(4000.0)
    assert metrics["financial"]["totalExpenses"] == pytest.approx(1500.0)
    assert metrics["costs"]["accountingBreakdown"] == {
        "COGS": 1000.0,
        "OPEX": 500.0,
        "NON_RELATED": 0.0,
    }
    assert [s["source"] for s in metrics["revenue"]["bySource"]] == ["B", "A"]
    assert math.isinf(metrics["kpis"]["runway"])


def test_json_series_for_range(inputs, capsys) -> None:
    transactions, expenses = inputs
    main(
        [
            "--transactions",
            transactions,
            "--expenses",
            expenses,
            "--from-date",
            "2024-01-01",
            "--to-date",
            "2024-01-10",
            "--scope",
            "series",
            "--display-mode",
            "json",
        ]
    )
    series = json.loads(capsys.readouterr().out)["series"]

    assert len(series) == 10
    assert series[0]["key"] == "2024/01/01"
    assert series[0]["label"] == "1/1"
    by_key = {row["key"]: row for row in series}
    assert by_key["2024/01/02"]["revenue"] == pytest.approx(1000.0)
    assert by_key["2024/01/04"]["expense"] == pytest.approx(1000.0)
    assert by_key["2024/01/04"]["profit"] == pytest.approx(-1000.0)


def test_forced_granularity(inputs, capsys) -> None:
    transactions, _ = inputs
    main(
        [
            "--transactions",
            transactions,
            "--from-date",
            "2024-01-01",
            "--to-date",
            "2024-01-10",
            "--granularity",
            "monthly",
            "--scope",
            "series",
            "--display-mode",
            "json",
        ]
    )
    series = json.loads(capsys.readouterr().out)["series"]
    assert [row["key"] for row in series] == ["2024/01"]
    assert series[0]["revenue"] == pytest.approx(4000.0)


def test_table_mode_prints_sections(inputs, capsys) -> None:
    transactions, expenses = inputs
    main(["--transactions", transactions, "--expenses", expenses])
    out = capsys.readouterr().out

    for title in (
        "Metrics",
        "Revenue by source",
        "Cost by category",
        "Accounting breakdown",
        "Series",
    ):
        assert f"=== {title} ===" in out
    assert "totalRevenue" in out


def test_table_mode_without_inputs(capsys) -> None:
    main(["--scope", "metrics"])
    out = capsys.readouterr().out
    assert "=== Revenue by source ===" in out
    assert "(no data)" in out


def test_csv_mode_writes_files(inputs, tmp_path: Path, capsys) -> None:
    transactions, expenses = inputs
    out_dir = tmp_path / "exports"
    main(
        [
            "--transactions",
            transactions,
            "--expenses",
            expenses,
            "--display-mode",
            "csv",
            "--output-dir",
            str(out_dir),
        ]
    )

    written = sorted(p.name.rsplit("_", 1)[0] for p in out_dir.glob("*.csv"))
    assert written == [
        "accounting_breakdown",
        "cost_by_category",
        "metrics",
        "revenue_by_source",
        "series",
    ]
    assert capsys.readouterr().out.count("Wrote ") == 5


def test_config_file_sets_display_mode(inputs, tmp_path: Path, capsys) -> None:
    transactions, _ = inputs
    config = tmp_path / "smb_metrics_config.toml"
    config.write_text('[display]\nmode = "json"\n', encoding="utf-8")

    main(["--transactions", transactions, "--scope", "metrics"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["metrics"]["revenue"]["totalTransactions"] == 2


@pytest.mark.parametrize(
    "argv",
    [
        ["--transactions", "missing.csv"],
        ["--from-date", "2024-01-01"],
        ["--from-date", "2024-01-10", "--to-date", "2024-01-01"],
        ["--from-date", "someday", "--to-date", "2024-01-01"],
        ["--config", "missing.toml"],
        ["--granularity", "hourly"],
    ],
)
def test_usage_errors_exit_with_code_2(argv) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2


def test_invalid_config_is_a_usage_error(tmp_path: Path) -> None:
    config = tmp_path / "bad.toml"
    config.write_text("[granularity]\ndaily_max_days = 0\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config)])
    assert excinfo.value.code == 2
