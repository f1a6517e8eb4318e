"""Tests for formatters, charts and the command-line front end."""

import json

import pytest

import netmeter_cli
from netmeter.models.engine import calculate_net_metering
from netmeter.models.projection import project_savings
from netmeter.models.request import DEFAULT_TOU_DISTRIBUTION, NetMeteringRequest
from netmeter.reports.charts import (
    create_monthly_ledger_chart,
    create_period_cost_chart,
    create_savings_chart,
)
from netmeter.utils.formatters import (
    format_currency,
    format_kwh,
    format_percent,
    format_rate,
    format_years,
)


@pytest.fixture
def result():
    request = NetMeteringRequest(
        monthly_solar_production_kwh=[300.0, 450.0, 700.0, 900.0, 1100.0, 1200.0,
                                      1250.0, 1100.0, 850.0, 600.0, 350.0, 250.0],
        annual_usage_kwh=10000, year=2025, usage_distribution=DEFAULT_TOU_DISTRIBUTION,
    )
    return calculate_net_metering(request)


class TestFormatters:
    def test_currency(self):
        assert format_currency(1234.5) == "$1,234.50"
        assert format_currency(-20) == "-$20.00"
        assert format_currency(1500, decimals=0) == "$1,500"

    def test_percent(self):
        assert format_percent(85.24) == "85.2%"
        assert format_percent(100) == "100.0%"

    def test_kwh(self):
        assert format_kwh(12000) == "12,000 kWh"

    def test_rate(self):
        assert format_rate(0.098) == "9.8¢/kWh"

    def test_years(self):
        assert format_years(7.234) == "7.2 years"
        assert format_years(None) == "Not reachable"


class TestCharts:
    def test_monthly_ledger_chart(self, result, tmp_path):
        path = tmp_path / "monthly.png"
        create_monthly_ledger_chart(result.monthly, str(path))
        assert path.exists()
        assert path.stat().st_size > 0

    def test_period_cost_chart(self, result, tmp_path):
        path = tmp_path / "periods.png"
        create_period_cost_chart(result.by_period, str(path))
        assert path.exists()

    def test_period_chart_skipped_without_imports(self, tmp_path):
        path = tmp_path / "empty.png"
        create_period_cost_chart([], str(path))
        assert not path.exists()

    def test_savings_chart(self, result, tmp_path):
        path = tmp_path / "savings.png"
        create_savings_chart(project_savings(result.annual_savings(), 15000.0), str(path))
        assert path.exists()


class TestCLI:
    def test_json_output(self, capsys):
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--year", "2025", "--json"])
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["planId"] == "tou"
        assert data["valid"] is True
        assert "projection" in data

    def test_table_output(self, capsys):
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--year", "2025", "--plan", "ulo", "--cost", "18000"])
        assert code == 0
        out = capsys.readouterr().out
        assert "Monthly Ledger" in out
        assert "Payback" in out

    def test_compare(self, capsys):
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--year", "2025", "--compare", "--cost", "18000"])
        assert code == 0
        assert "PLAN COMPARISON" in capsys.readouterr().out

    def test_compare_with_bad_distribution_keeps_tiered(self, capsys):
        """A distribution off 100% withholds TOU and ULO; Tiered is still compared."""
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--year", "2025", "--compare", "--distribution", "50,30,15",
                                  "--cost", "18000"])
        assert code == 0
        out = capsys.readouterr().out
        assert "95.0%" in out
        assert "withheld" in out
        assert "Best plan: TIERED" in out

    def test_alberta_with_battery(self, capsys):
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--year", "2025", "--province", "AB", "--battery-kwh", "13.5"])
        assert code == 0
        out = capsys.readouterr().out
        assert "Alberta Solar Club" in out
        assert "Cash back" in out

    def test_bad_distribution_fails_validation(self, capsys):
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--distribution", "50,50,50"])
        assert code == 1

    def test_missing_production(self, capsys):
        code = netmeter_cli.main(["--usage", "10000"])
        assert code == 2
        assert "required" in capsys.readouterr().err

    def test_save_and_load(self, tmp_path, capsys):
        path = tmp_path / "request.json"
        netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                           "--year", "2025", "--save", str(path)])
        assert path.exists()
        code = netmeter_cli.main(["--load", str(path), "--json"])
        assert code == 0

    def test_charts_written(self, tmp_path, capsys):
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--year", "2025", "--cost", "15000", "--chart", str(tmp_path)])
        assert code == 0
        assert (tmp_path / "tou_monthly.png").exists()
        assert (tmp_path / "tou_savings.png").exists()

    def test_library_selection(self, capsys):
        code = netmeter_cli.main(["--annual-production", "9000", "--usage", "10000",
                                  "--year", "2025", "--library", "2024", "--json"])
        assert code == 0
