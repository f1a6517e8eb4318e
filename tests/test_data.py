"""Tests for request models, validators, storage and rate libraries."""

import json
import os
import tempfile

import pytest

from netmeter.data.libraries import RateLibrary
from netmeter.data.storage import load_request, load_result, save_request, save_result
from netmeter.data.validators import (
    validate_battery_efficiency,
    validate_distribution,
    validate_escalation_rate,
    validate_production,
    validate_request,
    validate_usage,
)
from netmeter.models.engine import calculate_net_metering
from netmeter.models.errors import InvalidProductionError, InvalidUsageError
from netmeter.models.rate_plans import DEFAULT_REGISTRY, MID_PEAK, ON_PEAK, TIERED
from netmeter.models.request import (
    DEFAULT_TOU_DISTRIBUTION,
    BatteryInputs,
    NetMeteringRequest,
    UsageDistribution,
)

PRODUCTION = [300.0, 450.0, 700.0, 900.0, 1100.0, 1200.0,
              1250.0, 1100.0, 850.0, 600.0, 350.0, 250.0]


# ---- Request model ----

class TestRequest:
    def test_wrong_length(self):
        with pytest.raises(InvalidProductionError, match="exactly 12"):
            NetMeteringRequest(monthly_solar_production_kwh=[100.0] * 11, annual_usage_kwh=1000)

    def test_negative_month(self):
        with pytest.raises(InvalidProductionError):
            NetMeteringRequest(monthly_solar_production_kwh=[-1.0] + [100.0] * 11,
                               annual_usage_kwh=1000)

    def test_non_numeric_usage(self):
        with pytest.raises(InvalidUsageError):
            NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION, annual_usage_kwh="lots")

    def test_plan_alias_normalized(self):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION,
                                     annual_usage_kwh=1000, rate_plan_id="tiered_rate")
        assert request.rate_plan_id == "tiered"

    @pytest.mark.parametrize("year", [2025.7, "2025.5", True])
    def test_fractional_year_rejected(self, year):
        with pytest.raises(ValueError, match="year"):
            NetMeteringRequest.from_dict({
                "monthlySolarProductionKwh": PRODUCTION, "annualUsageKwh": 1000, "year": year,
            })

    def test_whole_number_year_accepted(self):
        request = NetMeteringRequest.from_dict({
            "monthlySolarProductionKwh": PRODUCTION, "annualUsageKwh": 1000, "year": 2025.0,
        })
        assert request.year == 2025

    def test_ai_mode_requires_true(self):
        request = NetMeteringRequest.from_dict({
            "monthlySolarProductionKwh": PRODUCTION, "annualUsageKwh": 1000, "aiMode": "yes",
        })
        assert request.ai_mode is False

    def test_dict_roundtrip(self):
        request = NetMeteringRequest(
            monthly_solar_production_kwh=PRODUCTION, annual_usage_kwh=9500, rate_plan_id="ulo",
            year=2025, usage_distribution=UsageDistribution(20, 30, 25, 25),
            battery=BatteryInputs(usable_kwh=13.5, price=12000), ai_mode=True,
        )
        rebuilt = NetMeteringRequest.from_dict(request.to_dict())
        assert rebuilt == request


# ---- Validators ----

class TestValidation:
    def test_distribution_required_for_tou(self):
        valid, msg = validate_distribution(None, "tou")
        assert not valid
        assert "required" in msg

    def test_distribution_ignored_for_tiered(self):
        assert validate_distribution(None, "tiered") == (True, "")

    def test_distribution_total(self):
        valid, msg = validate_distribution(UsageDistribution(30, 30, 35), "tou")
        assert not valid
        assert "95.0%" in msg

    def test_ulo_without_ultra_low_warns(self):
        valid, msg = validate_distribution(DEFAULT_TOU_DISTRIBUTION, "ulo")
        assert valid
        assert msg.startswith("Warning")

    def test_production(self):
        assert validate_production(PRODUCTION) == (True, "")
        assert not validate_production([0.0] * 12)[0]
        assert not validate_production([1.0] * 6)[0]

    def test_concentrated_production_warns(self):
        valid, msg = validate_production([5000.0] + [10.0] * 11)
        assert valid
        assert "Warning" in msg

    def test_usage(self):
        assert validate_usage(10000) == (True, "")
        valid, msg = validate_usage(0)
        assert valid and "zero" in msg

    def test_battery_efficiency(self):
        assert validate_battery_efficiency(0.90)[0]
        assert not validate_battery_efficiency(0.50)[0]

    def test_escalation(self):
        assert validate_escalation_rate(0.03)[0]
        assert not validate_escalation_rate(-0.01)[0]
        assert not validate_escalation_rate(0.25)[0]

    def test_validate_request(self):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION,
                                     annual_usage_kwh=10000, usage_distribution=DEFAULT_TOU_DISTRIBUTION)
        valid, messages = validate_request(request, escalation_rate=0.03)
        assert valid
        assert messages == []

    def test_bad_distribution_is_warning_for_comparison(self):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION, annual_usage_kwh=10000,
                                     usage_distribution=UsageDistribution(50, 30, 15))
        assert not validate_request(request)[0]
        valid, messages = validate_request(request, all_plans=True)
        assert valid
        assert messages[0].startswith("Warning")
        assert "withheld" in messages[0]

    def test_validate_request_collects_errors(self):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION,
                                     annual_usage_kwh=10000)
        valid, messages = validate_request(request, escalation_rate=0.5)
        assert not valid
        assert len(messages) == 2


# ---- Save/Load Tests ----

class TestStorage:
    def test_request_roundtrip(self):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION,
                                     annual_usage_kwh=10000, year=2025,
                                     usage_distribution=DEFAULT_TOU_DISTRIBUTION)
        with tempfile.NamedTemporaryFile(suffix=".json", delete=False) as f:
            path = f.name

        try:
            save_request(request, path)
            loaded = load_request(path)
            assert loaded.monthly_solar_production_kwh == PRODUCTION
            assert loaded.annual_usage_kwh == 10000
            assert loaded.usage_distribution == DEFAULT_TOU_DISTRIBUTION
        finally:
            os.unlink(path)

    def test_result_roundtrip(self, tmp_path):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION,
                                     annual_usage_kwh=10000, year=2025,
                                     usage_distribution=DEFAULT_TOU_DISTRIBUTION,
                                     battery=BatteryInputs(usable_kwh=13.5))
        result = calculate_net_metering(request)
        path = tmp_path / "results" / "tou.json"
        save_result(result, str(path))
        loaded = load_result(str(path))
        assert loaded.to_dict() == result.to_dict()

    def test_saved_file_uses_payload_keys(self, tmp_path):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION, annual_usage_kwh=10000)
        path = tmp_path / "request.json"
        save_request(request, str(path))
        data = json.loads(path.read_text(encoding="utf-8"))
        assert "monthlySolarProductionKwh" in data
        assert data["ratePlanId"] == "tou"


# ---- Library Tests ----

class TestRateLibrary:
    def test_library_loads(self):
        lib = RateLibrary()
        assert "OEB RPP 2025-11" in lib.get_library_names()
        assert "OEB RPP 2024-11" in lib.get_library_names()

    def test_metadata(self):
        metadata = RateLibrary().get_library_metadata("OEB RPP 2025-11")
        assert "Ontario Energy Board" in metadata["source"]
        assert metadata["version"] == "2025.11"

    def test_current_library_matches_defaults(self):
        registry = RateLibrary().build_registry("OEB RPP 2025-11")
        assert registry.plans == DEFAULT_REGISTRY.plans
        assert registry.tiers == DEFAULT_REGISTRY.tiers

    def test_previous_library_rates(self):
        registry = RateLibrary().build_registry("OEB RPP 2024-11")
        on_peak = registry.get("tou").get_period(ON_PEAK)
        assert on_peak.import_rate == pytest.approx(0.158)
        assert on_peak.export_rate == pytest.approx(0.158)
        assert registry.get("ulo").get_period(MID_PEAK).import_rate == pytest.approx(0.122)
        assert registry.tiers.tier1_rate == pytest.approx(0.093)
        assert registry.get("tiered").get_period(TIERED).import_rate == pytest.approx(0.093)
        assert registry.name == "OEB RPP 2024-11"

    def test_base_registry_untouched(self):
        RateLibrary().build_registry("OEB RPP 2024-11")
        assert DEFAULT_REGISTRY.get("tou").get_period(ON_PEAK).import_rate == pytest.approx(0.203)

    def test_unknown_library(self):
        with pytest.raises(KeyError, match="not found"):
            RateLibrary().build_registry("Hydro Nowhere")

    def test_custom_directory(self, tmp_path):
        (tmp_path / "cheap.json").write_text(json.dumps({
            "name": "Cheap Power",
            "plans": {"tou": {"on-peak": {"import_rate": 0.05, "export_rate": 0.04}}},
        }), encoding="utf-8")
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        lib = RateLibrary(str(tmp_path))
        assert lib.get_library_names() == ["Cheap Power"]
        registry = lib.build_registry("Cheap Power")
        assert registry.get("tou").get_period(ON_PEAK).export_rate == pytest.approx(0.04)

    def test_registry_drives_engine(self):
        request = NetMeteringRequest(monthly_solar_production_kwh=PRODUCTION,
                                     annual_usage_kwh=10000, year=2025,
                                     usage_distribution=DEFAULT_TOU_DISTRIBUTION)
        current = calculate_net_metering(request)
        previous = calculate_net_metering(request, RateLibrary().build_registry("OEB RPP 2024-11"))
        assert previous.annual.import_cost < current.annual.import_cost
