"""Unit tests for the battery arbitrage overlay."""

import pytest

from netmeter.models.battery import (
    REFERENCE_PEAK_SHARE,
    effective_peak_share,
    estimate_battery_savings,
    savings_cap_percent,
)
from netmeter.models.request import (
    DEFAULT_TOU_DISTRIBUTION,
    BatteryInputs,
    UsageDistribution,
)


class TestPeakShare:
    def test_no_distribution_is_neutral(self):
        assert effective_peak_share(None) == REFERENCE_PEAK_SHARE

    def test_weighted_share(self):
        """19/18/63: 0.19 + 0.18 x 0.6 + 0.63 x 0.3 = 0.487."""
        assert effective_peak_share(DEFAULT_TOU_DISTRIBUTION) == pytest.approx(0.487)

    def test_ultra_low_weight(self):
        distribution = UsageDistribution(ultra_low_percent=100)
        assert effective_peak_share(distribution) == pytest.approx(0.10)


class TestSavingsCap:
    def test_cap_at_fifteen_percent(self):
        assert savings_cap_percent(0) == 15.0

    def test_cap_half_of_remaining_bill(self):
        assert savings_cap_percent(90) == pytest.approx(5.0)

    def test_no_room_when_fully_offset(self):
        assert savings_cap_percent(100) == 0.0


class TestEstimateBatterySavings:
    def test_small_battery_uncapped(self):
        """5 kWh, solar-only: 5 x 0.5 x 365 x 0.9 = 821.25 kWh; x 0.6 x $0.10 = $49.275."""
        battery = BatteryInputs(usable_kwh=5.0, round_trip_efficiency=0.9)
        result = estimate_battery_savings(battery, import_cost=2000.0, bill_offset_percent=0.0)
        assert result.annual_throughput_kwh == pytest.approx(821.25)
        assert result.estimated_savings == pytest.approx(49.275)
        assert result.battery_savings_percent == pytest.approx(2.46375)

    def test_ai_mode_doubles_throughput(self):
        battery = BatteryInputs(usable_kwh=5.0, round_trip_efficiency=0.9)
        solar_only = estimate_battery_savings(battery, 2000.0, 0.0)
        ai_mode = estimate_battery_savings(battery, 2000.0, 0.0, ai_mode=True)
        assert ai_mode.annual_throughput_kwh == pytest.approx(2 * solar_only.annual_throughput_kwh)
        assert ai_mode.ai_mode is True

    def test_large_battery_capped_at_fifteen(self):
        battery = BatteryInputs(usable_kwh=40.0)
        result = estimate_battery_savings(battery, 1000.0, 0.0, DEFAULT_TOU_DISTRIBUTION, ai_mode=True)
        assert result.battery_savings_percent == 15.0
        assert result.estimated_savings == pytest.approx(150.0)

    def test_capped_by_remaining_bill(self):
        battery = BatteryInputs(usable_kwh=40.0)
        result = estimate_battery_savings(battery, 1000.0, 90.0, ai_mode=True)
        assert result.battery_savings_percent == pytest.approx(5.0)
        assert result.cap_percent == pytest.approx(5.0)

    def test_no_import_cost(self):
        battery = BatteryInputs(usable_kwh=13.5)
        result = estimate_battery_savings(battery, 0.0, 100.0)
        assert result.battery_savings_percent == 0.0
        assert result.estimated_savings == 0.0

    def test_shift_scale_clamped(self):
        """A share far below the reference clamps the shift fraction at half."""
        battery = BatteryInputs(usable_kwh=5.0, round_trip_efficiency=0.9)
        low = estimate_battery_savings(battery, 10000.0, 0.0, UsageDistribution(ultra_low_percent=100))
        neutral = estimate_battery_savings(battery, 10000.0, 0.0)
        assert low.estimated_savings == pytest.approx(neutral.estimated_savings * 0.5)


class TestBatteryInputs:
    def test_combine(self):
        combined = BatteryInputs.combine([
            BatteryInputs(usable_kwh=10.0, round_trip_efficiency=0.90, price=8000),
            BatteryInputs(usable_kwh=10.0, round_trip_efficiency=0.80, price=7000),
        ])
        assert combined.usable_kwh == 20.0
        assert combined.round_trip_efficiency == pytest.approx(0.85)
        assert combined.price == 15000
        assert combined.battery_count == 2

    def test_at_most_three(self):
        with pytest.raises(ValueError, match="At most 3"):
            BatteryInputs.combine([BatteryInputs(usable_kwh=5.0)] * 4)

    def test_invalid_efficiency(self):
        with pytest.raises(ValueError):
            BatteryInputs(usable_kwh=5.0, round_trip_efficiency=1.2)
