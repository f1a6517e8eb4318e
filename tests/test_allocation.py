"""Unit tests for usage and production allocation across rate periods."""

import pytest

from netmeter.models.allocation import (
    DEFAULT_MONTHLY_USAGE_PROFILE,
    allocate,
    count_period_hours,
    monthly_usage_split,
)
from netmeter.models.errors import InvalidDistributionError
from netmeter.models.rate_plans import (
    MID_PEAK,
    OFF_PEAK,
    ON_PEAK,
    TIERED,
    TIERED_RATE_PLAN,
    TOU_RATE_PLAN,
    ULO_RATE_PLAN,
    ULTRA_LOW,
)
from netmeter.models.request import UsageDistribution


@pytest.fixture
def tou_distribution():
    return UsageDistribution(on_peak_percent=35, mid_peak_percent=30, off_peak_percent=35)


class TestMonthlyUsageSplit:
    def test_sums_to_annual(self):
        months = monthly_usage_split(12000)
        assert len(months) == 12
        assert sum(months) == pytest.approx(12000)

    def test_january_share(self):
        months = monthly_usage_split(10150)
        assert months[0] == pytest.approx(10150 * 11.0 / sum(DEFAULT_MONTHLY_USAGE_PROFILE))

    def test_winter_heavier_than_spring(self):
        months = monthly_usage_split(12000)
        assert months[0] > months[4]

    def test_explicit_monthly_values_win(self):
        explicit = [100.0] * 12
        assert monthly_usage_split(99999, explicit) == explicit


class TestCountPeriodHours:
    def test_january_2025_tou_daylight(self):
        """Jan 2025: 22 working weekdays (New Year's is a holiday), 9 weekend/holiday days.

        Daylight hours 07-19: 6 on-peak, 6 mid-peak, 1 off-peak per weekday.
        """
        counts = count_period_hours(TOU_RATE_PLAN, 2025, 1)
        assert counts[ON_PEAK] == 22 * 6
        assert counts[MID_PEAK] == 22 * 6
        assert counts[OFF_PEAK] == 22 * 1 + 9 * 13
        assert sum(counts.values()) == 31 * 13

    def test_full_day_count(self):
        counts = count_period_hours(TOU_RATE_PLAN, 2025, 2, hours=range(24))
        assert sum(counts.values()) == 28 * 24

    def test_ulo_has_no_daylight_ultra_low(self):
        counts = count_period_hours(ULO_RATE_PLAN, 2025, 6)
        assert counts[ULTRA_LOW] == 0


class TestAllocate:
    def test_production_conserved(self, tou_distribution):
        production = [float(100 * (m + 1)) for m in range(12)]
        allocations = allocate(TOU_RATE_PLAN, production, 12000, tou_distribution, 2025)
        assert len(allocations) == 12
        for allocation, expected in zip(allocations, production):
            assert sum(allocation.production_by_period.values()) == pytest.approx(expected)

    def test_usage_follows_distribution(self, tou_distribution):
        allocations = allocate(TOU_RATE_PLAN, [500.0] * 12, 12000, tou_distribution, 2025)
        january = allocations[0]
        assert january.usage_by_period[ON_PEAK] == pytest.approx(january.usage_kwh * 0.35)
        assert january.usage_by_period[MID_PEAK] == pytest.approx(january.usage_kwh * 0.30)
        assert january.usage_by_period[OFF_PEAK] == pytest.approx(january.usage_kwh * 0.35)

    def test_ultra_low_folds_into_off_peak_for_tou(self):
        distribution = UsageDistribution(on_peak_percent=20, mid_peak_percent=20,
                                         off_peak_percent=30, ultra_low_percent=30)
        allocations = allocate(TOU_RATE_PLAN, [500.0] * 12, 12000, distribution, 2025)
        january = allocations[0]
        assert january.usage_by_period[OFF_PEAK] == pytest.approx(january.usage_kwh * 0.60)

    def test_missing_distribution_rejected(self):
        with pytest.raises(InvalidDistributionError):
            allocate(TOU_RATE_PLAN, [500.0] * 12, 12000, None, 2025)

    def test_bad_distribution_rejected(self):
        distribution = UsageDistribution(on_peak_percent=30, mid_peak_percent=30, off_peak_percent=35)
        with pytest.raises(InvalidDistributionError, match="95.00%"):
            allocate(ULO_RATE_PLAN, [500.0] * 12, 12000, distribution, 2025)

    def test_tiered_needs_no_distribution(self):
        allocations = allocate(TIERED_RATE_PLAN, [500.0] * 12, 12000, None, 2025)
        march = allocations[2]
        assert march.usage_by_period[TIERED] == pytest.approx(march.usage_kwh)
        assert march.production_by_period[TIERED] == pytest.approx(500.0)

    def test_monthly_usage_override(self, tou_distribution):
        allocations = allocate(TOU_RATE_PLAN, [500.0] * 12, 0, tou_distribution, 2025,
                               monthly_usage_kwh=[800.0] * 12)
        assert all(a.usage_kwh == 800.0 for a in allocations)
