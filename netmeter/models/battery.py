"""Battery arbitrage overlay.

A heuristic estimate of the additional bill reduction a battery provides on
top of solar net metering, by shifting energy from cheap to expensive
periods. It does not dispatch hour by hour; it scales the energy the
battery can cycle in a year by how peak-heavy the household's usage is.
"""

import logging
from typing import Optional

from netmeter.models.request import BatteryInputs, UsageDistribution
from netmeter.models.results import BatteryArbitrageResult

logger = logging.getLogger(__name__)

# Full cycles per day: grid charging allowed vs solar-only charging
AI_MODE_CYCLES_PER_DAY = 1.0
SOLAR_ONLY_CYCLES_PER_DAY = 0.5

# Weight of usage in each period when judging peak exposure
PEAK_WEIGHTS = {
    "on_peak": 1.0,
    "mid_peak": 0.6,
    "off_peak": 0.3,
    "ultra_low": 0.1,
}

# Peak share of a typical TOU household; also used when no distribution is known
REFERENCE_PEAK_SHARE = 0.35

# Fraction of throughput that displaces peak imports at the reference share
BASE_SHIFT_FRACTION = 0.60
MIN_SHIFT_SCALE = 0.5
MAX_SHIFT_SCALE = 1.5

# Average price spread captured per shifted kWh ($/kWh)
ARBITRAGE_SPREAD = 0.10

MAX_SAVINGS_PERCENT = 15.0

# Share of the remaining (un-offset) bill the battery can remove at most
REMAINING_BILL_SHARE = 0.5


def effective_peak_share(distribution: Optional[UsageDistribution]) -> float:
    """Peak-weighted share of usage, 0-1."""
    if distribution is None:
        return REFERENCE_PEAK_SHARE
    weighted = (
        distribution.on_peak_percent * PEAK_WEIGHTS["on_peak"]
        + distribution.mid_peak_percent * PEAK_WEIGHTS["mid_peak"]
        + distribution.off_peak_percent * PEAK_WEIGHTS["off_peak"]
        + (distribution.ultra_low_percent or 0.0) * PEAK_WEIGHTS["ultra_low"]
    )
    return weighted / 100.0


def savings_cap_percent(bill_offset_percent: float) -> float:
    """The battery can remove at most half of what solar leaves, and never more than 15%."""
    remaining = max(0.0, 100.0 - bill_offset_percent)
    return min(MAX_SAVINGS_PERCENT, remaining * REMAINING_BILL_SHARE)


def estimate_battery_savings(battery: BatteryInputs,
                             import_cost: float,
                             bill_offset_percent: float,
                             distribution: Optional[UsageDistribution] = None,
                             ai_mode: bool = False) -> BatteryArbitrageResult:
    """Estimate the extra bill reduction from a battery.

    Args:
        battery: Battery (or combined bank) specification.
        import_cost: Annual import cost before credits ($).
        bill_offset_percent: Share of import cost already covered by solar (0-100).
        distribution: Usage distribution; None uses the reference peak share.
        ai_mode: Allow grid charging (more cycles per day).

    Returns:
        BatteryArbitrageResult with savings in percent and dollars.
    """
    cycles = AI_MODE_CYCLES_PER_DAY if ai_mode else SOLAR_ONLY_CYCLES_PER_DAY
    throughput = battery.usable_kwh * cycles * 365 * battery.round_trip_efficiency
    peak_share = effective_peak_share(distribution)
    scale = min(MAX_SHIFT_SCALE, max(MIN_SHIFT_SCALE, peak_share / REFERENCE_PEAK_SHARE))
    shift_fraction = BASE_SHIFT_FRACTION * scale
    cap = savings_cap_percent(bill_offset_percent)

    if import_cost <= 0:
        percent = 0.0
    else:
        raw_savings = throughput * shift_fraction * ARBITRAGE_SPREAD
        percent = min(cap, max(0.0, raw_savings / import_cost * 100.0))

    logger.debug("Battery: throughput %.0f kWh, peak share %.3f, savings %.2f%% (cap %.2f%%)",
                 throughput, peak_share, percent, cap)
    return BatteryArbitrageResult(
        battery_savings_percent=percent,
        estimated_savings=percent / 100.0 * max(0.0, import_cost),
        annual_throughput_kwh=throughput,
        effective_peak_share=peak_share,
        ai_mode=ai_mode,
        cap_percent=cap,
    )
