"""Usage and production allocation across the periods of a rate plan.

Annual usage is first split into months (seasonal profile, or caller
supplied monthly values), then across the plan's periods by the usage
distribution. Monthly production is spread evenly over daylight hours and
each period receives its share of the month's daylight hours on the real
calendar of the simulation year.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from netmeter.models.errors import InvalidDistributionError
from netmeter.models.rate_plans import PLAN_TOU, PLAN_ULO, RatePlan
from netmeter.models.request import UsageDistribution

logger = logging.getLogger(__name__)

# Share of annual usage per month (Ontario: winter heating, summer cooling).
# Normalized before use.
DEFAULT_MONTHLY_USAGE_PROFILE = (
    11.0, 10.0, 8.5, 7.0, 6.5, 7.5,
    9.5, 9.5, 7.5, 7.0, 8.0, 9.5,
)

# Hours of day with solar production (07:00 to 20:00)
DAYLIGHT_HOURS = tuple(range(7, 20))

# Plans whose usage split needs a caller-supplied distribution
DISTRIBUTION_PLANS = (PLAN_TOU, PLAN_ULO)


@dataclass(frozen=True)
class MonthAllocation:
    """Usage and production attributed to each period of one month."""

    month: int
    usage_kwh: float
    production_kwh: float
    usage_by_period: Dict[str, float]
    production_by_period: Dict[str, float]


def monthly_usage_split(annual_usage_kwh: float,
                        monthly_usage_kwh: Optional[Sequence[float]] = None) -> List[float]:
    """Return 12 monthly usage values.

    Caller supplied monthly values win; otherwise the annual total is split
    with DEFAULT_MONTHLY_USAGE_PROFILE.
    """
    if monthly_usage_kwh is not None:
        return [float(v) for v in monthly_usage_kwh]
    total = sum(DEFAULT_MONTHLY_USAGE_PROFILE)
    return [annual_usage_kwh * share / total for share in DEFAULT_MONTHLY_USAGE_PROFILE]


def count_period_hours(plan: RatePlan, year: int, month: int,
                       hours: Sequence[int] = DAYLIGHT_HOURS) -> Dict[str, int]:
    """Count the hours of a month falling in each period.

    Args:
        plan: Rate plan providing the hour-to-period mapping.
        year: Calendar year.
        month: Calendar month (1-12).
        hours: Hours of day to count (daylight hours by default).

    Returns:
        Period label -> number of hours.
    """
    counts = {label: 0 for label in plan.labels}
    days_in_month = calendar.monthrange(year, month)[1]
    for day_number in range(1, days_in_month + 1):
        day = date(year, month, day_number)
        for hour in hours:
            counts[plan.period_at(day, hour).label] += 1
    return counts


def _usage_shares(plan: RatePlan, year: int, month: int,
                  distribution: Optional[UsageDistribution]) -> Dict[str, float]:
    if plan.plan_id in DISTRIBUTION_PLANS:
        if distribution is None or not distribution.is_valid():
            total = distribution.total_percent if distribution is not None else 0.0
            raise InvalidDistributionError(plan.plan_id, total)
        return distribution.shares_for(plan)
    # Plans without time-of-day pricing split usage by clock hours
    counts = count_period_hours(plan, year, month, hours=range(24))
    total_hours = sum(counts.values())
    return {label: n / total_hours for label, n in counts.items()}


def allocate(plan: RatePlan,
             monthly_production_kwh: Sequence[float],
             annual_usage_kwh: float,
             distribution: Optional[UsageDistribution],
             year: int,
             monthly_usage_kwh: Optional[Sequence[float]] = None) -> List[MonthAllocation]:
    """Attribute each month's usage and production to the plan's periods.

    Args:
        plan: Rate plan to allocate against.
        monthly_production_kwh: 12 monthly production values (Jan-Dec).
        annual_usage_kwh: Annual consumption.
        distribution: Usage shares by period. Required for TOU and ULO.
        year: Simulation year.
        monthly_usage_kwh: Optional 12 monthly usage values.

    Returns:
        Twelve MonthAllocation entries in calendar order.

    Raises:
        InvalidDistributionError: If the plan needs a distribution and it is
            missing or does not sum to 100% within tolerance.
    """
    usage_by_month = monthly_usage_split(annual_usage_kwh, monthly_usage_kwh)
    allocations = []
    for month in range(1, 13):
        usage = usage_by_month[month - 1]
        production = float(monthly_production_kwh[month - 1])
        shares = _usage_shares(plan, year, month, distribution)

        daylight = count_period_hours(plan, year, month)
        daylight_total = sum(daylight.values())
        production_by_period = {
            label: production * n / daylight_total for label, n in daylight.items()
        }
        usage_by_period = {label: usage * shares.get(label, 0.0) for label in plan.labels}

        allocations.append(MonthAllocation(
            month=month,
            usage_kwh=usage,
            production_kwh=production,
            usage_by_period=usage_by_period,
            production_by_period=production_by_period,
        ))
    logger.debug("Allocated %s usage/production over %d periods for %d",
                 plan.plan_id, len(plan.labels), year)
    return allocations
