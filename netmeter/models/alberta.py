"""Alberta Solar Club calculator.

The program replaces time-of-day periods with two seasons: April to
September exports earn a premium rate, October to March both directions
use the low rate. Winter production is reduced by a snow loss factor.
Participants also receive a cash back on import cost and an estimated
carbon credit on exported energy.
"""

import logging
from typing import List

from netmeter.models.allocation import MonthAllocation
from netmeter.models.netting import MonthNetting, PlanCalculator
from netmeter.models.rate_plans import (
    HIGH_PRODUCTION_MONTHS,
    LOW_PRODUCTION_MONTHS,
    PLAN_ALBERTA,
)
from netmeter.models.request import NetMeteringRequest
from netmeter.models.results import AlbertaSeasonSummary, NetMeteringResult, SeasonTotals

logger = logging.getLogger(__name__)

CASH_BACK_RATE = 0.03

# $ per exported kWh
CARBON_CREDIT_RATE = 0.01

BATTERY_NOT_SUPPORTED_WARNING = (
    "Battery arbitrage is not modelled for the Alberta Solar Club; "
    "results exclude battery savings."
)


def apply_snow_loss(allocations: List[MonthAllocation], snow_loss_factor: float) -> List[MonthAllocation]:
    """Reduce low-season production by snow_loss_factor."""
    if snow_loss_factor <= 0:
        return allocations
    adjusted = []
    for allocation in allocations:
        if allocation.month not in LOW_PRODUCTION_MONTHS:
            adjusted.append(allocation)
            continue
        keep = 1.0 - snow_loss_factor
        adjusted.append(MonthAllocation(
            month=allocation.month,
            usage_kwh=allocation.usage_kwh,
            production_kwh=allocation.production_kwh * keep,
            usage_by_period=allocation.usage_by_period,
            production_by_period={k: v * keep for k, v in allocation.production_by_period.items()},
        ))
    return adjusted


def season_totals(months: List[MonthNetting], season_months) -> SeasonTotals:
    totals = SeasonTotals(months=list(season_months))
    for month in months:
        if month.month not in season_months:
            continue
        totals.exported_kwh += month.exported_kwh
        totals.imported_kwh += month.imported_kwh
        totals.export_credits += month.export_credits
        totals.import_cost += month.import_cost
    return totals


class AlbertaSolarClubCalculator(PlanCalculator):
    """Seasonal netting with snow loss, cash back and carbon credits."""

    plan_ids = (PLAN_ALBERTA,)

    def allocate(self, request: NetMeteringRequest) -> List[MonthAllocation]:
        allocations = super().allocate(request)
        return apply_snow_loss(allocations, request.snow_loss_factor)

    def summarize(self, months: List[MonthNetting], request: NetMeteringRequest) -> NetMeteringResult:
        result = super().summarize(months, request)
        high = season_totals(months, HIGH_PRODUCTION_MONTHS)
        low = season_totals(months, LOW_PRODUCTION_MONTHS)
        result.alberta = AlbertaSeasonSummary(
            high_production_season=high,
            low_production_season=low,
            cash_back_amount=result.annual.import_cost * CASH_BACK_RATE,
            estimated_carbon_credits=result.annual.total_exported_kwh * CARBON_CREDIT_RATE,
        )
        logger.debug("Alberta seasons: high credits %.2f, low credits %.2f",
                     high.export_credits, low.export_credits)
        return result
