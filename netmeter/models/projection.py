"""Multi-year savings projection and plan selection.

Year-1 savings escalate with electricity prices; the projection reports
payback, cumulative savings, net profit and IRR over the horizon.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import numpy_financial as npf

from netmeter.models.rate_plans import PLAN_PRIORITY
from netmeter.models.results import NetMeteringResult, ProjectionResult, YearProjection

logger = logging.getLogger(__name__)

DEFAULT_ESCALATION_RATE = 0.03
DEFAULT_PROJECTION_YEARS = 25


def calculate_irr(cash_flows: List[float]) -> Optional[float]:
    r"""Internal rate of return of a cash flow series.

    The IRR is the discount rate r that makes NPV = 0:
        0 = \sum_{t=0}^{N} \frac{CF_t}{(1+IRR)^t}

    Args:
        cash_flows: Cash flows starting at year 0 (year 0 is the investment).

    Returns:
        IRR as a decimal, or None if no real solution exists.
    """
    try:
        result = npf.irr(cash_flows)
    except (ValueError, np.linalg.LinAlgError):
        return None
    if np.isnan(result) or np.isinf(result):
        return None
    return float(result)


def calculate_payback(annual_savings: List[float], net_investment_cost: float) -> Optional[float]:
    """Years until cumulative savings cover the investment.

    Interpolates within the crossing year:
    payback = (year - 1) + remaining cost / that year's savings.

    Returns:
        Fractional years, or None if the cost is never recovered within the
        horizon (or there is nothing to recover, or nothing saved).
    """
    if net_investment_cost <= 0:
        return None
    remaining = net_investment_cost
    for year, savings in enumerate(annual_savings, start=1):
        if savings <= 0:
            continue
        if savings >= remaining:
            return (year - 1) + remaining / savings
        remaining -= savings
    return None


def project_savings(annual_savings: float,
                    net_investment_cost: float,
                    escalation_rate: float = DEFAULT_ESCALATION_RATE,
                    years: int = DEFAULT_PROJECTION_YEARS) -> ProjectionResult:
    """Project escalating savings over a horizon.

    Year n savings are annual_savings x (1 + escalation_rate)^(n-1).

    Args:
        annual_savings: Year-1 savings ($).
        net_investment_cost: System cost after rebates ($).
        escalation_rate: Annual electricity price escalation (decimal).
        years: Projection horizon.

    Returns:
        ProjectionResult; payback_years is None when unreachable.

    Raises:
        ValueError: If years < 1 or escalation_rate <= -1.
    """
    if years < 1:
        raise ValueError(f"years must be >= 1, got {years}")
    if escalation_rate <= -1:
        raise ValueError(f"escalation_rate must be > -1, got {escalation_rate}")

    multipliers = (1 + escalation_rate) ** np.arange(years)
    yearly = annual_savings * multipliers
    cumulative = np.cumsum(yearly)
    total = float(cumulative[-1])

    payback = None
    if annual_savings > 0:
        payback = calculate_payback(yearly.tolist(), net_investment_cost)

    irr = None
    if net_investment_cost > 0 and annual_savings > 0:
        irr = calculate_irr([-net_investment_cost] + yearly.tolist())

    projections = [
        YearProjection(
            year=n + 1,
            annual_savings=float(yearly[n]),
            cumulative_savings=float(cumulative[n]),
            rate_multiplier=float(multipliers[n]),
        )
        for n in range(years)
    ]
    logger.debug("Projection: savings %.2f/yr, cost %.2f, payback %s",
                 annual_savings, net_investment_cost, payback)
    return ProjectionResult(
        payback_years=payback,
        net_profit=total - net_investment_cost,
        total_savings=total,
        annual_savings=annual_savings,
        net_investment_cost=net_investment_cost,
        escalation_rate=escalation_rate,
        years=years,
        irr=irr,
        yearly_projections=projections,
    )


def select_best_plan(results: Dict[str, NetMeteringResult]) -> Optional[str]:
    """Plan with the highest annual export credits.

    Ties go to the plan earlier in PLAN_PRIORITY (tou, ulo, tiered). Withheld
    results are skipped; returns None when no plan is valid.
    """
    best_id = None
    best_credits = None
    ordered = sorted(
        results.items(),
        key=lambda item: PLAN_PRIORITY.index(item[0]) if item[0] in PLAN_PRIORITY else len(PLAN_PRIORITY),
    )
    for plan_id, result in ordered:
        if not result.valid or result.annual is None:
            continue
        credits = result.annual.export_credits
        if best_credits is None or credits > best_credits:
            best_id, best_credits = plan_id, credits
    return best_id
