"""Input validation functions for net metering requests.

Each validator returns a tuple of (is_valid: bool, message: str).
Messages describe errors or warnings for user display.
"""

from typing import List, Optional, Sequence, Tuple

from netmeter.models.allocation import DISTRIBUTION_PLANS
from netmeter.models.rate_plans import PLAN_TOU, PLAN_ULO, is_alberta
from netmeter.models.request import (
    DISTRIBUTION_TOLERANCE_PERCENT,
    NetMeteringRequest,
    UsageDistribution,
)


def validate_distribution(distribution: Optional[UsageDistribution], plan_id: str) -> Tuple[bool, str]:
    """Validate a usage distribution for a plan.

    Args:
        distribution: Usage shares, or None.
        plan_id: Plan the distribution will be used with.

    Returns:
        (is_valid, message) tuple.
    """
    if plan_id not in DISTRIBUTION_PLANS:
        return True, ""
    if distribution is None:
        return False, f"A usage distribution is required for the {plan_id.upper()} plan."
    total = distribution.total_percent
    if not distribution.is_valid():
        return False, (f"Usage distribution sums to {total:.1f}%; it must total 100% "
                       f"(within {DISTRIBUTION_TOLERANCE_PERCENT}%).")
    if plan_id == PLAN_ULO and distribution.ultra_low_percent is None:
        return True, "Warning: No ultra-low share given; overnight usage is billed as off-peak."
    return True, ""


def validate_production(monthly_kwh: Sequence[float]) -> Tuple[bool, str]:
    """Validate a 12-month production forecast.

    Args:
        monthly_kwh: Monthly production, Jan-Dec.

    Returns:
        (is_valid, message) tuple.
    """
    if len(monthly_kwh) != 12:
        return False, f"Production forecast must have 12 monthly values, got {len(monthly_kwh)}."
    if any(v < 0 for v in monthly_kwh):
        return False, "Monthly production cannot be negative."
    total = sum(monthly_kwh)
    if total <= 0:
        return False, "Production forecast is zero for every month."
    if max(monthly_kwh) > 0.5 * total:
        return True, "Warning: One month holds more than half of annual production. Verify the forecast."
    return True, ""


def validate_usage(annual_usage_kwh: float) -> Tuple[bool, str]:
    """Validate annual household consumption."""
    if annual_usage_kwh < 0:
        return False, "Annual usage cannot be negative."
    if annual_usage_kwh == 0:
        return True, "Warning: Annual usage is zero; all production will be exported."
    if annual_usage_kwh > 100_000:
        return True, f"Warning: {annual_usage_kwh:,.0f} kWh/yr is unusually high for a home."
    return True, ""


def validate_battery_efficiency(efficiency: float) -> Tuple[bool, str]:
    """Validate round-trip efficiency.

    Args:
        efficiency: RTE as decimal (e.g., 0.90 for 90%).

    Returns:
        (is_valid, message) tuple.
    """
    if efficiency < 0.70:
        return False, "Round-trip efficiency must be at least 70%."
    if efficiency > 0.98:
        return False, "Round-trip efficiency cannot exceed 98%."
    return True, ""


def validate_escalation_rate(rate: float) -> Tuple[bool, str]:
    """Validate annual electricity price escalation.

    Args:
        rate: Escalation as decimal (e.g., 0.03 for 3%).

    Returns:
        (is_valid, message) tuple.
    """
    if rate < 0:
        return False, "Escalation rate cannot be negative."
    if rate > 0.10:
        return False, "Escalation rate cannot exceed 10%."
    return True, ""


def validate_request(request: NetMeteringRequest,
                     escalation_rate: Optional[float] = None,
                     all_plans: bool = False) -> Tuple[bool, List[str]]:
    """Run all validations on a request.

    Args:
        request: Request to validate.
        escalation_rate: Optional projection escalation to check as well.
        all_plans: Validate for a plan comparison. A bad distribution only
            withholds the time-of-use plans there, so it is reported as a
            warning instead of failing the request.

    Returns:
        (is_valid, messages) where messages includes all errors and warnings.
    """
    messages = []
    is_valid = True

    checks = [
        validate_production(request.monthly_solar_production_kwh),
        validate_usage(request.annual_usage_kwh),
    ]
    if not is_alberta(request.province):
        plan_id = PLAN_TOU if all_plans else request.rate_plan_id
        valid, msg = validate_distribution(request.usage_distribution, plan_id)
        if all_plans and not valid:
            valid, msg = True, f"Warning: {msg} TOU and ULO results will be withheld."
        checks.append((valid, msg))
    if request.battery is not None:
        checks.append(validate_battery_efficiency(request.battery.round_trip_efficiency))
    if escalation_rate is not None:
        checks.append(validate_escalation_rate(escalation_rate))

    for valid, msg in checks:
        if not valid:
            is_valid = False
        if msg:
            messages.append(msg)

    if is_alberta(request.province) and request.battery is not None:
        messages.append("Warning: Battery savings are not estimated for the Alberta Solar Club.")

    return is_valid, messages
