"""Net metering engine entry points.

calculate_net_metering runs one plan for a request; compare_plans runs the
three Ontario plans side by side with payback projections;
handle_net_metering_payload is the JSON-dict entry point used by the
application's net metering endpoint.
"""

import logging
from dataclasses import replace
from typing import Optional

from netmeter.models.alberta import BATTERY_NOT_SUPPORTED_WARNING, AlbertaSolarClubCalculator
from netmeter.models.battery import estimate_battery_savings
from netmeter.models.errors import InvalidDistributionError, InvalidProductionError, NetMeteringError
from netmeter.models.netting import PlanCalculator, TieredCalculator, TimeOfUseCalculator
from netmeter.models.projection import (
    DEFAULT_ESCALATION_RATE,
    DEFAULT_PROJECTION_YEARS,
    project_savings,
    select_best_plan,
)
from netmeter.models.rate_plans import (
    DEFAULT_REGISTRY,
    PLAN_ALBERTA,
    PLAN_PRIORITY,
    PLAN_TIERED,
    RatePlan,
    RateRegistry,
    is_alberta,
)
from netmeter.models.request import NetMeteringRequest
from netmeter.models.results import NetMeteringResult, PlanComparison

logger = logging.getLogger(__name__)


def calculator_for(plan: RatePlan, registry: Optional[RateRegistry] = None) -> PlanCalculator:
    """Pick the calculator variant for a plan."""
    if plan.plan_id == PLAN_ALBERTA:
        return AlbertaSolarClubCalculator(plan)
    if plan.plan_id == PLAN_TIERED:
        return TieredCalculator(plan, (registry or DEFAULT_REGISTRY).tiers)
    return TimeOfUseCalculator(plan)


def resolve_request_plan(request: NetMeteringRequest,
                         registry: Optional[RateRegistry] = None) -> RatePlan:
    """Plan a request is calculated against.

    Alberta requests always use the Solar Club plan. Otherwise a custom
    plan on the request wins over the registry plan for its id.
    """
    registry = registry or DEFAULT_REGISTRY
    if is_alberta(request.province):
        if request.rate_plan is not None and request.rate_plan.plan_id == PLAN_ALBERTA:
            return request.rate_plan
        return registry.get(PLAN_ALBERTA)
    if request.rate_plan is not None:
        return request.rate_plan
    return registry.get(request.rate_plan_id)


def calculate_net_metering(request: NetMeteringRequest,
                           registry: Optional[RateRegistry] = None) -> NetMeteringResult:
    """Simulate one year of net metering for a request.

    Args:
        request: Calculation request.
        registry: Rate registry to draw plans from; defaults to the
            compiled-in OEB rates.

    Returns:
        NetMeteringResult. A plan whose usage distribution is invalid is
        returned withheld (valid=False) with an explanatory warning.

    Raises:
        InvalidProductionError: If the production forecast is all zero.
    """
    if request.annual_solar_production_kwh <= 0:
        raise InvalidProductionError("Solar production forecast is zero for every month")

    plan = resolve_request_plan(request, registry)
    logger.info("Calculating %s for %.0f kWh production, %.0f kWh usage (%d)",
                plan.plan_id, request.annual_solar_production_kwh,
                request.annual_usage_kwh, request.year)

    calculator = calculator_for(plan, registry)
    try:
        result = calculator.calculate(request)
    except InvalidDistributionError as e:
        logger.warning("Withholding %s result: %s", plan.plan_id, e)
        return NetMeteringResult.withheld(plan.plan_id, plan.name, request.year, str(e))

    if request.battery is not None:
        if plan.plan_id == PLAN_ALBERTA:
            result.warnings.append(BATTERY_NOT_SUPPORTED_WARNING)
        else:
            result.battery = estimate_battery_savings(
                request.battery,
                import_cost=result.annual.import_cost,
                bill_offset_percent=result.annual.bill_offset_percent,
                distribution=request.usage_distribution,
                ai_mode=request.ai_mode,
            )
    return result


def calculate_plan(request: NetMeteringRequest, plan_id: str,
                   registry: Optional[RateRegistry] = None) -> NetMeteringResult:
    """Calculate a request against a specific Ontario plan id."""
    return calculate_net_metering(replace(request, rate_plan_id=plan_id, rate_plan=None), registry)


def compare_plans(request: NetMeteringRequest,
                  net_investment_cost: float = 0.0,
                  escalation_rate: float = DEFAULT_ESCALATION_RATE,
                  years: int = DEFAULT_PROJECTION_YEARS,
                  registry: Optional[RateRegistry] = None) -> PlanComparison:
    """Run tou, ulo and tiered independently and project each one.

    A withheld plan does not affect its siblings; its projection is None.

    Raises:
        ValueError: If the request is for Alberta, which has a single program.
    """
    if is_alberta(request.province):
        raise ValueError("Plan comparison covers the Ontario plans; Alberta uses the Solar Club")
    comparison = PlanComparison()
    for plan_id in PLAN_PRIORITY:
        result = calculate_plan(request, plan_id, registry)
        comparison.results[plan_id] = result
        if result.valid:
            comparison.projections[plan_id] = project_savings(
                result.annual_savings_with_battery, net_investment_cost, escalation_rate, years
            )
        else:
            comparison.projections[plan_id] = None
    comparison.best_plan_id = select_best_plan(comparison.results)
    logger.debug("Best plan: %s", comparison.best_plan_id)
    return comparison


def handle_net_metering_payload(payload: dict,
                                registry: Optional[RateRegistry] = None) -> dict:
    """JSON-dict entry point mirroring the net metering endpoint.

    Returns:
        {"success": True, "data": {...}, "ratePlan": {"id", "name"}} or
        {"success": False, "error": message, "details": ...}.
    """
    if not isinstance(payload, dict):
        return {"success": False, "error": "Request body must be a JSON object"}
    try:
        request = NetMeteringRequest.from_dict(payload)
        result = calculate_net_metering(request, registry)
    except NetMeteringError as e:
        logger.info("Rejected net metering request: %s", e)
        return {"success": False, "error": str(e), "details": type(e).__name__}
    except (ValueError, TypeError, KeyError) as e:
        logger.info("Rejected net metering request: %s", e)
        return {"success": False, "error": "Invalid request", "details": str(e)}

    return {
        "success": True,
        "data": result.to_dict(),
        "ratePlan": {"id": result.plan_id, "name": result.plan_name},
    }
