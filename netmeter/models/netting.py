"""Period netting and the per-plan calculators.

Each plan family is a PlanCalculator variant exposing the same three steps:

    allocate  -> usage/production per period per month
    net       -> exports, imports, credits and costs per period per month
    summarize -> credit bank pass, monthly ledger, annual and period totals

Netting is done per period, never on monthly totals: a surplus in one
period cannot offset a deficit in another period of the same month. Surplus
only becomes fungible across months through the credit bank.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from netmeter.models.allocation import MonthAllocation, allocate
from netmeter.models.credit_bank import CreditBank
from netmeter.models.rate_plans import (
    DEFAULT_TIER_SCHEDULE,
    PLAN_TIERED,
    PLAN_TOU,
    PLAN_ULO,
    RatePlan,
    TierSchedule,
)
from netmeter.models.request import NetMeteringRequest
from netmeter.models.results import (
    AnnualSummary,
    MonthlyRecord,
    NetMeteringResult,
    PeriodBreakdown,
    compute_bill_offset,
)

logger = logging.getLogger(__name__)

# Production below this share of load triggers an advisory warning
UNDER_PRODUCTION_RATIO = 0.6


@dataclass(frozen=True)
class PeriodNetting:
    """Netting outcome for one period of one month."""

    label: str
    production_kwh: float
    usage_kwh: float
    exported_kwh: float
    imported_kwh: float
    export_credits: float
    import_cost: float


@dataclass
class MonthNetting:
    """All period nettings of one month."""

    month: int
    production_kwh: float
    usage_kwh: float
    periods: List[PeriodNetting] = field(default_factory=list)

    @property
    def exported_kwh(self) -> float:
        return sum(p.exported_kwh for p in self.periods)

    @property
    def imported_kwh(self) -> float:
        return sum(p.imported_kwh for p in self.periods)

    @property
    def export_credits(self) -> float:
        return sum(p.export_credits for p in self.periods)

    @property
    def import_cost(self) -> float:
        return sum(p.import_cost for p in self.periods)


def net_period(label: str, production_kwh: float, usage_kwh: float,
               import_rate: float, export_rate: float) -> PeriodNetting:
    """Net production against usage within a single period.

    A positive net is exported and credited at export_rate; a negative net
    is imported and charged at import_rate.
    """
    net = production_kwh - usage_kwh
    exported = max(0.0, net)
    imported = max(0.0, -net)
    return PeriodNetting(
        label=label,
        production_kwh=production_kwh,
        usage_kwh=usage_kwh,
        exported_kwh=exported,
        imported_kwh=imported,
        export_credits=exported * export_rate,
        import_cost=imported * import_rate,
    )


class PlanCalculator:
    """Base calculator; subclasses pick allocation and rate rules.

    Args:
        plan: Rate plan the calculator nets against.
    """

    plan_ids: Tuple[str, ...] = ()

    def __init__(self, plan: RatePlan):
        if self.plan_ids and plan.plan_id not in self.plan_ids:
            raise ValueError(
                f"{type(self).__name__} cannot calculate plan '{plan.plan_id}'"
            )
        self.plan = plan

    def allocate(self, request: NetMeteringRequest) -> List[MonthAllocation]:
        return allocate(
            self.plan,
            request.monthly_solar_production_kwh,
            request.annual_usage_kwh,
            request.usage_distribution,
            request.year,
            request.monthly_usage_kwh,
        )

    def rates_for(self, allocation: MonthAllocation, label: str) -> Tuple[float, float]:
        """Return (import_rate, export_rate) for a period of a month."""
        period = self.plan.get_period(label)
        return period.import_rate, period.export_rate

    def net(self, allocations: List[MonthAllocation]) -> List[MonthNetting]:
        months = []
        for allocation in allocations:
            month = MonthNetting(
                month=allocation.month,
                production_kwh=allocation.production_kwh,
                usage_kwh=allocation.usage_kwh,
            )
            for label in self.plan.labels:
                production = allocation.production_by_period.get(label, 0.0)
                usage = allocation.usage_by_period.get(label, 0.0)
                if production == 0.0 and usage == 0.0:
                    continue
                import_rate, export_rate = self.rates_for(allocation, label)
                month.periods.append(net_period(label, production, usage, import_rate, export_rate))
            months.append(month)
        return months

    def period_key(self, label: str) -> str:
        """Label under which a period is reported in the by-period breakdown."""
        return label

    def summarize(self, months: List[MonthNetting], request: NetMeteringRequest) -> NetMeteringResult:
        """Run the credit bank over the months and build the result."""
        bank = CreditBank()
        monthly: List[MonthlyRecord] = []
        by_period: Dict[str, PeriodBreakdown] = {}

        for index, month in enumerate(months):
            step = bank.step(index, month.export_credits, month.import_cost)
            monthly.append(MonthlyRecord(
                month=month.month,
                year=request.year,
                solar_production_kwh=month.production_kwh,
                usage_kwh=month.usage_kwh,
                exported_kwh=month.exported_kwh,
                imported_kwh=month.imported_kwh,
                export_credits_earned=month.export_credits,
                import_cost=month.import_cost,
                credit_applied=step.credit_applied,
                credit_rollover_balance=step.balance,
                credit_expired=step.expired,
                net_bill=step.net_bill,
            ))
            for period in month.periods:
                key = self.period_key(period.label)
                breakdown = by_period.setdefault(key, PeriodBreakdown(period=key))
                breakdown.add(period.exported_kwh, period.imported_kwh,
                              period.export_credits, period.import_cost)

        annual = self._annual_summary(monthly, bank)
        warnings = list(bank.warnings)
        if annual.total_load_kwh <= 0:
            warnings.append("Annual usage is zero; all production is treated as exported.")
        elif annual.total_solar_production_kwh < annual.total_load_kwh * UNDER_PRODUCTION_RATIO:
            warnings.append(
                "Your solar system covers less than 60% of your usage. "
                "Consider adding battery storage to maximize savings."
            )

        return NetMeteringResult(
            plan_id=self.plan.plan_id,
            plan_name=self.plan.name,
            year=request.year,
            annual=annual,
            monthly=monthly,
            by_period=[by_period[key] for key in self._ordered_keys(by_period)],
            warnings=warnings,
        )

    def _ordered_keys(self, by_period: Dict[str, PeriodBreakdown]) -> List[str]:
        keys = []
        for label in self.plan.labels:
            key = self.period_key(label)
            if key in by_period and key not in keys:
                keys.append(key)
        return keys

    @staticmethod
    def _annual_summary(monthly: List[MonthlyRecord], bank: CreditBank) -> AnnualSummary:
        export_credits = sum(m.export_credits_earned for m in monthly)
        import_cost = sum(m.import_cost for m in monthly)
        bill_offset, ratio = compute_bill_offset(import_cost, export_credits)
        return AnnualSummary(
            total_solar_production_kwh=sum(m.solar_production_kwh for m in monthly),
            total_load_kwh=sum(m.usage_kwh for m in monthly),
            total_exported_kwh=sum(m.exported_kwh for m in monthly),
            total_imported_kwh=sum(m.imported_kwh for m in monthly),
            export_credits=export_credits,
            import_cost=import_cost,
            net_annual_bill=max(0.0, import_cost - export_credits),
            bill_offset_percent=bill_offset,
            credit_to_import_ratio=ratio,
            credit_carry_forward=bank.balance,
            credit_expired=bank.total_expired,
        )

    def calculate(self, request: NetMeteringRequest) -> NetMeteringResult:
        return self.summarize(self.net(self.allocate(request)), request)


class TimeOfUseCalculator(PlanCalculator):
    """TOU and ULO: usage split by the caller's distribution, period rates."""

    plan_ids = (PLAN_TOU, PLAN_ULO)


class TieredCalculator(PlanCalculator):
    """Tiered: one period, monthly blended tier rate, export at blend + adder.

    Args:
        plan: Tiered rate plan.
        tiers: Tier schedule; defaults to the registry schedule.
    """

    plan_ids = (PLAN_TIERED,)

    def __init__(self, plan: RatePlan, tiers: Optional[TierSchedule] = None):
        super().__init__(plan)
        self.tiers = tiers or DEFAULT_TIER_SCHEDULE

    def rates_for(self, allocation: MonthAllocation, label: str) -> Tuple[float, float]:
        return (self.tiers.blended_rate(allocation.usage_kwh),
                self.tiers.export_rate(allocation.usage_kwh))
