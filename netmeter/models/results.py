"""Result models produced by the net metering engine.

Defines the monthly ledger record, per-period and annual summaries, the
Alberta seasonal summary, the battery overlay result, and multi-year
projections. All models serialize to the camelCase response shape via
to_dict() and can be rebuilt with from_dict().
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class MonthlyRecord:
    """Billing outcome of one simulated month.

    Attributes:
        month: Calendar month (1-12).
        year: Calendar year of the month.
        solar_production_kwh: Production in the month.
        usage_kwh: Consumption in the month.
        exported_kwh: Period surpluses sent to the grid.
        imported_kwh: Period deficits drawn from the grid.
        export_credits_earned: Value of exports ($).
        import_cost: Cost of imports before credits ($).
        credit_applied: Credits used against import_cost, same-month and banked ($).
        credit_rollover_balance: Bank balance after the month ($).
        credit_expired: Banked credit forfeited at the start of the month ($).
        net_bill: import_cost - credit_applied, never negative ($).
    """

    month: int
    year: int
    solar_production_kwh: float
    usage_kwh: float
    exported_kwh: float
    imported_kwh: float
    export_credits_earned: float
    import_cost: float
    credit_applied: float
    credit_rollover_balance: float
    credit_expired: float
    net_bill: float

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "year": self.year,
            "solarProductionKwh": self.solar_production_kwh,
            "usageKwh": self.usage_kwh,
            "exportedKwh": self.exported_kwh,
            "importedKwh": self.imported_kwh,
            "exportCreditsEarned": self.export_credits_earned,
            "importCost": self.import_cost,
            "creditApplied": self.credit_applied,
            "creditRolloverBalance": self.credit_rollover_balance,
            "creditExpired": self.credit_expired,
            "netBill": self.net_bill,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MonthlyRecord":
        return cls(
            month=data["month"],
            year=data["year"],
            solar_production_kwh=data["solarProductionKwh"],
            usage_kwh=data["usageKwh"],
            exported_kwh=data["exportedKwh"],
            imported_kwh=data["importedKwh"],
            export_credits_earned=data["exportCreditsEarned"],
            import_cost=data["importCost"],
            credit_applied=data["creditApplied"],
            credit_rollover_balance=data["creditRolloverBalance"],
            credit_expired=data.get("creditExpired", 0.0),
            net_bill=data["netBill"],
        )


@dataclass
class PeriodBreakdown:
    """Annual totals for one rate period (or Alberta season)."""

    period: str
    exported_kwh: float = 0.0
    imported_kwh: float = 0.0
    export_credits: float = 0.0
    import_cost: float = 0.0

    def add(self, exported_kwh: float, imported_kwh: float,
            export_credits: float, import_cost: float) -> None:
        self.exported_kwh += exported_kwh
        self.imported_kwh += imported_kwh
        self.export_credits += export_credits
        self.import_cost += import_cost

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "exportedKwh": self.exported_kwh,
            "importedKwh": self.imported_kwh,
            "exportCredits": self.export_credits,
            "importCost": self.import_cost,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PeriodBreakdown":
        return cls(
            period=data["period"],
            exported_kwh=data["exportedKwh"],
            imported_kwh=data["importedKwh"],
            export_credits=data["exportCredits"],
            import_cost=data["importCost"],
        )


def compute_bill_offset(import_cost: float, export_credits: float) -> tuple:
    """Return (bill_offset_percent, credit_to_import_ratio).

    The ratio is export_credits / import_cost * 100 and may exceed 100 when
    credits are surplus. The offset is the same figure clamped to [0, 100],
    which equals (import_cost - max(0, net_annual_bill)) / import_cost * 100.
    With no import cost at all the bill is fully offset.
    """
    if import_cost <= 0:
        return 100.0, 100.0
    ratio = export_credits / import_cost * 100.0
    return min(100.0, max(0.0, ratio)), ratio


@dataclass
class AnnualSummary:
    """Aggregate of the twelve monthly records.

    Attributes:
        total_solar_production_kwh: Annual production.
        total_load_kwh: Annual consumption.
        total_exported_kwh: Sum of period surpluses.
        total_imported_kwh: Sum of period deficits.
        export_credits: Value of all exports ($).
        import_cost: Cost of all imports before credits ($).
        net_annual_bill: max(0, import_cost - export_credits) ($).
        bill_offset_percent: Share of import cost covered by credits, 0-100.
        credit_to_import_ratio: Uncapped credits / import cost * 100.
        credit_carry_forward: Unused credit left in the bank at year end ($).
        credit_expired: Credit forfeited during the window ($).
    """

    total_solar_production_kwh: float = 0.0
    total_load_kwh: float = 0.0
    total_exported_kwh: float = 0.0
    total_imported_kwh: float = 0.0
    export_credits: float = 0.0
    import_cost: float = 0.0
    net_annual_bill: float = 0.0
    bill_offset_percent: float = 0.0
    credit_to_import_ratio: float = 0.0
    credit_carry_forward: float = 0.0
    credit_expired: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalSolarProductionKwh": self.total_solar_production_kwh,
            "totalLoadKwh": self.total_load_kwh,
            "totalExportedKwh": self.total_exported_kwh,
            "totalImportedKwh": self.total_imported_kwh,
            "exportCredits": self.export_credits,
            "importCost": self.import_cost,
            "netAnnualBill": self.net_annual_bill,
            "billOffsetPercent": self.bill_offset_percent,
            "creditToImportRatio": self.credit_to_import_ratio,
            "creditCarryForward": self.credit_carry_forward,
            "creditExpired": self.credit_expired,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnnualSummary":
        return cls(
            total_solar_production_kwh=data["totalSolarProductionKwh"],
            total_load_kwh=data["totalLoadKwh"],
            total_exported_kwh=data["totalExportedKwh"],
            total_imported_kwh=data["totalImportedKwh"],
            export_credits=data["exportCredits"],
            import_cost=data["importCost"],
            net_annual_bill=data["netAnnualBill"],
            bill_offset_percent=data["billOffsetPercent"],
            credit_to_import_ratio=data.get("creditToImportRatio", data["billOffsetPercent"]),
            credit_carry_forward=data.get("creditCarryForward", 0.0),
            credit_expired=data.get("creditExpired", 0.0),
        )


@dataclass
class SeasonTotals:
    """Alberta Solar Club totals for one season."""

    months: List[int] = field(default_factory=list)
    exported_kwh: float = 0.0
    imported_kwh: float = 0.0
    export_credits: float = 0.0
    import_cost: float = 0.0

    def to_dict(self) -> dict:
        return {
            "months": list(self.months),
            "exportedKwh": self.exported_kwh,
            "importedKwh": self.imported_kwh,
            "exportCredits": self.export_credits,
            "importCost": self.import_cost,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SeasonTotals":
        return cls(
            months=list(data.get("months", [])),
            exported_kwh=data["exportedKwh"],
            imported_kwh=data["importedKwh"],
            export_credits=data["exportCredits"],
            import_cost=data["importCost"],
        )


@dataclass
class AlbertaSeasonSummary:
    """Season split and program extras for the Alberta Solar Club.

    Attributes:
        high_production_season: April-September totals (premium export rate).
        low_production_season: October-March totals (low symmetric rate).
        cash_back_amount: 3% of annual import cost ($).
        estimated_carbon_credits: Carbon credit value of exported energy ($).
    """

    high_production_season: SeasonTotals = field(default_factory=SeasonTotals)
    low_production_season: SeasonTotals = field(default_factory=SeasonTotals)
    cash_back_amount: float = 0.0
    estimated_carbon_credits: float = 0.0

    def to_dict(self) -> dict:
        return {
            "highProductionSeason": self.high_production_season.to_dict(),
            "lowProductionSeason": self.low_production_season.to_dict(),
            "cashBackAmount": self.cash_back_amount,
            "estimatedCarbonCredits": self.estimated_carbon_credits,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlbertaSeasonSummary":
        return cls(
            high_production_season=SeasonTotals.from_dict(data["highProductionSeason"]),
            low_production_season=SeasonTotals.from_dict(data["lowProductionSeason"]),
            cash_back_amount=data["cashBackAmount"],
            estimated_carbon_credits=data["estimatedCarbonCredits"],
        )


@dataclass
class BatteryArbitrageResult:
    """Estimated extra bill reduction from a battery.

    Attributes:
        battery_savings_percent: Bill reduction as % of import cost, within
            [0, min(15, remaining bill % x 0.5)].
        estimated_savings: The same reduction in dollars per year.
        annual_throughput_kwh: Energy cycled through the battery per year.
        effective_peak_share: Peak-weighted usage share used for scaling.
        ai_mode: Whether grid charging was allowed.
        cap_percent: The cap that applied.
    """

    battery_savings_percent: float = 0.0
    estimated_savings: float = 0.0
    annual_throughput_kwh: float = 0.0
    effective_peak_share: float = 0.0
    ai_mode: bool = False
    cap_percent: float = 0.0

    def to_dict(self) -> dict:
        return {
            "batterySavingsPercent": self.battery_savings_percent,
            "estimatedSavings": self.estimated_savings,
            "annualThroughputKwh": self.annual_throughput_kwh,
            "effectivePeakShare": self.effective_peak_share,
            "aiMode": self.ai_mode,
            "capPercent": self.cap_percent,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BatteryArbitrageResult":
        return cls(
            battery_savings_percent=data["batterySavingsPercent"],
            estimated_savings=data.get("estimatedSavings", 0.0),
            annual_throughput_kwh=data.get("annualThroughputKwh", 0.0),
            effective_peak_share=data.get("effectivePeakShare", 0.0),
            ai_mode=data.get("aiMode", False),
            cap_percent=data.get("capPercent", 0.0),
        )


@dataclass
class YearProjection:
    year: int
    annual_savings: float
    cumulative_savings: float
    rate_multiplier: float

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "annualSavings": self.annual_savings,
            "cumulativeSavings": self.cumulative_savings,
            "rateMultiplier": self.rate_multiplier,
        }


@dataclass
class ProjectionResult:
    """Multi-year savings projection.

    Attributes:
        payback_years: Fractional payback period, or None when unreachable.
        net_profit: Cumulative savings over the horizon minus net cost ($).
        total_savings: Cumulative savings over the horizon ($).
        annual_savings: Year-1 savings before escalation ($).
        net_investment_cost: Cost after rebates ($).
        escalation_rate: Annual electricity price escalation (decimal).
        years: Projection horizon.
        irr: Internal rate of return of the cash flows, or None.
        yearly_projections: One entry per projected year.
    """

    payback_years: Optional[float] = None
    net_profit: float = 0.0
    total_savings: float = 0.0
    annual_savings: float = 0.0
    net_investment_cost: float = 0.0
    escalation_rate: float = 0.0
    years: int = 25
    irr: Optional[float] = None
    yearly_projections: List[YearProjection] = field(default_factory=list)

    @property
    def payback_reachable(self) -> bool:
        return self.payback_years is not None

    def to_dict(self) -> dict:
        return {
            "paybackYears": self.payback_years,
            "netProfit": self.net_profit,
            "totalSavings": self.total_savings,
            "annualSavings": self.annual_savings,
            "netInvestmentCost": self.net_investment_cost,
            "escalationRate": self.escalation_rate,
            "years": self.years,
            "irr": self.irr,
            "yearlyProjections": [y.to_dict() for y in self.yearly_projections],
        }


@dataclass
class NetMeteringResult:
    """Full response for one plan calculation.

    A withheld result (valid=False) has annual=None and empty ledgers; its
    warnings explain why.
    """

    plan_id: str
    plan_name: str = ""
    year: int = 0
    valid: bool = True
    annual: Optional[AnnualSummary] = None
    monthly: List[MonthlyRecord] = field(default_factory=list)
    by_period: List[PeriodBreakdown] = field(default_factory=list)
    alberta: Optional[AlbertaSeasonSummary] = None
    battery: Optional[BatteryArbitrageResult] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def withheld(cls, plan_id: str, plan_name: str, year: int, reason: str) -> "NetMeteringResult":
        return cls(plan_id=plan_id, plan_name=plan_name, year=year, valid=False, warnings=[reason])

    def annual_savings(self, include_battery: bool = True) -> float:
        """Year-1 savings: import cost avoided by credits, plus Alberta cash
        back and the battery overlay."""
        if not self.valid or self.annual is None:
            return 0.0
        savings = self.annual.import_cost - self.annual.net_annual_bill
        if self.alberta is not None:
            savings += self.alberta.cash_back_amount
        if include_battery and self.battery is not None:
            savings += self.battery.estimated_savings
        return savings

    @property
    def annual_savings_with_battery(self) -> float:
        return self.annual_savings(include_battery=True)

    def to_dict(self) -> dict:
        data = {
            "planId": self.plan_id,
            "planName": self.plan_name,
            "year": self.year,
            "valid": self.valid,
            "annual": self.annual.to_dict() if self.annual else None,
            "monthly": [m.to_dict() for m in self.monthly],
            "byPeriod": [p.to_dict() for p in self.by_period],
            "warnings": list(self.warnings),
        }
        if self.alberta is not None:
            data["alberta"] = self.alberta.to_dict()
        if self.battery is not None:
            data["battery"] = self.battery.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "NetMeteringResult":
        return cls(
            plan_id=data["planId"],
            plan_name=data.get("planName", ""),
            year=data.get("year", 0),
            valid=data.get("valid", True),
            annual=AnnualSummary.from_dict(data["annual"]) if data.get("annual") else None,
            monthly=[MonthlyRecord.from_dict(m) for m in data.get("monthly", [])],
            by_period=[PeriodBreakdown.from_dict(p) for p in data.get("byPeriod", [])],
            alberta=AlbertaSeasonSummary.from_dict(data["alberta"]) if data.get("alberta") else None,
            battery=BatteryArbitrageResult.from_dict(data["battery"]) if data.get("battery") else None,
            warnings=list(data.get("warnings", [])),
        )


@dataclass
class PlanComparison:
    """Side-by-side results for the Ontario plans.

    Attributes:
        results: Plan id -> calculation result (withheld plans included).
        projections: Plan id -> projection, None for withheld plans.
        best_plan_id: Winner by export credits with fixed priority tie-break.
    """

    results: Dict[str, NetMeteringResult] = field(default_factory=dict)
    projections: Dict[str, Optional[ProjectionResult]] = field(default_factory=dict)
    best_plan_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "projections": {k: (v.to_dict() if v else None) for k, v in self.projections.items()},
            "bestPlanId": self.best_plan_id,
        }
