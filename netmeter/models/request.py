"""Input models for a net metering calculation request.

Defines the usage distribution, battery specification, and the request
envelope accepted by the engine. All models support JSON serialization via
to_dict()/from_dict() using the camelCase keys of the request payload.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from netmeter.models.errors import InvalidProductionError, InvalidUsageError
from netmeter.models.rate_plans import (
    MID_PEAK,
    OFF_PEAK,
    ON_PEAK,
    PLAN_TOU,
    ULTRA_LOW,
    RatePlan,
    resolve_plan_id,
)

DISTRIBUTION_TOLERANCE_PERCENT = 0.1
MAX_BATTERIES = 3

# Monthly share of annual production used when only an annual total is known
# (Ontario profile, summer heavier). Normalized before use.
DEFAULT_MONTHLY_PRODUCTION_PROFILE = (
    3.5, 5.0, 7.0, 10.0, 10.0, 10.0,
    10.0, 10.0, 8.0, 6.0, 4.5, 2.5,
)


@dataclass
class UsageDistribution:
    """Share of annual usage falling in each rate period.

    Attributes:
        on_peak_percent: % of usage during on-peak hours.
        mid_peak_percent: % of usage during mid-peak hours.
        off_peak_percent: % of usage during off-peak hours.
        ultra_low_percent: % of usage during ultra-low hours (ULO only).
    """

    on_peak_percent: float = 0.0
    mid_peak_percent: float = 0.0
    off_peak_percent: float = 0.0
    ultra_low_percent: Optional[float] = None

    def __post_init__(self):
        for name in ("on_peak_percent", "mid_peak_percent", "off_peak_percent"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.ultra_low_percent is not None and self.ultra_low_percent < 0:
            raise ValueError(f"ultra_low_percent must be >= 0, got {self.ultra_low_percent}")

    @property
    def total_percent(self) -> float:
        return (self.on_peak_percent + self.mid_peak_percent + self.off_peak_percent
                + (self.ultra_low_percent or 0.0))

    def is_valid(self, tolerance: float = DISTRIBUTION_TOLERANCE_PERCENT) -> bool:
        """True when the shares sum to 100% within tolerance."""
        return abs(self.total_percent - 100.0) <= tolerance + 1e-9

    def shares_for(self, plan: RatePlan) -> dict:
        """Fraction of usage per period label of a plan.

        The ultra-low share folds into off-peak for plans without an
        ultra-low period. Shares are not renormalized.
        """
        labels = plan.labels
        ultra_low = self.ultra_low_percent or 0.0
        percents = {
            ON_PEAK: self.on_peak_percent,
            MID_PEAK: self.mid_peak_percent,
            OFF_PEAK: self.off_peak_percent,
        }
        if ULTRA_LOW in labels:
            percents[ULTRA_LOW] = ultra_low
        else:
            percents[OFF_PEAK] += ultra_low
        return {label: percents.get(label, 0.0) / 100.0 for label in labels}

    def to_dict(self) -> dict:
        data = {
            "onPeakPercent": self.on_peak_percent,
            "midPeakPercent": self.mid_peak_percent,
            "offPeakPercent": self.off_peak_percent,
        }
        if self.ultra_low_percent is not None:
            data["ultraLowPercent"] = self.ultra_low_percent
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "UsageDistribution":
        ultra_low = data.get("ultraLowPercent")
        return cls(
            on_peak_percent=float(data.get("onPeakPercent", 0.0)),
            mid_peak_percent=float(data.get("midPeakPercent", 0.0)),
            off_peak_percent=float(data.get("offPeakPercent", 0.0)),
            ultra_low_percent=float(ultra_low) if ultra_low is not None else None,
        )


# Boundary defaults offered to callers (e.g. the CLI); the engine never
# substitutes these for a missing distribution.
DEFAULT_TOU_DISTRIBUTION = UsageDistribution(on_peak_percent=19, mid_peak_percent=18, off_peak_percent=63)
DEFAULT_ULO_DISTRIBUTION = UsageDistribution(
    on_peak_percent=17.9, mid_peak_percent=33.1, off_peak_percent=23, ultra_low_percent=26
)


@dataclass
class BatteryInputs:
    """Battery (or combined battery bank) specification.

    Attributes:
        usable_kwh: Usable energy capacity after depth-of-discharge limits.
        round_trip_efficiency: AC-AC round-trip efficiency (0-1).
        nominal_kwh: Nameplate capacity.
        inverter_kw: Continuous power rating.
        price: Installed price before rebates ($).
        battery_count: Number of physical batteries combined (1-3).
    """

    usable_kwh: float = 0.0
    round_trip_efficiency: float = 0.90
    nominal_kwh: float = 0.0
    inverter_kw: float = 0.0
    price: float = 0.0
    battery_count: int = 1

    def __post_init__(self):
        if self.usable_kwh <= 0:
            raise ValueError(f"usable_kwh must be > 0, got {self.usable_kwh}")
        if not 0 < self.round_trip_efficiency <= 1.0:
            raise ValueError(
                f"round_trip_efficiency must be in (0, 1], got {self.round_trip_efficiency}"
            )
        if not 1 <= self.battery_count <= MAX_BATTERIES:
            raise ValueError(f"battery_count must be 1-{MAX_BATTERIES}, got {self.battery_count}")

    @classmethod
    def combine(cls, batteries: Sequence["BatteryInputs"]) -> "BatteryInputs":
        """Combine up to three batteries into one bank.

        Capacities, power and price add; efficiency is the capacity-weighted
        mean.
        """
        if not batteries:
            raise ValueError("At least one battery is required")
        count = sum(b.battery_count for b in batteries)
        if count > MAX_BATTERIES:
            raise ValueError(f"At most {MAX_BATTERIES} batteries can be combined, got {count}")
        usable = sum(b.usable_kwh for b in batteries)
        return cls(
            usable_kwh=usable,
            round_trip_efficiency=sum(b.usable_kwh * b.round_trip_efficiency for b in batteries) / usable,
            nominal_kwh=sum(b.nominal_kwh for b in batteries),
            inverter_kw=sum(b.inverter_kw for b in batteries),
            price=sum(b.price for b in batteries),
            battery_count=count,
        )

    def to_dict(self) -> dict:
        return {
            "usableKwh": self.usable_kwh,
            "roundTripEfficiency": self.round_trip_efficiency,
            "nominalKwh": self.nominal_kwh,
            "inverterKw": self.inverter_kw,
            "price": self.price,
            "batteryCount": self.battery_count,
        }

    @classmethod
    def from_dict(cls, data) -> "BatteryInputs":
        """Build from one battery dict or a list of 1-3 battery dicts."""
        if isinstance(data, list):
            return cls.combine([cls.from_dict(item) for item in data])
        return cls(
            usable_kwh=float(data["usableKwh"]),
            round_trip_efficiency=float(data.get("roundTripEfficiency", 0.90)),
            nominal_kwh=float(data.get("nominalKwh", 0.0)),
            inverter_kw=float(data.get("inverterKw", 0.0)),
            price=float(data.get("price", 0.0)),
            battery_count=int(data.get("batteryCount", 1)),
        )


def _as_number(value, what: str, error_cls) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise error_cls(f"{what} must be numeric, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise error_cls(f"{what} must be finite, got {value!r}")
    return number


def _as_year(value) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if isinstance(value, bool) or not number.is_integer():
        raise ValueError(f"year must be a whole number, got {value!r}")
    return int(number)


def coerce_monthly_series(values, what: str, error_cls) -> List[float]:
    """Validate a 12-value monthly series and return it as floats.

    Raises:
        error_cls: If the series is not a list of exactly 12 finite,
            non-negative numbers.
    """
    if not isinstance(values, (list, tuple)):
        raise error_cls(f"{what} must be a list of 12 monthly values")
    if len(values) != 12:
        raise error_cls(f"{what} must have exactly 12 values, got {len(values)}")
    series = [_as_number(v, f"{what}[{i}]", error_cls) for i, v in enumerate(values)]
    for i, v in enumerate(series):
        if v < 0:
            raise error_cls(f"{what}[{i}] must be >= 0, got {v}")
    return series


def spread_annual_production(annual_kwh: float) -> List[float]:
    """Spread an annual production total over months with the default profile."""
    total = sum(DEFAULT_MONTHLY_PRODUCTION_PROFILE)
    return [annual_kwh * share / total for share in DEFAULT_MONTHLY_PRODUCTION_PROFILE]


@dataclass
class NetMeteringRequest:
    """One net metering calculation request.

    Attributes:
        monthly_solar_production_kwh: Forecast production, Jan-Dec (12 values).
        annual_usage_kwh: Annual household consumption.
        rate_plan_id: "tou", "ulo" or "tiered". Ignored when province is Alberta.
        province: Province code or name; Alberta selects the Solar Club program.
        year: Simulation calendar year (weekday/holiday layout).
        usage_distribution: Period shares of usage. Required for tou/ulo.
        battery: Optional battery bank for the arbitrage overlay.
        ai_mode: Allow grid charging for arbitrage.
        monthly_usage_kwh: Optional 12 monthly usage values overriding the
            seasonal split of annual_usage_kwh.
        snow_loss_factor: Alberta winter production loss (0-0.5).
        rate_plan: Optional custom plan replacing the registry plan.
    """

    monthly_solar_production_kwh: List[float] = field(default_factory=list)
    annual_usage_kwh: float = 0.0
    rate_plan_id: str = PLAN_TOU
    province: str = "ON"
    year: int = field(default_factory=lambda: date.today().year)
    usage_distribution: Optional[UsageDistribution] = None
    battery: Optional[BatteryInputs] = None
    ai_mode: bool = False
    monthly_usage_kwh: Optional[List[float]] = None
    snow_loss_factor: float = 0.03
    rate_plan: Optional[RatePlan] = None

    def __post_init__(self):
        self.monthly_solar_production_kwh = coerce_monthly_series(
            self.monthly_solar_production_kwh, "monthlySolarProductionKwh", InvalidProductionError
        )
        self.annual_usage_kwh = _as_number(self.annual_usage_kwh, "annualUsageKwh", InvalidUsageError)
        if self.annual_usage_kwh < 0:
            raise InvalidUsageError(f"annualUsageKwh must be >= 0, got {self.annual_usage_kwh}")
        if self.monthly_usage_kwh is not None:
            self.monthly_usage_kwh = coerce_monthly_series(
                self.monthly_usage_kwh, "monthlyUsageKwh", InvalidUsageError
            )
        self.rate_plan_id = resolve_plan_id(self.rate_plan_id)
        if not 1900 <= self.year <= 2200:
            raise ValueError(f"year must be 1900-2200, got {self.year}")
        if not 0 <= self.snow_loss_factor <= 0.5:
            raise ValueError(f"snow_loss_factor must be 0-0.5, got {self.snow_loss_factor}")

    @property
    def annual_solar_production_kwh(self) -> float:
        return sum(self.monthly_solar_production_kwh)

    def to_dict(self) -> dict:
        return {
            "monthlySolarProductionKwh": list(self.monthly_solar_production_kwh),
            "annualUsageKwh": self.annual_usage_kwh,
            "ratePlanId": self.rate_plan_id,
            "province": self.province,
            "year": self.year,
            "usageDistribution": self.usage_distribution.to_dict() if self.usage_distribution else None,
            "battery": self.battery.to_dict() if self.battery else None,
            "aiMode": self.ai_mode,
            "monthlyUsageKwh": list(self.monthly_usage_kwh) if self.monthly_usage_kwh else None,
            "snowLossFactor": self.snow_loss_factor,
            "ratePlan": self.rate_plan.to_dict() if self.rate_plan else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NetMeteringRequest":
        monthly = data.get("monthlySolarProductionKwh")
        if monthly is None:
            annual = data.get("annualSolarProductionKwh")
            if annual is None:
                raise InvalidProductionError(
                    "Missing required field: monthlySolarProductionKwh or annualSolarProductionKwh"
                )
            monthly = spread_annual_production(_as_number(annual, "annualSolarProductionKwh",
                                                          InvalidProductionError))
        if "annualUsageKwh" not in data:
            raise InvalidUsageError("Missing required field: annualUsageKwh")
        distribution = data.get("usageDistribution")
        battery = data.get("battery")
        rate_plan = data.get("ratePlan")
        kwargs = {}
        if data.get("year") is not None:
            kwargs["year"] = _as_year(data["year"])
        return cls(
            monthly_solar_production_kwh=monthly,
            annual_usage_kwh=data["annualUsageKwh"],
            rate_plan_id=data.get("ratePlanId") or PLAN_TOU,
            province=data.get("province") or "",
            usage_distribution=UsageDistribution.from_dict(distribution) if distribution else None,
            battery=BatteryInputs.from_dict(battery) if battery else None,
            ai_mode=data.get("aiMode") is True,
            monthly_usage_kwh=data.get("monthlyUsageKwh"),
            snow_loss_factor=float(data.get("snowLossFactor", 0.03)),
            rate_plan=RatePlan.from_dict(rate_plan) if rate_plan else None,
            **kwargs,
        )
