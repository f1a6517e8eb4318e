"""Rate plan registry for residential net metering.

Defines the period structure of each supported plan (Time-of-Use,
Ultra-Low Overnight, Tiered, Alberta Solar Club) together with the
import and export rate of every period. All rates are in $/kWh.

Ontario rates follow the Ontario Energy Board RPP price list effective
November 1, 2025. Export credits under Ontario net metering are valued at
the same retail rate as imports, so TOU and ULO periods carry equal
import and export rates.
"""

import calendar
import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from functools import lru_cache
from typing import Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Period labels
ON_PEAK = "on-peak"
MID_PEAK = "mid-peak"
OFF_PEAK = "off-peak"
ULTRA_LOW = "ultra-low"
TIERED = "tiered"
HIGH_PRODUCTION = "high-production"
LOW_PRODUCTION = "low-production"

# Plan identifiers, in tie-break priority order for the Ontario plans
PLAN_TOU = "tou"
PLAN_ULO = "ulo"
PLAN_TIERED = "tiered"
PLAN_ALBERTA = "alberta"
PLAN_IDS = (PLAN_TOU, PLAN_ULO, PLAN_TIERED, PLAN_ALBERTA)
PLAN_PRIORITY = (PLAN_TOU, PLAN_ULO, PLAN_TIERED)

_PLAN_ALIASES = {
    "tiered_rate": PLAN_TIERED,
    "alberta_solar_club": PLAN_ALBERTA,
}

ALL_HOURS: Tuple[int, ...] = tuple(range(24))
ALL_MONTHS: Tuple[int, ...] = tuple(range(1, 13))


def _hours(start: int, end: int) -> Tuple[int, ...]:
    """Hours in [start, end), wrapping past midnight when start > end."""
    if start <= end:
        return tuple(range(start, end))
    return tuple(range(start, 24)) + tuple(range(0, end))


@dataclass(frozen=True)
class RatePeriod:
    """A billing period within a rate plan.

    Attributes:
        label: Period label (e.g., "on-peak").
        weekday_hours: Hours of day (0-23) belonging to this period on weekdays.
        weekend_hours: Hours of day belonging to this period on weekends and holidays.
        import_rate: Price of energy drawn from the grid ($/kWh).
        export_rate: Credit for energy exported to the grid ($/kWh).
        months: Calendar months (1-12) in which this period applies.
    """

    label: str
    weekday_hours: Tuple[int, ...] = ()
    weekend_hours: Tuple[int, ...] = ()
    import_rate: float = 0.0
    export_rate: float = 0.0
    months: Tuple[int, ...] = ALL_MONTHS

    def __post_init__(self):
        if self.import_rate < 0:
            raise ValueError(f"import_rate must be >= 0, got {self.import_rate}")
        if self.export_rate < 0:
            raise ValueError(f"export_rate must be >= 0, got {self.export_rate}")
        for hour in self.weekday_hours + self.weekend_hours:
            if not 0 <= hour <= 23:
                raise ValueError(f"Period '{self.label}': hour must be 0-23, got {hour}")
        for month in self.months:
            if not 1 <= month <= 12:
                raise ValueError(f"Period '{self.label}': month must be 1-12, got {month}")

    def contains(self, month: int, hour: int, is_weekend: bool) -> bool:
        if month not in self.months:
            return False
        hours = self.weekend_hours if is_weekend else self.weekday_hours
        return hour in hours

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "weekdayHours": list(self.weekday_hours),
            "weekendHours": list(self.weekend_hours),
            "importRate": self.import_rate,
            "exportRate": self.export_rate,
            "months": list(self.months),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RatePeriod":
        import_rate = float(data["importRate"])
        return cls(
            label=data["label"],
            weekday_hours=tuple(data.get("weekdayHours", ())),
            weekend_hours=tuple(data.get("weekendHours", ())),
            import_rate=import_rate,
            export_rate=float(data.get("exportRate", import_rate)),
            months=tuple(data.get("months", ALL_MONTHS)),
        )


@dataclass(frozen=True)
class RatePlan:
    """A utility rate plan made of periods that partition the year.

    Attributes:
        plan_id: One of "tou", "ulo", "tiered", "alberta".
        name: Display name.
        periods: Ordered periods. Every (month, day type, hour) slot must
            belong to exactly one period.
        description: Short description for display.
        effective_date: ISO date the rates took effect.
    """

    plan_id: str
    name: str
    periods: Tuple[RatePeriod, ...]
    description: str = ""
    effective_date: str = ""

    def __post_init__(self):
        if self.plan_id not in PLAN_IDS:
            raise ValueError(f"plan_id must be one of {PLAN_IDS}, got {self.plan_id!r}")
        if not self.periods:
            raise ValueError(f"Rate plan '{self.plan_id}' has no periods")
        self.validate_partition()

    def validate_partition(self) -> None:
        """Check that every hour of the year maps to exactly one period.

        Raises:
            ValueError: If any slot is uncovered or covered more than once.
        """
        for month in ALL_MONTHS:
            for is_weekend in (False, True):
                for hour in ALL_HOURS:
                    matches = [p.label for p in self.periods if p.contains(month, hour, is_weekend)]
                    if len(matches) != 1:
                        day_type = "weekend" if is_weekend else "weekday"
                        raise ValueError(
                            f"Rate plan '{self.plan_id}': month {month} {day_type} hour {hour} "
                            f"matches {len(matches)} periods {matches}"
                        )

    @property
    def labels(self) -> List[str]:
        """Distinct period labels in declaration order."""
        seen: List[str] = []
        for period in self.periods:
            if period.label not in seen:
                seen.append(period.label)
        return seen

    def get_period(self, label: str) -> RatePeriod:
        for period in self.periods:
            if period.label == label:
                return period
        raise KeyError(f"Rate plan '{self.plan_id}' has no period '{label}'")

    def period_at(self, day: date, hour: int) -> RatePeriod:
        """Return the period in effect on a calendar day at a given hour."""
        weekend = is_weekend_or_holiday(day)
        for period in self.periods:
            if period.contains(day.month, hour, weekend):
                return period
        # Unreachable for a validated plan
        raise ValueError(f"No period covers {day.isoformat()} hour {hour}")

    def with_rates(self, rates: Dict[str, Dict[str, float]]) -> "RatePlan":
        """Return a copy with import/export rates overridden by period label.

        Args:
            rates: Mapping of label -> {"import_rate": x, "export_rate": y}.
                A missing export_rate defaults to the new import_rate.
        """
        periods = []
        for period in self.periods:
            override = rates.get(period.label)
            if override is None:
                periods.append(period)
                continue
            import_rate = float(override.get("import_rate", period.import_rate))
            export_rate = float(override.get("export_rate", import_rate))
            periods.append(replace(period, import_rate=import_rate, export_rate=export_rate))
        return replace(self, periods=tuple(periods))

    def to_dict(self) -> dict:
        return {
            "id": self.plan_id,
            "name": self.name,
            "description": self.description,
            "effectiveDate": self.effective_date,
            "periods": [p.to_dict() for p in self.periods],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RatePlan":
        return cls(
            plan_id=resolve_plan_id(data["id"]),
            name=data.get("name", data["id"]),
            periods=tuple(RatePeriod.from_dict(p) for p in data["periods"]),
            description=data.get("description", ""),
            effective_date=data.get("effectiveDate", ""),
        )


@dataclass(frozen=True)
class TierSchedule:
    """Consumption tiers for the Tiered plan.

    The import rate of a month is the usage-weighted blend of the two tiers;
    exports are credited at that blend plus a fixed adder.

    Attributes:
        tier1_rate: Price of the first tier1_threshold_kwh each month ($/kWh).
        tier2_rate: Price of usage above the threshold ($/kWh).
        tier1_threshold_kwh: Monthly tier 1 allowance (kWh).
        export_adder: Added to the blended rate for export credits ($/kWh).
    """

    tier1_rate: float = 0.103
    tier2_rate: float = 0.125
    tier1_threshold_kwh: float = 600.0
    export_adder: float = 0.02

    def __post_init__(self):
        if self.tier1_rate < 0 or self.tier2_rate < 0:
            raise ValueError("Tier rates must be >= 0")
        if self.tier1_threshold_kwh <= 0:
            raise ValueError(f"tier1_threshold_kwh must be > 0, got {self.tier1_threshold_kwh}")

    def blended_rate(self, monthly_usage_kwh: float) -> float:
        if monthly_usage_kwh <= 0:
            return self.tier1_rate
        tier1_kwh = min(monthly_usage_kwh, self.tier1_threshold_kwh)
        tier2_kwh = max(0.0, monthly_usage_kwh - self.tier1_threshold_kwh)
        return (tier1_kwh * self.tier1_rate + tier2_kwh * self.tier2_rate) / monthly_usage_kwh

    def export_rate(self, monthly_usage_kwh: float) -> float:
        return self.blended_rate(monthly_usage_kwh) + self.export_adder

    def to_dict(self) -> dict:
        return {
            "tier1Rate": self.tier1_rate,
            "tier2Rate": self.tier2_rate,
            "tier1ThresholdKwh": self.tier1_threshold_kwh,
            "exportAdder": self.export_adder,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TierSchedule":
        defaults = cls()
        return cls(
            tier1_rate=float(data.get("tier1Rate", defaults.tier1_rate)),
            tier2_rate=float(data.get("tier2Rate", defaults.tier2_rate)),
            tier1_threshold_kwh=float(data.get("tier1ThresholdKwh", defaults.tier1_threshold_kwh)),
            export_adder=float(data.get("exportAdder", defaults.export_adder)),
        )


_WEEKDAY_OFF_PEAK_TOU = _hours(0, 7) + _hours(19, 24)

TOU_RATE_PLAN = RatePlan(
    plan_id=PLAN_TOU,
    name="Time-of-Use (TOU)",
    description="Standard time-based pricing for most households",
    effective_date="2025-11-01",
    periods=(
        RatePeriod(OFF_PEAK, weekday_hours=_WEEKDAY_OFF_PEAK_TOU, weekend_hours=ALL_HOURS,
                   import_rate=0.098, export_rate=0.098),
        RatePeriod(ON_PEAK, weekday_hours=_hours(7, 11) + _hours(17, 19),
                   import_rate=0.203, export_rate=0.203),
        RatePeriod(MID_PEAK, weekday_hours=_hours(11, 17),
                   import_rate=0.157, export_rate=0.157),
    ),
)

ULO_RATE_PLAN = RatePlan(
    plan_id=PLAN_ULO,
    name="Ultra-Low Overnight (ULO)",
    description="Best for EV owners and those who can shift usage to overnight hours",
    effective_date="2025-11-01",
    periods=(
        RatePeriod(ULTRA_LOW, weekday_hours=_hours(23, 7),
                   import_rate=0.039, export_rate=0.039),
        RatePeriod(MID_PEAK, weekday_hours=_hours(7, 16) + _hours(21, 23),
                   import_rate=0.157, export_rate=0.157),
        RatePeriod(ON_PEAK, weekday_hours=_hours(16, 21),
                   import_rate=0.391, export_rate=0.391),
        RatePeriod(OFF_PEAK, weekend_hours=ALL_HOURS,
                   import_rate=0.098, export_rate=0.098),
    ),
)

DEFAULT_TIER_SCHEDULE = TierSchedule()

TIERED_RATE_PLAN = RatePlan(
    plan_id=PLAN_TIERED,
    name="Tiered",
    description="Flat consumption tiers with no time-of-day periods",
    effective_date="2025-11-01",
    periods=(
        RatePeriod(TIERED, weekday_hours=ALL_HOURS, weekend_hours=ALL_HOURS,
                   import_rate=DEFAULT_TIER_SCHEDULE.tier1_rate,
                   export_rate=DEFAULT_TIER_SCHEDULE.tier1_rate + DEFAULT_TIER_SCHEDULE.export_adder),
    ),
)

HIGH_PRODUCTION_MONTHS: Tuple[int, ...] = (4, 5, 6, 7, 8, 9)
LOW_PRODUCTION_MONTHS: Tuple[int, ...] = (10, 11, 12, 1, 2, 3)

ALBERTA_SOLAR_CLUB_PLAN = RatePlan(
    plan_id=PLAN_ALBERTA,
    name="Alberta Solar Club",
    description="Seasonal program: premium export rate in summer, low import rate in winter",
    effective_date="2025-11-01",
    periods=(
        RatePeriod(HIGH_PRODUCTION, weekday_hours=ALL_HOURS, weekend_hours=ALL_HOURS,
                   import_rate=0.0689, export_rate=0.33, months=HIGH_PRODUCTION_MONTHS),
        RatePeriod(LOW_PRODUCTION, weekday_hours=ALL_HOURS, weekend_hours=ALL_HOURS,
                   import_rate=0.0689, export_rate=0.0689, months=LOW_PRODUCTION_MONTHS),
    ),
)


@dataclass(frozen=True)
class RateRegistry:
    """The set of plans and tier schedule a calculation draws rates from."""

    plans: Dict[str, RatePlan] = field(default_factory=lambda: {
        PLAN_TOU: TOU_RATE_PLAN,
        PLAN_ULO: ULO_RATE_PLAN,
        PLAN_TIERED: TIERED_RATE_PLAN,
        PLAN_ALBERTA: ALBERTA_SOLAR_CLUB_PLAN,
    })
    tiers: TierSchedule = DEFAULT_TIER_SCHEDULE
    name: str = "OEB RPP 2025-11"

    def get(self, plan_id: str) -> RatePlan:
        key = resolve_plan_id(plan_id)
        if key not in self.plans:
            raise ValueError(f"Unknown rate plan '{plan_id}'. Expected one of {PLAN_IDS}.")
        return self.plans[key]


DEFAULT_REGISTRY = RateRegistry()


def resolve_plan_id(plan_id: Optional[str]) -> str:
    """Normalize a plan identifier, accepting legacy aliases.

    Raises:
        ValueError: If the identifier is not a known plan.
    """
    if not plan_id:
        raise ValueError("Rate plan id is required")
    key = str(plan_id).strip().lower()
    key = _PLAN_ALIASES.get(key, key)
    if key not in PLAN_IDS:
        raise ValueError(f"Unknown rate plan '{plan_id}'. Expected one of {PLAN_IDS}.")
    return key


def get_rate_plan(plan_id: str, registry: Optional[RateRegistry] = None) -> RatePlan:
    return (registry or DEFAULT_REGISTRY).get(plan_id)


def is_alberta(province: Optional[str]) -> bool:
    """True when the province selects the Alberta Solar Club program."""
    if not province:
        return False
    code = province.strip().upper()
    return code == "AB" or "ALBERTA" in code


def _easter_sunday(year: int) -> date:
    # Anonymous Gregorian computus
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


@lru_cache(maxsize=32)
def ontario_holidays(year: int) -> FrozenSet[date]:
    """Ontario statutory holidays billed at weekend rates.

    Victoria Day is the Monday preceding May 25. Holidays are not shifted to
    an observed weekday when they fall on a weekend.
    """
    may_25 = date(year, 5, 25)
    victoria_day = may_25 - timedelta(days=(may_25.weekday() - calendar.MONDAY) % 7 or 7)
    return frozenset({
        date(year, 1, 1),
        _nth_weekday(year, 2, calendar.MONDAY, 3),  # Family Day
        _easter_sunday(year) - timedelta(days=2),  # Good Friday
        victoria_day,
        date(year, 7, 1),
        _nth_weekday(year, 8, calendar.MONDAY, 1),  # Civic Holiday
        _nth_weekday(year, 9, calendar.MONDAY, 1),  # Labour Day
        _nth_weekday(year, 10, calendar.MONDAY, 2),  # Thanksgiving
        date(year, 12, 25),
        date(year, 12, 26),
    })


def is_weekend_or_holiday(day: date) -> bool:
    return day.weekday() >= calendar.SATURDAY or day in ontario_holidays(day.year)
