"""Export credit bank with 12-month expiry.

Surplus export credit is banked as dated lots in a FIFO queue. Each
simulated month, in order:

1. Lots 12 or more months old are expired and their remainder forfeited.
2. The month's own export credits offset its import cost; any remaining
   import cost is covered from the bank, oldest lot first, down to zero.
3. Unused export credit from the month becomes a new lot.

Credit is never paid out: a surplus stays banked until used or expired.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List

logger = logging.getLogger(__name__)

MAX_ROLLOVER_MONTHS = 12

# Forfeitures at or below this amount do not produce a user warning
EXPIRY_WARNING_THRESHOLD = 0.01

ACTIVE = "active"
CONSUMED = "consumed"
EXPIRED = "expired"

_EPSILON = 1e-9


@dataclass
class CreditLot:
    """Credit earned in one month.

    Attributes:
        month_index: Simulation month the credit was earned (0-based).
        amount: Credit deposited ($).
        remaining: Credit still available ($).
        status: "active", "consumed" or "expired".
        forfeited: Remainder lost at expiry ($).
    """

    month_index: int
    amount: float
    remaining: float
    status: str = ACTIVE
    forfeited: float = 0.0

    def age_at(self, month_index: int) -> int:
        return month_index - self.month_index


@dataclass(frozen=True)
class CreditStep:
    """Outcome of processing one month through the bank."""

    month_index: int
    expired: float
    same_month_applied: float
    banked_applied: float
    deposited: float
    net_bill: float
    balance: float

    @property
    def credit_applied(self) -> float:
        return self.same_month_applied + self.banked_applied


class CreditBank:
    """FIFO ledger of export credit lots.

    Args:
        max_age_months: Months after which an unused lot expires.
    """

    def __init__(self, max_age_months: int = MAX_ROLLOVER_MONTHS):
        if max_age_months < 1:
            raise ValueError(f"max_age_months must be >= 1, got {max_age_months}")
        self.max_age_months = max_age_months
        self._active: Deque[CreditLot] = deque()
        self.lots: List[CreditLot] = []
        self.steps: List[CreditStep] = []
        self.warnings: List[str] = []
        self._last_month = -1

    @property
    def balance(self) -> float:
        return sum(lot.remaining for lot in self._active)

    @property
    def active_lots(self) -> List[CreditLot]:
        return list(self._active)

    @property
    def total_expired(self) -> float:
        return sum(lot.forfeited for lot in self.lots)

    @property
    def total_deposited(self) -> float:
        return sum(lot.amount for lot in self.lots)

    @property
    def total_banked_applied(self) -> float:
        return sum(step.banked_applied for step in self.steps)

    def expire(self, month_index: int) -> float:
        """Forfeit every lot at least max_age_months old. Returns the amount lost."""
        expired = 0.0
        while self._active and self._active[0].age_at(month_index) >= self.max_age_months:
            lot = self._active.popleft()
            lot.forfeited = lot.remaining
            lot.remaining = 0.0
            lot.status = EXPIRED
            expired += lot.forfeited
        if expired > EXPIRY_WARNING_THRESHOLD:
            logger.debug("Month %d: %.2f in banked credit expired", month_index, expired)
            self.warnings.append(
                f"${expired:,.2f} in export credits earned more than {self.max_age_months} "
                f"months ago expired and cannot be carried forward."
            )
        return expired

    def withdraw(self, amount: float) -> float:
        """Draw up to amount from the bank, oldest lot first. Returns the amount drawn."""
        drawn = 0.0
        needed = amount
        while needed > _EPSILON and self._active:
            lot = self._active[0]
            take = min(lot.remaining, needed)
            lot.remaining -= take
            needed -= take
            drawn += take
            if lot.remaining <= _EPSILON:
                lot.remaining = 0.0
                lot.status = CONSUMED
                self._active.popleft()
        return drawn

    def deposit(self, month_index: int, amount: float) -> None:
        if amount <= _EPSILON:
            return
        lot = CreditLot(month_index=month_index, amount=amount, remaining=amount)
        self._active.append(lot)
        self.lots.append(lot)

    def step(self, month_index: int, export_credits: float, import_cost: float) -> CreditStep:
        """Process one month.

        Args:
            month_index: Simulation month (0-based, strictly increasing).
            export_credits: Credit earned this month ($).
            import_cost: Import cost incurred this month ($).

        Returns:
            The month's CreditStep.
        """
        if month_index <= self._last_month:
            raise ValueError(
                f"Months must be processed in order: got {month_index} after {self._last_month}"
            )
        self._last_month = month_index

        expired = self.expire(month_index)
        same_month = min(export_credits, import_cost)
        banked = self.withdraw(import_cost - same_month)
        self.deposit(month_index, export_credits - same_month)
        step = CreditStep(
            month_index=month_index,
            expired=expired,
            same_month_applied=same_month,
            banked_applied=banked,
            deposited=max(0.0, export_credits - same_month),
            net_bill=max(0.0, import_cost - same_month - banked),
            balance=self.balance,
        )
        self.steps.append(step)
        return step
