"""Exception types raised by the net metering engine."""


class NetMeteringError(ValueError):
    """Base class for input problems detected by the engine."""


class InvalidProductionError(NetMeteringError):
    """Production forecast is missing, malformed, or all zero."""


class InvalidUsageError(NetMeteringError):
    """Usage input is not a usable number or series."""


class InvalidDistributionError(NetMeteringError):
    """Usage distribution percentages do not sum to 100%.

    Attributes:
        plan_id: Plan whose calculation the distribution blocked.
        total_percent: The sum that was supplied.
    """

    def __init__(self, plan_id: str, total_percent: float):
        self.plan_id = plan_id
        self.total_percent = total_percent
        super().__init__(
            f"Usage distribution for '{plan_id}' sums to {total_percent:.2f}%, expected 100%"
        )
