"""Number and currency formatting utilities for net metering reports."""

from typing import Optional


def format_currency(value: float, decimals: int = 2, prefix: str = "$") -> str:
    """Format a number as currency string.

    Negative values keep the sign ahead of the prefix.

    Args:
        value: The numeric value to format.
        decimals: Number of decimal places.
        prefix: Currency symbol prefix.

    Returns:
        Formatted currency string (e.g., "$1,234.56").
    """
    if value < 0:
        return f"-{prefix}{-value:,.{decimals}f}"
    return f"{prefix}{value:,.{decimals}f}"


def format_rate(value: float) -> str:
    """Format a $/kWh rate in cents (e.g., 0.098 -> "9.8¢/kWh")."""
    return f"{value * 100:.1f}¢/kWh"


def format_percent(value: float, decimals: int = 1) -> str:
    """Format a percentage value (already 0-100) as string.

    Args:
        value: Percentage (e.g., 85.2 for 85.2%).
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string (e.g., "85.2%").
    """
    return f"{value:,.{decimals}f}%"


def format_kwh(value: float, decimals: int = 0) -> str:
    return f"{value:,.{decimals}f} kWh"


def format_years(value: Optional[float]) -> str:
    """Format a payback period.

    Args:
        value: Number of years, or None if the payback is unreachable.

    Returns:
        Formatted string (e.g., "7.2 years" or "Not reachable").
    """
    if value is None:
        return "Not reachable"
    return f"{value:.1f} years"
