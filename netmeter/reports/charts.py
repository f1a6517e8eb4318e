"""Chart generation for net metering reports.

Creates matplotlib charts of the monthly billing ledger, import cost by
rate period, and cumulative savings against the system cost. Charts are
saved as PNG files.
"""

import calendar
from typing import List

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker

from netmeter.models.results import MonthlyRecord, PeriodBreakdown, ProjectionResult

PERIOD_COLORS = {
    "on-peak": "#c62828",
    "mid-peak": "#ef6c00",
    "off-peak": "#2e7d32",
    "ultra-low": "#1565c0",
    "tiered": "#6a1b9a",
    "high-production": "#f9a825",
    "low-production": "#00838f",
}


def create_monthly_ledger_chart(monthly: List[MonthlyRecord], output_path: str) -> None:
    """Bar chart of monthly import cost and export credits with the bank balance.

    Args:
        monthly: Monthly records of a calculation.
        output_path: File path to save the PNG chart.
    """
    if not monthly:
        return

    months = list(range(len(monthly)))
    labels = [calendar.month_abbr[m.month] for m in monthly]

    fig, ax = plt.subplots(figsize=(8, 4.5), dpi=150)
    bar_width = 0.38

    ax.bar(
        [x - bar_width / 2 for x in months],
        [m.import_cost for m in monthly],
        bar_width,
        label="Import cost",
        color="#c62828",
        alpha=0.8,
    )
    ax.bar(
        [x + bar_width / 2 for x in months],
        [m.export_credits_earned for m in monthly],
        bar_width,
        label="Export credits",
        color="#2e7d32",
        alpha=0.8,
    )
    ax.plot(
        months,
        [m.credit_rollover_balance for m in monthly],
        color="#1565c0",
        marker="o",
        linewidth=1.5,
        label="Banked credit",
    )

    ax.set_xticks(months)
    ax.set_xticklabels(labels)
    ax.set_ylabel("$", fontsize=11)
    ax.set_title("Monthly Import Cost, Export Credits and Credit Bank", fontsize=13, fontweight="bold")
    ax.legend(fontsize=10)
    ax.yaxis.set_major_formatter(mticker.FuncFormatter(lambda x, _: f"${x:,.0f}"))
    ax.grid(axis="y", alpha=0.3)

    fig.tight_layout()
    fig.savefig(output_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)


def create_period_cost_chart(by_period: List[PeriodBreakdown], output_path: str) -> None:
    """Donut chart of annual import cost by rate period.

    Periods without import cost are left out; nothing is drawn when there
    is no import cost at all.
    """
    periods = [p for p in by_period if p.import_cost > 0]
    if not periods:
        return

    fig, ax = plt.subplots(figsize=(6, 5), dpi=150)
    labels = [p.period for p in periods]
    _, _, autotexts = ax.pie(
        [p.import_cost for p in periods],
        labels=labels,
        autopct="%1.1f%%",
        colors=[PERIOD_COLORS.get(label, "#4e342e") for label in labels],
        textprops={"fontsize": 10},
        startangle=90,
        wedgeprops={"width": 0.45},
    )
    for autotext in autotexts:
        autotext.set_fontweight("bold")

    ax.set_title("Import Cost by Rate Period", fontsize=13, fontweight="bold", pad=15)
    fig.tight_layout()
    fig.savefig(output_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)


def create_savings_chart(projection: ProjectionResult, output_path: str) -> None:
    """Line chart of cumulative savings against the net investment cost."""
    if not projection.yearly_projections:
        return

    years = [y.year for y in projection.yearly_projections]
    cumulative = [y.cumulative_savings for y in projection.yearly_projections]

    fig, ax = plt.subplots(figsize=(8, 4.5), dpi=150)
    ax.plot(years, cumulative, color="#2e7d32", linewidth=2, label="Cumulative savings")
    if projection.net_investment_cost > 0:
        ax.axhline(y=projection.net_investment_cost, color="#c62828", linestyle="--",
                   linewidth=1, label="Net system cost")
    if projection.payback_years is not None:
        ax.axvline(x=projection.payback_years, color="gray", linestyle=":", linewidth=1)

    ax.set_xlabel("Year", fontsize=11)
    ax.set_ylabel("$", fontsize=11)
    ax.set_title("Cumulative Savings", fontsize=13, fontweight="bold")
    ax.legend(fontsize=10)
    ax.yaxis.set_major_formatter(mticker.FuncFormatter(lambda x, _: f"${x:,.0f}"))
    ax.grid(axis="y", alpha=0.3)

    fig.tight_layout()
    fig.savefig(output_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
