#!/usr/bin/env python3
"""
Net Metering CLI - Solar Net Metering & Battery Savings Calculator

Command-line front end to the net metering engine:
- Simulate a year of net metering on TOU, ULO, Tiered or Alberta Solar Club
- Track export credits through the 12-month credit bank
- Estimate extra savings from a battery
- Compare the Ontario plans with payback projections
- Save/load requests as JSON and write PNG charts

Usage:
    python netmeter_cli.py --annual-production 9000 --usage 10000
    python netmeter_cli.py --production 300,450,... --usage 10000 --plan ulo
    python netmeter_cli.py --annual-production 9000 --usage 10000 --compare --cost 20000
    python netmeter_cli.py --load request.json --json
"""

import argparse
import calendar
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from netmeter.data.libraries import RateLibrary
from netmeter.data.storage import load_request, save_request, save_result
from netmeter.data.validators import validate_request
from netmeter.models.engine import calculate_net_metering, compare_plans
from netmeter.models.errors import NetMeteringError
from netmeter.models.projection import DEFAULT_ESCALATION_RATE, project_savings
from netmeter.models.rate_plans import PLAN_TOU, PLAN_ULO, RateRegistry
from netmeter.models.request import (
    DEFAULT_TOU_DISTRIBUTION,
    DEFAULT_ULO_DISTRIBUTION,
    BatteryInputs,
    NetMeteringRequest,
    UsageDistribution,
    spread_annual_production,
)
from netmeter.models.results import NetMeteringResult, PlanComparison, ProjectionResult
from netmeter.reports.charts import (
    create_monthly_ledger_chart,
    create_period_cost_chart,
    create_savings_chart,
)
from netmeter.utils.formatters import (
    format_currency,
    format_kwh,
    format_percent,
    format_years,
)

logger = logging.getLogger("netmeter_cli")


# ============================================================================
# FORMATTING UTILITIES
# ============================================================================

def print_header(text: str, char: str = "=") -> None:
    """Print a formatted section header."""
    width = 70
    print(f"\n{char * width}")
    print(f" {text}")
    print(f"{char * width}")


def print_subheader(text: str) -> None:
    """Print a formatted subsection header."""
    print(f"\n--- {text} ---")


def print_table(headers: List[str], rows: List[List[str]],
                col_widths: Optional[List[int]] = None) -> None:
    """Print a formatted ASCII table."""
    if col_widths is None:
        col_widths = [max(len(str(row[i])) for row in [headers] + rows) + 2
                      for i in range(len(headers))]

    header_line = "|".join(h.center(w) for h, w in zip(headers, col_widths))
    separator = "+".join("-" * w for w in col_widths)
    print(f"+{separator}+")
    print(f"|{header_line}|")
    print(f"+{separator}+")

    for row in rows:
        row_line = "|".join(str(cell).rjust(w - 1) + " " for cell, w in zip(row, col_widths))
        print(f"|{row_line}|")
    print(f"+{separator}+")


# ============================================================================
# RESULT DISPLAY
# ============================================================================

def print_result(result: NetMeteringResult) -> None:
    """Print the annual summary, monthly ledger and period breakdown."""
    print_header(f"{result.plan_name} - {result.year}")

    if not result.valid:
        print("\n  Result withheld:")
        for warning in result.warnings:
            print(f"  - {warning}")
        return

    annual = result.annual
    print_subheader("Annual Summary")
    print(f"  Solar production:     {format_kwh(annual.total_solar_production_kwh)}")
    print(f"  Household usage:      {format_kwh(annual.total_load_kwh)}")
    print(f"  Exported / imported:  {format_kwh(annual.total_exported_kwh)} / "
          f"{format_kwh(annual.total_imported_kwh)}")
    print(f"  Import cost:          {format_currency(annual.import_cost)}")
    print(f"  Export credits:       {format_currency(annual.export_credits)}")
    print(f"  Net annual bill:      {format_currency(annual.net_annual_bill)}")
    print(f"  Bill offset:          {format_percent(annual.bill_offset_percent)}")
    print(f"  Credit carried fwd:   {format_currency(annual.credit_carry_forward)}")
    if annual.credit_expired > 0:
        print(f"  Credit expired:       {format_currency(annual.credit_expired)}")

    print_subheader("Monthly Ledger")
    rows = [
        [
            calendar.month_abbr[m.month],
            f"{m.solar_production_kwh:,.0f}",
            f"{m.usage_kwh:,.0f}",
            f"{m.exported_kwh:,.0f}",
            f"{m.imported_kwh:,.0f}",
            format_currency(m.export_credits_earned),
            format_currency(m.import_cost),
            format_currency(m.credit_applied),
            format_currency(m.credit_rollover_balance),
            format_currency(m.net_bill),
        ]
        for m in result.monthly
    ]
    print_table(["Month", "Solar", "Usage", "Export", "Import", "Credits",
                 "Cost", "Applied", "Banked", "Bill"], rows)

    print_subheader("By Period")
    print_table(
        ["Period", "Exported kWh", "Imported kWh", "Credits", "Import Cost"],
        [[p.period, f"{p.exported_kwh:,.0f}", f"{p.imported_kwh:,.0f}",
          format_currency(p.export_credits), format_currency(p.import_cost)]
         for p in result.by_period],
    )

    if result.alberta is not None:
        print_subheader("Alberta Solar Club")
        high = result.alberta.high_production_season
        low = result.alberta.low_production_season
        print(f"  High season credits:  {format_currency(high.export_credits)} "
              f"({format_kwh(high.exported_kwh)} exported)")
        print(f"  Low season credits:   {format_currency(low.export_credits)} "
              f"({format_kwh(low.exported_kwh)} exported)")
        print(f"  Cash back (3%):       {format_currency(result.alberta.cash_back_amount)}")
        print(f"  Carbon credits:       {format_currency(result.alberta.estimated_carbon_credits)}")

    if result.battery is not None:
        print_subheader("Battery")
        battery = result.battery
        mode = "AI mode (grid charging)" if battery.ai_mode else "solar-only charging"
        print(f"  Mode:                 {mode}")
        print(f"  Annual throughput:    {format_kwh(battery.annual_throughput_kwh)}")
        print(f"  Extra bill reduction: {format_percent(battery.battery_savings_percent)} "
              f"(cap {format_percent(battery.cap_percent)})")
        print(f"  Estimated savings:    {format_currency(battery.estimated_savings)}/yr")

    if result.warnings:
        print_subheader("Warnings")
        for warning in result.warnings:
            print(f"  - {warning}")


def print_projection(projection: ProjectionResult) -> None:
    print_subheader(f"{projection.years}-Year Projection "
                    f"({format_percent(projection.escalation_rate * 100)} escalation)")
    print(f"  Year-1 savings:       {format_currency(projection.annual_savings)}")
    print(f"  Net system cost:      {format_currency(projection.net_investment_cost)}")
    print(f"  Payback:              {format_years(projection.payback_years)}")
    print(f"  Total savings:        {format_currency(projection.total_savings)}")
    print(f"  Net profit:           {format_currency(projection.net_profit)}")
    irr = format_percent(projection.irr * 100) if projection.irr is not None else "N/A"
    print(f"  IRR:                  {irr}")


def print_comparison(comparison: PlanComparison) -> None:
    print_header("PLAN COMPARISON")
    rows = []
    for plan_id, result in comparison.results.items():
        projection = comparison.projections.get(plan_id)
        marker = " *" if plan_id == comparison.best_plan_id else ""
        if not result.valid:
            rows.append([plan_id.upper() + marker, "withheld", "-", "-", "-", "-"])
            continue
        rows.append([
            plan_id.upper() + marker,
            format_currency(result.annual.export_credits),
            format_currency(result.annual.import_cost),
            format_currency(result.annual.net_annual_bill),
            format_percent(result.annual.bill_offset_percent),
            format_years(projection.payback_years) if projection else "-",
        ])
    print_table(["Plan", "Credits", "Import Cost", "Net Bill", "Offset", "Payback"], rows)
    if comparison.best_plan_id:
        print(f"\n  * Best plan: {comparison.best_plan_id.upper()}")
    else:
        print("\n  No plan could be calculated.")


# ============================================================================
# REQUEST CONSTRUCTION
# ============================================================================

def parse_float_list(text: str) -> List[float]:
    try:
        return [float(v) for v in text.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected comma-separated numbers, got '{text}'")


def parse_distribution(values: Optional[List[float]], plan_id: str) -> UsageDistribution:
    """Build a distribution from on,mid,off[,ulo] or fall back to the plan default."""
    if values is None:
        return DEFAULT_ULO_DISTRIBUTION if plan_id == PLAN_ULO else DEFAULT_TOU_DISTRIBUTION
    if len(values) not in (3, 4):
        raise argparse.ArgumentTypeError("--distribution expects on,mid,off[,ulo] percentages")
    return UsageDistribution(
        on_peak_percent=values[0],
        mid_peak_percent=values[1],
        off_peak_percent=values[2],
        ultra_low_percent=values[3] if len(values) == 4 else None,
    )


def build_request(args: argparse.Namespace) -> NetMeteringRequest:
    if args.production:
        production = args.production
    elif args.annual_production is not None:
        production = spread_annual_production(args.annual_production)
    else:
        raise NetMeteringError("Either --production or --annual-production is required")

    battery = None
    if args.battery_kwh:
        battery = BatteryInputs(usable_kwh=args.battery_kwh, round_trip_efficiency=args.battery_rte)

    kwargs = {}
    if args.year is not None:
        kwargs["year"] = args.year
    return NetMeteringRequest(
        monthly_solar_production_kwh=production,
        annual_usage_kwh=args.usage,
        rate_plan_id=args.plan,
        province=args.province,
        usage_distribution=parse_distribution(args.distribution, args.plan),
        battery=battery,
        ai_mode=args.ai_mode,
        **kwargs,
    )


def load_registry(library_name: Optional[str]) -> Optional[RateRegistry]:
    """Find a rate library by (partial) name and build its registry."""
    if not library_name:
        return None
    library = RateLibrary()
    for name in library.get_library_names():
        if library_name.lower() in name.lower():
            logger.info("Using rate library '%s'", name)
            return library.build_registry(name)
    raise KeyError(f"Library '{library_name}' not found. Available: {library.get_library_names()}")


def write_charts(result: NetMeteringResult, projection: Optional[ProjectionResult], chart_dir: str) -> None:
    out = Path(chart_dir)
    out.mkdir(parents=True, exist_ok=True)
    create_monthly_ledger_chart(result.monthly, str(out / f"{result.plan_id}_monthly.png"))
    create_period_cost_chart(result.by_period, str(out / f"{result.plan_id}_periods.png"))
    if projection is not None:
        create_savings_chart(projection, str(out / f"{result.plan_id}_savings.png"))
    print(f"\nCharts written to {out}")


# ============================================================================
# MAIN CLI
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""

    parser = argparse.ArgumentParser(
        description="Net Metering CLI - Solar Net Metering & Battery Savings Calculator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python netmeter_cli.py --annual-production 9000 --usage 10000
  python netmeter_cli.py --annual-production 9000 --usage 10000 --plan ulo
  python netmeter_cli.py --annual-production 9000 --usage 10000 --province AB
  python netmeter_cli.py --annual-production 9000 --usage 10000 --battery-kwh 13.5 --ai-mode
  python netmeter_cli.py --annual-production 9000 --usage 10000 --compare --cost 20000
  python netmeter_cli.py --load request.json --json
        """
    )

    # Request inputs
    parser.add_argument("--production", type=parse_float_list,
                        help="12 monthly production values in kWh, comma-separated")
    parser.add_argument("--annual-production", type=float,
                        help="Annual production in kWh, spread over months with the default profile")
    parser.add_argument("--usage", type=float, default=10000.0,
                        help="Annual usage in kWh (default: 10000)")
    parser.add_argument("--plan", type=str, default=PLAN_TOU,
                        help="Rate plan: tou, ulo or tiered (default: tou)")
    parser.add_argument("--province", type=str, default="ON",
                        help="Province code; AB selects the Alberta Solar Club (default: ON)")
    parser.add_argument("--year", type=int,
                        help="Simulation year (default: current year)")
    parser.add_argument("--distribution", type=parse_float_list,
                        help="Usage distribution on,mid,off[,ulo] in percent")
    parser.add_argument("--battery-kwh", type=float,
                        help="Usable battery capacity in kWh")
    parser.add_argument("--battery-rte", type=float, default=0.90,
                        help="Battery round-trip efficiency (default: 0.90)")
    parser.add_argument("--ai-mode", action="store_true",
                        help="Allow grid charging for battery arbitrage")

    # Projection
    parser.add_argument("--cost", type=float, default=0.0,
                        help="Net system cost after rebates, for payback")
    parser.add_argument("--escalation", type=float, default=DEFAULT_ESCALATION_RATE,
                        help="Annual electricity price escalation (default: 0.03)")
    parser.add_argument("--compare", action="store_true",
                        help="Compare TOU, ULO and Tiered")
    parser.add_argument("--library", "-l", type=str,
                        help="Rate library name (partial match)")

    # File operations
    parser.add_argument("--load", type=str,
                        help="Load request from JSON file")
    parser.add_argument("--save", type=str,
                        help="Save request to JSON file")
    parser.add_argument("--save-result", type=str,
                        help="Save result to JSON file")
    parser.add_argument("--json", action="store_true",
                        help="Print the result as JSON instead of tables")
    parser.add_argument("--chart", type=str, metavar="DIR",
                        help="Write PNG charts to a directory")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    try:
        registry = load_registry(args.library)
        request = load_request(args.load) if args.load else build_request(args)
    except (ValueError, KeyError, OSError, argparse.ArgumentTypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    is_valid, messages = validate_request(request, args.escalation, all_plans=args.compare)
    if not args.json:
        for message in messages:
            print(f"  {message}")
    if not is_valid:
        return 1

    if args.save:
        save_request(request, args.save)
        print(f"\nRequest saved to {args.save}")

    if args.compare:
        try:
            comparison = compare_plans(request, args.cost, args.escalation, registry=registry)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        if args.json:
            print(json.dumps(comparison.to_dict(), indent=2))
        else:
            print_comparison(comparison)
            best = comparison.best_plan_id
            if best:
                print_projection(comparison.projections[best])
        if args.chart and comparison.best_plan_id:
            best = comparison.best_plan_id
            write_charts(comparison.results[best], comparison.projections[best], args.chart)
        return 0

    try:
        result = calculate_net_metering(request, registry)
    except NetMeteringError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    projection = None
    if result.valid:
        projection = project_savings(result.annual_savings_with_battery, args.cost, args.escalation)

    if args.json:
        data = result.to_dict()
        if projection is not None:
            data["projection"] = projection.to_dict()
        print(json.dumps(data, indent=2))
    else:
        print_result(result)
        if projection is not None:
            print_projection(projection)

    if args.save_result:
        save_result(result, args.save_result)
        print(f"\nResult saved to {args.save_result}")

    if args.chart and result.valid:
        write_charts(result, projection, args.chart)

    return 0


if __name__ == "__main__":
    sys.exit(main())
