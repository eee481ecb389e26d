"""
Fetch live data from AppSheet and Google Sheets and print the KPI table.

Usage:
    python scripts/print_kpis.py --year 2024 --month 6
"""
import argparse
import os
import sys

from dotenv import load_dotenv

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

# Config reads the environment at import time
load_dotenv(os.path.join(project_root, ".env"))

from maintenance_kpis.config import MACHINES, config_by_name
from maintenance_kpis.errors import KPIServiceError
from maintenance_kpis.services.kpi_service import PeriodFilter, get_kpis
from maintenance_kpis.services.providers import AppSheetClient, SheetsClient, fetch_snapshot


def print_report(year=None, month=None):
    config_class = config_by_name["default"]
    config = {key: getattr(config_class, key) for key in dir(config_class) if key.isupper()}
    try:
        snapshot = fetch_snapshot(AppSheetClient.from_config(config), SheetsClient.from_config(config))
    except KPIServiceError as e:
        print(f"ERROR: {e}")
        return 1

    report = get_kpis(snapshot.work_orders, snapshot.usage, PeriodFilter(year, month), MACHINES)

    print(f"{'Machine':<16}{'Fail':>6}{'MTBF h':>10}{'MTTR h':>10}{'Avail %':>10}{'Prio':>6}{'TTO h':>10}")
    for item in report.kpis:
        k = item.kpi
        priority = f"{k.avg_priority:.1f}" if k.avg_priority is not None else '-'
        print(f"{item.machine.label:<16}{k.failures:>6}{k.mtbf:>10.1f}{k.mttr:>10.1f}"
              f"{k.availability:>10.1f}{priority:>6}{k.tto:>10.1f}")

    s = report.summary
    print(f"\nTotal failures: {s.total_failures} | Avg availability: {s.avg_availability}% | "
          f"Avg MTBF: {s.avg_mtbf} h | Avg MTTR: {s.avg_mttr} h")
    print(f"Years with data: {', '.join(str(y) for y in report.years) or '-'}")
    for row in report.trend:
        print(f"  {row.label}: " + ', '.join(
            f"{label}={'-' if value is None else value}" for label, value in row.availability.items()
        ))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print maintenance KPIs for a period.")
    parser.add_argument('--year', type=int, default=None)
    parser.add_argument('--month', type=int, default=None)
    args = parser.parse_args()
    sys.exit(print_report(args.year, args.month))
