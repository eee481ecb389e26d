"""
KPI Service

Computes the maintenance reliability metrics shown on the dashboard:
- Failure count per machine (work orders opened in the period)
- MTTR (Mean Time To Repair) from request/repair timestamps
- MTBF (Mean Time Between Failures) from recorded operating minutes
- Availability = MTBF / (MTBF + MTTR)
- Average work order priority
- Fleet summary and month-by-month availability trend

All functions here are pure: they work on records that have already been
retrieved and never touch the network or the clock unless ``now`` is omitted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from maintenance_kpis.config import FIELD_ALIASES, MACHINES, MachineDefinition
from maintenance_kpis.services.parsing import (
    get_field,
    in_period,
    parse_date,
    parse_priority,
    round1,
)

MONTH_LABELS = ['Ene', 'Feb', 'Mar', 'Abr', 'May', 'Jun', 'Jul', 'Ago', 'Sep', 'Oct', 'Nov', 'Dic']


@dataclass(frozen=True)
class PeriodFilter:
    """(year, month) window; a missing part places no constraint."""
    year: Optional[int] = None
    month: Optional[int] = None

    @property
    def is_unrestricted(self) -> bool:
        return self.year is None and self.month is None


@dataclass(frozen=True)
class UsageRecord:
    """One row of the daily machine usage sheet."""
    date: str
    machine: str
    minutes: float = 0.0


@dataclass
class KPIResult:
    """Reliability metrics for one machine over one period"""
    failures: int
    mtbf: float          # hours
    mttr: float          # hours
    availability: float  # percent, 0-100
    avg_priority: Optional[float]
    tto: float           # total operating hours
    valid_repairs: int


@dataclass
class MachineKPI:
    machine: MachineDefinition
    kpi: KPIResult


@dataclass
class FleetSummary:
    total_failures: int
    avg_availability: float
    avg_mtbf: float
    avg_mttr: float


@dataclass
class TrendRow:
    """Availability of every machine in a single month.

    ``availability`` holds None for machines without failures that month so
    "no incidents" is never mistaken for 0% availability.
    """
    period: str
    label: str
    availability: Dict[str, Optional[float]] = field(default_factory=dict)
    failures: Dict[str, int] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return any(count > 0 for count in self.failures.values())

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {'period': self.period, 'label': self.label}
        for label, value in self.availability.items():
            row[label] = value
            row[f'{label}_f'] = self.failures.get(label, 0)
        return row


@dataclass
class KPIReport:
    """Everything the dashboard needs for one query."""
    kpis: List[MachineKPI]
    summary: FleetSummary
    years: List[int]
    trend: List[TrendRow]
    machines: Sequence[MachineDefinition]


def _machine_name(record: Dict[str, Any]) -> str:
    return str(get_field(record, FIELD_ALIASES['machine'])).strip()


def _request_date(record: Dict[str, Any]) -> Optional[datetime]:
    return parse_date(get_field(record, FIELD_ALIASES['request_date']))


def _repair_date(record: Dict[str, Any]) -> Optional[datetime]:
    return parse_date(get_field(record, FIELD_ALIASES['repair_date']))


def calculate_kpis(
    machine_key: str,
    work_orders: Sequence[Dict[str, Any]],
    usage_records: Sequence[UsageRecord],
    period: Optional[PeriodFilter] = None
) -> KPIResult:
    """
    Calculate the reliability metrics of one machine.

    MTTR = mean(repair date - request date) over work orders with a usable pair
    MTBF = operating hours / failures (operating hours when there are none)
    Availability = MTBF / (MTBF + MTTR) * 100
    """
    period = period or PeriodFilter()

    machine_orders = [
        wo for wo in work_orders
        if _machine_name(wo) == machine_key
        and in_period(_request_date(wo), period.year, period.month)
    ]
    failures = len(machine_orders)

    total_repair_minutes = 0.0
    valid_repairs = 0
    priorities: List[int] = []

    for wo in machine_orders:
        requested = _request_date(wo)
        repaired = _repair_date(wo)
        if requested and repaired and repaired >= requested:
            elapsed_minutes = (repaired - requested).total_seconds() / 60
            if elapsed_minutes > 0:
                total_repair_minutes += elapsed_minutes
                valid_repairs += 1

        priority = parse_priority(get_field(wo, FIELD_ALIASES['priority'], None))
        if priority is not None and 1 <= priority <= 3:
            priorities.append(priority)

    mttr_hours = total_repair_minutes / valid_repairs / 60 if valid_repairs > 0 else 0.0
    avg_priority = sum(priorities) / len(priorities) if priorities else None

    operating_minutes = sum(
        max(r.minutes, 0.0) for r in usage_records
        if r.machine.strip() == machine_key
        and in_period(parse_date(r.date), period.year, period.month)
    )
    tto_hours = operating_minutes / 60
    mtbf_hours = tto_hours / failures if failures > 0 else tto_hours

    denominator = mtbf_hours + mttr_hours
    if denominator > 0:
        availability = mtbf_hours / denominator * 100
    else:
        # No operating time and no repair time: a machine that never failed
        # counts as fully available, one that did fail as unavailable.
        availability = 100.0 if failures == 0 else 0.0

    return KPIResult(
        failures=failures,
        mtbf=round1(mtbf_hours),
        mttr=round1(mttr_hours),
        availability=round1(max(0.0, min(availability, 100.0))),
        avg_priority=round1(avg_priority) if avg_priority is not None else None,
        tto=round1(tto_hours),
        valid_repairs=valid_repairs
    )


def summarize(results: Sequence[KPIResult]) -> FleetSummary:
    """
    Reduce per-machine results to fleet-wide figures.

    MTBF and MTTR are averaged only over machines that had failures; a
    machine without failures would otherwise drag MTTR towards zero.
    """
    if not results:
        return FleetSummary(total_failures=0, avg_availability=0.0, avg_mtbf=0.0, avg_mttr=0.0)

    with_failures = [r for r in results if r.failures > 0]
    return FleetSummary(
        total_failures=sum(r.failures for r in results),
        avg_availability=round1(sum(r.availability for r in results) / len(results)),
        avg_mtbf=round1(sum(r.mtbf for r in with_failures) / len(with_failures)) if with_failures else 0.0,
        avg_mttr=round1(sum(r.mttr for r in with_failures) / len(with_failures)) if with_failures else 0.0
    )


def trend_periods(period: PeriodFilter, now: Optional[datetime] = None) -> List[Tuple[int, int]]:
    """
    Months the trend chart covers.

    A year alone gives its twelve months, no year gives the trailing twelve
    months ending with the current one, a fully pinned month gives nothing.
    """
    if period.year is not None and period.month is None:
        return [(period.year, month) for month in range(1, 13)]
    if period.year is not None:
        return []

    now = now or datetime.now()
    periods = []
    for offset in range(11, -1, -1):
        # months counted from year 0 so the offset can cross year boundaries
        index = now.year * 12 + (now.month - 1) - offset
        periods.append((index // 12, index % 12 + 1))
    return periods


def period_label(year: int, month: int) -> str:
    return f"{MONTH_LABELS[month - 1]} '{str(year)[-2:]}"


def build_trend(
    work_orders: Sequence[Dict[str, Any]],
    usage_records: Sequence[UsageRecord],
    periods: Sequence[Tuple[int, int]],
    machines: Sequence[MachineDefinition] = MACHINES
) -> List[TrendRow]:
    """One row per month with at least one failure across the fleet."""
    rows = []
    for year, month in periods:
        row = TrendRow(period=f'{year}-{month:02d}', label=period_label(year, month))
        for machine in machines:
            kpi = calculate_kpis(machine.key, work_orders, usage_records, PeriodFilter(year, month))
            row.availability[machine.label] = kpi.availability if kpi.failures > 0 else None
            row.failures[machine.label] = kpi.failures
        if row.has_data:
            rows.append(row)
    return rows


def available_years(work_orders: Sequence[Dict[str, Any]]) -> List[int]:
    """Distinct request-date years, ascending, for the period selector."""
    years = set()
    for wo in work_orders:
        requested = _request_date(wo)
        if requested:
            years.add(requested.year)
    return sorted(years)


def get_kpis(
    work_orders: Sequence[Dict[str, Any]],
    usage_records: Sequence[UsageRecord],
    period: Optional[PeriodFilter] = None,
    machines: Sequence[MachineDefinition] = MACHINES,
    now: Optional[datetime] = None
) -> KPIReport:
    """Assemble per-machine KPIs, the fleet summary and the trend series."""
    period = period or PeriodFilter()

    kpis = [
        MachineKPI(machine=m, kpi=calculate_kpis(m.key, work_orders, usage_records, period))
        for m in machines
    ]

    return KPIReport(
        kpis=kpis,
        summary=summarize([k.kpi for k in kpis]),
        years=available_years(work_orders),
        trend=build_trend(work_orders, usage_records, trend_periods(period, now), machines),
        machines=machines
    )
