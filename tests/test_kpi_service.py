"""
Unit tests for the KPI calculator, summary reducer and trend builder.
"""
from datetime import datetime

import pytest

from maintenance_kpis.config import MACHINES, MachineDefinition
from maintenance_kpis.services.kpi_service import (
    KPIResult,
    PeriodFilter,
    UsageRecord,
    available_years,
    build_trend,
    calculate_kpis,
    get_kpis,
    period_label,
    summarize,
    trend_periods,
)

ESTUFA = "Estufa"
GUILLOTINA = "Guillotina - PS - GT 01"


def _kpi(failures, mtbf, mttr, availability):
    return KPIResult(failures=failures, mtbf=mtbf, mttr=mttr, availability=availability,
                     avg_priority=None, tto=0.0, valid_repairs=0)


class TestCalculateKpis:
    """Tests for calculate_kpis."""

    def test_month_window(self, work_orders, usage_records):
        result = calculate_kpis(ESTUFA, work_orders, usage_records, PeriodFilter(2024, 6))
        assert result.failures == 2
        assert result.valid_repairs == 1
        assert result.mttr == 6.0
        assert result.avg_priority == 2.0
        assert result.tto == 15.0
        assert result.mtbf == 7.5
        # 7.5 / (7.5 + 6.0)
        assert result.availability == 55.6

    def test_unrestricted_window(self, work_orders, usage_records):
        result = calculate_kpis(ESTUFA, work_orders, usage_records)
        assert result.failures == 3
        assert result.valid_repairs == 1
        assert result.tto == 17.0
        assert result.mtbf == 5.7
        assert result.mttr == 6.0
        assert result.availability == 48.6

    def test_alias_spelling_and_multi_day_repair(self, work_orders, usage_records):
        result = calculate_kpis(GUILLOTINA, work_orders, usage_records, PeriodFilter(year=2024))
        assert result.failures == 1
        assert result.mttr == 48.0
        assert result.mtbf == 20.0
        assert result.availability == 29.4
        assert result.avg_priority == 2.0

    def test_exact_match_only(self, work_orders, usage_records):
        """Lowercase 'estufa' is a different machine."""
        result = calculate_kpis("estufa", work_orders, usage_records, PeriodFilter(2024, 6))
        assert result.failures == 1
        estufa = calculate_kpis(ESTUFA, work_orders, usage_records, PeriodFilter(2024, 6))
        assert estufa.failures == 2

    def test_no_records_at_all(self):
        result = calculate_kpis(ESTUFA, [], [])
        assert result == KPIResult(failures=0, mtbf=0.0, mttr=0.0, availability=100.0,
                                   avg_priority=None, tto=0.0, valid_repairs=0)

    def test_no_failures_with_usage(self, usage_records):
        result = calculate_kpis(ESTUFA, [], usage_records, PeriodFilter(2024, 6))
        assert result.failures == 0
        assert result.mtbf == 15.0
        assert result.availability == 100.0

    def test_single_repair_pair(self):
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "2024-01-01T00:00", "Fecha Reparacion": "2024-01-01T06:00"}]
        result = calculate_kpis(ESTUFA, orders, [])
        assert result.mttr == 6.0
        assert result.valid_repairs == 1

    def test_repair_before_request_is_excluded(self):
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "2024-01-02", "Fecha Reparacion": "2024-01-01"}]
        result = calculate_kpis(ESTUFA, orders, [])
        assert result.failures == 1
        assert result.valid_repairs == 0
        assert result.mttr == 0.0

    def test_failures_without_usage_or_repairs(self):
        """Zero MTBF and MTTR with failures gives 0% availability."""
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "2024-01-02"}]
        result = calculate_kpis(ESTUFA, orders, [])
        assert result.failures == 1
        assert result.mtbf == 0.0
        assert result.mttr == 0.0
        assert result.availability == 0.0

    def test_unparseable_repair_date_still_counts_as_failure(self):
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "2024-01-02", "Fecha Reparacion": "pendiente"}]
        result = calculate_kpis(ESTUFA, orders, [UsageRecord("2024-01-05", ESTUFA, 600)])
        assert result.failures == 1
        assert result.valid_repairs == 0
        assert result.availability == 100.0

    def test_unparseable_request_date_is_outside_every_window(self):
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "sin fecha"}]
        assert calculate_kpis(ESTUFA, orders, []).failures == 0

    def test_priorities_outside_range_are_ignored(self):
        orders = [
            {"Maquina": ESTUFA, "Fecha Pedido": "2024-01-02", "Prioridad": "5"},
            {"Maquina": ESTUFA, "Fecha Pedido": "2024-01-03", "Prioridad": "0"},
            {"Maquina": ESTUFA, "Fecha Pedido": "2024-01-04", "Prioridad": "Alta"},
        ]
        assert calculate_kpis(ESTUFA, orders, []).avg_priority is None

    def test_average_priority_rounding(self):
        orders = [
            {"Maquina": ESTUFA, "Fecha Pedido": "2024-01-02", "Prioridad": p}
            for p in ("1", "1", "2")
        ]
        assert calculate_kpis(ESTUFA, orders, []).avg_priority == 1.3

    @pytest.mark.parametrize("mtbf_minutes,repair_hours", [(600, 1), (6000, 2), (60, 10), (1, 100)])
    def test_availability_formula(self, mtbf_minutes, repair_hours):
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "2024-01-01",
                   "Fecha Reparacion": f"2024-01-0{1 + repair_hours // 24} {repair_hours % 24:02d}:00:00"}]
        usage = [UsageRecord("2024-01-01", ESTUFA, mtbf_minutes)]
        result = calculate_kpis(ESTUFA, orders, usage)
        mtbf = mtbf_minutes / 60
        expected = mtbf / (mtbf + repair_hours) * 100
        assert result.availability == pytest.approx(min(100.0, expected), abs=0.05)
        assert 0.0 <= result.availability <= 100.0

    def test_negative_usage_minutes_do_not_count(self):
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "2024-01-01", "Fecha Reparacion": "2024-01-01 10:00:00"}]
        usage = [UsageRecord("2024-01-01", ESTUFA, -300.0), UsageRecord("2024-01-02", ESTUFA, 120.0)]

        result = calculate_kpis(ESTUFA, orders, usage)

        assert result.tto == 2.0
        assert result.mtbf == 2.0
        assert result.mttr == 10.0
        assert result.availability == 16.7

    def test_only_negative_usage(self):
        orders = [{"Maquina": ESTUFA, "Fecha Pedido": "2024-01-01", "Fecha Reparacion": "2024-01-01 10:00:00"}]
        result = calculate_kpis(ESTUFA, orders, [UsageRecord("2024-01-01", ESTUFA, -300.0)])
        assert result.mtbf == 0.0
        assert result.availability == 0.0


class TestSummarize:
    """Tests for the fleet summary."""

    def test_averages_exclude_machines_without_failures(self):
        results = [
            _kpi(2, 10.0, 2.0, 83.3),
            _kpi(1, 30.0, 4.0, 88.2),
            _kpi(0, 50.0, 0.0, 100.0),
        ]
        summary = summarize(results)
        assert summary.total_failures == 3
        assert summary.avg_mtbf == 20.0
        assert summary.avg_mttr == 3.0
        # availability includes the machine without failures
        assert summary.avg_availability == 90.5

    def test_no_failures_anywhere(self):
        summary = summarize([_kpi(0, 5.0, 0.0, 100.0), _kpi(0, 0.0, 0.0, 100.0)])
        assert summary.total_failures == 0
        assert summary.avg_mtbf == 0.0
        assert summary.avg_mttr == 0.0
        assert summary.avg_availability == 100.0

    def test_empty_fleet(self):
        summary = summarize([])
        assert summary.total_failures == 0
        assert summary.avg_availability == 0.0


class TestTrendPeriods:
    """Tests for trend_periods."""

    def test_year_only_gives_twelve_months(self):
        periods = trend_periods(PeriodFilter(year=2024))
        assert periods == [(2024, m) for m in range(1, 13)]

    def test_pinned_month_gives_no_trend(self):
        assert trend_periods(PeriodFilter(2024, 6)) == []

    def test_trailing_window_crosses_year(self):
        periods = trend_periods(PeriodFilter(), now=datetime(2024, 1, 15))
        assert len(periods) == 12
        assert periods[0] == (2023, 2)
        assert periods[-1] == (2024, 1)

    def test_trailing_window_within_year(self):
        periods = trend_periods(PeriodFilter(), now=datetime(2024, 12, 31))
        assert periods == [(2024, m) for m in range(1, 13)]

    def test_month_without_year_uses_trailing_window(self):
        periods = trend_periods(PeriodFilter(month=3), now=datetime(2024, 7, 1))
        assert periods[-1] == (2024, 7)
        assert len(periods) == 12

    def test_period_label(self):
        assert period_label(2024, 3) == "Mar '24"
        assert period_label(2023, 12) == "Dic '23"


class TestBuildTrend:
    """Tests for build_trend."""

    def test_year_trend_keeps_months_with_failures(self, work_orders, usage_records):
        rows = build_trend(work_orders, usage_records, trend_periods(PeriodFilter(year=2024)))
        assert [r.period for r in rows] == ["2024-06", "2024-07"]

        june = rows[0].to_dict()
        assert june["label"] == "Jun '24"
        assert june["Estufa"] == 55.6
        assert june["Estufa_f"] == 2
        assert june["Guillotina 01"] is None
        assert june["Guillotina 01_f"] == 0

        july = rows[1].to_dict()
        assert july["Guillotina 01"] == 29.4
        assert july["Estufa"] is None

    def test_every_machine_has_a_column(self, work_orders, usage_records):
        rows = build_trend(work_orders, usage_records, [(2024, 6)])
        row = rows[0].to_dict()
        for machine in MACHINES:
            assert machine.label in row
            assert f"{machine.label}_f" in row

    def test_empty_months_are_dropped(self):
        assert build_trend([], [], [(2024, m) for m in range(1, 13)]) == []


class TestGetKpis:
    """Tests for the assembled query."""

    def test_report_for_a_month(self, work_orders, usage_records):
        report = get_kpis(work_orders, usage_records, PeriodFilter(2024, 6))
        assert [k.machine.key for k in report.kpis] == [m.key for m in MACHINES]
        assert report.summary.total_failures == 2
        assert report.summary.avg_mtbf == 7.5
        assert report.summary.avg_mttr == 6.0
        assert report.summary.avg_availability == 92.6
        assert report.years == [2023, 2024]
        assert report.trend == []

    def test_trailing_trend(self, work_orders, usage_records):
        report = get_kpis(work_orders, usage_records, now=datetime(2024, 7, 15))
        assert [r.period for r in report.trend] == ["2023-12", "2024-06", "2024-07"]
        december = report.trend[0].to_dict()
        assert december["Estufa"] == 100.0

    def test_custom_fleet(self, work_orders, usage_records):
        fleet = [MachineDefinition("estufa", "Estufa B", "EST-B", "*", "#000000")]
        report = get_kpis(work_orders, usage_records, PeriodFilter(year=2024), machines=fleet)
        assert len(report.kpis) == 1
        assert report.kpis[0].kpi.failures == 1

    def test_available_years_ignores_bad_dates(self):
        orders = [{"Fecha Pedido": "2022-05-01"}, {"FechaPedido": "01/01/2021"}, {"Fecha Pedido": "?"}]
        assert available_years(orders) == [2021, 2022]
