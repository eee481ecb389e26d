from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional

from maintenance_kpis.services.kpi_service import KPIReport


# --- Response models for /api/kpis (camelCase keys, as the dashboard expects) ---

class Machine(BaseModel):
    key: str
    label: str
    code: str
    icon: str
    color: str


class MachineKPIs(Machine):
    failures: int
    mtbf: float
    mttr: float
    availability: float
    avgPriority: Optional[float] = None
    tto: float
    validRepairs: int


class Summary(BaseModel):
    totalFailures: int
    avgAvailability: float
    avgMTBF: float
    avgMTTR: float


class KPIResponse(BaseModel):
    # trend rows carry one key per machine label, so they stay plain dicts
    model_config = ConfigDict(extra='forbid')

    kpis: List[MachineKPIs]
    summary: Summary
    years: List[int]
    trend: List[Dict[str, Any]]
    machines: List[Machine]

    @classmethod
    def from_report(cls, report: KPIReport) -> 'KPIResponse':
        return cls(
            kpis=[
                MachineKPIs(
                    **item.machine.to_dict(),
                    failures=item.kpi.failures,
                    mtbf=item.kpi.mtbf,
                    mttr=item.kpi.mttr,
                    availability=item.kpi.availability,
                    avgPriority=item.kpi.avg_priority,
                    tto=item.kpi.tto,
                    validRepairs=item.kpi.valid_repairs
                )
                for item in report.kpis
            ],
            summary=Summary(
                totalFailures=report.summary.total_failures,
                avgAvailability=report.summary.avg_availability,
                avgMTBF=report.summary.avg_mtbf,
                avgMTTR=report.summary.avg_mttr
            ),
            years=report.years,
            trend=[row.to_dict() for row in report.trend],
            machines=[Machine(**m.to_dict()) for m in report.machines]
        )


class MachineNameCount(BaseModel):
    name: str
    count: int
    codepoints: List[int]


class MachineDebugResponse(BaseModel):
    total: int
    machines: List[MachineNameCount]
