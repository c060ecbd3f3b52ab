from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ThresholdBand:
    label: str
    max_variance: float = float("inf")
    color: str = ""


@dataclass(frozen=True)
class Project:
    id: Optional[str] = None
    pm: Optional[str] = None
    variance: Optional[float] = None
    budget_overrun: Optional[float] = None
    budget_underrun: Optional[float] = None
    status: Optional[str] = None
    project_name: Optional[str] = None
    budget_internal: Optional[float] = None
    budget_buffer: Optional[float] = None
    budget_total: Optional[float] = None
    budget_spent: Optional[float] = None
    budget_percentage: Optional[float] = None
    project_progress: Optional[float] = None
    ce_indicator: Optional[str] = None


@dataclass(frozen=True)
class TimesheetEntry:
    no: Optional[str] = None
    date: Optional[str] = None
    user: Optional[str] = None
    activity: Optional[str] = None
    work_package: Optional[str] = None
    comment: Optional[str] = None
    project: Optional[str] = None
    hour: Optional[float] = None
    op_id: Optional[str] = None
    timesheet_category: Optional[str] = None
