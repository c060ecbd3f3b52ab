from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from pmreport.classify import BUDGET_STATUS_ORDER, budget_status, classify_variance
from pmreport.formatting import as_number, format_pct
from pmreport.models import ThresholdBand


UNKNOWN_PM = "Unknown"
FRAME_COLUMNS = ["id", "pm", "variance", "band", "budget_status"]


@dataclass(frozen=True)
class VarianceSummary:
    counts: Dict[str, int]
    percentages: Dict[str, str]
    valid_count: int
    total_projects: int
    skipped: int


@dataclass(frozen=True)
class PMVarianceRow:
    pm: str
    counts: Dict[str, int]
    total: int
    percentage: str


@dataclass(frozen=True)
class PMVarianceTable:
    rows: List[PMVarianceRow]
    totals: Dict[str, int]
    total: int
    percentage: str


@dataclass(frozen=True)
class PMAssignmentRow:
    pm: str
    count: int
    percentage: str


@dataclass(frozen=True)
class PMAssignment:
    rows: List[PMAssignmentRow]
    total_projects: int


@dataclass(frozen=True)
class BudgetStatusSummary:
    counts: Dict[str, int]
    percentages: Dict[str, str]
    total_projects: int


@dataclass(frozen=True)
class AggregationReport:
    variance_summary: VarianceSummary
    pm_variance: PMVarianceTable
    pm_assignment: PMAssignment
    budget_status: BudgetStatusSummary


def normalize_pm(value: object) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return UNKNOWN_PM
    s = str(value).strip()
    return s or UNKNOWN_PM


def band_labels(bands: Iterable[ThresholdBand]) -> List[str]:
    """Configured labels in band order, each once."""
    return list(dict.fromkeys(b.label for b in bands))


def _field(project: Any, name: str) -> Any:
    if isinstance(project, Mapping):
        return project.get(name)
    return getattr(project, name, None)


def classify_projects(projects: Iterable[Any], bands: Sequence[ThresholdBand]) -> List[Dict[str, Any]]:
    """One record per project with its band label (or ``None``) and budget status."""
    records: List[Dict[str, Any]] = []
    for project in projects:
        variance = as_number(_field(project, "variance"))
        records.append(
            {
                "id": _field(project, "id"),
                "pm": normalize_pm(_field(project, "pm")),
                "variance": variance,
                "band": classify_variance(variance, bands),
                "budget_status": budget_status(_field(project, "budget_overrun"), _field(project, "budget_underrun")),
            }
        )
    return records


def projects_frame(projects: Iterable[Any], bands: Sequence[ThresholdBand]) -> pd.DataFrame:
    return pd.DataFrame(classify_projects(projects, bands), columns=FRAME_COLUMNS)


def _band_counts(band_series: pd.Series, labels: List[str]) -> Dict[str, int]:
    counts = band_series.dropna().value_counts()
    return {label: int(counts.get(label, 0)) for label in labels}


def _variance_summary(frame: pd.DataFrame, labels: List[str]) -> VarianceSummary:
    counts = _band_counts(frame["band"], labels)
    valid = int(frame["band"].notna().sum())
    total = int(len(frame))
    return VarianceSummary(
        counts=counts,
        percentages={label: format_pct(n, valid) for label, n in counts.items()},
        valid_count=valid,
        total_projects=total,
        skipped=total - valid,
    )


def _pm_variance_table(frame: pd.DataFrame, labels: List[str]) -> PMVarianceTable:
    valid = int(frame["band"].notna().sum())
    # Rows are keyed by projects with a variance; only classified ones add to the counts.
    scored = frame[frame["variance"].notna()]
    rows: List[PMVarianceRow] = []
    for pm, group in scored.groupby("pm", sort=False):
        total = int(group["band"].notna().sum())
        rows.append(
            PMVarianceRow(
                pm=str(pm),
                counts=_band_counts(group["band"], labels),
                total=total,
                percentage=format_pct(total, valid),
            )
        )
    rows = sorted(rows, key=lambda r: r.total, reverse=True)
    totals = {label: sum(r.counts[label] for r in rows) for label in labels}
    return PMVarianceTable(rows=rows, totals=totals, total=valid, percentage=format_pct(valid, valid))


def _pm_assignment(frame: pd.DataFrame) -> PMAssignment:
    total = int(len(frame))
    sizes = frame.groupby("pm", sort=False).size()
    rows = [PMAssignmentRow(pm=str(pm), count=int(n), percentage=format_pct(int(n), total)) for pm, n in sizes.items()]
    return PMAssignment(rows=sorted(rows, key=lambda r: r.count, reverse=True), total_projects=total)


def _budget_status_summary(frame: pd.DataFrame) -> BudgetStatusSummary:
    total = int(len(frame))
    value_counts = frame["budget_status"].value_counts()
    counts = {status: int(value_counts.get(status, 0)) for status in BUDGET_STATUS_ORDER}
    return BudgetStatusSummary(
        counts=counts,
        percentages={status: format_pct(n, total) for status, n in counts.items()},
        total_projects=total,
    )


def variance_summary(projects: Iterable[Any], bands: Sequence[ThresholdBand]) -> VarianceSummary:
    return _variance_summary(projects_frame(projects, bands), band_labels(bands))


def pm_variance_table(projects: Iterable[Any], bands: Sequence[ThresholdBand]) -> PMVarianceTable:
    return _pm_variance_table(projects_frame(projects, bands), band_labels(bands))


def pm_assignment(projects: Iterable[Any]) -> PMAssignment:
    return _pm_assignment(projects_frame(projects, ()))


def budget_status_summary(projects: Iterable[Any]) -> BudgetStatusSummary:
    return _budget_status_summary(projects_frame(projects, ()))


def aggregate(projects: Iterable[Any], bands: Sequence[ThresholdBand]) -> AggregationReport:
    """Classify every project once and build all report sections from the same frame."""
    bands = tuple(bands)
    frame = projects_frame(projects, bands)
    labels = band_labels(bands)
    return AggregationReport(
        variance_summary=_variance_summary(frame, labels),
        pm_variance=_pm_variance_table(frame, labels),
        pm_assignment=_pm_assignment(frame),
        budget_status=_budget_status_summary(frame),
    )
