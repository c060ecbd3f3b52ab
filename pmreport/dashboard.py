from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, Optional, Sequence

from pmreport.aggregate import aggregate
from pmreport.charts import (
    budget_status_pie_chart,
    pm_assignment_bar_chart,
    pm_assignment_pie_chart,
    pm_variance_bar_chart,
    to_vega_spec,
    variance_pie_chart,
)
from pmreport.data import format_week_label
from pmreport.models import Project, ThresholdBand
from pmreport.thresholds import describe_band, thresholds_to_records


def threshold_payload(bands: Sequence[ThresholdBand]) -> list:
    bands = tuple(bands)
    return [{**record, "range": describe_band(bands, i)} for i, record in enumerate(thresholds_to_records(bands))]


def compute_dashboard(week_id: str, projects: Optional[Iterable[Project]], bands: Sequence[ThresholdBand]) -> Dict[str, Any]:
    """Report sections plus Vega-Lite specs for one week; ``projects=None`` means no cost efficiency data."""
    bands = tuple(bands)
    payload: Dict[str, Any] = {
        "week_id": week_id,
        "week_label": format_week_label(week_id),
        "thresholds": threshold_payload(bands),
        "has_projects": projects is not None,
        "report": None,
        "charts": {},
    }
    if projects is None:
        return payload

    report = aggregate(list(projects), bands)
    charts = {
        "variance_pie": variance_pie_chart(report.variance_summary, bands),
        "pm_assignment_pie": pm_assignment_pie_chart(report.pm_assignment),
        "pm_assignment_bar": pm_assignment_bar_chart(report.pm_assignment),
        "budget_status_pie": budget_status_pie_chart(report.budget_status),
        "pm_variance_bar": pm_variance_bar_chart(report.pm_variance, bands),
    }
    payload["report"] = asdict(report)
    payload["charts"] = {name: (to_vega_spec(chart) if chart is not None else None) for name, chart in charts.items()}
    return payload
