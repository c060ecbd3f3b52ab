from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from pmreport.aggregate import BudgetStatusSummary, PMAssignment, PMVarianceTable, VarianceSummary
from pmreport.classify import BUDGET_STATUS_ORDER, ON_TRACK, OVERRUN, UNDERRUN
from pmreport.models import ThresholdBand

alt.data_transformers.disable_max_rows()

PM_COLORS = [
    "#1a73e8",
    "#4caf50",
    "#ff9800",
    "#9c27b0",
    "#00bcd4",
    "#f44336",
    "#3f51b5",
    "#8bc34a",
    "#ff5722",
    "#607d8b",
]
BUDGET_STATUS_COLORS = {UNDERRUN: "#4caf50", ON_TRACK: "#2196f3", OVERRUN: "#f44336"}


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _band_colors(bands: Sequence[ThresholdBand]) -> Dict[str, str]:
    colors: Dict[str, str] = {}
    for band in bands:
        colors.setdefault(band.label, band.color)
    return colors


def pm_color(index: int) -> str:
    return PM_COLORS[index % len(PM_COLORS)]


def _pie(df: pd.DataFrame, *, category: str, title: str, domain: List[str], colors: List[str]) -> alt.Chart:
    return (
        alt.Chart(df)
        .mark_arc(stroke="white", strokeWidth=2)
        .encode(
            theta=alt.Theta("count:Q", stack=True),
            color=alt.Color(f"{category}:N", title=title, sort=domain, scale=alt.Scale(domain=domain, range=colors)),
            order=alt.Order("order:Q"),
            tooltip=[f"{category}:N", "count:Q", alt.Tooltip("percentage:N", title="%")],
        )
        .properties(height=260)
    )


def variance_pie_chart(summary: VarianceSummary, bands: Sequence[ThresholdBand]) -> Optional[alt.Chart]:
    """Project distribution by variance band; empty bands are left out."""
    colors = _band_colors(bands)
    rows = [
        {"band": label, "count": count, "percentage": summary.percentages[label], "order": i}
        for i, (label, count) in enumerate(summary.counts.items())
        if count > 0
    ]
    if not rows:
        return None
    df = pd.DataFrame(rows)
    domain = df["band"].tolist()
    return _pie(df, category="band", title="Variance", domain=domain, colors=[colors.get(b, "") for b in domain])


def budget_status_pie_chart(summary: BudgetStatusSummary) -> Optional[alt.Chart]:
    rows = [
        {"status": status, "count": summary.counts[status], "percentage": summary.percentages[status], "order": i}
        for i, status in enumerate(BUDGET_STATUS_ORDER)
        if summary.counts[status] > 0
    ]
    if not rows:
        return None
    df = pd.DataFrame(rows)
    domain = df["status"].tolist()
    return _pie(df, category="status", title="Budget Status", domain=domain, colors=[BUDGET_STATUS_COLORS[s] for s in domain])


def _assignment_frame(assignment: PMAssignment) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"pm": row.pm, "count": row.count, "percentage": row.percentage, "order": i, "color": pm_color(i)}
            for i, row in enumerate(assignment.rows)
        ]
    )


def pm_assignment_pie_chart(assignment: PMAssignment) -> Optional[alt.Chart]:
    if not assignment.rows:
        return None
    df = _assignment_frame(assignment)
    return _pie(df, category="pm", title="PM", domain=df["pm"].tolist(), colors=df["color"].tolist())


def pm_assignment_bar_chart(assignment: PMAssignment) -> Optional[alt.Chart]:
    if not assignment.rows:
        return None
    df = _assignment_frame(assignment)
    order = df["pm"].tolist()
    return (
        alt.Chart(df)
        .mark_bar(cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
        .encode(
            x=alt.X("pm:N", title=None, sort=order, axis=alt.Axis(labelAngle=-45)),
            y=alt.Y("count:Q", title="Projects", axis=alt.Axis(tickMinStep=1, format="d")),
            color=alt.Color("pm:N", legend=None, scale=alt.Scale(domain=order, range=df["color"].tolist())),
            tooltip=["pm:N", alt.Tooltip("count:Q", title="Projects"), alt.Tooltip("percentage:N", title="%")],
        )
        .properties(height=260)
    )


def pm_variance_bar_chart(table: PMVarianceTable, bands: Sequence[ThresholdBand]) -> Optional[alt.Chart]:
    """Horizontal bars per PM, stacked by variance band."""
    if not table.rows:
        return None
    colors = _band_colors(bands)
    labels = list(colors)
    long_df = pd.DataFrame(
        [
            {"pm": row.pm, "band": label, "count": row.counts.get(label, 0), "band_order": j, "total": row.total}
            for row in table.rows
            for j, label in enumerate(labels)
        ]
    )
    return (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            y=alt.Y("pm:N", title=None, sort=[row.pm for row in table.rows]),
            x=alt.X("count:Q", title="Projects", stack="zero", axis=alt.Axis(tickMinStep=1, format="d")),
            color=alt.Color("band:N", title="Variance", sort=labels, scale=alt.Scale(domain=labels, range=[colors[label] for label in labels])),
            order=alt.Order("band_order:Q"),
            tooltip=["pm:N", "band:N", alt.Tooltip("count:Q", title="Projects"), alt.Tooltip("total:Q", title="Total")],
        )
        .properties(height=max(120, 28 * len(table.rows)))
    )
