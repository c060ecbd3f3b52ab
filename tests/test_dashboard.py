from pmreport.aggregate import aggregate
from pmreport.charts import (
    budget_status_pie_chart,
    pm_assignment_bar_chart,
    pm_variance_bar_chart,
    to_vega_spec,
    variance_pie_chart,
)
from pmreport.dashboard import compute_dashboard, threshold_payload
from pmreport.models import Project


def test_threshold_payload(bands):
    payload = threshold_payload(bands)
    assert payload[1] == {"label": "Normal", "max_variance": 10.0, "color": "#2196f3", "range": "> 0 and <= 10"}
    assert payload[-1]["max_variance"] is None


def test_dashboard_without_projects(bands):
    payload = compute_dashboard("2024-W05", None, bands)
    assert payload["week_label"] == "Week 5, 2024"
    assert payload["has_projects"] is False
    assert payload["report"] is None
    assert payload["charts"] == {}


def test_dashboard_with_empty_projects_has_no_charts(bands):
    payload = compute_dashboard("2024-W05", [], bands)
    assert payload["has_projects"] is True
    assert payload["report"]["variance_summary"]["valid_count"] == 0
    assert all(spec is None for spec in payload["charts"].values())


def test_dashboard_charts(bands, scenario_b_projects):
    payload = compute_dashboard("2024-W05", scenario_b_projects, bands)
    charts = payload["charts"]
    assert set(charts) == {"variance_pie", "pm_assignment_pie", "pm_assignment_bar", "budget_status_pie", "pm_variance_bar"}
    assert all(isinstance(spec, dict) for spec in charts.values())
    assert payload["report"]["pm_variance"]["rows"][0]["pm"] == "Alice"


def test_variance_pie_skips_empty_bands(bands, scenario_b_projects):
    report = aggregate(scenario_b_projects, bands)
    chart = variance_pie_chart(report.variance_summary, bands)
    values = chart.data["band"].tolist()
    assert values == ["Normal", "Need Attention"]
    color_scale = to_vega_spec(chart)["encoding"]["color"]["scale"]
    assert color_scale["range"] == ["#2196f3", "#f57c00"]


def test_charts_need_data(bands):
    report = aggregate([Project(id=1, pm="A")], bands)
    assert variance_pie_chart(report.variance_summary, bands) is None
    assert pm_variance_bar_chart(report.pm_variance, bands) is None
    assert pm_assignment_bar_chart(report.pm_assignment) is not None
    assert budget_status_pie_chart(report.budget_status) is not None
