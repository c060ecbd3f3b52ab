import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import List, Optional, Sequence

from pmreport.aggregate import AggregationReport, aggregate
from pmreport.charts import (
    budget_status_pie_chart,
    pm_assignment_bar_chart,
    pm_assignment_pie_chart,
    pm_variance_bar_chart,
    variance_pie_chart,
)
from pmreport.classify import BUDGET_STATUS_ORDER
from pmreport.data import format_week_label
from pmreport.models import ThresholdBand
from pmreport.storage import InvalidUploadError, StorageError, WeekStore
from pmreport.thresholds import DEFAULT_VARIANCE_THRESHOLDS, ConfigurationError, describe_band, thresholds_to_records


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #6b7280;}
        .band-chip {display: inline-block;border-radius: 10px;padding: 2px 8px;margin-right: 6px;color: white;font-size: 0.8rem;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def band_legend_html(bands: Sequence[ThresholdBand]) -> str:
    bands = tuple(bands)
    return "".join(
        f"<span class='band-chip' style='background:{b.color}'>{b.label}: {describe_band(bands, i)}%</span>"
        for i, b in enumerate(bands)
    )


@st.cache_resource
def get_store() -> WeekStore:
    return WeekStore()


# ---------- UI setup ----------
st.set_page_config(page_title="PM Report", layout="wide")
inject_base_styles()
st.title("PM Report")
st.caption("Weekly project variance (Budget Spent % - Project Progress %) by risk band and project manager.")

store = get_store()

if "thresholds" not in st.session_state:
    st.session_state["thresholds"] = store.load_thresholds()
if "selected_week" not in st.session_state:
    st.session_state["selected_week"] = None


# ----- Sidebar: weekly data manager -----
with st.sidebar:
    st.markdown("### Upload timesheet")
    st.caption("Creates a week entry; the week is detected from the Date column.")
    timesheet_file = st.file_uploader("Timesheet CSV", type=["csv"], key="timesheet_upload")
    if timesheet_file is not None and st.button("Store timesheet"):
        try:
            week_id, _ = store.save_timesheet(timesheet_file.name, timesheet_file.getvalue())
            st.session_state["selected_week"] = week_id
            st.success(f"Stored timesheet for {format_week_label(week_id)}")
        except InvalidUploadError as exc:
            st.error(str(exc))

    st.markdown("---")
    st.markdown("### Weekly data")
    weeks = store.list_weeks()
    if not weeks:
        st.info("No data uploaded yet. Upload a timesheet to get started.")
    else:
        week_ids = [w["week_id"] for w in weeks]
        current = st.session_state["selected_week"]
        index = week_ids.index(current) if current in week_ids else 0
        selected_week = st.radio("Week", week_ids, index=index, format_func=format_week_label)
        st.session_state["selected_week"] = selected_week
        week = next(w for w in weeks if w["week_id"] == selected_week)

        st.write(
            {
                "Timesheet": "present" if week["has_timesheet"] else "missing",
                "Cost Efficiency": "present" if week["has_cost_efficiency"] else "missing",
            }
        )
        ce_file = st.file_uploader("Cost efficiency CSV", type=["csv"], key=f"ce_upload_{selected_week}")
        if ce_file is not None and st.button("Store cost efficiency"):
            try:
                store.save_cost_efficiency(selected_week, ce_file.name, ce_file.getvalue())
                st.success("Cost efficiency file uploaded")
            except StorageError as exc:
                st.error(str(exc))

        cols = st.columns(3)
        if week["has_timesheet"] and cols[0].button("Remove timesheet"):
            store.delete_file(selected_week, "timesheet")
            st.rerun()
        if week["has_cost_efficiency"] and cols[1].button("Remove CE"):
            store.delete_file(selected_week, "cost_efficiency")
            st.rerun()
        if cols[2].button("Delete week"):
            store.delete_week(selected_week)
            st.session_state["selected_week"] = None
            st.rerun()

    st.markdown("---")
    with st.expander("Variance thresholds", expanded=False):
        st.caption("Variance = Budget Spent (%) - Project Progress (%). Leave the last band's max empty for a catch-all.")
        edited = st.data_editor(
            pd.DataFrame(thresholds_to_records(st.session_state["thresholds"])),
            num_rows="dynamic",
            hide_index=True,
            key="threshold_editor",
            column_config={
                "label": st.column_config.TextColumn("Category"),
                "max_variance": st.column_config.NumberColumn("Max Variance (%)"),
                "color": st.column_config.TextColumn("Color"),
            },
        )
        save_col, reset_col = st.columns(2)
        if save_col.button("Save settings"):
            records = edited.astype(object).where(edited.notna(), None).to_dict(orient="records")
            try:
                st.session_state["thresholds"] = store.save_thresholds(records)
                st.success("Thresholds saved")
            except ConfigurationError as exc:
                st.error(str(exc))
        if reset_col.button("Reset to default"):
            st.session_state["thresholds"] = store.reset_thresholds()
            st.rerun()


# ---------- Dashboard ----------
def render_variance_summary(report: AggregationReport):
    summary = report.variance_summary
    skipped = f"{summary.skipped} skipped due to missing data" if summary.skipped else None
    with card("Variance Summary", actions=skipped):
        table = pd.DataFrame(
            [summary.counts, {k: f"{v}%" for k, v in summary.percentages.items()}],
            index=["Total Projects", "Percentage"],
        )
        st.dataframe(table, use_container_width=True)
        st.caption(f"Total projects analyzed: {summary.valid_count}")


def render_pm_variance_table(report: AggregationReport):
    table = report.pm_variance
    with card("Variance by Project Manager"):
        if not table.rows:
            st.info("No project data to display")
            return
        rows = [{"PM": r.pm, **r.counts, "Total": r.total, "%": f"{r.percentage}%"} for r in table.rows]
        rows.append({"PM": "Total", **table.totals, "Total": table.total, "%": f"{table.percentage}%"})
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def render_budget_status(report: AggregationReport):
    summary = report.budget_status
    with card("Budget Status (Overrun / Underrun)"):
        if not summary.total_projects:
            st.info("No data")
            return
        table = pd.DataFrame(
            [
                {s: summary.counts[s] for s in BUDGET_STATUS_ORDER},
                {s: f"{summary.percentages[s]}%" for s in BUDGET_STATUS_ORDER},
            ],
            index=["Count", "%"],
        )
        st.dataframe(table, use_container_width=True)
        chart = budget_status_pie_chart(summary)
        if chart is not None:
            st.altair_chart(chart, use_container_width=True)


def render_chart(title: str, chart, empty_message: str = "No data"):
    with card(title):
        if chart is None:
            st.info(empty_message)
        else:
            st.altair_chart(chart, use_container_width=True)


def render_dashboard(week_id: str, bands: Sequence[ThresholdBand]):
    st.subheader(format_week_label(week_id))
    st.markdown(band_legend_html(bands), unsafe_allow_html=True)
    projects = store.projects_for_week(week_id)
    if projects is None:
        st.info("No cost efficiency data available for this week.")
        return

    report = aggregate(projects, bands)
    row1 = st.columns(2)
    with row1[0]:
        render_variance_summary(report)
    with row1[1]:
        render_pm_variance_table(report)

    row2 = st.columns(3)
    with row2[0]:
        render_chart("Variance Distribution", variance_pie_chart(report.variance_summary, bands))
    with row2[1]:
        render_chart("PM Assignment %", pm_assignment_pie_chart(report.pm_assignment))
    with row2[2]:
        render_chart("PM Assignment Count", pm_assignment_bar_chart(report.pm_assignment))

    row3 = st.columns(2)
    with row3[0]:
        render_budget_status(report)
    with row3[1]:
        render_chart("Variance by PM", pm_variance_bar_chart(report.pm_variance, bands), "No project data to display")


selected: Optional[str] = st.session_state.get("selected_week")
available: List[str] = [w["week_id"] for w in store.list_weeks()]
if selected is None or selected not in available:
    st.info("Select a week in the sidebar (upload a timesheet to create one).")
else:
    try:
        render_dashboard(selected, st.session_state.get("thresholds") or DEFAULT_VARIANCE_THRESHOLDS)
    except StorageError as exc:
        st.error(str(exc))
