from __future__ import annotations

import io
import logging
import re
from collections import Counter
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from pmreport.models import Project, TimesheetEntry


logger = logging.getLogger(__name__)

COST_EFFICIENCY_COLUMNS = {
    "No": "id",
    "Status": "status",
    "PM": "pm",
    "Project Name": "project_name",
    "Budget-Internal": "budget_internal",
    "Budget-Buffer": "budget_buffer",
    "Budget-Total": "budget_total",
    "Budget-Spent": "budget_spent",
    "Budget-Percentage": "budget_percentage",
    "Project_Progress": "project_progress",
    "Budget_Overrun": "budget_overrun",
    "Budget_Underrun": "budget_underrun",
    "CE_Indicator": "ce_indicator",
}
COST_EFFICIENCY_NUMERIC = [
    "budget_internal",
    "budget_buffer",
    "budget_total",
    "budget_spent",
    "budget_percentage",
    "project_progress",
    "budget_overrun",
    "budget_underrun",
]

TIMESHEET_COLUMNS = {
    "No": "no",
    "Date": "date",
    "User": "user",
    "Activity": "activity",
    "Work Package": "work_package",
    "Comment": "comment",
    "Project": "project",
    "Hour": "hour",
    "OP-ID": "op_id",
    "Timesheet Category": "timesheet_category",
}
TIMESHEET_NUMERIC = ["hour"]

_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

CsvContent = Union[str, bytes]


def parse_european_number(value: object) -> Optional[float]:
    """Parse ``"12,5%"``-style cells; ``None`` for blanks and unparseable text."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    s = str(value).replace("%", "").strip().replace(" ", "")
    if not s:
        return None
    if "," in s:
        if "." in s and s.index(".") < s.rindex(","):
            s = s.replace(".", "")
        s = s.replace(",", ".", 1)
    match = _LEADING_NUMBER.match(s)
    if not match:
        return None
    return float(match.group(0))


def _decode(content: CsvContent) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace")
    return content.lstrip("\ufeff")


def read_csv_rows(content: CsvContent) -> pd.DataFrame:
    """Read a comma separated export as trimmed strings; blank lines are skipped."""
    text = _decode(content)
    if not text.strip():
        return pd.DataFrame()
    df = pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        skipinitialspace=True,
        on_bad_lines="warn",
    )
    df.columns = [str(c).strip() for c in df.columns]
    df = df.loc[:, ~df.columns.duplicated()].copy()
    for col in df.columns:
        df[col] = df[col].str.strip()
    return df


def _mapped_frame(df: pd.DataFrame, columns: Dict[str, str], numeric: Iterable[str]) -> pd.DataFrame:
    numeric = set(numeric)
    out = pd.DataFrame(index=df.index)
    for raw, col in columns.items():
        values = df[raw] if raw in df.columns else pd.Series("", index=df.index)
        if col in numeric:
            parsed = [parse_european_number(v) for v in values]
        else:
            parsed = [v if isinstance(v, str) and v else None for v in values]
        # object dtype keeps None instead of NaN in the records
        out[col] = pd.Series(parsed, index=df.index, dtype=object)
    return out


def compute_variance(budget_percentage: Optional[float], project_progress: Optional[float]) -> Optional[float]:
    if budget_percentage is None or project_progress is None:
        return None
    return budget_percentage - project_progress


def load_projects(content: CsvContent) -> List[Project]:
    df = read_csv_rows(content)
    if df.empty:
        return []
    frame = _mapped_frame(df, COST_EFFICIENCY_COLUMNS, COST_EFFICIENCY_NUMERIC)
    projects: List[Project] = []
    for record in frame.to_dict(orient="records"):
        record["variance"] = compute_variance(record["budget_percentage"], record["project_progress"])
        projects.append(Project(**record))
    missing = sum(1 for p in projects if p.variance is None)
    if missing:
        logger.info("cost efficiency export: %d of %d projects without variance", missing, len(projects))
    return projects


def load_timesheet_entries(content: CsvContent) -> List[TimesheetEntry]:
    df = read_csv_rows(content)
    if df.empty:
        return []
    frame = _mapped_frame(df, TIMESHEET_COLUMNS, TIMESHEET_NUMERIC)
    return [TimesheetEntry(**record) for record in frame.to_dict(orient="records")]


def parse_date(value: object) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        pass
    parsed = pd.to_datetime(s, errors="coerce", dayfirst=True)
    if pd.isna(parsed):
        return None
    return parsed.date()


def iso_week_id(value: object) -> Optional[str]:
    """``"2024-W05"`` for the ISO week containing ``value``."""
    d = parse_date(value)
    if d is None:
        return None
    year, week, _ = d.isocalendar()
    return f"{year}-W{week:02d}"


def detect_week(content: CsvContent) -> Optional[str]:
    """Most frequent ISO week in a timesheet's ``Date`` column; the first seen wins ties."""
    df = read_csv_rows(content)
    if df.empty or "Date" not in df.columns:
        return None
    weeks = Counter(w for w in (iso_week_id(v) for v in df["Date"]) if w is not None)
    if not weeks:
        return None
    return weeks.most_common(1)[0][0]


def format_week_label(week_id: str) -> str:
    year, _, week = week_id.partition("-W")
    if not week:
        return week_id
    return f"Week {int(week)}, {year}"
