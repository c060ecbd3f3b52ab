import pytest

from pmreport.data import (
    compute_variance,
    detect_week,
    format_week_label,
    iso_week_id,
    load_projects,
    load_timesheet_entries,
    parse_european_number,
    read_csv_rows,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12,5", 12.5),
        ("45,5%", 45.5),
        ("-3,2 %", -3.2),
        ("1.234,5", 1234.5),
        ("10", 10.0),
        ("12.5abc", 12.5),
        (7, 7.0),
        ("", None),
        ("  ", None),
        (None, None),
        ("abc", None),
        ("%", None),
    ],
)
def test_parse_european_number(raw, expected):
    assert parse_european_number(raw) == expected


def test_compute_variance():
    assert compute_variance(45.5, 40.0) == pytest.approx(5.5)
    assert compute_variance(None, 40.0) is None
    assert compute_variance(45.5, None) is None


def test_load_projects(cost_efficiency_csv):
    projects = load_projects(cost_efficiency_csv)
    assert len(projects) == 4

    first = projects[0]
    assert first.id == "1"
    assert first.pm == "Alice"
    assert first.project_name == "Alpha, Phase 1"
    assert first.budget_internal == pytest.approx(1000.5)
    assert first.budget_percentage == pytest.approx(45.5)
    assert first.project_progress == pytest.approx(40.0)
    assert first.variance == pytest.approx(5.5)
    assert first.budget_overrun is None
    assert first.ce_indicator == "Green"

    assert projects[1].variance == pytest.approx(25.0)
    assert projects[1].budget_overrun == pytest.approx(250.0)
    assert projects[2].variance == pytest.approx(-10.0)
    assert projects[2].budget_underrun == pytest.approx(50.0)

    last = projects[3]
    assert last.pm is None
    assert last.variance is None
    assert last.ce_indicator is None


def test_load_projects_handles_bom_and_padding():
    content = "\ufeffNo , PM ,Budget-Percentage,Project_Progress\n1,  Bob  ,50%,20%\n".encode("utf-8")
    [project] = load_projects(content)
    assert project.id == "1"
    assert project.pm == "Bob"
    assert project.variance == pytest.approx(30.0)
    assert project.status is None


def test_load_projects_empty_input():
    assert load_projects(b"") == []
    assert read_csv_rows("   ").empty


def test_load_timesheet_entries(timesheet_csv):
    entries = load_timesheet_entries(timesheet_csv)
    assert len(entries) == 3
    assert entries[0].user == "alice"
    assert entries[0].comment == "Fix, things"
    assert entries[0].hour == pytest.approx(7.5)
    assert entries[0].work_package == "WP1"
    assert entries[0].op_id == "OP-1"
    assert entries[1].comment is None
    assert entries[2].timesheet_category == "Internal"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-15", "2024-W03"),
        ("2024-01-15T08:30:00", "2024-W03"),
        ("15.01.2024", "2024-W03"),
        ("2020-12-31", "2020-W53"),
        ("2021-01-03", "2020-W53"),
        ("2024-12-30", "2025-W01"),
        ("", None),
        ("not a date", None),
        (None, None),
    ],
)
def test_iso_week_id(value, expected):
    assert iso_week_id(value) == expected


def test_detect_week_uses_most_common_week(timesheet_csv):
    assert detect_week(timesheet_csv) == "2024-W03"


def test_detect_week_tie_goes_to_first_seen():
    content = "Date\n2024-01-22\n2024-01-15\n2024-01-16\n2024-01-23\n"
    assert detect_week(content) == "2024-W04"


def test_detect_week_without_dates():
    assert detect_week("User,Hour\nalice,8\n") is None
    assert detect_week("Date\nsoon\n") is None
    assert detect_week("") is None


def test_format_week_label():
    assert format_week_label("2024-W03") == "Week 3, 2024"
    assert format_week_label("2024-W52") == "Week 52, 2024"
    assert format_week_label("custom") == "custom"
