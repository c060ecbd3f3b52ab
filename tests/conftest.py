from __future__ import annotations

import pytest

from pmreport.models import Project
from pmreport.storage import WeekStore
from pmreport.thresholds import DEFAULT_VARIANCE_THRESHOLDS


COST_EFFICIENCY_CSV = (
    "No,Status,PM,Project Name,Budget-Internal,Budget-Buffer,Budget-Total,Budget-Spent,"
    "Budget-Percentage,Project_Progress,Budget_Overrun,Budget_Underrun,CE_Indicator\n"
    '1,Active,Alice,"Alpha, Phase 1","1000,5",100,"1100,5",500,"45,5%",40%,,,Green\n'
    '2,Active,Alice,Beta,2000,0,2000,1500,75%,50%,"250,0",,Red\n'
    "3,Done,Bob,Gamma,500,0,500,100,20%,30%,,50,Green\n"
    "4,Active,,Delta,100,0,100,,,,,,\n"
)

TIMESHEET_CSV = (
    "No,Date,User,Activity,Work Package,Comment,Project,Hour,OP-ID,Timesheet Category\n"
    '1,2024-01-15,alice,Dev,WP1,"Fix, things",Alpha,"7,5",OP-1,Billable\n'
    "2,2024-01-16,bob,Dev,WP1,,Alpha,8,OP-2,Billable\n"
    "3,2024-01-22,bob,Review,WP2,,Beta,4,OP-3,Internal\n"
)


@pytest.fixture
def bands():
    return DEFAULT_VARIANCE_THRESHOLDS


@pytest.fixture
def scenario_b_projects():
    return [
        Project(id="1", pm="Alice", variance=5),
        Project(id="2", pm="Alice", variance=25),
        Project(id="3", pm=None, variance=None),
    ]


@pytest.fixture
def store(tmp_path):
    return WeekStore(tmp_path)


@pytest.fixture
def cost_efficiency_csv():
    return COST_EFFICIENCY_CSV.encode("utf-8")


@pytest.fixture
def timesheet_csv():
    return TIMESHEET_CSV.encode("utf-8")
