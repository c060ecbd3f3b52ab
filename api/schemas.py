from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ThresholdBandModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str
    max_variance: Optional[float] = Field(default=None, alias="maxVariance")
    color: str = ""


class ThresholdSettingsModel(BaseModel):
    thresholds: List[ThresholdBandModel]


class ReportRequestModel(BaseModel):
    thresholds: Optional[List[ThresholdBandModel]] = None


class ProjectModel(BaseModel):
    id: Optional[Union[int, str]] = None
    pm: Optional[str] = None
    variance: Optional[float] = None
    budget_overrun: Optional[float] = None
    budget_underrun: Optional[float] = None


class ClassifyRequestModel(BaseModel):
    projects: List[ProjectModel] = Field(default_factory=list)
    thresholds: Optional[List[ThresholdBandModel]] = None
