import math

import pytest

from pmreport.models import ThresholdBand
from pmreport.thresholds import (
    DEFAULT_BAND_COLOR,
    DEFAULT_VARIANCE_THRESHOLDS,
    ConfigurationError,
    describe_band,
    normalize_thresholds,
    thresholds_to_records,
)


def test_none_selects_defaults():
    bands = normalize_thresholds(None)
    assert bands is DEFAULT_VARIANCE_THRESHOLDS
    assert [b.label for b in bands] == ["Excellent", "Normal", "Warning", "Need Attention", "Need Action"]
    assert math.isinf(bands[-1].max_variance)


def test_accepts_camel_case_and_open_last_band():
    bands = normalize_thresholds(
        [
            {"label": "Good", "maxVariance": 5, "color": "#00ff00"},
            {"label": "Bad", "maxVariance": None, "color": "#ff0000"},
        ]
    )
    assert bands == (
        ThresholdBand("Good", 5.0, "#00ff00"),
        ThresholdBand("Bad", math.inf, "#ff0000"),
    )


def test_numeric_strings_and_missing_colors():
    bands = normalize_thresholds([{"label": " Low ", "max_variance": "10"}, {"label": "High"}])
    assert bands[0] == ThresholdBand("Low", 10.0, DEFAULT_BAND_COLOR)
    assert bands[1].max_variance == math.inf


@pytest.mark.parametrize(
    "raw",
    [
        [],
        [{"label": "A", "max_variance": None}, {"label": "B", "max_variance": 10}],
        [{"label": "A", "max_variance": 10}, {"label": "B", "max_variance": 5}, {"label": "C"}],
        [{"label": "A", "max_variance": 10}, {"label": "B", "max_variance": 10}],
        [{"label": "A", "max_variance": 0}, {"label": "A", "max_variance": 10}],
        [{"label": "  ", "max_variance": 0}],
        ["not a band"],
    ],
)
def test_rejects_unusable_band_lists(raw):
    with pytest.raises(ConfigurationError):
        normalize_thresholds(raw)


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        normalize_thresholds([])


def test_records_use_none_for_open_bound():
    records = thresholds_to_records(DEFAULT_VARIANCE_THRESHOLDS)
    assert records[0] == {"label": "Excellent", "max_variance": 0.0, "color": "#4caf50"}
    assert records[-1]["max_variance"] is None
    assert normalize_thresholds(records) == DEFAULT_VARIANCE_THRESHOLDS


def test_describe_band():
    bands = DEFAULT_VARIANCE_THRESHOLDS
    assert describe_band(bands, 0) == "<= 0"
    assert describe_band(bands, 1) == "> 0 and <= 10"
    assert describe_band(bands, 3) == "> 20 and <= 30"
    assert describe_band(bands, 4) == "> 30"
