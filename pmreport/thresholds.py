from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pmreport.formatting import as_number
from pmreport.models import ThresholdBand


DEFAULT_VARIANCE_THRESHOLDS: Tuple[ThresholdBand, ...] = (
    ThresholdBand(label="Excellent", max_variance=0.0, color="#4caf50"),
    ThresholdBand(label="Normal", max_variance=10.0, color="#2196f3"),
    ThresholdBand(label="Warning", max_variance=20.0, color="#ff9800"),
    ThresholdBand(label="Need Attention", max_variance=30.0, color="#f57c00"),
    ThresholdBand(label="Need Action", max_variance=math.inf, color="#f44336"),
)

DEFAULT_BAND_COLOR = "#9e9e9e"


class ConfigurationError(ValueError):
    """Raised when a threshold band list cannot be used for classification."""


def _band_from_raw(item: Any, *, index: int, is_last: bool) -> ThresholdBand:
    if isinstance(item, ThresholdBand):
        label, raw_max, color = item.label, item.max_variance, item.color
    elif isinstance(item, Mapping):
        label = item.get("label")
        raw_max = item.get("max_variance", item.get("maxVariance"))
        color = item.get("color")
    else:
        raise ConfigurationError(f"Band {index} is not a mapping: {item!r}")

    label = str(label).strip() if label is not None else ""
    if not label:
        raise ConfigurationError(f"Band {index} has an empty label")

    max_variance = as_number(raw_max)
    if max_variance is None:
        # The last band is the catch-all; a missing bound means +inf (JSON has no Infinity).
        if not is_last:
            raise ConfigurationError(f"Band {label!r} needs a numeric max variance")
        max_variance = math.inf

    return ThresholdBand(label=label, max_variance=max_variance, color=str(color or DEFAULT_BAND_COLOR))


def normalize_thresholds(raw: Optional[Iterable[Any]]) -> Tuple[ThresholdBand, ...]:
    """Turn user-supplied band settings into a validated, immutable band tuple.

    ``None`` selects the default five-band set. Any other input must describe at
    least one band, with unique non-blank labels and strictly ascending
    ``max_variance`` values.
    """
    if raw is None:
        return DEFAULT_VARIANCE_THRESHOLDS

    items = list(raw)
    if not items:
        raise ConfigurationError("At least one threshold band is required")

    last = len(items) - 1
    bands = tuple(_band_from_raw(item, index=i, is_last=(i == last)) for i, item in enumerate(items))

    seen = set()
    for band in bands:
        if band.label in seen:
            raise ConfigurationError(f"Duplicate band label {band.label!r}")
        seen.add(band.label)

    for prev, cur in zip(bands, bands[1:]):
        if not cur.max_variance > prev.max_variance:
            raise ConfigurationError(
                f"Band {cur.label!r} max variance ({cur.max_variance}) must be greater than "
                f"{prev.label!r} ({prev.max_variance})"
            )
    return bands


def thresholds_to_records(bands: Iterable[ThresholdBand]) -> List[Dict[str, Any]]:
    """JSON-safe records; an infinite bound becomes ``None``."""
    return [
        {
            "label": b.label,
            "max_variance": b.max_variance if math.isfinite(b.max_variance) else None,
            "color": b.color,
        }
        for b in bands
    ]


def describe_band(bands: Tuple[ThresholdBand, ...], index: int) -> str:
    """Human readable interval for the band at ``index``, e.g. ``"> 10 and <= 20"``."""
    band = bands[index]
    if index == 0:
        return f"<= {_fmt_bound(band.max_variance)}"
    prev = _fmt_bound(bands[index - 1].max_variance)
    if index == len(bands) - 1 or not math.isfinite(band.max_variance):
        return f"> {prev}"
    return f"> {prev} and <= {_fmt_bound(band.max_variance)}"


def _fmt_bound(value: float) -> str:
    return f"{value:g}"
