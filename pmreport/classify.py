from __future__ import annotations

from typing import Optional, Sequence

from pmreport.formatting import as_number
from pmreport.models import ThresholdBand


OVERRUN = "Overrun"
ON_TRACK = "On Track"
UNDERRUN = "Underrun"

BUDGET_STATUS_ORDER = (UNDERRUN, ON_TRACK, OVERRUN)


def classify_variance(variance: object, bands: Sequence[ThresholdBand]) -> Optional[str]:
    """Return the label of the band containing ``variance``.

    Bands are read positionally as half-open intervals ``(prev_max, max]``: the
    first band is open to -inf on the left and the last band catches everything
    above the previous bound, whatever its own ``max_variance`` says. A missing
    or non-numeric variance, or an empty band list, is unclassified (``None``).
    """
    value = as_number(variance)
    if value is None or not bands:
        return None

    last = len(bands) - 1
    for i, band in enumerate(bands):
        if i == last:
            return band.label
        if i == 0:
            if value <= band.max_variance:
                return band.label
        elif bands[i - 1].max_variance < value <= band.max_variance:
            return band.label
    return None


def budget_status(budget_overrun: object, budget_underrun: object) -> str:
    overrun = as_number(budget_overrun)
    if overrun is not None and overrun > 0:
        return OVERRUN
    underrun = as_number(budget_underrun)
    if underrun is not None and underrun > 0:
        return UNDERRUN
    return ON_TRACK
