# occupancy_map/occupancy.py
import math

import numpy as np

from .models import HSLColor, SensorRecord

HUE_EMPTY = 120.0   # green
HUE_PER_PERCENT = 1.2
SATURATION = 75
LIGHTNESS = 45


def aggregate_occupancy(record: SensorRecord) -> int:
    """
    Representative occupancy of a record:
    mean of the sub-units (rounded, half up), else the scalar rate, else 0.
    Out-of-range values are kept as-is; only the color is clamped.
    """
    if record.occupancy_sub_units:
        with np.errstate(over="ignore", invalid="ignore"):
            mean = float(np.mean(np.array(record.occupancy_sub_units, dtype=float)))
        if not math.isfinite(mean):
            return 0
        return int(math.floor(mean + 0.5))
    if record.occupancy_scalar is not None:
        return int(record.occupancy_scalar)
    return 0


def clamp_rate(rate) -> float:
    if rate is None:
        return 0.0
    rate = float(rate)
    if math.isnan(rate):
        return 0.0
    return min(100.0, max(0.0, rate))


def occupancy_color(rate) -> HSLColor:
    """0% -> hue 120 (green), 100% -> hue 0 (red)."""
    hue = HUE_EMPTY - clamp_rate(rate) * HUE_PER_PERCENT
    return HSLColor(hue=round(hue, 6), saturation=SATURATION, lightness=LIGHTNESS)
