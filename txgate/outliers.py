"""
Transaction Anomaly Gate - Statistical Outlier Detector

Two interchangeable methods over the collected amounts: Z-score
(population standard deviation) and IQR with the fixed quartile index
arithmetic ``floor((n+1)/4)-1`` / ``floor(3(n+1)/4)-1``.
"""

import math

import numpy as np

from txgate.config import OutlierConfig
from txgate.models import Anomaly, Reason
from txgate.parser import Table, format_amount

OUTLIER_CONFIDENCE = 0.8


def zscore_outliers(values, threshold: float) -> list[int]:
    """Positions of values with |x - mean| > threshold * stddev."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return []
    std = float(arr.std())
    if std == 0:
        return []
    mean = float(arr.mean())
    mask = np.abs(arr - mean) > threshold * std
    return [int(p) for p in np.flatnonzero(mask)]


def quartiles(values) -> tuple:
    """(Q1, Q3) by index arithmetic on the sorted values, None if n < 3."""
    ordered = sorted(values)
    n = len(ordered)
    q1_idx = math.floor((n + 1) / 4) - 1
    q3_idx = math.floor(3 * (n + 1) / 4) - 1
    if q1_idx < 0:
        return None
    return ordered[q1_idx], ordered[q3_idx]


def iqr_bounds(values, factor: float) -> tuple:
    q = quartiles(values)
    if q is None:
        return None
    q1, q3 = q
    iqr = q3 - q1
    return q1 - factor * iqr, q3 + factor * iqr


def iqr_outliers(values, factor: float) -> list[int]:
    bounds = iqr_bounds(values, factor)
    if bounds is None:
        return []
    lower, upper = bounds
    return [p for p, v in enumerate(values) if v < lower or v > upper]


def detect_outliers(table: Table, amounts, config: OutlierConfig,
                    date_patterns=()) -> list[Anomaly]:
    """``amounts`` holds (data index, amount) pairs collected by the validators."""
    if not config.check or config.method == "none" or not amounts:
        return []
    values = [a for _, a in amounts]

    if config.method == "zscore":
        positions = zscore_outliers(values, config.threshold)
        mean, std = float(np.mean(values)), float(np.std(values))

        def describe(v):
            return (f"Statistical outlier: amount {format_amount(v)} deviates from mean "
                    f"{mean:.2f} by more than {config.threshold:g} standard deviations "
                    f"(z={abs(v - mean) / std:.2f})")
    else:
        positions = iqr_outliers(values, config.iqr_factor)
        bounds = iqr_bounds(values, config.iqr_factor)

        def describe(v):
            return (f"Statistical outlier: amount {format_amount(v)} outside IQR bounds "
                    f"[{bounds[0]:.2f}, {bounds[1]:.2f}]")

    out = []
    for p in positions:
        i, value = amounts[p]
        out.append(Anomaly(
            table.row_number(i),
            [Reason(describe(value))],
            OUTLIER_CONFIDENCE,
            table.snapshot(i, date_patterns),
        ))
    return out
