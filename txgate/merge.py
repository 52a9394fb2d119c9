"""
Transaction Anomaly Gate - Anomaly Merger
"""

from txgate.models import Anomaly


def merge_anomalies(*sources) -> list[Anomaly]:
    """Combine anomaly lists keyed by row.

    A row seen again gets the union of errors (first occurrence order) and
    the highest confidence among its contributors. Inputs are not mutated.
    """
    merged: dict[int, Anomaly] = {}
    for source in sources:
        for anomaly in source or ():
            existing = merged.get(anomaly.row)
            if existing is None:
                merged[anomaly.row] = anomaly.copy()
                continue
            for reason in anomaly.reasons:
                existing.add(reason)
            existing.confidence = max(existing.confidence, anomaly.confidence)
            for name, value in anomaly.snapshot.items():
                existing.snapshot.setdefault(name, value)
    return list(merged.values())
