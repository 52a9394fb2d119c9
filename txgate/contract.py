"""
Transaction Anomaly Gate - Output Validator / Repairer

``validate_anomalies`` fails fast on the first contract violation;
``repair_anomalies`` never raises and returns a well-formed (possibly
shorter) list. ``ensure_well_formed`` tries the former and falls back to
the latter.
"""

from txgate.models import NA, SNAPSHOT_FIELDS
from txgate.parser import is_blank, parse_amount
from txgate.scoring import clamp

DEFAULT_CONFIDENCE = 0.5
PLACEHOLDER_ERROR = "Unspecified anomaly"


class AnomalyContractError(ValueError):
    def __init__(self, message: str, index=None):
        super().__init__(message if index is None else f"Anomaly {index}: {message}")
        self.index = index


def validate_anomalies(anomalies) -> None:
    if not isinstance(anomalies, list):
        raise AnomalyContractError(f"expected a list, got {type(anomalies).__name__}")
    for idx, item in enumerate(anomalies):
        if not isinstance(item, dict):
            raise AnomalyContractError(f"expected an object, got {type(item).__name__}", idx)
        if item.get("row") is None:
            raise AnomalyContractError("missing row", idx)
        if not isinstance(item.get("errors"), (list, str)):
            raise AnomalyContractError("errors must be a list or a string", idx)
        amount = item.get("amount", NA)
        if amount != NA and not is_blank(amount) and parse_amount(amount) is None:
            raise AnomalyContractError(f"amount is not a number: {amount!r}", idx)


def _row(value):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _errors(value) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else [PLACEHOLDER_ERROR]
    if isinstance(value, list):
        errors = [str(e) for e in value if not is_blank(e)]
        return errors or [PLACEHOLDER_ERROR]
    return [PLACEHOLDER_ERROR]


def _confidence(value) -> float:
    if isinstance(value, bool) or is_blank(value):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CONFIDENCE
    return clamp(confidence)


def repair_anomalies(anomalies) -> list[dict]:
    if not isinstance(anomalies, (list, tuple)):
        return []
    repaired = []
    for item in anomalies:
        if not isinstance(item, dict):
            continue
        row = _row(item.get("row"))
        if row is None:
            continue
        fixed = dict(item)
        fixed["row"] = row
        fixed["errors"] = _errors(item.get("errors"))
        fixed["confidence"] = _confidence(item.get("confidence"))
        for name in SNAPSHOT_FIELDS:
            fixed.setdefault(name, NA)
        repaired.append(fixed)
    return repaired


def ensure_well_formed(anomalies, logs: list = None) -> list[dict]:
    try:
        validate_anomalies(anomalies)
    except AnomalyContractError as e:
        if logs is not None:
            logs.append(f"Output contract violation ({e}); repaired")
        return repair_anomalies(anomalies)
    return anomalies
