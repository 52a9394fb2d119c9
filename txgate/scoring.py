"""
Transaction Anomaly Gate - Confidence Scorer

Adjusts each merged anomaly's confidence from the kinds of its reasons:

  - +0.1 per reason beyond the first (this step capped at 1.0)
  - +0.1 per reason marked MISSING
  - +0.2 per reason marked INVALID
  - -0.1 per reason marked SUSPICIOUS, never pushing below 0.3

Adjustments are summed before they are applied, so rule order does not
matter. The result is clamped to [0, 1].
"""

from txgate.models import Anomaly, ReasonKind

MULTI_ERROR_BONUS = 0.1
MISSING_BONUS = 0.1
INVALID_BONUS = 0.2
SUSPICIOUS_PENALTY = 0.1
SUSPICIOUS_FLOOR = 0.3


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def score(anomaly: Anomaly) -> float:
    base = anomaly.confidence if anomaly.confidence is not None else 1.0
    base = min(1.0, base + MULTI_ERROR_BONUS * max(0, len(anomaly.reasons) - 1))

    bonus = penalty = 0.0
    for reason in anomaly.reasons:
        if ReasonKind.MISSING in reason.kind:
            bonus += MISSING_BONUS
        if ReasonKind.INVALID in reason.kind:
            bonus += INVALID_BONUS
        if ReasonKind.SUSPICIOUS in reason.kind:
            penalty += SUSPICIOUS_PENALTY

    raised = base + bonus
    confidence = raised - penalty
    if penalty:
        # floor only limits the penalty; it never lifts a lower value
        confidence = max(confidence, min(SUSPICIOUS_FLOOR, raised))
    return clamp(confidence)


def score_anomalies(anomalies) -> list[Anomaly]:
    for anomaly in anomalies:
        anomaly.confidence = score(anomaly)
    return anomalies
