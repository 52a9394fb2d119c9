"""
Transaction Anomaly Gate - Anomaly records and tagged reasons
"""

import enum
from dataclasses import dataclass, field

# 1 for the header row, 1 for 1-based numbering
HEADER_OFFSET = 2

NA = "N/A"

SNAPSHOT_FIELDS = ("amount", "date", "description", "category", "email", "transaction_type")


class ReasonKind(enum.Flag):
    """What a reason says about the row; drives confidence adjustment."""
    NONE = 0
    MISSING = enum.auto()
    INVALID = enum.auto()
    SUSPICIOUS = enum.auto()


@dataclass(frozen=True)
class Reason:
    message: str
    kind: ReasonKind = ReasonKind.NONE

    @classmethod
    def from_message(cls, message: str) -> "Reason":
        """Classify a free-text error (e.g. from the AI provider) by its wording."""
        kind = ReasonKind.NONE
        if "missing" in message or "required" in message:
            kind |= ReasonKind.MISSING
        if "Invalid" in message or "not allowed" in message:
            kind |= ReasonKind.INVALID
        if "Suspicious" in message or "frequent" in message:
            kind |= ReasonKind.SUSPICIOUS
        return cls(message, kind)


@dataclass
class Anomaly:
    row: int
    reasons: list[Reason] = field(default_factory=list)
    confidence: float = 1.0
    snapshot: dict = field(default_factory=dict)

    @property
    def errors(self) -> list[str]:
        return [r.message for r in self.reasons]

    def add(self, reason: Reason) -> None:
        if reason.message not in self.errors:
            self.reasons.append(reason)

    def copy(self) -> "Anomaly":
        return Anomaly(self.row, list(self.reasons), self.confidence, dict(self.snapshot))

    def to_dict(self) -> dict:
        out = {"row": self.row, "errors": self.errors, "confidence": round(self.confidence, 4)}
        for name in SNAPSHOT_FIELDS:
            out[name] = self.snapshot.get(name, NA)
        return out
