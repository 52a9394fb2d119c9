"""
Transaction Anomaly Gate - Field & Rule Validators

Per-row structural checks that run regardless of transaction type:
mandatory fields, amount, date, description, category, email and
duplicate keys. Also collects every numeric amount for outlier analysis.
"""

import re
from datetime import datetime

from rapidfuzz import fuzz, process as rf_process
from rapidfuzz.utils import default_process

from txgate.config import Configuration
from txgate.models import Reason, ReasonKind, Anomaly
from txgate.parser import Table, parse_amount, parse_date, format_amount

# Minimum similarity for "did you mean" category hints
CATEGORY_HINT_CUTOFF = 80


def _display(name: str) -> str:
    return name[:1].upper() + name[1:]


def suggest_category(value: str, valid) -> str:
    """Closest valid category, or "" when nothing is similar enough."""
    match = rf_process.extractOne(
        value, list(valid),
        scorer=fuzz.ratio,
        processor=default_process,
        score_cutoff=CATEGORY_HINT_CUTOFF,
    )
    return match[0] if match else ""


class FieldValidator:
    """Runs the traditional checks over every data row of a table."""

    def __init__(self, table: Table, config: Configuration, now: datetime = None):
        self.table = table
        self.config = config
        self.now = now or datetime.now()
        self.email_re = re.compile(config.email.format)
        self.mandatory = {f.lower() for f in config.mandatory_fields}
        self.amounts: list[tuple[int, float]] = []
        self._seen_keys: set = set()

    # ── individual checks ──────────────────────────────────
    def _mandatory(self, i: int) -> list[Reason]:
        t = self.table
        return [
            Reason(f"{_display(name)} is missing", ReasonKind.MISSING)
            for name in sorted(self.mandatory)
            if t.has(name) and not t.text(i, name)
        ]

    def _amount(self, i: int) -> list[Reason]:
        t = self.table
        if not t.has("amount") or not t.text(i, "amount"):
            return []
        amount = parse_amount(t.cell(i, "amount"))
        if amount is None:
            return [Reason("Amount is not a number")]
        self.amounts.append((i, amount))
        cfg = self.config.amount
        reasons = []
        if amount < 0 and not cfg.allow_negative:
            reasons.append(Reason("Negative amount is not allowed", ReasonKind.INVALID))
        if amount < cfg.min or amount > cfg.max:
            reasons.append(Reason(
                f"Amount {format_amount(amount)} is outside the allowed range "
                f"{format_amount(cfg.min)} to {format_amount(cfg.max)}"
            ))
        return reasons

    def _date(self, i: int) -> list[Reason]:
        t = self.table
        if not t.has("date"):
            return []
        if not t.text(i, "date"):
            if "date" in self.mandatory:
                return [Reason("Date is missing", ReasonKind.MISSING)]
            return []
        parsed = parse_date(t.cell(i, "date"), self.config.date.date_patterns)
        if parsed is None:
            return [Reason("Invalid date format", ReasonKind.INVALID)]
        if parsed > self.now and not self.config.date.allow_future:
            return [Reason("Future dates are not allowed", ReasonKind.INVALID)]
        return []

    def _description(self, i: int) -> list[Reason]:
        t = self.table
        if self.config.description.required and t.has("description") \
                and not t.text(i, "description"):
            return [Reason("Description is empty")]
        return []

    def _category(self, i: int) -> list[Reason]:
        cfg = self.config.category
        value = self.table.text(i, "category")
        if not cfg.required or not value or not cfg.valid_categories:
            return []
        if value in cfg.valid_categories:
            return []
        message = f"Invalid category: {value}"
        hint = suggest_category(value, cfg.valid_categories)
        if hint:
            message += f" (did you mean {hint}?)"
        return [Reason(message, ReasonKind.INVALID)]

    def _email(self, i: int) -> list[Reason]:
        value = self.table.text(i, "email")
        if not self.config.email.required or not value:
            return []
        if self.email_re.search(value):
            return []
        return [Reason(f"Invalid email format: {value}", ReasonKind.INVALID)]

    def _duplicate(self, i: int) -> list[Reason]:
        cfg = self.config.duplicates
        if not cfg.check:
            return []
        columns = [c for c in cfg.unique_columns if self.table.has(c)]
        if not columns:
            return []
        values = [self.table.text(i, c) for c in columns]
        if not any(values):
            return []
        key = tuple(values)
        if key in self._seen_keys:
            return [Reason("Duplicate entry detected")]
        self._seen_keys.add(key)
        return []

    # ── run ────────────────────────────────────────────────
    def check_row(self, i: int) -> list[Reason]:
        reasons = []
        for check in (self._mandatory, self._amount, self._date,
                      self._description, self._category, self._email,
                      self._duplicate):
            reasons.extend(check(i))
        return reasons

    def run(self) -> list[Anomaly]:
        out = []
        patterns = self.config.date.date_patterns
        for i in range(len(self.table)):
            reasons = self.check_row(i)
            if not reasons:
                continue
            anomaly = Anomaly(self.table.row_number(i),
                              snapshot=self.table.snapshot(i, patterns))
            for r in reasons:
                anomaly.add(r)
            out.append(anomaly)
        return out
