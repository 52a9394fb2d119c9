"""
Transaction Anomaly Gate - Pattern Detector

Heuristics over the whole dataset: round numbers, frequently repeated
amounts, weekend dates and several transactions of one category on the
same day. Skipped for datasets with fewer than MIN_ROWS data rows.
"""

import math

import pandas as pd

from txgate.config import Configuration
from txgate.models import Anomaly, Reason, ReasonKind
from txgate.parser import Table, parse_amount, parse_date, format_amount

MIN_ROWS = 5

ROUND_CONFIDENCE = 1.0
FREQUENT_CONFIDENCE = 0.7
WEEKEND_CONFIDENCE = 0.5
SAME_DAY_CONFIDENCE = 0.6


def frequency_threshold(row_count: int) -> int:
    return max(3, math.ceil(0.1 * row_count))


class PatternDetector:
    def __init__(self, table: Table, config: Configuration):
        self.table = table
        self.config = config
        self.patterns = config.date.date_patterns
        self.flag_counts: dict[str, int] = {}
        self.frame = self._frame()

    def _frame(self) -> pd.DataFrame:
        t = self.table
        n = len(t)
        # dates stay python objects; a datetime64 column would turn None into NaT
        return pd.DataFrame({
            "amount": pd.Series([parse_amount(t.cell(i, "amount")) for i in range(n)],
                                dtype=float),
            "date": pd.Series([parse_date(t.cell(i, "date"), self.patterns)
                               for i in range(n)], dtype=object),
            "category": pd.Series([t.text(i, "category") for i in range(n)], dtype=object),
        })

    def _emit(self, i: int, message: str, confidence: float,
              kind: ReasonKind = ReasonKind.NONE) -> Anomaly:
        i = int(i)
        return Anomaly(self.table.row_number(i), [Reason(message, kind)], confidence,
                       self.table.snapshot(i, self.patterns))

    def _t01_round_numbers(self) -> list[Anomaly]:
        step = self.config.round_number_threshold
        amounts = self.frame["amount"].dropna()
        mask = (amounts.abs() >= step) & (amounts % step == 0)
        self.flag_counts["ROUND_NUMBER"] = int(mask.sum())
        return [
            self._emit(i, f"Suspicious round number: {format_amount(amounts.loc[i])}",
                       ROUND_CONFIDENCE, ReasonKind.SUSPICIOUS)
            for i in amounts[mask].index
        ]

    def _t02_frequent_amounts(self) -> list[Anomaly]:
        amounts = self.frame["amount"].dropna()
        threshold = frequency_threshold(len(self.table))
        counts = amounts.map(amounts.value_counts())
        mask = counts >= threshold
        self.flag_counts["FREQUENT_AMOUNT"] = int(mask.sum())
        return [
            self._emit(i, f"Amount {format_amount(amounts.loc[i])} appears frequently "
                          f"({int(counts.loc[i])} times)",
                       FREQUENT_CONFIDENCE, ReasonKind.SUSPICIOUS)
            for i in amounts[mask].index
        ]

    def _t03_weekend(self) -> list[Anomaly]:
        if not self.config.check_weekends:
            self.flag_counts["WEEKEND"] = 0
            return []
        out = []
        for i, d in self.frame["date"].items():
            if d is not None and d.weekday() >= 5:
                out.append(self._emit(i, f"Weekend transaction ({d.strftime('%A')})",
                                      WEEKEND_CONFIDENCE))
        self.flag_counts["WEEKEND"] = len(out)
        return out

    def _t04_same_day_category(self) -> list[Anomaly]:
        df = self.frame
        has_both = df["date"].notna() & (df["category"] != "")
        subset = df.loc[has_both].copy()
        out = []
        if not subset.empty:
            subset["day"] = subset["date"].apply(lambda d: d.strftime("%Y-%m-%d"))
            for (day, category), group in subset.groupby(["day", "category"], sort=False):
                if len(group) > 1:
                    for i in group.index:
                        out.append(self._emit(i, f"Multiple {category} transactions on {day}",
                                              SAME_DAY_CONFIDENCE))
        self.flag_counts["SAME_DAY_CATEGORY"] = len(out)
        return out

    def run(self) -> list[Anomaly]:
        if len(self.table) < MIN_ROWS:
            return []
        out = []
        if self.table.has("amount"):
            out += self._t01_round_numbers()
            out += self._t02_frequent_amounts()
        if self.table.has("date"):
            out += self._t03_weekend()
            if self.table.has("category"):
                out += self._t04_same_day_category()
        return out
