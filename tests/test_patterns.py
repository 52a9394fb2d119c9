"""
Pattern detector: round numbers, frequent amounts, weekends, same-day clusters.
"""

import pytest

from txgate.config import resolve_config
from txgate.models import ReasonKind
from txgate.parser import Table
from txgate.patterns import PatternDetector, frequency_threshold


def _detect(rows, **overrides):
    detector = PatternDetector(Table(rows), resolve_config(overrides))
    return detector, detector.run()


def _by_row(found) -> dict:
    out: dict[int, list] = {}
    for a in found:
        out.setdefault(a.row, []).append(a)
    return out


class TestFrequencyThreshold:
    @pytest.mark.parametrize("rows, expected", [(10, 3), (30, 3), (40, 4), (41, 5), (45, 5)])
    def test_threshold(self, rows, expected):
        assert frequency_threshold(rows) == expected


class TestMinimumRows:
    def test_fewer_than_five_rows_skipped(self, make_rows):
        _, found = _detect(make_rows(amount=["500", "500", "500", "500"]))
        assert found == []


class TestRoundNumbers:
    def test_round_amounts_flagged(self, make_rows):
        rows = make_rows(amount=["500", "123.45", "99", "1000", "-200", "37"])
        detector, found = _detect(rows)
        assert sorted(a.row for a in found) == [2, 5, 6]
        first = _by_row(found)[2][0]
        assert first.errors == ["Suspicious round number: 500"]
        assert first.confidence == 1.0
        assert first.reasons[0].kind == ReasonKind.SUSPICIOUS
        assert detector.flag_counts["ROUND_NUMBER"] == 3

    def test_custom_threshold(self, make_rows):
        rows = make_rows(amount=["50", "150", "12.5", "7", "33", "41"])
        _, found = _detect(rows, roundNumberThreshold=50)
        assert sorted(a.row for a in found) == [2, 3]


class TestFrequentAmounts:
    def test_forty_rows(self, make_rows):
        amounts = ["77"] * 4 + ["55"] * 3 + [f"{i + 1.01:.2f}" for i in range(33)]
        detector, found = _detect(make_rows(amount=amounts))
        flagged = sorted(a.row for a in found)
        assert flagged == [2, 3, 4, 5]
        assert found[0].errors == ["Amount 77 appears frequently (4 times)"]
        assert found[0].confidence == 0.7
        assert detector.flag_counts["FREQUENT_AMOUNT"] == 4

    def test_small_dataset_minimum_three(self, make_rows):
        amounts = ["12.5", "12.5", "12.5", "8", "9", "10.25"]
        _, found = _detect(make_rows(amount=amounts))
        assert sorted(a.row for a in found) == [2, 3, 4]


class TestWeekend:
    def _rows(self, make_rows):
        return make_rows(
            date=["2024-01-13", "2024-01-14", "2024-01-15", "2024-01-16", "2024-01-17"],
            amount=["11.5", "12.5", "13.5", "14.5", "15.5"],
        )

    def test_weekend_flagged(self, make_rows):
        _, found = _detect(self._rows(make_rows))
        by_row = _by_row(found)
        assert sorted(by_row) == [2, 3]
        assert by_row[2][0].errors == ["Weekend transaction (Saturday)"]
        assert by_row[3][0].errors == ["Weekend transaction (Sunday)"]
        assert by_row[2][0].confidence == 0.5

    def test_weekend_check_disabled(self, make_rows):
        _, found = _detect(self._rows(make_rows), checkWeekends=False)
        assert found == []


class TestSameDayCategory:
    def test_cluster_flagged(self, make_rows):
        rows = make_rows(
            date=["2024-01-15", "2024-01-15", "2024-01-15", "2024-01-16", "2024-01-17"],
            amount=["11.5", "12.5", "13.5", "14.5", "15.5"],
            category=["Travel", "Travel", "Office", "Travel", "Office"],
        )
        detector, found = _detect(rows)
        assert sorted(a.row for a in found) == [2, 3]
        assert all(a.errors == ["Multiple Travel transactions on 2024-01-15"] for a in found)
        assert all(a.confidence == 0.6 for a in found)
        assert detector.flag_counts["SAME_DAY_CATEGORY"] == 2

    def test_blank_category_not_clustered(self, make_rows):
        rows = make_rows(
            date=["2024-01-15"] * 5,
            amount=["11.5", "12.5", "13.5", "14.5", "15.5"],
            category=["", "", "", "Travel", "Office"],
        )
        _, found = _detect(rows)
        assert found == []
