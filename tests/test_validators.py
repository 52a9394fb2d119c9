"""
Field & rule validators ("traditional checks").
"""

from txgate.config import resolve_config
from txgate.models import ReasonKind
from txgate.parser import Table
from txgate.validators import FieldValidator, suggest_category

from conftest import NOW

# Only the check under test is active unless a test turns more on.
QUIET = {
    "mandatoryFields": [],
    "description": {"required": False},
    "duplicates": {"check": False},
}


def _validator(rows, **overrides) -> FieldValidator:
    cfg = resolve_config({**QUIET, **overrides})
    return FieldValidator(Table(rows), cfg, now=NOW)


def _errors(rows, **overrides) -> list[list[str]]:
    v = _validator(rows, **overrides)
    return [[r.message for r in v.check_row(i)] for i in range(len(v.table))]


class TestMandatoryFields:
    def test_blank_mandatory_field(self, make_rows):
        rows = make_rows(amount=["10", ""], vendor=["ACME", " "])
        errors = _errors(rows, mandatoryFields=["amount", "vendor", "email"])
        assert errors[0] == []
        assert errors[1] == ["Amount is missing", "Vendor is missing"]

    def test_absent_column_not_required(self, make_rows):
        rows = make_rows(amount=["10"])
        assert _errors(rows, mandatoryFields=["amount", "date"]) == [[]]

    def test_missing_date_reported_once(self, make_rows):
        rows = make_rows(date=[""], amount=["10"])
        found = _validator(rows, mandatoryFields=["date"]).run()
        assert found[0].errors == ["Date is missing"]
        assert found[0].reasons[0].kind == ReasonKind.MISSING


class TestAmount:
    def test_not_a_number(self, make_rows):
        assert _errors(make_rows(amount=["abc"])) == [["Amount is not a number"]]

    def test_negative_not_allowed(self, make_rows):
        errors = _errors(make_rows(amount=["-5"]), amount={"allowNegative": False, "min": -100})
        assert errors == [["Negative amount is not allowed"]]

    def test_negative_allowed(self, make_rows):
        assert _errors(make_rows(amount=["-5"])) == [[]]

    def test_out_of_range(self, make_rows):
        errors = _errors(make_rows(amount=["2000000"]))
        assert errors == [["Amount 2000000 is outside the allowed range -1000000 to 1000000"]]

    def test_blank_amount_not_checked(self, make_rows):
        assert _errors(make_rows(amount=[""], other=["x"])) == [[]]

    def test_numeric_amounts_collected(self, make_rows):
        v = _validator(make_rows(amount=["10", "abc", "20", ""]))
        v.run()
        assert v.amounts == [(0, 10.0), (2, 20.0)]


class TestDate:
    def test_invalid_format(self, make_rows):
        assert _errors(make_rows(date=["garbage"])) == [["Invalid date format"]]

    def test_words_are_not_dates(self, make_rows):
        assert _errors(make_rows(date=["Jan", "today"])) == [
            ["Invalid date format"], ["Invalid date format"],
        ]

    def test_future_date(self, make_rows):
        assert _errors(make_rows(date=["2099-01-01"])) == [["Future dates are not allowed"]]

    def test_future_date_allowed(self, make_rows):
        assert _errors(make_rows(date=["2099-01-01"]), date={"allowFuture": True}) == [[]]

    def test_blank_date_not_mandatory(self, make_rows):
        assert _errors(make_rows(date=[""], amount=["1"])) == [[]]


class TestDescriptionCategoryEmail:
    def test_empty_description(self, make_rows):
        errors = _errors(make_rows(description=[""]), description={"required": True})
        assert errors == [["Description is empty"]]

    def test_invalid_category_with_hint(self, make_rows):
        errors = _errors(make_rows(category=["Travl"]), category={"required": True})
        assert errors == [["Invalid category: Travl (did you mean Travel?)"]]

    def test_invalid_category_without_hint(self, make_rows):
        errors = _errors(make_rows(category=["Zzz"]), category={"required": True})
        assert errors == [["Invalid category: Zzz"]]

    def test_category_not_required(self, make_rows):
        assert _errors(make_rows(category=["Zzz"])) == [[]]

    def test_valid_category(self, make_rows):
        assert _errors(make_rows(category=["Travel"]), category={"required": True}) == [[]]

    def test_invalid_email(self, make_rows):
        errors = _errors(make_rows(email=["bob@", "bob@example.com", ""]),
                         email={"required": True})
        assert errors == [["Invalid email format: bob@"], [], []]

    def test_email_not_required(self, make_rows):
        assert _errors(make_rows(email=["bob@"])) == [[]]

    def test_suggest_category_case_insensitive(self):
        assert suggest_category("office", ["Office", "Travel"]) == "Office"


class TestDuplicates:
    def test_subsequent_rows_flagged(self, make_rows):
        rows = make_rows(
            date=["2024-01-15", "2024-01-15", "2024-01-15", "2024-01-16"],
            amount=["10", "10", "10", "10"],
        )
        found = _validator(rows, duplicates={"check": True,
                                             "uniqueColumns": ["date", "amount"]}).run()
        assert [a.row for a in found] == [3, 4]
        assert all(a.errors == ["Duplicate entry detected"] for a in found)

    def test_blank_keys_never_duplicates(self, make_rows):
        rows = make_rows(date=["", ""], amount=["", ""], note=["a", "b"])
        found = _validator(rows, duplicates={"check": True,
                                             "uniqueColumns": ["date", "amount"]}).run()
        assert found == []

    def test_missing_unique_columns_ignored(self, make_rows):
        rows = make_rows(amount=["10", "10"])
        found = _validator(rows, duplicates={"check": True,
                                             "uniqueColumns": ["invoice_id"]}).run()
        assert found == []

    def test_separator_in_cells_does_not_collide(self, make_rows):
        rows = make_rows(ref=["a|b", "a"], note=["c", "b|c"])
        found = _validator(rows, duplicates={"check": True,
                                             "uniqueColumns": ["ref", "note"]}).run()
        assert found == []


class TestRun:
    def test_row_numbers_offset_by_header(self, make_rows):
        rows = make_rows(amount=["1", "2", "x", "4"])
        found = _validator(rows).run()
        assert [a.row for a in found] == [4]
        assert found[0].snapshot["amount"] == "x"
