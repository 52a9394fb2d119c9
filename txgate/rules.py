"""
Transaction Anomaly Gate - Transaction-Type Rule Engine

Dispatches per-row checks on the declared ``transaction_type`` against a
static rule table.
"""

from dataclasses import dataclass
from typing import Optional

from txgate.models import Anomaly, Reason, ReasonKind
from txgate.parser import Table, parse_amount


@dataclass(frozen=True)
class TypeRule:
    required_fields: tuple
    must_be_positive: bool = False
    must_be_negative: bool = False
    categories: Optional[tuple] = None
    description_min_length: Optional[int] = None


TRANSACTION_RULES = {
    "PAYMENT": TypeRule(
        required_fields=("amount", "date", "description"),
        must_be_positive=True,
        description_min_length=3,
    ),
    "EXPENSE": TypeRule(
        required_fields=("amount", "date", "category", "description"),
        must_be_negative=True,
        categories=("Office", "Travel", "Utilities", "Salaries", "Marketing", "Other"),
    ),
    "TRANSFER": TypeRule(
        required_fields=("amount", "date", "from_account", "to_account"),
        must_be_positive=True,
    ),
    "REFUND": TypeRule(
        required_fields=("amount", "date", "original_transaction_id"),
        must_be_positive=True,
    ),
}


def check_row(table: Table, i: int, rules=TRANSACTION_RULES) -> list[Reason]:
    """All type-rule violations for data row ``i``."""
    ttype = table.text(i, "transaction_type").upper()
    if not ttype:
        return [Reason("Transaction type is missing", ReasonKind.MISSING)]
    rule = rules.get(ttype)
    if rule is None:
        return [Reason(f"Unknown transaction type: {ttype}")]

    reasons = []
    for name in rule.required_fields:
        if table.has(name) and not table.text(i, name):
            reasons.append(Reason(f"{name} is required for {ttype} transactions",
                                  ReasonKind.MISSING))

    amount = parse_amount(table.cell(i, "amount"))
    if amount is not None:
        if rule.must_be_positive and amount <= 0:
            reasons.append(Reason(f"{ttype} transactions must have a positive amount"))
        if rule.must_be_negative and amount >= 0:
            reasons.append(Reason(f"{ttype} transactions must have a negative amount"))

    category = table.text(i, "category")
    if rule.categories is not None and category and category not in rule.categories:
        reasons.append(Reason(
            f"Invalid category for {ttype} transactions: {category}. "
            f"Allowed: {', '.join(rule.categories)}",
            ReasonKind.INVALID,
        ))

    if rule.description_min_length is not None and table.has("description"):
        if len(table.text(i, "description")) < rule.description_min_length:
            reasons.append(Reason(
                f"Description must be at least {rule.description_min_length} "
                f"characters for {ttype} transactions"
            ))
    return reasons


def check_transaction_types(table: Table, date_patterns=()) -> list[Anomaly]:
    """One anomaly per row that breaks its type's rules; no-op without the column."""
    if not table.has("transaction_type"):
        return []
    out = []
    for i in range(len(table)):
        reasons = check_row(table, i)
        if reasons:
            anomaly = Anomaly(table.row_number(i), snapshot=table.snapshot(i, date_patterns))
            for r in reasons:
                anomaly.add(r)
            out.append(anomaly)
    return out
