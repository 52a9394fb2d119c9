from datetime import datetime

import pytest

NOW = datetime(2024, 6, 30, 12, 0, 0)


def build_rows(**columns) -> list[list]:
    """Header row + data rows; single-value columns are repeated to fill."""
    n = max(len(v) for v in columns.values())
    filled = {k: (v * n if len(v) < n else v) for k, v in columns.items()}
    rows = [list(filled.keys())]
    for i in range(n):
        rows.append([filled[k][i] for k in filled])
    return rows


def clean_columns() -> dict:
    """Six weekday rows that no detector flags under the default config."""
    return {
        "Date": ["2024-01-15", "2024-01-16", "2024-01-17",
                 "2024-01-18", "2024-01-19", "2024-01-22"],
        "Amount": ["12.34", "45.67", "23.45", "56.78", "34.56", "67.89"],
        "Description": [f"Invoice {i}" for i in range(1, 7)],
        "Category": ["Office", "Travel", "Utilities", "Salaries", "Marketing", "Other"],
    }


@pytest.fixture
def make_rows():
    return build_rows


@pytest.fixture
def clean():
    return clean_columns()
