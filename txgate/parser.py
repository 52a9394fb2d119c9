"""
Transaction Anomaly Gate - Header Resolution, Cell Parsing & File Ingestion
"""

import io
import re
import math
from typing import Optional
from datetime import date, datetime

import pandas as pd

from txgate.models import HEADER_OFFSET, NA


# ── Header resolution ───────────────────────────────────────
def resolve_headers(header_row) -> dict[str, int]:
    """Map lower-cased, trimmed header text to its column index.

    Duplicate names resolve to the last occurrence; blank cells are skipped.
    """
    mapping: dict[str, int] = {}
    for idx, cell in enumerate(header_row):
        if is_blank(cell):
            continue
        mapping[str(cell).strip().lower()] = idx
    return mapping


def is_blank(val) -> bool:
    if val is None:
        return True
    if isinstance(val, float) and math.isnan(val):
        return True
    return isinstance(val, str) and not val.strip()


class Table:
    """Header-aware read-only view over a list of rows (row 0 = header)."""

    def __init__(self, rows):
        rows = list(rows)
        self.headers = resolve_headers(rows[0]) if rows else {}
        self.data = [list(r) for r in rows[1:]]

    def __len__(self) -> int:
        return len(self.data)

    def has(self, name: str) -> bool:
        return name.lower() in self.headers

    def cell(self, i: int, name: str):
        idx = self.headers.get(name.lower())
        if idx is None:
            return None
        row = self.data[i]
        return row[idx] if idx < len(row) else None

    def text(self, i: int, name: str) -> str:
        val = self.cell(i, name)
        return "" if is_blank(val) else str(val).strip()

    @staticmethod
    def row_number(i: int) -> int:
        return i + HEADER_OFFSET

    def snapshot(self, i: int, date_patterns=()) -> dict:
        """Display values of the six snapshot columns, NA where absent."""
        snap = {}
        for name in ("amount", "date", "description", "category", "email"):
            if not self.has(name):
                snap[name] = NA
                continue
            raw = self.cell(i, name)
            if name == "amount":
                parsed = parse_amount(raw)
                snap[name] = parsed if parsed is not None else self.text(i, name)
            elif name == "date":
                parsed = parse_date(raw, date_patterns)
                snap[name] = parsed.strftime("%Y-%m-%d") if parsed else self.text(i, name)
            else:
                snap[name] = self.text(i, name)
        snap["transaction_type"] = (
            self.text(i, "transaction_type").upper() if self.has("transaction_type") else NA
        )
        return snap


# ── Number parsing ──────────────────────────────────────────
def parse_amount(val) -> Optional[float]:
    """Parse an amount cell to float, None if blank or not a number.

    Handles:
      - Currency symbols (€, $, £) and spaces
      - Mixed dot/comma separators (1.234,56 → 1234.56, 1,234.56 → 1234.56)
      - A single comma with ≤2 trailing digits is a decimal comma
        ("12,5" → 12.5), otherwise a thousands separator ("1,234" → 1234).
    """
    if isinstance(val, bool) or is_blank(val):
        return None
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else None
    s = str(val).strip().replace("€", "").replace("$", "").replace("£", "").replace(" ", "")
    if not s:
        return None
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        parts = s.split(",")
        if len(parts) == 2 and len(parts[1]) <= 2:
            s = s.replace(",", ".")
        else:
            s = s.replace(",", "")
    try:
        result = float(s)
    except ValueError:
        return None
    return result if math.isfinite(result) else None


def format_amount(val: float) -> str:
    return str(int(val)) if float(val).is_integer() else f"{val:.2f}"


# ── Date parsing ────────────────────────────────────────────
DEFAULT_DATE_PATTERNS = (
    r"^\d{4}-\d{1,2}-\d{1,2}$",
    r"^\d{1,2}/\d{1,2}/\d{4}$",
)


# words pandas resolves against the wall clock
RELATIVE_DATE_WORDS = {"today", "now", "yesterday", "tomorrow"}


def _has_full_date(s: str) -> bool:
    """A year is present: a 4-digit run, or day, month and year groups."""
    if s.lower() in RELATIVE_DATE_WORDS:
        return False
    return bool(re.search(r"\d{4}", s)) or len(re.findall(r"\d+", s)) >= 3


def _native_date(s: str) -> Optional[datetime]:
    if not _has_full_date(s):
        return None
    try:
        ts = pd.to_datetime(s)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.to_pydatetime()


def _pattern_date(s: str, patterns) -> Optional[datetime]:
    for pattern in patterns:
        if not re.search(pattern, s):
            continue
        groups = re.findall(r"\d+", s)[:3]
        if len(groups) < 3:
            continue
        parts = [int(g) for g in groups]
        # yyyy-mm-dd when the year leads, mm/dd/yyyy otherwise
        if len(groups[0]) == 4:
            year, month, day = parts
        else:
            month, day, year = parts
        try:
            return datetime(year, month, day)
        except ValueError:
            continue
    return None


def parse_date(val, patterns=DEFAULT_DATE_PATTERNS) -> Optional[datetime]:
    """Native parse first, then each configured pattern in order; None on failure."""
    if isinstance(val, datetime):
        return val
    if isinstance(val, date):
        return datetime(val.year, val.month, val.day)
    if is_blank(val):
        return None
    s = str(val).strip()
    return _native_date(s) or _pattern_date(s, patterns)


# ── File ingestion ──────────────────────────────────────────
def read_upload(filepath: str) -> pd.DataFrame:
    """Read CSV / XLS / XLSX with auto-detection, header kept as row 0."""
    name = filepath.lower()
    if name.endswith(".xlsx"):
        return pd.read_excel(filepath, engine="openpyxl", dtype=str, header=None)
    if name.endswith(".xls"):
        return pd.read_excel(filepath, engine="xlrd", dtype=str, header=None)
    if not name.endswith(".csv"):
        raise ValueError(f"Unsupported file type: {filepath}")
    # CSV: auto-detect separator
    with open(filepath, "r", encoding="utf-8-sig", errors="replace") as f:
        text = f.read()
    for sep in [";", ",", "\t"]:
        try:
            df = pd.read_csv(io.StringIO(text), sep=sep, dtype=str, header=None,
                             keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError):
            continue
        if len(df.columns) >= 2:
            return df
    raise ValueError("Could not parse CSV: at least 2 columns expected.")


def read_rows(filepath: str) -> list[list]:
    """Load a file as the plain in-memory table the engine consumes."""
    df = read_upload(filepath).fillna("")
    return df.values.tolist()
