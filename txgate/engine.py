"""
Transaction Anomaly Gate - Anomaly Engine

One deterministic pass over a dataset: field validation, transaction-type
rules, statistical outliers and patterns run independently over the same
rows, then get merged (optionally with AI-provider results), scored and
checked against the output contract.

The engine performs no I/O. Progress lines are collected in ``logs`` and
returned with the result for the caller to log.
"""

from datetime import datetime

from txgate.config import Configuration
from txgate.contract import ensure_well_formed, repair_anomalies
from txgate.merge import merge_anomalies
from txgate.models import Anomaly, Reason
from txgate.outliers import detect_outliers
from txgate.parser import Table
from txgate.patterns import PatternDetector
from txgate.rules import check_transaction_types
from txgate.scoring import score_anomalies
from txgate.validators import FieldValidator

FLAG_NAMES = (
    "FIELD_VALIDATION", "TYPE_RULES", "OUTLIER",
    "ROUND_NUMBER", "FREQUENT_AMOUNT", "WEEKEND", "SAME_DAY_CATEGORY",
    "AI",
)


class AnomalyEngine:
    def __init__(self, rows, config: Configuration = None,
                 ai_anomalies=None, now: datetime = None):
        if rows is None:
            raise ValueError("No data source provided")
        self.table = Table(rows)
        self.config = config or Configuration()
        self.ai_anomalies = ai_anomalies
        self.now = now
        self.patterns = self.config.date.date_patterns
        self.logs: list[str] = []
        self.flag_counts: dict[str, int] = {name: 0 for name in FLAG_NAMES}

    # ── helpers ──────────────────────────────────────────────
    def _log(self, msg: str):
        self.logs.append(msg)

    def _count(self, name: str, anomalies: list) -> list:
        self.flag_counts[name] = len(anomalies)
        return anomalies

    # ── detectors ────────────────────────────────────────────
    def _t01_fields(self) -> tuple:
        validator = FieldValidator(self.table, self.config, self.now)
        found = self._count("FIELD_VALIDATION", validator.run())
        self._log(f"[1/5] FIELD_VALIDATION: {len(found)}  "
                  f"(numeric amounts: {len(validator.amounts)})")
        return found, validator.amounts

    def _t02_type_rules(self) -> list[Anomaly]:
        found = self._count("TYPE_RULES", check_transaction_types(self.table, self.patterns))
        self._log(f"[2/5] TYPE_RULES: {len(found)}")
        return found

    def _t03_outliers(self, amounts) -> list[Anomaly]:
        cfg = self.config.outliers
        found = self._count("OUTLIER", detect_outliers(self.table, amounts, cfg, self.patterns))
        method = cfg.method if cfg.check else "off"
        self._log(f"[3/5] OUTLIER: {len(found)}  (method: {method})")
        return found

    def _t04_patterns(self) -> list[Anomaly]:
        detector = PatternDetector(self.table, self.config)
        found = detector.run()
        for name in ("ROUND_NUMBER", "FREQUENT_AMOUNT", "WEEKEND", "SAME_DAY_CATEGORY"):
            self.flag_counts[name] = detector.flag_counts.get(name, 0)
        counts = ", ".join(f"{k}: {v}" for k, v in detector.flag_counts.items())
        self._log(f"[4/5] PATTERNS: {len(found)}  ({counts or 'skipped, too few rows'})")
        return found

    def _t05_ai(self) -> list[Anomaly]:
        """AI partials (rows already offset by the caller) as anomalies."""
        raw = self.ai_anomalies if isinstance(self.ai_anomalies, list) else []
        # unset confidence means 1.0; only unparsable values fall to the repair default
        raw = [
            {**item, "confidence": 1.0} if isinstance(item, dict) and item.get("confidence") is None
            else item
            for item in raw
        ]
        found = []
        for item in repair_anomalies(raw):
            i = item["row"] - Table.row_number(0)
            if not 0 <= i < len(self.table):
                continue
            found.append(Anomaly(
                item["row"],
                [Reason.from_message(e) for e in item["errors"]],
                item["confidence"],
                self.table.snapshot(i, self.patterns),
            ))
        self._count("AI", found)
        self._log(f"[5/5] AI: {len(found)}")
        return found

    # ── run all ──────────────────────────────────────────────
    def run(self) -> dict:
        self._log(f"Loaded: {len(self.table)} rows, columns: "
                  f"{', '.join(self.table.headers) or '-'}")
        if len(self.table) == 0:
            return self._export([])

        mode = self.config.detection_algorithm
        sources = []
        if mode == "ai" and self.ai_anomalies is None:
            self._log("No AI result available, falling back to standard detection")
        if mode != "ai" or self.ai_anomalies is None:
            fields, amounts = self._t01_fields()
            sources += [fields, self._t02_type_rules(), self._t03_outliers(amounts),
                        self._t04_patterns()]
        if mode in ("ai", "hybrid") and self.ai_anomalies is not None:
            sources.append(self._t05_ai())

        merged = score_anomalies(merge_anomalies(*sources))
        merged.sort(key=lambda a: (-a.confidence, a.row))
        return self._export(merged)

    def _export(self, anomalies: list[Anomaly]) -> dict:
        rows = ensure_well_formed([a.to_dict() for a in anomalies], self.logs)
        total = len(self.table)
        pct = len(rows) / total * 100 if total > 0 else 0.0
        avg = round(sum(r["confidence"] for r in rows) / len(rows), 2) if rows else 0.0

        top_flags = sorted(
            ((k, v) for k, v in self.flag_counts.items() if v > 0),
            key=lambda x: -x[1],
        )
        self._log(f"RESULT: {len(rows)} of {total} rows flagged ({pct:.1f}%)")
        self._log(f"Top flags: {', '.join(f'{k}:{v}' for k, v in top_flags) or 'none'}")
        if rows:
            self._log(f"Highest confidence: {rows[0]['confidence']} (row {rows[0]['row']})")

        return {
            "message": f"{len(rows)} anomalies in {total} rows ({pct:.1f}%)",
            "statistics": {
                "total_input":    total,
                "total_output":   len(rows),
                "filter_ratio":   f"{pct:.1f}%",
                "avg_confidence": avg,
                "flag_counts":    self.flag_counts,
            },
            "anomalies": rows,
            "logs": self.logs,
        }


def detect(rows, config: Configuration = None, ai_anomalies=None,
           now: datetime = None) -> list[dict]:
    """Ranked, well-formed anomaly list for ``rows`` (row 0 = headers)."""
    return AnomalyEngine(rows, config, ai_anomalies, now).run()["anomalies"]
