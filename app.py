#!/usr/bin/env python3
"""
Transaction Anomaly Gate v1.0
File in → anomaly engine (+ optional Gemini pass) → ranked anomalies
"""

import os
import sys
import asyncio
import logging

from txgate.ai_provider import analyze, offset_rows, DEFAULT_MODEL
from txgate.config import ConfigError, load_config, resolve_config
from txgate.engine import AnomalyEngine
from txgate.parser import read_rows, format_amount

# ── Logging ──────────────────────────────────────────────────
logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(message)s")
logger = logging.getLogger("txgate")

# ── Config ───────────────────────────────────────────────────
CONFIG_PATH = os.environ.get("TXGATE_CONFIG", "")
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", DEFAULT_MODEL)
AI_TIMEOUT = float(os.environ.get("TXGATE_AI_TIMEOUT", "120"))


def _ai_anomalies(rows):
    """Run the AI provider time-bounded; None when unavailable."""
    if not GEMINI_API_KEY:
        logger.info("No GEMINI_API_KEY → AI detection skipped")
        return None
    try:
        result = asyncio.run(asyncio.wait_for(
            analyze(rows, GEMINI_API_KEY, GEMINI_MODEL), AI_TIMEOUT,
        ))
    except asyncio.TimeoutError:
        logger.warning(f"AI provider timed out after {AI_TIMEOUT:.0f}s")
        return None
    if "error" in result:
        logger.warning(f"AI provider failed: {result['error']}")
        return None
    if result["insights"]:
        logger.info(f"AI insights: {result['insights']}")
    return offset_rows(result["anomalies"])


def analyze_file(filepath: str, config_path: str = None):
    """Main handler: file in → (summary, logs, anomalies)."""
    if not filepath:
        return "⚠️ Please provide a file.", "", []

    # 1) Configuration
    try:
        path = config_path or CONFIG_PATH
        config = load_config(path) if path else resolve_config()
    except ConfigError as e:
        return f"❌ Configuration error: {e}", "", []

    # 2) Read
    try:
        rows = read_rows(filepath)
    except (OSError, ValueError) as e:
        return f"❌ File error: {e}", "", []

    # 3) Optional AI pass
    ai = None
    if config.detection_algorithm in ("ai", "hybrid"):
        ai = _ai_anomalies(rows)

    # 4) Engine
    result = AnomalyEngine(rows, config, ai_anomalies=ai).run()
    for line in result["logs"]:
        logger.info(line)

    # 5) Summary
    stats = result["statistics"]
    flag_str = "\n".join(
        f"  {k}: {v}" for k, v in
        sorted(stats["flag_counts"].items(), key=lambda x: -x[1]) if v > 0
    )
    summary = (
        f"✅ Analysis complete\n\n"
        f"📊 Total: {stats['total_input']} rows\n"
        f"🔍 Flagged: {stats['total_output']} ({stats['filter_ratio']})\n"
        f"📈 Avg confidence: {stats['avg_confidence']}\n\n"
        f"Flags:\n{flag_str or '  none'}\n"
    )

    top3 = result["anomalies"][:3]
    if top3:
        summary += "\n🏆 Top-3 anomalies:\n"
        for i, a in enumerate(top3, 1):
            amount = a["amount"]
            if isinstance(amount, float):
                amount = format_amount(amount)
            summary += (
                f"  {i}. Row {a['row']}  Confidence={a['confidence']:.2f}  "
                f"Amount={amount}\n"
                f"     Errors: {'; '.join(a['errors'])}\n"
            )

    return summary, "\n".join(result["logs"]), result["anomalies"]


# ── Main ─────────────────────────────────────────────────────
if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: app.py <file.csv|.xls|.xlsx> [config.json]", file=sys.stderr)
        sys.exit(2)
    summary, _, _ = analyze_file(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
    print(summary)
