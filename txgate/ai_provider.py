"""
Transaction Anomaly Gate - AI provider client (Gemini) with retry.

Lives on the caller side of the engine: the engine only merges whatever
``analyze`` returned. Failures never raise; they come back as an
``error`` entry with no anomalies so the caller can fall back.
"""

import re
import json
import asyncio
import logging

import httpx

logger = logging.getLogger("txgate")

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-1.5-flash"

MAX_RETRIES = 3
RETRY_DELAYS = [1, 3, 5]  # seconds between retries
MAX_AI_ROWS = 200

# data rows are numbered from 1 in the prompt; sheet rows add the header
DATA_ROW_OFFSET = 1

PROMPT = """You are auditing financial transactions for data-quality problems and
suspicious activity. The table below is CSV with a header line; data rows are
numbered from 1 in the first column.

{table}

Reply with a single JSON object and nothing else:
{{"anomalies": [{{"row": <data row number>, "errors": ["<reason>", ...],
"confidence": <0..1>}}], "insights": "<short summary>"}}"""


def build_prompt(rows) -> str:
    header = ["#"] + [str(c) for c in rows[0]]
    lines = [",".join(header)]
    for n, row in enumerate(rows[1:MAX_AI_ROWS + 1], start=1):
        lines.append(",".join([str(n)] + ["" if c is None else str(c) for c in row]))
    return PROMPT.format(table="\n".join(lines))


def parse_reply(text: str) -> dict:
    """Extract {anomalies, insights} from the model text, fences tolerated."""
    m = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    body = m.group(1) if m else text
    start, end = body.find("{"), body.rfind("}")
    if start < 0 or end < start:
        raise ValueError("no JSON object in model reply")
    data = json.loads(body[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError("model reply is not a JSON object")
    anomalies = data.get("anomalies", [])
    return {
        "anomalies": anomalies if isinstance(anomalies, list) else [],
        "insights": str(data.get("insights", "")),
    }


def _reply_text(payload: dict) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        raise ValueError("no candidates in response")
    parts = candidates[0].get("content", {}).get("parts", [])
    return "".join(p.get("text", "") for p in parts)


def offset_rows(partials) -> list:
    """Shift 1-based data-row numbers to sheet row numbers.

    Entries without a usable row are left alone for the repairer to drop.
    """
    out = []
    for item in partials or []:
        if isinstance(item, dict) and isinstance(item.get("row"), int) \
                and not isinstance(item.get("row"), bool):
            item = {**item, "row": item["row"] + DATA_ROW_OFFSET}
        out.append(item)
    return out


async def analyze(rows, api_key: str, model: str = DEFAULT_MODEL,
                  client: httpx.AsyncClient = None) -> dict:
    """Ask the model for anomalies in ``rows`` (row 0 = headers).

    Retries up to MAX_RETRIES times on 429, 5xx and timeouts.
    """
    if not api_key:
        return {"anomalies": [], "insights": "", "error": "No API key configured"}

    body = {"contents": [{"parts": [{"text": build_prompt(rows)}]}]}
    url = GEMINI_URL.format(model=model)
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=60.0)

    last_error = None
    try:
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                r = await client.post(url, params={"key": api_key}, json=body)
                if r.status_code < 400:
                    result = parse_reply(_reply_text(r.json()))
                    logger.info(f"AI provider OK (attempt {attempt}): "
                                f"{len(result['anomalies'])} anomalies")
                    return result
                if r.status_code != 429 and r.status_code < 500:
                    # client error: don't retry
                    logger.warning(f"AI provider HTTP {r.status_code} (attempt {attempt}): "
                                   f"{r.text[:500]}")
                    return {"anomalies": [], "insights": "",
                            "error": f"HTTP {r.status_code}: {r.text[:300]}"}
                last_error = f"HTTP {r.status_code}: {r.text[:300]}"
                logger.warning(f"AI provider {r.status_code} "
                               f"(attempt {attempt}/{MAX_RETRIES}): {last_error}")
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {e}"
                logger.warning(f"AI provider timeout (attempt {attempt}/{MAX_RETRIES})")
            except (ValueError, KeyError, AttributeError) as e:
                # unusable reply: retrying the same prompt rarely helps
                logger.error(f"AI provider reply unusable: {e}")
                return {"anomalies": [], "insights": "", "error": f"Bad reply: {e}"}
            except httpx.HTTPError as e:
                last_error = str(e)
                logger.error(f"AI provider error (attempt {attempt}/{MAX_RETRIES}): {last_error}")

            if attempt < MAX_RETRIES:
                delay = RETRY_DELAYS[attempt - 1]
                logger.info(f"Retry in {delay}s …")
                await asyncio.sleep(delay)
    finally:
        if owns_client:
            await client.aclose()

    return {"anomalies": [], "insights": "",
            "error": f"Failed after {MAX_RETRIES} attempts: {last_error}"}
