"""Report Lambda – logs CSP violation reports POSTed through API Gateway.

Each report is written to CloudWatch as one JSON line with sorted keys, so
identical reports always produce identical log text.

Malformed bodies (missing, bad base64, not JSON) are logged as a warning
together with the raw body and the parse error, and are still answered
with 200. Reporting clients never see a 5xx for their own bad input.
"""

import base64
import json
import logging
import os

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

# No-op inside Lambda, where the runtime already owns the root handler.
logging.basicConfig(format=LOG_FORMAT)
logger = logging.getLogger()
logger.setLevel(LOG_LEVEL)


def serialize_report(report) -> str:
    """Render a parsed report as deterministic JSON text."""
    return json.dumps(
        report, sort_keys=True, ensure_ascii=False, allow_nan=False, default=str
    )


def success_response() -> dict:
    return {
        "statusCode": 200,
        "headers": {"Content-Type": "text/plain"},
        "body": "success",
    }


def _reject_constant(name):
    raise ValueError(f"non-standard JSON constant {name}")


def _parse_body(raw_body, is_base64: bool):
    if raw_body is None or raw_body == "":
        raise ValueError("request body is empty")

    if is_base64:
        raw_body = base64.b64decode(raw_body, validate=True).decode("utf-8")

    return json.loads(raw_body, parse_constant=_reject_constant)


def handler(event, context):
    """API Gateway proxy handler for CSP report ingestion."""
    raw_body = event.get("body")

    try:
        report = _parse_body(raw_body, event.get("isBase64Encoded", False))
        line = serialize_report(report)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, binascii.Error and UnicodeDecodeError are ValueErrors;
        # RecursionError comes from pathologically deep nesting
        logger.warning("Malformed CSP report (%s): %r", exc, raw_body)
    else:
        logger.info("%s", line)

    return success_response()
