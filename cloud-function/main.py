"""
Cloud Function entry points for the Phish Trust Scorer.

The Gmail/Outlook add-on extracts the open message (subject, sender,
body, links) and POSTs it here. The scorer runs locally on that data;
no lookups leave this function.

Entry points:
  analyze_email    score one message
  report_phishing  store a user's phishing/safe report about a sender
  scan_stats       scanned/blocked counters for the add-on popup
"""

import json
import functions_framework

from config import get_settings, load_rule_config
from logging_utils import configure_logging, get_logger
from models import EmailRecord
from scoring import HeuristicEngine
from telemetry import ScanLog

SETTINGS = get_settings()

configure_logging(SETTINGS)
logger = get_logger(__name__)

# Shared secret for request authentication.
# Production deployments should put IAM in front of the function.
API_SECRET = SETTINGS.api_secret

# Rule tables are loaded once per instance; a new table means a new deploy.
ENGINE = HeuristicEngine(
    load_rule_config(SETTINGS.rules_path) if SETTINGS.rules_path else None)

SCAN_LOG = ScanLog(SETTINGS.scan_log_path) if SETTINGS.scan_log_path else None

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST",
    "Access-Control-Allow-Headers": "Content-Type, X-API-Key",
    "Access-Control-Max-Age": "3600",
}

CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
}


@functions_framework.http
def analyze_email(request):
    """
    HTTP entry point. Expects a POST with JSON body containing the
    extracted email data from the add-on.

    Returns JSON with score, riskTier, issues and the per-rule breakdown.
    """
    rejected = _reject(request, "POST")
    if rejected:
        return rejected

    data, error = _json_body(request)
    if error:
        return error

    if not isinstance(data, dict) or not any(k in data for k in ("sender", "from")):
        return _error("missing required email data", 400)

    email = EmailRecord.from_dict(data)
    result = ENGINE.score(email)
    response = result.to_dict()

    message_id = data.get("messageId")
    if SCAN_LOG is not None:
        # Scoring is pure, so a re-sent message is scored again; the add-on
        # uses the flag to skip re-rendering.
        if not SCAN_LOG.record_scan_once(result, message_id):
            response["duplicate"] = True

    logger.info("analyzed email: score=%d tier=%s issues=%d",
                result.score, result.risk_tier.value, len(result.issues))
    return (json.dumps(response), 200, CORS_HEADERS)


@functions_framework.http
def report_phishing(request):
    """
    Store a user's report about a sender: {"sender", "verdict", "note"}.

    Reports are kept for review only; they never feed back into scoring.
    """
    rejected = _reject(request, "POST")
    if rejected:
        return rejected

    if SCAN_LOG is None:
        return _error("feedback storage is not configured", 503)

    data, error = _json_body(request)
    if error:
        return error
    if not isinstance(data, dict):
        return _error("missing feedback data", 400)

    try:
        entry = SCAN_LOG.record_feedback(
            data.get("sender"), data.get("verdict"), data.get("note", ""))
    except ValueError as exc:
        return _error(str(exc), 400)

    return (json.dumps({"recorded": True, "feedback": entry}), 200, CORS_HEADERS)


@functions_framework.http
def scan_stats(request):
    """Return {scanned, blocked, averageScore} for the popup."""
    rejected = _reject(request, "GET")
    if rejected:
        return rejected

    if SCAN_LOG is None:
        stats = {"scanned": 0, "blocked": 0, "averageScore": None}
    else:
        stats = SCAN_LOG.stats()
    return (json.dumps(stats), 200, CORS_HEADERS)


# ═══════════════════════════════════════════════
# Request helpers
# ═══════════════════════════════════════════════

def _reject(request, method):
    """Handle CORS preflight, method and auth checks. None means proceed."""
    # CORS preflight (needed for Apps Script UrlFetchApp)
    if request.method == "OPTIONS":
        return ("", 204, CORS_PREFLIGHT_HEADERS)

    if request.method != method:
        return _error("method not allowed", 405)

    api_key = request.headers.get("X-API-Key", "")
    if api_key != API_SECRET:
        logger.warning("rejected request with bad API key")
        return _error("unauthorized", 401)

    return None


def _json_body(request):
    try:
        data = request.get_json(force=True)
    except Exception:
        return None, _error("invalid JSON body", 400)
    if not data:
        return None, _error("missing request body", 400)
    return data, None


def _error(message, status):
    return (json.dumps({"error": message}), status, CORS_HEADERS)
