import json
from concurrent.futures import ThreadPoolExecutor

import flask
import pytest

import main
from telemetry import ScanLog

API_KEY = "test-key"

PHISHING_PAYLOAD = {
    "messageId": "18c2f0a9",
    "subject": "Account Suspended - Verify Now",
    "from": "PayPal <support@paypa1-security.net>",
    "plainBody": ("Dear Customer, your account will be suspended. "
                  "Kindly verify your account immediately."),
    "links": [{"text": "paypal.com", "href": "http://bit.ly/x1"}],
}


@pytest.fixture
def app():
    return flask.Flask(__name__)


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setattr(main, "API_SECRET", API_KEY)


@pytest.fixture
def scan_log(monkeypatch, tmp_path):
    log = ScanLog(str(tmp_path / "scans.json"))
    monkeypatch.setattr(main, "SCAN_LOG", log)
    return log


@pytest.fixture
def no_scan_log(monkeypatch):
    monkeypatch.setattr(main, "SCAN_LOG", None)


def call(app, handler, method="POST", payload=None, key=API_KEY, data=None):
    headers = {"X-API-Key": key} if key else {}
    kwargs = {"method": method, "headers": headers}
    if payload is not None:
        kwargs["json"] = payload
    elif data is not None:
        kwargs["data"] = data
        kwargs["content_type"] = "application/json"
    with app.test_request_context("/", **kwargs):
        body, status, _ = handler(flask.request)
    return status, (json.loads(body) if body else None)


def test_analyze_email(app, no_scan_log):
    status, body = call(app, main.analyze_email, payload=PHISHING_PAYLOAD)

    assert status == 200
    assert body["riskTier"] == "HIGH"
    assert body["score"] <= 10
    assert len(body["issues"]) >= 6
    assert "duplicate" not in body


def test_analyze_clean_email(app, no_scan_log):
    status, body = call(app, main.analyze_email,
                        payload={"sender": "user@trusted.com", "subject": "", "body": ""})
    assert status == 200
    assert body == {"score": 100, "riskTier": "LOW", "issues": [], "breakdown": []}


def test_preflight(app):
    status, body = call(app, main.analyze_email, method="OPTIONS", key=None)
    assert status == 204
    assert body is None


@pytest.mark.parametrize("key", [None, "wrong"])
def test_bad_api_key(app, key):
    status, body = call(app, main.analyze_email, payload=PHISHING_PAYLOAD, key=key)
    assert status == 401
    assert body == {"error": "unauthorized"}


def test_wrong_method(app):
    status, _ = call(app, main.analyze_email, method="GET")
    assert status == 405


def test_invalid_json(app):
    status, body = call(app, main.analyze_email, data="{not json")
    assert status == 400
    assert body == {"error": "invalid JSON body"}


def test_missing_sender(app):
    status, body = call(app, main.analyze_email, payload={"subject": "hi"})
    assert status == 400
    assert body == {"error": "missing required email data"}


def test_scans_are_logged_once_per_message(app, scan_log):
    call(app, main.analyze_email, payload=PHISHING_PAYLOAD)
    status, body = call(app, main.analyze_email, payload=PHISHING_PAYLOAD)

    assert status == 200
    assert body["duplicate"] is True
    assert scan_log.stats()["scanned"] == 1
    assert scan_log.stats()["blocked"] == 1


def test_concurrent_requests_for_one_message_are_logged_once(app, scan_log):
    with ThreadPoolExecutor(max_workers=6) as pool:
        replies = list(pool.map(
            lambda _: call(app, main.analyze_email, payload=PHISHING_PAYLOAD), range(6)))

    assert all(status == 200 for status, _ in replies)
    assert sum(1 for _, body in replies if not body.get("duplicate")) == 1
    assert scan_log.stats()["scanned"] == 1


def test_report_phishing(app, scan_log):
    status, body = call(app, main.report_phishing, payload={
        "sender": "support@paypa1-security.net", "verdict": "phishing", "note": "fake"})

    assert status == 200
    assert body["recorded"] is True
    assert scan_log.feedback_for("support@paypa1-security.net")[0]["note"] == "fake"


def test_report_phishing_rejects_bad_verdict(app, scan_log):
    status, body = call(app, main.report_phishing, payload={"sender": "a@b.org", "verdict": "maybe"})
    assert status == 400
    assert "verdict" in body["error"]


def test_report_phishing_without_storage(app, no_scan_log):
    status, _ = call(app, main.report_phishing, payload={"sender": "a@b.org", "verdict": "safe"})
    assert status == 503


def test_scan_stats(app, scan_log):
    call(app, main.analyze_email, payload=PHISHING_PAYLOAD)
    status, body = call(app, main.scan_stats, method="GET")
    assert status == 200
    assert body == {"scanned": 1, "blocked": 1, "averageScore": 0.0}


def test_scan_stats_without_storage(app, no_scan_log):
    status, body = call(app, main.scan_stats, method="GET")
    assert status == 200
    assert body["scanned"] == 0
