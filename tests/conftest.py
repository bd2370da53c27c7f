import pytest

from models import EmailRecord, LinkRecord
from scoring import HeuristicEngine


@pytest.fixture
def engine():
    return HeuristicEngine()


@pytest.fixture
def clean_email():
    return EmailRecord(subject="", sender="user@trusted.com", body="", links=())


@pytest.fixture
def phishing_email():
    return EmailRecord(
        subject="Account Suspended - Verify Now",
        sender="support@paypa1-security.net",
        sender_display_name="PayPal",
        body=("Dear Customer, your account will be suspended. "
              "Kindly verify your account immediately."),
        links=(LinkRecord(text="paypal.com", href="http://bit.ly/x1"),),
    )
