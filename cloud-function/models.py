"""
Data model for the Phish Trust Scorer.

An EmailRecord is built once per inspected message by the extractor
(Gmail/Outlook add-on), scored once, and discarded. Everything here is
frozen so a record or result can be handed between threads freely.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class RiskTier(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# Tier thresholds are consumed by the presentation layer. Half-open:
# [0, 30) HIGH, [30, 70) MEDIUM, [70, 100] LOW.
HIGH_RISK_BELOW = 30
MEDIUM_RISK_BELOW = 70


def risk_tier_for(score):
    """Map a trust score (100 = clean) to its risk tier."""
    if score < HIGH_RISK_BELOW:
        return RiskTier.HIGH
    if score < MEDIUM_RISK_BELOW:
        return RiskTier.MEDIUM
    return RiskTier.LOW


@dataclass(frozen=True)
class LinkRecord:
    text: Optional[str] = None
    href: Optional[str] = None


@dataclass(frozen=True)
class EmailRecord:
    """
    One inspected message.

    body_html is carried through for extractors and audit only. Every rule
    reads the plain-text body, so markup never changes a score.
    """

    subject: str = ""
    sender: str = ""
    sender_display_name: Optional[str] = None
    body: str = ""
    body_html: str = ""
    links: Tuple[LinkRecord, ...] = ()

    @classmethod
    def from_dict(cls, data):
        """
        Build a record from the JSON payload sent by the add-on.

        Accepts both the extractor's field names (sender, senderDisplayName,
        body) and the raw-header style used by the Gmail add-on
        (from, senderName, plainBody). A "Name <addr>" From value is split
        into display name and address.
        """
        data = data or {}

        sender = _text(data.get("sender"))
        display_name = _text(data.get("senderDisplayName") or data.get("senderName")) or None
        if not sender:
            parsed_name, sender = parse_from(_text(data.get("from")))
            display_name = display_name or parsed_name or None

        links = []
        raw_links = data.get("links")
        if isinstance(raw_links, list):
            for link in raw_links:
                if not isinstance(link, dict):
                    continue
                links.append(LinkRecord(
                    text=_optional_text(link.get("text")),
                    href=_optional_text(link.get("href")),
                ))

        return cls(
            subject=_text(data.get("subject")),
            sender=sender,
            sender_display_name=display_name,
            body=_text(data.get("body") or data.get("plainBody")),
            body_html=_text(data.get("bodyHtml")),
            links=tuple(links),
        )


@dataclass(frozen=True)
class Deduction:
    """A single triggered rule instance."""
    rule_id: str
    points: int
    finding: str
    # Identifies the matched field value; the engine applies each
    # (rule_id, key) pair at most once per pass.
    key: str = ""


@dataclass(frozen=True)
class ScoreResult:
    score: int
    risk_tier: RiskTier
    issues: Tuple[str, ...] = ()
    deductions: Tuple[Deduction, ...] = ()

    def to_dict(self):
        return {
            "score": self.score,
            "riskTier": self.risk_tier.value,
            "issues": list(self.issues),
            "breakdown": [
                {"rule": d.rule_id, "points": d.points, "finding": d.finding}
                for d in self.deductions
            ],
        }


def parse_from(from_str):
    """Parse 'Display Name <email@domain.com>' into (name, email)."""
    match = re.match(r"^(.*?)\s*<([^>]+)>", from_str)
    if match:
        return match.group(1).strip().strip('"'), match.group(2).strip()
    return "", from_str.strip()


def _text(value):
    return value if isinstance(value, str) else ""


def _optional_text(value):
    return value if isinstance(value, str) else None
