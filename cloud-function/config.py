"""
Configuration for the Phish Trust Scorer.

Two kinds of configuration live here:

  RuleConfig  the versioned keyword/domain tables and point values the
              scoring rules read. Immutable; an engine is built around one
              instance, so swapping tables means building a new engine.
  Settings    deployment knobs read from environment variables.

Phrase tables are informed by real-world phishing campaigns (APWG reports,
CCCS ITSAP.00.100 guidance) and by the samples reported through the add-on.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Optional, Tuple


class ConfigError(ValueError):
    """Raised when a rule configuration file cannot be used."""


# ═══════════════════════════════════════════════
# Rule tables
# ═══════════════════════════════════════════════

URGENCY_PHRASES = (
    "urgent", "immediately", "act now", "limited time",
    "expires today", "account suspended", "account will be suspended",
    "verify now", "verify immediately", "confirm immediately",
    "security alert", "unusual activity", "final notice",
    "within 24 hours",
)

NO_REPLY_TOKENS = ("no-reply", "noreply")

ALERT_TOKENS = ("alert", "security", "verify")

GENERIC_GREETINGS = (
    "dear customer", "dear user", "valued customer",
    "dear account holder", "dear member", "dear client",
)

SENSITIVE_PHRASES = (
    "verify your account", "confirm your identity", "enter your password",
    "confirm your ssn", "verify your ssn", "social security number",
    "credit card", "bank account", "login credentials",
)

# Stock phrasing from templated or non-native phishing kits
GRAMMAR_PHRASES = (
    "kindly", "do the needful", "dear esteemed",
    "revert back", "your earliest convenience to avoid",
)

# Quishing: QR codes move the link out of reach of URL scanners
QUISHING_PHRASES = (
    "scan the qr code", "scan this qr code", "scan the code below",
    "qr code to verify",
)

# Vishing: pushes the victim onto a phone call
VISHING_PHRASES = (
    "call this number", "call the number below", "call our support team",
    "call our billing department",
)

# Synthetic-media lures (cloned executive voice/video)
DEEPFAKE_PHRASES = (
    "voice message from your ceo", "video call from your ceo",
    "recorded voice message", "deepfake",
)

BRAND_TOKENS = (
    "paypal", "apple", "amazon", "microsoft", "google",
    "facebook", "netflix",
)

# High-value domains attackers create lookalikes of
TRUSTED_DOMAINS = (
    "paypal.com", "apple.com", "amazon.com", "microsoft.com",
    "google.com", "facebook.com", "netflix.com", "chase.com",
    "wellsfargo.com", "bankofamerica.com", "linkedin.com",
    "dropbox.com", "icloud.com", "outlook.com",
)

URL_SHORTENERS = (
    "bit.ly", "tinyurl.com", "t.co", "goo.gl", "ow.ly",
    "is.gd", "buff.ly", "rebrand.ly", "cutt.ly", "rb.gy",
    "shorturl.at", "tiny.cc", "lnkd.in",
)

# Character -> strings that render like it. "m" and "rn" look alike in
# most fonts, as do "d"/"cl" and "w"/"vv".
LOOKALIKE_SUBSTITUTIONS = (
    ("o", ("0",)),
    ("l", ("1", "i")),
    ("i", ("1", "l")),
    ("e", ("3",)),
    ("a", ("@", "4")),
    ("s", ("5", "$")),
    ("g", ("9", "q")),
    ("m", ("rn",)),
    ("d", ("cl",)),
    ("w", ("vv",)),
)

INVISIBLE_CHARACTERS = ("\u200b", "\u200c", "\u200d", "\ufeff")


@dataclass(frozen=True)
class RuleConfig:
    version: str = "2025.10"

    urgency_phrases: Tuple[str, ...] = URGENCY_PHRASES
    no_reply_tokens: Tuple[str, ...] = NO_REPLY_TOKENS
    alert_tokens: Tuple[str, ...] = ALERT_TOKENS
    generic_greetings: Tuple[str, ...] = GENERIC_GREETINGS
    sensitive_phrases: Tuple[str, ...] = SENSITIVE_PHRASES
    grammar_phrases: Tuple[str, ...] = GRAMMAR_PHRASES
    quishing_phrases: Tuple[str, ...] = QUISHING_PHRASES
    vishing_phrases: Tuple[str, ...] = VISHING_PHRASES
    deepfake_phrases: Tuple[str, ...] = DEEPFAKE_PHRASES
    brand_tokens: Tuple[str, ...] = BRAND_TOKENS
    trusted_domains: Tuple[str, ...] = TRUSTED_DOMAINS
    url_shorteners: Tuple[str, ...] = URL_SHORTENERS
    lookalike_substitutions: Tuple[Tuple[str, Tuple[str, ...]], ...] = LOOKALIKE_SUBSTITUTIONS
    invisible_characters: Tuple[str, ...] = INVISIBLE_CHARACTERS

    lookalike_max_distance: int = 2

    # Points deducted from the 100-point trust score per match
    urgency_points: int = 10
    no_reply_points: int = 5
    alert_points: int = 10
    lookalike_points: int = 25
    brand_points: int = 25
    greeting_points: int = 8
    sensitive_points: int = 15
    deceptive_link_points: int = 20
    shortener_points: int = 10
    script_link_points: int = 30
    ip_link_points: int = 30
    punycode_link_points: int = 25
    grammar_points: int = 5
    quishing_points: int = 10
    vishing_points: int = 10
    deepfake_points: int = 10
    invisible_points: int = 15

    # Weight given to an optional auxiliary (ML) trust score when present
    auxiliary_weight: float = 0.3


DEFAULT_RULES = RuleConfig()


def load_rule_config(path):
    """
    Load a rule configuration from a JSON file.

    Keys are RuleConfig field names; anything not given keeps its default.
    The file must carry a "version" string so a deployed table can be
    traced back to its source. Raises ConfigError on any problem.
    """
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError("cannot read rule config {}: {}".format(path, exc)) from exc

    return rule_config_from_dict(raw)


def rule_config_from_dict(raw):
    if not isinstance(raw, dict):
        raise ConfigError("rule config must be a JSON object")
    if not isinstance(raw.get("version"), str) or not raw["version"]:
        raise ConfigError("rule config is missing a version string")

    known = {f.name for f in fields(RuleConfig)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError("unknown rule config keys: {}".format(", ".join(unknown)))

    overrides = {}
    for name, value in raw.items():
        overrides[name] = _coerce(name, value, getattr(DEFAULT_RULES, name))

    if not 0.0 <= overrides.get("auxiliary_weight", DEFAULT_RULES.auxiliary_weight) <= 1.0:
        raise ConfigError("auxiliary_weight must be between 0 and 1")

    return replace(DEFAULT_RULES, **overrides)


def _coerce(name, value, default):
    if name == "lookalike_substitutions":
        if not isinstance(value, dict) or not all(
                isinstance(k, str) and _is_str_list(v) for k, v in value.items()):
            raise ConfigError("lookalike_substitutions must map strings to lists of strings")
        return tuple((k, tuple(v)) for k, v in value.items())

    if isinstance(default, tuple):
        if not _is_str_list(value):
            raise ConfigError("{} must be a list of strings".format(name))
        return tuple(v.lower() if name != "invisible_characters" else v for v in value)

    # bool is an int subclass; a JSON true is never a point value
    if isinstance(default, bool) or isinstance(value, bool):
        raise ConfigError("{} has an invalid value".format(name))
    if isinstance(default, int):
        if not isinstance(value, int) or value < 0:
            raise ConfigError("{} must be a non-negative integer".format(name))
        return value
    if isinstance(default, float):
        if not isinstance(value, (int, float)):
            raise ConfigError("{} must be a number".format(name))
        return float(value)
    if not isinstance(value, str):
        raise ConfigError("{} must be a string".format(name))
    return value


def _is_str_list(value):
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


# ═══════════════════════════════════════════════
# Deployment settings
# ═══════════════════════════════════════════════

@dataclass(frozen=True)
class Settings:
    # Shared secret for request authentication. Set as an env var in the
    # Cloud Function config, never hardcoded in production.
    api_secret: str = "dev-secret-key"
    rules_path: Optional[str] = None
    scan_log_path: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "plain"


def get_settings():
    """Load settings from environment variables with safe defaults."""
    return Settings(
        api_secret=os.getenv("API_SECRET", Settings.api_secret),
        rules_path=os.getenv("RULES_PATH") or None,
        scan_log_path=os.getenv("SCAN_LOG_PATH") or None,
        log_level=os.getenv("LOG_LEVEL", Settings.log_level).upper(),
        log_format=os.getenv("LOG_FORMAT", Settings.log_format).lower(),
    )
