"""
Detection rules for the Phish Trust Scorer.

Each rule inspects a few fields of an EmailRecord and yields Deductions:
  Deduction(rule_id, points, finding, key)

RULES is the ordered battery the scoring engine runs. The order only
decides the order findings are listed in; deductions are plain
subtraction, so the final score does not depend on it.

Design note: heuristic pattern detectors, not ML.
Every finding traces to a concrete rule.
"""

import ipaddress
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Tuple
from urllib.parse import urlsplit

from distance import distance
from models import Deduction


@dataclass(frozen=True)
class Rule:
    rule_id: str
    # EmailRecord fields the rule reads
    fields: Tuple[str, ...]
    # (email, config) -> iterable of Deduction
    evaluate: Callable


# ═══════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════

DOMAIN_TOKEN = re.compile(r"[\w-]+\.com\b", re.IGNORECASE)
URL_PREFIX = re.compile(r"^(https?://|www\.)", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")
NUMERIC_HOST_PART = re.compile(r"^(0x[0-9a-f]*|[0-9]+)$")


def extract_domain_token(text):
    """
    Pull a domain-looking token out of anchor text.

    "Click paypal.com here" -> "paypal.com". Returns None when the text
    holds no such token.
    """
    if not text:
        return None
    match = DOMAIN_TOKEN.search(text)
    if not match:
        return None
    return _strip_www(match.group(0).lower())


def extract_host(url):
    """
    Hostname of a link target, lowercased with a leading "www." removed.

    Returns None for anything without a host (mailto:, relative paths,
    javascript:) and for URLs urllib refuses to parse.
    """
    if not url:
        return None
    url = url.strip()
    if url.lower().startswith("www."):
        url = "http://" + url
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return _strip_www(host.lower())


def sender_domain(sender):
    """Domain part of a sender address; empty when there is no "@"."""
    if not sender or "@" not in sender:
        return ""
    return sender.rsplit("@", 1)[1].strip().strip(">").lower()


def find_lookalike(domain, config):
    """
    Return the trusted domain that `domain` imitates, or None.

    A domain is a lookalike when its registrable part is within
    config.lookalike_max_distance edits of a trusted domain, or when it
    contains a character-substituted spelling of a trusted brand label
    (paypa1, rnicrosoft, g00gle). Trusted domains and their subdomains
    are never lookalikes.
    """
    if not domain:
        return None
    for trusted in config.trusted_domains:
        if _same_or_subdomain(domain, trusted):
            return None

    registrable = ".".join(domain.split(".")[-2:])
    for trusted in config.trusted_domains:
        if distance(registrable, trusted) <= config.lookalike_max_distance:
            return trusted

        label = trusted.split(".")[0]
        pattern = _variant_pattern(label, config.lookalike_substitutions)
        for match in pattern.finditer(domain):
            if match.group(0) != label:
                return trusted

    return None


@lru_cache(maxsize=256)
def _variant_pattern(label, substitutions):
    """Regex matching `label` with any character swapped for a lookalike."""
    table = dict(substitutions)
    pieces = []
    for char in label:
        options = (char,) + tuple(table.get(char, ()))
        pieces.append("(?:{})".format("|".join(re.escape(o) for o in options)))
    return re.compile("".join(pieces))


def _strip_www(host):
    return host[4:] if host.startswith("www.") else host


def _same_or_subdomain(host, domain):
    return host == domain or host.endswith("." + domain)


def _same_site(a, b):
    return _same_or_subdomain(a, b) or _same_or_subdomain(b, a)


def _is_ip_literal(host):
    """
    True for hosts a browser resolves as a raw IP address.

    Besides dotted-quad and IPv6 this covers the legacy numeric forms
    inet_aton accepts: a single 32-bit integer (3232235777), and one to
    four dot-separated parts in decimal, 0x-hex or leading-zero octal
    (0x7f.0.0.1, 0177.1).
    """
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass

    parts = host.split(".")
    if len(parts) > 4 or not all(NUMERIC_HOST_PART.match(p) for p in parts):
        return False
    try:
        values = [_numeric_host_part(p) for p in parts]
    except ValueError:
        return False
    if any(v > 255 for v in values[:-1]):
        return False
    return values[-1] < 256 ** (5 - len(values))


def _numeric_host_part(part):
    if part.startswith("0x"):
        return int(part[2:] or "0", 16)
    if len(part) > 1 and part.startswith("0"):
        return int(part, 8)
    return int(part)


def _lower(value):
    return (value or "").lower()


# ═══════════════════════════════════════════════
# Phrase rules
# ═══════════════════════════════════════════════

def phrase_rule(rule_id, phrases_attr, points_attr, fields, label):
    """
    Build a rule that deducts once per distinct phrase found in `fields`.

    The phrase table and point value are read from the config at
    evaluation time, so fixture configs swap them without rebuilding rules.
    """

    def evaluate(email, config):
        texts = [_lower(getattr(email, name)) for name in fields]
        points = getattr(config, points_attr)
        for phrase in getattr(config, phrases_attr):
            if any(phrase in text for text in texts):
                yield Deduction(rule_id, points, '{}: "{}"'.format(label, phrase), key=phrase)

    return Rule(rule_id, tuple(fields), evaluate)


# ═══════════════════════════════════════════════
# Sender rules
# ═══════════════════════════════════════════════

def _check_no_reply(email, config):
    sender = _lower(email.sender)
    for token in config.no_reply_tokens:
        if token in sender:
            yield Deduction(
                "sender_no_reply", config.no_reply_points,
                'Unmonitored sender address: contains "{}"'.format(token),
                key=sender)
            return


def _check_alert_sender(email, config):
    sender = _lower(email.sender)
    for token in config.alert_tokens:
        if token in sender:
            yield Deduction(
                "sender_alert", config.alert_points,
                'Alarm-style sender address: contains "{}"'.format(token),
                key=sender)
            return


def _check_lookalike(email, config):
    domain = sender_domain(email.sender)
    lookalike = find_lookalike(domain, config)
    if lookalike:
        yield Deduction(
            "lookalike_domain", config.lookalike_points,
            "Lookalike domain detected: {} mimics {}".format(domain, lookalike),
            key=domain)


def _check_brand_impersonation(email, config):
    display = _lower(email.sender_display_name)
    if not display:
        return
    domain = sender_domain(email.sender)
    for brand in config.brand_tokens:
        if brand not in display:
            continue
        if domain and _same_or_subdomain(domain, brand + ".com"):
            continue
        yield Deduction(
            "brand_impersonation", config.brand_points,
            "Possible spoof: claims to be {} but sender is {}".format(
                brand, email.sender or "unknown"),
            key=brand)


# ═══════════════════════════════════════════════
# Link rules
# One deduction per offending link; keyed by position so repeated
# identical links are each reported.
# ═══════════════════════════════════════════════

def _displayed_domain(text, config):
    """Domain the anchor text leads the reader to expect, if any."""
    token = extract_domain_token(text)
    if token in config.trusted_domains:
        return token
    stripped = (text or "").strip()
    if URL_PREFIX.match(stripped):
        return extract_host(stripped)
    return None


def _check_deceptive_links(email, config):
    for index, link in enumerate(email.links or ()):
        if not link.text or not link.href:
            continue
        shown = _displayed_domain(link.text, config)
        actual = extract_host(link.href)
        if shown and actual and not _same_site(shown, actual):
            yield Deduction(
                "deceptive_link", config.deceptive_link_points,
                'Link disguised: shows "{}" but goes to "{}"'.format(shown, actual),
                key=str(index))


def _check_shortened_links(email, config):
    for index, link in enumerate(email.links or ()):
        host = extract_host(link.href)
        if not host:
            continue
        for shortener in config.url_shorteners:
            if _same_or_subdomain(host, shortener):
                yield Deduction(
                    "shortened_url", config.shortener_points,
                    "URL shortener hides real destination: {}".format(host),
                    key=str(index))
                break


def _check_evasive_links(email, config):
    for index, link in enumerate(email.links or ()):
        if not link.href:
            continue
        # Browsers drop embedded whitespace, so "java\tscript:" still runs
        compact = WHITESPACE.sub("", link.href).lower()
        finding = None
        if compact.startswith("javascript:") or compact.startswith("data:"):
            scheme = compact.split(":", 1)[0]
            finding = (config.script_link_points,
                       "Link uses a {}: URL that runs or embeds content directly".format(scheme))
        else:
            host = extract_host(link.href)
            if host and _is_ip_literal(host):
                finding = (config.ip_link_points,
                           "URL uses raw IP address instead of domain name: {}".format(host))
            elif host and any(part.startswith("xn--") for part in host.split(".")):
                finding = (config.punycode_link_points,
                           "URL uses punycode (internationalized) host: {}".format(host))

        if finding:
            points, description = finding
            yield Deduction("evasive_link", points, description, key=str(index))


# ═══════════════════════════════════════════════
# Encoding tricks
# ═══════════════════════════════════════════════

def _check_invisible_characters(email, config):
    for text in (email.subject or "", email.body or ""):
        if any(char in text for char in config.invisible_characters):
            yield Deduction(
                "invisible_characters", config.invisible_points,
                "Hidden zero-width characters found (used to slip past keyword filters)")
            return


# ═══════════════════════════════════════════════
# Rule battery (evaluation order = order of findings)
# ═══════════════════════════════════════════════

RULES = (
    phrase_rule("urgency", "urgency_phrases", "urgency_points",
                ("subject", "body"), "Urgency language detected"),
    Rule("sender_no_reply", ("sender",), _check_no_reply),
    Rule("sender_alert", ("sender",), _check_alert_sender),
    Rule("lookalike_domain", ("sender",), _check_lookalike),
    Rule("brand_impersonation", ("sender_display_name", "sender"), _check_brand_impersonation),
    phrase_rule("generic_greeting", "generic_greetings", "greeting_points",
                ("body",), "Generic greeting"),
    phrase_rule("sensitive_request", "sensitive_phrases", "sensitive_points",
                ("body",), "Requests sensitive info"),
    Rule("deceptive_link", ("links",), _check_deceptive_links),
    Rule("shortened_url", ("links",), _check_shortened_links),
    Rule("evasive_link", ("links",), _check_evasive_links),
    phrase_rule("poor_grammar", "grammar_phrases", "grammar_points",
                ("body",), "Suspicious phrasing"),
    phrase_rule("quishing", "quishing_phrases", "quishing_points",
                ("subject", "body"), "QR-code lure (quishing)"),
    phrase_rule("vishing", "vishing_phrases", "vishing_points",
                ("subject", "body"), "Call-back lure (vishing)"),
    phrase_rule("deepfake", "deepfake_phrases", "deepfake_points",
                ("subject", "body"), "Synthetic media lure (deepfake)"),
    Rule("invisible_characters", ("subject", "body"), _check_invisible_characters),
)
