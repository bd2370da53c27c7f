"""
Scoring engine for the Phish Trust Scorer.

Takes one EmailRecord, runs the ordered rule battery from analyzers.py,
and produces a trust score (100 = no risk signals, 0 = floor) with the
list of findings that justify it and a LOW/MEDIUM/HIGH risk tier.

Design: start at 100 and subtract each triggered rule's points.
Subtraction commutes, so rule order only affects the order findings are
listed in. Every point lost maps to one human-readable finding.

An optional auxiliary scorer (e.g. an ML model) can be blended in with a
fixed weight. It is never required, and when it is absent or fails the
result is exactly the heuristic score.

The engine holds no mutable state. One instance can score records from
any number of threads at once.
"""

import math

from config import DEFAULT_RULES
from analyzers import RULES
from logging_utils import get_logger
from models import ScoreResult, risk_tier_for

logger = get_logger(__name__)

MAX_SCORE = 100
MIN_SCORE = 0


class HeuristicEngine:
    """
    Deterministic rule evaluator.

    Args:
        config: RuleConfig with the keyword tables and point values.
        rules: ordered sequence of Rule objects; defaults to analyzers.RULES.
        auxiliary: optional callable EmailRecord -> trust score in [0, 100]
            (or None when it has no opinion), blended in with
            config.auxiliary_weight.
    """

    def __init__(self, config=None, rules=None, auxiliary=None):
        self.config = config or DEFAULT_RULES
        self.rules = tuple(rules if rules is not None else RULES)
        self.auxiliary = auxiliary

    def score(self, email):
        """
        Score one email.

        Returns a ScoreResult with score in [0, 100], the findings in rule
        order, and the matching per-rule deductions.
        """
        total = MAX_SCORE
        applied = []
        seen = set()

        for rule in self.rules:
            for deduction in rule.evaluate(email, self.config):
                # A (rule, field value) pair is only ever charged once
                marker = (deduction.rule_id, deduction.key)
                if marker in seen:
                    continue
                seen.add(marker)
                total -= deduction.points
                applied.append(deduction)

        heuristic = max(MIN_SCORE, total)
        final = self._blend(email, heuristic)

        logger.debug("scored email: score=%d findings=%d", final, len(applied))

        return ScoreResult(
            score=final,
            risk_tier=risk_tier_for(final),
            issues=tuple(d.finding for d in applied),
            deductions=tuple(applied),
        )

    def _blend(self, email, heuristic):
        if self.auxiliary is None:
            return heuristic

        # Auxiliary failures fall back to the heuristic score
        try:
            aux = self.auxiliary(email)
            if aux is None:
                return heuristic
            aux = float(aux)
        except Exception:
            logger.warning("auxiliary scorer failed; using heuristic score", exc_info=True)
            return heuristic
        if math.isnan(aux):
            return heuristic

        aux = min(MAX_SCORE, max(MIN_SCORE, aux))
        weight = self.config.auxiliary_weight
        blended = round((1 - weight) * heuristic + weight * aux)
        return min(MAX_SCORE, max(MIN_SCORE, blended))


_default_engine = HeuristicEngine()


def score(email):
    """Score an EmailRecord with the default rule configuration."""
    return _default_engine.score(email)
