"""
triage/scorer/triage_scorer.py
Rule-based triage scorer. Deterministic and explainable — no model, no I/O.

  score = 0.35*S + 0.25*T + 0.15*V + 0.15*C + 0.10*E

  S  severity       keyword tiers high/medium/low      → 1.0 / 0.5 / 0.1
  T  immediacy      keyword tiers critical/moderate/low → 1.0 / 0.5 / 0.1
  V  vulnerability  age <= 12 or >= 65, or vulnerable-person keywords → 1.0
  C  credibility    phone not 10 chars / name under 2 chars → 0.5
  E  escalation     constant 0.5 — no per-submitter history is kept

Malformed input degrades to default factor scores; analyze() never raises
for str / int / None fields. Validating input is the caller's job.
Privacy: message text is never logged.
"""

import logging
import math
import re
from typing import Optional, Tuple, Union

from triage.detectors.keyword_detector import (
    IMMEDIACY_TIERS,
    SEVERITY_TIERS,
    VULNERABILITY_TIERS,
    classify_category,
    first_tier_match,
    is_spam,
)
from triage.models.record import AnalysisResult

logger = logging.getLogger(__name__)

WEIGHT_SEVERITY      = 0.35
WEIGHT_IMMEDIACY     = 0.25
WEIGHT_VULNERABILITY = 0.15
WEIGHT_CREDIBILITY   = 0.15
WEIGHT_ESCALATION    = 0.10

DEFAULT_ESCALATION = 0.5

# Closed lower bounds, checked top-down
PRIORITY_BANDS = [
    (0.8, 'critical'),
    (0.6, 'high'),
    (0.4, 'medium'),
    (0.2, 'low'),
]

SPAM_REASONING = 'Flagged: potential spam or test message detected'

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def analyze(
    message: str,
    age:     Union[str, int, None],
    phone:   str,
    name:    str,
) -> AnalysisResult:
    """Score one request. Same inputs always give the same AnalysisResult."""
    text = (message or '').lower()

    if is_spam(text):
        logger.debug("Scored request: priority=spam")
        return AnalysisResult(
            priority  = 'spam',
            category  = 'other',
            score     = 0.0,
            reasoning = SPAM_REASONING,
        )

    severity,      severity_reason      = _severity(text)
    immediacy,     immediacy_reason     = _immediacy(text)
    vulnerability, vulnerability_reason = _vulnerability(text, age)
    credibility,   credibility_reason   = _credibility(phone, name)
    escalation,    escalation_reason    = DEFAULT_ESCALATION, 'first-time request'

    raw = (
        WEIGHT_SEVERITY      * severity +
        WEIGHT_IMMEDIACY     * immediacy +
        WEIGHT_VULNERABILITY * vulnerability +
        WEIGHT_CREDIBILITY   * credibility +
        WEIGHT_ESCALATION    * escalation
    )
    priority = priority_band(raw)

    parts = []
    if severity_reason:
        parts.append(severity_reason)
    if vulnerability_reason:
        parts.append(vulnerability_reason)
    if immediacy_reason:
        parts.append(immediacy_reason)
    if escalation != DEFAULT_ESCALATION:
        parts.append(escalation_reason)
    if credibility < 1:
        parts.append(credibility_reason)

    result = AnalysisResult(
        priority  = priority,
        category  = classify_category(text),
        score     = _round2(raw),
        reasoning = f"{priority.capitalize()} Priority because: {', '.join(parts)}.",
    )
    logger.debug(f"Scored request: priority={result.priority} score={result.score}")
    return result


def priority_band(raw_score: float) -> str:
    """Map an unrounded score to its band. Boundary values take the higher band."""
    # Float noise from the weighted sum must not push a boundary score down a band
    value = round(raw_score, 9)
    for threshold, band in PRIORITY_BANDS:
        if value >= threshold:
            return band
    return 'minimal'


# ── FACTORS ──────────────────────────────────────────────────

def _severity(text: str) -> Tuple[float, str]:
    hit = first_tier_match(text, SEVERITY_TIERS)
    if hit is None:
        return 0.1, ''
    tier, matches = hit
    if tier == 'high':
        return 1.0, f"severe symptoms ({', '.join(matches[:2])})"
    if tier == 'medium':
        return 0.5, f"moderate symptoms ({', '.join(matches[:2])})"
    return 0.1, 'minor symptoms'


def _immediacy(text: str) -> Tuple[float, str]:
    hit = first_tier_match(text, IMMEDIACY_TIERS)
    if hit is None:
        return 0.1, ''
    tier, _ = hit
    if tier == 'critical':
        return 1.0, 'immediate action needed'
    if tier == 'moderate':
        return 0.5, 'timely response needed'
    return 0.1, 'non-urgent'


def _vulnerability(text: str, age: Union[str, int, None]) -> Tuple[float, str]:
    score, reason = 0.5, ''

    # Empty / zero / missing age: no age rule at all
    if age:
        years = parse_age(age)
        if years is not None and years <= 12:
            score, reason = 1.0, f"child (age {age})"
        elif years is not None and years >= 65:
            score, reason = 1.0, f"elderly (age {age})"
        else:
            score, reason = 0.5, f"adult (age {age})"

    hit = first_tier_match(text, VULNERABILITY_TIERS)
    if hit is not None and hit[0] == 'high':
        score  = max(score, 1.0)
        reason = f"{reason}, vulnerable person" if reason else 'vulnerable person'
    return score, reason


def _credibility(phone: Optional[str], name: Optional[str]) -> Tuple[float, str]:
    phone = '' if phone is None else str(phone)
    name  = '' if name is None else str(name)

    score, reason = 1.0, 'verified contact info'
    if len(phone) != 10:
        score, reason = 0.5, 'incomplete contact info'
    if len(name) < 2:
        score, reason = min(score, 0.5), 'incomplete personal info'
    return score, reason


# ── HELPERS ──────────────────────────────────────────────────

def parse_age(age: Union[str, int]) -> Optional[int]:
    """Leading-integer parse: '70 years' → 70, 'abc' → None."""
    if isinstance(age, bool):
        return None
    if isinstance(age, int):
        return age
    if isinstance(age, float):
        return int(age) if math.isfinite(age) else None
    m = _LEADING_INT.match(str(age))
    return int(m.group(1)) if m else None


def _round2(value: float) -> float:
    """Round half up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100
