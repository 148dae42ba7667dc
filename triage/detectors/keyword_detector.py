"""
triage/detectors/keyword_detector.py
Keyword dictionaries and matching for the triage scorer — pure Python, offline.

All matching is case-insensitive SUBSTRING matching against the lower-cased
message, so short keywords also hit inside longer words ('hi' in 'this',
'eat' in 'breathe'). Callers pass text already lower-cased.

Tier lists are ordered: the first tier with at least one hit wins and the
scan stops there. Keep them as lists of (tier, keywords) tuples, never dicts
keyed by tier, so the order is explicit.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

# ── KEYWORD TIERS ────────────────────────────────────────────

SEVERITY_TIERS: List[Tuple[str, List[str]]] = [
    ('high', [
        'bleeding', 'blood', 'unconscious', 'not breathing', 'heart attack',
        'stroke', 'overdose', 'severe pain', 'dying', 'death', 'critical',
        'emergency', 'urgent', 'brain damage', 'broken bone', 'fracture',
        'accident', 'fire', 'explosion',
    ]),
    ('medium', [
        'pain', 'injury', 'hurt', 'sick', 'fever', 'medical', 'help',
        'assistance', 'trapped', 'stuck',
    ]),
    ('low', [
        'minor', 'small', 'question', 'information', 'lost', 'stranded',
    ]),
]

IMMEDIACY_TIERS: List[Tuple[str, List[str]]] = [
    ('critical', [
        'now', 'immediately', 'urgent', 'emergency', 'dying', 'critical',
        "can't breathe", 'heart attack', 'stroke',
    ]),
    ('moderate', [
        'soon', 'help', 'need', 'assistance', 'pain', 'hurt',
    ]),
    ('low', [
        'later', 'when possible', 'information', 'question',
    ]),
]

# Only the 'high' tier changes the score; the others still stop the scan.
VULNERABILITY_TIERS: List[Tuple[str, List[str]]] = [
    ('high', [
        'child', 'children', 'baby', 'infant', 'elderly', 'old', 'disabled',
        'pregnant', 'wheelchair',
    ]),
    ('medium', ['adult', 'person']),
    ('low',    ['minor concern', 'small issue']),
]

SPAM_KEYWORDS: List[str] = [
    'test', 'testing', 'hello', 'hi', 'fake', 'joke', 'lol', 'haha',
    'spam', 'ignore',
]

SPAM_MIN_LENGTH = 10

# Five or more of the same character at the very start
_REPEATED_PREFIX = re.compile(r'^(.)\1{4,}')

# Enumeration order is the tie-break order. 'other' has no keywords.
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    'medical': [
        'bleeding', 'blood', 'injury', 'hurt', 'pain', 'sick', 'fever',
        'unconscious', 'heart attack', 'stroke', 'overdose', 'medical',
        'hospital', 'doctor', 'medicine', 'broken bone', 'fracture',
        'breathing',
    ],
    'food': [
        'hungry', 'food', 'water', 'thirsty', 'starving', 'drink', 'meal',
        'eat', 'nutrition', 'supplies',
    ],
    'shelter': [
        'cold', 'hot', 'weather', 'roof', 'homeless', 'shelter', 'house',
        'building', 'protection', 'warmth',
    ],
    'trapped': [
        'trapped', 'stuck', 'locked', "can't move", 'debris', 'collapsed',
        'cave', 'elevator', 'basement', 'underground',
    ],
}


def find_matches(text: str, keywords: Sequence[str]) -> List[str]:
    """Return keywords found in text, in keyword-list order."""
    return [kw for kw in keywords if kw in text]


def first_tier_match(
    text:  str,
    tiers: Sequence[Tuple[str, Sequence[str]]],
) -> Optional[Tuple[str, List[str]]]:
    """
    Walk tiers in order and return (tier, matched_keywords) for the
    first tier with any hit. None if nothing matched.
    """
    for tier, keywords in tiers:
        matches = find_matches(text, keywords)
        if matches:
            return tier, matches
    return None


def is_spam(text: str) -> bool:
    """Spam gate. Any one rule is enough."""
    if any(kw in text for kw in SPAM_KEYWORDS):
        return True
    if len(text) < SPAM_MIN_LENGTH:
        return True
    return bool(_REPEATED_PREFIX.match(text))


def classify_category(text: str) -> str:
    """
    Category with the strictly highest keyword hit count.
    Ties keep the earlier category; zero hits everywhere → 'other'.
    """
    best, best_count = 'other', 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        count = len(find_matches(text, keywords))
        if count > best_count:
            best, best_count = category, count
    return best
