"""
triage/scorer — rule-based triage scoring.

Privacy: No raw message content in logs. Priority and score only.
"""

from triage.scorer.triage_scorer import (
    PRIORITY_BANDS,
    SPAM_REASONING,
    analyze,
    parse_age,
    priority_band,
)

__all__ = [
    "PRIORITY_BANDS",
    "SPAM_REASONING",
    "analyze",
    "parse_age",
    "priority_band",
]
