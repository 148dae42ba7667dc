"""
triage/models/record.py
Shared dataclass schema. Scorer, queue, stores and board all
use these types. Do not add logic here — data only.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


PRIORITIES: Tuple[str, ...] = ('critical', 'high', 'medium', 'low', 'minimal', 'spam')
CATEGORIES: Tuple[str, ...] = ('medical', 'food', 'shelter', 'trapped', 'other')


@dataclass(frozen=True)
class AnalysisResult:
    """Output of the triage scorer for one request."""
    priority:   str         # critical / high / medium / low / minimal / spam
    category:   str         # medical / food / shelter / trapped / other
    score:      float       # rounded to 2 decimals
    reasoning:  str


@dataclass
class SOSRequest:
    """One help request as stored remotely."""
    name:            str
    age:             int
    phone:           str
    message:         str
    coords:          str            # "lat, lon"
    created_at:      str            # ISO-8601, set at creation
    last_modified:   int            # epoch ms, bumped on every mutation

    # Set once by the scorer at creation, never recomputed
    priority:        str            = 'minimal'
    category:        str            = 'other'
    priority_score:  float          = 0.0
    reasoning:       str            = ''

    # Responder-owned
    resolved:        bool           = False
    resolved_at:     Optional[str]  = None

    id:              str            = ''     # assigned by the store


@dataclass
class QueuedRequest(SOSRequest):
    """SOSRequest held in the offline queue under a local id (queued_<ms>_<hex>)."""
