"""
triage/board.py
Responder view over the stored requests.

pending  — unresolved, highest priority_score first (ties keep store order)
resolved — resolved, store order
KPIs are computed over ALL requests, before any filter is applied.
"""

from dataclasses import dataclass, field
from typing import List

from triage.models.record import SOSRequest

SPAM_MODES = ('hide', 'only', 'show')


@dataclass
class BoardKPIs:
    total:    int = 0     # excludes spam
    pending:  int = 0     # unresolved, excludes spam
    resolved: int = 0
    critical: int = 0     # unresolved critical


@dataclass
class Board:
    pending:  List[SOSRequest] = field(default_factory=list)
    resolved: List[SOSRequest] = field(default_factory=list)
    kpis:     BoardKPIs        = field(default_factory=BoardKPIs)


def build_board(
    requests: List[SOSRequest],
    query:    str = '',
    category: str = '',
    priority: str = '',
    spam:     str = 'hide',
) -> Board:
    """
    query    — case-insensitive substring over "name coords message"
    category — exact match, '' for any
    priority — exact match, '' for any
    spam     — hide / only / show
    """
    if spam not in SPAM_MODES:
        raise ValueError(f"spam must be one of {', '.join(SPAM_MODES)}")

    needle = (query or '').lower()
    filtered = [
        r for r in requests
        if needle in f"{r.name} {r.coords} {r.message}".lower()
        and (not category or r.category == category)
        and (not priority or r.priority == priority)
        and _spam_visible(r, spam)
    ]

    pending = sorted(
        (r for r in filtered if not r.resolved),
        key=lambda r: r.priority_score or 0,
        reverse=True,
    )
    return Board(
        pending  = pending,
        resolved = [r for r in filtered if r.resolved],
        kpis     = compute_kpis(requests),
    )


def compute_kpis(requests: List[SOSRequest]) -> BoardKPIs:
    return BoardKPIs(
        total    = sum(1 for r in requests if r.priority != 'spam'),
        pending  = sum(1 for r in requests if not r.resolved and r.priority != 'spam'),
        resolved = sum(1 for r in requests if r.resolved),
        critical = sum(1 for r in requests if not r.resolved and r.priority == 'critical'),
    )


def _spam_visible(request: SOSRequest, mode: str) -> bool:
    if mode == 'hide':
        return request.priority != 'spam'
    if mode == 'only':
        return request.priority == 'spam'
    return True
