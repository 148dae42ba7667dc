"""
tests/test_board.py
Responder board: filtering, pending ordering, KPIs over the unfiltered set.
"""

import pytest

from triage.board import BoardKPIs, build_board, compute_kpis
from triage.models.record import SOSRequest


def _req(
    rid:      str,
    priority: str   = "medium",
    score:    float = 0.5,
    category: str   = "other",
    resolved: bool  = False,
    name:     str   = "Ana",
    message:  str   = "Flood water rising",
    coords:   str   = "12.97, 77.59",
) -> SOSRequest:
    return SOSRequest(
        name           = name,
        age            = 34,
        phone          = "5551234567",
        message        = message,
        coords         = coords,
        created_at     = "2024-01-01T12:00:00.000Z",
        last_modified  = 0,
        priority       = priority,
        category       = category,
        priority_score = score,
        resolved       = resolved,
        id             = rid,
    )


@pytest.fixture
def requests():
    return [
        _req("a", "medium",   0.45, "food"),
        _req("b", "critical", 0.95, "medical", name="Ravi"),
        _req("c", "high",     0.65, "trapped", resolved=True),
        _req("d", "spam",     0.0,  "other", message="just testing"),
        _req("e", "critical", 0.95, "medical", coords="Harbour road"),
        _req("f", "critical", 0.85, "medical", resolved=True),
    ]


class TestBoardOrdering:
    def test_pending_by_score_desc_ties_keep_input_order(self, requests):
        board = build_board(requests)
        assert [r.id for r in board.pending] == ["b", "e", "a"]

    def test_resolved_keep_input_order(self, requests):
        board = build_board(requests)
        assert [r.id for r in board.resolved] == ["c", "f"]


class TestBoardFilters:
    def test_spam_hidden_by_default(self, requests):
        ids = [r.id for r in build_board(requests).pending]
        assert "d" not in ids

    def test_spam_only(self, requests):
        board = build_board(requests, spam="only")
        assert [r.id for r in board.pending] == ["d"]
        assert board.resolved == []

    def test_spam_show(self, requests):
        assert "d" in [r.id for r in build_board(requests, spam="show").pending]

    def test_bad_spam_mode(self, requests):
        with pytest.raises(ValueError):
            build_board(requests, spam="maybe")

    def test_query_matches_name_case_insensitive(self, requests):
        assert [r.id for r in build_board(requests, query="RAVI").pending] == ["b"]

    def test_query_matches_coords(self, requests):
        assert [r.id for r in build_board(requests, query="harbour").pending] == ["e"]

    def test_category_and_priority(self, requests):
        board = build_board(requests, category="medical", priority="critical")
        assert [r.id for r in board.pending] == ["b", "e"]
        assert [r.id for r in board.resolved] == ["f"]


class TestKPIs:
    def test_kpis_ignore_filters(self, requests):
        unfiltered = build_board(requests).kpis
        filtered = build_board(requests, query="nobody matches this").kpis
        assert unfiltered == filtered

    def test_kpi_counts(self, requests):
        assert compute_kpis(requests) == BoardKPIs(total=5, pending=3, resolved=2, critical=2)

    def test_empty(self):
        assert compute_kpis([]) == BoardKPIs()
