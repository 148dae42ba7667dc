"""
tests/test_remote.py
Remote store adapters and the flat document codec.
RealtimeDBStore runs against a mocked urlopen — no network.
"""

import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from triage.models.record import QueuedRequest, SOSRequest
from triage.remote.base import StoreError
from triage.remote.document import (
    from_document,
    new_push_key,
    now_iso,
    sort_newest_first,
    to_document,
)
from triage.remote.memory_store import MemoryStore
from triage.remote.realtime_db import RealtimeDBStore

URL = "https://example-db.invalid"
TOKEN = "s3cret-token"


def _req(created_at: str = "2024-01-01T12:00:00.000Z", rid: str = "", message: str = "Flood water rising") -> SOSRequest:
    return SOSRequest(
        name           = "Ana",
        age            = 34,
        phone          = "5551234567",
        message        = message,
        coords         = "12.97, 77.59",
        created_at     = created_at,
        last_modified  = 1,
        priority       = "high",
        category       = "food",
        priority_score = 0.65,
        reasoning      = "High Priority because: adult (age 34).",
        id             = rid,
    )


def _mock_urlopen(urlopen: MagicMock, payload=None) -> None:
    body = b"" if payload is None else json.dumps(payload).encode("utf-8")
    urlopen.return_value.__enter__.return_value.read.return_value = body


def _sent(urlopen: MagicMock):
    """(method, url, decoded body) of the most recent request."""
    req = urlopen.call_args[0][0]
    body = json.loads(req.data.decode("utf-8")) if req.data else None
    return req.get_method(), req.full_url, body


class TestDocumentCodec:
    def test_camel_case_keys(self):
        doc = to_document(_req(rid="k1"))
        assert doc["createdAt"] == "2024-01-01T12:00:00.000Z"
        assert doc["priorityScore"] == 0.65
        assert doc["resolvedAt"] is None
        assert doc["id"] == "k1"
        assert "created_at" not in doc

    def test_decode_roundtrip_preserves_equality(self):
        original = _req(rid="k1")
        assert from_document(to_document(original)) == original

    def test_missing_required_field(self):
        doc = to_document(_req())
        del doc["coords"]
        with pytest.raises(ValueError, match="coords"):
            from_document(doc)

    def test_non_object(self):
        with pytest.raises(ValueError):
            from_document(["not", "a", "dict"])

    def test_bad_age_type(self):
        doc = {**to_document(_req()), "age": "old"}
        with pytest.raises(ValueError):
            from_document(doc)

    def test_queued_needs_local_id(self):
        with pytest.raises(ValueError, match="local id"):
            from_document(to_document(_req()), QueuedRequest)

    def test_optional_fields_default(self):
        doc = {k: v for k, v in to_document(_req()).items()
               if k in ("name", "age", "phone", "message", "coords", "createdAt")}
        r = from_document(doc)
        assert r.priority == "minimal"
        assert r.category == "other"
        assert r.resolved is False

    def test_sort_newest_first_unparseable_last(self):
        rs = [
            _req("2024-01-01T00:00:00.000Z", "old"),
            _req("garbage", "bad"),
            _req("2024-06-01T00:00:00.000Z", "new"),
        ]
        assert [r.id for r in sort_newest_first(rs)] == ["new", "old", "bad"]

    def test_now_iso_format(self):
        stamp = now_iso()
        assert stamp.endswith("Z")
        assert len(stamp) == len("2024-01-01T12:00:00.000Z")

    def test_push_keys_unique(self):
        assert len({new_push_key() for _ in range(50)}) == 50


class TestMemoryStore:
    def test_submit_assigns_new_key(self):
        store = MemoryStore()
        key = store.submit(_req(rid="queued_1_abcd"))
        [stored] = store.list_requests()
        assert stored.id == key
        assert key != "queued_1_abcd"

    def test_resolve_and_unresolve(self):
        store = MemoryStore()
        key = store.submit(_req())
        store.set_resolved(key, True)
        [r] = store.list_requests()
        assert r.resolved and r.resolved_at.endswith("Z")
        store.set_resolved(key, False)
        [r] = store.list_requests()
        assert not r.resolved and r.resolved_at is None

    def test_update_missing_raises(self):
        with pytest.raises(StoreError):
            MemoryStore().update("nope", {"resolved": True})

    def test_delete_and_clear(self):
        store = MemoryStore()
        a = store.submit(_req())
        store.submit(_req())
        store.delete(a)
        assert len(store.list_requests()) == 1
        store.clear_all()
        assert store.list_requests() == []

    def test_list_newest_first(self):
        store = MemoryStore()
        store.submit(_req("2024-01-01T00:00:00.000Z", message="older"))
        store.submit(_req("2024-02-01T00:00:00.000Z", message="newer"))
        assert [r.message for r in store.list_requests()] == ["newer", "older"]

    def test_unavailable(self):
        store = MemoryStore()
        store.available = False
        assert store.is_available() is False
        with pytest.raises(StoreError):
            store.submit(_req())


@patch("triage.remote.realtime_db.urllib.request.urlopen")
class TestRealtimeDBStore:
    def test_submit_puts_under_new_key(self, urlopen):
        _mock_urlopen(urlopen, {"ok": True})
        store = RealtimeDBStore(URL + "/", auth_token=TOKEN)
        key = store.submit(_req(rid="queued_1_abcd"))

        method, url, body = _sent(urlopen)
        assert method == "PUT"
        assert url == f"{URL}/sosRequests/{key}.json?auth={TOKEN}"
        assert body["id"] == key
        assert body["createdAt"] == "2024-01-01T12:00:00.000Z"
        assert body["priority"] == "high"

    def test_update_patches_with_last_modified(self, urlopen):
        _mock_urlopen(urlopen, {})
        RealtimeDBStore(URL).set_resolved("k1", True)

        method, url, body = _sent(urlopen)
        assert method == "PATCH"
        assert url == f"{URL}/sosRequests/k1.json"
        assert body["resolved"] is True
        assert body["resolvedAt"].endswith("Z")
        assert isinstance(body["lastModified"], int)

    def test_delete_one_and_all(self, urlopen):
        _mock_urlopen(urlopen)
        store = RealtimeDBStore(URL, path="requests")
        store.delete("k1")
        assert _sent(urlopen)[:2] == ("DELETE", f"{URL}/requests/k1.json")
        store.clear_all()
        assert _sent(urlopen)[:2] == ("DELETE", f"{URL}/requests.json")

    def test_list_skips_malformed_and_fills_missing_id(self, urlopen):
        doc_new = to_document(_req("2024-06-01T00:00:00.000Z"))
        doc_new["id"] = ""
        doc_old = to_document(_req("2024-01-01T00:00:00.000Z", rid="old"))
        _mock_urlopen(urlopen, {"new": doc_new, "old": doc_old, "junk": {"name": "x"}})

        requests = RealtimeDBStore(URL).list_requests()
        assert [r.id for r in requests] == ["new", "old"]

    def test_list_empty_node(self, urlopen):
        _mock_urlopen(urlopen)
        assert RealtimeDBStore(URL).list_requests() == []

    def test_http_error_is_store_error_without_token(self, urlopen):
        urlopen.side_effect = urllib.error.HTTPError(
            f"{URL}/sosRequests.json?auth={TOKEN}", 401, "Unauthorized", {}, None
        )
        with pytest.raises(StoreError) as exc:
            RealtimeDBStore(URL, auth_token=TOKEN).submit(_req())
        assert "401" in str(exc.value)
        assert TOKEN not in str(exc.value)

    def test_network_error_is_store_error(self, urlopen):
        urlopen.side_effect = urllib.error.URLError("no route to host")
        with pytest.raises(StoreError):
            RealtimeDBStore(URL).list_requests()

    def test_invalid_json_is_store_error(self, urlopen):
        urlopen.return_value.__enter__.return_value.read.return_value = b"<html>"
        with pytest.raises(StoreError):
            RealtimeDBStore(URL).list_requests()

    def test_is_available(self, urlopen):
        _mock_urlopen(urlopen, True)
        assert RealtimeDBStore(URL).is_available() is True
        assert "shallow=true" in _sent(urlopen)[1]

        urlopen.side_effect = urllib.error.URLError("offline")
        assert RealtimeDBStore(URL).is_available() is False
