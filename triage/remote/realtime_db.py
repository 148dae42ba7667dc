"""
triage/remote/realtime_db.py
Hosted realtime document store over its REST API.

Every node is addressable as <database_url>/<path>.json:
  PUT    /sosRequests/<key>.json   insert under a generated key
  PATCH  /sosRequests/<key>.json   field-subset update
  DELETE /sosRequests/<key>.json   remove one
  GET    /sosRequests.json         read all (object keyed by id)
  DELETE /sosRequests.json         remove all

Auth: optional token passed as ?auth=<token>. The token is part of the
URL, so URLs are never logged or put into exception messages.
No retries here — a failed submit surfaces as StoreError and the offline
queue retries on the next drain.
"""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional

from triage.models.record import SOSRequest
from triage.remote.base import RemoteStore, StoreError
from triage.remote.document import (
    from_document,
    new_push_key,
    now_ms,
    sort_newest_first,
    to_document,
)

logger = logging.getLogger(__name__)


class RealtimeDBStore(RemoteStore):

    def __init__(
        self,
        database_url: str,
        path:         str           = 'sosRequests',
        auth_token:   Optional[str] = None,
        timeout_sec:  float         = 10,
    ):
        self.database_url = database_url.rstrip('/')
        self.path         = path.strip('/')
        self.auth_token   = auth_token
        self.timeout_sec  = timeout_sec

    # ── TRANSPORT ────────────────────────────────────────────
    def _url(self, key: Optional[str] = None, **query: str) -> str:
        node = self.path if key is None else f"{self.path}/{urllib.parse.quote(key, safe='')}"
        if self.auth_token:
            query['auth'] = self.auth_token
        qs = f"?{urllib.parse.urlencode(query)}" if query else ''
        return f"{self.database_url}/{node}.json{qs}"

    def _request(
        self,
        method:  str,
        url:     str,
        body:    Optional[Any]   = None,
        timeout: Optional[float] = None,
    ) -> Any:
        data = json.dumps(body).encode('utf-8') if body is not None else None
        req = urllib.request.Request(
            url,
            data    = data,
            headers = {'Content-Type': 'application/json'},
            method  = method,
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout or self.timeout_sec) as resp:
                raw = resp.read().decode('utf-8')
        except urllib.error.HTTPError as e:
            raise StoreError(f"{method} /{self.path} rejected: HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise StoreError(f"{method} /{self.path} failed: {getattr(e, 'reason', e)}") from e

        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"{method} /{self.path} returned invalid JSON") from e

    # ── AVAILABILITY CHECK ───────────────────────────────────
    def is_available(self) -> bool:
        """Shallow GET of the requests node — cheap reachability probe."""
        try:
            self._request('GET', self._url(shallow='true'), timeout=5)
            return True
        except StoreError as e:
            logger.warning(f"Store not reachable: {e}")
            return False

    # ── WRITES ───────────────────────────────────────────────
    def submit(self, request: SOSRequest) -> str:
        key = new_push_key()
        doc = to_document(request)
        doc['id'] = key
        doc['lastModified'] = now_ms()
        self._request('PUT', self._url(key), doc)
        logger.info(f"Submitted request {key} (priority={request.priority})")
        return key

    def update(self, request_id: str, patch: Dict[str, Any]) -> None:
        self._request('PATCH', self._url(request_id), {**patch, 'lastModified': now_ms()})
        logger.info(f"Updated request {request_id}: {sorted(patch)}")

    def delete(self, request_id: str) -> None:
        self._request('DELETE', self._url(request_id))
        logger.info(f"Deleted request {request_id}")

    def clear_all(self) -> None:
        self._request('DELETE', self._url())
        logger.warning("Cleared all requests")

    # ── READS ────────────────────────────────────────────────
    def list_requests(self) -> List[SOSRequest]:
        data = self._request('GET', self._url())
        if not data:
            return []
        if not isinstance(data, dict):
            raise StoreError(f"GET /{self.path} returned {type(data).__name__}, expected object")

        requests: List[SOSRequest] = []
        for key, doc in data.items():
            try:
                request = from_document(doc)
            except ValueError as e:
                logger.warning(f"Skipping malformed request {key}: {e}")
                continue
            request.id = request.id or key
            requests.append(request)
        return sort_newest_first(requests)
