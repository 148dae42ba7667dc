"""
triage/remote/document.py
Flat document form of a request — the shape stored remotely and in the
offline queue slot. Keys are camelCase:

  id, name, age, phone, message, coords, createdAt, lastModified,
  resolved, resolvedAt, priority, category, priorityScore, reasoning
"""

import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Type, TypeVar

from triage.models.record import QueuedRequest, SOSRequest

R = TypeVar('R', bound=SOSRequest)

REQUIRED_FIELDS = ('name', 'age', 'phone', 'message', 'coords', 'createdAt')


def to_document(request: SOSRequest) -> Dict[str, Any]:
    return {
        'id':            request.id,
        'name':          request.name,
        'age':           request.age,
        'phone':         request.phone,
        'message':       request.message,
        'coords':        request.coords,
        'createdAt':     request.created_at,
        'lastModified':  request.last_modified,
        'resolved':      request.resolved,
        'resolvedAt':    request.resolved_at,
        'priority':      request.priority,
        'category':      request.category,
        'priorityScore': request.priority_score,
        'reasoning':     request.reasoning,
    }


def from_document(doc: Any, cls: Type[R] = SOSRequest) -> R:
    """
    Decode one document. Raises ValueError on anything malformed.
    QueuedRequest additionally requires a non-empty id.
    """
    if not isinstance(doc, dict):
        raise ValueError(f"expected an object, got {type(doc).__name__}")
    missing = [k for k in REQUIRED_FIELDS if k not in doc]
    if missing:
        raise ValueError(f"missing fields: {', '.join(missing)}")

    try:
        request = cls(
            name           = str(doc['name']),
            age            = int(doc['age']),
            phone          = str(doc['phone']),
            message        = str(doc['message']),
            coords         = str(doc['coords']),
            created_at     = str(doc['createdAt']),
            last_modified  = int(doc.get('lastModified') or 0),
            priority       = str(doc.get('priority') or 'minimal'),
            category       = str(doc.get('category') or 'other'),
            priority_score = float(doc.get('priorityScore') or 0.0),
            reasoning      = str(doc.get('reasoning') or ''),
            resolved       = bool(doc.get('resolved', False)),
            resolved_at    = doc.get('resolvedAt'),
            id             = str(doc.get('id') or ''),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid document: {e}") from e

    if issubclass(cls, QueuedRequest) and not request.id:
        raise ValueError("queued request has no local id")
    return request


def sort_newest_first(requests: List[R]) -> List[R]:
    """Order by createdAt, newest first. Unparseable timestamps sort last."""
    return sorted(requests, key=lambda r: _created_ts(r.created_at), reverse=True)


def new_push_key() -> str:
    """Time-ordered unique key: millisecond clock in hex + random suffix."""
    return f"{now_ms():012x}{secrets.token_hex(4)}"


def now_ms() -> int:
    return int(time.time() * 1000)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _created_ts(value: str) -> float:
    try:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return float('-inf')
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()
