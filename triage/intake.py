"""
triage/intake.py
Submission boundary: validate form fields → score → build request →
submit directly when online, queue when offline.

Validation lives here, not in the scorer. The scorer degrades silently on
bad input, so anything that should be rejected must be rejected first.
A direct submission failure propagates to the caller (StoreError); the
caller decides whether to queue instead.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Union

from triage.models.record import SOSRequest
from triage.offline.coordinator import SyncCoordinator
from triage.remote.base import RemoteStore
from triage.remote.document import now_iso, now_ms
from triage.scorer import analyze, parse_age

logger = logging.getLogger(__name__)

_PHONE = re.compile(r'^\d{10}$')

MIN_AGE = 1
MAX_AGE = 120


class ValidationError(ValueError):
    """Submitted fields rejected before analysis."""


@dataclass(frozen=True)
class SubmissionOutcome:
    status:     str     # submitted / queued
    request_id: str     # remote id, or local queued_* id
    priority:   str
    message:    str


def validate_submission(
    name:    str,
    age:     Union[str, int],
    phone:   str,
    message: str,
    coords:  str,
) -> int:
    """Returns the parsed age. Raises ValidationError on the first bad field."""
    if not _PHONE.match((phone or '').strip()):
        raise ValidationError("Phone number must be exactly 10 digits.")
    years = parse_age(age)
    if years is None or not MIN_AGE <= years <= MAX_AGE:
        raise ValidationError(f"Please enter a valid age ({MIN_AGE}-{MAX_AGE}).")
    if not (coords or '').strip():
        raise ValidationError("Location is required.")
    if not (message or '').strip():
        raise ValidationError("Message is required.")
    return years


def build_request(
    name:    str,
    age:     Union[str, int],
    phone:   str,
    message: str,
    coords:  str,
) -> SOSRequest:
    """Validate, score the raw fields, and stamp creation times."""
    years = validate_submission(name, age, phone, message, coords)
    analysis = analyze(message, age, phone, name)
    return SOSRequest(
        name           = (name or '').strip(),
        age            = years,
        phone          = phone.strip(),
        message        = message.strip(),
        coords         = coords.strip(),
        created_at     = now_iso(),
        last_modified  = now_ms(),
        priority       = analysis.priority,
        category       = analysis.category,
        priority_score = analysis.score,
        reasoning      = analysis.reasoning,
    )


async def submit_or_queue(
    request:     SOSRequest,
    store:       RemoteStore,
    coordinator: SyncCoordinator,
) -> SubmissionOutcome:
    """
    Online → submit now (StoreError propagates).
    Offline → append to the offline queue; the coordinator replays it later.
    """
    if not coordinator.online:
        queued = coordinator.enqueue(request)
        return SubmissionOutcome(
            status     = 'queued',
            request_id = queued.id,
            priority   = request.priority,
            message    = "SOS queued. It will be sent when connection returns.",
        )

    request_id = await asyncio.to_thread(store.submit, request)
    logger.info(f"Request {request_id} submitted directly (priority={request.priority})")
    if request.priority == 'spam':
        text = "Request submitted but flagged for review."
    else:
        text = "SOS submitted successfully. Responders have been notified."
    return SubmissionOutcome(
        status     = 'submitted',
        request_id = request_id,
        priority   = request.priority,
        message    = text,
    )
