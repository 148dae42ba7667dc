"""
triage/api.py
─────────────────────────────────────────────────────────────────────────────
SOS Triage — service facade + HTTP API

TWO USAGE MODES:
  1. Importable facade (CLI, scripts):
         from triage.api import TriageService
         service = TriageService(load_config())
         result  = service.analyze("trapped under rubble", age=40)

  2. FastAPI HTTP server (intake form + responder board via fetch()):
         python -m triage.api                     # default: port 8765
         python -m triage.api --port 9000
         uvicorn triage.api:app --port 8765

ENDPOINTS:
  POST   /analyze                   — score a message without storing it
  POST   /requests                  — validate → score → submit (or queue offline)
  GET    /requests                  — responder board: pending / resolved / KPIs
  POST   /requests/{id}/resolve     — mark resolved (stamps resolvedAt)
  POST   /requests/{id}/unresolve   — back to pending (clears resolvedAt)
  DELETE /requests/{id}             — remove one request
  DELETE /requests                  — remove all requests (admin)
  GET    /queue                     — requests waiting in the offline queue
  POST   /sync                      — probe connectivity and drain the queue now
  GET    /health                    — connectivity + queue status

BACKGROUND TASKS (app lifespan):
  SyncCoordinator.run()       — event loop for reconnect / periodic drains
  ConnectivityMonitor.run()   — polls the store, posts ConnectivityChanged

ERRORS:
  ValidationError → 400 (bad form fields)
  StoreError      → 502 (remote store unreachable or rejected the write)

CORS: localhost-only. The server binds to 127.0.0.1 by default.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from triage import __version__
from triage.board import SPAM_MODES, Board, build_board
from triage.config import DEFAULT_CONFIG, load_config, validate_config
from triage.intake import SubmissionOutcome, ValidationError, build_request, submit_or_queue
from triage.models.record import AnalysisResult, QueuedRequest, SOSRequest
from triage.offline.connectivity import ConnectivityMonitor
from triage.offline.coordinator import ConnectivityChanged, SyncCoordinator, SyncSummary
from triage.offline.offline_queue import OfflineQueue
from triage.remote.base import RemoteStore, StoreError
from triage.remote.document import to_document
from triage.remote.memory_store import MemoryStore
from triage.remote.realtime_db import RealtimeDBStore
from triage.scorer import analyze
from triage.storage.base import KeyValueSlot
from triage.storage.file_slot import FileSlot
from triage.storage.sqlite_slot import SqliteSlot

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE FACADE
# ═══════════════════════════════════════════════════════════════════════════

def build_slot(config: Dict[str, Any]) -> KeyValueSlot:
    """Queue persistence backend from config: sqlite db file or directory of json files."""
    path = Path(config.get("queue_path") or DEFAULT_CONFIG["queue_path"])
    if config.get("queue_backend") == "file":
        return FileSlot(directory=path)
    return SqliteSlot(db_path=path)


def build_store(config: Dict[str, Any]) -> RemoteStore:
    """RealtimeDBStore when database_url is set, else an in-process MemoryStore."""
    if config.get("database_url"):
        return RealtimeDBStore(
            database_url = config["database_url"],
            path         = config.get("requests_path") or DEFAULT_CONFIG["requests_path"],
            auth_token   = config.get("auth_token"),
            timeout_sec  = config.get("request_timeout_sec", DEFAULT_CONFIG["request_timeout_sec"]),
        )
    logger.info("No database_url configured — running in local mode (in-memory store)")
    return MemoryStore()


class TriageService:
    """
    Wires config → queue slot → OfflineQueue → RemoteStore → SyncCoordinator
    → ConnectivityMonitor. store and slot can be injected (tests, embedding).

    Usage:
        service = TriageService(load_config())
        outcome = asyncio.run(service.submit(name="Ana", age=34, phone="5551234567",
                                             message="Flood water rising", coords="12.9,77.6"))
        board   = service.board(spam="hide")
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        store:  Optional[RemoteStore]    = None,
        slot:   Optional[KeyValueSlot]   = None,
        online: bool                     = False,
    ):
        self.config = validate_config({**DEFAULT_CONFIG, **(config or {})})
        # No remote and nothing injected: the store lives only as long as this process
        self.local_mode = store is None and not self.config.get("database_url")
        self.store  = store if store is not None else build_store(self.config)
        self.queue  = OfflineQueue(
            slot if slot is not None else build_slot(self.config),
            key = self.config["queue_key"],
        )
        self.coordinator = SyncCoordinator(
            self.queue,
            self.store,
            notify       = self._on_synced,
            interval_sec = self.config["sync_interval_sec"],
            online       = online or self.local_mode,
        )
        self.monitor = ConnectivityMonitor(
            self.store,
            self.coordinator,
            interval_sec = self.config["probe_interval_sec"],
        )
        self.last_sync: Optional[SyncSummary] = None

    def _on_synced(self, summary: SyncSummary) -> None:
        self.last_sync = summary

    # ── INTAKE ────────────────────────────────────────────────────────────

    def analyze(self, message: str, age: Any = None, phone: str = "", name: str = "") -> AnalysisResult:
        return analyze(message, age, phone, name)

    async def submit(
        self,
        name:    str,
        age:     Any,
        phone:   str,
        message: str,
        coords:  str,
    ) -> SubmissionOutcome:
        """
        Validate and score, then submit directly or queue.
        A failed direct submission is queued instead of lost.
        Raises ValidationError on bad fields.
        """
        request = build_request(name, age, phone, message, coords)
        try:
            return await submit_or_queue(request, self.store, self.coordinator)
        except StoreError as e:
            logger.warning(f"Direct submission failed, queueing instead: {e}")
            queued = self.coordinator.enqueue(request)
            return SubmissionOutcome(
                status     = "queued",
                request_id = queued.id,
                priority   = request.priority,
                message    = "Could not reach responders. SOS saved offline and will be sent automatically.",
            )

    # ── RESPONDER BOARD ───────────────────────────────────────────────────

    def board(
        self,
        query:    str = "",
        category: str = "",
        priority: str = "",
        spam:     str = "hide",
    ) -> Board:
        return build_board(
            self.store.list_requests(),
            query=query, category=category, priority=priority, spam=spam,
        )

    def resolve(self, request_id: str) -> None:
        self.store.set_resolved(request_id, True)
        logger.info(f"Request {request_id} resolved")

    def unresolve(self, request_id: str) -> None:
        self.store.set_resolved(request_id, False)
        logger.info(f"Request {request_id} moved back to pending")

    def delete(self, request_id: str) -> None:
        self.store.delete(request_id)
        logger.info(f"Request {request_id} deleted")

    def clear_all(self) -> None:
        self.store.clear_all()
        logger.warning("All requests cleared")

    # ── OFFLINE QUEUE ─────────────────────────────────────────────────────

    def queued(self) -> List[QueuedRequest]:
        return self.queue.load()

    def clear_queue(self) -> int:
        count = len(self.queue)
        self.queue.clear()
        return count

    async def sync_now(self) -> Optional[SyncSummary]:
        """
        Probe connectivity, feed the result to the coordinator, drain if online.
        In local mode the queue is left on disk until a database_url is configured.
        """
        if self.local_mode:
            logger.warning(f"Local mode: {self.coordinator.queue_length} queued request(s) kept until database_url is set")
            return None
        online = await asyncio.to_thread(self.store.is_available)
        if online != self.coordinator.online:
            return await self.coordinator.handle(ConnectivityChanged(online))
        if online:
            return await self.coordinator.drain()
        return None

    def health(self) -> Dict[str, Any]:
        return {
            "status":    "ok",
            "mode":      "remote" if self.config.get("database_url") else "local",
            "online":    self.coordinator.online,
            "syncing":   self.coordinator.syncing,
            "queued":    self.coordinator.queue_length,
            "last_sync": self.last_sync.message if self.last_sync else None,
            "version":   __version__,
        }


def request_to_dict(request: SOSRequest) -> Dict[str, Any]:
    """Wire shape for HTTP responses — same camelCase layout as stored documents."""
    doc = to_document(request)
    doc["id"] = request.id
    return doc


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class AnalyzeBody(BaseModel):
    message: str
    age:     Optional[Any] = None
    phone:   str           = ""
    name:    str           = ""


class SubmitBody(BaseModel):
    name:    str = ""
    age:     Any = None
    phone:   str = ""
    message: str = ""
    coords:  str = ""


def _build_app(service: Optional[TriageService] = None) -> FastAPI:
    """
    Build and return the FastAPI application instance.
    Called once at module level, or with an injected service in tests.
    """
    _service = service if service is not None else TriageService(load_config(Path.cwd()))

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if _service.local_mode:
            logger.info("Local mode: background sync disabled")
            yield
            return
        tasks = [
            asyncio.create_task(_service.coordinator.run()),
            asyncio.create_task(_service.monitor.run()),
        ]
        logger.info("Background sync started")
        try:
            yield
        finally:
            _service.coordinator.stop()
            tasks[1].cancel()
            for task in tasks:
                with suppress(asyncio.CancelledError):
                    await task
            logger.info("Background sync stopped")

    _app = FastAPI(
        title       = "SOS Triage API",
        description = "Emergency request intake, triage scoring and offline sync",
        version     = __version__,
        docs_url    = "/docs",
        redoc_url   = None,
        lifespan    = lifespan,
    )
    _app.state.service = _service

    # CORS: only allow localhost origins (form and board run as file:// or localhost)
    _app.add_middleware(
        CORSMiddleware,
        allow_origins     = [
            "http://localhost",
            "http://localhost:8765",
            "http://127.0.0.1",
            "http://127.0.0.1:8765",
            "null",   # file:// origin
        ],
        allow_methods     = ["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers     = ["Content-Type"],
        allow_credentials = False,
    )

    # ── ERROR MAPPING ───────────────────────────────────────────────────

    @_app.exception_handler(ValidationError)
    async def _validation_error(_request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @_app.exception_handler(StoreError)
    async def _store_error(_request: Request, exc: StoreError):
        logger.error(f"Store error: {exc}")
        return JSONResponse(status_code=502, content={"detail": f"Remote store error: {exc}"})

    # ── ENDPOINTS ───────────────────────────────────────────────────────

    @_app.post("/analyze", summary="Score a message without storing it")
    def analyze_endpoint(body: AnalyzeBody):
        return asdict(_service.analyze(body.message, body.age, body.phone, body.name))

    @_app.post("/requests", summary="Submit an SOS request", status_code=201)
    async def submit_endpoint(body: SubmitBody):
        """
        Validates fields (400 on failure), scores the message, then submits.
        Offline or on a failed write the request is queued and status is "queued".
        """
        outcome = await _service.submit(
            name=body.name, age=body.age, phone=body.phone,
            message=body.message, coords=body.coords,
        )
        return asdict(outcome)

    @_app.get("/requests", summary="Responder board")
    def board_endpoint(
        q:        str = Query("", description="Substring over name, location and message"),
        category: str = Query("", description="medical, food, shelter, trapped, other"),
        priority: str = Query("", description="critical, high, medium, low, minimal, spam"),
        spam:     str = Query("hide", description=" / ".join(SPAM_MODES)),
    ):
        try:
            board = _service.board(query=q, category=category, priority=priority, spam=spam)
        except ValueError as exc:
            return JSONResponse(status_code=400, content={"detail": str(exc)})
        return {
            "kpis":     asdict(board.kpis),
            "pending":  [request_to_dict(r) for r in board.pending],
            "resolved": [request_to_dict(r) for r in board.resolved],
        }

    @_app.post("/requests/{request_id}/resolve", summary="Mark a request resolved")
    def resolve_endpoint(request_id: str):
        _service.resolve(request_id)
        return {"status": "ok", "id": request_id, "resolved": True}

    @_app.post("/requests/{request_id}/unresolve", summary="Move a request back to pending")
    def unresolve_endpoint(request_id: str):
        _service.unresolve(request_id)
        return {"status": "ok", "id": request_id, "resolved": False}

    @_app.delete("/requests/{request_id}", summary="Delete one request")
    def delete_endpoint(request_id: str):
        _service.delete(request_id)
        return {"status": "ok", "id": request_id}

    @_app.delete("/requests", summary="Delete all requests")
    def clear_endpoint():
        _service.clear_all()
        return {"status": "ok"}

    @_app.get("/queue", summary="Offline queue contents")
    def queue_endpoint():
        items = _service.queued()
        return {"count": len(items), "items": [request_to_dict(r) for r in items]}

    @_app.post("/sync", summary="Drain the offline queue now")
    async def sync_endpoint():
        summary = await _service.sync_now()
        return {
            "online":    _service.coordinator.online,
            "synced":    summary.synced if summary else 0,
            "total":     summary.total if summary else 0,
            "message":   summary.message if summary else None,
            "remaining": _service.coordinator.queue_length,
        }

    @_app.get("/health", summary="Health check")
    def health():
        return _service.health()

    return _app


# uvicorn triage.api:app
# Built on first access so importing this module never reads the cwd config
def __getattr__(name: str):
    if name == "app":
        globals()["app"] = _build_app()
        return globals()["app"]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


# ═══════════════════════════════════════════════════════════════════════════
# CLI ENTRYPOINT: python -m triage.api
# ═══════════════════════════════════════════════════════════════════════════

def serve(host: str, port: int, config: Dict[str, Any]) -> None:
    import uvicorn

    server_app = _build_app(TriageService(config))
    mode = "remote" if config.get("database_url") else "local (in-memory store)"
    print(f"""
+--------------------------------------------------+
|   SOS Triage API Server v{__version__:<24}|
+--------------------------------------------------+
|  Local:    http://{host}:{port}
|  Mode:     {mode}
|  Queue:    {config.get('queue_backend')} → {config.get('queue_path')}
|  Docs:     http://{host}:{port}/docs
+--------------------------------------------------+
""")
    uvicorn.run(server_app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    import argparse

    cfg = load_config(Path.cwd())
    parser = argparse.ArgumentParser(
        prog        = "triage.api",
        description = "SOS Triage API Server",
    )
    parser.add_argument("--port", type=int, default=cfg["api_port"],
                        help=f"Port to bind (default: {cfg['api_port']})")
    parser.add_argument("--host", type=str, default=cfg["api_host"],
                        help="Host to bind — DO NOT change to 0.0.0.0 on shared networks")
    args = parser.parse_args()
    serve(args.host, args.port, cfg)
