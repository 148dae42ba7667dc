"""
triage/config.py
Project config with defaults. Persists to triage_config.json.

database_url None runs in local mode: requests live in an in-process store
and nothing is sent over the network.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "triage_config.json"

DEFAULT_CONFIG = {
    "database_url": None,
    "auth_token": None,
    "requests_path": "sosRequests",
    "queue_backend": "sqlite",          # sqlite | file
    "queue_path": "sos_queue.db",       # db file (sqlite) or directory (file)
    "queue_key": "sos.queue.v1",
    "sync_interval_sec": 5,
    "probe_interval_sec": 10,
    "request_timeout_sec": 10,
    "api_host": "127.0.0.1",
    "api_port": 8765,
}

QUEUE_BACKENDS = ("sqlite", "file")


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / CONFIG_FILENAME


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from triage_config.json. Returns defaults if missing or unreadable."""
    path = _config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")
            return {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.warning(f"Config load failed: {e}")
    return dict(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to triage_config.json."""
    path = _config_path(project_root)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return path


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Reject values the service cannot start with. Returns config unchanged."""
    if config.get("queue_backend") not in QUEUE_BACKENDS:
        raise ValueError(
            f"queue_backend must be one of {', '.join(QUEUE_BACKENDS)}, "
            f"got {config.get('queue_backend')!r}"
        )
    for key in ("sync_interval_sec", "probe_interval_sec", "request_timeout_sec"):
        value = config.get(key)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"{key} must be a positive number, got {value!r}")
    return config
