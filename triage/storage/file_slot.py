"""
triage/storage/file_slot.py
File-per-key slot: <directory>/<key>.json.

Writes go to a temp file in the same directory, then os.replace() swaps it
in, so a crash mid-write leaves the previous value intact.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from triage.storage.base import KeyValueSlot

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r'[^A-Za-z0-9._-]')


class FileSlot(KeyValueSlot):

    def __init__(self, directory: Path = Path('.')):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE.sub('_', key)}.json"

    def read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding='utf-8')

    def write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix('.json.tmp')
        tmp.write_text(value, encoding='utf-8')
        os.replace(tmp, path)
        logger.debug(f"Wrote slot '{key}' → {path}")
