"""JSON file persistence for the directory cache snapshot."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from hrdirectory.models.cache import CacheSnapshot

logger = logging.getLogger(__name__)


class JsonSnapshotStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> CacheSnapshot | None:
        if not self.path.exists():
            return None
        try:
            return CacheSnapshot.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable cache snapshot %s: %s", self.path, e)
            return None

    def save(self, snapshot: CacheSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        tmp.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, self.path)
