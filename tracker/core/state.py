"""Persistence helpers for the refresh run state."""

from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from models.refresh_status import PENDING, REFRESHING, RefreshStatus
from tracker.core.errors import PersistenceError
from tracker.core.events import REFRESH_STATUS_CHANGED, Notifier
from tracker.utils.logger import get_logger

log = get_logger(__name__)


def atomic_write_json(path: Path, payload: Any, *, prefix: str) -> None:
    """Write ``payload`` to ``path`` via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=prefix, suffix=".json", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            json.dump(payload, tmp_file, indent=2, sort_keys=True)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise PersistenceError(f"Failed to write {path}", path=str(path), operation="write") from exc
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)


def read_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (json.JSONDecodeError, OSError):
        log.warning(f"Unreadable state file {path}, ignoring")
        return None


class RefreshStatusStore:
    """Owner of the single ``RefreshStatus`` record.

    The orchestrator and scheduler write through ``save``/``update``; every
    other reader gets a detached copy from ``snapshot``. With ``path=None`` the
    state lives in memory only.
    """

    def __init__(self, path: Optional[Path] = None, notifier: Optional[Notifier] = None) -> None:
        self.path = Path(path) if path else None
        self.notifier = notifier or Notifier()
        self._status = self._load()

    def _load(self) -> RefreshStatus:
        if self.path is None:
            return RefreshStatus()
        payload = read_json(self.path)
        if not isinstance(payload, dict):
            return RefreshStatus()
        return RefreshStatus.from_dict(payload)

    @property
    def is_refreshing(self) -> bool:
        return self._status.is_refreshing

    def snapshot(self) -> RefreshStatus:
        return copy.deepcopy(self._status)

    def save(self, status: RefreshStatus, *, notify: bool = True) -> RefreshStatus:
        self._status = copy.deepcopy(status)
        if self.path is not None:
            atomic_write_json(self.path, self._status.to_dict(), prefix="refresh_status_")
        if notify:
            self.notifier.publish(REFRESH_STATUS_CHANGED, {"is_refreshing": self._status.is_refreshing})
        return self.snapshot()

    def update(self, **fields: Any) -> RefreshStatus:
        status = self.snapshot()
        for key, value in fields.items():
            if not hasattr(status, key):
                raise AttributeError(f"RefreshStatus has no field {key!r}")
            setattr(status, key, value)
        return self.save(status)

    def recover_stale(self) -> bool:
        """Undo a run that died mid-flight (``is_refreshing`` left set on disk)."""
        if not self._status.is_refreshing:
            return False

        status = self.snapshot()
        for item in status.pending_items:
            if item.status == REFRESHING:
                item.status = PENDING
        unfinished = sum(1 for item in status.pending_items if item.status == PENDING)
        status.is_refreshing = False
        status.current_listing_title = None
        self.save(status)
        log.info(f"Recovered stale refresh state, {unfinished} items remain pending")
        return True

    def clear_errors(self) -> RefreshStatus:
        return self.update(refresh_errors=[])

    def as_dict(self) -> Dict[str, Any]:
        return self._status.to_dict()


__all__ = ["RefreshStatusStore", "atomic_write_json", "read_json"]
