"""Whiteboard persistence with atomic writes and recent-backup rotation."""

import json
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Any
from urllib.parse import quote

from .constants import BACKUP_INTERVAL_SECONDS, MAX_RECENT_BACKUPS
from .exceptions import InvalidMessageError
from .graph import cleanup_graph_state, create_graph_state
from .serializer import deserialize_graph_state, serialize_graph_state
from .types import GraphState

logger = logging.getLogger(__name__)


class WhiteboardRepository:
    """
    Stores one whiteboard per user under data_dir.

    Each file holds {"graph_state": <graph sync message>, "snapshot": <canvas
    snapshot or null>}. The snapshot is opaque here; it is kept so the canvas
    can be restored exactly as it was drawn.
    """

    def __init__(self, data_dir: Path, backup_interval: float = BACKUP_INTERVAL_SECONDS):
        self.data_dir = Path(data_dir)
        self.backup_interval = backup_interval

    def path_for(self, user_id: str) -> Path:
        return self.data_dir / f"{quote(user_id, safe='')}.json"

    def _backup_path(self, path: Path, index: int) -> Path:
        return path.with_suffix(f".json.bak.{index}")

    def _backup_marker(self, path: Path) -> Path:
        return path.with_suffix(".json.last_backup")

    def _read(self, path: Path) -> tuple[GraphState, Any]:
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise InvalidMessageError(f"Whiteboard file {path} is not an object")

        state = deserialize_graph_state(data.get("graph_state") or {"nodes": [], "edges": []})
        cleanup = cleanup_graph_state(state)
        if cleanup.changed:
            logger.warning(
                f"Repaired stored whiteboard {path}: removed {len(cleanup.removed_edges)} edges, "
                f"detached {len(cleanup.detached_nodes)} nodes"
            )
        return state, data.get("snapshot")

    def load(self, user_id: str) -> tuple[GraphState, Any] | None:
        """
        Load a user's whiteboard as (graph_state, snapshot).
        Returns None when nothing is stored. A corrupt file falls back to the
        most recent readable backup.
        """
        path = self.path_for(user_id)
        candidates = [path] + [self._backup_path(path, i) for i in range(1, MAX_RECENT_BACKUPS + 1)]

        for candidate in candidates:
            if not candidate.exists():
                continue
            try:
                state, snapshot = self._read(candidate)
            except (OSError, json.JSONDecodeError, InvalidMessageError) as e:
                logger.error(f"Failed to load whiteboard from {candidate}: {e}")
                continue
            logger.info(
                f"Loaded whiteboard for {user_id} from {candidate}: "
                f"{len(state['nodes'])} nodes, {len(state['edges'])} edges"
            )
            return state, snapshot
        return None

    def save(self, user_id: str, state: GraphState, snapshot: Any = None) -> bool:
        """
        Save a user's whiteboard with an atomic write.
        Returns True on success, False on failure.
        """
        path = self.path_for(user_id)
        temp_path = path.with_suffix(".tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            data = {
                "graph_state": serialize_graph_state(state),
                "snapshot": snapshot,
            }

            with open(temp_path, "w") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())

            self.maybe_backup(path)
            temp_path.replace(path)

            logger.debug(f"Saved whiteboard for {user_id} to {path}")
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save whiteboard to {path}: {e}")
            if temp_path.exists():
                temp_path.unlink()
            return False

    def delete(self, user_id: str) -> bool:
        """Delete a user's whiteboard and its backups. Returns True if anything was removed."""
        path = self.path_for(user_id)
        removed = False
        for candidate in [path] + [self._backup_path(path, i) for i in range(1, MAX_RECENT_BACKUPS + 1)]:
            if candidate.exists():
                candidate.unlink()
                removed = True
        self._backup_marker(path).unlink(missing_ok=True)
        if removed:
            logger.info(f"Deleted whiteboard for {user_id}")
        return removed

    def maybe_backup(self, path: Path) -> bool:
        """
        Copy the current file into the recent backups if enough time has
        passed since the last backup. Returns True if a backup was made.
        """
        if not path.exists():
            return False

        marker = self._backup_marker(path)
        if marker.exists() and time.time() - marker.stat().st_mtime < self.backup_interval:
            return False

        self._rotate_backups(path)
        marker.touch()
        return True

    def _rotate_backups(self, path: Path):
        """Shift .bak.N files and copy the current file to .bak.1."""
        if not path.exists():
            return

        for i in range(MAX_RECENT_BACKUPS - 1, 0, -1):
            old_backup = self._backup_path(path, i)
            if old_backup.exists():
                shutil.copy2(old_backup, self._backup_path(path, i + 1))

        shutil.copy2(path, self._backup_path(path, 1))
        logger.debug(f"Created recent backup: {self._backup_path(path, 1)}")


def empty_board() -> tuple[GraphState, Any]:
    """Fresh (graph_state, snapshot) pair for a user with nothing stored."""
    return create_graph_state(), None
