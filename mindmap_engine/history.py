# mindmap_engine/history.py
import logging
from typing import Any, Dict, List, Optional

from . import constants
from .models import Document

logger = logging.getLogger(__name__)


class HistoryManager:
    """
    Linear undo/redo over whole-document snapshots.

    Snapshots are deep copies taken on push and copied again on the way out,
    so callers can freely modify what they get back.
    """
    def __init__(self, max_size: int = constants.MAX_HISTORY_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size: int = max_size
        self._snapshots: List[Document] = []
        self._index: int = -1

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, document: Document) -> None:
        """Records `document` as the newest state, dropping any redo states."""
        del self._snapshots[self._index + 1:]
        self._snapshots.append(document.clone())
        self._index = len(self._snapshots) - 1
        if len(self._snapshots) > self.max_size:
            overflow = len(self._snapshots) - self.max_size
            del self._snapshots[:overflow]
            self._index -= overflow
            logger.debug("History full, evicted %d oldest snapshot(s)", overflow)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def undo(self) -> Optional[Document]:
        if not self.can_undo:
            return None
        self._index -= 1
        return self._snapshots[self._index].clone()

    def redo(self) -> Optional[Document]:
        if not self.can_redo:
            return None
        self._index += 1
        return self._snapshots[self._index].clone()

    def current(self) -> Optional[Document]:
        if self._index < 0:
            return None
        return self._snapshots[self._index].clone()

    def clear(self) -> None:
        self._snapshots = []
        self._index = -1

    def timeline(self) -> List[Dict[str, Any]]:
        """One entry per snapshot, oldest first, for display."""
        return [
            {
                "index": i,
                "title": snapshot.title,
                "updatedAt": snapshot.updated_at,
                "nodeCount": sum(1 for _ in snapshot.root_node.iter_nodes()),
                "current": i == self._index,
            }
            for i, snapshot in enumerate(self._snapshots)
        ]
