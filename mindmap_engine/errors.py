# mindmap_engine/errors.py
from typing import Optional


class MindMapError(Exception):
    """Base class for recoverable errors raised by mind map operations."""
    def __init__(self, message: str, node_id: Optional[str] = None):
        super().__init__(message)
        self.node_id: Optional[str] = node_id


class NotFoundError(MindMapError):
    """An operation referenced a node id that is not in the document."""


class DuplicateIdError(MindMapError):
    """A node was added with an id that already exists."""


class InvalidOperationError(MindMapError):
    """The operation would break a tree invariant (deleting/moving the root, creating a cycle)."""
