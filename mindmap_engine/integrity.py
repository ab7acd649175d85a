# mindmap_engine/integrity.py
"""
Structural integrity checks for mind map documents.

The checker works on the JSON (dict) form so that it can report on data that
would not even load into a Document. It never raises: problems are returned
as a list of issues. `repair` fixes what can be fixed without guessing
(missing root, document id, title, non-canonical root id); duplicate ids and
cycles deeper in the tree are reported but left in place.
"""
import copy
import logging
from typing import Any, Dict, List, Optional, Set

from . import constants
from .models import Document, generate_map_id, _is_number

logger = logging.getLogger(__name__)

# Issue types
MISSING_ROOT = "missing_root"
ORPHANED_NODES = "orphaned_nodes"
CIRCULAR_REFERENCE = "circular_reference"
INVALID_STRUCTURE = "invalid_structure"

# Severities
CRITICAL = "critical"
WARNING = "warning"
INFO = "info"


class IntegrityIssue:
    def __init__(self, issue_type: str, description: str, severity: str, data: Optional[Dict[str, Any]] = None):
        self.type: str = issue_type
        self.description: str = description
        self.severity: str = severity
        self.data: Optional[Dict[str, Any]] = data

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "description": self.description, "severity": self.severity}
        if self.data is not None:
            result["data"] = self.data
        return result

    def __repr__(self) -> str:
        return f"IntegrityIssue({self.severity}: {self.type} - {self.description})"


class IntegrityCheckResult:
    def __init__(self, issues: List[IntegrityIssue], repair_suggestions: List[str]):
        self.issues: List[IntegrityIssue] = issues
        self.repair_suggestions: List[str] = repair_suggestions

    @property
    def is_valid(self) -> bool:
        return not any(issue.severity == CRITICAL for issue in self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": [issue.to_dict() for issue in self.issues],
            "repairSuggestions": list(self.repair_suggestions),
        }


class RepairResult:
    def __init__(self, repaired: Optional[Dict[str, Any]], issues: List[IntegrityIssue]):
        self.repaired: Optional[Dict[str, Any]] = repaired
        self.issues: List[IntegrityIssue] = issues


def _as_dict(data: Any) -> Any:
    return data.to_dict() if isinstance(data, Document) else data


def _check_nodes(root: Any, issues: List[IntegrityIssue], suggestions: List[str]) -> None:
    """
    Walks the tree with an explicit stack.

    A node id seen before is a duplicate; if it is still on the active path it
    is a cycle. Either way that node's subtree is not descended.
    """
    visited: Set[str] = set()
    active_path: List[str] = []
    # ("enter", node, path) or ("exit", None, None)
    stack: List[Any] = [("enter", root, "root")]
    while stack:
        action, node, path = stack.pop()
        if action == "exit":
            active_path.pop()
            continue

        if not isinstance(node, dict):
            issues.append(IntegrityIssue(INVALID_STRUCTURE, f"Node is null or not an object at path: {path}", CRITICAL))
            continue

        node_id = node.get("id")
        if isinstance(node_id, str) and node_id in visited:
            if node_id in active_path:
                description = f"Node ID {node_id} appears inside its own subtree at path: {path}"
            else:
                description = f"Duplicate node ID found: {node_id} at path: {path}"
            issues.append(IntegrityIssue(CIRCULAR_REFERENCE, description, CRITICAL, {"nodeId": node_id, "path": path}))
            suggestions.append(f"Generate new unique ID for node at {path}")
            continue

        if not node_id or not isinstance(node_id, str):
            issues.append(IntegrityIssue(INVALID_STRUCTURE, f"Node missing ID at path: {path}", CRITICAL))
            suggestions.append(f"Generate unique ID for node at {path}")
        else:
            visited.add(node_id)

        if node.get("text") is None:
            issues.append(IntegrityIssue(INVALID_STRUCTURE, f"Node missing text property at path: {path}", WARNING))
            suggestions.append(f"Set default text for node at {path}")

        if not (_is_number(node.get("x")) and _is_number(node.get("y"))):
            issues.append(IntegrityIssue(INVALID_STRUCTURE, f"Node missing or invalid coordinates at path: {path}", WARNING))
            suggestions.append(f"Set default coordinates for node at {path}")

        children = node.get("children")
        if children is None:
            continue
        if not isinstance(children, list):
            issues.append(IntegrityIssue(INVALID_STRUCTURE, f"Node children is not an array at path: {path}", CRITICAL))
            suggestions.append(f"Convert children to empty array at {path}")
            continue

        active_path.append(node_id if isinstance(node_id, str) else "")
        stack.append(("exit", None, None))
        for index in range(len(children) - 1, -1, -1):
            stack.append(("enter", children[index], f"{path}.children[{index}]"))


def check(data: Any) -> IntegrityCheckResult:
    """Checks a document (dict or Document) and returns every issue found."""
    data = _as_dict(data)
    issues: List[IntegrityIssue] = []
    suggestions: List[str] = []

    if not data or not isinstance(data, dict):
        issues.append(IntegrityIssue(INVALID_STRUCTURE, "Map data is null or not an object", CRITICAL))
        return IntegrityCheckResult(issues, suggestions)

    root = data.get("rootNode")
    if not root:
        issues.append(IntegrityIssue(MISSING_ROOT, "Root node is missing", CRITICAL,
                                     {"mapId": data.get("id"), "title": data.get("title")}))
        suggestions.append("Create a new root node with default properties")
    elif isinstance(root, dict):
        if not root.get("id"):
            issues.append(IntegrityIssue(INVALID_STRUCTURE, "Root node missing ID", CRITICAL))
            suggestions.append(f'Set root node ID to "{constants.ROOT_ID}"')
        elif root.get("id") != constants.ROOT_ID:
            issues.append(IntegrityIssue(
                INVALID_STRUCTURE,
                f'Root node ID should be "{constants.ROOT_ID}", but found "{root.get("id")}"',
                WARNING))
            suggestions.append(f'Change root node ID to "{constants.ROOT_ID}"')
        if root.get("text") is None:
            issues.append(IntegrityIssue(INVALID_STRUCTURE, "Root node missing text property", WARNING))
            suggestions.append("Set default text for root node")

    if not data.get("id"):
        issues.append(IntegrityIssue(INVALID_STRUCTURE, "Map ID is missing", CRITICAL))
        suggestions.append("Generate a new unique map ID")

    if not data.get("title"):
        issues.append(IntegrityIssue(INVALID_STRUCTURE, "Map title is missing", WARNING))
        suggestions.append(f'Set default title "{constants.REPAIRED_MAP_TITLE}"')

    if root:
        _check_nodes(root, issues, suggestions)

    return IntegrityCheckResult(issues, suggestions)


def repair(data: Any) -> RepairResult:
    """
    Best-effort fix of the top-level structure.

    Returns a repaired deep copy, or `repaired=None` when there is nothing to
    rebuild from (None or a non-object input).
    """
    data = _as_dict(data)
    if not data or not isinstance(data, dict):
        logger.error("Cannot repair map data: input is empty or not an object")
        return RepairResult(None, [])

    repaired = copy.deepcopy(data)
    issues: List[IntegrityIssue] = []

    if not isinstance(repaired.get("rootNode"), dict):
        logger.warning("Recreating missing root node")
        repaired["rootNode"] = {
            "id": constants.ROOT_ID,
            "text": repaired.get("title") or constants.REPAIRED_ROOT_TEXT,
            "x": constants.ROOT_NODE_X,
            "y": constants.ROOT_NODE_Y,
            "children": [],
        }
        issues.append(IntegrityIssue(MISSING_ROOT, "Root node was recreated", CRITICAL))

    if not repaired.get("id"):
        repaired["id"] = generate_map_id()
        issues.append(IntegrityIssue(INVALID_STRUCTURE, "Map ID was generated", CRITICAL))

    if not repaired.get("title"):
        repaired["title"] = constants.REPAIRED_MAP_TITLE
        issues.append(IntegrityIssue(INVALID_STRUCTURE, "Default title was set", WARNING))

    if repaired["rootNode"].get("id") != constants.ROOT_ID:
        logger.warning('Correcting root node ID "%s" to "%s"', repaired["rootNode"].get("id"), constants.ROOT_ID)
        repaired["rootNode"]["id"] = constants.ROOT_ID
        issues.append(IntegrityIssue(INVALID_STRUCTURE, f'Root node ID was corrected to "{constants.ROOT_ID}"', WARNING))

    return RepairResult(repaired, issues)


def log_integrity_report(result: IntegrityCheckResult, data: Any = None) -> None:
    data = _as_dict(data)
    title = data.get("title") if isinstance(data, dict) else None
    logger.info("Integrity report for '%s': %s, %d issue(s)",
                title or "Unknown Map", "valid" if result.is_valid else "INVALID", len(result.issues))
    for issue in result.issues:
        level = logging.ERROR if issue.severity == CRITICAL else logging.WARNING if issue.severity == WARNING else logging.INFO
        logger.log(level, "[%s] %s: %s", issue.severity, issue.type, issue.description)
    for suggestion in result.repair_suggestions:
        logger.info("Suggestion: %s", suggestion)


def validate_before_operation(data: Any, operation: str) -> bool:
    """Checks the document before `operation`; logs and returns False when it is invalid."""
    result = check(data)
    if not result.is_valid:
        logger.error("Validation failed before '%s'", operation)
        log_integrity_report(result, data)
        return False
    return True
