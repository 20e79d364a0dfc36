"""Workspace tree model for tessellate.

A session's resumable payload is a SessionState: an ordered list of tabs,
each owning one workspace whose layout is a tree of pane nodes. A node is
either a Leaf (one browsing surface) or a Container (split side-by-side or
stacked). The two node kinds are separate classes, so a node can never be
both.

The on-disk JSON shape keeps leaf and container fields on one object:

    {"id": "n1", "pane": {...}}                                  # leaf
    {"id": "n2", "children": [...], "is_stacked": false,
     "split_ratio": 0.5, "split_dir": "horizontal"}              # container

Loading is tolerant by default (a node carrying both a pane and children
loads as a leaf) and strict on request (the same node raises
MalformedNodeError).
"""

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from tessellate.core.errors import MalformedNodeError
from tessellate.core.session import utc_now

logger = logging.getLogger(__name__)

SESSION_STATE_VERSION = 1

DEFAULT_TAB_NAME = "Tab"
MAX_TITLE_LENGTH = 50


@dataclass(frozen=True)
class PaneSnapshot:
    """Essential state of one browsing surface."""

    id: str = ""
    uri: str = ""
    title: str = ""
    zoom_factor: float = 1.0


@dataclass(frozen=True)
class Leaf:
    """A pane tree node holding exactly one pane."""

    pane: PaneSnapshot
    id: str = ""


@dataclass(frozen=True)
class Container:
    """A pane tree node holding an ordered sequence of child nodes.

    Attributes:
        children: Child nodes in display order
        is_stacked: True for layered (stacked) panes, False for a split
        split_ratio: Size of the first child in a two-way split, in (0, 1].
            0 for stacked or N-way containers.
        split_dir: "horizontal" or "vertical"
        active_stack_index: Visible child of a stacked container
    """

    children: tuple["PaneNode", ...]
    is_stacked: bool = False
    split_ratio: float = 0.0
    split_dir: str = "horizontal"
    active_stack_index: int = 0
    id: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


PaneNode = Union[Leaf, Container]


@dataclass
class WorkspaceSnapshot:
    """Pane tree layout of one tab. root is None for an empty workspace."""

    root: PaneNode | None = None
    id: str = ""
    active_pane_id: str = ""


@dataclass
class TabSnapshot:
    """State of a single tab."""

    name: str = ""
    is_pinned: bool = False
    workspace: WorkspaceSnapshot = field(default_factory=WorkspaceSnapshot)
    id: str = ""
    position: int = 0


@dataclass
class SessionState:
    """Complete snapshot of a browser session.

    Tab order is significant: restoring reproduces it.
    """

    session_id: str
    tabs: list[TabSnapshot] = field(default_factory=list)
    version: int = SESSION_STATE_VERSION
    active_tab_index: int = 0
    saved_at: datetime | None = None

    def count_panes(self) -> int:
        """Total number of panes across all tabs."""
        return sum(count_panes(tab.workspace.root) for tab in self.tabs)


def empty_state(session_id: str) -> SessionState:
    """State for a session that has no tabs yet."""
    return SessionState(session_id=session_id, tabs=[], saved_at=utc_now())


def count_panes(node: PaneNode | None) -> int:
    """Count the leaf panes in a tree.

    Returns 1 for a leaf, the sum over children for a container and 0 for an
    absent root.
    """
    if node is None:
        return 0
    if isinstance(node, Leaf):
        return 1
    return sum(count_panes(child) for child in node.children)


def iter_nodes(node: PaneNode | None) -> Iterator[PaneNode]:
    """Yield every node depth-first, children in stored order."""
    if node is None:
        return
    yield node
    if isinstance(node, Container):
        for child in node.children:
            yield from iter_nodes(child)


def validate_node(node: PaneNode | None, path: str = "root") -> None:
    """Strictly validate an already-built tree.

    Raises:
        MalformedNodeError: If a container is empty, a split ratio is out of
            range, or a node is neither a Leaf nor a Container.
    """
    if node is None:
        return
    if isinstance(node, Leaf):
        if not isinstance(node.pane, PaneSnapshot):
            raise MalformedNodeError(path, "leaf has no pane")
        return
    if not isinstance(node, Container):
        raise MalformedNodeError(path, f"unknown node type {type(node).__name__}")
    if not node.children:
        raise MalformedNodeError(path, "container has no children")
    if not 0.0 <= node.split_ratio <= 1.0:
        raise MalformedNodeError(path, f"split ratio {node.split_ratio} out of range")
    for i, child in enumerate(node.children):
        validate_node(child, f"{path}.children[{i}]")


def validate_state(state: SessionState) -> None:
    """Strictly validate every tab's tree."""
    for i, tab in enumerate(state.tabs):
        validate_node(tab.workspace.root, f"tabs[{i}].root")


# --- Serialization ---


def pane_from_dict(data: dict) -> PaneSnapshot:
    return PaneSnapshot(
        id=str(data.get("id") or ""),
        uri=str(data.get("uri") or ""),
        title=str(data.get("title") or ""),
        zoom_factor=float(data.get("zoom_factor") or 1.0),
    )


def _split_ratio(raw: object, strict: bool, path: str) -> float:
    """Parse a container's split ratio.

    Tolerant mode loads a ratio that is not a number in [0, 1] as 0.0, so the
    tree still passes validate_node and can be snapshotted again.
    """
    try:
        ratio = float(raw or 0.0)
    except (TypeError, ValueError):
        ratio = math.nan
    if 0.0 <= ratio <= 1.0:
        return ratio
    if strict:
        raise MalformedNodeError(path, f"split ratio {raw} out of range")
    logger.warning("pane node at %s has split ratio %s out of range; using 0.0", path, raw)
    return 0.0


def node_from_dict(
    data: dict | None, strict: bool = False, path: str = "root"
) -> PaneNode | None:
    """Build a pane tree from its JSON form.

    Args:
        data: Node dict, or None for an absent root.
        strict: Raise on malformed nodes instead of tolerating them.
        path: Location of this node, used in error messages.

    Returns:
        The node, or None when the node is absent (or, in tolerant mode,
        carries neither a pane nor any children).

    Raises:
        MalformedNodeError: In strict mode, for a node with both a pane and
            children, a node with neither, or a split ratio out of range.
    """
    if data is None:
        return None
    if not isinstance(data, dict):
        raise MalformedNodeError(path, f"expected object, got {type(data).__name__}")

    node_id = str(data.get("id") or "")
    pane = data.get("pane")
    raw_children = data.get("children") or []

    if pane is not None and raw_children:
        if strict:
            raise MalformedNodeError(path, "node has both a pane and children")
        logger.warning("pane node at %s has both a pane and children; loading as leaf", path)
        return Leaf(pane=pane_from_dict(pane), id=node_id)

    if pane is not None:
        return Leaf(pane=pane_from_dict(pane), id=node_id)

    children = []
    for i, raw_child in enumerate(raw_children):
        child_path = f"{path}.children[{i}]"
        if raw_child is None:
            if strict:
                raise MalformedNodeError(child_path, "child is null")
            continue
        child = node_from_dict(raw_child, strict=strict, path=child_path)
        if child is not None:
            children.append(child)

    if not children:
        if strict:
            raise MalformedNodeError(path, "node has neither a pane nor children")
        logger.warning("pane node at %s is empty; dropping it", path)
        return None

    split_ratio = _split_ratio(data.get("split_ratio"), strict=strict, path=path)

    return Container(
        children=tuple(children),
        is_stacked=bool(data.get("is_stacked", False)),
        split_ratio=split_ratio,
        split_dir=str(data.get("split_dir") or "horizontal"),
        active_stack_index=int(data.get("active_stack_index") or 0),
        id=node_id,
    )


def node_to_dict(node: PaneNode | None) -> dict | None:
    if node is None:
        return None
    if isinstance(node, Leaf):
        return {
            "id": node.id,
            "pane": {
                "id": node.pane.id,
                "uri": node.pane.uri,
                "title": node.pane.title,
                "zoom_factor": node.pane.zoom_factor,
            },
        }
    return {
        "id": node.id,
        "children": [node_to_dict(child) for child in node.children],
        "split_dir": node.split_dir,
        "split_ratio": node.split_ratio,
        "is_stacked": node.is_stacked,
        "active_stack_index": node.active_stack_index,
    }


def state_from_dict(data: dict, strict: bool = False) -> SessionState:
    """Build a SessionState from its JSON form.

    Raises:
        MalformedNodeError: In strict mode, for any malformed pane node.
        ValueError: If required fields are missing or mistyped.
    """
    if not isinstance(data, dict):
        raise ValueError(f"session state must be an object, got {type(data).__name__}")

    tabs = []
    for i, raw_tab in enumerate(data.get("tabs") or []):
        raw_workspace = raw_tab.get("workspace") or {}
        root = node_from_dict(
            raw_workspace.get("root"), strict=strict, path=f"tabs[{i}].root"
        )
        tabs.append(
            TabSnapshot(
                name=str(raw_tab.get("name") or ""),
                is_pinned=bool(raw_tab.get("is_pinned", False)),
                workspace=WorkspaceSnapshot(
                    root=root,
                    id=str(raw_workspace.get("id") or ""),
                    active_pane_id=str(raw_workspace.get("active_pane_id") or ""),
                ),
                id=str(raw_tab.get("id") or ""),
                position=int(raw_tab.get("position", i)),
            )
        )

    saved_at = data.get("saved_at")
    return SessionState(
        session_id=str(data.get("session_id") or ""),
        tabs=tabs,
        version=int(data.get("version", SESSION_STATE_VERSION)),
        active_tab_index=int(data.get("active_tab_index") or 0),
        saved_at=datetime.fromisoformat(saved_at) if saved_at else None,
    )


def state_to_dict(state: SessionState) -> dict:
    return {
        "version": state.version,
        "session_id": state.session_id,
        "tabs": [
            {
                "id": tab.id,
                "name": tab.name,
                "position": tab.position,
                "is_pinned": tab.is_pinned,
                "workspace": {
                    "id": tab.workspace.id,
                    "root": node_to_dict(tab.workspace.root),
                    "active_pane_id": tab.workspace.active_pane_id,
                },
            }
            for tab in state.tabs
        ],
        "active_tab_index": state.active_tab_index,
        "saved_at": state.saved_at.isoformat() if state.saved_at else None,
    }


# --- Rendering ---


def pane_label(pane: PaneSnapshot) -> str:
    """Display label for a pane: title, falling back to URI, truncated."""
    label = pane.title or pane.uri or "(blank)"
    if len(label) > MAX_TITLE_LENGTH:
        label = label[: MAX_TITLE_LENGTH - 3] + "..."
    return label


def container_label(node: Container) -> str:
    if node.is_stacked:
        return "stacked"
    if node.split_ratio > 0:
        return f"split {node.split_ratio * 100:.0f}%"
    return "split"


def render_tree(state: SessionState) -> list[str]:
    """Render tabs and their pane trees as box-drawing lines.

    Traversal is depth-first with children in stored order, so the output is
    stable for a given state.
    """
    lines: list[str] = []
    for i, tab in enumerate(state.tabs):
        is_last_tab = i == len(state.tabs) - 1
        label = tab.name or DEFAULT_TAB_NAME
        if tab.is_pinned:
            label += " (pinned)"
        lines.append(("└── " if is_last_tab else "├── ") + label)
        if tab.workspace.root is not None:
            _render_node(
                tab.workspace.root,
                "    " if is_last_tab else "│   ",
                True,
                lines,
            )
    return lines


def _render_node(node: PaneNode, prefix: str, is_last: bool, lines: list[str]) -> None:
    branch = "└── " if is_last else "├── "
    if isinstance(node, Leaf):
        lines.append(f"{prefix}{branch}{pane_label(node.pane)}")
        return

    lines.append(f"{prefix}{branch}{container_label(node)}")
    child_prefix = prefix + ("    " if is_last else "│   ")
    for i, child in enumerate(node.children):
        _render_node(child, child_prefix, i == len(node.children) - 1, lines)
