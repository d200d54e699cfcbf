"""Category tree derived from the loaded memos."""

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from memosync.gateway.types import DEFAULT_CATEGORY, Memo

DEFAULT_MAX_DEPTH = 2
SEPARATOR = "/"


def split_category(category: str, max_depth: int = DEFAULT_MAX_DEPTH) -> list[str]:
    """
    Clip a category path to its first ``max_depth`` non-blank segments.

    An empty (or all-blank) category maps to the default sentinel.
    """
    if max_depth < 1:
        raise ValueError("max_depth must be at least 1")
    parts = [p.strip() for p in (category or "").split(SEPARATOR) if p.strip()]
    if not parts:
        parts = [DEFAULT_CATEGORY]
    return parts[:max_depth]


@dataclass
class CategoryNode:
    """One tree node. ``memos`` holds only memos whose clipped path ends here."""
    name: str
    path: str
    depth: int
    memos: list[Memo] = field(default_factory=list)
    children: dict[str, "CategoryNode"] = field(default_factory=dict)
    count: int = 0

    @property
    def has_children(self) -> bool:
        return bool(self.children)


@dataclass(frozen=True)
class TreeRow:
    """A visible row when rendering the tree."""
    node: CategoryNode
    depth: int
    expanded: bool


class CategoryTree:
    """Arena of nodes keyed by path; the root has path ``""``."""

    def __init__(self, nodes: dict[str, CategoryNode], max_depth: int):
        self._nodes = nodes
        self.max_depth = max_depth

    @property
    def root(self) -> CategoryNode:
        return self._nodes[""]

    @property
    def total(self) -> int:
        return self.root.count

    def node(self, path: str) -> CategoryNode | None:
        return self._nodes.get(path)

    def paths(self) -> list[str]:
        """All non-root node paths in depth-first order."""
        return [row.node.path for row in self._walk(self.root, None)]

    def walk(self, expanded: "ExpansionState | None" = None) -> Iterator[TreeRow]:
        """Visible rows, descending only into expanded nodes (all if None)."""
        return self._walk(self.root, expanded)

    def _walk(self, node: CategoryNode, expanded: "ExpansionState | None") -> Iterator[TreeRow]:
        for child in node.children.values():
            is_open = expanded is None or expanded.is_expanded(child.path)
            yield TreeRow(node=child, depth=child.depth, expanded=is_open)
            if is_open:
                yield from self._walk(child, expanded)

    def __contains__(self, path: str) -> bool:
        return path in self._nodes

    def __len__(self) -> int:
        return len(self._nodes) - 1


def build_category_tree(memos: Iterable[Memo], max_depth: int = DEFAULT_MAX_DEPTH) -> CategoryTree:
    """
    Build the category tree from scratch.

    Each memo is attached to the node of its clipped path only, so memos
    deeper than ``max_depth`` are grouped at the deepest shown level. The
    stored category string is never modified. Counts are recomputed from the
    finished structure.
    """
    root = CategoryNode(name="", path="", depth=0)
    nodes: dict[str, CategoryNode] = {"": root}

    for memo in memos:
        current = root
        path = ""
        for depth, part in enumerate(split_category(memo.category, max_depth), start=1):
            path = f"{path}{SEPARATOR}{part}" if path else part
            node = nodes.get(path)
            if node is None:
                node = CategoryNode(name=part, path=path, depth=depth)
                nodes[path] = node
                current.children[part] = node
            current = node
        current.memos.append(memo)

    _recount(root)
    return CategoryTree(nodes, max_depth)


def _recount(node: CategoryNode) -> int:
    node.count = len(node.memos) + sum(_recount(child) for child in node.children.values())
    return node.count


def all_categories(memos: Iterable[Memo]) -> list[str]:
    """Distinct full category paths, for editor suggestions."""
    return sorted({m.category_path for m in memos})


class ExpansionState:
    """Expanded node paths, kept apart from the tree so rebuilds keep it."""

    def __init__(self, paths: Iterable[str] = ()):
        self._paths: set[str] = set(paths)

    def is_expanded(self, path: str) -> bool:
        return path in self._paths

    def expand(self, path: str) -> None:
        self._paths.add(path)

    def collapse(self, path: str) -> None:
        self._paths.discard(path)

    def toggle(self, path: str) -> bool:
        """Flip a node. Returns the new expanded flag."""
        if path in self._paths:
            self._paths.discard(path)
            return False
        self._paths.add(path)
        return True

    def expand_all(self, tree: CategoryTree) -> None:
        self._paths.update(tree.paths())

    def clear(self) -> None:
        self._paths.clear()

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._paths)

    def __len__(self) -> int:
        return len(self._paths)
