"""Arena-backed call tree.

Nodes live in a flat list owned by the tree and refer to each other by
index: a node lists its children's indices in call order and keeps the index
of its parent (None for the root).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

from callstack.trace.span_model import SpanAlign


@dataclass(eq=False)
class CallTreeNode:
    """One entry in a CallTree arena."""

    tree: CallTree = field(repr=False)
    index: int
    value: SpanAlign
    parent_index: Optional[int] = None
    child_indices: list[int] = field(default_factory=list)

    @property
    def parent(self) -> Optional[CallTreeNode]:
        if self.parent_index is None:
            return None
        return self.tree.node(self.parent_index)

    @property
    def children(self) -> list[CallTreeNode]:
        return [self.tree.node(i) for i in self.child_indices]

    @property
    def has_child(self) -> bool:
        return bool(self.child_indices)


class CallTree:
    """Call tree of span alignments stored in index order of insertion."""

    def __init__(self) -> None:
        self._nodes: list[CallTreeNode] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[CallTreeNode]:
        return self.iter_depth_first()

    @property
    def root(self) -> Optional[CallTreeNode]:
        return self._nodes[0] if self._nodes else None

    def node(self, index: int) -> CallTreeNode:
        return self._nodes[index]

    def add_root(self, value: SpanAlign) -> CallTreeNode:
        if self._nodes:
            raise ValueError("call tree already has a root")
        return self._append(value, None)

    def add_child(self, parent: CallTreeNode, value: SpanAlign) -> CallTreeNode:
        if parent.tree is not self:
            raise ValueError("parent node belongs to a different call tree")
        node = self._append(value, parent.index)
        parent.child_indices.append(node.index)
        parent.value.has_child = True
        return node

    def _append(self, value: SpanAlign, parent_index: Optional[int]) -> CallTreeNode:
        node = CallTreeNode(tree=self, index=len(self._nodes), value=value, parent_index=parent_index)
        self._nodes.append(node)
        return node

    def iter_depth_first(self) -> Iterator[CallTreeNode]:
        """Yield nodes parent-before-children, children in call order."""
        if not self._nodes:
            return
        stack = [0]
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            # Reverse so the first child is popped next
            stack.extend(reversed(node.child_indices))
