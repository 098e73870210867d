"""Owned syntax tree built from a tree-sitter parse.

tree-sitter nodes are views into a C-owned tree. The analyzer and the
instrumentor both work on this immutable copy instead, so the rewriter can
rebuild source bottom-up without touching shared parser state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

# Lines are 1-based, columns are 0-based byte offsets (tree-sitter/LSP style).


@dataclass(frozen=True, eq=False)
class SyntaxNode:
    """One node of the owned tree.

    Equality is identity: two nodes with the same span are still distinct
    positions in the tree, which is what the walker and rewriter key on.
    """

    kind: str
    start_byte: int
    end_byte: int
    line: int
    column: int
    end_line: int
    is_named: bool
    children: tuple[SyntaxNode, ...] = ()
    field_names: tuple[Optional[str], ...] = ()
    is_error: bool = False
    is_missing: bool = False
    source: bytes = field(default=b"", repr=False)

    @property
    def text(self) -> str:
        return self.source[self.start_byte : self.end_byte].decode("utf-8", errors="replace")

    @property
    def named_children(self) -> tuple[SyntaxNode, ...]:
        return tuple(child for child in self.children if child.is_named)

    def child_by_field(self, name: str) -> Optional[SyntaxNode]:
        for child, field_name in zip(self.children, self.field_names):
            if field_name == name:
                return child
        return None

    def first_child_of_kind(self, *kinds: str) -> Optional[SyntaxNode]:
        for child in self.children:
            if child.kind in kinds:
                return child
        return None

    def walk(self) -> Iterator[SyntaxNode]:
        """Pre-order, left-to-right traversal including this node."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_first_error(self) -> Optional[SyntaxNode]:
        for node in self.walk():
            if node.is_error or node.is_missing:
                return node
        return None


@dataclass(frozen=True)
class SyntaxTree:
    """A parsed source file: the source bytes plus the owned root node."""

    source: bytes
    root: SyntaxNode

    @property
    def text(self) -> str:
        return self.source.decode("utf-8", errors="replace")


def convert_tree(ts_tree: Any, source: bytes) -> SyntaxTree:
    """Copy a tree-sitter tree into owned SyntaxNode values.

    Uses a TreeCursor so field names come along with each child. The walk
    keeps its own stack of open nodes, so nesting depth is bounded by
    memory rather than the interpreter's recursion limit.
    """
    cursor = ts_tree.root_node.walk()
    stack: list[_OpenNode] = [_OpenNode(cursor.node, None)]
    while True:
        if cursor.goto_first_child():
            stack.append(_OpenNode(cursor.node, cursor.field_name))
            continue
        while True:
            done = stack.pop().close(source)
            if not stack:
                return SyntaxTree(source=source, root=done.node)
            stack[-1].children.append(done.node)
            stack[-1].field_names.append(done.field_name)
            if cursor.goto_next_sibling():
                stack.append(_OpenNode(cursor.node, cursor.field_name))
                break
            cursor.goto_parent()


class _OpenNode:
    """A tree-sitter node whose children are still being converted."""

    __slots__ = ("ts_node", "field_name", "children", "field_names", "node")

    def __init__(self, ts_node: Any, field_name: Optional[str]):
        self.ts_node = ts_node
        self.field_name = field_name
        self.children: list[SyntaxNode] = []
        self.field_names: list[Optional[str]] = []
        self.node: Optional[SyntaxNode] = None

    def close(self, source: bytes) -> _OpenNode:
        ts_node = self.ts_node
        start_row, start_col = ts_node.start_point
        end_row, _ = ts_node.end_point
        self.node = SyntaxNode(
            kind=ts_node.type,
            start_byte=ts_node.start_byte,
            end_byte=ts_node.end_byte,
            line=start_row + 1,
            column=start_col,
            end_line=end_row + 1,
            is_named=ts_node.is_named,
            children=tuple(self.children),
            field_names=tuple(self.field_names),
            is_error=ts_node.is_error,
            is_missing=ts_node.is_missing,
            source=source,
        )
        return self
