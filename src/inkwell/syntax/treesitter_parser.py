"""Tree-sitter parser wrapper for Rust contract sources.

Usage:
    parser = RustParser()
    tree = parser.parse(source)      # SyntaxTree, or raises ParseError
"""

from __future__ import annotations

from typing import Optional, Union

import tree_sitter
import tree_sitter_rust

from ..exceptions import ParseError
from ..logging_config import get_logger
from .tree import SyntaxTree, convert_tree

logger = get_logger(__name__)


class RustParser:
    """Wrapper around tree-sitter with the Rust grammar.

    tree-sitter recovers from syntax errors by inserting ERROR/MISSING
    nodes. Contract analysis needs a faithful tree, so any recovery is
    reported as a ParseError at the first offending node.
    """

    def __init__(self) -> None:
        # tree-sitter >= 0.23 returns a PyCapsule; wrap in Language()
        self._language = tree_sitter.Language(tree_sitter_rust.language())
        self._parser = tree_sitter.Parser(self._language)

    def parse(self, source: Union[str, bytes], file_path: Optional[str] = None) -> SyntaxTree:
        """Parse source and return an owned syntax tree.

        Args:
            source: Contract source as text or UTF-8 bytes
            file_path: Used only to label errors

        Raises:
            ParseError: If the source does not parse cleanly
        """
        code = source.encode("utf-8") if isinstance(source, str) else source

        try:
            ts_tree = self._parser.parse(code)
        except ValueError as e:
            raise ParseError(str(e), line=1, column=0, file_path=file_path)

        tree = convert_tree(ts_tree, code)
        if ts_tree.root_node.has_error:
            bad = tree.root.find_first_error()
            if bad is None:
                raise ParseError("syntax error", line=1, column=0, file_path=file_path)
            reason = f"missing {bad.kind}" if bad.is_missing else f"unexpected {bad.text[:40]!r}"
            logger.debug(f"Parse failed at {bad.line}:{bad.column}: {reason}")
            raise ParseError(reason, line=bad.line, column=bad.column, file_path=file_path)

        return tree
