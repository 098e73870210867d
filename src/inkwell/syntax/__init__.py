"""Parsing layer: tree-sitter Rust parser, owned syntax tree, item queries."""

from .expansion import CargoExpandExpander, MacroExpander, NoExpansion
from .items import UnitDecl, contract_name, find_units, storage_fields
from .tree import SyntaxNode, SyntaxTree
from .treesitter_parser import RustParser

__all__ = [
    "RustParser",
    "SyntaxNode",
    "SyntaxTree",
    "UnitDecl",
    "find_units",
    "contract_name",
    "storage_fields",
    "MacroExpander",
    "CargoExpandExpander",
    "NoExpansion",
]
