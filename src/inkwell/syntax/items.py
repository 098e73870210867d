"""Item-level queries over a parsed contract: units, contract name, storage.

These read the top of the tree only (impls, structs, storage macros); the
expression-level work happens in ``inkwell.analysis``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Optional

from .tree import SyntaxNode, SyntaxTree

# Attribute names (last path segment) that export an impl or a method
EXPORT_ATTRIBUTES = frozenset({"public", "external"})
ENTRYPOINT_ATTRIBUTE = "entrypoint"
STORAGE_ATTRIBUTES = frozenset({"storage", "entrypoint", "solidity_storage"})
STORAGE_MACROS = frozenset({"sol_storage"})

_WS = re.compile(r"\s+")
_SOL_STRUCT = re.compile(
    r"((?:#\[[^\]]*\]\s*)*)(?:pub(?:\([^)]*\))?\s+)?struct\s+(\w+)[^{]*\{(.*?)\}", re.DOTALL
)
_ATTR = re.compile(r"#\[\s*([\w:]+)")
_LINE_COMMENT = re.compile(r"//[^\n]*")


@dataclass(frozen=True)
class UnitDecl:
    """An eligible callable: one exported method of the contract."""

    name: str
    impl_type: str
    signature: str
    line: int
    node: SyntaxNode

    @property
    def body(self) -> Optional[SyntaxNode]:
        return self.node.child_by_field("body")


def normalize_whitespace(text: str) -> str:
    """Collapse source text to one line.

    Breaks before ``.``/closing brackets and after opening brackets vanish so
    rustfmt-style method chains read as ``self.a.get(k)``; any other break
    becomes a single space.
    """
    text = re.sub(r"\s*\n\s*(?=[.)\]?])", "", text)
    text = re.sub(r"(?<=[(\[])\s*\n\s*", "", text)
    return _WS.sub(" ", text).strip()


def attribute_name(attr_item: SyntaxNode) -> str:
    """Last path segment of ``#[path::to::name(args)]``."""
    attribute = attr_item.first_child_of_kind("attribute")
    if attribute is None:
        return ""
    path = attribute.first_child_of_kind("identifier", "scoped_identifier")
    if path is None:
        return ""
    return path.text.split("::")[-1].strip()


def iter_items(container: SyntaxNode) -> Iterator[tuple[SyntaxNode, tuple[str, ...]]]:
    """Yield (item, attribute names) for items of a file or module body.

    Attributes in tree-sitter-rust are sibling nodes preceding the item, so
    they are accumulated until the next non-attribute item. Inline modules
    are descended into.
    """
    pending: list[str] = []
    for child in container.named_children:
        if child.kind == "attribute_item":
            pending.append(attribute_name(child))
            continue
        if child.kind in ("line_comment", "block_comment"):
            continue
        attrs = tuple(pending)
        pending = []
        yield child, attrs
        if child.kind == "mod_item":
            body = child.child_by_field("body")
            if body is not None:
                yield from iter_items(body)


def is_pub(item: SyntaxNode) -> bool:
    visibility = item.first_child_of_kind("visibility_modifier")
    return visibility is not None and visibility.text.startswith("pub")


def type_name(type_node: Optional[SyntaxNode]) -> str:
    if type_node is None:
        return ""
    return type_node.text.split("<")[0].strip()


def signature_summary(fn_item: SyntaxNode) -> str:
    """``name(param: Type, ...) -> Ret`` with the receiver left out."""
    name_node = fn_item.child_by_field("name")
    name = name_node.text if name_node is not None else "?"
    params_node = fn_item.child_by_field("parameters")
    params: list[str] = []
    if params_node is not None:
        params = [
            normalize_whitespace(p.text) for p in params_node.named_children if p.kind == "parameter"
        ]
    signature = f"{name}({', '.join(params)})"
    return_type = fn_item.child_by_field("return_type")
    if return_type is not None:
        signature += f" -> {normalize_whitespace(return_type.text)}"
    return signature


def find_units(tree: SyntaxTree) -> list[UnitDecl]:
    """All eligible callables in source order.

    A method is eligible when its impl carries an export attribute and the
    method is ``pub`` or itself exported, or when the method carries an
    export attribute inside an unmarked impl.
    """
    units: list[UnitDecl] = []
    for item, attrs in iter_items(tree.root):
        if item.kind != "impl_item":
            continue
        impl_exported = bool(EXPORT_ATTRIBUTES.intersection(attrs))
        impl_type = type_name(item.child_by_field("type"))
        body = item.child_by_field("body")
        if body is None:
            continue
        for member, member_attrs in iter_items(body):
            if member.kind != "function_item":
                continue
            member_exported = bool(EXPORT_ATTRIBUTES.intersection(member_attrs))
            if not (member_exported or (impl_exported and is_pub(member))):
                continue
            name_node = member.child_by_field("name")
            if name_node is None:
                continue
            units.append(
                UnitDecl(
                    name=name_node.text,
                    impl_type=impl_type,
                    signature=signature_summary(member),
                    line=member.line,
                    node=member,
                )
            )
    return units


def _macro_name(node: SyntaxNode) -> str:
    macro = node.child_by_field("macro")
    return macro.text.split("::")[-1] if macro is not None else ""


def _storage_macros(tree: SyntaxTree) -> Iterator[SyntaxNode]:
    for item, _attrs in iter_items(tree.root):
        if item.kind == "macro_invocation" and _macro_name(item) in STORAGE_MACROS:
            yield item


def contract_name(tree: SyntaxTree, units: Optional[list[UnitDecl]] = None) -> str:
    """Name of the contract's entrypoint struct, with fallbacks.

    Order: ``#[entrypoint]`` struct (plain or inside ``sol_storage!``),
    first exported impl type, first ``pub struct``, ``"Unknown"``.
    """
    first_pub_struct = ""
    for item, attrs in iter_items(tree.root):
        if item.kind == "struct_item":
            name = type_name(item.child_by_field("name"))
            if ENTRYPOINT_ATTRIBUTE in attrs:
                return name
            if not first_pub_struct and is_pub(item):
                first_pub_struct = name

    for macro in _storage_macros(tree):
        for match in _SOL_STRUCT.finditer(macro.text):
            attrs = {name.split("::")[-1] for name in _ATTR.findall(match.group(1))}
            if ENTRYPOINT_ATTRIBUTE in attrs:
                return match.group(2)
            if not first_pub_struct:
                first_pub_struct = match.group(2)

    if units is None:
        units = find_units(tree)
    if units and units[0].impl_type:
        return units[0].impl_type
    return first_pub_struct or "Unknown"


def storage_fields(tree: SyntaxTree) -> dict[str, str]:
    """Declared storage fields: field name -> type text.

    Reads ``#[storage]``/``#[entrypoint]`` structs and ``sol_storage!``
    bodies. Later declarations of the same name win.
    """
    fields: dict[str, str] = {}

    for item, attrs in iter_items(tree.root):
        if item.kind != "struct_item" or not STORAGE_ATTRIBUTES.intersection(attrs):
            continue
        body = item.child_by_field("body")
        if body is None:
            continue
        for decl in body.named_children:
            if decl.kind != "field_declaration":
                continue
            name = decl.child_by_field("name")
            field_type = decl.child_by_field("type")
            if name is not None and field_type is not None:
                fields[name.text] = normalize_whitespace(field_type.text)

    for macro in _storage_macros(tree):
        text = _LINE_COMMENT.sub("", macro.text)
        for match in _SOL_STRUCT.finditer(text):
            for decl in match.group(3).split(";"):
                decl = re.sub(r"#\[[^\]]*\]", "", decl).strip()
                decl = re.sub(r"^pub(?:\([^)]*\))?\s+", "", decl)
                found = re.match(r"(.+?)\s+(\w+)\s*$", decl, re.DOTALL)
                if found:
                    fields[found.group(2)] = normalize_whitespace(found.group(1))

    return fields
