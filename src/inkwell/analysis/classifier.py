"""OperationClassifier - maps one expression node to a costed Operation.

Classification is by call-chain shape, not by type. A method chain such as
``self.indexes.setter(a).setter(b).get()`` is decomposed into a root (the
``self`` field path ``indexes``) and links (``setter``, ``setter``,
``get``). Rules are tried in priority order:

1. read terminal after >= 1 hop accessor     -> nested_map_access
2. write terminal with a same-path read in its arguments
                                              -> storage_write_embedded
3. write terminal (or assignment to a self field) -> storage_write
4. read terminal directly on the field path  -> storage_read
5. host context primitive                    -> context_call
6. event emission                            -> event_emit
7. call against an external contract handle  -> external_call
8. hash / signature primitive                -> crypto
9. any other call or macro                   -> other

``classify`` is total: an unexpected node shape becomes ``other`` (or no
operation at all) and is logged, never raised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..config import DEFAULT_CONFIG, AnalysisConfig
from ..exceptions import UnsupportedConstruct
from ..logging_config import get_logger
from ..syntax.items import normalize_whitespace
from ..syntax.tree import SyntaxNode
from .cost_model import estimate, severity_for
from .models import Operation, OperationKind

logger = get_logger(__name__)

CANDIDATE_KINDS = frozenset(
    {"call_expression", "macro_invocation", "assignment_expression", "compound_assignment_expr"}
)

# Storage accessor vocabulary (Stylus SDK storage types)
HOP_ACCESSORS = frozenset({"get", "getter", "setter", "at", "get_mut"})
READ_TERMINALS = frozenset({"get", "getter", "at", "len"})
WRITE_TERMINALS = frozenset({"insert", "set", "upsert", "push", "erase", "delete", "pop"})
ACCESSORS = HOP_ACCESSORS | READ_TERMINALS | WRITE_TERMINALS

# ``module::function`` host primitives -> cost sub-kind
CONTEXT_FUNCTIONS: dict[str, str] = {
    "msg::sender": "msg_sender",
    "msg::value": "msg_value",
    "block::number": "block",
    "block::timestamp": "block",
    "block::basefee": "block",
    "block::coinbase": "block",
    "block::gas_limit": "block",
    "block::chainid": "block",
    "tx::origin": "tx",
    "tx::gas_price": "tx",
    "tx::ink_price": "tx",
    "contract::address": "contract",
    "contract::balance": "contract",
    "evm::gas_left": "evm",
    "evm::ink_left": "evm",
}

# ``self.vm().method()`` host primitives -> cost sub-kind
CONTEXT_METHODS: dict[str, str] = {
    "msg_sender": "msg_sender",
    "msg_value": "msg_value",
    "block_number": "block",
    "block_timestamp": "block",
    "block_basefee": "block",
    "block_coinbase": "block",
    "block_gas_limit": "block",
    "chain_id": "block",
    "tx_origin": "tx",
    "tx_gas_price": "tx",
    "tx_ink_price": "tx",
    "contract_address": "contract",
    "evm_gas_left": "evm",
    "evm_ink_left": "evm",
}

EVENT_FUNCTIONS = frozenset({"evm::log", "evm::raw_log"})
EVENT_METHODS = frozenset({"emit"})
VM_EVENT_METHODS = frozenset({"log", "raw_log"})

EXTERNAL_FUNCTIONS = frozenset({"call", "static_call", "delegate_call", "transfer_eth"})
EXTERNAL_METHODS = frozenset({"call"})
CALL_BUILDERS = frozenset({"Call", "RawCall"})
CALL_BUILDER_CONFIG = frozenset(
    {"value", "gas", "limit_return_data", "flush_storage_cache", "skip_return_data"}
)
_INTERFACE_TYPE = re.compile(r"^I[A-Z]\w*$")

CRYPTO_NAMES = frozenset({"keccak256", "keccak", "sha256", "sha3", "ripemd160", "ecrecover", "ecdsa"})


@dataclass(frozen=True)
class _Link:
    """One ``.method(args)`` step of a method chain."""

    name: str
    arguments: Optional[SyntaxNode]
    call: SyntaxNode


@dataclass(frozen=True)
class _Chain:
    root: SyntaxNode
    links: tuple[_Link, ...]
    path: tuple[str, ...]

    @property
    def path_text(self) -> str:
        return ".".join(self.path)

    @property
    def terminal(self) -> _Link:
        return self.links[-1]

    @property
    def hops(self) -> tuple[_Link, ...]:
        return self.links[:-1]

    @property
    def is_accessor_chain(self) -> bool:
        return bool(self.path) and all(link.name in ACCESSORS for link in self.links)

    @property
    def is_read(self) -> bool:
        return (
            self.is_accessor_chain
            and self.terminal.name in READ_TERMINALS
            and all(link.name in HOP_ACCESSORS for link in self.hops)
        )


def _unwrap_function(function: Optional[SyntaxNode]) -> Optional[SyntaxNode]:
    if function is not None and function.kind == "generic_function":
        return function.child_by_field("function")
    return function


def self_path(node: Optional[SyntaxNode]) -> tuple[str, ...]:
    """Field path of ``self.a.b`` (``("a", "b")``); empty when not rooted at self.

    Index expressions (``self.items[i]``) are looked through.
    """
    fields: list[str] = []
    while node is not None:
        if node.kind == "field_expression":
            field_node = node.child_by_field("field")
            if field_node is None:
                return ()
            fields.append(field_node.text)
            node = node.child_by_field("value")
        elif node.kind == "index_expression":
            node = node.named_children[0] if node.named_children else None
        elif node.kind == "parenthesized_expression":
            node = node.named_children[0] if node.named_children else None
        elif node.kind == "self":
            return tuple(reversed(fields))
        else:
            return ()
    return ()


def decompose(call: SyntaxNode) -> _Chain:
    """Split a method-call chain into its root expression and links."""
    links: list[_Link] = []
    node = call
    while node.kind == "call_expression":
        function = _unwrap_function(node.child_by_field("function"))
        if function is None:
            raise UnsupportedConstruct("call_expression without callee", node.line, node.column)
        if function.kind != "field_expression":
            break
        field_node = function.child_by_field("field")
        value = function.child_by_field("value")
        if field_node is None or value is None:
            raise UnsupportedConstruct("field_expression", node.line, node.column)
        links.append(_Link(field_node.text, node.child_by_field("arguments"), node))
        node = value
    links.reverse()
    return _Chain(root=node, links=tuple(links), path=self_path(node))


def callee_path(call: SyntaxNode) -> str:
    """Callee text of a plain function call (``evm::log``, ``keccak256``), else ""."""
    function = _unwrap_function(call.child_by_field("function"))
    if function is None or function.kind not in ("identifier", "scoped_identifier"):
        return ""
    return re.sub(r"\s+", "", function.text)


def _short_path(path: str) -> str:
    """Last two segments: ``stylus_sdk::msg::sender`` -> ``msg::sender``."""
    return "::".join(path.split("::")[-2:])


def _is_call_builder(path: str) -> bool:
    """``Call::new``, ``Call::new_in``, ``RawCall::new_static`` and friends."""
    parts = path.split("::")
    return len(parts) >= 2 and parts[-2] in CALL_BUILDERS and parts[-1].startswith("new")


def _macro_name(node: SyntaxNode) -> str:
    macro = node.child_by_field("macro")
    return macro.text.split("::")[-1] if macro is not None else ""


def builder_calls(arguments: Optional[SyntaxNode]) -> tuple[SyntaxNode, ...]:
    """Every call of a ``Call::new_in(self).value(v)`` argument chain."""
    found: list[SyntaxNode] = []
    if arguments is None:
        return ()
    for arg in arguments.named_children:
        if arg.kind != "call_expression":
            continue
        try:
            chain = decompose(arg)
        except UnsupportedConstruct:
            continue
        root = chain.root
        if root.kind == "call_expression" and _is_call_builder(callee_path(root)):
            found.append(root)
            found.extend(link.call for link in chain.links)
    return tuple(found)


def _iter_calls(node: Optional[SyntaxNode]):
    if node is None:
        return
    for child in node.walk():
        if child.kind == "call_expression":
            yield child


class OperationClassifier:
    """Total classifier from expression nodes to Operations.

    Args:
        config: Analysis configuration (cost policy and ignored calls)
    """

    def __init__(self, config: AnalysisConfig = DEFAULT_CONFIG):
        self.config = config

    def classify(self, node: SyntaxNode, statement_index: int = 0) -> Optional[Operation]:
        """Classify one node; None when the node is not an operation."""
        if node.kind not in CANDIDATE_KINDS:
            return None
        try:
            if node.kind == "call_expression":
                return self._classify_call(node, statement_index)
            if node.kind == "macro_invocation":
                return self._classify_macro(node, statement_index)
            return self._classify_assignment(node, statement_index)
        except UnsupportedConstruct as e:
            logger.debug(f"Classifier: {e}; recorded as other")
            return self._other(node, statement_index, node.kind)

    # -- node kinds --------------------------------------------------------

    def _classify_call(self, node: SyntaxNode, statement_index: int) -> Optional[Operation]:
        chain = decompose(node)

        if chain.links:
            storage = self._classify_storage(node, chain, statement_index)
            if storage is not None:
                return storage
            return self._classify_method(node, chain, statement_index)

        path = callee_path(node)
        if path:
            return self._classify_function(node, path, statement_index)

        return self._other(node, statement_index, "call")

    def _classify_macro(self, node: SyntaxNode, statement_index: int) -> Optional[Operation]:
        name = _macro_name(node)
        if not name or name in self.config.ignored_calls:
            return None
        return self._other(node, statement_index, f"{name}!")

    def _classify_assignment(self, node: SyntaxNode, statement_index: int) -> Optional[Operation]:
        path = self_path(node.child_by_field("left"))
        if not path:
            return None
        detail = "compound_assignment" if node.kind == "compound_assignment_expr" else "assignment"
        return self._build(node, OperationKind.STORAGE_WRITE, path[0], statement_index, detail=detail)

    # -- rules 1-4 ---------------------------------------------------------

    def _classify_storage(
        self, node: SyntaxNode, chain: _Chain, statement_index: int
    ) -> Optional[Operation]:
        if not chain.is_accessor_chain:
            return None

        terminal = chain.terminal
        entity = chain.path[0]
        hop_calls = tuple(link.call for link in chain.hops)

        if chain.is_read and chain.hops:
            depth = len(chain.hops)
            return self._build(
                node,
                OperationKind.NESTED_MAP_ACCESS,
                entity,
                statement_index,
                nesting_depth=depth,
                detail=".".join(link.name for link in chain.links),
                covered=hop_calls,
            )

        if terminal.name in WRITE_TERMINALS:
            embedded = self._embedded_read(terminal.arguments, chain.path_text)
            if embedded is not None:
                read_call, read_covered = embedded
                return self._build(
                    node,
                    OperationKind.STORAGE_WRITE_EMBEDDED,
                    entity,
                    statement_index,
                    detail="embedded_read",
                    covered=hop_calls + (read_call,) + read_covered,
                    implied_reads=(normalize_whitespace(read_call.text),),
                )
            return self._build(
                node,
                OperationKind.STORAGE_WRITE,
                entity,
                statement_index,
                detail=terminal.name,
                covered=hop_calls,
            )

        if chain.is_read:
            return self._build(
                node, OperationKind.STORAGE_READ, entity, statement_index, detail=terminal.name
            )

        # A bare hop (``self.balances.setter(to)``) hands out a mutable
        # storage guard.
        return self._build(
            node,
            OperationKind.STORAGE_WRITE,
            entity,
            statement_index,
            detail=terminal.name,
            covered=hop_calls,
        )

    def _embedded_read(
        self, arguments: Optional[SyntaxNode], path_text: str
    ) -> Optional[tuple[SyntaxNode, tuple[SyntaxNode, ...]]]:
        """First read of ``path_text`` inside a write's arguments."""
        for call in _iter_calls(arguments):
            try:
                inner = decompose(call)
            except UnsupportedConstruct:
                continue
            if inner.links and inner.is_read and inner.path_text == path_text:
                return call, tuple(link.call for link in inner.hops)
        return None

    # -- rules 5-9 ---------------------------------------------------------

    def _classify_method(
        self, node: SyntaxNode, chain: _Chain, statement_index: int
    ) -> Optional[Operation]:
        name = chain.terminal.name

        # ``self.vm()`` only hands out the host handle
        if name == "vm" and not chain.hops:
            return None

        if name in CONTEXT_METHODS:
            return self._build(
                node,
                OperationKind.CONTEXT_CALL,
                name,
                statement_index,
                sub_kind=CONTEXT_METHODS[name],
                detail=name,
                covered=tuple(link.call for link in chain.hops if link.name == "vm"),
            )

        if name in EVENT_METHODS or (name in VM_EVENT_METHODS and self._on_vm(chain)):
            return self._build(
                node,
                OperationKind.EVENT_EMIT,
                self._event_name(chain.terminal.arguments) or name,
                statement_index,
                detail=name,
                covered=tuple(link.call for link in chain.hops if link.name == "vm"),
            )

        external = self._external_handle(chain)
        if external is not None:
            entity, covered = external
            return self._build(
                node,
                OperationKind.EXTERNAL_CALL,
                entity,
                statement_index,
                detail=name,
                covered=covered,
            )

        if name in CRYPTO_NAMES:
            return self._build(node, OperationKind.CRYPTO, name, statement_index, detail=name)

        return self._other(node, statement_index, name)

    def _classify_function(
        self, node: SyntaxNode, path: str, statement_index: int
    ) -> Optional[Operation]:
        short = _short_path(path)
        last = path.split("::")[-1]

        if last in self.config.ignored_calls:
            return None

        if short in CONTEXT_FUNCTIONS:
            return self._build(
                node,
                OperationKind.CONTEXT_CALL,
                short,
                statement_index,
                sub_kind=CONTEXT_FUNCTIONS[short],
                detail=CONTEXT_FUNCTIONS[short],
            )

        arguments = node.child_by_field("arguments")
        if short in EVENT_FUNCTIONS or path == "log":
            return self._build(
                node,
                OperationKind.EVENT_EMIT,
                self._event_name(arguments) or short,
                statement_index,
                detail=short,
            )

        if last in EXTERNAL_FUNCTIONS:
            return self._build(
                node,
                OperationKind.EXTERNAL_CALL,
                last,
                statement_index,
                detail=last,
                covered=builder_calls(arguments),
            )

        if CRYPTO_NAMES.intersection(path.split("::")):
            return self._build(node, OperationKind.CRYPTO, last, statement_index, detail=short)

        return self._other(node, statement_index, short)

    def _external_handle(
        self, chain: _Chain
    ) -> Optional[tuple[str, tuple[SyntaxNode, ...]]]:
        """(entity, covered calls) when the chain targets another contract."""
        name = chain.terminal.name
        root = chain.root
        hops = tuple(link.call for link in chain.hops)
        builders = builder_calls(chain.terminal.arguments)

        if root.kind == "call_expression":
            parts = callee_path(root).split("::")
            if len(parts) >= 2 and parts[-1].startswith("new"):
                type_part = parts[-2]
                if type_part in CALL_BUILDERS:
                    if name in CALL_BUILDER_CONFIG:
                        return None
                    return type_part, (root,) + hops + builders
                if _INTERFACE_TYPE.match(type_part):
                    return type_part, (root,) + hops + builders

        if name in EXTERNAL_METHODS:
            return name, hops + builders

        # ``token.transfer(Call::new_in(self), ...)``
        if builders:
            receiver = root.text if not chain.hops else chain.hops[0].name
            return normalize_whitespace(receiver), builders
        return None

    @staticmethod
    def _on_vm(chain: _Chain) -> bool:
        if any(link.name == "vm" for link in chain.hops):
            return True
        return chain.root.kind == "identifier" and chain.root.text == "vm"

    @staticmethod
    def _event_name(arguments: Optional[SyntaxNode]) -> str:
        """Struct name of the emitted event, e.g. ``Transfer``."""
        if arguments is None:
            return ""
        for arg in reversed(arguments.named_children):
            if arg.kind == "struct_expression":
                name = arg.child_by_field("name")
                if name is not None:
                    return name.text.split("::")[-1]
        return ""

    # -- builders ----------------------------------------------------------

    def _other(self, node: SyntaxNode, statement_index: int, detail: str) -> Optional[Operation]:
        if not self.config.include_other:
            return None
        return self._build(node, OperationKind.OTHER, detail, statement_index, detail=detail)

    def _build(
        self,
        node: SyntaxNode,
        kind: OperationKind,
        entity: str,
        statement_index: int,
        nesting_depth: int = 1,
        sub_kind: Optional[str] = None,
        detail: str = "",
        covered: tuple[SyntaxNode, ...] = (),
        implied_reads: tuple[str, ...] = (),
    ) -> Operation:
        return Operation(
            line=node.line,
            column=node.column,
            source_snippet=normalize_whitespace(node.text),
            kind=kind,
            entity_name=entity,
            nesting_depth=nesting_depth,
            estimated_ink=estimate(kind, nesting_depth, sub_kind, self.config.costs),
            severity=severity_for(kind),
            detail=detail,
            statement_index=statement_index,
            implied_reads=implied_reads,
            node=node,
            covered=covered,
        )
