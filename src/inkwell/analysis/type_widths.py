"""Byte widths of declared storage types and host primitive returns.

Used by the dry-nib detector to compare the data a host call actually
returns against the buffer it is charged for.
"""

from __future__ import annotations

import re
from typing import Optional

# Host primitive return widths, keyed by the callee's last path segment.
CONTEXT_RETURN_WIDTHS: dict[str, int] = {
    "sender": 20,
    "msg_sender": 20,
    "value": 32,
    "msg_value": 32,
    "number": 8,
    "block_number": 8,
    "timestamp": 8,
    "block_timestamp": 8,
    "basefee": 32,
    "block_basefee": 32,
    "coinbase": 20,
    "block_coinbase": 20,
    "gas_limit": 8,
    "block_gas_limit": 8,
    "chainid": 8,
    "chain_id": 8,
    "origin": 20,
    "tx_origin": 20,
    "gas_price": 32,
    "tx_gas_price": 32,
    "ink_price": 4,
    "tx_ink_price": 4,
    "address": 20,
    "contract_address": 20,
    "balance": 32,
    "contract_balance": 32,
    "gas_left": 8,
    "evm_gas_left": 8,
    "ink_left": 8,
    "evm_ink_left": 8,
}

_FIXED: dict[str, int] = {
    "u256": 32,
    "uint256": 32,
    "i256": 32,
    "int256": 32,
    "b256": 32,
    "address": 20,
    "bool": 1,
    "storageaddress": 20,
    "storagebool": 1,
    "storageb256": 32,
}

_MAP_PREFIXES = ("StorageMap", "HashMap", "BTreeMap", "Mapping")
_VEC_PREFIXES = ("StorageVec", "Vec")
_SOL_MAPPING = re.compile(r"^mapping\s*\((.*)\)$", re.DOTALL)
_UINT = re.compile(r"^(?:storage)?[ui](?:int)?(\d+)$")
_FIXED_BYTES = re.compile(r"^(?:FixedBytes<\s*(\d+)\s*>|bytes(\d+)|StorageFixedBytes<\s*(\d+)\s*>)$")


def _generic_args(text: str) -> list[str]:
    """Top-level generic arguments of ``Name<A, B<C, D>>``."""
    start = text.find("<")
    end = text.rfind(">")
    if start < 0 or end <= start:
        return []
    inner = text[start + 1 : end]
    args: list[str] = []
    depth = 0
    current = ""
    for ch in inner:
        if ch in "<(":
            depth += 1
        elif ch in ">)":
            depth -= 1
        if ch == "," and depth == 0:
            args.append(current.strip())
            current = ""
        else:
            current += ch
    if current.strip():
        args.append(current.strip())
    return args


def value_type(type_text: str) -> str:
    """Strip map/vec layers down to the stored value type."""
    text = type_text.strip()
    for _ in range(16):
        sol = _SOL_MAPPING.match(text)
        if sol:
            _key, _, rest = sol.group(1).partition("=>")
            text = rest.strip()
            continue
        if text.endswith("[]"):
            text = text[:-2].strip()
            continue
        head = text.split("<")[0].strip().split("::")[-1]
        args = _generic_args(text)
        if head in _MAP_PREFIXES and len(args) >= 2:
            text = args[-1]
            continue
        if head in _VEC_PREFIXES and len(args) == 1:
            text = args[0]
            continue
        break
    return text


def type_width(type_text: Optional[str], default: int = 32) -> int:
    """Byte width of a declared storage type's value; ``default`` when unknown."""
    if not type_text:
        return default
    text = value_type(type_text)
    bare = text.split("::")[-1].strip()

    fixed = _FIXED.get(bare.lower())
    if fixed is not None:
        return fixed

    found = _FIXED_BYTES.match(bare)
    if found:
        return int(next(group for group in found.groups() if group))

    found = _UINT.match(bare.lower())
    if found:
        bits = int(found.group(1))
        if bits % 8 == 0 and 8 <= bits <= 256:
            return bits // 8

    return default


def context_width(callee: str, default: int = 32) -> int:
    """Return width of a host primitive from its callee path."""
    name = callee.split("::")[-1].split(".")[-1].strip("()")
    return CONTEXT_RETURN_WIDTHS.get(name, default)
