"""EIP-712 type derivation for arbitrary JSON documents.

The type schema is read off the document itself: every nested object becomes
a named struct, arrays become ``T[]`` fields and primitive leaves map to the
closest Solidity ABI type. The result is deterministic (fields in sorted key
order, structs in discovery order), since the type list is part of what gets
hashed and signed and a verifier has to rebuild exactly the same one.

Derivation happens in two passes. ``_shape`` reduces a value to a structural
shape, unifying array elements and rejecting anything EIP-712 cannot express.
``_TypeRegistry`` then names and emits struct types from those shapes.
"""

from __future__ import annotations

import json
import re
from typing import Any

from credwallet.core.models import TypedDataDomain, TypedDataSchema, TypedField
from credwallet.exceptions import SchemaDerivationError

EIP712_DOMAIN = "EIP712Domain"
DOMAIN_FIELDS = [
    TypedField(name="name", type="string"),
    TypedField(name="version", type="string"),
    TypedField(name="chainId", type="uint256"),
]
DOMAIN_VERSION = "1"
# An empty array hashes to the same value whatever its element type.
EMPTY_ARRAY_ELEMENT = "string"
_EMPTY: tuple[str] = ("empty",)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_TYPE_NAME_RE = re.compile(r"[^0-9A-Za-z_]")

Shape = tuple[Any, ...]


def _path(parent: str, key: str | int) -> str:
    if isinstance(key, int):
        return f"{parent}[{key}]"
    return f"{parent}.{key}" if parent else key


def _primitive(value: Any, path: str) -> Shape:
    if isinstance(value, bool):
        return ("prim", "bool")
    if isinstance(value, int):
        return ("prim", "uint256" if value >= 0 else "int256")
    if isinstance(value, str):
        return ("prim", "address" if _ADDRESS_RE.match(value) else "string")
    if value is None:
        raise SchemaDerivationError(f"null value at '{path}' has no EIP-712 type")
    if isinstance(value, float):
        raise SchemaDerivationError(f"non-integer number at '{path}' has no EIP-712 type")
    raise SchemaDerivationError(f"unsupported value of type {type(value).__name__} at '{path}'")


def _unify(a: Shape, b: Shape) -> Shape | None:
    """Return a shape covering both *a* and *b*, or None when they conflict."""
    if a == b:
        return a
    # Elements of an empty array take the type of their siblings.
    if a == _EMPTY:
        return b
    if b == _EMPTY:
        return a
    if a[0] != b[0]:
        return None
    if a[0] == "prim":
        kinds = {a[1], b[1]}
        if kinds == {"address", "string"}:
            return ("prim", "string")
        if kinds == {"uint256", "int256"}:
            return ("prim", "int256")
        return None
    if a[0] == "array":
        inner = _unify(a[1], b[1])
        return None if inner is None else ("array", inner)
    # struct
    if [k for k, _ in a[1]] != [k for k, _ in b[1]]:
        return None
    fields = []
    for (key, left), (_, right) in zip(a[1], b[1]):
        merged = _unify(left, right)
        if merged is None:
            return None
        fields.append((key, merged))
    return ("struct", tuple(fields))


def _shape(value: Any, path: str) -> Shape:
    if isinstance(value, dict):
        return (
            "struct",
            tuple((key, _shape(value[key], _path(path, key))) for key in sorted(value)),
        )
    if isinstance(value, list):
        if not value:
            return ("array", _EMPTY)
        element = _shape(value[0], _path(path, 0))
        for index, item in enumerate(value[1:], start=1):
            merged = _unify(element, _shape(item, _path(path, index)))
            if merged is None:
                raise SchemaDerivationError(f"heterogeneous array elements at '{path}'")
            element = merged
        return ("array", element)
    return _primitive(value, path)


def type_name_for(key: str) -> str:
    """Struct type name for a document key: ``credentialSubject`` -> ``CredentialSubject``."""
    name = _TYPE_NAME_RE.sub("", key)
    if not name or name[0].isdigit():
        raise SchemaDerivationError(f"key '{key}' cannot be turned into an EIP-712 type name")
    return name[0].upper() + name[1:]


class _TypeRegistry:
    def __init__(self) -> None:
        self.types: dict[str, list[TypedField]] = {EIP712_DOMAIN: list(DOMAIN_FIELDS)}
        self._shapes: dict[str, Shape] = {EIP712_DOMAIN: ("reserved",)}

    def _claim(self, base: str, shape: Shape, owner: str) -> str:
        name = base
        if name in self._shapes and self._shapes[name] != shape:
            name = f"{owner}{base}"
            suffix = 2
            while name in self._shapes and self._shapes[name] != shape:
                name = f"{owner}{base}{suffix}"
                suffix += 1
        return name

    def struct(self, base: str, shape: Shape, owner: str) -> str:
        name = self._claim(base, shape, owner)
        if name in self._shapes:
            return name
        # Reserve before descending so parents precede children.
        self._shapes[name] = shape
        self.types[name] = []
        self.types[name] = [
            TypedField(name=key, type=self.field_type(key, field_shape, name))
            for key, field_shape in shape[1]
        ]
        return name

    def field_type(self, key: str, shape: Shape, owner: str) -> str:
        if shape == _EMPTY:
            return EMPTY_ARRAY_ELEMENT
        if shape[0] == "struct":
            return self.struct(type_name_for(key), shape, owner)
        if shape[0] == "array":
            return self.field_type(key, shape[1], owner) + "[]"
        return shape[1]


def build_schema(
    document: dict[str, Any], primary_type: str, *, chain_id: int = 1
) -> TypedDataSchema:
    """Derive the EIP-712 schema for *document* with *primary_type* as root struct."""
    if not isinstance(document, dict):
        raise SchemaDerivationError("typed data can only be derived from a JSON object")

    registry = _TypeRegistry()
    registry.struct(primary_type, _shape(document, ""), "")

    return TypedDataSchema(
        domain=TypedDataDomain(chain_id=chain_id, name=primary_type, version=DOMAIN_VERSION),
        types=registry.types,
        primary_type=primary_type,
    )


def build_payload(schema: TypedDataSchema, message: dict[str, Any]) -> str:
    """Serialize the ``eth_signTypedData_v4`` payload for *message*."""
    eip712 = schema.to_eip712()
    return json.dumps(
        {
            "domain": eip712["domain"],
            "types": eip712["types"],
            "message": message,
            "primaryType": eip712["primaryType"],
        }
    )
