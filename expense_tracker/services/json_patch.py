"""JSON Patch (RFC 6902) support for partial updates.

A patch document is parsed into a list of tagged operation models
(``add``, ``remove``, ``replace``, ``move``, ``copy``, ``test``) and applied
with :func:`apply_patch` to a plain JSON tree (dicts, lists, scalars).

Application works on a deep copy of the input document, so a failure at any
operation leaves the caller's document untouched and nothing is committed.
Paths are JSON Pointers (RFC 6901): ``/expenses/0/amount``, ``/name``; ``-``
addresses the end of an array for ``add``.
"""

from __future__ import annotations

import copy
from typing import Annotated, Any, List, Literal, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from expense_tracker.core.errors import JsonPatchError


class _Operation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    path: str


class AddOperation(_Operation):
    op: Literal["add"]
    value: Any


class RemoveOperation(_Operation):
    op: Literal["remove"]


class ReplaceOperation(_Operation):
    op: Literal["replace"]
    value: Any


class MoveOperation(_Operation):
    op: Literal["move"]
    from_: str = Field(alias="from")


class CopyOperation(_Operation):
    op: Literal["copy"]
    from_: str = Field(alias="from")


class TestOperation(_Operation):
    op: Literal["test"]
    value: Any


PatchOperation = Annotated[
    Union[
        AddOperation,
        RemoveOperation,
        ReplaceOperation,
        MoveOperation,
        CopyOperation,
        TestOperation,
    ],
    Field(discriminator="op"),
]

_document_adapter = TypeAdapter(List[PatchOperation])


def parse_patch_document(raw: Any) -> List[PatchOperation]:
    """Validate a decoded JSON body as a patch document."""
    if raw is None:
        raise JsonPatchError("patch document is required")
    if not isinstance(raw, list):
        raise JsonPatchError("patch document must be a JSON array of operations")
    try:
        return _document_adapter.validate_python(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = first.get("loc", ())
        index = loc[0] if loc and isinstance(loc[0], int) else None
        raise JsonPatchError(f"malformed operation: {first.get('msg')}", index) from exc


# ----------------------------------------------------------------------
# JSON Pointer helpers


def parse_pointer(pointer: str) -> List[str]:
    if pointer == "":
        return []
    if not pointer.startswith("/"):
        raise JsonPatchError(f"invalid JSON pointer '{pointer}'")
    return [
        token.replace("~1", "/").replace("~0", "~")
        for token in pointer[1:].split("/")
    ]


def _array_index(token: str, length: int, allow_end: bool = False) -> int:
    if token == "-" and allow_end:
        return length
    if not token.isdigit() or (len(token) > 1 and token.startswith("0")):
        raise JsonPatchError(f"invalid array index '{token}'")
    index = int(token)
    upper = length if allow_end else length - 1
    if index > upper:
        raise JsonPatchError(f"array index {index} out of range")
    return index


def _child(node: Any, token: str) -> Any:
    if isinstance(node, dict):
        if token not in node:
            raise JsonPatchError(f"member '{token}' does not exist")
        return node[token]
    if isinstance(node, list):
        return node[_array_index(token, len(node))]
    raise JsonPatchError(f"cannot traverse into scalar at '{token}'")


def resolve(document: Any, pointer: str) -> Any:
    node = document
    for token in parse_pointer(pointer):
        node = _child(node, token)
    return node


def _parent(document: Any, tokens: Sequence[str]) -> Any:
    node = document
    for token in tokens[:-1]:
        node = _child(node, token)
    if not isinstance(node, (dict, list)):
        raise JsonPatchError(f"cannot traverse into scalar at '{tokens[-1]}'")
    return node


# ----------------------------------------------------------------------
# Primitive edits; each returns the (possibly new) document root


def _add(document: Any, pointer: str, value: Any) -> Any:
    tokens = parse_pointer(pointer)
    if not tokens:
        return value
    parent = _parent(document, tokens)
    key = tokens[-1]
    if isinstance(parent, dict):
        parent[key] = value
    else:
        parent.insert(_array_index(key, len(parent), allow_end=True), value)
    return document


def _remove(document: Any, pointer: str) -> tuple[Any, Any]:
    tokens = parse_pointer(pointer)
    if not tokens:
        raise JsonPatchError("cannot remove the document root")
    parent = _parent(document, tokens)
    key = tokens[-1]
    if isinstance(parent, dict):
        if key not in parent:
            raise JsonPatchError(f"member '{key}' does not exist")
        return document, parent.pop(key)
    return document, parent.pop(_array_index(key, len(parent)))


def _replace(document: Any, pointer: str, value: Any) -> Any:
    tokens = parse_pointer(pointer)
    if not tokens:
        return value
    parent = _parent(document, tokens)
    key = tokens[-1]
    if isinstance(parent, dict):
        if key not in parent:
            raise JsonPatchError(f"member '{key}' does not exist")
        parent[key] = value
    else:
        parent[_array_index(key, len(parent))] = value
    return document


def json_equal(left: Any, right: Any) -> bool:
    """Structural equality that keeps JSON booleans distinct from numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            json_equal(left[k], right[k]) for k in left
        )
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            json_equal(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return False
    return left == right


def _apply_one(document: Any, operation: PatchOperation) -> Any:
    if isinstance(operation, AddOperation):
        return _add(document, operation.path, copy.deepcopy(operation.value))
    if isinstance(operation, RemoveOperation):
        document, _ = _remove(document, operation.path)
        return document
    if isinstance(operation, ReplaceOperation):
        return _replace(document, operation.path, copy.deepcopy(operation.value))
    if isinstance(operation, MoveOperation):
        if operation.path == operation.from_:
            resolve(document, operation.from_)
            return document
        if operation.path.startswith(operation.from_ + "/"):
            raise JsonPatchError("cannot move a value into one of its own children")
        document, value = _remove(document, operation.from_)
        return _add(document, operation.path, value)
    if isinstance(operation, CopyOperation):
        value = copy.deepcopy(resolve(document, operation.from_))
        return _add(document, operation.path, value)
    if isinstance(operation, TestOperation):
        actual = resolve(document, operation.path)
        if not json_equal(actual, operation.value):
            raise JsonPatchError(f"test failed at '{operation.path}'")
        return document
    raise JsonPatchError(f"unsupported operation {operation!r}")


def apply_patch(document: Any, operations: Sequence[PatchOperation]) -> Any:
    """Apply ``operations`` in order and return the patched copy of ``document``.

    Raises JsonPatchError (with the failing operation index) on the first
    operation that cannot be applied; ``document`` itself is never modified.
    """
    result = copy.deepcopy(document)
    for index, operation in enumerate(operations):
        try:
            result = _apply_one(result, operation)
        except JsonPatchError as exc:
            raise JsonPatchError(exc.message, index) from exc
    return result
