"""
Rebuilds nested bulk operation results from Shopify's flattened JSONL format.

A bulk export writes every object on its own line. Objects nested inside a connection
carry a ``__parentId`` pointing at the object they belong to, and parents always come
before their children. For example the query ``orders { lineItems { ... } }`` yields::

    {"id": "gid://shopify/Order/1", "name": "#1001"}
    {"id": "gid://shopify/LineItem/2", "__parentId": "gid://shopify/Order/1"}
    {"id": "gid://shopify/LineItem/3", "__parentId": "gid://shopify/Order/1"}
    {"id": "gid://shopify/Order/4", "name": "#1002"}

which is reassembled into two orders, the first holding ``lineItems`` 2 and 3.
"""

import json
import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from .exceptions import ReconstructionError

PARENT_ID_KEY = "__parentId"
TYPENAME_KEY = "__typename"

_GID_TYPE = re.compile(r"^gid://[^/]+/([^/]+)/")

logger = logging.getLogger(__name__)


@dataclass
class Shape:
    """
    Describes where child records go while rebuilding one level of a result tree

    Attributes:
        typename: GraphQL type collected at this level (e.g. ``LineItem``)
        children: Child connection field name -> shape of the records it collects
        model: Optional pydantic model the finished top-level objects are validated into
        strict: Reject child records whose type matches no declared field instead of
            deriving a field name from the type
    """

    typename: str | None = None
    children: dict[str, "Shape"] = field(default_factory=dict)
    model: type[BaseModel] | None = None
    strict: bool = False

    def field_for(self, typename: str | None) -> tuple[str, "Shape"] | None:
        for name, child in self.children.items():
            if child.typename is not None and child.typename == typename:
                return name, child
        untyped = [(name, child) for name, child in self.children.items() if child.typename is None]
        if len(self.children) == 1 and untyped:
            return untyped[0]
        return None

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Shape":
        """Build a shape from plain configuration, e.g. ``{"lineItems": {"typename": "LineItem"}}``"""
        children = {}
        for name, child in config.items():
            child = dict(child or {})
            nested = child.pop("children", {}) or {}
            shape = cls.from_dict(nested)
            shape.typename = child.get("typename")
            shape.strict = bool(child.get("strict", False))
            children[name] = shape
        return cls(children=children)


def record_typename(record: dict[str, Any]) -> str | None:
    """GraphQL type of a record, from ``__typename`` or its ``gid://shopify/<Type>/<id>`` id"""
    if record.get(TYPENAME_KEY):
        return record[TYPENAME_KEY]
    match = _GID_TYPE.match(str(record.get("id") or ""))
    return match.group(1) if match else None


def default_field_name(typename: str) -> str:
    """``LineItem`` -> ``lineItems``"""
    return typename[0].lower() + typename[1:] + "s"


class _Node:
    __slots__ = ("data", "shape")

    def __init__(self, data: dict[str, Any], shape: Shape):
        self.data = data
        self.shape = shape
        for name in shape.children:
            if name in data:
                raise ReconstructionError(
                    f"Record {data.get('id', '<no id>')} already has a field '{name}' declared as a child connection"
                )
            data[name] = []


class Reconstructor:
    """
    Single-pass, streaming assembly of flat records into nested objects.

    Only the subtree of the current top-level object is kept in memory: it is finalized
    and emitted as soon as the next top-level record starts, so memory does not grow
    with the size of the export.
    """

    def __init__(self, shape: Shape | None = None):
        self.shape = shape or Shape()
        self._arena: dict[str, _Node] = {}
        self._current: _Node | None = None
        self.records_read = 0
        self.objects_emitted = 0

    def feed(self, record: dict[str, Any]) -> Any | None:
        """
        Consume one flat record

        Returns:
            The previous top-level object when ``record`` starts a new one, else None
        """
        self.records_read += 1
        parent_id = record.pop(PARENT_ID_KEY, None)

        if parent_id is None:
            finished = self._finalize()
            self._current = self._register(record, self.shape)
            return finished

        parent = self._arena.get(parent_id)
        if parent is None:
            raise ReconstructionError(
                f"Record {record.get('id', '<no id>')} references parent {parent_id} "
                f"that does not precede it in the result stream"
            )
        name, child_shape = self._resolve_field(parent, record)
        parent.data[name].append(self._register(record, child_shape).data)
        return None

    def finish(self) -> Any | None:
        """Finalize the last top-level object, if any"""
        return self._finalize()

    def _register(self, record: dict[str, Any], shape: Shape) -> _Node:
        node = _Node(record, shape)
        record_id = record.get("id")
        if record_id is not None:
            self._arena[record_id] = node
        return node

    def _resolve_field(self, parent: _Node, record: dict[str, Any]) -> tuple[str, Shape]:
        typename = record_typename(record)
        resolved = parent.shape.field_for(typename)
        if resolved is not None:
            return resolved
        if parent.shape.strict or typename is None:
            raise ReconstructionError(
                f"Cannot place record {record.get('id', '<no id>')} of type {typename} "
                f"under parent {parent.data.get('id')}: no matching child field"
            )
        name = default_field_name(typename)
        if not isinstance(parent.data.setdefault(name, []), list):
            raise ReconstructionError(
                f"Record {parent.data.get('id')} already has a field '{name}' for its {typename} children"
            )
        return name, Shape(typename=typename)

    def _finalize(self) -> Any | None:
        if self._current is None:
            return None
        node = self._current
        self._current = None
        self._arena.clear()
        self.objects_emitted += 1
        if self.shape.model is None:
            return node.data
        try:
            return self.shape.model.model_validate(node.data)
        except ValidationError as e:
            raise ReconstructionError(
                f"Record {node.data.get('id')} does not match {self.shape.model.__name__}: {e}"
            ) from e


def reconstruct(lines: Iterable[str | bytes], shape: Shape | None = None) -> Iterator[Any]:
    """
    Yield top-level objects rebuilt from JSONL lines, in order of first appearance

    Args:
        lines: JSONL lines (str or UTF-8 bytes); blank lines are skipped
        shape: Shape of the top level; defaults to deriving child fields from record types

    Raises:
        ReconstructionError: invalid JSON, or a child whose parent has not been seen
    """
    reconstructor = Reconstructor(shape)
    for line_number, line in enumerate(lines, start=1):
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise ReconstructionError(f"Invalid JSON on line {line_number} of bulk result: {e}") from e
        finished = reconstructor.feed(record)
        if finished is not None:
            yield finished
    last = reconstructor.finish()
    if last is not None:
        yield last
    logger.debug(
        f"Reconstructed {reconstructor.objects_emitted} objects from {reconstructor.records_read} records"
    )


def reconstruct_file(file_path: str | Path, shape: Shape | None = None) -> Iterator[Any]:
    """Stream a downloaded JSONL result file through ``reconstruct``"""
    with open(file_path, encoding="utf-8") as f:
        yield from reconstruct(f, shape)
