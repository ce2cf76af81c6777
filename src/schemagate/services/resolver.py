"""$ref resolution for parsed schema trees.

References are replaced by the subtree they point to. While a target is being
expanded its pointer sits in a "visiting" set; meeting the same pointer again
inside that expansion yields a ``recursive(pointer)`` sentinel instead of
recursing, so self-referential schemas (trees, linked lists) terminate
without a depth cutoff.
"""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import replace
from typing import Any
from urllib.parse import unquote

from schemagate.errors import (
    ErrorCode,
    InvalidSchemaError,
    SchemaResolutionError,
    UnresolvedReferenceError,
)
from schemagate.models.enums import JsonSchemaDraft, SchemaKind
from schemagate.services.schema_tree import (
    SchemaNode,
    SchemaParser,
    detect_draft,
    escape_pointer_token,
)

logger = logging.getLogger(__name__)

DEFINITION_KEYWORDS = ("definitions", "$defs")


def normalize_pointer(ref: str) -> str:
    """Normalize a local reference ('' and '#/' both mean the document root)."""
    if ref in ("", "#", "#/"):
        return "#"
    return ref


class DocumentDefinitions(Mapping[str, SchemaNode]):
    """Reference targets of one schema document, keyed by JSON pointer.

    ``definitions`` and ``$defs`` entries are parsed up front; any other local
    pointer (e.g. ``#/properties/address``) is parsed on first lookup.
    """

    def __init__(self, document: Any, draft: JsonSchemaDraft | None = None):
        self.document = document
        self.parser = SchemaParser(draft or detect_draft(document))
        self._nodes: dict[str, SchemaNode] = {}

        if isinstance(document, dict):
            for keyword in DEFINITION_KEYWORDS:
                if keyword not in document:
                    continue
                block = document[keyword]
                if not isinstance(block, dict):
                    raise SchemaResolutionError(
                        f"'{keyword}' must be an object mapping names to schemas",
                        code=ErrorCode.INVALID_DEFINITIONS,
                        path=f"#/{keyword}",
                    )
                for name, fragment in block.items():
                    pointer = f"#/{keyword}/{escape_pointer_token(name)}"
                    self._nodes[pointer] = self.parser.parse(fragment, pointer)

    def __getitem__(self, ref: str) -> SchemaNode:
        pointer = normalize_pointer(ref)
        if pointer not in self._nodes:
            fragment = self._lookup(pointer)
            self._nodes[pointer] = self.parser.parse(fragment, pointer)
        return self._nodes[pointer]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def _lookup(self, pointer: str) -> Any:
        """Walk a local JSON pointer through the raw document."""
        if pointer == "#":
            return self.document
        if not pointer.startswith("#/"):
            # Remote documents and plain-name anchors are not supported
            raise KeyError(pointer)

        current = self.document
        for raw_part in pointer[2:].split("/"):
            part = unquote(raw_part).replace("~1", "/").replace("~0", "~")
            if isinstance(current, dict) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                raise KeyError(pointer)
        return current


class ReferenceResolver:
    """Replaces ref nodes with their targets; one instance per resolution."""

    def __init__(self, definitions: Mapping[str, SchemaNode]):
        self.definitions = definitions
        self._visiting: set[str] = set()

    def resolve(self, node: SchemaNode, path: str = "$") -> SchemaNode:
        """Return a copy of ``node`` with every reference resolved."""
        if node.kind is SchemaKind.REF:
            return self._resolve_ref(node, path)
        if node.kind is SchemaKind.RECURSIVE:
            return node

        additional = node.additional_properties
        return replace(
            node,
            properties={
                name: self.resolve(child, f"{path}.properties.{name}")
                for name, child in node.properties.items()
            },
            items=self.resolve(node.items, f"{path}.items") if node.items is not None else None,
            prefix_items=(
                tuple(
                    self.resolve(child, f"{path}.prefixItems.{i}")
                    for i, child in enumerate(node.prefix_items)
                )
                if node.prefix_items is not None
                else None
            ),
            additional_properties=(
                additional
                if isinstance(additional, bool)
                else self.resolve(additional, f"{path}.additionalProperties")
            ),
            composition={
                keyword: tuple(
                    self.resolve(child, f"{path}.{keyword}.{i}") for i, child in enumerate(variants)
                )
                for keyword, variants in node.composition.items()
            },
            conditional={
                keyword: self.resolve(child, f"{path}.{keyword}")
                for keyword, child in node.conditional.items()
            },
        )

    def _resolve_ref(self, node: SchemaNode, path: str) -> SchemaNode:
        if node.ref is None:
            raise InvalidSchemaError(f"Reference node at '{path}' has no target", path=path)
        pointer = normalize_pointer(node.ref)
        if pointer in self._visiting:
            logger.debug("Cycle on %s at %s, substituting recursive sentinel", pointer, path)
            return SchemaNode(kind=SchemaKind.RECURSIVE, ref=pointer, source=node.source)

        try:
            target = self.definitions[pointer]
        except KeyError:
            raise UnresolvedReferenceError(node.ref, path=path) from None

        self._visiting.add(pointer)
        try:
            resolved = self.resolve(target, path)
        finally:
            self._visiting.discard(pointer)

        if node.has_default and not resolved.has_default:
            resolved = replace(resolved, has_default=True, default=node.default)
        return resolved

    def enter(self, pointer: str) -> None:
        """Mark ``pointer`` as being expanded (e.g. the document root)."""
        self._visiting.add(normalize_pointer(pointer))


def collect_definitions(document: Any, draft: JsonSchemaDraft | None = None) -> DocumentDefinitions:
    """Build the reference-target map for a schema document."""
    return DocumentDefinitions(document, draft)


def resolve(
    tree: SchemaNode,
    definitions: Mapping[str, SchemaNode],
    root_pointer: str | None = None,
) -> SchemaNode:
    """Resolve every $ref in ``tree`` against ``definitions``.

    Raises:
        UnresolvedReferenceError: if a reference target does not exist.
    """
    resolver = ReferenceResolver(definitions)
    if root_pointer is not None:
        resolver.enter(root_pointer)
    return resolver.resolve(tree)
