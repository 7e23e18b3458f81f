"""``$ref`` and ``allOf`` resolution against an OpenAPI document."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from .errors import SchemaUnresolvableError


class SchemaResolver:
    """Flattens reference and ``allOf`` schemas into plain object schemas.

    Resolution only reads ``document``; the returned mappings are either the
    original node (for schemas that need no resolution) or freshly built ones.
    Nested ``properties`` are left as they are, only the top level is flattened.
    """

    def __init__(self, document: Mapping[str, Any]) -> None:
        self.document = document

    def resolve(self, schema: Mapping[str, Any]) -> Mapping[str, Any]:
        return self._resolve(schema, ())

    def lookup(self, ref: str) -> Any:
        if not isinstance(ref, str) or not ref.startswith("#"):
            raise SchemaUnresolvableError(f"Unsupported $ref (only local refs allowed): {ref!r}")

        node: Any = self.document
        for part in ref.split("/")[1:]:
            key = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, Mapping) or key not in node:
                raise SchemaUnresolvableError(f"Unresolvable $ref: {ref}")
            node = node[key]
        return node

    def _resolve(self, schema: Mapping[str, Any], chain: Tuple[str, ...]) -> Mapping[str, Any]:
        if not isinstance(schema, Mapping):
            return schema

        ref = schema.get("$ref")
        if ref is not None:
            if ref in chain:
                cycle = " -> ".join([*chain, ref])
                raise SchemaUnresolvableError(f"Cyclic $ref chain: {cycle}")
            target = self.lookup(ref)
            if not isinstance(target, Mapping):
                raise SchemaUnresolvableError(f"$ref does not point at a schema: {ref}")
            return self._resolve(target, (*chain, ref))

        members = schema.get("allOf")
        if members is not None:
            return self._merge_all_of(members, chain)

        return schema

    def _merge_all_of(self, members: List[Any], chain: Tuple[str, ...]) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for member in members or []:
            resolved = self._resolve(member, chain)
            properties.update(resolved.get("properties") or {})
            required.extend(resolved.get("required") or [])
        return {"type": "object", "properties": properties, "required": required}


def resolve_schema(schema: Mapping[str, Any], document: Mapping[str, Any]) -> Mapping[str, Any]:
    return SchemaResolver(document).resolve(schema)
