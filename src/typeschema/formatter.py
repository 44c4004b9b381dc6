"""Type formatter: type graph nodes to JSON Schema fragments."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from typeschema.types import (
    NO_DEFAULT,
    AliasType,
    AnyType,
    BoolType,
    BytesType,
    DateTimeType,
    DateType,
    DecimalType,
    DefinitionType,
    DictType,
    DurationType,
    EnumType,
    FloatType,
    IntType,
    ListType,
    LiteralType,
    NoneType,
    ObjectType,
    ReferenceType,
    SetType,
    StrType,
    TimeType,
    TupleType,
    TypeDef,
    UnionType,
    UuidType,
)

type Definition = dict[str, Any]

DEFINITIONS_PREFIX = "#/definitions/"

_SIMPLE_DEFINITIONS: dict[type[TypeDef], Definition] = {
    AnyType: {},
    IntType: {"type": "integer"},
    FloatType: {"type": "number"},
    StrType: {"type": "string"},
    BoolType: {"type": "boolean"},
    NoneType: {"type": "null"},
    BytesType: {"type": "string", "contentEncoding": "base64"},
    DecimalType: {"type": "number"},
    UuidType: {"type": "string", "format": "uuid"},
    DateType: {"type": "string", "format": "date"},
    TimeType: {"type": "string", "format": "time"},
    DateTimeType: {"type": "string", "format": "date-time"},
    DurationType: {"type": "string", "format": "duration"},
}


def json_type_name(value: Any) -> str:
    """Return the JSON Schema type name of a literal value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list | tuple):
        return "array"
    return "object"


def ref(name: str) -> Definition:
    """Return a ``$ref`` to a named definition."""
    return {"$ref": f"{DEFINITIONS_PREFIX}{name}"}


class TypeFormatter:
    """Render type graph nodes as Draft-07 JSON Schema.

    Args:
        sort_props: Sort object properties alphabetically
        strict_tuples: Forbid items beyond a fixed tuple's length
        additional_properties: Allow unknown keys on object schemas

    """

    def __init__(
        self,
        *,
        sort_props: bool = False,
        strict_tuples: bool = False,
        additional_properties: bool = False,
    ) -> None:
        self.sort_props = sort_props
        self.strict_tuples = strict_tuples
        self.additional_properties = additional_properties
        self._formatters: dict[type[TypeDef], Callable[[Any], Definition]] = {
            DefinitionType: lambda t: ref(t.name),
            ReferenceType: lambda t: ref(t.name),
            AliasType: self._alias_definition,
            ObjectType: self._object_definition,
            EnumType: lambda t: _values_definition(t.values, t.description),
            LiteralType: lambda t: _values_definition(t.values),
            UnionType: self._union_definition,
            ListType: lambda t: {"type": "array", "items": self.get_definition(t.element)},
            SetType: lambda t: {
                "type": "array",
                "items": self.get_definition(t.element),
                "uniqueItems": True,
            },
            TupleType: self._tuple_definition,
            DictType: self._dict_definition,
        }

    # =========================================================================
    # Definitions
    # =========================================================================

    def get_definition(self, typedef: TypeDef) -> Definition:
        """Return the schema fragment for one node; named nodes become ``$ref``."""
        if (simple := _SIMPLE_DEFINITIONS.get(type(typedef))) is not None:
            return dict(simple)
        if formatter := self._formatters.get(type(typedef)):
            return formatter(typedef)
        msg = f"Cannot format type: {typedef.tag}"
        raise ValueError(msg)

    def _alias_definition(self, typedef: AliasType) -> Definition:
        definition = self.get_definition(typedef.type)
        if typedef.description:
            definition["description"] = typedef.description
        return definition

    def _object_definition(self, typedef: ObjectType) -> Definition:
        properties = list(typedef.properties)
        if self.sort_props:
            properties.sort(key=lambda p: p.name)

        rendered: dict[str, Definition] = {}
        for prop in properties:
            definition = self.get_definition(prop.type)
            if prop.description:
                definition["description"] = prop.description
            if prop.default is not NO_DEFAULT:
                definition["default"] = prop.default
            rendered[prop.name] = definition

        definition: Definition = {"type": "object"}
        if typedef.description:
            definition["description"] = typedef.description
        definition["properties"] = rendered
        if required := [p.name for p in properties if p.required]:
            definition["required"] = required
        definition["additionalProperties"] = self.additional_properties
        return definition

    def _union_definition(self, typedef: UnionType) -> Definition:
        definitions = [self.get_definition(option) for option in typedef.options]

        # int | str | None -> {"type": ["integer", "string", "null"]}
        if all(set(d) == {"type"} and isinstance(d["type"], str) for d in definitions):
            return {"type": _collapse(_unique(d["type"] for d in definitions))}

        # Literal["a", "b"] | None -> {"type": [...], "enum": ["a", "b", None]}
        if all(_is_values_definition(d) for d in definitions):
            values: list[Any] = []
            for d in definitions:
                if "const" in d:
                    values.append(d["const"])
                elif "enum" in d:
                    values.extend(d["enum"])
                else:
                    values.append(None)
            return _values_definition(_unique(values))

        return {"anyOf": definitions}

    def _tuple_definition(self, typedef: TupleType) -> Definition:
        size = len(typedef.elements)
        if not size:
            return {"type": "array", "maxItems": 0}
        definition: Definition = {
            "type": "array",
            "items": [self.get_definition(e) for e in typedef.elements],
            "minItems": size,
            "maxItems": size,
        }
        if self.strict_tuples:
            definition["additionalItems"] = False
        return definition

    def _dict_definition(self, typedef: DictType) -> Definition:
        definition: Definition = {
            "type": "object",
            "additionalProperties": self.get_definition(typedef.value),
        }
        key = typedef.key
        if isinstance(key, LiteralType | EnumType) and all(
            isinstance(v, str) for v in key.values
        ):
            definition["propertyNames"] = {"enum": list(key.values)}
        elif isinstance(key, DefinitionType | ReferenceType):
            definition["propertyNames"] = self.get_definition(key)
        return definition

    # =========================================================================
    # Children
    # =========================================================================

    def get_children(self, typedef: TypeDef) -> list[TypeDef]:
        """Return every named node reachable from ``typedef``.

        A ``DefinitionType`` lists itself first. A ``ReferenceType`` lists
        its target only, which keeps cyclic graphs finite.
        """
        match typedef:
            case DefinitionType(type=inner):
                return [typedef, *self.get_children(inner)]
            case ReferenceType(target=target):
                return [target] if target is not None else []
            case AliasType(type=inner):
                return self.get_children(inner)
            case ListType(element=element) | SetType(element=element):
                return self.get_children(element)
            case DictType(key=key, value=value):
                return [*self.get_children(key), *self.get_children(value)]
            case TupleType(elements=items) | UnionType(options=items):
                return [child for item in items for child in self.get_children(item)]
            case ObjectType(properties=properties):
                return [
                    child for prop in properties for child in self.get_children(prop.type)
                ]
        return []


def _values_definition(values: Any, description: str | None = None) -> Definition:
    values = list(values)
    types = _unique(json_type_name(v) for v in values)
    definition: Definition = {}
    if types:
        definition["type"] = _collapse(types)
    if description:
        definition["description"] = description
    if len(values) == 1:
        definition["const"] = values[0]
    else:
        definition["enum"] = values
    return definition


def _is_values_definition(definition: Definition) -> bool:
    if definition == {"type": "null"}:
        return True
    keys = set(definition)
    return keys in ({"type", "const"}, {"type", "enum"})


def _unique(items: Any) -> list[Any]:
    result: list[Any] = []
    for item in items:
        # True == 1 in Python, but not in JSON
        if not any(type(seen) is type(item) and seen == item for seen in result):
            result.append(item)
    return result


def _collapse(types: list[str]) -> str | list[str]:
    return types[0] if len(types) == 1 else types


__all__ = ["DEFINITIONS_PREFIX", "Definition", "TypeFormatter", "json_type_name", "ref"]
