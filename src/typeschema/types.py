"""Type graph representation produced by the parser and read by the formatter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    ClassVar,
    Protocol,
    dataclass_transform,
    runtime_checkable,
)


@dataclass(frozen=True)
@dataclass_transform(frozen_default=True)
class TypeDef:
    """Base for type graph nodes."""

    tag: ClassVar[str]

    def __init_subclass__(cls, tag: str | None = None) -> None:
        """Make each subclass a frozen dataclass and derive its tag."""
        dataclass(frozen=True)(cls)
        cls.tag = tag if tag is not None else cls.__name__


class AnyType(TypeDef, tag="any"):
    """Unconstrained type (``Any``, ``object``)."""


class IntType(TypeDef, tag="int"):
    """Integer type."""


class FloatType(TypeDef, tag="float"):
    """Floating point type."""


class StrType(TypeDef, tag="str"):
    """String type."""


class BoolType(TypeDef, tag="bool"):
    """Boolean type."""


class NoneType(TypeDef, tag="none"):
    """None/null type."""


class BytesType(TypeDef, tag="bytes"):
    """Binary data type."""


class DecimalType(TypeDef, tag="decimal"):
    """Arbitrary precision decimal type."""


class UuidType(TypeDef, tag="uuid"):
    """UUID type."""


# Temporal types - rendered as formatted strings
class DateType(TypeDef, tag="date"):
    """Date type (year, month, day)."""


class TimeType(TypeDef, tag="time"):
    """Time type (hour, minute, second, microsecond)."""


class DateTimeType(TypeDef, tag="datetime"):
    """DateTime type (combined date and time)."""


class DurationType(TypeDef, tag="duration"):
    """Duration/timedelta type."""


class ListType(TypeDef, tag="list"):
    """List type: list[int] → ListType(element=IntType())."""

    element: TypeDef


class DictType(TypeDef, tag="dict"):
    """Dict type: dict[str, int] → DictType(key=StrType(), value=IntType())."""

    key: TypeDef
    value: TypeDef


class SetType(TypeDef, tag="set"):
    """Set type: set[int] → SetType(element=IntType())."""

    element: TypeDef


class TupleType(TypeDef, tag="tuple"):
    """Fixed-length heterogeneous tuple: tuple[int, str] → TupleType(elements=(...))."""

    elements: tuple[TypeDef, ...]


class LiteralType(TypeDef, tag="literal"):
    """Literal enumeration: Literal["a", "b"] → LiteralType(values=("a", "b"))."""

    values: tuple[str | int | bool | None, ...]


class UnionType(TypeDef, tag="union"):
    """Union type: int | str → UnionType(options=(IntType(), StrType()))."""

    options: tuple[TypeDef, ...]


# =============================================================================
# Declared types
# =============================================================================


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()


@dataclass(frozen=True)
class ObjectProperty:
    """One property of an object type.

    Attributes:
        name: Property key
        type: Property value type
        required: Whether the key must be present
        description: Attribute docstring, if any
        default: Literal default value, or NO_DEFAULT

    """

    name: str
    type: TypeDef
    required: bool = True
    description: str | None = None
    default: Any = field(default=NO_DEFAULT, hash=False)


class ObjectType(TypeDef, tag="object"):
    """Object with named properties, built from a class body."""

    properties: tuple[ObjectProperty, ...] = ()
    description: str | None = None


class EnumType(TypeDef, tag="enum"):
    """Enumeration of member values, built from an ``Enum`` subclass."""

    values: tuple[str | int | float | bool | None, ...]
    description: str | None = None


class AliasType(TypeDef, tag="alias"):
    """Type alias: ``type Id = int`` → AliasType(type=IntType())."""

    type: TypeDef
    description: str | None = None


class DefinitionType(TypeDef, tag="definition"):
    """A declaration materialized under ``definitions`` and referenced by name.

    ``id`` identifies the underlying declaration; two definitions with the
    same ``name`` and different ``id`` are distinct types.
    """

    name: str
    id: str
    type: TypeDef


class ReferenceType(TypeDef, tag="reference"):
    """Back-reference to a declaration that is still being parsed.

    The target is filled in once the declaration finishes, which closes
    cycles such as ``class Tree: children: list[Tree]``.
    """

    name: str
    target: DefinitionType | None = field(
        default=None, compare=False, hash=False, repr=False
    )

    def resolve(self, target: DefinitionType) -> None:
        """Point this reference at its finished definition."""
        object.__setattr__(self, "target", target)


@runtime_checkable
class Definable(Protocol):
    """A graph node carrying a name/id pair usable as a definitions key."""

    name: str
    id: str
    type: TypeDef


__all__ = [
    "NO_DEFAULT",
    "AliasType",
    "AnyType",
    "BoolType",
    "BytesType",
    "DateTimeType",
    "DateType",
    "DecimalType",
    "Definable",
    "DefinitionType",
    "DictType",
    "DurationType",
    "EnumType",
    "FloatType",
    "IntType",
    "ListType",
    "LiteralType",
    "NoneType",
    "ObjectProperty",
    "ObjectType",
    "ReferenceType",
    "SetType",
    "StrType",
    "TimeType",
    "TupleType",
    "TypeDef",
    "UnionType",
    "UuidType",
]
