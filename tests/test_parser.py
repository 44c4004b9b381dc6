"""Tests for typeschema.parser module."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from conftest import generate

from typeschema.errors import UnknownTypeError
from typeschema.index import build_index
from typeschema.parser import Context, TypeParser
from typeschema.program import Program
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
    ObjectProperty,
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

if TYPE_CHECKING:
    from pathlib import Path

    from conftest import WriteFiles


def _create(root: Path, name: str, **options: Any) -> TypeDef:
    """Parse the declaration ``name`` of root/models.py in a fresh context."""
    program = Program.from_paths([root / "models.py"])
    checker = program.get_type_checker()
    declarations = build_index(program.get_source_files(), checker)
    return TypeParser(checker, **options).create_type(declarations[name], Context())


def _body(typedef: TypeDef) -> TypeDef:
    return typedef.type if isinstance(typedef, DefinitionType) else typedef


def _props(typedef: TypeDef) -> dict[str, ObjectProperty]:
    body = _body(typedef)
    assert isinstance(body, ObjectType)
    return {prop.name: prop for prop in body.properties}


def _prop_types(typedef: TypeDef) -> dict[str, TypeDef]:
    return {name: prop.type for name, prop in _props(typedef).items()}


class TestSimpleTypes:
    """Test builtin and standard library scalar annotations."""

    def test_scalars(self, write_files: WriteFiles) -> None:
        """Test each scalar annotation maps to its node."""
        root = write_files(
            {
                "models.py": """
                from datetime import date, datetime, time, timedelta
                from decimal import Decimal
                from pathlib import Path
                from typing import Any
                from uuid import UUID

                class Record:
                    count: int
                    ratio: float
                    name: str
                    active: bool
                    payload: bytes
                    nothing: None
                    amount: Decimal
                    day: date
                    at: time
                    stamp: datetime
                    ttl: timedelta
                    key: UUID
                    location: Path
                    extra: Any
                    anything: object
                """,
            }
        )

        assert _prop_types(_create(root, "Record")) == {
            "count": IntType(),
            "ratio": FloatType(),
            "name": StrType(),
            "active": BoolType(),
            "payload": BytesType(),
            "nothing": NoneType(),
            "amount": DecimalType(),
            "day": DateType(),
            "at": TimeType(),
            "stamp": DateTimeType(),
            "ttl": DurationType(),
            "key": UuidType(),
            "location": StrType(),
            "extra": AnyType(),
            "anything": AnyType(),
        }

    def test_exported_class_is_a_definition(self, write_files: WriteFiles) -> None:
        """Test a public module-level class is wrapped by default."""
        root = write_files({"models.py": "class Point:\n    x: int\n"})

        result = _create(root, "Point")

        assert isinstance(result, DefinitionType)
        assert result.name == "Point"
        assert result.id.endswith("models.py:Point")
        assert result.type == ObjectType(properties=(ObjectProperty("x", IntType()),))

    def test_expose_none_inlines(self, write_files: WriteFiles) -> None:
        """Test expose="none" returns the bare object."""
        root = write_files({"models.py": "class Point:\n    x: int\n"})

        result = _create(root, "Point", expose="none")

        assert result == ObjectType(properties=(ObjectProperty("x", IntType()),))


class TestContainers:
    """Test generic containers, unions and literals."""

    def test_containers(self, write_files: WriteFiles) -> None:
        """Test list, set, dict and tuple spellings."""
        root = write_files(
            {
                "models.py": """
                import typing
                from collections.abc import Mapping, Sequence

                class Bag:
                    items: list[int]
                    legacy: typing.List[str]
                    seq: Sequence[float]
                    unique: set[str]
                    frozen: frozenset[int]
                    scores: dict[str, float]
                    lookup: Mapping[str, int]
                    pair: tuple[int, str]
                    many: tuple[int, ...]
                    empty: tuple[()]
                    bare_list: list
                    bare_dict: dict
                """,
            }
        )

        assert _prop_types(_create(root, "Bag")) == {
            "items": ListType(IntType()),
            "legacy": ListType(StrType()),
            "seq": ListType(FloatType()),
            "unique": SetType(StrType()),
            "frozen": SetType(IntType()),
            "scores": DictType(StrType(), FloatType()),
            "lookup": DictType(StrType(), IntType()),
            "pair": TupleType((IntType(), StrType())),
            "many": ListType(IntType()),
            "empty": TupleType(()),
            "bare_list": ListType(AnyType()),
            "bare_dict": DictType(StrType(), AnyType()),
        }

    def test_unions(self, write_files: WriteFiles) -> None:
        """Test Optional, Union and the | operator flatten and deduplicate."""
        root = write_files(
            {
                "models.py": """
                from typing import Optional, Union

                class Choice:
                    maybe: Optional[int]
                    either: Union[int, str, int]
                    piped: int | str | None
                    nested: int | Union[str, int]
                    single: Union[int]
                """,
            }
        )

        assert _prop_types(_create(root, "Choice")) == {
            "maybe": UnionType((IntType(), NoneType())),
            "either": UnionType((IntType(), StrType())),
            "piped": UnionType((IntType(), StrType(), NoneType())),
            "nested": UnionType((IntType(), StrType())),
            "single": IntType(),
        }

    def test_literals(self, write_files: WriteFiles) -> None:
        """Test literal values, nested literals and type-aware deduplication."""
        root = write_files(
            {
                "models.py": """
                from typing import Literal

                class Flags:
                    mode: Literal["fast", "slow"]
                    level: Literal[1, Literal[2, 3], 1]
                    mixed: Literal[True, 1, None]
                """,
            }
        )

        assert _prop_types(_create(root, "Flags")) == {
            "mode": LiteralType(("fast", "slow")),
            "level": LiteralType((1, 2, 3)),
            "mixed": LiteralType((True, 1, None)),
        }

    def test_typing_extensions_names(self, write_files: WriteFiles) -> None:
        """Test typing_extensions spellings are treated as typing."""
        root = write_files(
            {
                "models.py": """
                from typing_extensions import Annotated, Literal

                class Tagged:
                    kind: Literal["a"]
                    size: Annotated[int, "bytes"]
                """,
            }
        )

        assert _prop_types(_create(root, "Tagged")) == {
            "kind": LiteralType(("a",)),
            "size": IntType(),
        }


class TestClassProperties:
    """Test how class bodies become object properties."""

    def test_defaults_and_fields(self, write_files: WriteFiles) -> None:
        """Test required flags and literal defaults."""
        root = write_files(
            {
                "models.py": """
                from dataclasses import dataclass, field

                @dataclass
                class Options:
                    name: str
                    retries: int = 3
                    tags: list[str] = field(default_factory=list)
                    mode: str = field(default="fast")
                    level: int = field()
                    note: str | None = None
                    limits: dict[str, int] = {"a": 1}
                """,
            }
        )

        props = _props(_create(root, "Options"))

        assert {name: prop.required for name, prop in props.items()} == {
            "name": True,
            "retries": False,
            "tags": False,
            "mode": False,
            "level": True,
            "note": False,
            "limits": False,
        }
        assert props["name"].default is NO_DEFAULT
        assert props["retries"].default == 3
        assert props["tags"].default is NO_DEFAULT
        assert props["mode"].default == "fast"
        assert props["level"].default is NO_DEFAULT
        assert props["note"].default is None
        assert props["limits"].default == {"a": 1}

    def test_pydantic_style_fields(self, write_files: WriteFiles) -> None:
        """Test Field(...) is required and Field(value) is a default."""
        root = write_files(
            {
                "models.py": """
                def Field(default=..., **kwargs):
                    return default

                class Item:
                    name: str = Field(...)
                    size: int = Field(10)
                """,
            }
        )

        props = _props(_create(root, "Item"))

        assert props["name"].required
        assert not props["size"].required
        assert props["size"].default == 10

    def test_skipped_members(self, write_files: WriteFiles) -> None:
        """Test private names, ClassVar, methods and plain assignments."""
        root = write_files(
            {
                "models.py": """
                from typing import ClassVar, Final

                class Counter:
                    value: int
                    _cache: dict[str, int]
                    instances: ClassVar[int] = 0
                    limit: Final[int] = 3
                    plain = 5

                    def bump(self) -> None:
                        self.value += 1
                """,
            }
        )

        props = _props(_create(root, "Counter"))

        assert list(props) == ["value", "limit"]
        assert props["limit"].type == IntType()
        assert props["limit"].default == 3

    def test_inheritance(self, write_files: WriteFiles) -> None:
        """Test base class properties come first and may be overridden."""
        root = write_files(
            {
                "models.py": """
                class Base:
                    id: int
                    label: str

                class Child(Base):
                    extra: bool
                    label: bytes
                """,
            }
        )

        assert _prop_types(_create(root, "Child")) == {
            "id": IntType(),
            "label": BytesType(),
            "extra": BoolType(),
        }

    def test_class_shadowing_its_imported_base(self, write_files: WriteFiles) -> None:
        """Test ``class Config(Config)`` over an import terminates."""
        root = write_files(
            {
                "base.py": """
                class Config:
                    a: int
                """,
                "models.py": """
                from base import Config

                class Config(Config):
                    b: str
                """,
            }
        )

        schema = generate(root / "models.py")

        assert schema["properties"]["b"] == {"type": "string"}
        assert schema["definitions"] == {}

    def test_typed_dict(self, write_files: WriteFiles) -> None:
        """Test total, Required and NotRequired."""
        root = write_files(
            {
                "models.py": """
                from typing import NotRequired, Required, TypedDict

                class Movie(TypedDict):
                    title: str
                    year: NotRequired[int]

                class Partial(TypedDict, total=False):
                    name: str
                    tag: Required[str]

                class Extended(Movie):
                    rating: float
                """,
            }
        )

        def required(name: str) -> dict[str, bool]:
            return {key: p.required for key, p in _props(_create(root, name)).items()}

        assert required("Movie") == {"title": True, "year": False}
        assert required("Partial") == {"name": False, "tag": True}
        assert required("Extended") == {"title": True, "year": False, "rating": True}
        assert _prop_types(_create(root, "Movie"))["year"] == IntType()

    def test_docstrings(self, write_files: WriteFiles) -> None:
        """Test class and attribute docstrings become descriptions."""
        root = write_files(
            {
                "models.py": '''
                class User:
                    """A registered user."""

                    name: str
                    """Display name."""

                    age: int
                ''',
            }
        )

        body = _body(_create(root, "User"))
        assert isinstance(body, ObjectType)
        assert body.description == "A registered user."
        assert _props(body)["name"].description == "Display name."
        assert _props(body)["age"].description is None

        plain = _body(_create(root, "User", docstrings=False))
        assert isinstance(plain, ObjectType)
        assert plain.description is None
        assert _props(plain)["name"].description is None


class TestEnums:
    """Test Enum subclasses."""

    def test_literal_values(self, write_files: WriteFiles) -> None:
        """Test explicit member values in declaration order."""
        root = write_files(
            {
                "models.py": '''
                from enum import Enum

                class Color(Enum):
                    """Paint colors."""

                    _ignore_ = ["helper"]
                    RED = "red"
                    GREEN = "green"
                    ALIAS = "red"

                    def describe(self) -> str:
                        return self.value
                ''',
            }
        )

        assert _body(_create(root, "Color")) == EnumType(
            values=("red", "green"), description="Paint colors."
        )

    @pytest.mark.parametrize(
        ("base", "second", "expected"),
        [
            ("IntEnum", "5", (1, 5, 6)),
            ("Flag", "4", (1, 4, 8)),
            ("StrEnum", '"second"', ("one", "second", "three")),
        ],
    )
    def test_auto_values(
        self,
        write_files: WriteFiles,
        base: str,
        second: str,
        expected: tuple[Any, ...],
    ) -> None:
        """Test auto() follows each enum flavor's numbering."""
        root = write_files(
            {
                "models.py": f"""
                from enum import {base}, auto

                class Numbered({base}):
                    ONE = auto()
                    TWO = {second}
                    THREE = auto()
                """,
            }
        )

        assert _body(_create(root, "Numbered")) == EnumType(values=expected)

    def test_enum_subclass_of_local_base(self, write_files: WriteFiles) -> None:
        """Test enum detection through a project base class."""
        root = write_files(
            {
                "models.py": """
                from enum import Enum

                class Base(Enum):
                    pass

                class Level(Base):
                    LOW = 1
                    HIGH = 2
                """,
            }
        )

        assert _body(_create(root, "Level")) == EnumType(values=(1, 2))


class TestAliases:
    """Test type statements and TypeAlias annotations."""

    def test_alias_forms(self, write_files: WriteFiles) -> None:
        """Test both alias spellings, including string values."""
        root = write_files(
            {
                "models.py": """
                from typing import TypeAlias

                type UserId = int
                Tags: TypeAlias = "list[str]"
                """,
            }
        )

        assert _create(root, "UserId", expose="none") == AliasType(IntType())
        assert _create(root, "Tags", expose="none") == AliasType(ListType(StrType()))

    def test_alias_to_declaration(self, write_files: WriteFiles) -> None:
        """Test an alias of an exported class references its definition."""
        root = write_files(
            {
                "models.py": """
                class User:
                    name: str

                type Owner = User
                """,
            }
        )

        result = _create(root, "Owner")

        assert isinstance(result, DefinitionType)
        assert result.name == "Owner"
        inner = result.type
        assert isinstance(inner, AliasType)
        assert isinstance(inner.type, DefinitionType)
        assert inner.type.name == "User"


class TestReferences:
    """Test references between declarations."""

    def test_exposure_modes(self, write_files: WriteFiles) -> None:
        """Test which referenced declarations become definitions."""
        root = write_files(
            {
                "models.py": """
                class Address:
                    city: str

                class _Secret:
                    token: str

                class User:
                    home: Address
                    secret: _Secret
                    settings: "User.Settings"

                    class Settings:
                        theme: str
                """,
            }
        )

        exported = _prop_types(_create(root, "User"))
        assert isinstance(exported["home"], DefinitionType)
        assert exported["home"].name == "Address"
        assert isinstance(exported["secret"], ObjectType)
        assert isinstance(exported["settings"], ObjectType)

        everything = _prop_types(_create(root, "User", expose="all"))
        assert isinstance(everything["secret"], DefinitionType)
        assert everything["secret"].name == "_Secret"
        assert isinstance(everything["settings"], DefinitionType)
        assert everything["settings"].name == "User.Settings"

        nothing = _prop_types(_create(root, "User", expose="none"))
        assert all(isinstance(t, ObjectType) for t in nothing.values())

    def test_repeated_reference_is_memoized(self, write_files: WriteFiles) -> None:
        """Test one declaration produces one node per context."""
        root = write_files(
            {
                "models.py": """
                class Point:
                    x: int

                class Line:
                    start: Point
                    end: Point
                """,
            }
        )

        types = _prop_types(_create(root, "Line", expose="none"))

        assert types["start"] is types["end"]

    def test_self_reference(self, write_files: WriteFiles) -> None:
        """Test a recursive class is wrapped and referenced by name."""
        root = write_files(
            {
                "models.py": """
                from __future__ import annotations

                class Tree:
                    value: int
                    children: list[Tree]
                """,
            }
        )

        result = _create(root, "Tree", expose="none")

        assert isinstance(result, DefinitionType)
        children = _prop_types(result)["children"]
        assert isinstance(children, ListType)
        assert children.element == ReferenceType(name="Tree")
        assert isinstance(children.element, ReferenceType)
        assert children.element.target is result

    def test_mutual_reference(self, write_files: WriteFiles) -> None:
        """Test a cycle through two classes wraps only the re-entered one."""
        root = write_files(
            {
                "models.py": """
                class Parent:
                    child: "Child"

                class Child:
                    parent: Parent | None
                """,
            }
        )

        result = _create(root, "Parent", expose="none")

        assert isinstance(result, DefinitionType)
        child = _prop_types(result)["child"]
        assert isinstance(child, ObjectType)
        parent = _prop_types(child)["parent"]
        assert isinstance(parent, UnionType)
        back, none = parent.options
        assert isinstance(back, ReferenceType)
        assert back.target is result
        assert none == NoneType()

    def test_imported_declaration(self, write_files: WriteFiles) -> None:
        """Test references into another project module."""
        root = write_files(
            {
                "shared.py": """
                class Money:
                    amount: int
                """,
                "models.py": """
                from shared import Money

                class Order:
                    total: Money
                """,
            }
        )

        total = _prop_types(_create(root, "Order"))["total"]

        assert isinstance(total, DefinitionType)
        assert total.name == "Money"
        assert total.id.endswith("shared.py:Money")


class TestUnknownTypes:
    """Test annotations that cannot be translated."""

    @pytest.mark.parametrize(
        ("annotation", "expression"),
        [
            ("Callable[[int], int]", "Callable[[int], int]"),
            ("Missing", "Missing"),
            ("Box[int]", "Box[int]"),
            ("Literal[1.5]", "1.5"),
            ("dict[str]", "dict[str]"),
            ('"list["', "'list['"),
        ],
    )
    def test_unknown_annotation(
        self, write_files: WriteFiles, annotation: str, expression: str
    ) -> None:
        """Test the error names the expression and its location."""
        root = write_files(
            {
                "models.py": f"""
                from collections.abc import Callable
                from typing import Generic, Literal, TypeVar
                T = TypeVar("T")
                class Box(Generic[T]):
                    item: T
                class Holder:
                    value: {annotation}
                """,
            }
        )

        with pytest.raises(UnknownTypeError, match="Cannot extract type from") as exc_info:
            _create(root, "Holder")

        assert exc_info.value.expression == expression
        assert exc_info.value.location.endswith("models.py:7")
