"""Type parser: declarations and annotation expressions to type graph nodes."""

from __future__ import annotations

import ast
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from typeschema.checker import ExternalName, Symbol
from typeschema.errors import UnknownTypeError
from typeschema.index import Declaration, is_declaration
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
    from typeschema.checker import TypeChecker
    from typeschema.config import Expose
    from typeschema.program import SourceFile


@dataclass
class Context:
    """Resolution state for one root.

    ``finished`` memoizes parsed declarations by id. ``pending`` holds the
    back-references handed out for declarations still being parsed.
    """

    finished: dict[str, TypeDef] = field(default_factory=dict)
    pending: dict[str, list[ReferenceType]] = field(default_factory=dict)


# =============================================================================
# Names recognised without loading their modules
# =============================================================================

_SIMPLE_TYPES: dict[str, Callable[[], TypeDef]] = {
    "builtins.int": IntType,
    "builtins.float": FloatType,
    "builtins.complex": FloatType,
    "builtins.str": StrType,
    "builtins.bool": BoolType,
    "builtins.bytes": BytesType,
    "builtins.bytearray": BytesType,
    "builtins.object": AnyType,
    "typing.Any": AnyType,
    "typing.LiteralString": StrType,
    "decimal.Decimal": DecimalType,
    "datetime.date": DateType,
    "datetime.time": TimeType,
    "datetime.datetime": DateTimeType,
    "datetime.timedelta": DurationType,
    "uuid.UUID": UuidType,
    "pathlib.Path": StrType,
    "pathlib.PurePath": StrType,
}

_LIST_TYPES = frozenset({
    "builtins.list",
    "typing.List",
    "typing.Sequence",
    "typing.MutableSequence",
    "typing.Iterable",
    "typing.Collection",
    "collections.abc.Sequence",
    "collections.abc.MutableSequence",
    "collections.abc.Iterable",
    "collections.abc.Collection",
    "collections.deque",
    "typing.Deque",
})

_SET_TYPES = frozenset({
    "builtins.set",
    "builtins.frozenset",
    "typing.Set",
    "typing.FrozenSet",
    "typing.AbstractSet",
    "typing.MutableSet",
    "collections.abc.Set",
    "collections.abc.MutableSet",
})

_DICT_TYPES = frozenset({
    "builtins.dict",
    "typing.Dict",
    "typing.Mapping",
    "typing.MutableMapping",
    "typing.OrderedDict",
    "typing.DefaultDict",
    "collections.abc.Mapping",
    "collections.abc.MutableMapping",
    "collections.OrderedDict",
    "collections.defaultdict",
})

_TUPLE_TYPES = frozenset({"builtins.tuple", "typing.Tuple"})

# Wrappers whose first argument is the value type
_QUALIFIERS = frozenset({
    "typing.Annotated",
    "typing.ClassVar",
    "typing.Final",
    "typing.Required",
    "typing.NotRequired",
    "typing.ReadOnly",
})

_ENUM_BASES = frozenset({
    "enum.Enum",
    "enum.IntEnum",
    "enum.StrEnum",
    "enum.Flag",
    "enum.IntFlag",
})

_TYPED_DICT = "typing.TypedDict"
_FIELD_FUNCTIONS = frozenset({"field", "Field"})


def _normalize(full_name: str) -> str:
    if full_name.startswith("typing_extensions."):
        return "typing." + full_name.removeprefix("typing_extensions.")
    return full_name


class TypeParser:
    """Create type graph nodes from declarations.

    Args:
        checker: Symbol service used to resolve names in annotations
        expose: Which declarations become named definitions
        docstrings: Copy docstrings into descriptions

    """

    def __init__(
        self,
        checker: TypeChecker,
        *,
        expose: Expose = "export",
        docstrings: bool = True,
    ) -> None:
        self.checker = checker
        self.expose = expose
        self.docstrings = docstrings

    def create_type(self, declaration: Declaration, context: Context) -> TypeDef:
        """Create the type graph node for a declaration.

        Exposed declarations, and any declaration reached again while it is
        being parsed, are wrapped in a ``DefinitionType``.
        """
        key = declaration.id
        if (finished := context.finished.get(key)) is not None:
            return finished
        if (references := context.pending.get(key)) is not None:
            reference = ReferenceType(name=declaration.name)
            references.append(reference)
            return reference

        context.pending[key] = []
        body = self._create_declaration_type(declaration, context)
        references = context.pending.pop(key)

        result: TypeDef = body
        if references or self._is_exposed(declaration):
            result = DefinitionType(name=declaration.name, id=key, type=body)
            for reference in references:
                reference.resolve(result)
        context.finished[key] = result
        return result

    def _is_exposed(self, declaration: Declaration) -> bool:
        if self.expose == "all":
            return True
        if self.expose == "none":
            return False
        return self.checker.is_exported(declaration.node, declaration.source_file)

    def _create_declaration_type(
        self, declaration: Declaration, context: Context
    ) -> TypeDef:
        node = declaration.node
        source_file = declaration.source_file
        if isinstance(node, ast.ClassDef):
            enum_base = self._external_base(node, source_file, _ENUM_BASES)
            if enum_base is not None:
                return self._create_enum_type(node, enum_base)
            return ObjectType(
                properties=tuple(self._class_properties(node, source_file, context).values()),
                description=self._docstring(node),
            )
        value = node.value
        if value is None:
            raise UnknownTypeError(declaration.name, _location(source_file, node))
        return AliasType(type=self.extract_type(value, source_file, context))

    # =========================================================================
    # Classes
    # =========================================================================

    def _class_properties(
        self,
        node: ast.ClassDef,
        source_file: SourceFile,
        context: Context,
        seen: set[int] | None = None,
    ) -> dict[str, ObjectProperty]:
        """Collect properties of a class, base class properties first.

        A base that resolves back to a class already being collected (such as
        ``class Config(Config)`` shadowing an import) is skipped.
        """
        seen = seen if seen is not None else set()
        seen.add(id(node))
        properties: dict[str, ObjectProperty] = {}
        for base in node.bases:
            resolved = self.checker.resolve(source_file, _unsubscript(base))
            if (
                isinstance(resolved, Symbol)
                and isinstance(resolved.node, ast.ClassDef)
                and id(resolved.node) not in seen
            ):
                properties.update(
                    self._class_properties(
                        resolved.node, resolved.source_file, context, seen
                    )
                )
        typed_dict = self._external_base(node, source_file, {_TYPED_DICT}) is not None

        total = True
        for keyword in node.keywords:
            if keyword.arg == "total" and isinstance(keyword.value, ast.Constant):
                total = bool(keyword.value.value)

        for index, statement in enumerate(node.body):
            if not isinstance(statement, ast.AnnAssign):
                continue
            if not isinstance(statement.target, ast.Name):
                continue
            name = statement.target.id
            if name.startswith("_"):
                continue

            annotation, qualifiers = self._unwrap_qualifiers(
                statement.annotation, source_file
            )
            if "typing.ClassVar" in qualifiers:
                continue

            if "typing.NotRequired" in qualifiers:
                required = False
            elif "typing.Required" in qualifiers:
                required = True
            elif typed_dict:
                required = total
            else:
                required = _is_required(statement.value)

            properties[name] = ObjectProperty(
                name=name,
                type=(
                    self.extract_type(annotation, source_file, context)
                    if annotation is not None
                    else AnyType()
                ),
                required=required,
                description=self._attribute_docstring(node.body, index),
                default=_literal_default(statement.value),
            )
        return properties

    def _unwrap_qualifiers(
        self,
        annotation: ast.expr,
        source_file: SourceFile,
    ) -> tuple[ast.expr | None, set[str]]:
        """Strip ClassVar/Final/Required/Annotated wrappers from an annotation.

        Returns the inner annotation (None for a bare ``Final``) and the
        qualifiers that were removed.
        """
        qualifiers: set[str] = set()
        current: ast.expr | None = _as_expression(annotation, source_file)
        while current is not None:
            base = current.value if isinstance(current, ast.Subscript) else current
            resolved = self.checker.resolve(source_file, base)
            if not isinstance(resolved, ExternalName):
                break
            name = _normalize(resolved.full_name)
            if name not in _QUALIFIERS:
                break
            qualifiers.add(name)
            if isinstance(current, ast.Subscript):
                current = _as_expression(_slice_args(current)[0], source_file)
            else:
                current = None
        return current, qualifiers

    def _external_base(
        self,
        node: ast.ClassDef,
        source_file: SourceFile,
        candidates: frozenset[str] | set[str],
        seen: set[int] | None = None,
    ) -> str | None:
        """Return the first of ``candidates`` the class derives from, if any."""
        seen = seen if seen is not None else set()
        if id(node) in seen:
            return None
        seen.add(id(node))
        for base in node.bases:
            resolved = self.checker.resolve(source_file, _unsubscript(base))
            if isinstance(resolved, ExternalName):
                if (name := _normalize(resolved.full_name)) in candidates:
                    return name
            elif isinstance(resolved, Symbol) and isinstance(resolved.node, ast.ClassDef):
                found = self._external_base(
                    resolved.node, resolved.source_file, candidates, seen
                )
                if found is not None:
                    return found
        return None

    def _create_enum_type(self, node: ast.ClassDef, enum_base: str) -> EnumType:
        values: list[Any] = []
        highest = 0
        for statement in node.body:
            match statement:
                case ast.Assign(targets=[ast.Name(id=name)], value=value):
                    pass
                case ast.AnnAssign(target=ast.Name(id=name), value=value) if value is not None:
                    pass
                case _:
                    continue
            if name.startswith("_"):
                continue

            if _is_call_to(value, "auto"):
                if enum_base == "enum.StrEnum":
                    member: Any = name.lower()
                elif enum_base in {"enum.Flag", "enum.IntFlag"}:
                    member = 1 << highest.bit_length() if highest else 1
                else:
                    member = highest + 1
            else:
                try:
                    member = ast.literal_eval(value)
                except (ValueError, TypeError, SyntaxError):
                    continue
            if isinstance(member, int) and not isinstance(member, bool):
                highest = max(highest, member)
            member = _json_value(member)
            if member is not NO_DEFAULT and member not in values:
                values.append(member)
        return EnumType(values=tuple(values), description=self._docstring(node))

    def _docstring(self, node: ast.ClassDef) -> str | None:
        return ast.get_docstring(node) if self.docstrings else None

    def _attribute_docstring(self, body: list[ast.stmt], index: int) -> str | None:
        if not self.docstrings or index + 1 >= len(body):
            return None
        match body[index + 1]:
            case ast.Expr(value=ast.Constant(value=str(text))):
                return inspect.cleandoc(text)
        return None

    # =========================================================================
    # Annotations
    # =========================================================================

    def extract_type(
        self,
        expr: ast.expr,
        source_file: SourceFile,
        context: Context,
    ) -> TypeDef:
        """Convert an annotation expression to a type graph node."""
        expr = _as_expression(expr, source_file)
        match expr:
            case ast.Constant(value=None):
                return NoneType()
            case ast.BinOp(op=ast.BitOr(), left=left, right=right):
                return _union(
                    [
                        self.extract_type(left, source_file, context),
                        self.extract_type(right, source_file, context),
                    ]
                )
            case ast.Name() | ast.Attribute():
                return self._extract_named(expr, source_file, context)
            case ast.Subscript(value=base):
                return self._extract_generic(expr, base, source_file, context)
        raise UnknownTypeError(ast.unparse(expr), _location(source_file, expr))

    def _extract_named(
        self,
        expr: ast.expr,
        source_file: SourceFile,
        context: Context,
    ) -> TypeDef:
        resolved = self.checker.resolve(source_file, expr)
        if isinstance(resolved, Symbol) and is_declaration(resolved.node):
            return self.create_type(Declaration.from_symbol(resolved, self.checker), context)
        if isinstance(resolved, ExternalName):
            name = _normalize(resolved.full_name)
            if factory := _SIMPLE_TYPES.get(name):
                return factory()
            # Bare containers: list, dict, tuple, ...
            if name in _LIST_TYPES or name in _TUPLE_TYPES:
                return ListType(element=AnyType())
            if name in _SET_TYPES:
                return SetType(element=AnyType())
            if name in _DICT_TYPES:
                return DictType(key=StrType(), value=AnyType())
        raise UnknownTypeError(ast.unparse(expr), _location(source_file, expr))

    def _extract_generic(
        self,
        expr: ast.Subscript,
        base: ast.expr,
        source_file: SourceFile,
        context: Context,
    ) -> TypeDef:
        resolved = self.checker.resolve(source_file, base)
        if not isinstance(resolved, ExternalName):
            raise UnknownTypeError(ast.unparse(expr), _location(source_file, expr))

        name = _normalize(resolved.full_name)
        args = _slice_args(expr)

        def extract(arg: ast.expr) -> TypeDef:
            return self.extract_type(arg, source_file, context)

        if name in _LIST_TYPES:
            return ListType(element=extract(args[0]))
        if name in _SET_TYPES:
            return SetType(element=extract(args[0]))
        if name in _DICT_TYPES:
            if len(args) != 2:
                raise UnknownTypeError(ast.unparse(expr), _location(source_file, expr))
            return DictType(key=extract(args[0]), value=extract(args[1]))
        if name in _TUPLE_TYPES:
            if len(args) == 2 and _is_ellipsis(args[1]):
                return ListType(element=extract(args[0]))
            if len(args) == 1 and isinstance(args[0], ast.Tuple) and not args[0].elts:
                return TupleType(elements=())
            return TupleType(elements=tuple(extract(arg) for arg in args))
        if name == "typing.Optional":
            return _union([extract(args[0]), NoneType()])
        if name == "typing.Union":
            return _union([extract(arg) for arg in args])
        if name == "typing.Literal":
            return LiteralType(values=tuple(self._literal_values(expr, source_file)))
        if name in _QUALIFIERS:
            return extract(args[0])
        raise UnknownTypeError(ast.unparse(expr), _location(source_file, expr))

    def _literal_values(
        self,
        expr: ast.Subscript,
        source_file: SourceFile,
    ) -> list[str | int | bool | None]:
        values: list[str | int | bool | None] = []
        for arg in _slice_args(expr):
            if isinstance(arg, ast.Subscript):
                # Nested Literal[...] flattens into the outer one
                values.extend(self._literal_values(arg, source_file))
                continue
            try:
                value = ast.literal_eval(arg)
            except (ValueError, TypeError, SyntaxError):
                value = NO_DEFAULT
            if value is not None and not isinstance(value, str | int | bool):
                raise UnknownTypeError(ast.unparse(arg), _location(source_file, arg))
            if not any(type(v) is type(value) and v == value for v in values):
                values.append(value)
        return values


# =============================================================================
# Helpers
# =============================================================================


def _union(options: list[TypeDef]) -> TypeDef:
    """Build a union, flattening nested unions and dropping duplicates."""
    flat: list[TypeDef] = []
    for option in options:
        for item in option.options if isinstance(option, UnionType) else (option,):
            if item not in flat:
                flat.append(item)
    return flat[0] if len(flat) == 1 else UnionType(options=tuple(flat))


def _as_expression(expr: ast.expr, source_file: SourceFile) -> ast.expr:
    """Parse string (forward reference) annotations into expressions."""
    while isinstance(expr, ast.Constant) and isinstance(expr.value, str):
        try:
            parsed = ast.parse(expr.value.strip(), mode="eval").body
        except SyntaxError as exc:
            raise UnknownTypeError(repr(expr.value), _location(source_file, expr)) from exc
        expr = ast.copy_location(parsed, expr)
    return expr


def _slice_args(expr: ast.Subscript) -> list[ast.expr]:
    if isinstance(expr.slice, ast.Tuple):
        return list(expr.slice.elts)
    return [expr.slice]


def _unsubscript(expr: ast.expr) -> ast.expr:
    return expr.value if isinstance(expr, ast.Subscript) else expr


def _is_ellipsis(expr: ast.expr) -> bool:
    return isinstance(expr, ast.Constant) and expr.value is Ellipsis


def _is_call_to(expr: ast.expr | None, names: str | frozenset[str]) -> bool:
    if not isinstance(expr, ast.Call):
        return False
    func = expr.func
    name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
    return name == names if isinstance(names, str) else name in names


def _is_required(value: ast.expr | None) -> bool:
    """Return True if a class attribute has no default value."""
    if value is None:
        return True
    if isinstance(value, ast.Call) and _is_call_to(value, _FIELD_FUNCTIONS):
        if any(k.arg in {"default", "default_factory"} for k in value.keywords):
            return False
        return not value.args or _is_ellipsis(value.args[0])
    return False


def _literal_default(value: ast.expr | None) -> Any:
    if value is None:
        return NO_DEFAULT
    if isinstance(value, ast.Call) and _is_call_to(value, _FIELD_FUNCTIONS):
        defaults = [k.value for k in value.keywords if k.arg == "default"]
        if not defaults and value.args and not _is_ellipsis(value.args[0]):
            defaults = [value.args[0]]
        if not defaults:
            return NO_DEFAULT
        value = defaults[0]
    try:
        return _json_value(ast.literal_eval(value))
    except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
        return NO_DEFAULT


def _json_value(value: Any) -> Any:
    """Return a JSON-compatible copy of a literal, or NO_DEFAULT."""
    if value is None or isinstance(value, str | bool | int | float):
        return value
    if isinstance(value, list | tuple):
        items = [_json_value(item) for item in value]
        return NO_DEFAULT if NO_DEFAULT in items else items
    if isinstance(value, dict) and all(isinstance(k, str) for k in value):
        converted = {k: _json_value(v) for k, v in value.items()}
        return NO_DEFAULT if NO_DEFAULT in converted.values() else converted
    return NO_DEFAULT


def _location(source_file: SourceFile, node: ast.AST) -> str:
    line = getattr(node, "lineno", None)
    return f"{source_file.file_name}:{line}" if line else source_file.file_name


__all__ = ["Context", "TypeParser"]
