"""Symbol binding and name resolution over a loaded program.

The checker binds every class and type alias declared in a source file to a
``Symbol`` and resolves annotation expressions (``Name`` and ``Attribute``
chains) to the symbol, module or external name they denote.
"""

from __future__ import annotations

import ast
import builtins
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from typeschema.program import resolve_import_base

if TYPE_CHECKING:
    from typeschema.program import Program, SourceFile

_BUILTIN_NAMES = frozenset(dir(builtins))


@dataclass(eq=False)
class Symbol:
    """A class or type alias bound in some source file.

    Attributes:
        name: Simple name (e.g., "Inner")
        qualname: Dotted path within the module (e.g., "Outer.Inner")
        node: Declaring syntax node
        source_file: File the declaration lives in
        module_level: True unless nested in a class or function body
        members: Classes nested directly in this class's body

    """

    name: str
    qualname: str
    node: ast.AST = field(repr=False)
    source_file: SourceFile = field(repr=False)
    module_level: bool
    members: dict[str, Symbol] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class ModuleRef:
    """A module bound to a name (``import pkg.mod as m``)."""

    name: str


@dataclass(frozen=True)
class ExternalName:
    """A name defined outside the loaded program, e.g. ``typing.List``."""

    full_name: str


type Resolved = Symbol | ModuleRef | ExternalName


@dataclass(frozen=True)
class _Import:
    """Name bound by an import statement."""

    module: str
    member: str | None = None


@dataclass
class _ModuleScope:
    bindings: dict[str, Symbol | _Import] = field(default_factory=dict)
    star_imports: list[str] = field(default_factory=list)
    all_names: frozenset[str] | None = None


class TypeChecker:
    """Symbol and name resolution service for a ``Program``."""

    def __init__(self, program: Program) -> None:
        self.program = program
        self._scopes: dict[str, _ModuleScope] = {}
        self._symbols: dict[ast.AST, Symbol] = {}

    # =========================================================================
    # Declarations
    # =========================================================================

    def symbol_at(self, node: ast.AST, source_file: SourceFile) -> Symbol | None:
        """Return the symbol declared by a node of the given file."""
        self._scope(source_file)
        return self._symbols.get(node)

    def fully_qualified_name(self, symbol: Symbol) -> str:
        """Return ``<module>.<qualname>`` for a symbol."""
        module = symbol.source_file.module
        return f"{module}.{symbol.qualname}" if module else symbol.qualname

    def is_exported(self, node: ast.AST, source_file: SourceFile) -> bool:
        """Return True if the declaration is public at module level.

        A module that defines a literal ``__all__`` exports exactly those
        names; otherwise every name not starting with an underscore is public.
        """
        symbol = self.symbol_at(node, source_file)
        if symbol is None or not symbol.module_level:
            return False
        all_names = self._scope(source_file).all_names
        if all_names is not None:
            return symbol.name in all_names
        return not symbol.name.startswith("_")

    # =========================================================================
    # Name resolution
    # =========================================================================

    def resolve(self, source_file: SourceFile, expr: ast.expr) -> Resolved | None:
        """Resolve a ``Name`` or ``Attribute`` expression in a file's scope."""
        if isinstance(expr, ast.Name):
            return self.lookup(source_file, expr.id)
        if isinstance(expr, ast.Attribute):
            base = self.resolve(source_file, expr.value)
            return self.member(base, expr.attr) if base is not None else None
        return None

    def lookup(
        self,
        source_file: SourceFile,
        name: str,
        _seen: frozenset[tuple[str, str]] = frozenset(),
    ) -> Resolved | None:
        """Resolve a name bound at module level, following re-exports."""
        key = (source_file.module, name)
        if key in _seen:
            return None
        seen = _seen | {key}

        scope = self._scope(source_file)
        binding = scope.bindings.get(name)
        if isinstance(binding, Symbol):
            return binding
        if isinstance(binding, _Import):
            if binding.member is None:
                return ModuleRef(binding.module)
            return self._module_member(binding.module, binding.member, seen)

        for module in scope.star_imports:
            imported = self.program.get_source_file(module)
            if imported is None or name.startswith("_"):
                continue
            if (found := self.lookup(imported, name, seen)) is not None:
                return found

        if name in _BUILTIN_NAMES:
            return ExternalName(f"builtins.{name}")
        return None

    def member(self, base: Resolved, name: str) -> Resolved | None:
        """Resolve ``base.name``."""
        if isinstance(base, Symbol):
            return base.members.get(name)
        if isinstance(base, ModuleRef):
            return self._module_member(base.name, name, frozenset())
        return ExternalName(f"{base.full_name}.{name}")

    def _module_member(
        self,
        module: str,
        name: str,
        seen: frozenset[tuple[str, str]],
    ) -> Resolved | None:
        source_file = self.program.get_source_file(module)
        if source_file is not None:
            found = self.lookup(source_file, name, seen)
            if found is not None and not _is_builtin(found, name):
                return found
        submodule = f"{module}.{name}" if module else name
        if self.program.has_module(submodule):
            return ModuleRef(submodule)
        if source_file is None:
            return ExternalName(submodule)
        return None

    # =========================================================================
    # Binding
    # =========================================================================

    def _scope(self, source_file: SourceFile) -> _ModuleScope:
        scope = self._scopes.get(source_file.file_name)
        if scope is None:
            scope = _ModuleScope()
            self._scopes[source_file.file_name] = scope
            self._bind_block(
                source_file.tree.body,
                source_file,
                scope,
                prefix="",
                bindings=scope.bindings,
            )
        return scope

    def _bind_block(
        self,
        statements: list[ast.stmt],
        source_file: SourceFile,
        scope: _ModuleScope,
        *,
        prefix: str,
        bindings: dict[str, Symbol] | dict[str, Symbol | _Import] | None,
    ) -> None:
        module_level = bindings is scope.bindings
        for statement in statements:
            match statement:
                case ast.ClassDef(name=name, body=body):
                    symbol = self._declare(
                        statement, name, prefix, source_file, bindings, module_level
                    )
                    self._bind_block(
                        body,
                        source_file,
                        scope,
                        prefix=f"{symbol.qualname}.",
                        bindings=symbol.members,
                    )
                case ast.TypeAlias(name=ast.Name(id=name)):
                    self._declare(statement, name, prefix, source_file, bindings, module_level)
                case ast.AnnAssign(target=ast.Name(id=name)) if is_type_alias_annotation(
                    statement.annotation
                ):
                    self._declare(statement, name, prefix, source_file, bindings, module_level)
                case ast.FunctionDef(name=name, body=body) | ast.AsyncFunctionDef(
                    name=name, body=body
                ):
                    self._bind_block(
                        body,
                        source_file,
                        scope,
                        prefix=f"{prefix}{name}.<locals>.",
                        bindings=None,
                    )
                case ast.Import(names=names) if module_level:
                    for alias in names:
                        if alias.asname:
                            scope.bindings[alias.asname] = _Import(alias.name)
                        else:
                            top = alias.name.partition(".")[0]
                            scope.bindings[top] = _Import(top)
                case ast.ImportFrom(names=names) if module_level:
                    base = resolve_import_base(source_file, statement)
                    if base is None:
                        continue
                    for alias in names:
                        if alias.name == "*":
                            scope.star_imports.append(base)
                        else:
                            scope.bindings[alias.asname or alias.name] = _Import(
                                base, alias.name
                            )
                case ast.Assign(targets=[ast.Name(id="__all__")], value=value) if module_level:
                    scope.all_names = _literal_names(value)
                case ast.AugAssign(target=ast.Name(id="__all__"), value=value) if module_level:
                    extra = _literal_names(value)
                    if scope.all_names is not None and extra is not None:
                        scope.all_names |= extra
                case _:
                    for child in ast.iter_child_nodes(statement):
                        if isinstance(child, ast.stmt):
                            nested = [child]
                        elif isinstance(child, ast.excepthandler | ast.match_case):
                            nested = child.body
                        else:
                            continue
                        self._bind_block(
                            nested,
                            source_file,
                            scope,
                            prefix=prefix,
                            bindings=bindings,
                        )

    def _declare(
        self,
        node: ast.AST,
        name: str,
        prefix: str,
        source_file: SourceFile,
        bindings: dict[str, Symbol] | dict[str, Symbol | _Import] | None,
        module_level: bool,  # noqa: FBT001
    ) -> Symbol:
        symbol = Symbol(
            name=name,
            qualname=f"{prefix}{name}",
            node=node,
            source_file=source_file,
            module_level=module_level,
        )
        self._symbols[node] = symbol
        if bindings is not None:
            bindings[name] = symbol
        return symbol


def is_type_alias_annotation(annotation: ast.expr) -> bool:
    """Return True for a ``TypeAlias`` annotation (``X: TypeAlias = ...``)."""
    match annotation:
        case ast.Name(id="TypeAlias") | ast.Attribute(attr="TypeAlias"):
            return True
        case ast.Constant(value="TypeAlias"):
            return True
    return False


def _literal_names(value: ast.expr) -> frozenset[str] | None:
    if not isinstance(value, ast.List | ast.Tuple):
        return None
    names = [elt.value for elt in value.elts if isinstance(elt, ast.Constant)]
    if len(names) != len(value.elts) or not all(isinstance(n, str) for n in names):
        return None
    return frozenset(names)


def _is_builtin(found: Resolved, name: str) -> bool:
    return isinstance(found, ExternalName) and found.full_name == f"builtins.{name}"


__all__ = [
    "ExternalName",
    "ModuleRef",
    "Resolved",
    "Symbol",
    "TypeChecker",
    "is_type_alias_annotation",
]
