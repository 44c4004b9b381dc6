"""Declaration index: exported, non-generic type declarations by qualified name."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from typeschema.checker import is_type_alias_annotation
from typeschema.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from typeschema.checker import Symbol, TypeChecker
    from typeschema.program import SourceFile

logger = get_logger(__name__.rpartition(".")[2])

type DeclarationNode = ast.ClassDef | ast.TypeAlias | ast.AnnAssign

_GENERIC_BASES = frozenset({"Generic", "Protocol"})


@dataclass(frozen=True, eq=False)
class Declaration:
    """A named type declaration in some source file."""

    name: str
    qualname: str
    node: DeclarationNode = field(repr=False)
    source_file: SourceFile = field(repr=False)

    @property
    def id(self) -> str:
        """Identity of the syntactic declaration, unique across files."""
        return f"{self.source_file.file_name}:{self.qualname}"

    @classmethod
    def from_symbol(cls, symbol: Symbol, checker: TypeChecker) -> Declaration:
        """Build the declaration a resolved symbol stands for."""
        return cls(
            name=qualified_name(symbol, checker),
            node=symbol.node,  # type: ignore[arg-type]
            source_file=symbol.source_file,
            qualname=symbol.qualname,
        )


def is_declaration(node: ast.AST) -> bool:
    """Return True for class, ``type`` statement and ``TypeAlias`` declarations."""
    if isinstance(node, ast.ClassDef | ast.TypeAlias):
        return True
    return isinstance(node, ast.AnnAssign) and is_type_alias_annotation(node.annotation)


def is_generic(node: DeclarationNode) -> bool:
    """Return True if the declaration takes type parameters."""
    if getattr(node, "type_params", None):
        return True
    if isinstance(node, ast.ClassDef):
        for base in node.bases:
            if isinstance(base, ast.Subscript) and _base_name(base.value) in _GENERIC_BASES:
                return True
    return False


def qualified_name(symbol: Symbol, checker: TypeChecker) -> str:
    """Return the symbol's fully qualified name without its module prefix."""
    full_name = checker.fully_qualified_name(symbol)
    module = symbol.source_file.module
    return full_name.removeprefix(f"{module}.") if module else full_name


def build_index(
    source_files: Iterable[SourceFile],
    checker: TypeChecker,
    declarations: dict[str, Declaration] | None = None,
) -> dict[str, Declaration]:
    """Index exported, non-generic declarations by qualified name.

    Files are visited in order and each tree in pre-order, so when two
    declarations share a name the last one visited wins deterministically.

    Args:
        source_files: Files to traverse
        checker: Symbol service used for names and export checks
        declarations: Existing index to extend in place

    Returns:
        The index (the same mapping when one is given)

    """
    index = declarations if declarations is not None else {}
    for source_file in source_files:
        _inspect_node(source_file.tree, source_file, checker, index)
    return index


def _inspect_node(
    node: ast.AST,
    source_file: SourceFile,
    checker: TypeChecker,
    index: dict[str, Declaration],
) -> None:
    if not is_declaration(node):
        for child in ast.iter_child_nodes(node):
            _inspect_node(child, source_file, checker, index)
        return

    # Nested declarations are never indexed on their own
    if not checker.is_exported(node, source_file) or is_generic(node):  # type: ignore[arg-type]
        return
    symbol = checker.symbol_at(node, source_file)
    if symbol is None:
        return

    declaration = Declaration.from_symbol(symbol, checker)
    previous = index.get(declaration.name)
    if previous is not None and previous.id != declaration.id:
        logger.debug(
            "Declaration %s in %s replaces the one in %s",
            declaration.name,
            source_file.file_name,
            previous.source_file.file_name,
        )
    index[declaration.name] = declaration


def _base_name(expr: ast.expr) -> str | None:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return None


__all__ = [
    "Declaration",
    "DeclarationNode",
    "build_index",
    "is_declaration",
    "is_generic",
    "qualified_name",
]
