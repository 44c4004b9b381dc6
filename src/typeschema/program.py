"""Program representation: parsed root files and the modules they import.

Nothing is ever imported or executed. Files are located on a search path the
way the import system would find them and read with ``ast.parse``.
"""

from __future__ import annotations

import ast
import sys
from collections import deque
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING

from typeschema.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from typeschema.checker import TypeChecker

logger = get_logger(__name__.rpartition(".")[2])

# Directory names that hold installed dependencies
EXTERNAL_DIRS = frozenset({"site-packages", "dist-packages"})

# Modules whose types are recognised by name and never loaded from disk
_NEVER_FOLLOW = frozenset({"typing_extensions", *sys.stdlib_module_names})

# Stubs win over sources, packages over plain modules
_PACKAGE_CANDIDATES = ("__init__.pyi", "__init__.py")
_MODULE_SUFFIXES = (".pyi", ".py")


def is_external_path(path: Path) -> bool:
    """Return True if the path lies under a dependency install directory."""
    return any(part in EXTERNAL_DIRS for part in path.parts)


@dataclass(frozen=True)
class SourceFile:
    """A parsed Python module."""

    path: Path
    module: str
    tree: ast.Module = field(repr=False, compare=False)

    @property
    def file_name(self) -> str:
        """Return the path as a POSIX string."""
        return self.path.as_posix()

    @property
    def is_package(self) -> bool:
        """Return True for a package's ``__init__`` module."""
        return self.path.stem == "__init__"

    @property
    def package(self) -> str:
        """Return the package relative imports are resolved against."""
        return self.module if self.is_package else self.module.rpartition(".")[0]

    @property
    def is_external(self) -> bool:
        """Return True if this file belongs to an installed dependency."""
        return is_external_path(self.path)


class Program:
    """A set of source files with a designated subset of root files.

    Root files are the files the program was explicitly asked to build; every
    other file was pulled in by following imports.
    """

    def __init__(
        self,
        source_files: Sequence[SourceFile],
        root_file_names: Sequence[str],
    ) -> None:
        self._source_files = tuple(source_files)
        self._root_file_names = tuple(root_file_names)
        self._by_module: dict[str, SourceFile] = {}
        self._packages: set[str] = set()
        for source_file in self._source_files:
            self._by_module.setdefault(source_file.module, source_file)
            parts = source_file.module.split(".")
            self._packages.update(".".join(parts[:i]) for i in range(1, len(parts)))

    @classmethod
    def from_paths(
        cls,
        paths: Iterable[Path | str],
        search_paths: Iterable[Path | str] = (),
        *,
        follow_imports: bool = True,
    ) -> Program:
        """Parse root files and, optionally, every module they import.

        Args:
            paths: Root source files, in the order roots are reported
            search_paths: Extra directories searched for imported modules
            follow_imports: Load imported modules found on the search path

        Returns:
            The loaded program, root files first

        Raises:
            FileNotFoundError: If a root file does not exist
            SyntaxError: If a root file cannot be parsed

        """
        roots = [Path(p).resolve() for p in paths]
        for root in roots:
            if not root.is_file():
                msg = f"Source file not found: {root}"
                raise FileNotFoundError(msg)

        finder = ModuleFinder(
            [*_package_roots(roots), *(Path(p) for p in search_paths)],
        )
        source_files = [_parse(root, _module_name(root)) for root in roots]
        if follow_imports:
            source_files.extend(_follow_imports(source_files, finder))

        logger.debug(
            "Loaded %d source file(s) from %d root(s)", len(source_files), len(roots)
        )
        return cls(source_files, [root.as_posix() for root in roots])

    def get_root_file_names(self) -> tuple[str, ...]:
        """Return the file names the program was asked to build."""
        return self._root_file_names

    def get_source_files(self) -> tuple[SourceFile, ...]:
        """Return every loaded file, roots first, then in discovery order."""
        return self._source_files

    def get_source_file(self, module: str) -> SourceFile | None:
        """Return the loaded file for a dotted module name."""
        return self._by_module.get(module)

    def has_module(self, module: str) -> bool:
        """Return True if a module, or a package holding one, is loaded."""
        return module in self._by_module or module in self._packages

    def get_type_checker(self) -> TypeChecker:
        """Return the symbol service for this program."""
        return self._checker

    @cached_property
    def _checker(self) -> TypeChecker:
        from typeschema.checker import TypeChecker

        return TypeChecker(self)


class ModuleFinder:
    """Locate module files on a list of directories without importing them."""

    def __init__(self, search_paths: Iterable[Path]) -> None:
        directories: list[Path] = []
        for entry in [*search_paths, *(Path(p) for p in sys.path if p)]:
            directory = entry.resolve()
            if directory.is_dir() and directory not in directories:
                directories.append(directory)
        self.directories = tuple(directories)

    def find(self, module: str) -> Path | None:
        """Return the file defining a dotted module name, if any."""
        if module.partition(".")[0] in _NEVER_FOLLOW:
            return None
        parts = module.split(".")
        for directory in self.directories:
            base = directory.joinpath(*parts)
            for candidate in _PACKAGE_CANDIDATES:
                if (path := base / candidate).is_file():
                    return path
            for suffix in _MODULE_SUFFIXES:
                if (path := base.with_name(base.name + suffix)).is_file():
                    return path
        return None


def _follow_imports(roots: list[SourceFile], finder: ModuleFinder) -> Iterator[SourceFile]:
    """Yield imported modules breadth-first, each once."""
    loaded = {source_file.path for source_file in roots}
    seen_modules = {source_file.module for source_file in roots}
    queue = deque(roots)
    while queue:
        source_file = queue.popleft()
        for module in imported_modules(source_file):
            if module in seen_modules:
                continue
            seen_modules.add(module)
            path = finder.find(module)
            if path is None:
                logger.debug("Module %s not found on the search path", module)
                continue
            if path in loaded:
                continue
            try:
                imported = _parse(path, module)
            except (SyntaxError, UnicodeDecodeError, OSError) as exc:
                logger.debug("Skipping unreadable module %s: %s", module, exc)
                continue
            loaded.add(path)
            queue.append(imported)
            yield imported


def imported_modules(source_file: SourceFile) -> list[str]:
    """Return every module a file may import, in source order.

    ``from pkg import name`` lists both ``pkg`` and ``pkg.name`` since the
    name may be a submodule; modules that do not exist are dropped later.
    """
    modules: list[str] = []
    for node in ast.walk(source_file.tree):
        if isinstance(node, ast.Import):
            modules.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            base = resolve_import_base(source_file, node)
            if base is None:
                continue
            if base:
                modules.append(base)
            modules.extend(
                f"{base}.{alias.name}" if base else alias.name
                for alias in node.names
                if alias.name != "*"
            )
    return modules


def resolve_import_base(source_file: SourceFile, node: ast.ImportFrom) -> str | None:
    """Return the absolute module a ``from ... import`` statement reads from.

    Returns None when a relative import climbs above the top-level package.
    """
    if not node.level:
        return node.module or ""
    parts = source_file.package.split(".") if source_file.package else []
    if node.level - 1 > len(parts):
        return None
    parts = parts[: len(parts) - (node.level - 1)]
    if node.module:
        parts.append(node.module)
    return ".".join(parts)


def _parse(path: Path, module: str) -> SourceFile:
    source = path.read_text(encoding="utf-8")
    return SourceFile(path=path, module=module, tree=ast.parse(source, filename=str(path)))


def _module_name(path: Path) -> str:
    """Derive a dotted module name by walking up through package directories."""
    parts = [] if path.stem == "__init__" else [path.stem]
    directory = path.parent
    while any((directory / candidate).is_file() for candidate in _PACKAGE_CANDIDATES):
        parts.insert(0, directory.name)
        directory = directory.parent
    return ".".join(parts)


def _package_roots(paths: Iterable[Path]) -> list[Path]:
    """Return the directory above each file's top-level package."""
    roots: list[Path] = []
    for path in paths:
        directory = path.parent
        while any((directory / candidate).is_file() for candidate in _PACKAGE_CANDIDATES):
            directory = directory.parent
        if directory not in roots:
            roots.append(directory)
    return roots


__all__ = [
    "EXTERNAL_DIRS",
    "ModuleFinder",
    "Program",
    "SourceFile",
    "imported_modules",
    "is_external_path",
    "resolve_import_base",
]
