"""Schema generation: root selection, definition collection and assembly."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typeschema.errors import NameCollisionError, NoRootTypeError
from typeschema.index import Declaration, build_index
from typeschema.logging import get_logger
from typeschema.parser import Context
from typeschema.types import Definable, DefinitionType

if TYPE_CHECKING:
    from typeschema.formatter import Definition, TypeFormatter
    from typeschema.parser import TypeParser
    from typeschema.program import Program, SourceFile
    from typeschema.types import TypeDef

logger = get_logger(__name__.rpartition(".")[2])

SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"
WILDCARD = "*"

type Schema = dict[str, Any]


class DefinitionCollector:
    """Accumulates the ``definitions`` table of one schema document.

    Reuse one collector for every root of a document: collisions are checked
    against everything collected so far, not per root.
    """

    def __init__(
        self,
        formatter: TypeFormatter,
        definitions: dict[str, Definition] | None = None,
    ) -> None:
        self.formatter = formatter
        self.definitions: dict[str, Definition] = (
            definitions if definitions is not None else {}
        )
        self._ids: dict[str, str] = {}

    def collect(self, root_type: TypeDef) -> dict[str, Definition]:
        """Add every named type reachable from ``root_type``.

        Raises:
            NameCollisionError: If a name is already taken by a different type

        """
        seen: set[str] = set()
        children: list[Definable] = []
        for child in self.formatter.get_children(root_type):
            if isinstance(child, Definable) and child.id not in seen:
                seen.add(child.id)
                children.append(child)

        for child in children:
            previous_id = self._ids.get(child.name)
            if previous_id is not None and previous_id != child.id:
                raise NameCollisionError(child.name)
            self._ids[child.name] = child.id

        for child in children:
            if child.name not in self.definitions:
                logger.debug("Adding definition %s", child.name)
                self.definitions[child.name] = self.formatter.get_definition(child.type)
        return self.definitions


class SchemaGenerator:
    """Generate JSON Schema documents for declarations of a program.

    Args:
        program: Loaded source files
        parser: Creates type graph nodes from declarations
        formatter: Renders type graph nodes as schema fragments
        top_ref: Keep a single root under ``definitions`` and ``$ref`` it
        schema_id: Optional ``$id`` of generated documents

    """

    def __init__(
        self,
        program: Program,
        parser: TypeParser,
        formatter: TypeFormatter,
        *,
        top_ref: bool = False,
        schema_id: str | None = None,
    ) -> None:
        self.program = program
        self.parser = parser
        self.formatter = formatter
        self.top_ref = top_ref
        self.schema_id = schema_id
        # Collectors of caller-owned mappings, keyed by the mapping's id().
        # Each collector holds its mapping, so an id is never reused.
        self._collectors: dict[int, DefinitionCollector] = {}

    def create_schema(self, full_name: str | None = None) -> Schema:
        """Generate the document for one named root, or all roots.

        Args:
            full_name: Qualified name of the root, ``"*"`` or None

        Raises:
            NoRootTypeError: If the named root does not exist
            NameCollisionError: If two distinct types share a name

        """
        root_nodes = self.get_root_nodes(full_name)
        wrap = self.top_ref or len(root_nodes) != 1
        root_types = [self._create_root_type(node, wrap=wrap) for node in root_nodes]
        root_definition = (
            self.get_root_type_definition(root_types[0]) if len(root_types) == 1 else {}
        )

        collector = DefinitionCollector(self.formatter)
        for root_type in root_types:
            collector.collect(root_type)
        return self._assemble(root_definition, collector.definitions)

    def create_schema_from_node(self, declaration: Declaration) -> Schema:
        """Generate the document for a declaration found by other means."""
        root_type = self._create_root_type(declaration, wrap=self.top_ref)
        root_definition = self.get_root_type_definition(root_type)
        collector = DefinitionCollector(self.formatter)
        collector.collect(root_type)
        return self._assemble(root_definition, collector.definitions)

    # =========================================================================
    # Root selection
    # =========================================================================

    def get_root_nodes(self, full_name: str | None = None) -> list[Declaration]:
        """Return the declarations that become schema roots.

        A name selects exactly one declaration; ``"*"`` or None selects every
        declaration in the program's root files, in discovery order.
        """
        if full_name and full_name != WILDCARD:
            return [self.find_named_node(full_name)]

        root_file_names = set(self.program.get_root_file_names())
        root_source_files = [
            source_file
            for source_file in self.program.get_source_files()
            if source_file.file_name in root_file_names
        ]
        declarations = build_index(root_source_files, self.program.get_type_checker())
        logger.debug("Found %d root type(s) in root files", len(declarations))
        return list(declarations.values())

    def find_named_node(self, full_name: str) -> Declaration:
        """Look a declaration up by name, project files before dependencies.

        Raises:
            NoRootTypeError: If neither project nor dependency files declare it

        """
        checker = self.program.get_type_checker()
        project_files, external_files = self.partition_files()

        all_types = build_index(project_files, checker)
        if full_name in all_types:
            return all_types[full_name]

        logger.debug("%s not declared in project files, indexing dependencies", full_name)
        build_index(external_files, checker, all_types)
        if full_name in all_types:
            return all_types[full_name]

        raise NoRootTypeError(full_name)

    def partition_files(self) -> tuple[list[SourceFile], list[SourceFile]]:
        """Split source files into project files and dependency files."""
        project_files: list[SourceFile] = []
        external_files: list[SourceFile] = []
        for source_file in self.program.get_source_files():
            destination = external_files if source_file.is_external else project_files
            destination.append(source_file)
        return project_files, external_files

    # =========================================================================
    # Definitions
    # =========================================================================

    def get_root_type_definition(self, root_type: TypeDef) -> Definition:
        """Return the schema fragment spread at the top of the document."""
        return self.formatter.get_definition(root_type)

    def append_root_child_definitions(
        self,
        root_type: TypeDef,
        child_definitions: dict[str, Definition],
    ) -> None:
        """Add the named types reachable from a root to a shared mapping.

        Repeated calls with the same mapping share one collector, so a name
        taken by one root cannot be claimed by a different type from another.

        Raises:
            NameCollisionError: If a name is already taken by a different type

        """
        collector = self._collectors.get(id(child_definitions))
        if collector is None:
            collector = DefinitionCollector(self.formatter, child_definitions)
            self._collectors[id(child_definitions)] = collector
        collector.collect(root_type)

    def _create_root_type(self, declaration: Declaration, *, wrap: bool) -> TypeDef:
        root_type = self.parser.create_type(declaration, Context())
        if wrap and not isinstance(root_type, DefinitionType):
            return DefinitionType(name=declaration.name, id=declaration.id, type=root_type)
        if not wrap and isinstance(root_type, DefinitionType):
            return root_type.type
        return root_type

    def _assemble(
        self,
        root_definition: Definition,
        definitions: dict[str, Definition],
    ) -> Schema:
        schema: Schema = {"$schema": SCHEMA_DRAFT}
        if self.schema_id:
            schema["$id"] = self.schema_id
        schema.update(root_definition)
        schema["definitions"] = definitions
        return schema


__all__ = [
    "SCHEMA_DRAFT",
    "WILDCARD",
    "DefinitionCollector",
    "Schema",
    "SchemaGenerator",
]
