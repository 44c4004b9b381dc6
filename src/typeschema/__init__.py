"""typeschema - JSON Schema generation from Python type declarations."""

from typeschema.config import (
    Config,
    load_config,
)
from typeschema.errors import (
    ConfigError,
    NameCollisionError,
    NoRootTypeError,
    SchemaGeneratorError,
    UnknownTypeError,
)
from typeschema.factory import (
    create_formatter,
    create_generator,
    create_parser,
    create_program,
)
from typeschema.formatter import (
    TypeFormatter,
)
from typeschema.generator import (
    DefinitionCollector,
    SchemaGenerator,
)
from typeschema.index import (
    Declaration,
    build_index,
)
from typeschema.parser import (
    Context,
    TypeParser,
)
from typeschema.program import (
    Program,
    SourceFile,
)

__all__ = [
    "Config",
    "ConfigError",
    "Context",
    "Declaration",
    "DefinitionCollector",
    "NameCollisionError",
    "NoRootTypeError",
    "Program",
    "SchemaGenerator",
    "SchemaGeneratorError",
    "SourceFile",
    "TypeFormatter",
    "TypeParser",
    "UnknownTypeError",
    "build_index",
    "create_formatter",
    "create_generator",
    "create_parser",
    "create_program",
    "load_config",
]
