"""Build a ready-to-use SchemaGenerator from a Config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from typeschema.errors import ConfigError
from typeschema.formatter import TypeFormatter
from typeschema.generator import SchemaGenerator
from typeschema.parser import TypeParser
from typeschema.program import Program

if TYPE_CHECKING:
    from typeschema.checker import TypeChecker
    from typeschema.config import Config


def create_program(config: Config) -> Program:
    """Load the configured root files."""
    if not config.paths:
        msg = "At least one source path is required"
        raise ConfigError(msg)
    return Program.from_paths(
        config.paths,
        config.search_paths,
        follow_imports=config.follow_imports,
    )


def create_parser(checker: TypeChecker, config: Config) -> TypeParser:
    """Create the type parser for a program's checker."""
    return TypeParser(checker, expose=config.expose, docstrings=config.docstrings)


def create_formatter(config: Config) -> TypeFormatter:
    """Create the type formatter."""
    return TypeFormatter(
        sort_props=config.sort_props,
        strict_tuples=config.strict_tuples,
        additional_properties=config.additional_properties,
    )


def create_generator(config: Config, program: Program | None = None) -> SchemaGenerator:
    """Wire program, parser and formatter into a generator."""
    program = program if program is not None else create_program(config)
    return SchemaGenerator(
        program,
        create_parser(program.get_type_checker(), config),
        create_formatter(config),
        top_ref=config.top_ref,
        schema_id=config.schema_id,
    )


__all__ = ["create_formatter", "create_generator", "create_parser", "create_program"]
