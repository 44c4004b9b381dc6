"""Error types raised during schema generation."""

from __future__ import annotations


class SchemaGeneratorError(Exception):
    """Base class for all typeschema errors."""


class NoRootTypeError(SchemaGeneratorError):
    """The requested root type is not declared anywhere in the program."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f'No root type "{type_name}" found')


class NameCollisionError(SchemaGeneratorError):
    """Two distinct types would share one definitions key."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f'Type "{type_name}" has multiple definitions.')


class UnknownTypeError(SchemaGeneratorError):
    """An annotation that cannot be translated into a schema type."""

    def __init__(self, expression: str, location: str) -> None:
        self.expression = expression
        self.location = location
        super().__init__(f"{location}: Cannot extract type from: {expression}")


class ConfigError(SchemaGeneratorError):
    """Raised when the configuration file or a setting is invalid."""


__all__ = [
    "ConfigError",
    "NameCollisionError",
    "NoRootTypeError",
    "SchemaGeneratorError",
    "UnknownTypeError",
]
