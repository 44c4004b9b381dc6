"""Shared fixtures: small Python projects written to a temporary directory."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from typeschema.config import Config
from typeschema.factory import create_generator
from typeschema.generator import Schema, SchemaGenerator

type WriteFiles = Callable[[dict[str, str]], Path]


@pytest.fixture
def write_files(tmp_path: Path) -> WriteFiles:
    """Write ``{relative_path: source}`` under tmp_path and return tmp_path."""

    def write(files: dict[str, str]) -> Path:
        for relative, source in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        return tmp_path

    return write


def make_generator(
    *paths: Path,
    search_paths: tuple[Path, ...] = (),
    **options: object,
) -> SchemaGenerator:
    """Create a generator for the given root files."""
    config = Config(paths=paths, search_paths=search_paths).merge(**options)
    return create_generator(config)


def generate(*paths: Path, type: str | None = None, **options: object) -> Schema:  # noqa: A002
    """Generate a schema document for the given root files."""
    return make_generator(*paths, **options).create_schema(type)
