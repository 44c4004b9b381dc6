"""Configuration loading for typeschema (typeschema.yml)."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Literal

import yaml

from typeschema.errors import ConfigError

type Expose = Literal["all", "none", "export"]

EXPOSE_CHOICES: tuple[Expose, ...] = ("all", "none", "export")
DEFAULT_CONFIG_NAME = "typeschema.yml"


@dataclass(frozen=True)
class Config:
    """Settings for one schema generation run.

    Attributes:
        paths: Root source files; wildcard roots come only from these files.
        type: Qualified name of the root type, ``"*"`` or None for all roots.
        search_paths: Extra directories used to locate imported modules.
        expose: Which declarations become named definitions.
        top_ref: Reference a single root through ``definitions``.
        docstrings: Copy class and attribute docstrings into ``description``.
        sort_props: Sort object properties alphabetically.
        strict_tuples: Forbid items beyond a fixed tuple's length.
        additional_properties: Allow unknown keys on object schemas.
        follow_imports: Load modules imported by the root files.
        schema_id: Optional ``$id`` of the output document.

    """

    paths: tuple[Path, ...] = ()
    type: str | None = None
    search_paths: tuple[Path, ...] = ()
    expose: Expose = "export"
    top_ref: bool = False
    docstrings: bool = True
    sort_props: bool = False
    strict_tuples: bool = False
    additional_properties: bool = False
    follow_imports: bool = True
    schema_id: str | None = None

    def merge(self, **overrides: Any) -> Config:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            msg = f"Unknown configuration option(s): {sorted(map(str, unknown))}"
            raise ConfigError(msg)
        if "paths" in changes:
            changes["paths"] = tuple(Path(p) for p in changes["paths"])
        if "search_paths" in changes:
            changes["search_paths"] = tuple(Path(p) for p in changes["search_paths"])
        expose = changes.get("expose", self.expose)
        if expose not in EXPOSE_CHOICES:
            msg = f"'expose' must be one of {list(EXPOSE_CHOICES)}, got {expose!r}"
            raise ConfigError(msg)
        return replace(self, **changes)


def load_config(config_path: Path) -> Config:
    """Load configuration from disk.

    A directory is searched for ``typeschema.yml``. A missing file yields the
    default configuration. Relative paths in the file are resolved against the
    directory holding it.

    Raises:
        ConfigError: If the file is not a YAML mapping, names an unknown
            option or holds an invalid value.

    """
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return Config()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        msg = f"{config_file.name} must contain a mapping at the root"
        raise ConfigError(msg)

    root = config_file.parent.resolve()
    unknown = set(data) - {f.name for f in fields(Config)}
    if unknown:
        names = sorted(map(str, unknown))
        msg = f"Unknown configuration option(s) in {config_file.name}: {names}"
        raise ConfigError(msg)

    return Config(
        paths=tuple(root / p for p in _as_str_list(data, "paths")),
        type=_as_str(data, "type"),
        search_paths=tuple(root / p for p in _as_str_list(data, "search_paths")),
        expose=_as_expose(data),
        top_ref=_as_bool(data, "top_ref", default=False),
        docstrings=_as_bool(data, "docstrings", default=True),
        sort_props=_as_bool(data, "sort_props", default=False),
        strict_tuples=_as_bool(data, "strict_tuples", default=False),
        additional_properties=_as_bool(data, "additional_properties", default=False),
        follow_imports=_as_bool(data, "follow_imports", default=True),
        schema_id=_as_str(data, "schema_id"),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / DEFAULT_CONFIG_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return loaded if loaded is not None else {}


def _as_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"'{key}' must be a string, got {type(value).__name__}"
        raise ConfigError(msg)
    return value


def _as_bool(data: dict[str, Any], key: str, *, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        msg = f"'{key}' must be a boolean, got {type(value).__name__}"
        raise ConfigError(msg)
    return value


def _as_str_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"'{key}' must be a string or a list of strings"
        raise ConfigError(msg)
    return value


def _as_expose(data: dict[str, Any]) -> Expose:
    value = _as_str(data, "expose") or "export"
    if value not in EXPOSE_CHOICES:
        msg = f"'expose' must be one of {list(EXPOSE_CHOICES)}, got {value!r}"
        raise ConfigError(msg)
    return value  # type: ignore[return-value]


__all__ = ["DEFAULT_CONFIG_NAME", "EXPOSE_CHOICES", "Config", "Expose", "load_config"]
