"""Command line entry point: ``typeschema PATH... --type NAME``."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from typeschema.config import EXPOSE_CHOICES, load_config
from typeschema.errors import SchemaGeneratorError
from typeschema.factory import create_generator
from typeschema.logging import configure_logging, get_logger

logger = get_logger("cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typeschema",
        description="Generate JSON Schema from Python type declarations.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="Root source files (default: the 'paths' of the configuration file).",
    )
    parser.add_argument(
        "-t",
        "--type",
        help="Qualified name of the root type, or '*' for every root (default).",
    )
    parser.add_argument("-o", "--out", type=Path, help="Write the schema to this file.")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path.cwd(),
        help="Configuration file or directory holding typeschema.yml.",
    )
    parser.add_argument(
        "-e",
        "--expose",
        choices=EXPOSE_CHOICES,
        help="Which declarations become named definitions.",
    )
    parser.add_argument(
        "-I",
        "--search-path",
        dest="search_paths",
        action="append",
        type=Path,
        help="Extra directory searched for imported modules (repeatable).",
    )
    parser.add_argument(
        "--top-ref",
        action="store_true",
        default=None,
        help="Reference a single root through 'definitions'.",
    )
    parser.add_argument(
        "--no-docstrings",
        dest="docstrings",
        action="store_false",
        default=None,
        help="Do not copy docstrings into descriptions.",
    )
    parser.add_argument(
        "--sort-props",
        action="store_true",
        default=None,
        help="Sort object properties alphabetically.",
    )
    parser.add_argument(
        "--strict-tuples",
        action="store_true",
        default=None,
        help="Forbid items beyond a fixed tuple's length.",
    )
    parser.add_argument(
        "--additional-properties",
        action="store_true",
        default=None,
        help="Allow unknown keys on object schemas.",
    )
    parser.add_argument(
        "--no-follow-imports",
        dest="follow_imports",
        action="store_false",
        default=None,
        help="Only load the root files.",
    )
    parser.add_argument("--id", dest="schema_id", help="Set the document's $id.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Increase log verbosity for troubleshooting.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for typeschema."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = load_config(args.config).merge(
            paths=args.paths or None,
            type=args.type,
            search_paths=args.search_paths,
            expose=args.expose,
            top_ref=args.top_ref,
            docstrings=args.docstrings,
            sort_props=args.sort_props,
            strict_tuples=args.strict_tuples,
            additional_properties=args.additional_properties,
            follow_imports=args.follow_imports,
            schema_id=args.schema_id,
        )
        schema = create_generator(config).create_schema(config.type)
    except (
        SchemaGeneratorError,
        FileNotFoundError,
        SyntaxError,
        UnicodeDecodeError,
    ) as exc:
        parser.exit(1, f"typeschema: error: {exc}\n")

    output = json.dumps(schema, indent=2) + "\n"
    if args.out is None:
        sys.stdout.write(output)
        return
    args.out.parent.mkdir(parents=True, exist_ok=True)
    args.out.write_text(output, encoding="utf-8")
    logger.info("Schema written to %s", args.out)


if __name__ == "__main__":
    main()
