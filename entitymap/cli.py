# File: entitymap/cli.py
"""
EntityMap - Command-Line Interface
===================================

CLI built with the standard-library ``argparse`` module.

Usage examples::

    # Generate data-access modules
    python -m entitymap --schema entities.yaml --output ./generated

    # DDL script only
    entitymap -s entities.yaml -o ./out --format sql

    # Validate only (no file output)
    entitymap -s entities.yaml --validate-only

Exit codes:
    0 - success
    1 - validation / configuration error
    2 - generation error
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, NoReturn, Optional, Sequence

from entitymap.errors import EntityMapError
from entitymap.generator import GenerationReport

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_INPUT_ERROR: int = 4

_FORMATS: List[str] = ["python", "sql", "json"]


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root entitymap logger based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    formatter: logging.Formatter = logging.Formatter(fmt, datefmt="%H:%M:%S")
    handler.setFormatter(formatter)

    root_logger: logging.Logger = logging.getLogger("entitymap")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from entitymap import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="entitymap",
        description=(
            "EntityMap - entity-to-relational mapping generator.\n\n"
            "Turns entity declarations (JSON/YAML) into CREATE TABLE DDL, "
            "parameterised CRUD statements and typed row decoders."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s entities.yaml -o ./generated\n"
            "  %(prog)s -s entities.json -o ./out --format sql\n"
            "  %(prog)s -s entities.yaml --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"EntityMap v{__version__}",
    )

    # --- Required arguments ---
    parser.add_argument(
        "-s", "--schema",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the entity declaration file (JSON or YAML).",
    )

    # --- Output ---
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help="Output directory. Required unless --validate-only is set.",
    )
    parser.add_argument(
        "--format",
        type=str,
        default="python",
        choices=_FORMATS,
        help="Output format (default: python).",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Resolve and validate the declarations without writing files.",
    )

    # --- Config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--allow-duplicate-pk",
        action="store_true",
        default=False,
        help="Use the first flagged primary key instead of rejecting the entity.",
    )
    config_group.add_argument(
        "--fail-on-opaque",
        action="store_true",
        default=False,
        help="Reject fields that have no typed decoder.",
    )
    config_group.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="N",
        help="Generate entities on N worker threads.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, object]:
    overrides: Dict[str, object] = {}
    if args.allow_duplicate_pk:
        overrides["reject_duplicate_primary_keys"] = False
    if args.fail_on_opaque:
        overrides["fail_on_opaque_decode"] = True
    if args.workers is not None:
        overrides["parallel_workers"] = args.workers
    return overrides


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _render_outputs(report: GenerationReport, fmt: str) -> Dict[str, str]:
    """Relative path → content for the chosen format."""
    from entitymap.templates import module_file_name, render_json, render_module, render_sql_script

    units = list(report.units.values())
    if fmt == "sql":
        return {"schema.sql": render_sql_script(units)}
    if fmt == "json":
        return {"units.json": render_json(units)}

    files: Dict[str, str] = {"__init__.py": '"""Generated by EntityMap."""\n'}
    for unit in units:
        files[module_file_name(unit.entity_name)] = render_module(unit, report.config)
    return files


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def _run(schema_path: Path, output_dir: Optional[Path], args: argparse.Namespace) -> int:
    """
    Load, generate and (unless validating only) write outputs.

    Returns the appropriate exit code.
    """
    from entitymap.generator import EntityGenerator, load_declaration_file, parse_declarations
    from entitymap.models import GenerationConfig
    from entitymap.utils import write_files_batch

    try:
        raw = load_declaration_file(schema_path)
        entities, config = parse_declarations(raw)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load declarations: %s", exc)
        return EXIT_INPUT_ERROR

    overrides: Dict[str, object] = _build_config_overrides(args)
    if overrides:
        try:
            config = GenerationConfig.model_validate({**config.model_dump(), **overrides})
        except ValueError as exc:
            logger.error("Invalid configuration override: %s", exc)
            return EXIT_INPUT_ERROR

    generator: EntityGenerator = EntityGenerator(config)
    try:
        report = generator.generate_all(entities)
    except EntityMapError as exc:
        logger.error("Generation aborted: %s", exc)
        return EXIT_GENERATION_ERROR

    print(report.summary())

    if not report.success:
        return EXIT_VALIDATION_ERROR

    if args.validate_only:
        return EXIT_SUCCESS

    assert output_dir is not None
    files: Dict[str, str] = _render_outputs(report, args.format)
    try:
        written, size = write_files_batch(files, output_dir)
    except OSError as exc:
        logger.error("Failed to write output: %s", exc)
        return EXIT_GENERATION_ERROR
    print(f"Wrote {written} file(s), {size} bytes to {output_dir}")
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose

    _setup_logging(verbosity)

    schema_path: Path = Path(args.schema).resolve()
    if not schema_path.is_file():
        logger.error("Declaration file not found: %s", schema_path)
        sys.exit(EXIT_INPUT_ERROR)

    output_dir: Optional[Path] = None
    if not args.validate_only:
        if args.output is None:
            logger.error(
                "Output directory is required for generation. "
                "Use -o/--output or --validate-only."
            )
            parser.print_usage(sys.stderr)
            sys.exit(EXIT_INPUT_ERROR)
        output_dir = Path(args.output).resolve()

    logger.info("Schema:  %s", schema_path)
    logger.info("Output:  %s", output_dir)
    logger.info("Format:  %s", args.format)

    exit_code: int = _run(schema_path, output_dir, args)

    if exit_code == EXIT_SUCCESS:
        logger.info("Done.")
    else:
        logger.error("Failed with exit code %d.", exit_code)

    sys.exit(exit_code)


__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_INPUT_ERROR",
]
