# File: sqlmirror/cli.py
"""
SQLMirror - Command-Line Interface
===================================

``argparse`` front end for the four commands.

Usage examples::

    # Write a starter sqlmirror.json
    python -m sqlmirror init

    # Mirror the 'dev' connection into the output root
    python -m sqlmirror pull dev -v

    # Mirror from a catalog snapshot instead of a live database
    python -m sqlmirror pull --catalog catalog_example.yaml

    # Replay every script against 'dev' without the confirmation prompt
    python -m sqlmirror push dev --yes

    # Concatenate every schema script into one file
    python -m sqlmirror cat dev

Exit codes:
    0 - success
    1 - validation error
    2 - generation (render) error
    3 - export / push error
    4 - input / configuration error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, NoReturn, Optional, Sequence

from sqlmirror.catalog import Catalog, CatalogReader
from sqlmirror.config import (
    DEFAULT_CONFIG_FILE,
    load_config,
    resolve_output_root,
    write_default_config,
)
from sqlmirror.errors import CatalogError, ConfigurationError, PushError
from sqlmirror.generator import PullReport, SchemaMirror
from sqlmirror.models import Connection, MirrorConfig
from sqlmirror.push import (
    PushReport,
    ScriptPusher,
    SqlAlchemyExecutor,
    collect_scripts,
    concatenate_scripts,
)

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4

PUSH_WARNING: str = (
    "WARNING! All local SQL files will be executed against the requested "
    "database. This can not be undone! Make sure to backup your database first."
)


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root sqlmirror logger based on verbosity level.

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
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("sqlmirror")
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
    from sqlmirror import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="sqlmirror",
        description=(
            "SQLMirror - mirror a SQL Server schema into idempotent .sql scripts.\n\n"
            "Pull writes one script per object under the output root and keeps "
            "the tree in sync across runs; push replays it against a database."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s init\n"
            "  %(prog)s pull dev -v\n"
            "  %(prog)s pull --catalog catalog.yaml\n"
            "  %(prog)s push dev --yes\n"
            "  %(prog)s cat dev\n"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"SQLMirror v{__version__}",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=DEFAULT_CONFIG_FILE,
        metavar="PATH",
        help=f"Configuration file (JSON or YAML, default: {DEFAULT_CONFIG_FILE}).",
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

    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    init = commands.add_parser("init", help="Write a starter configuration file.")
    init.add_argument(
        "-f", "--force",
        action="store_true",
        default=False,
        help="Overwrite an existing configuration file.",
    )

    pull = commands.add_parser("pull", help="Generate scripts from a database catalog.")
    pull.add_argument("connection", nargs="?", default=None, help="Connection name.")
    pull.add_argument(
        "--catalog",
        type=str,
        default=None,
        metavar="PATH",
        help="Read the catalog from a JSON/YAML snapshot instead of the database.",
    )
    pull.add_argument(
        "--no-strict",
        action="store_true",
        default=False,
        help="Continue even if validation has errors.",
    )
    pull.add_argument(
        "--fail-on-warnings",
        action="store_true",
        default=False,
        help="Treat validation warnings as errors.",
    )

    push = commands.add_parser("push", help="Execute every local script against a database.")
    push.add_argument("connection", nargs="?", default=None, help="Connection name.")
    push.add_argument(
        "-y", "--yes",
        action="store_true",
        default=False,
        help="Skip the confirmation prompt.",
    )
    push.add_argument(
        "--continue-on-error",
        action="store_true",
        default=False,
        help="Record failed batches and keep going instead of aborting.",
    )

    cat = commands.add_parser("cat", help="Concatenate every script into one file.")
    cat.add_argument("connection", nargs="?", default=None, help="Connection name.")

    return parser


# ---------------------------------------------------------------------------
# Command helpers
# ---------------------------------------------------------------------------


def _optional_connection(config: MirrorConfig, name: Optional[str]) -> Optional[Connection]:
    if name is None and not config.connections:
        return None
    return config.get_connection(name)


def _confirm(message: str) -> bool:
    answer: str = input(f"{message}\nAre you sure you want to continue? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _pull_exit_code(report: PullReport) -> int:
    if report.success:
        return EXIT_SUCCESS
    if report.validation_errors:
        return EXIT_VALIDATION_ERROR
    if report.export_errors:
        return EXIT_EXPORT_ERROR
    return EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _run_init(args: argparse.Namespace) -> int:
    path: Path = write_default_config(Path(args.config), force=args.force)
    print(f"Wrote {path}")
    return EXIT_SUCCESS


def _run_pull(args: argparse.Namespace) -> int:
    config: MirrorConfig = load_config(Path(args.config))
    mirror: SchemaMirror = SchemaMirror(
        config,
        strict_validation=not args.no_strict,
        fail_on_warnings=args.fail_on_warnings,
    )

    if args.catalog is not None:
        conn: Optional[Connection] = _optional_connection(config, args.connection)
        root: Path = resolve_output_root(config, conn)
        report: PullReport = mirror.pull_from_file(Path(args.catalog), root)
    else:
        conn = config.get_connection(args.connection)
        root = resolve_output_root(config, conn)
        logger.info("Reading catalog from %r.", conn)
        with CatalogReader.from_url(conn.url) as reader:
            catalog: Catalog = reader.read(config.data)
        report = mirror.pull(catalog, root)

    print(report.summary())
    return _pull_exit_code(report)


def _run_push(args: argparse.Namespace) -> int:
    config: MirrorConfig = load_config(Path(args.config))
    conn: Connection = config.get_connection(args.connection)
    root: Path = resolve_output_root(config, conn)

    if not args.yes and not _confirm(PUSH_WARNING):
        logger.error("Command aborted!")
        return EXIT_INPUT_ERROR

    scripts: List[Path] = collect_scripts(root, config.output)
    logger.info("Pushing %d script(s) from %s to %r.", len(scripts), root, conn)
    with SqlAlchemyExecutor(conn.url) as execute:
        report: PushReport = ScriptPusher(
            execute, continue_on_error=args.continue_on_error
        ).push(scripts)

    print(report.summary())
    for failure in report.failures:
        print(f"    ✗ {failure}")
    return EXIT_SUCCESS if report.success else EXIT_EXPORT_ERROR


def _run_cat(args: argparse.Namespace) -> int:
    config: MirrorConfig = load_config(Path(args.config))
    conn: Optional[Connection] = _optional_connection(config, args.connection)
    root: Path = resolve_output_root(config, conn)
    target, count = concatenate_scripts(root, config.output, conn.name if conn else None)
    print(f"Concatenated {count} script(s) into {target}")
    return EXIT_SUCCESS


_COMMANDS: Dict[str, Callable[[argparse.Namespace], int]] = {
    "init": _run_init,
    "pull": _run_pull,
    "push": _run_push,
    "cat": _run_cat,
}


def _dispatch(args: argparse.Namespace) -> int:
    """Run a command and map library exceptions to exit codes."""
    try:
        return _COMMANDS[args.command](args)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except CatalogError as exc:
        logger.error("Cannot read catalog: %s", exc)
        return EXIT_INPUT_ERROR
    except PushError as exc:
        logger.error("Push aborted: %s", exc)
        return EXIT_EXPORT_ERROR
    except OSError as exc:
        logger.error("I/O error: %s", exc)
        return EXIT_EXPORT_ERROR


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
    logger.info("Command: %s (config %s)", args.command, args.config)

    exit_code: int = _dispatch(args)
    if exit_code == EXIT_SUCCESS:
        logger.info("%s completed successfully.", args.command)
    else:
        logger.error("%s failed with exit code %d.", args.command, exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("sqlmirror.cli loaded.")
