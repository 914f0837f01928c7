# File: sqlmirror/__main__.py
"""
SQLMirror - Module entry point.

Allows running the tool directly via::

    python -m sqlmirror pull dev

This module simply delegates to the CLI entry point defined in ``sqlmirror.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from sqlmirror.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
