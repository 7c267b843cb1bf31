# File: entitymap/__main__.py
"""
EntityMap - Module entry point.

Allows running the generator directly via::

    python -m entitymap --schema entities.yaml --output ./generated
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from entitymap.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
