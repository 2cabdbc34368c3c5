# File: fleetdispatch/__main__.py
"""
fleetdispatch — Module entry point.

Allows running the service directly via::

    python -m fleetdispatch serve --port 3000

This module simply delegates to the CLI entry point defined in ``fleetdispatch.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from fleetdispatch.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
