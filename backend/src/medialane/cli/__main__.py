"""CLI entry point for medialane.cli module.

Enables execution via: python -m medialane.cli (runs the backfill command)
"""

from medialane.cli.backfill import main

if __name__ == "__main__":
    raise SystemExit(main())
