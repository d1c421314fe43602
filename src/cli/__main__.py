"""Module entrypoint for the arrowduck CLI."""

from __future__ import annotations

import sys

from cli.app import app


def main() -> None:
    """Run the arrowduck CLI."""
    sys.exit(app.meta())


if __name__ == "__main__":
    main()
