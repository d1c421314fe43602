"""Path helper utilities for CLI commands."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

STDIN_MARKER = "-"


@contextmanager
def open_input(value: Path | str) -> Iterator[BinaryIO]:
    """Open a newline-delimited input file, or standard input for ``-``.

    Parameters
    ----------
    value
        Input path, or ``-`` for standard input.

    Yields
    ------
    BinaryIO
        Binary stream positioned at the first line.

    Raises
    ------
    FileNotFoundError
        Raised when the input path does not exist.
    """
    if str(value) == STDIN_MARKER:
        yield sys.stdin.buffer
        return
    path = Path(value)
    if not path.is_file():
        msg = f"Input file not found: {str(path)!r}."
        raise FileNotFoundError(msg)
    with path.open("rb") as handle:
        yield handle


__all__ = ["STDIN_MARKER", "open_input"]
