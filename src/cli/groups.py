"""Shared help-panel groups for the arrowduck CLI."""

from __future__ import annotations

from cyclopts import Group

session_group = Group(
    "Session",
    help="Session and configuration options.",
    sort_key=0,
)

store_group = Group(
    "Store",
    help="Destination database and relation.",
    sort_key=1,
)

execution_group = Group(
    "Execution",
    help="Batching, parallelism and error policy.",
    sort_key=2,
)

inference_group = Group(
    "Inference",
    help="Schema inference switches.",
    sort_key=3,
)


__all__ = ["execution_group", "inference_group", "session_group", "store_group"]
