"""Main application setup for the arrowduck CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated, Literal

from cyclopts import App, Parameter
from cyclopts.exceptions import CycloptsError

from cli.commands.version import get_version
from cli.context import RunContext
from cli.exit_codes import ExitCode
from cli.groups import session_group
from config import load_config
from core.errors import ArrowDuckError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_HELP_EPILOGUE = """
Examples:
  arrowduck infer sample.ndjson --out records.schema
  arrowduck ingest data.ndjson --schema records.schema --relation events
  arrowduck schema show records.schema

Environment Variables:
  ARROWDUCK_LOG_LEVEL        Default log level (DEBUG, INFO, WARNING, ERROR)
  ARROWDUCK_DATABASE         DuckDB database path
  ARROWDUCK_RELATION         Destination relation name
  ARROWDUCK_ROWS_PER_BATCH   Records per decoded batch
"""

app = App(
    name="arrowduck",
    help="Infer a unified Arrow schema from JSON records and ingest them into DuckDB.",
    help_epilogue=_HELP_EPILOGUE,
    version=get_version(),
    version_flags=["--version", "-V"],
    default_parameter=Parameter(
        show_default=True,
        show_env_var=True,
    ),
    result_action="return_value",
    exit_on_error=True,
    print_error=True,
    help_on_error=False,
)

app.meta.group_parameters = session_group


@dataclass(frozen=True)
class SessionOptions:
    """Session-level configuration parameters."""

    config_file: Annotated[
        str | None,
        Parameter(
            name="--config",
            help="Path to configuration file (overrides default search).",
            group=session_group,
        ),
    ] = None
    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR"],
        Parameter(
            name="--log-level",
            help="Logging verbosity level.",
            env_var="ARROWDUCK_LOG_LEVEL",
            group=session_group,
        ),
    ] = "INFO"


_DEFAULT_SESSION_OPTIONS = SessionOptions()


@app.meta.default
def meta_launcher(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    session: Annotated[SessionOptions, Parameter(name="*")] = _DEFAULT_SESSION_OPTIONS,
) -> int:
    """Meta launcher for config selection and context injection.

    Returns
    -------
    int
        Exit status code from command execution.
    """
    logging.basicConfig(level=session.log_level.upper())
    try:
        config = load_config(session.config_file)
    except (OSError, TypeError, ValueError) as exc:
        logger.error("%s", exc)
        return ExitCode.CONFIG_ERROR
    run_context = RunContext(
        log_level=session.log_level,
        config=config,
        config_location=session.config_file,
    )
    try:
        command, bound, ignored = app.parse_args(
            list(tokens),
            exit_on_error=False,
            print_error=True,
        )
        for name, hint in ignored.items():
            if hint is RunContext or name == "run_context":
                bound.arguments[name] = run_context
        result = command(*bound.args, **bound.kwargs)
    except CycloptsError as exc:
        return ExitCode.from_exception(exc)
    except ArrowDuckError as exc:
        logger.error("%s failed: %s", exc.kind, exc)
        return ExitCode.from_exception(exc)
    except Exception as exc:
        logger.exception("Command execution failed.")
        return ExitCode.from_exception(exc)
    return ExitCode.SUCCESS if result is None else int(result)


app.command("cli.commands.infer:infer_command", name="infer")
app.command("cli.commands.ingest:ingest_command", name="ingest")

_schema_app = App(name="schema", help="Inspect persisted schema files.")
_schema_app.command("cli.commands.schema:show_schema", name="show")
app.command(_schema_app)

app.command("cli.commands.version:version_command", name="version", alias="v")


def main() -> None:
    """Run the arrowduck CLI."""
    app.meta()


__all__ = ["LOG_LEVELS", "SessionOptions", "app", "main", "meta_launcher"]
