"""
UrbanScope CLI Main Entry Point

Streams AI summaries and reads score data from the UrbanScope API.
"""

import sys

import typer

from urbanscope.core.env_loader import load_project_env

load_project_env()

from urbanscope.cli._globals import set_global_config
from urbanscope.cli.commands import score, summary
from urbanscope.cli.config import get_config


def config_callback(
    api_base: str = typer.Option(
        None,
        "--api-base",
        help="Backend API base URL (e.g., http://127.0.0.1:8000). Overrides URBANSCOPE_API_BASE env var.",
        envvar="URBANSCOPE_API_BASE",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results in JSON format instead of plain text.",
    ),
    timeout: int = typer.Option(
        None,
        "--timeout",
        help="Request timeout in seconds. Overrides URBANSCOPE_CLI_TIMEOUT env var.",
        envvar="URBANSCOPE_CLI_TIMEOUT",
    ),
    token: str = typer.Option(
        None,
        "--token",
        help="Bearer token sent as Authorization header. Overrides URBANSCOPE_API_TOKEN env var.",
        envvar="URBANSCOPE_API_TOKEN",
    ),
) -> None:
    """Global options callback. Sets configuration for all commands."""
    output_format = "json" if json_output else None
    config = get_config(
        api_base=api_base,
        timeout=timeout,
        output_format=output_format,  # type: ignore
        token=token,
    )
    set_global_config(config)


app = typer.Typer(
    name="urbanscope",
    help="UrbanScope: urbanization score data and streamed AI summaries",
    no_args_is_help=True,
    callback=config_callback,
)

app.command()(summary.summary)
app.add_typer(score.score_app, name="score")


def main() -> None:
    """Main entry point for CLI."""
    try:
        app()
    except KeyboardInterrupt:
        print("\n[ABORTED] Aborted by user.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    main()
