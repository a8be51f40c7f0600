"""Summary command - stream an AI summary for one country and year."""

import asyncio
import json
from typing import Optional

import httpx
import typer
from pydantic import ValidationError

from urbanscope.cli._globals import get_global_config
from urbanscope.cli.config import CLIConfig
from urbanscope.cli.lib.safe_output import emoji, safe_print, safe_print_err
from urbanscope.cli.lib.summary_renderer import SummaryRenderer
from urbanscope.cli.summary_stream import (
    SessionListener,
    StreamingSummaryClient,
    SummaryPhase,
    SummarySession,
)
from urbanscope.schemas.summary import SummaryRequest


async def run_summary(
    request: SummaryRequest,
    config: CLIConfig,
    listener: Optional[SessionListener] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> SummarySession:
    """Run one session to a terminal phase; task cancellation cancels the stream."""
    async with StreamingSummaryClient(
        base_url=config.api_base,
        token=config.token,
        timeout=float(config.timeout),
        http_client=http_client,
        listener=listener,
    ) as client:
        session = client.start(request)
        try:
            await client.wait()
        except asyncio.CancelledError:
            client.cancel()
            raise
        return session


def summary(
    country_id: str = typer.Argument(..., help="Country id, e.g. CHN"),
    year: int = typer.Argument(..., help="Score year, e.g. 2023"),
    language: str = typer.Option("zh", "--language", "-l", help="Summary language: zh or en"),
    hide_reasoning: bool = typer.Option(False, "--hide-reasoning", help="Do not print the reasoning channel"),
) -> None:
    """Generate an AI summary and print it live as it streams."""
    config = get_global_config()

    try:
        request = SummaryRequest(country_id=country_id, year=year, language=language)
    except ValidationError as e:
        safe_print_err(f"[ERROR] Invalid request: {e.errors()[0].get('msg')}")
        raise typer.Exit(code=2)

    as_json = config.output_format == "json"
    listener = None if as_json else SummaryRenderer(show_reasoning=not hide_reasoning)
    if not as_json:
        safe_print(f"{emoji('⏳', '[LOADING]')} 正在生成 {country_id} {year} 年的AI总结...")

    try:
        session = asyncio.run(run_summary(request, config, listener=listener))
    except KeyboardInterrupt:
        safe_print_err("\n[ABORTED] Aborted by user.")
        raise typer.Exit(code=130)

    if as_json:
        safe_print(json.dumps(session.to_dict(), ensure_ascii=False, indent=2))

    if session.phase is SummaryPhase.ERRORED:
        raise typer.Exit(code=1)
