"""Score command - show one country's yearly score and the evaluation bands."""

import json

import typer

from urbanscope.cli._globals import get_global_config
from urbanscope.cli.client import APIClient, APIError
from urbanscope.cli.lib.safe_output import safe_print, safe_print_err

score_app = typer.Typer(help="Read score data")

_DIMENSIONS = (
    ("urbanizationProcessDimensionScore", "城镇化进程"),
    ("humanDynamicsDimensionScore", "人口迁徙动力"),
    ("materialDynamicsDimensionScore", "经济发展动力"),
    ("spatialDynamicsDimensionScore", "空间发展动力"),
)


def _client() -> APIClient:
    config = get_global_config()
    return APIClient(
        base_url=config.api_base,
        timeout=config.timeout,
        retry_times=config.retry_times,
        token=config.token,
    )


@score_app.command("show")
def show_score(
    country_id: str = typer.Argument(..., help="Country id, e.g. CHN"),
    year: int = typer.Argument(..., help="Score year"),
) -> None:
    """Show total and dimension scores for a country and year."""
    config = get_global_config()
    try:
        with _client() as client:
            detail = client.get_data("/score/detail", params={"countryId": country_id, "year": year})
    except APIError as e:
        safe_print_err(e.user_friendly_message())
        raise typer.Exit(code=1)

    if config.output_format == "json":
        safe_print(json.dumps(detail, ensure_ascii=False, indent=2))
        return

    country = detail.get("country") or {}
    name = country.get("cnName") or country.get("enName") or country_id
    safe_print(f"{name} ({country_id}) {detail.get('year')}")
    safe_print(f"  综合评分: {detail.get('totalScore')}")
    for key, label in _DIMENSIONS:
        safe_print(f"  {label}: {detail.get(key)}")


@score_app.command("evaluations")
def show_evaluations() -> None:
    """List evaluation bands ordered by minimum score."""
    config = get_global_config()
    try:
        with _client() as client:
            bands = client.get_data("/score/evaluations")
    except APIError as e:
        safe_print_err(e.user_friendly_message())
        raise typer.Exit(code=1)

    if config.output_format == "json":
        safe_print(json.dumps(bands, ensure_ascii=False, indent=2))
        return

    for band in bands or []:
        safe_print(f"({band.get('minScore')} - {band.get('maxScore')}) {band.get('evaluationText') or ''}")
