"""
Portfolio Advisor: CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Load and validate the portfolio file.
  4. Execute action (batch analysis, summary, listing).
  5. Report result to stdout.

Install and run::

    pip install -e .
    portfolio-advisor --help
    portfolio-advisor validate-config
    portfolio-advisor analyze data/portfolio.json --output data/outputs/enriched.json
    portfolio-advisor summary data/outputs/enriched.json
    portfolio-advisor list data/outputs/enriched.json --recommendation Reinvest --sort moic --desc

Input files are JSON arrays of company rows (spreadsheet headers, camelCase or
snake_case keys) or the enriched output of a previous ``analyze`` run.
"""

from __future__ import annotations

import json
import signal
import threading
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="portfolio-advisor",
    help="Portfolio Advisor: AI-assisted portfolio review CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from portfolio_advisor.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from portfolio_advisor.utils.logging import configure_logging
    configure_logging(config.logging)


def _load_portfolio_or_exit(input_file: str):
    """Load raw or enriched records, exiting with a friendly error on failure."""
    from pydantic import ValidationError

    from portfolio_advisor.reporting.reader import PortfolioFileError, load_portfolio

    try:
        records, rejected = load_portfolio(Path(input_file))
    except (PortfolioFileError, ValidationError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if rejected:
        typer.echo(f"[WARN] {len(rejected)} row(s) rejected during normalization:", err=True)
        for err in rejected[:5]:
            typer.echo(f"  {err}", err=True)
        if len(rejected) > 5:
            typer.echo(f"  ... and {len(rejected) - 5} more.", err=True)
    return records


def _echo_progress(fraction: float, status: str) -> None:
    typer.echo(f"  [{fraction:>4.0%}] {status}")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and report which API keys are present.

    Exits with code 1 if the config fails validation.
    """
    from portfolio_advisor.credentials import (
        ANALYSIS_API_KEY,
        ENV_VAR_NAMES,
        RESEARCH_API_KEY,
        credentials_from_environment,
    )

    config = _load_config_or_exit(config_path)
    creds = credentials_from_environment(Path(".env"))

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Analysis model:   {config.analysis.model}")
    typer.echo(f"  Research model:   {config.research.model}")
    typer.echo(f"  Research enabled: {config.research.enabled}")
    typer.echo(f"  Record delay:     {config.analysis.inter_record_delay_seconds}s")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")
    typer.echo("")
    for key in (ANALYSIS_API_KEY, RESEARCH_API_KEY):
        state = "set" if creds.has(key) else "missing"
        typer.echo(f"  {ENV_VAR_NAMES[key]:<20}{state}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("analyze")
def analyze(
    input_file: str = typer.Argument(..., help="Portfolio JSON file (raw rows or enriched output)."),
    output_file: str = typer.Option(
        ...,
        "--output",
        "-o",
        help="Where to write the enriched records (JSON).",
    ),
    no_research: bool = typer.Option(
        False,
        "--no-research",
        help="Skip external research even when PERPLEXITY_API_KEY is set.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run AI analysis over every company and write the enriched portfolio.

    Companies are analyzed one at a time. Re-running on an enriched file
    replaces each company's previous analysis. Ctrl-C abandons the in-flight
    company, which stays Pending, and no further companies are dispatched;
    everything completed so far is still written.
    """
    from portfolio_advisor.credentials import MissingCredentialError, credentials_from_environment
    from portfolio_advisor.pipeline.orchestrator import BatchOrchestrator, FatalBatchError
    from portfolio_advisor.reporting.export import export_enriched_json

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if no_research:
        config = config.model_copy(
            update={"research": config.research.model_copy(update={"enabled": False})}
        )

    records = _load_portfolio_or_exit(input_file)
    typer.echo(f"Analyzing {len(records)} companies from: {input_file}")

    creds = credentials_from_environment(Path(".env"))
    orchestrator = BatchOrchestrator(config, creds, progress=_echo_progress)
    typer.echo(f"  Research: {'on' if orchestrator.augmenter.enabled else 'off'}")

    abort = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: abort.set())
    try:
        result = orchestrator.run(records, abort_signal=abort)
    except MissingCredentialError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except FatalBatchError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    path = export_enriched_json(result.records, Path(output_file))

    typer.echo("")
    typer.echo(f"  Batch state: {result.state.value}")
    typer.echo(f"  Completed:   {result.completed_count}/{len(result.records)}")
    if result.failed_ids:
        typer.echo(f"  Failed:      {len(result.failed_ids)}")
        for line in result.errors[:5]:
            typer.echo(f"    {line}")
    typer.echo(f"  Written to:  {path}")
    typer.echo("[OK] Analysis complete." if result.state.value == "completed" else "[WARN] Analysis cancelled.")


@app.command("summary")
def summary(
    input_file: str = typer.Argument(..., help="Portfolio JSON file (raw rows or enriched output)."),
    top_n: int = typer.Option(10, "--top", help="Leaderboard size."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Print headline metrics, the MOIC histogram and the efficiency leaderboard."""
    from portfolio_advisor.metrics.derived import (
        capital_efficiency_leaderboard,
        summarize_portfolio,
    )
    from portfolio_advisor.reporting.formatters import format_portfolio_summary

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    records = _load_portfolio_or_exit(input_file)
    typer.echo(
        format_portfolio_summary(
            summarize_portfolio(records),
            capital_efficiency_leaderboard(records, top_n=top_n),
        )
    )


@app.command("list")
def list_companies(
    input_file: str = typer.Argument(..., help="Portfolio JSON file (raw rows or enriched output)."),
    search_term: str = typer.Option("", "--search", "-s", help="Case-insensitive text search."),
    recommendations: Optional[list[str]] = typer.Option(
        None,
        "--recommendation",
        "-r",
        help="Keep these recommendations (repeatable, e.g. -r Hold -r Reinvest).",
    ),
    confidences: Optional[list[str]] = typer.Option(
        None,
        "--confidence",
        "-c",
        help="Keep these confidence labels (repeatable, e.g. -c High -c 'Very High').",
    ),
    investment_range: str = typer.Option(
        "",
        "--range",
        help="Total-investment bucket, e.g. 'Under $1M' or '$1M-$5M'.",
    ),
    sort_fields: Optional[list[str]] = typer.Option(
        None,
        "--sort",
        help="Sort field (repeatable; first is primary). Default: company_name.",
    ),
    descending: bool = typer.Option(False, "--desc", help="Sort the primary field descending."),
    detail: bool = typer.Option(False, "--detail", help="Print the full analysis per company."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Search, filter and sort the portfolio, then print it as a table."""
    from portfolio_advisor.filtering.filter_sort import FilterCriteria, SortKey, SortState, query
    from portfolio_advisor.reporting.formatters import (
        format_portfolio_table,
        format_record_detail,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        criteria = FilterCriteria.parse(
            recommendations=recommendations or (),
            confidence_labels=confidences or (),
            investment_range=investment_range,
        )
        fields = sort_fields or ["company_name"]
        keys = [SortKey(fields[0], descending=descending)]
        keys.extend(SortKey(f) for f in fields[1:])
        sort = SortState(keys=tuple(keys))
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    records = _load_portfolio_or_exit(input_file)
    matches = query(records, term=search_term, criteria=criteria, sort=sort)

    typer.echo(format_portfolio_table(matches, title=f"Portfolio ({len(matches)}/{len(records)})"))
    if detail:
        for item in matches:
            typer.echo(format_record_detail(item))


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
