"""CLI for the ``statement_insights`` package.

Command handlers (``cmd_*``) return a process exit code; the Typer commands
wrap them. Environment variables (notably ``OPENAI_API_KEY``) are loaded from
a local ``.env`` using ``python-dotenv`` in the root callback.
"""

from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging, get_logger
from .models import FinancialGoal

_logger = get_logger("statement_insights.cli")


def _err(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)


def _read_rows(csv_path: Path) -> list[dict[str, str]] | None:
    from .ingest import read_rows

    try:
        with open(csv_path, encoding="utf-8", newline="") as f:
            return read_rows(f)
    except FileNotFoundError:
        _err(f"File not found: {csv_path}")
    except PermissionError:
        _err(f"Permission denied: {csv_path}")
    except csv.Error as e:
        _err(f"Failed to parse CSV: {e}")
    return None


def _fmt_amount(value: float) -> str:
    return f"{value:,.2f}"


# ---- Command handlers --------------------------------------------------------


def cmd_extract(description: str) -> int:
    """Print what the local layers make of one description."""

    from .category_rules import category_for
    from .heuristics import extract_merchant, matching_rules

    result = extract_merchant(description)
    rules = matching_rules(description)
    category = category_for(result.merchant) if result.merchant else None
    typer.echo(f"merchant\t{result.merchant or ''}")
    typer.echo(f"cache_key\t{result.cache_key}")
    typer.echo(f"rule\t{rules[0] if rules else ''}")
    typer.echo(f"category\t{category or ''}")
    return 0


def cmd_enrich(csv_path: Path, *, account_id: str, offline: bool) -> int:
    """Enrich a statement CSV and print ``date\\tmerchant\\tcategory\\tamount`` lines."""

    from .cache import EnrichmentCache
    from .enrich import Enricher, finalize_import
    from .errors import StatementParseError
    from .ingest import to_parsed
    from .remote import OpenAIEnrichmentClient
    from .storage import JsonFileStore

    if not offline and not os.getenv("OPENAI_API_KEY"):
        _err("OPENAI_API_KEY is not set in the environment (or pass --offline).")
        return 1

    rows = _read_rows(csv_path)
    if rows is None:
        return 1
    try:
        parsed = list(to_parsed(rows))
    except StatementParseError as e:
        _err(str(e))
        return 1

    cache = EnrichmentCache(JsonFileStore())
    cache.load()
    client = None if offline else OpenAIEnrichmentClient()
    report = Enricher(cache, client).enrich_all(parsed)
    _logger.info(
        "cli:enrich_done total=%d local=%d remote=%d fallbacks=%d",
        len(report.transactions),
        report.resolved_locally,
        report.resolved_remotely,
        report.fallbacks,
    )

    for tx in finalize_import(report.transactions, account_id=account_id):
        typer.echo(f"{tx.date.isoformat()}\t{tx.merchant}\t{tx.category}\t{_fmt_amount(tx.amount)}")
    return 0


def cmd_plan_budget(
    csv_path: Path,
    *,
    goal: FinancialGoal,
    target: float | None,
    group_pct: float,
) -> int:
    """Print budget drafts, their impact and the goal projection."""

    from .budget import (
        average_monthly_income,
        compute_drafts,
        goal_projection,
        group_minor,
        impact_analysis,
    )
    from .errors import StatementParseError
    from .ingest import to_transactions
    from .models import GOAL_LABELS, UserProfile

    rows = _read_rows(csv_path)
    if rows is None:
        return 1
    try:
        transactions = list(to_transactions(rows, account_id="cli"))
    except StatementParseError as e:
        _err(str(e))
        return 1

    profile = UserProfile(name="cli", primary_goal=goal, target_amount=target)
    drafts = compute_drafts(transactions, (), profile)
    if not drafts:
        typer.echo("No expense activity found.")
        return 0
    income = average_monthly_income(transactions)
    impact = impact_analysis(drafts, income)

    typer.echo(f"goal\t{GOAL_LABELS[goal]}")
    typer.echo("category\taverage\tlimit\tstrategy\tfrequency\tvolatility")
    for d in group_minor(drafts, group_pct):
        typer.echo(
            f"{d.category}\t{_fmt_amount(d.average)}\t{_fmt_amount(d.limit)}\t"
            f"{d.strategy}\t{d.frequency}\t{d.volatility:.2f}"
        )
    typer.echo(f"avg_monthly_income\t{_fmt_amount(income)}")
    typer.echo(f"new_total_budget\t{_fmt_amount(impact.new_total_budget)}")
    typer.echo(f"planned_net_savings\t{_fmt_amount(impact.planned_net_savings)}")
    typer.echo(f"freed_up_cash\t{_fmt_amount(impact.freed_up_cash)}")
    typer.echo(f"risky_cuts\t{impact.risky_cuts}")

    projection = goal_projection(target, impact.planned_net_savings)
    if projection is not None:
        typer.echo(f"months_to_goal\t{projection.months}")
        typer.echo(f"goal_date\t{projection.target_date.isoformat()}")
    return 0


# ---- Typer app ---------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Merchant enrichment and budget planning for M-PESA and bank statements. "
        "Loads OPENAI_API_KEY from a local .env before running."
    ),
)

# Module-level option object to satisfy ruff B008 (no calls in parameter
# defaults).
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--csv-path",
    help="Path to a statement CSV (date, description, amount, type[, category])",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files
    readable=True,
)


@app.command("extract")
def extract_cmd(
    description: Annotated[str, typer.Argument(help="Raw transaction description")],
) -> None:
    """Show the merchant, cache key and rule the local extractor produces."""

    raise typer.Exit(cmd_extract(description))


@app.command("enrich")
def enrich_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    *,
    account_id: str = typer.Option("default", help="Account the rows belong to."),
    offline: bool = typer.Option(
        False, help="Skip remote calls; unresolved rows get Unknown/Other."
    ),
) -> None:
    """Enrich a statement CSV through the rule, cache and remote layers."""

    raise typer.Exit(cmd_enrich(csv_path, account_id=account_id, offline=offline))


@app.command("plan-budget")
def plan_budget_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    *,
    goal: FinancialGoal = typer.Option(
        FinancialGoal.CONTROL_SPEND, help="Primary financial goal."
    ),
    target: float | None = typer.Option(None, help="Savings target amount."),
    group_pct: float = typer.Option(
        0.0, help="Group categories under this percent of total spend."
    ),
) -> None:
    """Draft monthly budgets from a categorized CSV."""

    raise typer.Exit(cmd_plan_budget(csv_path, goal=goal, target=target, group_pct=group_pct))


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level name or number (default: INSIGHTS_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    app()
