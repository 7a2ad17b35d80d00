"""Main CLI entry point."""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from unlock.services.errors import InvalidRequestError, RulesEngineError
from unlock.services.schemas import (
    RuleValidationResult,
    UnlockEvaluationRequest,
    UnlockEvaluationResponse,
)

app = typer.Typer(
    name="unlock",
    help="Unlock Rules Engine CLI",
    add_completion=False,
)

console = Console()


def _read_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise typer.BadParameter(f"Cannot read JSON from {path}: {e}")


@app.command()
def init_db(
    force: bool = typer.Option(False, "--force", "-f", help="Drop and recreate tables"),
):
    """Initialize the database schema."""
    from db.connection import get_engine, init_database
    from db.models import Base

    with console.status("Initializing database..."):
        if force:
            Base.metadata.drop_all(get_engine())
            console.print("[yellow]Dropped existing tables[/yellow]")
        tables: list[str] = init_database()

    console.print(f"[green]Database initialized[/green] ({', '.join(tables)})")


@app.command()
def migrate(
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be applied"),
):
    """Apply pending SQL migrations."""
    from migrations.migrate import migrate as run_migrations

    applied: list[str] = run_migrations(dry_run=dry_run)
    if not applied:
        console.print("[green]No pending migrations[/green]")
        return
    prefix: str = "[yellow]Would apply[/yellow]" if dry_run else "[green]Applied[/green]"
    for name in applied:
        console.print(f"{prefix} {name}")


@app.command()
def validate_rule(
    rule_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Rule JSON file"),
):
    """Validate a rule definition (or a list of them) before activation."""
    from config import get_settings
    from unlock.services.validation import RuleValidator

    raw: object = _read_json(rule_file)
    candidates: list[object] = raw if isinstance(raw, list) else [raw]
    validator = RuleValidator(get_settings().engine.excessive_unlock_minutes)

    all_valid: bool = True
    for i, candidate in enumerate(candidates):
        label: str = f"#{i}"
        if not isinstance(candidate, dict):
            console.print(f"[red]{label}: not a JSON object[/red]")
            all_valid = False
            continue
        label = str(candidate.get("name") or label)
        result: RuleValidationResult = validator.validate(candidate)
        all_valid = all_valid and result.valid

        status: str = "[green]valid[/green]" if result.valid else "[red]invalid[/red]"
        console.print(f"{label}: {status}")
        if not result.errors and not result.warnings:
            continue

        table = Table(show_header=True)
        table.add_column("Level")
        table.add_column("Field", style="cyan")
        table.add_column("Message")
        for err in result.errors:
            table.add_row("[red]error[/red]", err.field, err.message)
        for warn in result.warnings:
            table.add_row(f"[yellow]warning ({warn.severity.value})[/yellow]", warn.field, warn.message)
        console.print(table)

    if not all_valid:
        raise typer.Exit(code=1)


@app.command()
def evaluate(
    rules_file: Path = typer.Option(..., "--rules", "-r", exists=True, help="Rules JSON file"),
    context_file: Path = typer.Option(
        ..., "--context", "-c", exists=True, help="Evaluation context JSON file"
    ),
    user_id: str | None = typer.Option(None, "--user-id", "-u", help="Override the user id"),
):
    """Evaluate one attempt context against rules from a file (no limits, no ledger)."""
    from unlock.services.rules_engine import UnlockRulesEngine
    from unlock.services.stores import StaticRuleStore

    raw_context: object = _read_json(context_file)
    if not isinstance(raw_context, dict):
        raise typer.BadParameter(f"{context_file} must contain a JSON object")
    if user_id:
        raw_context["userId"] = user_id
    uid: object = raw_context.get("userId") or raw_context.get("user_id")

    try:
        request = UnlockEvaluationRequest.from_dict({"userId": uid, "context": raw_context})
        engine = UnlockRulesEngine(StaticRuleStore.from_file(rules_file))
        response: UnlockEvaluationResponse = engine.evaluate_request(request)
    except InvalidRequestError as e:
        console.print(f"[red]Invalid context:[/red] {e}")
        raise typer.Exit(code=2)
    except RulesEngineError as e:
        console.print(f"[red]Evaluation failed:[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Triggered rules for {response.user_id}")
    table.add_column("Rule", style="cyan")
    table.add_column("Minutes", justify="right", style="green")
    table.add_column("Bonus", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Matched")
    for result in response.triggered_rules:
        table.add_row(
            result.rule_name,
            str(result.unlock_minutes),
            str(result.bonus_minutes or 0),
            f"{result.confidence:.2f}",
            ", ".join(result.metadata.criteria_matched),
        )
    console.print(table)

    summary = response.summary
    console.print(
        f"Total: [bold green]{response.total_unlock_minutes}[/bold green] min"
        f" (+{response.total_bonus_minutes} bonus)"
        f"  evaluated={summary.rules_evaluated}"
        f" triggered={summary.rules_triggered}"
        f" blocked={summary.rules_blocked}"
    )
    console.print(response.combined_message)
    if response.achievements:
        console.print(f"Achievements: {', '.join(response.achievements)}")


@app.command()
def templates():
    """List the prebuilt rule templates."""
    from unlock.services.templates import list_templates

    table = Table(title="Rule Templates")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Minutes", justify="right", style="green")
    for t in list_templates():
        table.add_row(t.key, t.name, t.category.value, str(t.action.get("unlockMinutes", 0)))
    console.print(table)


@app.command()
def list_rules(
    active_only: bool = typer.Option(False, "--active-only", help="Hide inactive rules"),
):
    """List rules stored in the database."""
    from db.connection import get_session
    from unlock.services.rule_store import SqlRuleStore

    with get_session() as session:
        rules = SqlRuleStore(session).list_rules(active_only=active_only)

    table = Table(title="Unlock Rules")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Priority", justify="right")
    table.add_column("Active")
    table.add_column("Minutes", justify="right", style="green")
    for rule in rules:
        table.add_row(
            rule.id,
            rule.name,
            str(rule.priority),
            "yes" if rule.is_active else "[dim]no[/dim]",
            str(rule.action.unlock_minutes),
        )
    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
