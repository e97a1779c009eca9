"""CLI for rulecheck: run a rules file against recorded observations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from rulecheck.adapters import StaticRetrieval
from rulecheck.config import AppSettings, ObservabilityConfig
from rulecheck.engine import ValidationEngine
from rulecheck.exceptions import RuleConfigurationError
from rulecheck.loader import load_rules
from rulecheck.logging_config import setup_logging
from rulecheck.models import Rule, ValidationSummary

app = typer.Typer(name="rulecheck", help="Declarative rule-based validation")
console = Console()

_SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


def _load_rules_or_exit(rules_file: Path) -> list[Rule]:
    try:
        return load_rules(rules_file)
    except (RuleConfigurationError, FileNotFoundError, json.JSONDecodeError) as exc:
        console.print(f"[red]Cannot load rules: {exc}[/red]")
        raise typer.Exit(code=2) from exc


def _load_values(values_file: Path) -> dict:
    """Load observed values (target -> value) from a JSON file."""
    try:
        raw = json.loads(values_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Cannot load values: {exc}[/red]")
        raise typer.Exit(code=2) from exc
    if isinstance(raw, dict):
        return raw
    console.print(f"[red]Cannot load values: expected a JSON object in {values_file}[/red]")
    raise typer.Exit(code=2)


def _print_summary(summary: ValidationSummary) -> None:
    style = "green" if summary.passed else "red"
    console.print(
        f"\n[{style}]{summary.passed_rules}/{summary.total_rules} rules passed[/{style}] "
        f"({summary.passed_checks}/{summary.total_checks} checks, "
        f"{summary.total_execution_time_ms:.1f} ms)"
    )
    failures = ", ".join(
        f"[{_SEVERITY_STYLES[sev.value]}]{sev.value}: {count}[/{_SEVERITY_STYLES[sev.value]}]"
        for sev, count in summary.by_severity.items()
        if count
    )
    if failures:
        console.print(f"Failures by severity: {failures}")


@app.command()
def run(
    rules_file: Path = typer.Argument(..., help="YAML or JSON rules file"),
    values_file: Path = typer.Argument(..., help="JSON object mapping rule target to observed value"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the JSON export here"),
    max_workers: Optional[int] = typer.Option(None, "--max-workers", min=1),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-rule retrieval timeout (s)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate recorded observations against a rules file."""
    settings = AppSettings()
    setup_logging(
        ObservabilityConfig(
            log_level="DEBUG" if verbose else settings.observability.log_level,
            log_format=settings.observability.log_format,
        )
    )

    rules = _load_rules_or_exit(rules_file)
    engine = ValidationEngine(
        StaticRetrieval(_load_values(values_file)),
        max_workers=max_workers or settings.engine.max_workers,
        timeout_seconds=timeout or settings.engine.retrieval_timeout_seconds,
    )
    engine.add_rules(rules)

    console.print(f"[bold]Running {len(engine.list_enabled_rules())} rules from {rules_file}[/bold]")
    results = engine.validate_all()

    table = Table(title="Validation Results")
    table.add_column("Rule", style="cyan")
    table.add_column("Name")
    table.add_column("Result")
    table.add_column("Checks")
    table.add_column("Messages", max_width=70)
    for result in results:
        passed_checks = sum(1 for c in result.checks if c.passed)
        table.add_row(
            result.rule_id,
            result.rule_name,
            "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]",
            f"{passed_checks}/{len(result.checks)}",
            "\n".join([*result.errors, *result.warnings]),
        )
    console.print(table)

    summary = engine.get_summary()
    _print_summary(summary)

    if output:
        output.write_text(engine.export_json(), encoding="utf-8")
        console.print(f"[green]Results saved to {output}[/green]")

    if not summary.passed:
        raise typer.Exit(code=1)


@app.command(name="rules")
def list_rules(
    rules_file: Path = typer.Argument(..., help="YAML or JSON rules file"),
) -> None:
    """List the rules defined in a rules file."""
    rules = _load_rules_or_exit(rules_file)

    table = Table(title=f"Rules in {rules_file.name}")
    table.add_column("Rule", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Checks")
    table.add_column("Enabled")
    for rule in rules:
        table.add_row(
            rule.rule_id,
            rule.name,
            rule.category.value,
            rule.severity.value,
            str(len(rule.checks)),
            "yes" if rule.enabled else "no",
        )
    console.print(table)


if __name__ == "__main__":
    app()
