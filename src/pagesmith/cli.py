"""
pagesmith CLI - score artifacts and run the generation pipeline.

Commands:
    pagesmith score FILE [--content JSON] [--industry NAME] [--json]
    pagesmith utilization CONTENT_JSON FILE
    pagesmith rules
    pagesmith generate "request" [--provider NAME] [--out FILE] [--trace-dir DIR]
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import PipelineConfig
from .content import ContentUtilizationAnalyzer
from .errors import PagesmithError
from .security import ValidationError, validate_dict_size

app = typer.Typer(help="Generate UI artifacts and score them against UI/UX rules")
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="JSON config file (defaults to PAGESMITH_* environment)"
    ),
):
    """Configure logging and load the pipeline config once for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )
    try:
        config = PipelineConfig.from_file(config_file) if config_file else PipelineConfig.from_env()
    except PagesmithError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    ctx.obj = config


def _config(ctx: typer.Context) -> PipelineConfig:
    return ctx.obj if isinstance(ctx.obj, PipelineConfig) else PipelineConfig()


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] cannot read {path}: {e}")
        raise typer.Exit(1)


def _read_json(path: Path) -> Any:
    try:
        data = json.loads(_read_text(path))
        if isinstance(data, dict):
            validate_dict_size(data, path.name)
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] {path} is not valid JSON: {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    return data


# =============================================================================
# SCORE
# =============================================================================


@app.command()
def score(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Artifact file to score"),
    content: Optional[Path] = typer.Option(None, help="Content payload JSON"),
    industry: Optional[str] = typer.Option(None, help="Industry profile name"),
    design: Optional[Path] = typer.Option(None, help="Design payload JSON"),
    as_json: bool = typer.Option(False, "--json", help="Print the full report as JSON"),
):
    """Score an artifact with the combined gate. Exit code 1 when it does not pass."""
    from .scoring import ArtifactValidator

    artifact = _read_text(file)
    content_payload = _read_json(content) if content else None
    design_payload = _read_json(design) if design else None
    metadata = {"industry": industry} if industry else {}

    try:
        report = ArtifactValidator(_config(ctx)).validate(
            artifact, metadata, design_payload, content_payload
        )
    except PagesmithError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(report.to_dict(), default=str))
    else:
        table = Table(title=f"Category scores: {file.name}")
        table.add_column("Category", style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Failed rules")
        for name, category in report.categories.items():
            failed = [r.rule_id for r in category.rules if r.status.value == "FAIL"]
            colour = "green" if category.score_percentage >= 85 else "yellow" if category.score_percentage >= 60 else "red"
            table.add_row(name, f"[{colour}]{category.score_percentage}%[/{colour}]", ", ".join(failed))
        console.print(table)

        console.print(
            f"\nScore: [bold]{report.overall_score}%[/bold] "
            f"(rules {report.rule_score}%, {report.compliance.value})"
        )
        if report.template:
            console.print(f"Template avoidance: {report.template['score']}")
        if report.industry:
            console.print(f"Industry ({report.industry['industry']}): {report.industry['score']}")
        if report.content_utilization:
            console.print(f"Content utilization: {report.content_utilization['percentage']}%")
        for issue in report.critical_issues:
            console.print(f"  [red]-[/red] {issue}")

    if report.passed:
        console.print("\n[bold green]PASSED[/bold green]")
    else:
        console.print("\n[bold red]NOT PASSED[/bold red]")
        raise typer.Exit(1)


# =============================================================================
# UTILIZATION
# =============================================================================


@app.command()
def utilization(
    ctx: typer.Context,
    content_json: Path = typer.Argument(..., help="Content payload JSON"),
    file: Path = typer.Argument(..., help="Artifact file"),
):
    """Report how much of a content payload made it into an artifact."""
    analyzer = ContentUtilizationAnalyzer(_config(ctx).content_threshold)
    report = analyzer.analyze(_read_json(content_json), _read_text(file))

    table = Table(title=f"Content utilization: {report.percentage}%")
    table.add_column("Element", style="bold")
    table.add_column("Used")
    table.add_column("Match")
    table.add_column("Content")
    for usage in report.details:
        used = "[green]yes[/green]" if usage.used else "[red]no[/red]"
        table.add_row(usage.element.type, used, usage.strategy.value, usage.element.content[:60])
    console.print(table)

    for recommendation in report.recommendations:
        console.print(f"  [yellow]-[/yellow] {recommendation}")
    if not report.passed:
        raise typer.Exit(1)


# =============================================================================
# RULES
# =============================================================================


@app.command()
def rules(ctx: typer.Context):
    """List the rule catalog."""
    from .scoring import DETECTORS, RuleCatalog

    config = _config(ctx)
    try:
        catalog = RuleCatalog.load(config.rules_path, mandatory_rules=config.mandatory_rules)
    except PagesmithError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="UI/UX rules")
    table.add_column("Rule", style="bold")
    table.add_column("Category")
    table.add_column("Mandatory")
    table.add_column("Check")
    for rule in catalog.rules:
        table.add_row(
            rule.id,
            rule.category,
            "[red]yes[/red]" if rule.mandatory else "",
            "detector" if rule.id in DETECTORS else "keywords",
        )
    console.print(table)


# =============================================================================
# GENERATE
# =============================================================================


@app.command()
def generate(
    ctx: typer.Context,
    request: str = typer.Argument(..., help="What to build, in plain language"),
    provider: Optional[str] = typer.Option(None, help="anthropic, openai or google"),
    model: Optional[str] = typer.Option(None, help="Model name override"),
    mode: str = typer.Option("full", help="full or quick"),
    out: Optional[Path] = typer.Option(None, help="Write the final artifact here"),
    trace_dir: Optional[Path] = typer.Option(None, help="Write JSONL trace events here"),
    session_id: Optional[str] = typer.Option(None, help="Session identifier"),
):
    """Run the full pipeline for one request."""
    from .llm import create_client
    from .orchestration import PipelineOrchestrator
    from .orchestration.scheduler import INPUT_STAGE
    from .stages import build_default_stages

    config = _config(ctx)
    if trace_dir is not None:
        config.trace_dir = trace_dir

    client = create_client(provider=provider, model=model)
    orchestrator = PipelineOrchestrator(build_default_stages(client, config), config)
    result = asyncio.run(orchestrator.submit(request, session_id=session_id, mode=mode))
    if result.failed_stage == INPUT_STAGE:
        console.print(f"[bold red]Invalid request:[/bold red] {result.error}")
        raise typer.Exit(1)
    if not result.success:
        console.print(
            f"[bold red]Failed at {result.failed_stage or 'pipeline'}:[/bold red] {result.error}"
        )
        raise typer.Exit(1)

    summary = result.to_dict()
    console.print(
        f"[bold]{summary['loop_state']}[/bold] after {summary['attempts']} attempt(s): "
        f"score {summary['validation_score']}%, "
        f"completeness {summary['completeness_percent']}%, "
        f"{summary['execution_time_ms'] / 1000:.1f}s"
    )
    usage = client.total_usage
    console.print(
        f"Tokens: {usage.total_tokens} ({usage.cached_input_tokens} cached), "
        f"~${usage.estimated_cost_usd:.4f}"
    )

    if out:
        out.write_text(result.final_artifact or "", encoding="utf-8")
        console.print(f"Artifact written to {out}")
    else:
        console.print(result.final_artifact or "")


if __name__ == "__main__":
    app()
