"""Command-line interface for the risk consolidator.

Provides ``consolidate`` and ``detect`` commands with rich terminal output
using the ``click`` and ``rich`` libraries.

Usage::

    risk-consolidator consolidate tiers.json
    risk-consolidator consolidate --threshold 0.6 --output json tiers.json
    risk-consolidator detect tiers.json
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .analyzer import ThreeTierAnalyzer
from .config import ConfigurationError, DuplicationConfig, load_config
from .detector import DuplicationDetector
from .models import ConsolidationStrategy, Severity, ThreeTierAnalysisResult
from .parsers import AnalysisInput, load_analysis_input
from .report import build_detection_report, render_summary

console = Console()


def _stderr_logger(*args: object) -> structlog.PrintLogger:
    """Logger factory bound to whatever ``sys.stderr`` is at call time."""
    return structlog.PrintLogger(file=sys.stderr)


def _get_severity_style(level: Severity) -> str:
    """Return a rich style string for a severity level."""
    return {
        Severity.HIGH: "bold red",
        Severity.MEDIUM: "bold yellow",
        Severity.LOW: "dim green",
    }.get(level, "")


def _get_strategy_style(strategy: ConsolidationStrategy) -> str:
    return {
        ConsolidationStrategy.MERGED: "bold cyan",
        ConsolidationStrategy.ENHANCED: "bold magenta",
        ConsolidationStrategy.UNIQUE: "dim",
    }.get(strategy, "")


@click.group()
@click.version_option(package_name="contract-risk-consolidator")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
def main(debug: bool) -> None:
    """Contract Risk Consolidator: merge multi-tier contract risk findings.

    De-duplicates risks proposed by the template, industry and general
    analysis tiers and explains every merge decision.
    """
    level = logging.DEBUG if debug else logging.WARNING
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
    )


def _load_request(
    file: Path,
    threshold: float | None,
    env_file: Path | None,
) -> tuple[AnalysisInput, DuplicationConfig]:
    """Load the request and resolve its config: file, then env, then flags."""
    request = load_analysis_input(file)
    config = request.config
    if env_file is not None:
        config = load_config(env_file)
    if threshold is not None:
        config = config.with_threshold(threshold)
    return request, config


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.option("--save", "-s", type=click.Path(path_type=Path), default=None,
              help="Save results to a JSON file.")
@click.option("--threshold", "-t", type=float, default=None,
              help="Override the similarity threshold (0-1).")
@click.option("--env-file", type=click.Path(exists=True, path_type=Path), default=None,
              help="Load RISK_* configuration from a .env file.")
@click.option("--workers", "-w", type=int, default=None,
              help="Score comparisons in parallel with this many threads.")
def consolidate(
    file: Path,
    output: str,
    save: Path | None,
    threshold: float | None,
    env_file: Path | None,
    workers: int | None,
) -> None:
    """Consolidate the three tiers stored in a JSON request file.

    Example: risk-consolidator consolidate tiers.json
    """
    try:
        request, config = _load_request(file, threshold, env_file)
        result = ThreeTierAnalyzer(config, max_workers=workers).analyze_input(request)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/] {escape(str(e))}")
        sys.exit(2)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Error:[/] {escape(str(e))}")
        sys.exit(1)

    if output == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _render_result(result)

    if save:
        save.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        console.print(f"\n[dim]Results saved to {save}[/]")


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.option("--threshold", "-t", type=float, default=None,
              help="Override the similarity threshold (0-1).")
def detect(file: Path, output: str, threshold: float | None) -> None:
    """Test duplicate detection of general risks against template risks.

    Example: risk-consolidator detect --threshold 0.5 tiers.json
    """
    try:
        request, config = _load_request(file, threshold, None)
        detections = DuplicationDetector(config).detect(
            request.general.risks, request.template.risks
        )
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/] {escape(str(e))}")
        sys.exit(2)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Error:[/] {escape(str(e))}")
        sys.exit(1)

    report = build_detection_report(detections, config)

    if output == "json":
        click.echo(json.dumps({
            "results": [d.to_dict() for d in detections],
            "report": report.to_dict(),
            "config": config.to_dict(),
        }, indent=2))
        return

    table = Table(title="Duplicate Detection", show_lines=True)
    table.add_column("General risk", style="white", max_width=40)
    table.add_column("Best template match", style="white", max_width=40)
    table.add_column("Score", justify="center", width=7)
    table.add_column("Dup?", justify="center", width=5)
    table.add_column("Reason", style="dim", max_width=40)

    for d in detections:
        table.add_row(
            f"#{d.general_risk.id} {d.general_risk.title}",
            f"#{d.template_risk.id} {d.template_risk.title}" if d.template_risk else "-",
            f"{d.similarity_score:.2f}",
            Text("yes", style="bold red") if d.is_duplicate else Text("no", style="green"),
            d.reason,
        )

    console.print()
    console.print(table)
    console.print(Panel(Text(render_summary(report)), title="Report", border_style="blue"))


# ------------------------------------------------------------------
# Rich rendering helpers
# ------------------------------------------------------------------

def _render_result(result: ThreeTierAnalysisResult) -> None:
    """Render a ThreeTierAnalysisResult with rich formatting."""
    consolidated = result.consolidated_result
    debug = result.debug_information
    industry_count = (
        len(result.industry_pattern_analysis.risks)
        if result.industry_pattern_analysis is not None
        else 0
    )

    console.print()
    console.print(Panel(
        f"Template: {len(result.contract_specific_analysis.risks)} | "
        f"Industry: {industry_count} | "
        f"General: {len(result.general_ai_analysis.risks)} | "
        f"[bold]Final: {len(consolidated.final_risks)}[/]"
        + (f"\nIndustry: {consolidated.industry_context}" if consolidated.industry_context else ""),
        title="Risk Consolidation",
        border_style="blue",
    ))

    sources = {record.risk_id: record for record in consolidated.risk_sources}
    table = Table(title="Consolidated Risks", show_lines=True)
    table.add_column("#", justify="right", width=4)
    table.add_column("Title", style="white", max_width=40)
    table.add_column("Category", style="cyan", width=18)
    table.add_column("Severity", justify="center", width=8)
    table.add_column("Sources", width=22)
    table.add_column("Strategy", justify="center", width=9)

    for risk in consolidated.final_risks:
        record = sources[risk.id]
        table.add_row(
            str(risk.id),
            risk.title,
            risk.category,
            Text(risk.severity.value.upper(), style=_get_severity_style(risk.severity)),
            ", ".join(s.value for s in record.sources),
            Text(record.strategy.value, style=_get_strategy_style(record.strategy)),
        )

    console.print(table)
    console.print()

    if debug.consolidation_decisions:
        console.print("[bold]Consolidation Decisions[/]")
        for decision in debug.consolidation_decisions:
            console.print(
                f"  {decision.sequence:>3}. [{decision.tier.value}] risk {decision.risk_id} "
                f"-> {decision.decision.value}: {decision.reason}",
                markup=False,
            )
        console.print()

    score = consolidated.overall_confidence
    if score > 0.7:
        score_style = "bold green"
    elif score > 0.4:
        score_style = "bold yellow"
    else:
        score_style = "bold red"

    console.print(f"Overall Confidence: [{score_style}]{score:.0%}[/]")
    console.print()


if __name__ == "__main__":
    main()
