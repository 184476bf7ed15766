"""
Table Rendering for the Colony CLI
==================================

Rich-based rendering of resources, validation results and compression reports.
"""

from typing import Iterable, Optional

from rich.box import ROUNDED
from rich.console import Console
from rich.table import Table

from Colony.core.optimization.context_compressor import CompressionResult
from Colony.core.optimization.resources import ResourceProfile
from Colony.core.validation.types import Grade, Severity, ValidationResult

GRADE_STYLES = {
    Grade.EXCELLENT: "bold green",
    Grade.GOOD: "green",
    Grade.ACCEPTABLE: "yellow",
    Grade.POOR: "red",
    Grade.CRITICAL: "bold red",
}

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}


def resources_table(resources: Iterable[ResourceProfile], fallback: Optional[str] = None) -> Table:
    table = Table(title="Resources", box=ROUNDED, header_style="bold cyan")
    for column in ("Name", "Cost/unit", "Quality", "Speed", "Context", "Capabilities"):
        table.add_column(column)
    for profile in resources:
        name = f"{profile.name} (fallback)" if profile.name == fallback else profile.name
        table.add_row(
            name,
            f"{profile.cost_per_unit:.7f}",
            f"{profile.quality:.0f}",
            f"{profile.speed:.0f}",
            f"{profile.context_window:,}",
            ", ".join(sorted(profile.capabilities)),
        )
    return table


def metrics_table(result: ValidationResult) -> Table:
    table = Table(title="Quality metrics", box=ROUNDED, header_style="bold cyan")
    table.add_column("Metric")
    table.add_column("Score", justify="right")
    for name, score in result.metrics.to_dict().items():
        style = "bold" if name == "overall" else None
        table.add_row(name.replace("_", " "), f"{score:.0f}", style=style)
    return table


def issues_table(result: ValidationResult) -> Table:
    table = Table(title=f"Issues ({len(result.issues)})", box=ROUNDED, header_style="bold cyan")
    for column in ("Severity", "Category", "Line", "Message"):
        table.add_column(column)
    for issue in result.issues:
        table.add_row(
            f"[{SEVERITY_STYLES[issue.severity]}]{issue.severity.value}[/]",
            issue.category.value,
            str(issue.line) if issue.line else "-",
            issue.message,
        )
    return table


def print_validation(console: Console, result: ValidationResult, path: str) -> None:
    style = GRADE_STYLES[result.grade]
    verdict = "[green]valid[/]" if result.is_valid else "[red]invalid[/]"
    console.print(
        f"[bold]{path}[/]: {verdict}, score [{style}]{result.quality_score:.0f}[/] "
        f"([{style}]{result.grade.value}[/])"
    )
    if result.analysis is not None:
        analysis = result.analysis
        console.print(
            f"language={analysis.language} complexity={analysis.complexity} "
            f"loc={analysis.lines_of_code} functions={analysis.functions} classes={analysis.classes}",
            style="dim",
        )
    console.print(metrics_table(result))
    if result.issues:
        console.print(issues_table(result))
    for suggestion in result.suggestions:
        console.print(f"  - {suggestion}")


def print_compression(console: Console, report: CompressionResult) -> None:
    stages = ", ".join(report.stages) if report.stages else "none"
    console.print(
        f"{report.original_units} -> {report.final_units} units "
        f"(saved {report.units_saved}); stages: {stages}",
        style="dim",
    )


__all__ = [
    'resources_table',
    'metrics_table',
    'issues_table',
    'print_validation',
    'print_compression',
]
