"""Rich table renderers for diagnostic reports."""

from __future__ import annotations

from collections.abc import Iterable

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from propdx.domain.models import (
    DEPENDENCY_HEALTHY,
    DEPENDENCY_UNHEALTHY,
    PRIORITY_HIGH,
    PRIORITY_MEDIUM,
    STATUS_APPLIED,
    STATUS_RECOMMENDED,
    AdvisoryReport,
    DependencyReport,
    DiagnosisReport,
    EnvironmentReport,
    FullReport,
    SuiteReport,
)


class RichStyles:
    ACCENT = "bold cyan"
    SECONDARY = "magenta"
    SUCCESS = "green"
    WARNING = "yellow"
    FAILURE = "red"
    EMPHASIS = "bold"
    DETAIL = "white"


_LEVEL_STYLES = {
    "excellent": RichStyles.SUCCESS,
    "good": RichStyles.SUCCESS,
    "fair": RichStyles.WARNING,
    "poor": RichStyles.FAILURE,
}
_VERDICT_STYLES = {
    "operational": RichStyles.SUCCESS,
    "degraded": RichStyles.WARNING,
    "attention": RichStyles.FAILURE,
}


def _mark(passed: bool) -> str:
    return "[green]PASS[/green]" if passed else "[red]FAIL[/red]"


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def _dependency_style(status: str) -> str:
    if status == DEPENDENCY_HEALTHY:
        return RichStyles.SUCCESS
    if status == DEPENDENCY_UNHEALTHY:
        return RichStyles.WARNING
    return RichStyles.FAILURE


def _action_style(status: str) -> str:
    if status == STATUS_APPLIED:
        return RichStyles.SUCCESS
    if status == STATUS_RECOMMENDED:
        return RichStyles.WARNING
    return RichStyles.FAILURE


def _priority_style(priority: str) -> str:
    if priority == PRIORITY_HIGH:
        return RichStyles.FAILURE
    if priority == PRIORITY_MEDIUM:
        return RichStyles.WARNING
    return RichStyles.DETAIL


def _suite_table(report: SuiteReport) -> Table:
    table = Table(title=f"{report.feature} tests", box=box.SIMPLE_HEAVY)
    table.add_column("Probe", style=RichStyles.ACCENT)
    table.add_column("Result")
    table.add_column("Duration", justify="right")
    table.add_column("Details", style=RichStyles.DETAIL)
    for outcome in report.outcomes:
        details = escape(outcome.failure_reason or "")
        if outcome.suggestion:
            details = f"{details}\n[dim]Suggestion: {escape(outcome.suggestion)}[/dim]"
        for warning in outcome.warnings:
            details = f"{details}\n[yellow]{escape(warning)}[/yellow]".lstrip("\n")
        table.add_row(outcome.probe_name, _mark(outcome.passed), f"{outcome.duration_ms}ms", details)
    return table


def render_suites(report: SuiteReport | Iterable[SuiteReport], console: Console) -> None:
    reports = (report,) if isinstance(report, SuiteReport) else tuple(report)
    for suite in reports:
        console.print(_suite_table(suite))
        console.print(
            f"Passed {suite.passed}/{len(suite.outcomes)} "
            f"({suite.success_rate}%), verdict: "
            f"{_styled(suite.verdict, _VERDICT_STYLES.get(suite.verdict, RichStyles.DETAIL))}"
        )
        console.print()


def render_dependencies(report: DependencyReport, console: Console) -> None:
    table = Table(title="Dependencies", box=box.SIMPLE_HEAVY)
    table.add_column("Dependency", style=RichStyles.ACCENT)
    table.add_column("Category", style=RichStyles.SECONDARY)
    table.add_column("Status")
    table.add_column("Credential")
    table.add_column("Detail", style=RichStyles.DETAIL)
    for record in report.records:
        if record.configured is None:
            credential = "-"
        else:
            credential = "configured" if record.configured else "[red]missing[/red]"
        table.add_row(
            record.name,
            record.category.value,
            _styled(record.status, _dependency_style(record.status)),
            credential,
            escape(record.detail),
        )
    console.print(table)
    console.print(f"Healthy {report.healthy}/{report.total}")


def render_environment(report: EnvironmentReport, console: Console) -> None:
    table = Table(title="Environment variables", box=box.SIMPLE_HEAVY)
    table.add_column("Variable", style=RichStyles.ACCENT)
    table.add_column("Required")
    table.add_column("Present")
    table.add_column("Valid")
    table.add_column("Value", style=RichStyles.DETAIL)
    for record in (*report.required, *report.optional):
        required = "critical" if record.critical else ("yes" if record.required else "no")
        value = escape(record.masked_value)
        if record.note:
            value = f"{value} [yellow]({record.note})[/yellow]"
        table.add_row(
            record.name,
            required,
            _mark(record.present),
            _mark(record.valid) if record.required else "-",
            value,
        )
    console.print(table)

    security = Table(title="Security checks", box=box.SIMPLE)
    security.add_column("Check", style=RichStyles.ACCENT)
    security.add_column("Result")
    security.add_column("Description", style=RichStyles.DETAIL)
    for check in report.security:
        security.add_row(check.name, _mark(check.passed), escape(check.description))
    console.print(security)

    for setting in report.performance:
        console.print(f"{setting.name}: {setting.value} (optimal: {setting.optimal})")
    verdict = "[green]ready[/green]" if report.ready else "[red]not ready[/red]"
    console.print(f"Production readiness: {verdict}")


def render_advisory(report: AdvisoryReport, console: Console) -> None:
    console.print("[dim]Advisory only: no changes were made to the target service.[/dim]")
    table = Table(title="Advisory checks", box=box.SIMPLE_HEAVY)
    table.add_column("Category", style=RichStyles.SECONDARY)
    table.add_column("Check", style=RichStyles.ACCENT)
    table.add_column("Status")
    table.add_column("Detail", style=RichStyles.DETAIL)
    for action in report.actions:
        detail = escape(action.detail)
        if action.recommendation:
            detail = f"{detail}\n[dim]{escape(action.recommendation)}[/dim]"
        if action.current is not None or action.target is not None:
            detail = f"{detail}\ncurrent: {action.current or '-'} target: {action.target or '-'}"
        table.add_row(
            action.category,
            action.issue,
            _styled(action.status, _action_style(action.status)),
            detail,
        )
    console.print(table)
    console.print(
        f"Applied {report.applied}, failed {report.failed}, recommended {report.recommended}"
    )
    for category, steps in report.manual_steps.items():
        console.print(f"\n[bold]Manual steps for {category}[/bold]")
        for index, step in enumerate(steps, start=1):
            console.print(f"  {index}. {escape(step)}")


def _recommendations_table(report: DiagnosisReport) -> Table:
    table = Table(title="Recommendations", box=box.SIMPLE)
    table.add_column("Priority")
    table.add_column("Category", style=RichStyles.SECONDARY)
    table.add_column("Issue", style=RichStyles.ACCENT)
    table.add_column("Action", style=RichStyles.DETAIL)
    for item in report.recommendations:
        table.add_row(
            _styled(item.priority, _priority_style(item.priority)),
            item.category,
            escape(item.issue),
            escape(item.action),
        )
    return table


def render_diagnosis(report: DiagnosisReport, console: Console) -> None:
    render_environment(report.environment, console)
    console.print()
    render_dependencies(report.dependencies, console)
    console.print()

    features = Table(title="Features", box=box.SIMPLE_HEAVY)
    features.add_column("Feature", style=RichStyles.ACCENT)
    features.add_column("Status")
    features.add_column("Response time", justify="right")
    features.add_column("Detail", style=RichStyles.DETAIL)
    for name, result in report.feature_results.items():
        status_style = RichStyles.SUCCESS if result.operational else RichStyles.FAILURE
        features.add_row(
            name,
            _styled(result.status, status_style),
            f"{result.response_time_ms}ms",
            escape(result.outcome.failure_reason or ""),
        )
    console.print(features)

    if report.performance is not None:
        perf = report.performance
        console.print(
            f"Uptime {perf.uptime_seconds}s, memory {perf.memory_mb}MB, "
            f"runtime {perf.runtime_version or 'unknown'}"
        )
    else:
        console.print("[yellow]Performance snapshot unavailable[/yellow]")

    if report.recommendations:
        console.print(_recommendations_table(report))
    level_style = _LEVEL_STYLES.get(report.health_level, RichStyles.DETAIL)
    console.print(
        f"[bold]Health score:[/bold] {report.health_score}% "
        f"({_styled(report.health_level, level_style)})"
    )
    if report.cancelled:
        console.print("[yellow]Time budget exhausted; some probes were cancelled.[/yellow]")


def render_full(report: FullReport, console: Console) -> None:
    render_environment(report.environment, console)
    console.print()
    render_dependencies(report.dependencies, console)
    console.print()
    render_suites(report.suites, console)
    if report.cancelled:
        console.print("[yellow]Time budget exhausted; some probes were cancelled.[/yellow]")


__all__ = [
    "RichStyles",
    "render_advisory",
    "render_dependencies",
    "render_diagnosis",
    "render_environment",
    "render_full",
    "render_suites",
]
