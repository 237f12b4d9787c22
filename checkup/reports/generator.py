"""
Report generator for audit results.

Generates:
- Markdown reports for human reading
- JSON reports for machine processing
"""

import json
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from ..core.models import RunSummary, Severity

SEVERITY_ORDER = [Severity.ERROR, Severity.WARNING, Severity.INFO, Severity.SUCCESS]

SEVERITY_EMOJI = {
    Severity.ERROR: "🔴",
    Severity.WARNING: "🟡",
    Severity.INFO: "🔵",
    Severity.SUCCESS: "🟢",
}


class ReportGenerator:
    """Генератор отчётов аудита."""

    def __init__(self, output_dir: Optional[Path] = None):
        """
        Args:
            output_dir: Директория для сохранения отчётов (по умолчанию checkup_reports/)
        """
        self.output_dir = Path(output_dir) if output_dir else Path("checkup_reports")
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def generate_report(self, summary: RunSummary, format: str = "markdown") -> str:
        """
        Генерация отчёта.

        Args:
            summary: Итог запуска
            format: Формат отчёта ("markdown" или "json")

        Returns:
            Путь к сгенерированному файлу
        """
        if format == "json":
            return self.generate_json_report(summary)
        return self.generate_markdown_report(summary)

    def _filepath(self, summary: RunSummary, suffix: str) -> Path:
        timestamp_str = summary.started_at.strftime("%Y%m%d_%H%M%S")
        return self.output_dir / f"checkup_report_{timestamp_str}.{suffix}"

    def generate_markdown_report(self, summary: RunSummary) -> str:
        """
        Генерация Markdown отчёта.

        Args:
            summary: Итог запуска

        Returns:
            Путь к файлу отчёта
        """
        filepath = self._filepath(summary, "md")
        lines = []

        # Header
        lines.append("# System Checkup Report")
        lines.append("")
        lines.append(f"**Date:** {summary.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append(f"**Result:** `{summary.banner()}`")
        lines.append("")

        # Summary
        lines.append("## Summary")
        lines.append("")
        lines.append(f"- **Topics checked:** {len(summary.outcomes)}")
        for severity in SEVERITY_ORDER:
            count = len(summary.by_severity(severity))
            lines.append(f"- {SEVERITY_EMOJI[severity]} **{severity.value.capitalize()}:** {count}")
        lines.append("")

        # Errors and warnings in run order
        for severity, title in ((Severity.ERROR, "Errors"), (Severity.WARNING, "Warnings")):
            outcomes = summary.by_severity(severity)
            if outcomes:
                lines.append(f"## {SEVERITY_EMOJI[severity]} {title}")
                lines.append("")
                for outcome in outcomes:
                    lines.append(outcome.to_markdown())

        # Full list
        lines.append("## All Topics")
        lines.append("")
        lines.append("| # | Topic | Severity | Message |")
        lines.append("|---|-------|----------|---------|")
        for i, outcome in enumerate(summary.outcomes, 1):
            message = outcome.message.replace("|", "\\|")
            lines.append(f"| {i} | `{outcome.topic_key}` | {outcome.severity.value} | {message} |")
        lines.append("")

        # Footer
        lines.append("---")
        lines.append(f"*Checkup finished in {summary.duration_seconds:.2f} seconds*")

        with open(filepath, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))

        return str(filepath)

    def generate_json_report(self, summary: RunSummary) -> str:
        """
        Генерация JSON отчёта.

        Returns:
            Путь к файлу отчёта
        """
        filepath = self._filepath(summary, "json")

        report_dict = summary.to_dict()
        report_dict["banner"] = summary.banner()

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(report_dict, f, indent=2, ensure_ascii=False)

        return str(filepath)

    def print_summary(self, summary: RunSummary, console: Optional[Console] = None):
        """Вывести краткую сводку в консоль."""
        console = console or Console()

        table = Table(title="CHECKUP SUMMARY")
        table.add_column("Severity")
        table.add_column("Count", justify="right")
        for severity in SEVERITY_ORDER:
            table.add_row(
                f"{SEVERITY_EMOJI[severity]} {severity.value.capitalize()}",
                str(len(summary.by_severity(severity))),
            )

        console.print(table)
        console.print(f"Duration: {summary.duration_seconds:.2f}s")
