"""
Console reporter.

Prints every outcome as soon as it is produced: evidence first, then the
severity tag and the message. Uses rich for colour; plain text otherwise.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape

from ..core.models import CheckOutcome, RunSummary, Severity

TAGS = {
    Severity.SUCCESS: ("CHECKED", "green"),
    Severity.INFO: ("Info:", "blue"),
    Severity.WARNING: ("Warning:", "yellow"),
    Severity.ERROR: ("ERROR:", "bold red"),
}


class ConsoleReporter:
    """Вывод результатов в консоль по мере выполнения."""

    def __init__(self, console: Optional[Console] = None, show_success: bool = True):
        """
        Args:
            console: rich Console (по умолчанию stdout)
            show_success: Печатать ли успешные проверки
        """
        self.console = console or Console(highlight=False)
        self.show_success = show_success
        self._section: Optional[str] = None

    def start(self, topic) -> None:
        """Заголовок раздела при смене section."""
        section = getattr(topic, "section", "")
        if section and section != self._section:
            self._section = section
            self.console.print(f"\n---------- {escape(section)} check ----------")

    def report(self, outcome: CheckOutcome) -> None:
        if outcome.severity == Severity.SUCCESS and not self.show_success:
            return

        if outcome.evidence:
            self.console.print(escape(outcome.evidence), style="dim")

        tag, style = TAGS[outcome.severity]
        self.console.print(f"[{style}]{escape(tag)}[/] {escape(outcome.message)}")

    def banner(self, summary: RunSummary) -> None:
        if summary.aborted or summary.error_count:
            style = "bold red"
        elif summary.warning_count:
            style = "bold yellow"
        else:
            style = "bold green"
        self.console.print()
        self.console.print(escape(summary.banner()), style=style)
