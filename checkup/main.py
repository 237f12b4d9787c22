"""
CLI interface for the system checkup.

Usage:
    checkup run                          # Full audit, then the update flow
    checkup run --no-update              # Audit only
    checkup run --report-format json     # Also write a JSON report
    checkup topics                       # List topics and their severity policy
    checkup promote sudoers timers       # Accept current captures as reference
    checkup update --verbose             # Update flow only
    checkup update --auto                # Unattended snap + apt upgrade
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .checkers import build_registry, build_topics
from .config import Policy, get_default_policy
from .core.baseline import BaselineStore
from .errors import CheckupError, ConfigurationError, UpdateFlowError
from .orchestrator import AuditOrchestrator
from .reports import ConsoleReporter, ReportGenerator
from .updates import UpdateFlow

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_ABORTED = 2
EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="checkup",
    help="Ubuntu security checkup: compare the system against its reference state",
    no_args_is_help=True,
)
console = Console(highlight=False)

logger = logging.getLogger(__name__)


class ReportFormat(str, Enum):
    markdown = "markdown"
    json = "json"


def setup_logging(verbose: bool = False):
    """Настроить логирование."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def load_policy(env_file: Optional[Path] = None, **overrides) -> Policy:
    """
    Загрузить Policy (.env + окружение + флаги CLI).

    Raises:
        ConfigurationError: Некорректные значения в окружении
    """
    if env_file is not None:
        if not env_file.is_file():
            raise ConfigurationError(f"env file {env_file} does not exist")
        load_dotenv(env_file)
    else:
        load_dotenv()

    # только явно заданные флаги перекрывают окружение
    overrides = {key: value for key, value in overrides.items() if value}
    try:
        return get_default_policy(env_file=env_file, **overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def run_update_flow(policy: Policy, verbose: bool = False, auto: bool = False, close_apps: bool = False) -> bool:
    """
    Запустить процесс обновления.

    Args:
        auto: Без промежуточных подтверждений (apt -y upgrade)
        close_apps: Закрыть snap-браузеры перед snap refresh (включает auto)
    """
    flow = UpdateFlow(policy, console=console, verbose=verbose)
    try:
        if auto or close_apps:
            return asyncio.run(flow.run_auto(close_apps=close_apps))
        return asyncio.run(flow.run())
    except UpdateFlowError as e:
        logger.error(f"Update flow stopped: {e}")
        return False


@app.command()
def run(
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Alternative .env file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    stop_on_warnings: bool = typer.Option(False, "--stop-on-warnings", help="Pause after every warning"),
    stop_on_errors: bool = typer.Option(False, "--stop-on-errors", help="Pause after every error"),
    skip_expensive: bool = typer.Option(False, "--skip-expensive", help="Skip long-running checks"),
    no_update: bool = typer.Option(False, "--no-update", help="Do not start the update flow"),
    report_format: Optional[ReportFormat] = typer.Option(None, "--report-format", help="Write a report file"),
    report_dir: Optional[Path] = typer.Option(None, "--report-dir", help="Report directory"),
):
    """🔍 Run the full checkup."""
    setup_logging(verbose)

    try:
        policy = load_policy(
            env_file,
            stop_on_warnings=stop_on_warnings,
            stop_on_errors=stop_on_errors,
            skip_expensive_checks=skip_expensive,
        )
    except CheckupError as e:
        console.print(f"[bold red]ERROR:[/] {e}")
        raise typer.Exit(EXIT_ERRORS)

    reporter = ConsoleReporter(console)
    orchestrator = AuditOrchestrator(
        policy,
        store=BaselineStore(policy.checkup_folder),
        normalizers=build_registry(policy),
        reporter=reporter,
    )

    try:
        summary = asyncio.run(orchestrator.run_audit(build_topics(policy)))
    except KeyboardInterrupt:
        console.print("\n[yellow]Checkup interrupted by user[/]")
        raise typer.Exit(EXIT_INTERRUPTED)

    reporter.banner(summary)

    if report_format is not None:
        generator = ReportGenerator(output_dir=report_dir or policy.report_output_dir)
        report_path = generator.generate_report(summary, format=report_format.value)
        console.print(f"Report: {report_path}")
        if verbose:
            generator.print_summary(summary, console)

    if summary.aborted:
        raise typer.Exit(EXIT_ABORTED)

    if not no_update:
        try:
            console.input("\nPress Enter to start updates...")
            console.print()
            run_update_flow(policy, verbose=verbose)
        except KeyboardInterrupt:
            raise typer.Exit(EXIT_INTERRUPTED)

    raise typer.Exit(EXIT_ERRORS if summary.error_count else EXIT_OK)


@app.command()
def topics(
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Alternative .env file"),
):
    """📋 List audit topics in execution order."""
    try:
        policy = load_policy(env_file)
    except CheckupError as e:
        console.print(f"[bold red]ERROR:[/] {e}")
        raise typer.Exit(EXIT_ERRORS)

    table = Table(title="Checkup topics")
    table.add_column("#", justify="right")
    table.add_column("Section")
    table.add_column("Key", style="cyan")
    table.add_column("Kind")
    table.add_column("Mismatch")
    table.add_column("Flags")

    for i, topic in enumerate(build_topics(policy), 1):
        severity_policy = topic.severity_policy
        flags = []
        if severity_policy.prerequisite:
            flags.append("prerequisite")
        if topic.expensive:
            flags.append("expensive")
        kind = "snapshot" if topic.requires_baseline else "predicate"
        table.add_row(
            str(i), topic.section, topic.key, kind,
            severity_policy.mismatch.value, ", ".join(flags),
        )

    console.print(table)


@app.command()
def promote(
    keys: List[str] = typer.Argument(..., help="Topic keys whose current capture becomes the reference"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Alternative .env file"),
):
    """📌 Promote current captures to saved snapshots."""
    try:
        policy = load_policy(env_file)
    except CheckupError as e:
        console.print(f"[bold red]ERROR:[/] {e}")
        raise typer.Exit(EXIT_ERRORS)

    store = BaselineStore(policy.checkup_folder)
    failed = False
    for key in keys:
        try:
            path = store.promote(key)
        except CheckupError as e:
            console.print(f"[bold red]ERROR:[/] {e}")
            failed = True
            continue
        console.print(f"[green]CHECKED[/] {key} -> {path}")

    if failed:
        raise typer.Exit(EXIT_ERRORS)


@app.command()
def update(
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Alternative .env file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show unattended-upgrades timers and log"),
    auto: bool = typer.Option(False, "--auto", help="Update snaps and apt packages without confirmations"),
    close_apps: bool = typer.Option(False, "--all", help="Like --auto, closing snap browsers first"),
):
    """⬆️  Run the package update flow."""
    setup_logging(verbose)
    try:
        policy = load_policy(env_file)
    except CheckupError as e:
        console.print(f"[bold red]ERROR:[/] {e}")
        raise typer.Exit(EXIT_ERRORS)

    try:
        ok = run_update_flow(policy, verbose=verbose, auto=auto, close_apps=close_apps)
    except KeyboardInterrupt:
        raise typer.Exit(EXIT_INTERRUPTED)
    if not ok:
        raise typer.Exit(EXIT_ERRORS)


if __name__ == "__main__":
    app()
