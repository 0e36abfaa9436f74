"""Console reporter with environment detection, fed by run events."""

from collections import Counter
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .events import RunFinished, RunStarted, ScenarioFinished, SnippetsSuggested
from .exit_status import run_succeeded
from .models import SEVERITY_ORDER, Status, is_ok
from .output_config import OutputFormat, use_rich_output

STATUS_STYLES = {
    Status.PASSED: "green",
    Status.SKIPPED: "cyan",
    Status.PENDING: "yellow",
    Status.UNDEFINED: "yellow",
    Status.AMBIGUOUS: "red",
    Status.FAILED: "bold red",
}

STATUS_ICONS = {
    Status.PASSED: "✓",
    Status.SKIPPED: "-",
    Status.PENDING: "?",
    Status.UNDEFINED: "?",
    Status.AMBIGUOUS: "✗",
    Status.FAILED: "✗",
}


class ConsoleReporter:
    """
    Prints one line per finished scenario and a summary when the run ends.

    Automatically detects:
    - Interactive terminals (use rich)
    - CI/CD environments (use plain text)
    - Pipe/redirect scenarios (use plain text)
    """

    def __init__(
        self,
        output_format: OutputFormat = OutputFormat.AUTO,
        *,
        strict: bool = False,
        wip: bool = False,
        console: Optional[Console] = None,
    ):
        self.output_format = output_format
        self.strict = strict
        self.wip = wip
        self.use_rich = use_rich_output(output_format)
        if self.use_rich:
            self.console = console or Console()
        else:
            self.console = None
        self.counts: Counter[Status] = Counter()
        self.snippets: list[str] = []
        self.failures: list[tuple[str, str]] = []

    def subscribe_to(self, publisher) -> None:
        publisher.subscribe(RunStarted, self.on_run_started)
        publisher.subscribe(ScenarioFinished, self.on_scenario_finished)
        publisher.subscribe(SnippetsSuggested, self.on_snippets_suggested)
        publisher.subscribe(RunFinished, self.on_run_finished)

    def on_run_started(self, event: RunStarted) -> None:
        self.counts.clear()
        self.snippets.clear()
        self.failures.clear()
        if self.use_rich:
            self.console.rule("[bold cyan]Running scenarios")
        else:
            print("Running scenarios")
            print("-" * 80)

    def on_scenario_finished(self, event: ScenarioFinished) -> None:
        status = event.result.status
        self.counts[status] += 1
        scenario = event.scenario
        if not is_ok(status, self.strict) and event.result.error:
            self.failures.append((scenario.location, event.result.error))

        label = f"{STATUS_ICONS[status]} {status.value.upper()}"
        duration = f"{event.result.duration_ms:.0f}ms"
        if self.use_rich:
            line = Text()
            line.append(f"{label:<12}", style=STATUS_STYLES[status])
            line.append(f"{scenario.name} ", style="bold white")
            line.append(f"# {scenario.location} ", style="dim white")
            line.append(duration, style="dim cyan")
            self.console.print(line)
        else:
            print(f"{label:<12}{scenario.name} # {scenario.location} ({duration})")

    def on_snippets_suggested(self, event: SnippetsSuggested) -> None:
        for snippet in event.snippets:
            if snippet not in self.snippets:
                self.snippets.append(snippet)

    def on_run_finished(self, event: RunFinished) -> None:
        total = sum(self.counts.values())
        breakdown = ", ".join(
            f"{self.counts[status]} {status.value}" for status in SEVERITY_ORDER if self.counts[status]
        )
        succeeded = run_succeeded(self.counts.elements(), strict=self.strict, wip=self.wip)
        if self.use_rich:
            self._print_rich_summary(total, breakdown, succeeded)
        else:
            print("-" * 80)
            print(f"{total} scenarios" + (f" ({breakdown})" if breakdown else ""))
            for location, error in self.failures:
                print(f"  {location}: {error}")
            if self.snippets:
                print("You can implement missing steps with the snippets below:")
                for snippet in self.snippets:
                    print(snippet)

    def _print_rich_summary(self, total: int, breakdown: str, succeeded: bool) -> None:
        if self.failures:
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Scenario", style="dim")
            table.add_column("Error", style="red")
            for location, error in self.failures:
                table.add_row(location, error)
            self.console.print(table)

        summary_text = Text()
        summary_text.append(f"Total: {total}  ", style="bold")
        summary_text.append(breakdown or "nothing ran", style="bold cyan")
        status = "✓ RUN PASSED" if succeeded else "✗ RUN FAILED"
        self.console.print()
        self.console.print(Panel(
            summary_text,
            title=Text(status, style="bold green" if succeeded else "bold red"),
            border_style="green" if succeeded else "red",
        ))
        if self.snippets:
            self.console.print("[yellow]You can implement missing steps with the snippets below:[/]")
            for snippet in self.snippets:
                self.console.print(snippet, markup=False, highlight=False)
