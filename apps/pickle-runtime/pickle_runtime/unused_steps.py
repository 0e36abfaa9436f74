"""Summary of step definitions that no step of the run matched."""

from typing import Optional

from rich.console import Console
from rich.text import Text

from .events import RunFinished, StepDefined, StepFinished
from .output_config import OutputFormat, use_rich_output


class UnusedStepsReporter:
    """Lists ``location # pattern`` for every unused step definition, sorted by location."""

    def __init__(
        self,
        output_format: OutputFormat = OutputFormat.AUTO,
        *,
        console: Optional[Console] = None,
    ):
        self.use_rich = use_rich_output(output_format)
        self.console = (console or Console()) if self.use_rich else None
        self.defined: dict[str, str] = {}
        self.used: set[str] = set()

    def subscribe_to(self, publisher) -> None:
        publisher.subscribe(StepDefined, self.on_step_defined)
        publisher.subscribe(StepFinished, self.on_step_finished)
        publisher.subscribe(RunFinished, self.on_run_finished)

    def on_step_defined(self, event: StepDefined) -> None:
        self.defined.setdefault(event.location, event.pattern)

    def on_step_finished(self, event: StepFinished) -> None:
        if event.code_location is not None:
            self.used.add(event.code_location)

    @property
    def unused(self) -> list[tuple[str, str]]:
        return sorted(
            (location, pattern)
            for location, pattern in self.defined.items()
            if location not in self.used
        )

    def on_run_finished(self, event: RunFinished) -> None:
        unused = self.unused
        if not unused:
            return
        header = f"{len(unused)} Unused steps:"
        if self.use_rich:
            self.console.print(Text(header, style="bold yellow"))
            for location, pattern in unused:
                line = Text()
                line.append(location, style="yellow")
                line.append(f" # {pattern}", style="dim white")
                self.console.print(line)
        else:
            print(header)
            for location, pattern in unused:
                print(f"{location} # {pattern}")
