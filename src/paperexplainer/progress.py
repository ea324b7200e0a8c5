"""Pipeline stage reporting and console progress displays."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from tqdm import tqdm

if TYPE_CHECKING:
    from collections.abc import Callable

STAGE_FETCHING = "fetching"
STAGE_PARSING = "parsing"
STAGE_REWRITING = "rewriting"
STAGE_SAVING = "saving"
STAGE_COMPLETE = "complete"

STAGES = (STAGE_FETCHING, STAGE_PARSING, STAGE_REWRITING, STAGE_SAVING, STAGE_COMPLETE)

STAGE_LABELS = {
    STAGE_FETCHING: "Fetch paper",
    STAGE_PARSING: "Parse content",
    STAGE_REWRITING: "Rewrite paragraphs",
    STAGE_SAVING: "Save to cache",
    STAGE_COMPLETE: "Complete",
}

REWRITE_START_PERCENT = 25
REWRITE_END_PERCENT = 95


def rewriting_percent(processed: int, total: int) -> int:
    """Linear position inside the rewriting band (25-95%)."""

    if total <= 0:
        return REWRITE_END_PERCENT
    span = REWRITE_END_PERCENT - REWRITE_START_PERCENT
    return REWRITE_START_PERCENT + (span * min(processed, total)) // total


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    message: str
    progress: int
    sub_progress: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "stage": self.stage,
            "message": self.message,
            "progress": self.progress,
        }
        if self.sub_progress is not None:
            payload["subProgress"] = self.sub_progress
        return payload


class StageReporter(Protocol):
    def report(self, event: ProgressEvent) -> None:  # pragma: no cover - structural protocol
        """Receive one progress event."""


class NullStageReporter:
    """Reporter for non-interactive runs."""

    def report(self, event: ProgressEvent) -> None:
        return None


class CallbackStageReporter:
    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self.callback = callback

    def report(self, event: ProgressEvent) -> None:
        self.callback(event)


class MonotonicStageReporter:
    """Clamp percentages so a wrapped reporter never sees them go backwards."""

    def __init__(self, inner: StageReporter) -> None:
        self.inner = inner
        self.last_progress = 0

    def report(self, event: ProgressEvent) -> None:
        progress = max(self.last_progress, min(100, event.progress))
        self.last_progress = progress
        if progress != event.progress:
            event = ProgressEvent(
                stage=event.stage,
                message=event.message,
                progress=progress,
                sub_progress=event.sub_progress,
            )
        self.inner.report(event)


@dataclass
class ProcessingStage:
    """Represents a single processing stage."""

    name: str
    label: str
    status: str = "pending"  # pending, running, completed
    start_time: float | None = None
    end_time: float | None = None
    details: str = ""

    @property
    def display_status(self) -> str:
        status_icons = {
            "pending": "⏸️",
            "running": "⏳",
            "completed": "✅",
        }
        return status_icons.get(self.status, "⏸️")

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time or time.time()
        return end - self.start_time

    def start(self) -> None:
        if self.status == "running":
            return
        self.status = "running"
        self.start_time = time.time()

    def complete(self) -> None:
        if self.status == "completed":
            return
        if self.start_time is None:
            self.start_time = time.time()
        self.status = "completed"
        self.end_time = time.time()


@dataclass
class PaperProgress:
    """Tracks the stages of one paper."""

    title: str
    stages: list[ProcessingStage] = field(default_factory=list)
    progress: int = 0

    def stage(self, name: str) -> ProcessingStage | None:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None


class RichStageReporter:
    """Live ``rich`` panel showing every stage of the current paper."""

    def __init__(self, title: str = "paper", console: Console | None = None) -> None:
        self.console = console or Console()
        self.paper = PaperProgress(
            title=title,
            stages=[ProcessingStage(name=name, label=STAGE_LABELS[name]) for name in STAGES],
        )
        self._live: Live | None = None
        self._start_time: float = time.time()

    def start(self) -> None:
        """Start the live display."""
        self._live = Live(
            self._render(),
            console=self.console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the live display."""
        if self._live:
            self._live.stop()
            self._live = None

    def report(self, event: ProgressEvent) -> None:
        self.paper.progress = event.progress
        reached = False
        for stage in self.paper.stages:
            if stage.name == event.stage:
                reached = True
                if event.stage == STAGE_COMPLETE:
                    stage.complete()
                else:
                    stage.start()
                stage.details = event.sub_progress or event.message
            elif not reached:
                stage.complete()
        if self._live:
            self._live.update(self._render())

    def _render(self) -> Panel:
        """Render the full progress display."""
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Content", ratio=1)
        table.add_row(Text(f"📄 {self.paper.title}", style="bold cyan"))
        for stage in self.paper.stages:
            table.add_row(self._format_stage(stage))

        footer = Text()
        footer.append(f"Progress: {self.paper.progress}%", style="bold yellow")
        footer.append(
            f" | Elapsed: {self._format_time(time.time() - self._start_time)}",
            style="dim",
        )
        table.add_row(footer)

        return Panel(
            table,
            title="[bold blue]Paper Explainer[/bold blue]",
            border_style="blue",
        )

    def _format_stage(self, stage: ProcessingStage) -> Text:
        """Format a single stage line."""
        text = Text(f"   ├── {stage.display_status} {stage.label}")

        if stage.details:
            text.append(f"  ({stage.details})", style="dim")

        if stage.status == "running":
            text.append(f"  [{self._format_time(stage.elapsed)}]", style="dim")
            text.stylize("yellow")
        elif stage.status == "completed":
            text.stylize("green")

        return text

    def _format_time(self, seconds: float) -> str:
        """Format elapsed time as human readable string."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m{secs:02d}s"


class TqdmStageReporter:
    """Plain progress bar for terminals where the live panel is disabled."""

    def __init__(self, title: str = "paper", **tqdm_kwargs: Any) -> None:
        self._bar = tqdm(total=100, desc=title, unit="%", **tqdm_kwargs)
        self._position = 0

    def report(self, event: ProgressEvent) -> None:
        delta = event.progress - self._position
        if delta > 0:
            self._bar.update(delta)
            self._position = event.progress
        self._bar.set_postfix_str(
            f"{event.stage}: {event.sub_progress or event.message}", refresh=True
        )

    def stop(self) -> None:
        self._bar.close()
