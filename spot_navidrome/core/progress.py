"""
Progress bars for spot-navidrome using the Rich library.

Two phases report progress while exporting a playlist:
    - Matching: MatchingProgressBar (driven by BatchProgress events)
    - Export: ExportProgressBar (driven by ExportProgress events)

Both bars take absolute counters instead of increments, because the batch
matcher reports one event per chunk when tracks are matched in parallel
and the exporters report one event per step.

Usage:
    from spot_navidrome.core.progress import MatchingProgressBar

    with MatchingProgressBar(total=len(tracks)) as bar:
        matcher.match_tracks(
            tracks,
            on_progress=lambda p: bar.update(p.current, p.matched, p.ambiguous, p.unmatched)
        )
"""

from abc import ABC, abstractmethod
from typing import Optional

from rich import get_console
from rich.console import JustifyMethod, OverflowMethod
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
)
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme


# =============================================================================
# Common Theme
# =============================================================================

PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


# =============================================================================
# Custom Column
# =============================================================================

class SizedTextColumn(ProgressColumn):
    """
    Text column truncated with an ellipsis when it exceeds a fixed width.

    Keeps long playlist names and track labels from pushing the bar off
    the right edge of the terminal.
    """

    def __init__(
        self,
        text_format: str,
        style: StyleType = "none",
        justify: JustifyMethod = "left",
        overflow: Optional[OverflowMethod] = "ellipsis",
        width: int = 20,
    ) -> None:
        self.text_format = text_format
        self.justify: JustifyMethod = justify
        self.style = style
        self.overflow: Optional[OverflowMethod] = overflow
        self.width = width
        super().__init__()

    def render(self, task: Task) -> Text:
        text = Text.from_markup(
            self.text_format.format(task=task), style=self.style, justify=self.justify
        )
        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


# =============================================================================
# Base Progress Bar
# =============================================================================

class BaseProgressBar(ABC):
    """
    Abstract base class for the export progress bars.

    Provides:
    - Rich Progress instance with the shared theme
    - Context manager support (__enter__/__exit__)
    - Manual start/stop control
    - log() for printing above the bar

    Subclasses implement _get_status_text() and update().
    """

    def __init__(
        self,
        total: int,
        description: str,
        status_width: int = 35
    ):
        """
        Initialize the progress bar.

        Args:
            total: Total number of items to process.
            description: Label shown on the left (e.g., playlist name).
            status_width: Width of the status column.
        """
        self.total = total
        self.description = description
        self.completed = 0

        self.console = get_console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            SizedTextColumn("[white]{task.description}", width=20),
            SizedTextColumn("{task.fields[status]}", width=status_width, style="white"),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: Optional[TaskID] = None
        self._started = False

    def __enter__(self) -> "BaseProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        """Start the progress bar (can be called manually)."""
        if not self._started:
            self.progress.start()
            self.task_id = self.progress.add_task(
                description=self.description,
                total=self.total,
                status=self._get_status_text(),
            )
            self._started = True

    def stop(self) -> None:
        """Stop the progress bar and restore the console theme."""
        if self._started:
            self.progress.stop()
            self.console.pop_theme()
            self._started = False

    def log(self, message: str) -> None:
        """Print a message above the progress bar."""
        self.progress.console.print(message, highlight=False)

    def _update_progress(self) -> None:
        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                total=self.total,
                completed=self.completed,
                status=self._get_status_text(),
            )

    @abstractmethod
    def _get_status_text(self) -> str:
        """Return the status text (Rich markup) for the progress bar."""

    @abstractmethod
    def update(self, *args, **kwargs) -> None:
        """Update the progress bar. Signature varies by phase."""


# =============================================================================
# Matching Progress Bar
# =============================================================================

class MatchingProgressBar(BaseProgressBar):
    """
    Progress bar for the matching phase.

    Displays:
        Road Trip       ✓ 45  ✗ 2  ⚠ 3         ━━━━━━━━━━━━━━━━━  47%

    ✓ matched, ✗ unmatched, ⚠ ambiguous.
    """

    def __init__(self, total: int, description: str = "Matching"):
        super().__init__(total=total, description=description)
        self.matched = 0
        self.unmatched = 0
        self.ambiguous = 0

    def _get_status_text(self) -> str:
        parts = [
            f"[green]✓ {self.matched}[/green]",
            f"[red]✗ {self.unmatched}[/red]",
        ]
        if self.ambiguous > 0:
            parts.append(f"[yellow]⚠ {self.ambiguous}[/yellow]")
        return "  ".join(parts)

    def update(self, completed: int, matched: int, ambiguous: int, unmatched: int) -> None:
        """
        Set the running counters reported by the batch matcher.

        Args:
            completed: Tracks processed so far (cached ones included).
            matched: Running count of matched tracks.
            ambiguous: Running count of ambiguous tracks.
            unmatched: Running count of unmatched tracks.
        """
        self.completed = completed
        self.matched = matched
        self.ambiguous = ambiguous
        self.unmatched = unmatched
        self._update_progress()


# =============================================================================
# Export Progress Bar
# =============================================================================

class ExportProgressBar(BaseProgressBar):
    """
    Progress bar for the export phase (playlist writes or starring).

    Displays the current export step and, while starring, the track:
        Liked Songs     exporting: Song - Artist   ━━━━━━━━━━━━━  12%
    """

    def __init__(self, total: int, description: str = "Exporting"):
        super().__init__(total=total, description=description, status_width=40)
        self.status = "preparing"
        self.current_track: str | None = None

    def _get_status_text(self) -> str:
        if self.current_track:
            return f"[cyan]{self.status}[/cyan]: {self.current_track}"
        return f"[cyan]{self.status}[/cyan]"

    def update(
        self,
        current: int,
        total: int,
        status: str,
        current_track: str | None = None
    ) -> None:
        """
        Apply an ExportProgress event.

        Args:
            current: Items done so far.
            total: Items in this export step.
            status: Export phase name (preparing, exporting, added, ...).
            current_track: Label of the track being processed, if any.
        """
        self.completed = current
        self.total = max(total, 1)
        self.status = status
        self.current_track = current_track
        self._update_progress()


__all__ = [
    "PROGRESS_THEME",
    "SizedTextColumn",
    "BaseProgressBar",
    "MatchingProgressBar",
    "ExportProgressBar",
]
