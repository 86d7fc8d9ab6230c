# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import sys
from typing import Iterable, Iterator, Optional, TypeVar

# Third-Party Imports
from rich.progress import (
    BarColumn, Progress, ProgressColumn, SpinnerColumn, Task, TextColumn,
    TimeElapsedColumn
)
from rich.text import Text

# Local Imports
from contrast_16s import constants

T = TypeVar("T")

# ============================== CUSTOM PROGRESS COLUMNS ============================= #

class MofNCompleteColumn(ProgressColumn):
    """Renders 'completed/total', or just 'completed' for open-ended tasks."""

    def render(self, task: Task) -> Text:
        done = int(task.completed)
        label = f"{done}/{int(task.total)}" if task.total is not None else str(done)
        return Text(
            label.rjust(10),
            style=constants.DEFAULT_M_OF_N_COMPLETE_STYLE,
            justify="right"
        )


# ===================================== FUNCTIONS ==================================== #

def get_progress_bar(transient: bool = True, disable: Optional[bool] = None) -> Progress:
    """Progress bar used for the pipeline's long loops.

    Hidden automatically when stderr is not a terminal (log files, CI).
    """
    if disable is None:
        disable = not sys.stderr.isatty()
    return Progress(
        SpinnerColumn(
            "dots",
            style=constants.DEFAULT_BAR_COLUMN_COMPLETE_STYLE,
            speed=0.75
        ),
        TextColumn(
            "{task.description}",
            style=constants.DEFAULT_DESCRIPTION_STYLE,
            justify="left"
        ),
        MofNCompleteColumn(),
        BarColumn(
            bar_width=constants.DEFAULT_BAR_WIDTH,
            style="black",
            complete_style=constants.DEFAULT_BAR_COLUMN_COMPLETE_STYLE,
            finished_style=constants.DEFAULT_FINISHED_STYLE
        ),
        TimeElapsedColumn(),
        transient=transient,
        disable=disable,
        expand=False
    )


def progress_iter(
    items: Iterable[T],
    description: str,
    total: Optional[int] = None
) -> Iterator[T]:
    """Yield from ``items`` while advancing a single-task progress bar."""
    if total is None and hasattr(items, "__len__"):
        total = len(items)
    with get_progress_bar() as progress:
        task = progress.add_task(_format_task_desc(description), total=total)
        for item in items:
            yield item
            progress.update(task, advance=1)


def _format_task_desc(desc: str) -> str:
    return f"{str(desc):<{constants.DEFAULT_PROGRESS_TEXT_N}}"
