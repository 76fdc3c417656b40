"""
Terminal progress indicator for the pipeline stages.
"""
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.status import Status

SUCCESS_SYMBOL = "✔"
FAILURE_SYMBOL = "✖"


class ProgressIndicator:
    """A spinner that ends with a success or failure line."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._status: Optional[Status] = None

    @property
    def active(self) -> bool:
        return self._status is not None

    def start(self, text: str) -> None:
        self.stop()
        self._status = self.console.status(text)
        self._status.start()

    def stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def succeed(self, text: str) -> None:
        self.stop()
        self.console.print(f"[green]{SUCCESS_SYMBOL}[/green] {escape(text)}", highlight=False)

    def fail(self, text: str) -> None:
        self.stop()
        self.console.print(f"[red]{FAILURE_SYMBOL}[/red] {escape(text)}", highlight=False)
