"""
Global progress reporting module for the Flashcard Distiller.

This module provides a centralized progress reporter used throughout the
application to show status updates and user-visible notices during a run.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.status import Status


class ProgressReporter:
    """
    Global progress reporter for status updates with step completion tracking.

    Provides a centralized way to report progress steps without passing
    console or status objects through function parameters. Completed steps
    are printed with a checkmark.
    """

    def __init__(self):
        self._status: Optional[Status] = None
        self._console: Optional[Console] = None
        self._current_step: Optional[str] = None

    def initialize(self, console: Console, initial_message: str = "Starting...") -> Status:
        """
        Initialize the reporter with a console and create a status object.

        Args:
            console: Rich console instance
            initial_message: Initial status message

        Returns:
            Status object that should be used in a context manager
        """
        self._console = console
        self._status = console.status(f"[dim]{escape(initial_message)}[/dim]")
        self._current_step = initial_message
        return self._status

    def step(self, message: str) -> None:
        """
        Update the current progress step and mark previous step as completed.

        Args:
            message: Progress step message to display
        """
        if self._status is not None:
            if self._current_step is not None and self._console is not None:
                self._console.print(f"[green]✓[/green] [dim]{escape(self._current_step)}[/dim]")

            self._current_step = message
            self._status.update(f"[dim]{escape(message)}[/dim]")

    def complete_step(self, message: Optional[str] = None) -> None:
        """
        Mark the current step as completed without starting a new one.

        Args:
            message: Optional custom completion message
        """
        if self._current_step is not None:
            completion_msg = message or self._current_step
            if self._console is not None:
                self._console.print(f"[green]✓[/green] [dim]{escape(completion_msg)}[/dim]")
            self._current_step = None

    def sub_step(self, message: str) -> None:
        """
        Update the status line without marking the current step as completed.

        Args:
            message: Sub-step message to display
        """
        if self._status is not None:
            self._status.update(f"[dim]{escape(message)}[/dim]")

    def notice(self, message: str, style: str = "cyan") -> None:
        """
        Show a user-visible notice.

        Does nothing until `initialize` has attached a console.
        """
        if self._console is not None:
            self._console.print(f"[{style}]{escape(message)}[/{style}]")


# Global reporter instance
reporter = ProgressReporter()
