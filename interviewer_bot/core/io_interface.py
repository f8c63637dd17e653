import logging
from abc import ABC, abstractmethod
from pathlib import Path

from prompt_toolkit import prompt
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.panel import Panel

from interviewer_bot.core.constants import EXIT_COMMANDS, EXIT_SIGNAL


class IOInterface(ABC):
    """Abstract interface for user input/output operations."""

    @abstractmethod
    def print(self, message: str) -> None:
        pass

    @abstractmethod
    def input(self, prompt: str) -> str:
        """Return the user's reply, or EXIT_SIGNAL when they want to stop."""
        pass

    def print_question(self, message: str) -> None:
        self.print(message)

    def print_info(self, message: str) -> None:
        self.print(message)

    def print_error(self, message: str) -> None:
        self.print(message)


class RichConsoleIO(IOInterface):
    """Console for a candidate: questions in panels, answers read with prompt_toolkit."""

    def __init__(self, session_id: str | None = None):
        self.console = Console()
        self.history_file = None

        if session_id:
            sanitized_id = self._sanitize_session_id(session_id)
            history_dir = Path.home() / ".interviewer_bot" / "history"
            history_dir.mkdir(parents=True, exist_ok=True)
            self.history_file = str(history_dir / f"{sanitized_id}.txt")

    def _sanitize_session_id(self, session_id: str) -> str:
        # Keep only characters safe in a filename
        sanitized = "".join(c for c in session_id if c.isalnum() or c in "-_")
        return sanitized[:50] if sanitized else "unknown_session"

    def print(self, message: str) -> None:
        self.console.print(message)

    def print_question(self, message: str) -> None:
        self.console.print(Panel(message, title="Interviewer", border_style="blue", padding=(1, 2)))

    def print_info(self, message: str) -> None:
        self.console.print(f"[cyan]ℹ[/cyan] {message}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def input(self, prompt_str: str) -> str:
        try:
            self.console.print(f"[bold green]{prompt_str}[/bold green]", end="")
            history = FileHistory(self.history_file) if self.history_file else None
            result = prompt("", history=history)
        except (KeyboardInterrupt, EOFError):
            self.console.print("\n[yellow]Interview stopped.[/yellow]")
            return EXIT_SIGNAL
        return self._process_input_result(result)

    def _process_input_result(self, result: str) -> str:
        result_clean = result.strip()
        if result_clean.lower() in EXIT_COMMANDS:
            logging.getLogger("interviewer_bot").debug(
                "exit requested", extra={"event": "io.exit_requested", "component": "io", "operation": "input"}
            )
            return EXIT_SIGNAL
        return result_clean


class TestableIO(IOInterface):
    """IOInterface with scripted replies; records everything printed."""

    __test__ = False

    def __init__(self, responses: list[str] | None = None):
        self.responses = responses or []
        self.response_index = 0
        self.printed_messages: list[str] = []

    def print(self, message: str) -> None:
        self.printed_messages.append(message)

    def input(self, prompt: str) -> str:
        if self.response_index < len(self.responses):
            response = self.responses[self.response_index]
            self.response_index += 1
            return EXIT_SIGNAL if response.strip().lower() in EXIT_COMMANDS else response
        return EXIT_SIGNAL
