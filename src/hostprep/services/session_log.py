"""Session transcript written to the console and an append-only log file."""

import logging
import os
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table
from rich.text import Text

from hostprep.constants import LOG_DATE_FORMAT
from hostprep.errors import HostPrepError
from hostprep.models import Severity

SESSION_LOGGER_NAME = "hostprep.session"

_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}

_ICONS = {
    Severity.INFO: "",
    Severity.WARNING: "⚠ ",
    Severity.ERROR: "✖ ",
}

_STYLES = {
    logging.WARNING: "yellow",
    logging.ERROR: "red",
}


class RichConsoleHandler(logging.Handler):
    """Mirrors session records to a rich console, colored by level."""

    def __init__(self, console: Console):
        super().__init__()
        self.console = console

    def emit(self, record: logging.LogRecord):
        try:
            line = self.format(record)
            self.console.print(Text(line, style=_STYLES.get(record.levelno, "")))
        except Exception:
            self.handleError(record)


class SessionLog:
    """Owns the session log file handle and the console mirror."""

    FILE_FORMAT = "%(asctime)s [%(levelname)s] - %(message)s"
    CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] - %(icon)s%(message)s"

    def __init__(self, console: Optional[Console] = None, logger_name: str = SESSION_LOGGER_NAME):
        self.console = console or Console(highlight=False)
        # Unregistered logger: each session owns its handlers.
        self.logger = logging.Logger(logger_name, level=logging.INFO)
        self.logger.propagate = False
        self.path: Optional[str] = None
        self._handlers: List[logging.Handler] = []

    @property
    def is_open(self) -> bool:
        return bool(self._handlers)

    def open(self, path: str) -> "SessionLog":
        parent = os.path.dirname(os.path.abspath(path))
        try:
            os.makedirs(parent, exist_ok=True)
            file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as exc:
            raise HostPrepError(f"Could not open session log {path}: {exc}") from exc

        file_handler.setFormatter(logging.Formatter(self.FILE_FORMAT, datefmt=LOG_DATE_FORMAT))
        console_handler = RichConsoleHandler(self.console)
        console_handler.setFormatter(logging.Formatter(self.CONSOLE_FORMAT, datefmt=LOG_DATE_FORMAT))

        for handler in (file_handler, console_handler):
            self.logger.addHandler(handler)
            self._handlers.append(handler)

        self.path = path
        return self

    def log(self, message: str, severity: Severity = Severity.INFO):
        self.logger.log(_LEVELS[severity], message, extra={"icon": _ICONS[severity]})

    def info(self, message: str):
        self.log(message, Severity.INFO)

    def warning(self, message: str):
        self.log(message, Severity.WARNING)

    def error(self, message: str):
        self.log(message, Severity.ERROR)

    def log_table(self, title: str, columns: Sequence[str], rows: Sequence[Sequence[str]]):
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*[str(cell) for cell in row])
        self.console.print(table)

    def close(self):
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.flush()
            handler.close()
        self._handlers = []

    def __enter__(self) -> "SessionLog":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class MemorySessionLog:
    """Collects session entries in memory instead of writing them out."""

    def __init__(self):
        self.entries: List[Tuple[Severity, str]] = []
        self.tables: List[Tuple[str, List[List[str]], int]] = []
        self.closed = False

    def log(self, message: str, severity: Severity = Severity.INFO):
        self.entries.append((severity, message))

    def info(self, message: str):
        self.log(message, Severity.INFO)

    def warning(self, message: str):
        self.log(message, Severity.WARNING)

    def error(self, message: str):
        self.log(message, Severity.ERROR)

    def log_table(self, title: str, columns: Sequence[str], rows: Sequence[Sequence[str]]):
        self.tables.append((title, [list(row) for row in rows], len(self.entries)))

    def messages(self, severity: Optional[Severity] = None) -> List[str]:
        return [message for level, message in self.entries if severity is None or level is severity]

    def close(self):
        self.closed = True

    def __enter__(self) -> "MemorySessionLog":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
