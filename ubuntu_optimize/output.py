"""
Reporter - user-facing output for the toolkit.

Prints the tagged status lines ([INFO], [SUCCESS], [WARNING], [ERROR]),
section banners and y/N confirmations. Every line is also sent to the
'ubuntu_optimize.report' logger so the log file keeps a transcript.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.theme import Theme

REPORT_LOGGER = 'ubuntu_optimize.report'

logger = logging.getLogger(REPORT_LOGGER)

THEME = Theme({
    'info': 'blue',
    'success': 'green',
    'warning': 'yellow',
    'error': 'red',
    'header': 'bold cyan',
    'step': 'cyan',
})

BANNER_WIDTH = 44


class Reporter:
    """
    Console output with quiet/verbose handling and confirmations.

    Quiet mode prints errors only. Verbose mode also prints debug detail
    such as the commands being executed. With auto_yes every confirmation
    is answered "yes" without prompting.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        quiet: bool = False,
        verbose: bool = False,
        auto_yes: bool = False,
        ask: Optional[Callable[[str], bool]] = None
    ):
        self.console = console or Console(theme=THEME, highlight=False)
        self.quiet = quiet
        self.verbose = verbose
        self.auto_yes = auto_yes
        self._ask = ask or self._prompt

    def _emit(self, tag: str, style: str, message: str, level: int = logging.INFO):
        logger.log(level, message)
        if self.quiet and level < logging.ERROR:
            return
        self.console.print(f"[{style}]\\[{tag}][/{style}] {escape(message)}")

    def status(self, message: str):
        self._emit('INFO', 'info', message)

    def success(self, message: str):
        self._emit('SUCCESS', 'success', message)

    def warning(self, message: str):
        self._emit('WARNING', 'warning', message, logging.WARNING)

    def error(self, message: str):
        self._emit('ERROR', 'error', message, logging.ERROR)

    def step(self, message: str):
        self._emit('STEP', 'step', message)

    def debug(self, message: str):
        logger.debug(message)
        if self.verbose and not self.quiet:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def header(self, title: str):
        logger.info(title)
        if not self.quiet:
            self.console.print(f"[header]{escape(title)}[/header]")

    def detail(self, line: str):
        """Print an untagged, pre-formatted line (indented listings, reports)."""
        logger.info(line)
        if not self.quiet:
            self.console.print(escape(line))

    def blank(self):
        if not self.quiet:
            self.console.print()

    def banner(self, title: str):
        """Print the '====' framed title used at the start and end of a module."""
        rule = '=' * BANNER_WIDTH
        logger.info(title)
        if not self.quiet:
            self.console.print(rule)
            self.console.print(escape(title.center(BANNER_WIDTH).rstrip()))
            self.console.print(rule)
            self.console.print()

    def progress(self, current: int, total: int, description: str):
        """Print the '[n/total] description' step header with a progress bar."""
        percent = current * 100 // total if total else 100
        logger.info(f"[{current}/{total}] {description} ({percent}%)")
        if self.quiet:
            return
        self.console.print()
        self.console.print(f"[step]\\[{current}/{total}] {escape(description)}[/step]")
        self.console.print(f"[info]Progress: \\[{progress_bar(percent)}] {percent}%[/info]")
        self.console.print()

    @contextmanager
    def task(self, description: str) -> Iterator[None]:
        """Show a spinner while a long-running command executes."""
        if self.quiet or not self.console.is_terminal:
            yield
            return
        with self.console.status(f"[info]{escape(description)}...[/info]"):
            yield

    def confirm(self, question: str) -> bool:
        """
        Ask a y/N question. Defaults to "no".

        Returns True without prompting when auto_yes is set; returns False
        when input is closed.
        """
        if self.auto_yes:
            logger.info(f"{question} [auto-yes]")
            return True
        try:
            answer = self._ask(question)
        except EOFError:
            answer = False
        logger.info(f"{question} -> {'yes' if answer else 'no'}")
        return answer

    def _prompt(self, question: str) -> bool:
        return Confirm.ask(question, default=False, console=self.console)


def progress_bar(percent: int, width: int = 20) -> str:
    """Render a block progress bar; each cell covers 100/width percent."""
    percent = max(0, min(100, percent))
    completed = percent * width // 100
    return '█' * completed + '░' * (width - completed)
