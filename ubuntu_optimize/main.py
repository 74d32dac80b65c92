#!/usr/bin/env python3
"""
Ubuntu Optimize CLI

Main entry point for the Ubuntu optimization toolkit.

Usage:
    ubuntu-optimize full
    ubuntu-optimize clean-cache --yes
    python -m ubuntu_optimize status
"""

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .completion import INFO_COMMANDS, completion_script
from .config import ConfigError, Settings, load_settings
from .maintenance import MODULES, CommandRunner, ModuleFailed, OperationCancelled, SystemStatus
from .maintenance.metrics import MB
from .output import REPORT_LOGGER, THEME, Reporter

logger = logging.getLogger('ubuntu_optimize')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'ubuntu-optimize.log'

PROJECT_URL = 'https://github.com/dipto-roy/ubuntu-optimize'

HELP_TEXT = """\
[bold]Ubuntu Optimize Toolkit v{version}[/bold]

A comprehensive Ubuntu optimization toolkit for system cleanup,
performance optimization, and maintenance.

[bold]USAGE:[/bold]
    ubuntu-optimize \\[COMMAND] \\[OPTIONS]

[bold]COMMANDS:[/bold]
{modules}

{info}

[bold]OPTIONS:[/bold]
    -v, --verbose     Enable verbose output
    -q, --quiet       Suppress non-error output
    -y, --yes         Automatically answer yes to prompts
    -h, --help        Show this help message
    --config PATH     Read settings from a YAML file

[bold]EXAMPLES:[/bold]
    ubuntu-optimize full              # Run complete optimization
    ubuntu-optimize clean-cache       # Clean only cache files
    ubuntu-optimize update --yes      # Update system without prompts
    ubuntu-optimize status            # Show system status

[bold]SAFETY:[/bold]
    - All operations are designed to be safe for daily use
    - Commands refuse to run as root and use sudo where needed
    - Backup information is created before major changes
    - Individual modules can be run independently

[bold]REQUIREMENTS:[/bold]
    - Ubuntu LTS 18.04 or newer
    - Internet connection (for updates)
    - Sufficient disk space for operations

For more information, visit: {url}"""

INFO_DESCRIPTIONS = {
    'status': 'Show system status and optimization info',
    'list': 'List all available optimization modules',
    'version': 'Show version information',
    'help': 'Show this help message',
    'completion': 'Print the bash completion script',
}

# Listing order for help: 'full' first, then the single modules
HELP_ORDER = ['full'] + [name for name in MODULES if name != 'full']


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ubuntu-optimize',
        description='Ubuntu optimization toolkit',
        add_help=False,
    )
    parser.add_argument('command', nargs='?', help='Module or command to run')
    parser.add_argument('-v', '--verbose', action='store_true', default=None,
                        help='Enable verbose output')
    parser.add_argument('-q', '--quiet', action='store_true', default=None,
                        help='Suppress non-error output')
    parser.add_argument('-y', '--yes', dest='auto_yes', action='store_true', default=None,
                        help='Automatically answer yes to prompts')
    parser.add_argument('-h', '--help', dest='show_help', action='store_true',
                        help='Show this help message')
    parser.add_argument('--config', default=None, help='Path to a YAML settings file')
    return parser


def setup_logging(settings: Settings) -> None:
    """
    Configure the 'ubuntu_optimize' logger tree.

    Diagnostics go to stderr through rich; user-facing report lines are
    already on screen, so only the rotating log file receives them.
    """
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True, theme=THEME),
        show_path=False,
        rich_tracebacks=settings.verbose,
    )
    console_handler.setLevel(logging.DEBUG if settings.verbose else logging.WARNING)
    console_handler.addFilter(lambda record: not record.name.startswith(REPORT_LOGGER))
    logger.addHandler(console_handler)

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.log_dir / LOG_FILE,
            maxBytes=10 * MB,
            backupCount=3,
            encoding='utf-8',
        )
    except OSError as e:
        logger.warning(f"File logging disabled, cannot write to {settings.log_dir}: {e}")
        return
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)


def is_root() -> bool:
    return os.geteuid() == 0


def show_help(console: Console):
    modules = '\n'.join(
        f"    [cyan]{name:<18}[/cyan]{MODULES[name].description}" for name in HELP_ORDER
    )
    info = '\n'.join(
        f"    [cyan]{name:<18}[/cyan]{INFO_DESCRIPTIONS[name]}" for name in INFO_COMMANDS
    )
    console.print(HELP_TEXT.format(
        version=__version__, modules=modules, info=info, url=PROJECT_URL
    ))


def show_version(reporter: Reporter, status: SystemStatus):
    console = reporter.console
    console.print("[bold]Ubuntu Optimize Toolkit[/bold]")
    console.print(f"Version: {__version__}")
    console.print("Compatible: Ubuntu LTS 18.04+")
    console.print("Author: Ubuntu Optimize Team")
    console.print()
    console.print("System Information:")
    console.print(f"Distribution: {status.distribution()}")
    console.print(f"Kernel: {status.kernel()}")
    console.print(f"Architecture: {status.architecture()}")


def list_modules(reporter: Reporter):
    reporter.header("Available Optimization Modules:")
    reporter.blank()
    for name, module in MODULES.items():
        reporter.console.print(f"  [cyan]{name:<18}[/cyan] {module.description}")
    reporter.blank()
    reporter.status("Run 'ubuntu-optimize [module-name]' to execute a specific module")
    reporter.status("Run 'ubuntu-optimize full' to execute all optimization modules")


def refuse_root(reporter: Reporter) -> bool:
    if not is_root():
        return False
    reporter.error("This tool should not be run as root for safety reasons")
    reporter.error("Please run as a regular user with sudo privileges")
    return True


def run_module(name: str, runner: CommandRunner, reporter: Reporter, settings: Settings) -> int:
    """Run one maintenance module and map its outcome to an exit code."""
    janitor = MODULES[name](runner, reporter, settings)
    reporter.status(f"Running optimization: {name}")
    reporter.blank()
    try:
        janitor.execute()
    except OperationCancelled as e:
        reporter.status(str(e))
        logger.info(f"{name} cancelled: {e}")
        return 0
    except ModuleFailed as e:
        reporter.blank()
        reporter.error(str(e))
        reporter.error(f"Optimization failed: {name} (exit code: {e.exit_code})")
        logger.error(f"{name} failed: {e}")
        return e.exit_code

    reporter.blank()
    reporter.success(f"Optimization completed: {name}")
    return 0


def main(
    argv: Optional[List[str]] = None,
    runner: Optional[CommandRunner] = None,
    console: Optional[Console] = None
) -> int:
    parser = build_parser()
    args, unknown = parser.parse_known_args(argv)
    default_console = console or Console(theme=THEME, highlight=False)

    if unknown:
        Reporter(console=default_console).error(f"Unknown option: {unknown[0]}")
        default_console.print()
        show_help(default_console)
        return 1

    command = args.command
    if args.show_help or command in (None, 'help'):
        show_help(default_console)
        return 0

    if command == 'completion':
        sys.stdout.write(completion_script(list(MODULES)))
        return 0

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        Reporter(console=default_console).error(str(e))
        return 1
    settings = settings.with_flags(
        verbose=args.verbose, quiet=args.quiet, auto_yes=args.auto_yes
    )

    setup_logging(settings)
    reporter = Reporter(
        console=default_console,
        quiet=settings.quiet,
        verbose=settings.verbose,
        auto_yes=settings.auto_yes,
    )
    runner = runner or CommandRunner(timeout=settings.command_timeout)

    if command == 'version':
        show_version(reporter, SystemStatus(runner, reporter, settings))
        return 0
    if command == 'list':
        list_modules(reporter)
        return 0

    if command != 'status' and command not in MODULES:
        reporter.error(f"Invalid command: {command}")
        reporter.blank()
        list_modules(reporter)
        return 1

    if refuse_root(reporter):
        return 1

    logger.info(f"ubuntu-optimize {__version__} starting: {command}")
    try:
        if command == 'status':
            SystemStatus(runner, reporter, settings).run()
            return 0

        reporter.header(f"Ubuntu Optimize Toolkit v{__version__}")
        reporter.blank()
        return run_module(command, runner, reporter, settings)
    except KeyboardInterrupt:
        reporter.blank()
        reporter.error("Interrupted by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
