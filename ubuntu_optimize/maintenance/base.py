"""
Shared plumbing for maintenance modules.
"""

import shutil
import time
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ..config import Settings
from ..output import Reporter
from .runner import CommandRunner

REBOOT_REQUIRED = '/var/run/reboot-required'


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree. Returns False if anything remained."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        return True
    except OSError:
        return False


def empty_dir(directory: Path) -> bool:
    """Remove everything inside directory, keeping the directory itself."""
    ok = True
    for entry in directory.iterdir():
        ok = remove_path(entry) and ok
    return ok


class MaintenanceError(Exception):
    """Base class for errors that end a maintenance module."""
    exit_code = 1


class ModuleFailed(MaintenanceError):
    """A required step failed; the module stops with exit_code."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class OperationCancelled(MaintenanceError):
    """The user declined a confirmation. Not a failure."""
    exit_code = 0


class Janitor:
    """
    Base for one maintenance action.

    Subclasses set name/title and implement run(), returning a results
    dict with an 'errors' list for steps that failed but did not stop
    the module.
    """

    name = ''
    title = ''
    finished = ''
    description = ''
    # Cleared by FullOptimizer, which offers the reboot once at the end
    reboot_allowed = True

    def __init__(self, runner: CommandRunner, reporter: Reporter, settings: Settings):
        self.runner = runner
        self.reporter = reporter
        self.settings = settings
        self.sleep = time.sleep

    @property
    def home(self) -> Path:
        return self.settings.home

    def sys_path(self, path: str) -> Path:
        """Resolve an absolute system path under the configured root."""
        return self.settings.root / str(path).lstrip('/')

    def host_path(self, path: Path) -> str:
        """Inverse of sys_path: the absolute path as seen by OS commands."""
        try:
            return '/' + str(Path(path).relative_to(self.settings.root))
        except ValueError:
            return str(path)

    def run(self) -> Dict[str, Any]:
        raise NotImplementedError

    def execute(self) -> Dict[str, Any]:
        """Run the module framed by its start and finish banners."""
        self.reporter.banner(self.title)
        try:
            return self.run()
        finally:
            self.reporter.blank()
            self.reporter.banner(self.finished or f"{self.name} process finished!")

    def attempt(
        self,
        args: Sequence[str],
        success: str,
        failure: str,
        sudo: bool = False,
        results: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> bool:
        """
        Run a command, print success or a warning, and keep going.

        A failure message is appended to results['errors'] when results
        is given.
        """
        result = self.runner.run(args, sudo=sudo, **kwargs)
        if result.ok:
            self.reporter.success(success)
            return True
        self.reporter.warning(failure)
        if results is not None:
            results['errors'].append(f"{self.name}: {failure}")
        return False

    def install_file(self, path: str, content: str, label: str) -> bool:
        """Write a root-owned config file, reporting the outcome."""
        if self.runner.write_file(path, content).ok:
            self.reporter.success(f"{label} created: {path}")
            return True
        self.reporter.warning(f"Failed to create {label.lower()}: {path}")
        return False

    def backup_once(self, path: str, backup: Optional[str] = None) -> bool:
        """Copy path to backup (default: path.backup) unless a backup already exists."""
        backup = backup or f"{path}.backup"
        if not self.sys_path(path).exists() or self.sys_path(backup).exists():
            return False
        if self.runner.run(['cp', path, backup], sudo=True).ok:
            self.reporter.success(f"Created backup of {path}")
            return True
        self.reporter.warning(f"Failed to back up {path}")
        return False

    def apply_sysctl(self, path: str, content: str, label: str) -> bool:
        """Install a sysctl.d file and load it with 'sysctl -p'."""
        if not self.install_file(path, content, label):
            return False
        if self.runner.run(['sysctl', '-p', path], sudo=True).ok:
            self.reporter.success(f"{label} applied")
        else:
            self.reporter.warning(f"Failed to apply {label.lower()} immediately")
        return True

    def distribution(self) -> str:
        """Distribution description as reported by lsb_release."""
        result = self.runner.run(['lsb_release', '-ds'])
        if result.ok and result.stdout.strip():
            return result.stdout.strip().strip('"')
        return 'Unknown'

    def kernel(self) -> str:
        result = self.runner.run(['uname', '-r'])
        return result.stdout.strip() if result.ok else 'Unknown'

    def architecture(self) -> str:
        result = self.runner.run(['uname', '-m'])
        return result.stdout.strip() if result.ok else 'Unknown'

    def offer_reboot(self) -> bool:
        """
        Offer a reboot when /var/run/reboot-required exists.

        Returns True if a reboot was requested.
        """
        self.reporter.status("Checking if system reboot is required...")
        if not self.sys_path(REBOOT_REQUIRED).exists():
            self.reporter.success("No reboot required")
            return False

        self.reporter.warning("System reboot is required!")
        if not self.reboot_allowed:
            self.reporter.status("Reboot deferred until the optimization finishes")
            return False
        pkgs = self.sys_path(REBOOT_REQUIRED + '.pkgs')
        if pkgs.exists():
            packages = ' '.join(pkgs.read_text(errors='replace').split())
            self.reporter.status(f"Packages requiring reboot: {packages}")

        self.reporter.blank()
        if not self.reporter.confirm("Do you want to reboot now?"):
            self.reporter.warning("Please reboot your system when convenient")
            return False

        self.reporter.status(f"Rebooting system in {self.settings.reboot_delay} seconds...")
        self.reporter.warning("Save your work now!")
        self.sleep(self.settings.reboot_delay)
        self.runner.run(['reboot'], sudo=True)
        return True

    def settle(self, seconds: Optional[float] = None):
        self.sleep(self.settings.settle_seconds if seconds is None else seconds)

    def new_results(self, **counters: Any) -> Dict[str, Any]:
        results: Dict[str, Any] = dict(counters)
        results['errors'] = []
        return results
