"""
Command Runner - thin wrapper over subprocess for system utilities.

Every OS command the toolkit invokes goes through CommandRunner.run so that:
- Missing binaries become exit code 127 instead of exceptions
- Timeouts become exit code 124
- Privileged commands get a single 'sudo' prefix
- Each invocation is logged at DEBUG
"""

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger('ubuntu_optimize.maintenance.runner')

EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124

APT_ENV = {'DEBIAN_FRONTEND': 'noninteractive'}


@dataclass
class CommandResult:
    """Outcome of a single command."""
    args: List[str]
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def lines(self) -> List[str]:
        """Non-empty stdout lines."""
        return [line for line in self.stdout.splitlines() if line.strip()]

    @property
    def command_line(self) -> str:
        return ' '.join(shlex.quote(a) for a in self.args)


class CommandRunner:
    """
    Run OS commands and report their exit status.

    Subclasses (tests) override _execute to script results without
    touching the system.
    """

    def __init__(self, timeout: Optional[int] = 3600):
        self.timeout = timeout

    def which(self, name: str) -> Optional[str]:
        """Return the path of an executable on PATH, or None."""
        return shutil.which(name)

    def has(self, name: str) -> bool:
        return self.which(name) is not None

    def run(
        self,
        args: Sequence[str],
        sudo: bool = False,
        input_text: Optional[str] = None,
        timeout: Optional[int] = None,
        env: Optional[Dict[str, str]] = None
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Command and arguments
            sudo: Prefix with 'sudo'
            input_text: Text to feed on stdin
            timeout: Seconds before the command is killed (defaults to runner timeout)
            env: Extra environment variables

        Returns:
            CommandResult (never raises for command failures)
        """
        cmd = (['sudo'] if sudo else []) + [str(a) for a in args]
        if env:
            # sudo drops the caller's environment; pass variables explicitly
            assignments = [f"{k}={v}" for k, v in env.items()]
            cmd = cmd[:1] + assignments + cmd[1:] if sudo else ['env'] + assignments + cmd

        logger.debug(f"Executing: {' '.join(shlex.quote(c) for c in cmd)}")
        result = self._execute(cmd, input_text, timeout or self.timeout)

        if result.ok:
            logger.debug(f"Exit 0: {cmd[0]}")
        else:
            logger.debug(f"Exit {result.returncode}: {result.command_line}: {result.stderr.strip()}")
        return result

    def _execute(
        self,
        cmd: List[str],
        input_text: Optional[str],
        timeout: Optional[int]
    ) -> CommandResult:
        try:
            proc = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=dict(os.environ, LC_ALL='C'),
            )
            return CommandResult(cmd, proc.returncode, proc.stdout or '', proc.stderr or '')
        except FileNotFoundError:
            logger.debug(f"Command not found: {cmd[0]}")
            return CommandResult(cmd, EXIT_NOT_FOUND, '', f"{cmd[0]}: command not found")
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {timeout}s: {' '.join(cmd)}")
            return CommandResult(cmd, EXIT_TIMEOUT, '', 'timed out')

    def write_file(self, path: str, content: str, sudo: bool = True) -> CommandResult:
        """Write content to a root-owned path through 'tee'."""
        return self.run(['tee', str(path)], sudo=sudo, input_text=content)

    def apt(self, *args: str, sudo: bool = True) -> CommandResult:
        """Run apt non-interactively."""
        return self.run(['apt', *args], sudo=sudo, env=APT_ENV)
