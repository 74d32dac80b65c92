"""
System Optimizer - unified interface to all maintenance modules.

Coordinates:
- The ten-step full optimization run with before/after metrics
- The system status report

Each step is one of the single-purpose modules; a step's failure policy
decides whether the run stops or carries on.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Type

import psutil

from .apt import AptJanitor
from .base import (
    REBOOT_REQUIRED,
    Janitor,
    MaintenanceError,
    ModuleFailed,
    OperationCancelled,
)
from .cache import CacheJanitor
from .logs import LogLimiter
from .memory import MemoryOptimizer
from .metrics import MB, MemorySnapshot, Metrics, human_size
from .preload import PreloadInstaller
from .snap import SnapJanitor
from .ssd import SsdOptimizer
from .temp import TempJanitor
from .tracker import TrackerDisabler
from .update import SystemUpdater

logger = logging.getLogger('ubuntu_optimize.maintenance.system')

# Failure policies
CONTINUE = 'continue'   # warn and keep going
REQUIRED = 'required'   # abort the run
OPTIONAL = 'optional'   # warn and keep going
ASK = 'ask'             # optional, and only run after its own confirmation


class Step(NamedTuple):
    janitor: Type[Janitor]
    label: str
    description: str
    policy: str
    prompt: Optional[str] = None
    notice: Optional[str] = None


STEPS: List[Step] = [
    Step(SystemUpdater, "System Update",
         "Updating system packages and security patches", CONTINUE),
    Step(AptJanitor, "APT Package Cleanup",
         "Cleaning APT package cache and orphaned packages", REQUIRED),
    Step(SnapJanitor, "Snap Package Cleanup",
         "Cleaning Snap packages and old revisions", OPTIONAL),
    Step(CacheJanitor, "Cache Cleanup",
         "Cleaning user and application caches", REQUIRED),
    Step(TempJanitor, "Temporary Files Cleanup",
         "Cleaning temporary files and directories", REQUIRED),
    Step(LogLimiter, "Log Management",
         "Configuring log rotation and cleanup", OPTIONAL),
    Step(SsdOptimizer, "SSD Optimization",
         "Optimizing SSD performance and TRIM", OPTIONAL),
    Step(MemoryOptimizer, "Memory Cleanup",
         "Cleaning and optimizing memory usage", OPTIONAL),
    Step(TrackerDisabler, "GNOME Tracker Disable",
         "Disabling GNOME Tracker (optional)", ASK,
         prompt="Do you want to disable GNOME Tracker?",
         notice="Tracker disable is optional and affects file search functionality"),
    Step(PreloadInstaller, "Preload Installation",
         "Installing and configuring preload (optional)", ASK,
         prompt="Do you want to install preload?",
         notice="Preload installation is optional and requires 2GB+ RAM"),
]

FEATURES = [
    "System updates and security patches",
    "Package cache cleanup (APT, Snap)",
    "User cache and temporary files cleanup",
    "Log file management and rotation",
    "Memory optimization and cleanup",
    "SSD optimization (TRIM configuration)",
    "Optional: GNOME Tracker disable",
    "Optional: Preload installation",
]


class FullOptimizer(Janitor):
    """
    Run every maintenance module in order.

    Step outcomes are recorded as 'ok', 'failed', 'cancelled' or
    'skipped'. A required step that fails raises ModuleFailed and ends
    the run; any other failure is recorded in results['errors'].
    """

    name = 'full'
    title = 'Ubuntu Full Optimization Tool'
    finished = 'Full optimization process finished!'
    description = 'Run complete optimization (all modules)'

    def __init__(self, runner, reporter, settings, steps: Optional[List[Step]] = None):
        super().__init__(runner, reporter, settings)
        self.steps = STEPS if steps is None else steps
        self.collect_metrics = lambda: Metrics.collect(self.home, self.sys_path('/'))

    def run(self) -> Dict[str, Any]:
        self.reporter.detail("This tool will perform a comprehensive optimization")
        self.reporter.detail("of your Ubuntu system including:")
        self.reporter.blank()
        for feature in FEATURES:
            self.reporter.detail(f"✓ {feature}")
        self.reporter.blank()

        self.show_system_info()
        self.reporter.warning("This process may take 15-30 minutes depending on your system")
        self.reporter.warning("Please ensure you have a stable internet connection")
        self.reporter.warning("Close important applications before proceeding")
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to start the full optimization?"):
            self.reporter.status("You can run individual optimization modules manually")
            raise OperationCancelled("Full optimization cancelled by user")

        results = self.new_results(
            steps={},
            metrics_before=None,
            metrics_after=None,
            log_file=None,
            reboot_requested=False,
        )

        self.reporter.step("Starting Full Ubuntu Optimization")
        self.reporter.blank()
        self.reporter.status("Collecting initial system metrics...")
        before = self.collect_metrics()
        results['metrics_before'] = before
        self.reporter.status("Initial metrics collected")

        total = len(self.steps)
        for index, step in enumerate(self.steps, 1):
            self.reporter.progress(index, total, step.description)
            results['steps'][step.janitor.name] = self.run_step(step, results)

        self.reporter.step("Optimization Complete!")
        self.reporter.blank()
        after = self.collect_metrics()
        results['metrics_after'] = after
        self.show_final_metrics(before, after)
        log_file = self.create_optimization_log(before, after)
        results['log_file'] = str(log_file) if log_file else None

        self.reporter.success("Full Ubuntu optimization completed successfully!")
        self.reporter.status("Your system has been optimized for better performance")
        if self.sys_path(REBOOT_REQUIRED).exists():
            self.reporter.blank()
            self.reporter.warning("A system reboot is recommended to complete the optimization")
        results['reboot_requested'] = self.offer_reboot()

        logger.info(f"Full optimization complete: {results['steps']}")
        return results

    def run_step(self, step: Step, results: Dict[str, Any]) -> str:
        """Run one module under its failure policy and return its outcome."""
        if step.policy == ASK:
            self.reporter.warning(step.notice)
            if not self.reporter.confirm(step.prompt):
                self.reporter.status(f"Skipping {step.label}")
                return 'skipped'

        self.reporter.step(f"Running: {step.label}")
        janitor = step.janitor(self.runner, self.reporter, self.settings)
        janitor.sleep = self.sleep
        janitor.reboot_allowed = False
        try:
            outcome = janitor.execute()
        except OperationCancelled as e:
            self.reporter.status(str(e))
            return 'cancelled'
        except MaintenanceError as e:
            return self._step_failed(step, e, results)
        except Exception as e:
            logger.error(f"{step.label} raised {type(e).__name__}: {e}")
            return self._step_failed(step, e, results)

        results['errors'].extend(outcome.get('errors', []))
        self.reporter.success(f"{step.label} completed successfully")
        return 'ok'

    def _step_failed(self, step: Step, error: Exception, results: Dict[str, Any]) -> str:
        exit_code = getattr(error, 'exit_code', 1)
        if step.policy == REQUIRED:
            self.reporter.error(f"{step.label} failed with exit code {exit_code}")
            raise ModuleFailed(f"{step.label} failed: {error}", exit_code)

        results['errors'].append(f"{step.janitor.name}: {error}")
        if step.policy == CONTINUE:
            self.reporter.warning(
                f"{step.label} failed, but continuing with other optimizations"
            )
        else:
            self.reporter.warning(f"{step.label} failed (optional - continuing)")
        return 'failed'

    def show_system_info(self):
        self.reporter.step("System Information")
        self.reporter.blank()
        root = psutil.disk_usage(str(self.sys_path('/')))
        self.reporter.status(f"Ubuntu Version: {self.distribution()}")
        self.reporter.status(f"Kernel Version: {self.kernel()}")
        self.reporter.status(f"System Architecture: {self.architecture()}")
        self.reporter.status(f"Memory: {human_size(psutil.virtual_memory().total)}")
        self.reporter.status(f"CPU: {self.cpu_model()}")
        self.reporter.status(f"Disk Usage: {root.percent:.0f}% used of {human_size(root.total)}")
        self.reporter.blank()

    def cpu_model(self) -> str:
        try:
            cpuinfo = self.sys_path('/proc/cpuinfo').read_text(errors='replace')
        except OSError:
            return 'Unknown'
        for line in cpuinfo.splitlines():
            if line.startswith('model name'):
                return ' '.join(line.split(':', 1)[1].split())
        return 'Unknown'

    def show_final_metrics(self, before: Metrics, after: Metrics):
        self.reporter.step("Optimization Results")
        self.reporter.blank()

        disk_saved = (before.disk_used - after.disk_used) // MB
        cache_saved = (before.cache_size - after.cache_size) // MB
        log_saved = (before.log_size - after.log_size) // MB
        memory_change = (after.memory_used - before.memory_used) // MB

        self.reporter.status("Optimization Results:")
        if disk_saved > 0:
            self.reporter.success(f"Disk space freed: {disk_saved}MB")
        else:
            self.reporter.status(f"Disk space change: {disk_saved}MB")
        if cache_saved > 0:
            self.reporter.success(f"Cache reduced: {cache_saved}MB")
        if log_saved > 0:
            self.reporter.success(f"Log files reduced: {log_saved}MB")
        if memory_change < 0:
            self.reporter.success(f"Memory freed: {-memory_change}MB")
        elif memory_change > 0:
            self.reporter.status(f"Memory usage increased: {memory_change}MB")
        else:
            self.reporter.status("Memory usage unchanged")

        self.reporter.blank()
        memory = MemorySnapshot.take()
        self.reporter.status("Current system status:")
        self.reporter.status(f"Available memory: {human_size(memory.available)}")
        self.reporter.status(
            f"Free disk space: {human_size(psutil.disk_usage(str(self.sys_path('/'))).free)}"
        )
        self.reporter.blank()

    def create_optimization_log(self, before: Metrics, after: Metrics) -> Optional[Path]:
        log_dir = self.settings.log_dir
        now = datetime.now()
        log_file = log_dir / f"full-optimize-{now:%Y%m%d-%H%M%S}.log"

        timers = self.runner.run(['systemctl', 'list-timers', 'fstrim.timer'])
        lines = [
            "# Ubuntu Full Optimization Log",
            f"# Date: {now:%a %b %d %H:%M:%S %Y}",
            f"# User: {self.home.name}",
            f"# System: {self.distribution()}",
            "",
            "# Optimization completed successfully",
            f"# Initial disk usage: {before.disk_used // 1024}KB",
            f"# Final disk usage: {after.disk_used // 1024}KB",
            f"# Space saved: {(before.disk_used - after.disk_used) // 1024}KB",
            "",
            "# System information after optimization:",
        ]
        for args in (['uname', '-a'], ['free', '-h'], ['df', '-h']):
            lines.append(self.runner.run(args).stdout.rstrip())
        lines.append(timers.stdout.rstrip() if timers.ok else "TRIM timer not active")

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file.write_text('\n'.join(lines) + '\n')
        except OSError as e:
            self.reporter.warning(f"Could not save optimization log to {log_dir}: {e.strerror}")
            return None
        self.reporter.success(f"Optimization log saved: {log_file}")
        return log_file


class SystemStatus(Janitor):
    """Read-only overview of the system and of what has been optimized."""

    name = 'status'
    title = 'Ubuntu System Status'
    description = 'Show system status and optimization info'

    def get_system_status(self) -> Dict[str, Any]:
        uptime = self.runner.run(['uptime', '-p'])
        status = {
            'timestamp': datetime.now().isoformat(timespec='seconds'),
            'system': {
                'os': self.distribution(),
                'kernel': self.kernel(),
                'architecture': self.architecture(),
                'uptime': uptime.stdout.strip() if uptime.ok else 'Unknown',
            },
            'memory': self.runner.run(['free', '-h']).lines(),
            'disks': self.disk_usage(),
            'packages': self.package_counts(),
            'services': self.service_states(),
            'last_optimization': self.last_optimization(),
        }
        return status

    def disk_usage(self) -> List[Dict[str, Any]]:
        disks = []
        for part in psutil.disk_partitions(all=True):
            if not (part.device.startswith('/dev') or part.fstype == 'tmpfs'):
                continue
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError:
                continue
            disks.append({
                'device': part.device,
                'mountpoint': part.mountpoint,
                'size': usage.total,
                'used': usage.used,
                'free': usage.free,
                'percent': usage.percent,
            })
            if len(disks) == 5:
                break
        return disks

    def package_counts(self) -> Dict[str, Optional[int]]:
        selections = self.runner.run(['dpkg', '--get-selections']).lines()
        upgradable = [
            line for line in self.runner.run(['apt', 'list', '--upgradable']).lines()
            if not line.startswith('Listing')
        ]
        counts: Dict[str, Optional[int]] = {
            'installed': sum(1 for line in selections if line.split()[-1] == 'install'),
            'updates': len(upgradable),
            'snaps': None,
        }
        if self.runner.has('snap'):
            counts['snaps'] = len(self.runner.run(['snap', 'list']).lines()[1:])
        return counts

    def service_states(self) -> Dict[str, str]:
        if self.runner.run(['systemctl', 'is-enabled', 'fstrim.timer']).ok:
            trim = 'Enabled'
        else:
            trim = 'Disabled'

        if self.runner.run(['systemctl', 'is-active', 'preload.service']).ok:
            preload = 'Running'
        elif self.runner.has('preload'):
            preload = 'Installed but not running'
        else:
            preload = 'Not installed'

        tracker = 'Running' if self.runner.run(['pgrep', '-f', 'tracker']).ok else 'Not running'
        return {'TRIM timer': trim, 'Preload': preload, 'GNOME Tracker': tracker}

    def last_optimization(self) -> str:
        log_dir = self.settings.log_dir
        logs = list(log_dir.glob('full-optimize-*.log')) if log_dir.is_dir() else []
        if not logs:
            return 'Never'
        newest = max(logs, key=lambda p: p.stat().st_mtime)
        return f"{datetime.fromtimestamp(newest.stat().st_mtime):%Y-%m-%d}"

    def generate_report(self) -> str:
        """Generate a human-readable status report."""
        status = self.get_system_status()
        system = status['system']

        lines = [
            "System Information:",
            f"  OS: {system['os']}",
            f"  Kernel: {system['kernel']}",
            f"  Architecture: {system['architecture']}",
            f"  Uptime: {system['uptime']}",
            "",
            "Memory Usage:",
        ]
        lines.extend(f"  {line}" for line in status['memory'])
        lines.append("")

        lines.append("Disk Usage:")
        for disk in status['disks']:
            lines.append(
                f"  {disk['device']:<20} {human_size(disk['size']):>6} "
                f"{human_size(disk['used']):>6} {human_size(disk['free']):>6} "
                f"{disk['percent']:>5.1f}% {disk['mountpoint']}"
            )
        lines.append("")

        packages = status['packages']
        lines.append("Package Information:")
        lines.append(f"  Installed packages: {packages['installed']}")
        lines.append(f"  Available updates: {packages['updates']}")
        if packages['snaps'] is not None:
            lines.append(f"  Snap packages: {packages['snaps']}")
        lines.append("")

        lines.append("Optimization Services:")
        for service, state in status['services'].items():
            lines.append(f"  {service}: {state}")
        lines.append("")

        lines.append(f"Last optimization: {status['last_optimization']}")
        return "\n".join(lines)

    def run(self) -> Dict[str, Any]:
        self.reporter.header(self.title)
        self.reporter.blank()
        for line in self.generate_report().splitlines():
            self.reporter.detail(line)
        return self.new_results()
