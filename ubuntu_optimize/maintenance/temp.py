"""
Temp Janitor - system temp directories, old logs and browser caches.

Handles:
- /tmp files older than a day (sockets and session files preserved)
- /var/tmp files older than a week
- Rotated and compressed logs in /var/log older than a month
- Oversized kern/alternatives/dpkg logs (truncated, not removed)
- Browser disk caches
"""

import fnmatch
import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .base import Janitor, empty_dir
from .metrics import MB, dir_size_text, disk_free, human_size, iter_files, older_than_days

logger = logging.getLogger('ubuntu_optimize.maintenance.temp')

TMP_PRESERVE = ['.X*', '.ICE-unix', '.font-unix', 'ssh-*', 'systemd-*', 'pulse-*']
ROTATED_LOG_PATTERNS = ['*.log.*', '*.gz', '*.old']
TRUNCATE_LOGS = ['/var/log/kern.log', '/var/log/alternatives.log', '/var/log/dpkg.log']

# Files per 'rm' invocation
RM_BATCH = 100


def is_preserved(relative: Path, patterns: Sequence[str] = TMP_PRESERVE) -> bool:
    """True if any component of a /tmp-relative path matches a preserve pattern."""
    return any(
        fnmatch.fnmatchcase(part, pattern)
        for part in relative.parts
        for pattern in patterns
    )


def find_old_files(
    directory: Path,
    days: int,
    max_depth: Optional[int] = None,
    patterns: Optional[Sequence[str]] = None,
    preserve: Sequence[str] = (),
    now: Optional[float] = None
) -> List[Path]:
    """
    Regular files under directory modified more than days ago.

    Args:
        directory: Directory to scan
        days: Age threshold with find -mtime +N semantics
        max_depth: find -maxdepth equivalent
        patterns: Only names matching one of these globs
        preserve: Skip paths with a component matching one of these globs
        now: Reference time (defaults to now)
    """
    now = time.time() if now is None else now
    found = []
    for path in iter_files(directory, max_depth):
        if patterns and not any(fnmatch.fnmatchcase(path.name, p) for p in patterns):
            continue
        if preserve and is_preserved(path.relative_to(directory), preserve):
            continue
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue
        if older_than_days(mtime, days, now):
            found.append(path)
    return sorted(found)


class TempJanitor(Janitor):
    """Remove stale temporary files and old logs system-wide."""

    name = 'clean-temp'
    title = 'Ubuntu Temporary Files Cleanup Tool'
    finished = 'Temporary files cleanup process finished!'
    description = 'Clean system temporary files and logs'

    def run(self) -> Dict[str, Any]:
        results = self.new_results(
            tmp_files=0,
            var_tmp_files=0,
            log_files=0,
            logs_truncated=0,
            browser_caches=0,
        )

        self.reporter.status("Starting temporary files cleanup process...")
        initial = disk_free(self.sys_path('/'))
        self.reporter.status(f"Available disk space before cleanup: {human_size(initial)}")

        self.clean_tmp(results)
        self.reporter.blank()
        self.clean_var_tmp(results)
        self.reporter.blank()
        self.clean_old_logs(results)
        self.reporter.blank()
        self.clean_browser_temp(results)

        final = disk_free(self.sys_path('/'))
        self.reporter.status(f"Available disk space after cleanup: {human_size(final)}")
        self.reporter.success("Temporary files cleanup completed successfully!")

        logger.info(f"Temp cleanup complete: {results}")
        return results

    def remove_files(self, files: Iterable[Path], results: Dict[str, Any]) -> int:
        """Delete root-owned files with 'sudo rm -f' in batches; returns the count removed."""
        paths = [self.host_path(f) for f in files]
        removed = 0
        for i in range(0, len(paths), RM_BATCH):
            batch = paths[i:i + RM_BATCH]
            if self.runner.run(['rm', '-f', '--', *batch], sudo=True).ok:
                removed += len(batch)
            else:
                results['errors'].append(f"{self.name}: failed to remove {len(batch)} file(s)")
        return removed

    def clean_tmp(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning /tmp directory...")
        tmp_dir = self.sys_path('/tmp')
        if not tmp_dir.is_dir():
            self.reporter.warning("/tmp directory not found")
            return

        self.reporter.status(f"/tmp size before cleanup: {dir_size_text(tmp_dir)}")
        old = find_old_files(
            tmp_dir, self.settings.tmp_max_age_days, max_depth=2, preserve=TMP_PRESERVE
        )
        results['tmp_files'] = self.remove_files(old, results)
        self.reporter.success(
            f"/tmp cleanup completed. Files cleaned: {results['tmp_files']}, "
            f"New size: {dir_size_text(tmp_dir)}"
        )

    def clean_var_tmp(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning /var/tmp directory...")
        var_tmp = self.sys_path('/var/tmp')
        if not var_tmp.is_dir():
            self.reporter.warning("/var/tmp directory not found")
            return

        self.reporter.status(f"/var/tmp size before cleanup: {dir_size_text(var_tmp)}")
        old = find_old_files(var_tmp, self.settings.var_tmp_max_age_days)
        results['var_tmp_files'] = self.remove_files(old, results)
        self.reporter.success(
            f"/var/tmp cleanup completed. Files cleaned: {results['var_tmp_files']}, "
            f"New size: {dir_size_text(var_tmp)}"
        )

    def clean_old_logs(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning old log files...")
        log_dir = self.sys_path('/var/log')
        if not log_dir.is_dir():
            self.reporter.warning("/var/log directory not found")
            return

        self.reporter.status(f"/var/log size before cleanup: {dir_size_text(log_dir)}")
        old = find_old_files(
            log_dir, self.settings.log_max_age_days, patterns=ROTATED_LOG_PATTERNS
        )
        results['log_files'] = self.remove_files(old, results)

        limit = self.settings.system_log_limit_mb * MB
        for log_file in TRUNCATE_LOGS:
            path = self.sys_path(log_file)
            try:
                size = path.stat().st_size if path.is_file() else 0
            except OSError:
                size = 0
            if size > limit and self.runner.run(['truncate', '-s', '1M', log_file], sudo=True).ok:
                self.reporter.status(f"Truncated large log file: {log_file}")
                results['logs_truncated'] += 1

        self.reporter.success(
            f"Log cleanup completed. Files cleaned: {results['log_files']}, "
            f"New size: {dir_size_text(log_dir)}"
        )

    def browser_cache_dirs(self) -> List[Path]:
        dirs = sorted((self.home / '.mozilla' / 'firefox').glob('*/Cache'))
        dirs += [
            self.home / '.cache' / 'google-chrome' / 'Default' / 'Cache',
            self.home / '.cache' / 'chromium' / 'Default' / 'Cache',
            self.home / '.config' / 'google-chrome' / 'Default' / 'Application Cache',
        ]
        return [d for d in dirs if d.is_dir()]

    def clean_browser_temp(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning browser temporary files...")
        for cache_dir in self.browser_cache_dirs():
            if empty_dir(cache_dir):
                self.reporter.status(f"Cleaned browser cache: {cache_dir.parent}")
                results['browser_caches'] += 1

        if results['browser_caches'] > 0:
            self.reporter.success(
                f"Browser temporary files cleaned from {results['browser_caches']} locations"
            )
        else:
            self.reporter.status("No browser temporary files found to clean")
