"""
Snap Janitor - disabled revisions and snapd caches.
"""

import logging
from typing import Any, Dict, List, Sequence, Tuple

from .base import Janitor
from .metrics import dir_size_text

logger = logging.getLogger('ubuntu_optimize.maintenance.snap')

SNAPS_DIR = '/var/lib/snapd/snaps'
SYSTEM_CACHE_DIRS = ['/var/lib/snapd/cache', '/var/cache/snapd']


def disabled_revisions(lines: Sequence[str]) -> List[Tuple[str, str]]:
    """(name, revision) pairs for disabled rows of 'snap list --all' output."""
    revisions = []
    for line in lines[1:]:
        columns = line.split()
        # Notes is the last column, comma separated ("base,disabled")
        if len(columns) > 3 and 'disabled' in columns[-1].split(','):
            revisions.append((columns[0], columns[2]))
    return revisions


class SnapJanitor(Janitor):
    """Remove old snap revisions and empty the snapd caches."""

    name = 'clean-snap'
    title = 'Ubuntu Snap Cleanup Tool'
    finished = 'Snap cleanup process finished!'
    description = 'Clean Snap packages and old revisions'

    def run(self) -> Dict[str, Any]:
        results = self.new_results(revisions_removed=0, cache_dirs_cleaned=0)

        if not self.runner.has('snap'):
            self.reporter.warning("Snap package manager not found, skipping snap cleanup")
            self.reporter.status("Snap is not installed, nothing to clean")
            return results

        self.reporter.status("Starting snap cleanup process...")
        snaps_dir = self.sys_path(SNAPS_DIR)
        self.reporter.status(f"Snap directory size before cleanup: {dir_size_text(snaps_dir)}")

        self.clean_old_revisions(results)
        self.reporter.blank()
        self.clean_snap_cache(results)
        self.reporter.blank()
        self.refresh_snap_cache()

        self.reporter.status(f"Snap directory size after cleanup: {dir_size_text(snaps_dir)}")
        self.reporter.success("Snap cleanup completed successfully!")

        logger.info(f"Snap cleanup complete: {results}")
        return results

    def clean_old_revisions(self, results: Dict[str, Any]):
        self.reporter.status("Checking for old snap revisions...")
        revisions = disabled_revisions(self.runner.run(['snap', 'list', '--all']).lines())
        if not revisions:
            self.reporter.status("No old snap revisions found")
            return

        for snap_name, revision in revisions:
            self.reporter.status(f"Removing old revision of {snap_name} (revision {revision})...")
            removed = self.runner.run(
                ['snap', 'remove', snap_name, f"--revision={revision}"], sudo=True
            )
            if removed.ok:
                self.reporter.success(f"Removed {snap_name} revision {revision}")
                results['revisions_removed'] += 1
            else:
                self.reporter.warning(f"Failed to remove {snap_name} revision {revision}")
                results['errors'].append(f"{self.name}: {snap_name} revision {revision}")

        if results['revisions_removed'] > 0:
            self.reporter.success(f"Cleaned {results['revisions_removed']} old snap revisions")
        else:
            self.reporter.status("No snap revisions were cleaned")

    def cache_dirs(self) -> List[Tuple[str, bool]]:
        """(command path, exists) for each snap cache directory."""
        dirs = [(path, self.sys_path(path).is_dir()) for path in SYSTEM_CACHE_DIRS]
        snap_home = self.home / 'snap'
        if snap_home.is_dir():
            dirs.extend(
                (str(path), True)
                for path in sorted(snap_home.glob('*/common/.cache'))
                if path.is_dir()
            )
        return dirs

    def clean_snap_cache(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning snap cache...")
        for cache_dir, exists in self.cache_dirs():
            if not exists:
                continue
            self.reporter.status(f"Cleaning cache directory: {cache_dir}")
            if self.attempt(
                ['find', cache_dir, '-type', 'f', '-delete'], sudo=True,
                success=f"Cleaned: {cache_dir}",
                failure=f"Failed to clean: {cache_dir}",
                results=results,
            ):
                results['cache_dirs_cleaned'] += 1

    def refresh_snap_cache(self):
        self.reporter.status("Refreshing snap store cache...")
        self.attempt(
            ['snap', 'refresh', '--list'],
            success="Snap cache refreshed",
            failure="Failed to refresh snap cache",
        )
