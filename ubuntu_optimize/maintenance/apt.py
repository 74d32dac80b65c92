"""
APT Janitor - package cache and orphaned package cleanup.

Handles:
- Downloaded .deb archives (apt clean / autoclean)
- Orphaned dependencies (apt autoremove)
- Package list refresh
"""

import logging
from typing import Any, Dict

from .base import Janitor, ModuleFailed
from .metrics import disk_free, human_size

logger = logging.getLogger('ubuntu_optimize.maintenance.apt')

ARCHIVES_DIR = '/var/cache/apt/archives'


class AptJanitor(Janitor):
    """Clean the APT cache and remove packages nothing depends on."""

    name = 'clean-apt'
    title = 'Ubuntu APT Cleanup Tool'
    finished = 'APT cleanup process finished!'
    description = 'Clean APT package cache and orphaned packages'

    def run(self) -> Dict[str, Any]:
        if not self.runner.has('apt'):
            raise ModuleFailed("APT package manager not found")

        results = self.new_results(orphans_found=0, bytes_freed=0)
        archives = self.sys_path(ARCHIVES_DIR)

        self.reporter.status("Starting APT cleanup process...")
        initial = disk_free(archives)
        self.reporter.status(f"Available disk space before cleanup: {human_size(initial)}")

        self.reporter.status("Cleaning APT package cache...")
        self.attempt(
            ['apt', 'clean'], sudo=True,
            success="APT cache cleaned successfully",
            failure="Failed to clean APT cache (this is usually harmless)",
            results=results,
        )

        self.reporter.status("Removing downloaded package files...")
        self.attempt(
            ['apt', 'autoclean'], sudo=True,
            success="Downloaded package files cleaned",
            failure="Failed to clean downloaded packages",
            results=results,
        )

        self.reporter.status("Removing orphaned packages...")
        results['orphans_found'] = self.count_orphans()
        if results['orphans_found'] > 0:
            self.reporter.status(f"{results['orphans_found']} orphaned package(s) found")
            with self.reporter.task("Removing orphaned packages"):
                removed = self.runner.apt('autoremove', '-y')
            if removed.ok:
                self.reporter.success("Orphaned packages removed successfully")
            else:
                self.reporter.warning("Failed to remove some orphaned packages")
                results['errors'].append(f"{self.name}: autoremove failed")
        else:
            self.reporter.status("No orphaned packages found")

        self.reporter.status("Updating package database...")
        with self.reporter.task("Updating package database"):
            updated = self.runner.apt('update', '-qq')
        if updated.ok:
            self.reporter.success("Package database updated")
        else:
            self.reporter.warning("Failed to update package database")
            results['errors'].append(f"{self.name}: apt update failed")

        final = disk_free(archives)
        results['bytes_freed'] = max(0, final - initial)
        self.reporter.status(f"Available disk space after cleanup: {human_size(final)}")
        self.reporter.success("APT cleanup completed successfully!")

        logger.info(f"APT cleanup complete: {results}")
        return results

    def count_orphans(self) -> int:
        """Packages 'apt autoremove' would remove, from a simulated run."""
        result = self.runner.run(['apt-get', '-s', 'autoremove'])
        if not result.ok:
            return 0
        return sum(1 for line in result.lines() if line.startswith('Remv '))
