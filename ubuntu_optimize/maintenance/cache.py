"""
Cache Janitor - user cache, thumbnails, trash and stray home files.

Handles:
- ~/.cache contents (preserving font, shader and driver caches)
- Thumbnail cache
- Trash files and metadata
- Editor backups, swap files and core dumps in $HOME
"""

import fnmatch
import logging
from typing import Any, Dict

from .base import Janitor, empty_dir, remove_path
from .metrics import dir_size_text, disk_free, human_size

logger = logging.getLogger('ubuntu_optimize.maintenance.cache')

HOME_TEMP_PATTERNS = ['.*~', '.*.swp', '.*.tmp', 'core']


class CacheJanitor(Janitor):
    """Clear per-user caches under $HOME."""

    name = 'clean-cache'
    title = 'Ubuntu Cache Cleanup Tool'
    finished = 'Cache cleanup process finished!'
    description = 'Clean user cache and temporary files'

    def run(self) -> Dict[str, Any]:
        results = self.new_results(
            cache_dirs_removed=0,
            cache_dirs_preserved=0,
            home_temp_files_removed=0,
        )

        self.reporter.status("Starting cache cleanup process...")
        initial = disk_free(self.home)
        self.reporter.status(f"Available disk space before cleanup: {human_size(initial)}")

        self.clean_cache_dir(results)
        self.reporter.blank()
        self.clean_thumbnails(results)
        self.reporter.blank()
        self.clean_trash(results)
        self.reporter.blank()
        self.clean_home_temp_files(results)

        final = disk_free(self.home)
        self.reporter.status(f"Available disk space after cleanup: {human_size(final)}")
        self.reporter.success("Cache cleanup completed successfully!")

        logger.info(f"Cache cleanup complete: {results}")
        return results

    def clean_cache_dir(self, results: Dict[str, Any]):
        cache_dir = self.home / '.cache'
        if not cache_dir.is_dir():
            self.reporter.status(f"Cache directory does not exist: {cache_dir}")
            return

        self.reporter.status(f"Cache directory size before cleanup: {dir_size_text(cache_dir)}")
        self.reporter.status("Cleaning application cache...")

        preserve = set(self.settings.cache_preserve)
        for entry in sorted(cache_dir.iterdir()):
            if not entry.is_dir() or entry.is_symlink():
                continue
            if entry.name in preserve:
                self.reporter.status(f"Preserved: {entry.name}")
                results['cache_dirs_preserved'] += 1
            elif remove_path(entry):
                self.reporter.status(f"Cleaned: {entry.name}")
                results['cache_dirs_removed'] += 1
            else:
                self.reporter.warning(f"Failed to clean: {entry.name} (may be in use)")
                results['errors'].append(f"{self.name}: could not clean {entry}")

        # Loose files at the top level of the cache
        for entry in cache_dir.iterdir():
            if entry.is_file() or entry.is_symlink():
                remove_path(entry)

        self.reporter.success(f"Cache cleanup completed. New size: {dir_size_text(cache_dir)}")

    def clean_thumbnails(self, results: Dict[str, Any]):
        thumb_dir = self.home / '.cache' / 'thumbnails'
        if not thumb_dir.is_dir():
            self.reporter.status("Thumbnail cache directory does not exist")
            return

        self.reporter.status(f"Thumbnail cache size before cleanup: {dir_size_text(thumb_dir)}")
        if empty_dir(thumb_dir):
            self.reporter.success("Thumbnail cache cleaned successfully")
        else:
            self.reporter.warning("Some thumbnail files could not be removed (may be in use)")
            results['errors'].append(f"{self.name}: thumbnails not fully removed")
        self.reporter.status(f"Thumbnail cache size after cleanup: {dir_size_text(thumb_dir)}")

    def clean_trash(self, results: Dict[str, Any]):
        trash_dir = self.home / '.local' / 'share' / 'Trash'
        if not trash_dir.is_dir():
            self.reporter.status("Trash directory does not exist")
            return

        self.reporter.status(f"Trash size before cleanup: {dir_size_text(trash_dir)}")
        for sub, label in (('files', 'Trash files'), ('info', 'Trash metadata')):
            path = trash_dir / sub
            if not path.is_dir():
                continue
            if empty_dir(path):
                self.reporter.success(f"{label} cleaned")
            else:
                self.reporter.warning(f"Some {label.lower()} could not be removed")
                results['errors'].append(f"{self.name}: {label.lower()} not fully removed")
        self.reporter.status(f"Trash size after cleanup: {dir_size_text(trash_dir)}")

    def clean_home_temp_files(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning temporary files in home directory...")
        for entry in self.home.iterdir():
            if not entry.is_file() or entry.is_symlink():
                continue
            if any(fnmatch.fnmatchcase(entry.name, p) for p in HOME_TEMP_PATTERNS):
                if remove_path(entry):
                    results['home_temp_files_removed'] += 1
        self.reporter.success("Temporary files cleaned")
