"""
Memory Optimizer - kernel caches, tmpfs leftovers, swap and VM tuning.

Handles:
- Dropping page cache, dentries and inodes
- Removing stray temp files and core dumps from tmpfs mounts
- Memory compaction
- Swap consolidation (swapoff/swapon) when memory allows
- vm.* sysctl tuning
- Reporting the largest processes
"""

import fnmatch
import logging
import os
from typing import Any, Dict, List, Tuple

import psutil

from .base import Janitor, OperationCancelled
from .metrics import MB, MemorySnapshot, iter_files
from .templates import MEMORY_SYSCTL

logger = logging.getLogger('ubuntu_optimize.maintenance.memory')

MEMORY_SYSCTL_PATH = '/etc/sysctl.d/99-ubuntu-optimize-memory.conf'
DROP_CACHES = '/proc/sys/vm/drop_caches'
COMPACT_MEMORY = '/proc/sys/vm/compact_memory'

TMPFS_SKIP = ['/dev', '/dev/shm', '/run']
TMPFS_JUNK = ['*.tmp', 'core', '*.core']

DROP_STEPS = [
    ('1', "Clearing page cache...", "Page cache cleared", "Failed to clear page cache"),
    ('2', "Clearing dentries and inodes...", "Dentries and inodes cleared",
     "Failed to clear dentries and inodes"),
    ('3', "Clearing all kernel caches...", "All kernel caches cleared",
     "Failed to clear all caches"),
]


def top_processes(limit: int = 5) -> List[Tuple[str, float]]:
    """(name, memory percent) of the processes using the most memory."""
    procs = []
    for proc in psutil.process_iter(['name', 'memory_percent']):
        info = proc.info
        if info.get('memory_percent') is None:
            continue
        procs.append((info.get('name') or '?', info['memory_percent']))
    procs.sort(key=lambda p: p[1], reverse=True)
    return procs[:limit]


def tmpfs_mounts() -> List[str]:
    return [
        p.mountpoint for p in psutil.disk_partitions(all=True)
        if p.fstype == 'tmpfs'
    ]


class MemoryOptimizer(Janitor):
    """Free cached memory and tune the VM subsystem."""

    name = 'ram-clean'
    title = 'Ubuntu RAM Cleanup Tool'
    finished = 'RAM cleanup process finished!'
    description = 'Clean and optimize memory usage'

    def __init__(self, runner, reporter, settings):
        super().__init__(runner, reporter, settings)
        self.snapshot = MemorySnapshot.take
        self.mounts = tmpfs_mounts
        self.processes = top_processes

    def run(self) -> Dict[str, Any]:
        self.reporter.warning("This will clear system memory caches and optimize memory usage.")
        self.reporter.warning(
            "This is safe but may temporarily slow down recently used applications."
        )
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to continue?"):
            raise OperationCancelled("Operation cancelled by user")

        results = self.new_results(
            caches_dropped=0,
            tmpfs_files_removed=0,
            swap_cycled=False,
            memory_before=0,
            memory_after=0,
        )

        self.reporter.status("Starting RAM cleanup process...")
        before = self.snapshot()
        results['memory_before'] = before.used
        self.show_memory_status(before)
        self.reporter.blank()

        self.drop_caches(results)
        self.clean_tmpfs(results)
        self.reporter.blank()
        self.compact_memory()
        self.reporter.blank()
        self.optimize_swap(results)
        self.reporter.blank()
        self.apply_sysctl(MEMORY_SYSCTL_PATH, MEMORY_SYSCTL, "Memory optimization settings")
        self.reporter.blank()
        self.show_top_processes()
        self.reporter.blank()

        after = self.snapshot()
        results['memory_after'] = after.used
        self.reporter.status("Memory status after cleanup:")
        self.show_memory_status(after)
        self.reporter.success("RAM cleanup completed successfully!")
        self.reporter.status("Memory caches have been cleared and settings optimized")

        logger.info(f"RAM cleanup complete: {results}")
        return results

    def show_memory_status(self, snapshot: MemorySnapshot):
        self.reporter.status("Current memory status:")
        for line in snapshot.lines():
            self.reporter.detail(line)

    def drop_caches(self, results: Dict[str, Any]):
        if self.runner.run(['sync'], sudo=True).ok:
            self.reporter.status("Filesystem buffers synchronized")
        else:
            self.reporter.warning("Failed to sync filesystem buffers")

        for value, start, success, failure in DROP_STEPS:
            self.reporter.status(start)
            if self.runner.run(['tee', DROP_CACHES], sudo=True, input_text=f"{value}\n").ok:
                self.reporter.success(success)
                results['caches_dropped'] += 1
            else:
                self.reporter.warning(failure)
                results['errors'].append(f"{self.name}: {failure}")
            self.settle()

    def clean_tmpfs(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning tmpfs filesystems...")
        for mount_point in self.mounts():
            if mount_point in TMPFS_SKIP:
                continue
            local = self.sys_path(mount_point)
            if not local.is_dir() or not os.access(local, os.W_OK):
                continue

            removed = 0
            for path in iter_files(local):
                if any(fnmatch.fnmatchcase(path.name, p) for p in TMPFS_JUNK):
                    try:
                        path.unlink()
                        removed += 1
                    except OSError as e:
                        logger.debug(f"Could not remove {path}: {e}")
            if removed:
                self.reporter.success(f"Cleaned tmpfs: {mount_point} ({removed} file(s))")
            results['tmpfs_files_removed'] += removed

        if results['tmpfs_files_removed'] > 0:
            self.reporter.success(
                f"Cleaned {results['tmpfs_files_removed']} temporary files from tmpfs"
            )
        else:
            self.reporter.status("No temporary files found in tmpfs to clean")

    def compact_memory(self):
        self.reporter.status("Compacting memory...")
        if self.runner.run(['tee', COMPACT_MEMORY], sudo=True, input_text="1\n").ok:
            self.reporter.success("Memory compaction triggered")
        else:
            self.reporter.warning("Failed to trigger memory compaction (may not be supported)")
        self.settle(2 * self.settings.settle_seconds)

    def optimize_swap(self, results: Dict[str, Any]):
        self.reporter.status("Optimizing swap usage...")
        memory = self.snapshot()
        if memory.swap_used == 0:
            self.reporter.status("No swap is currently in use")
            return

        swap_used_mb = memory.swap_used // MB
        if swap_used_mb <= self.settings.swap_threshold_mb:
            self.reporter.status(
                f"Swap usage is minimal ({swap_used_mb}MB), no optimization needed"
            )
            return

        self.reporter.status(f"Swap usage detected ({swap_used_mb}MB), attempting to optimize...")
        if not self.runner.run(['swapon', '--show=NAME', '--noheadings']).lines():
            self.reporter.status("No active swap devices found")
            return

        self.reporter.warning("This will temporarily disable swap to consolidate memory")
        if not self.reporter.confirm("Continue?"):
            self.reporter.status("Swap optimization skipped by user")
            return

        available_mb = memory.available // MB
        needed_mb = swap_used_mb + self.settings.swap_headroom_mb
        if available_mb <= needed_mb:
            self.reporter.warning("Insufficient memory to safely optimize swap")
            self.reporter.status(f"Available: {available_mb}MB, Needed: {needed_mb}MB")
            return

        self.reporter.status("Sufficient memory available, optimizing swap...")
        with self.reporter.task("Cycling swap"):
            cycled = (
                self.runner.run(['swapoff', '-a'], sudo=True).ok
                and self.runner.run(['swapon', '-a'], sudo=True).ok
            )
        if cycled:
            self.reporter.success("Swap optimized successfully")
            results['swap_cycled'] = True
        else:
            self.reporter.warning("Failed to optimize swap")
            results['errors'].append(f"{self.name}: swapoff/swapon failed")

    def show_top_processes(self):
        self.reporter.status("Analyzing memory usage by processes...")
        procs = self.processes()
        if not procs:
            self.reporter.status("Unable to analyze process memory usage")
            return

        self.reporter.status("Top memory-consuming processes:")
        for name, percent in procs:
            self.reporter.detail(f"  {name}: {percent:.1f}% memory")
        self.reporter.blank()
        self.reporter.warning("Consider closing unnecessary applications to free memory")
        self.reporter.status("You can use 'htop' or 'top' to monitor and manage processes")
