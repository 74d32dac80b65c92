"""
System measurements used for before/after reporting.

Disk and memory figures come from psutil; directory sizes are summed
with a filesystem walk that skips anything unreadable.
"""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import psutil

MB = 1024 * 1024
GB = 1024 * MB
DAY = 86400


def human_size(num_bytes: float) -> str:
    """Format bytes the way 'du -h' does (1.5G, 320M, 12K, 0B)."""
    value = float(num_bytes)
    for unit in ['B', 'K', 'M', 'G', 'T']:
        if abs(value) < 1024 or unit == 'T':
            break
        value /= 1024
    if unit == 'B':
        return f"{int(value)}B"
    return f"{value:.1f}{unit}" if abs(value) < 10 else f"{value:.0f}{unit}"


def iter_files(directory: Path, max_depth: Optional[int] = None) -> Iterator[Path]:
    """
    Yield regular files under directory, not following symlinks.

    max_depth mirrors find's -maxdepth: 1 means direct children only.
    Unreadable directories are skipped.
    """
    directory = Path(directory)
    base_depth = len(directory.parts)
    for root, dirs, files in os.walk(directory, onerror=lambda e: None):
        depth = len(Path(root).parts) - base_depth + 1
        if max_depth is not None and depth >= max_depth:
            dirs[:] = []
        for name in files:
            path = Path(root) / name
            if not path.is_symlink():
                yield path


def dir_size(path: Path) -> int:
    """Total size in bytes of regular files under path (0 if missing)."""
    path = Path(path)
    if not path.exists():
        return 0
    if path.is_file():
        try:
            return path.stat().st_size
        except OSError:
            return 0

    total = 0
    for file_path in iter_files(path):
        try:
            total += file_path.stat().st_size
        except OSError:
            pass
    return total


def dir_size_text(path: Path) -> str:
    return human_size(dir_size(path))


def _existing(path: Path) -> Path:
    path = Path(path)
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


def disk_free(path: Path) -> int:
    """Bytes available to unprivileged users on the filesystem holding path."""
    return psutil.disk_usage(str(_existing(path))).free


def disk_used(path: Path) -> int:
    return psutil.disk_usage(str(_existing(path))).used


def disk_percent(path: Path) -> float:
    return psutil.disk_usage(str(_existing(path))).percent


def older_than_days(mtime: float, days: int, now: Optional[float] = None) -> bool:
    """
    find(1) -mtime +N semantics: whole days of age strictly greater than N.
    """
    now = time.time() if now is None else now
    return int((now - mtime) // DAY) > days


@dataclass
class MemorySnapshot:
    """Figures shown by 'free', in bytes."""
    total: int
    used: int
    free: int
    available: int
    cached: int
    swap_total: int
    swap_used: int
    swap_free: int

    @classmethod
    def take(cls) -> 'MemorySnapshot':
        vm = psutil.virtual_memory()
        swap = psutil.swap_memory()
        cached = getattr(vm, 'cached', 0) + getattr(vm, 'buffers', 0)
        return cls(
            total=vm.total,
            used=vm.used,
            free=vm.free,
            available=vm.available,
            cached=cached,
            swap_total=swap.total,
            swap_used=swap.used,
            swap_free=swap.free,
        )

    def lines(self) -> List[str]:
        return [
            f"  Total Memory:     {human_size(self.total)}",
            f"  Used Memory:      {human_size(self.used)}",
            f"  Free Memory:      {human_size(self.free)}",
            f"  Available Memory: {human_size(self.available)}",
            f"  Cached Memory:    {human_size(self.cached)}",
            f"  Swap Used:        {human_size(self.swap_used)}",
            f"  Swap Free:        {human_size(self.swap_free)}",
        ]


@dataclass
class Metrics:
    """Before/after figures for a full optimization run, in bytes."""
    disk_used: int
    memory_used: int
    cache_size: int
    log_size: int

    @classmethod
    def collect(cls, home: Path, root: Path) -> 'Metrics':
        return cls(
            disk_used=disk_used(root),
            memory_used=psutil.virtual_memory().used,
            cache_size=dir_size(Path(home) / '.cache'),
            log_size=dir_size(Path(root) / 'var' / 'log'),
        )
