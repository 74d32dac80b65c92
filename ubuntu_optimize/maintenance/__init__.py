"""
Ubuntu Optimize Maintenance System

Provides automated cleanup and tuning:
- SystemUpdater: APT, Snap, Flatpak and firmware updates
- AptJanitor / SnapJanitor: package caches and old revisions
- CacheJanitor / TempJanitor: user caches, temp files, old logs
- MemoryOptimizer: kernel caches, swap and VM settings
- LogLimiter: journal limits, logrotate and scheduled cleanup
- SsdOptimizer: TRIM and SSD-friendly settings
- TrackerDisabler / PreloadInstaller: desktop tweaks
- FullOptimizer: Unified interface to all janitors
"""

from typing import Dict, Type

from .apt import AptJanitor
from .base import Janitor, MaintenanceError, ModuleFailed, OperationCancelled
from .cache import CacheJanitor
from .logs import LogLimiter
from .memory import MemoryOptimizer
from .preload import PreloadInstaller
from .runner import CommandResult, CommandRunner
from .snap import SnapJanitor
from .ssd import SsdOptimizer
from .system import FullOptimizer, SystemStatus
from .temp import TempJanitor
from .tracker import TrackerDisabler
from .update import SystemUpdater

# Command name -> module, in the order 'list' shows them
MODULES: Dict[str, Type[Janitor]] = {
    cls.name: cls for cls in [
        SystemUpdater,
        AptJanitor,
        CacheJanitor,
        SnapJanitor,
        TempJanitor,
        MemoryOptimizer,
        LogLimiter,
        SsdOptimizer,
        TrackerDisabler,
        PreloadInstaller,
        FullOptimizer,
    ]
}

__all__ = [
    'MODULES',
    'CommandResult',
    'CommandRunner',
    'Janitor',
    'MaintenanceError',
    'ModuleFailed',
    'OperationCancelled',
    'SystemUpdater',
    'AptJanitor',
    'CacheJanitor',
    'SnapJanitor',
    'TempJanitor',
    'MemoryOptimizer',
    'LogLimiter',
    'SsdOptimizer',
    'TrackerDisabler',
    'PreloadInstaller',
    'FullOptimizer',
    'SystemStatus',
]
