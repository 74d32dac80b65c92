"""
Tracker Disabler - stop GNOME's file indexer.

Handles:
- Stopping running Tracker miners
- Hidden autostart entries
- GSettings keys for Tracker 2 and Tracker 3
- Masking the systemd user units
- Removing the index database
"""

import logging
import os
from typing import Any, Dict, List, Mapping

from .base import Janitor, OperationCancelled, remove_path
from .metrics import dir_size_text
from .templates import TRACKER_AUTOSTART, TRACKER_CFG

logger = logging.getLogger('ubuntu_optimize.maintenance.tracker')

TRACKER_SERVICES = [
    'tracker-extract',
    'tracker-miner-apps',
    'tracker-miner-fs',
    'tracker-store',
    'tracker3-extract',
    'tracker3-miner-apps',
    'tracker3-miner-fs',
]

# Units counted by the status report
STATUS_UNITS = [f"{s}.service" for s in TRACKER_SERVICES[:4]]

GSETTINGS_KEYS = [
    (schema, key, value)
    for schema in ('org.freedesktop.Tracker.Miner.Files', 'org.freedesktop.Tracker3.Miner.Files')
    for key, value in (
        ('crawling-interval', '-1'),
        ('enable-monitors', 'false'),
        ('index-recursive-directories', '[]'),
        ('index-single-directories', '[]'),
    )
]


def is_gnome(environ: Mapping[str, str]) -> bool:
    return (
        'GNOME' in environ.get('XDG_CURRENT_DESKTOP', '')
        or 'ubuntu' in environ.get('DESKTOP_SESSION', '')
    )


class TrackerDisabler(Janitor):
    """Turn off Tracker indexing for the current user."""

    name = 'disable-tracker'
    title = 'Ubuntu Tracker Disable Tool'
    finished = 'Tracker disable process finished!'
    description = 'Disable GNOME Tracker indexing services'

    def __init__(self, runner, reporter, settings):
        super().__init__(runner, reporter, settings)
        self.environ: Mapping[str, str] = os.environ

    def run(self) -> Dict[str, Any]:
        results = self.new_results(
            installed=False,
            services_stopped=0,
            autostart_disabled=0,
            gsettings_configured=0,
            units_masked=0,
            dirs_cleared=0,
        )

        if not is_gnome(self.environ):
            self.reporter.warning("GNOME desktop not detected. Tracker services may not be present.")
            if not self.reporter.confirm("Continue anyway?"):
                raise OperationCancelled("Operation cancelled by user")

        if not (self.runner.has('tracker3') or self.runner.has('tracker')):
            self.reporter.status("Tracker is not installed on this system")
            self.reporter.status("Tracker is not installed, nothing to disable")
            return results
        results['installed'] = True

        self.show_tracker_status()
        self.reporter.blank()

        self.reporter.warning("This will disable GNOME Tracker indexing services.")
        self.reporter.warning("This may affect file search functionality in GNOME.")
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to continue?"):
            raise OperationCancelled("Operation cancelled by user")

        self.reporter.status("Starting Tracker disable process...")
        self.stop_tracker_services(results)
        self.reporter.blank()
        self.disable_autostart(results)
        self.reporter.blank()
        self.disable_gsettings(results)
        self.reporter.blank()
        self.mask_systemd_units(results)
        self.reporter.blank()
        self.clear_tracker_database(results)
        self.reporter.blank()
        self.create_tracker_config(results)

        self.reporter.success("Tracker has been disabled successfully!")
        self.reporter.warning(
            "Note: You may need to restart your session for all changes to take effect."
        )
        self.reporter.blank()
        self.show_tracker_status()

        logger.info(f"Tracker disable complete: {results}")
        return results

    def show_tracker_status(self):
        self.reporter.status("Current Tracker status:")
        running = len(self.runner.run(['pgrep', '-f', 'tracker']).lines())
        self.reporter.status(f"Running Tracker processes: {running}")

        active = sum(
            1 for unit in STATUS_UNITS
            if self.runner.run(['systemctl', '--user', 'is-active', unit]).ok
        )
        self.reporter.status(f"Active systemd services: {active}")

    def stop_tracker_services(self, results: Dict[str, Any]):
        self.reporter.status("Stopping Tracker services...")
        for service in TRACKER_SERVICES:
            if not self.runner.run(['pgrep', '-f', service]).ok:
                self.reporter.status(f"{service} is not running")
                continue
            self.reporter.status(f"Stopping {service}...")
            if self.runner.run(['pkill', '-f', service]).ok:
                self.reporter.success(f"Stopped {service}")
                results['services_stopped'] += 1
            else:
                self.reporter.warning(f"Failed to stop {service}")

        if results['services_stopped'] > 0:
            self.reporter.success(f"Stopped {results['services_stopped']} Tracker services")
        else:
            self.reporter.status("No Tracker services were running")

    def disable_autostart(self, results: Dict[str, Any]):
        self.reporter.status("Disabling Tracker autostart...")
        autostart_dir = self.home / '.config' / 'autostart'
        try:
            autostart_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.reporter.warning(f"Cannot create {autostart_dir}: {e.strerror}")
            results['errors'].append(f"{self.name}: autostart directory not writable")
            return

        for service in TRACKER_SERVICES:
            desktop_file = f"{service}.desktop"
            path = autostart_dir / desktop_file
            try:
                if not path.exists():
                    path.write_text(TRACKER_AUTOSTART)
                    self.reporter.success(f"Created disable file for {desktop_file}")
                    results['autostart_disabled'] += 1
                    continue

                content = path.read_text(errors='replace')
                if 'Hidden=true' in content:
                    self.reporter.status(f"{desktop_file} is already disabled")
                    continue
                with path.open('a') as f:
                    if content and not content.endswith('\n'):
                        f.write('\n')
                    f.write('Hidden=true\n')
            except OSError as e:
                self.reporter.warning(f"Failed to disable {desktop_file}: {e.strerror}")
                results['errors'].append(f"{self.name}: could not disable {desktop_file}")
                continue
            self.reporter.success(f"Disabled {desktop_file}")
            results['autostart_disabled'] += 1

        self.reporter.success(
            f"Disabled {results['autostart_disabled']} Tracker autostart entries"
        )

    def disable_gsettings(self, results: Dict[str, Any]):
        self.reporter.status("Disabling Tracker via GSettings...")
        schemas = set(self.runner.run(['gsettings', 'list-schemas']).lines())
        for schema, key, value in GSETTINGS_KEYS:
            if schema not in schemas:
                self.reporter.status(f"Schema {schema} not found (tracker version may vary)")
                continue
            if self.runner.run(['gsettings', 'set', schema, key, value]).ok:
                self.reporter.success(f"Set {schema} {key} to {value}")
                results['gsettings_configured'] += 1
            else:
                self.reporter.warning(f"Failed to set {schema} {key}")
        self.reporter.success(f"Configured {results['gsettings_configured']} GSettings keys")

    def mask_systemd_units(self, results: Dict[str, Any]):
        self.reporter.status("Masking Tracker systemd user services...")
        unit_files = self.runner.run(['systemctl', '--user', 'list-unit-files']).stdout
        for service in TRACKER_SERVICES:
            unit = f"{service}.service"
            if unit not in unit_files:
                self.reporter.status(f"{unit} not found in systemd")
                continue
            if self.runner.run(['systemctl', '--user', 'mask', unit]).ok:
                self.reporter.success(f"Masked {unit}")
                results['units_masked'] += 1
            else:
                self.reporter.warning(f"Failed to mask {unit}")
        self.reporter.success(f"Masked {results['units_masked']} systemd services")

    def tracker_dirs(self) -> List:
        return [
            self.home / '.cache' / 'tracker',
            self.home / '.cache' / 'tracker3',
            self.home / '.local' / 'share' / 'tracker',
            self.home / '.local' / 'share' / 'tracker3',
        ]

    def clear_tracker_database(self, results: Dict[str, Any]):
        self.reporter.status("Clearing Tracker database...")
        for tracker_dir in self.tracker_dirs():
            if not tracker_dir.is_dir():
                self.reporter.status(f"{tracker_dir} does not exist")
                continue
            size = dir_size_text(tracker_dir)
            if remove_path(tracker_dir):
                self.reporter.success(f"Cleared {tracker_dir} (was {size})")
                results['dirs_cleared'] += 1
            else:
                self.reporter.warning(f"Failed to clear {tracker_dir}")

        if results['dirs_cleared'] > 0:
            self.reporter.success(f"Cleared {results['dirs_cleared']} Tracker directories")
        else:
            self.reporter.status("No Tracker directories found to clear")

    def create_tracker_config(self, results: Dict[str, Any]):
        self.reporter.status("Creating Tracker disable configuration...")
        config_dir = self.home / '.config' / 'tracker'
        try:
            config_dir.mkdir(parents=True, exist_ok=True)
            (config_dir / 'tracker.cfg').write_text(TRACKER_CFG)
        except OSError as e:
            self.reporter.warning(f"Failed to create Tracker configuration: {e.strerror}")
            results['errors'].append(f"{self.name}: tracker.cfg not written")
            return
        self.reporter.success("Created Tracker disable configuration")
