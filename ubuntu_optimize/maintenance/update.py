"""
System Updater - packages, firmware and post-update housekeeping.

Handles:
- APT package lists, upgrades and security updates
- Snap and Flatpak packages (when installed)
- Firmware through fwupd (with confirmation)
- Distribution upgrade check
- locate/man databases, broken package repair, disk usage check
- Reboot when an update requires one
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .base import Janitor, ModuleFailed, OperationCancelled
from .metrics import disk_percent

logger = logging.getLogger('ubuntu_optimize.maintenance.update')

MAJOR_UPDATE = re.compile(r'(linux-|ubuntu-|systemd)')
PKGCACHE = '/var/cache/apt/pkgcache.bin'
CONNECTIVITY_HOSTS = ['8.8.8.8', '1.1.1.1']


class SystemUpdater(Janitor):
    """Bring every package source on the system up to date."""

    name = 'update'
    title = 'Ubuntu System Update Tool'
    finished = 'System update process finished!'
    description = 'Update system packages and security patches'

    def run(self) -> Dict[str, Any]:
        if not self.check_internet():
            raise ModuleFailed("No internet connection detected")

        self.reporter.blank()
        self.reporter.warning("This will update your entire system including:")
        for item in [
            "- APT packages and security updates",
            "- Snap packages",
            "- Flatpak packages (if installed)",
            "- Firmware (with confirmation)",
            "- System maintenance tasks",
        ]:
            self.reporter.status(item)
        self.reporter.blank()

        if not self.reporter.confirm("Do you want to continue?"):
            raise OperationCancelled("System update cancelled by user")

        results = self.new_results(
            updates_available=0,
            snaps_installed=0,
            flatpaks_installed=0,
            firmware_updates=0,
            broken_packages=0,
            backup_file=None,
            reboot_requested=False,
        )

        self.reporter.status("Starting comprehensive system update...")
        results['backup_file'] = str(self.create_backup_info())
        self.reporter.blank()

        self.update_apt_packages(results)
        self.reporter.blank()
        self.update_snap_packages(results)
        self.reporter.blank()
        self.update_flatpak_packages(results)
        self.reporter.blank()
        self.update_firmware(results)
        self.reporter.blank()
        self.check_dist_upgrade()
        self.reporter.blank()
        self.perform_maintenance(results)
        self.reporter.blank()
        self.show_summary()
        self.reporter.blank()
        results['reboot_requested'] = self.offer_reboot()

        self.reporter.success("System update completed successfully!")
        logger.info(f"System update complete: {results}")
        return results

    def check_internet(self) -> bool:
        self.reporter.status("Checking internet connectivity...")
        for host in CONNECTIVITY_HOSTS:
            if self.runner.run(['ping', '-c', '1', host], timeout=15).ok:
                self.reporter.success("Internet connectivity confirmed")
                return True
        self.reporter.error("No internet connection detected")
        self.reporter.error("Please check your network connection and try again")
        return False

    def create_backup_info(self) -> Path:
        """Save installed packages, sources and system state before updating."""
        self.reporter.status("Creating system backup information...")
        backup_dir = self.settings.backup_dir
        backup_dir.mkdir(parents=True, exist_ok=True)
        backup_file = backup_dir / f"pre-update-{datetime.now():%Y%m%d-%H%M%S}.txt"

        selections = [
            line for line in self.runner.run(['dpkg', '--get-selections']).lines()
            if 'deinstall' not in line
        ]
        lines = [
            "# System Update Backup Information",
            f"# Created: {datetime.now():%a %b %d %H:%M:%S %Y}",
            f"# Ubuntu Version: {self.distribution()}",
            f"# Kernel Version: {self.kernel()}",
            "",
            "# Installed packages before update:",
            *selections,
            "",
            "# Repository sources:",
            *self.apt_sources(),
            "",
            "# System information:",
        ]
        for args in (['uname', '-a'], ['free', '-h'], ['df', '-h']):
            lines.append(self.runner.run(args).stdout.rstrip())

        backup_file.write_text('\n'.join(lines) + '\n')
        self.reporter.success(f"Backup information saved to: {backup_file}")
        return backup_file

    def apt_sources(self) -> List[str]:
        """Active lines of sources.list and sources.list.d/*.list."""
        files = [self.sys_path('/etc/apt/sources.list')]
        sources_d = self.sys_path('/etc/apt/sources.list.d')
        if sources_d.is_dir():
            files.extend(sorted(sources_d.glob('*.list')))

        entries = []
        for path in files:
            try:
                text = path.read_text(errors='replace')
            except OSError:
                continue
            entries.extend(
                line for line in text.splitlines()
                if line.strip() and not line.startswith('#')
            )
        return entries

    def update_apt_packages(self, results: Dict[str, Any]):
        self.reporter.status("Updating APT package repositories...")
        with self.reporter.task("Updating package lists"):
            updated = self.runner.apt('update')
        if not updated.ok:
            self.reporter.error("Failed to update package lists")
            raise ModuleFailed("Failed to update package lists")
        self.reporter.success("Package lists updated successfully")

        upgradable = [
            line for line in self.runner.run(['apt', 'list', '--upgradable']).lines()
            if not line.startswith('Listing')
        ]
        results['updates_available'] = len(upgradable)
        if not upgradable:
            self.reporter.success("System is already up to date")
            return

        self.reporter.status(f"{len(upgradable)} package(s) available for update")
        major = [line for line in upgradable if MAJOR_UPDATE.search(line)][:5]
        if major:
            self.reporter.warning("Major system updates detected:")
            for line in major:
                self.reporter.status(f"  {line}")
            self.reporter.blank()

        self.reporter.status("Upgrading packages...")
        with self.reporter.task("Upgrading packages"):
            upgraded = self.runner.apt('upgrade', '-y')
        if upgraded.ok:
            self.reporter.success("Package upgrade completed successfully")
        else:
            self.reporter.warning("Some packages failed to upgrade")
            results['errors'].append(f"{self.name}: apt upgrade failed")

        self.reporter.status("Installing security updates...")
        if self.runner.apt('install', '-y', 'unattended-upgrades').ok:
            if self.runner.run(['unattended-upgrade', '-d'], sudo=True).ok:
                self.reporter.success("Security updates applied")
            else:
                self.reporter.status("No additional security updates available")

        self.reporter.status("Cleaning up APT cache...")
        if self.runner.apt('autoremove', '-y').ok and self.runner.apt('autoclean').ok:
            self.reporter.success("APT cleanup completed")

    def update_snap_packages(self, results: Dict[str, Any]):
        if not self.runner.has('snap'):
            self.reporter.status("Snap is not installed, skipping snap updates")
            return

        self.reporter.status("Updating Snap packages...")
        installed = self.runner.run(['snap', 'list']).lines()[1:]
        results['snaps_installed'] = len(installed)
        if not installed:
            self.reporter.status("No snap packages installed")
            return

        self.reporter.status(f"{len(installed)} snap package(s) installed")
        with self.reporter.task("Refreshing snaps"):
            refreshed = self.runner.run(['snap', 'refresh'], sudo=True)
        if refreshed.ok:
            self.reporter.success("Snap packages updated successfully")
        else:
            self.reporter.warning("Some snap packages failed to update")
            results['errors'].append(f"{self.name}: snap refresh failed")

    def update_flatpak_packages(self, results: Dict[str, Any]):
        if not self.runner.has('flatpak'):
            self.reporter.status("Flatpak is not installed, skipping flatpak updates")
            return

        self.reporter.status("Updating Flatpak packages...")
        installed = self.runner.run(['flatpak', 'list']).lines()
        results['flatpaks_installed'] = len(installed)
        if not installed:
            self.reporter.status("No flatpak packages installed")
            return

        self.reporter.status(f"{len(installed)} flatpak package(s) installed")
        with self.reporter.task("Updating flatpaks"):
            updated = self.runner.run(['flatpak', 'update', '-y'])
        if updated.ok:
            self.reporter.success("Flatpak packages updated successfully")
        else:
            self.reporter.warning("Some flatpak packages failed to update")
            results['errors'].append(f"{self.name}: flatpak update failed")

    def update_firmware(self, results: Dict[str, Any]):
        if not self.runner.has('fwupdmgr'):
            self.reporter.status("fwupd is not available, skipping firmware updates")
            return

        self.reporter.status("Checking for firmware updates...")
        if not self.runner.run(['fwupdmgr', 'refresh', '--force']).ok:
            self.reporter.warning("Failed to refresh firmware metadata")
            return
        self.reporter.status("Firmware metadata refreshed")

        available = self.runner.run(['fwupdmgr', 'get-updates']).stdout.count('Update available')
        results['firmware_updates'] = available
        if available == 0:
            self.reporter.success("No firmware updates available")
            return

        self.reporter.warning(f"{available} firmware update(s) available")
        self.reporter.warning("Firmware updates can be risky and may require a reboot")
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to install firmware updates?"):
            self.reporter.status("Firmware updates skipped by user")
            return

        with self.reporter.task("Installing firmware updates"):
            updated = self.runner.run(['fwupdmgr', 'update', '-y'])
        if updated.ok:
            self.reporter.success("Firmware updates completed")
        else:
            self.reporter.warning("Some firmware updates failed")
            results['errors'].append(f"{self.name}: firmware update failed")

    def check_dist_upgrade(self):
        self.reporter.status("Checking for distribution upgrades...")
        if not self.runner.has('do-release-upgrade'):
            self.reporter.status("Distribution upgrade tool not available")
            return

        check = self.runner.run(['do-release-upgrade', '-c'])
        if 'New release' in check.stdout:
            self.reporter.warning("A new Ubuntu release is available")
            for line in check.lines():
                self.reporter.detail(line)
            self.reporter.warning("Distribution upgrades should be done carefully")
            self.reporter.status("Run 'sudo do-release-upgrade' manually when ready")
        else:
            self.reporter.success("No distribution upgrades available")

    def perform_maintenance(self, results: Dict[str, Any]):
        self.reporter.status("Performing system maintenance tasks...")

        if self.runner.has('updatedb'):
            self.reporter.status("Updating locate database...")
            self.attempt(
                ['updatedb'], sudo=True,
                success="Locate database updated",
                failure="Failed to update locate database",
            )

        if self.runner.has('mandb'):
            self.reporter.status("Updating man page database...")
            self.attempt(
                ['mandb', '--quiet'], sudo=True,
                success="Man page database updated",
                failure="Failed to update man page database",
            )

        self.reporter.status("Checking for broken packages...")
        broken = len(self.runner.run(['dpkg', '--audit']).lines())
        results['broken_packages'] = broken
        if broken == 0:
            self.reporter.success("No broken packages found")
        else:
            self.reporter.warning(f"{broken} broken package(s) found")
            self.reporter.status("Running package repair...")
            if self.runner.apt('--fix-broken', 'install', '-y').ok:
                self.reporter.success("Package repair completed")
            else:
                self.reporter.warning("Package repair failed - manual intervention may be required")
                results['errors'].append(f"{self.name}: package repair failed")

        self.reporter.status("Checking disk space...")
        usage = int(disk_percent(self.sys_path('/')))
        if usage > self.settings.disk_warn_percent:
            self.reporter.warning(f"Root filesystem is {usage}% full")
            self.reporter.status("Consider running disk cleanup tools")
        else:
            self.reporter.success(f"Disk space usage is healthy ({usage}% used)")

    def show_summary(self):
        self.reporter.status("Update Summary:")
        self.reporter.status(f"Ubuntu Version: {self.distribution()}")
        self.reporter.status(f"Kernel Version: {self.kernel()}")

        pkgcache = self.sys_path(PKGCACHE)
        if pkgcache.exists():
            last_update = f"{datetime.fromtimestamp(pkgcache.stat().st_mtime):%Y-%m-%d}"
        else:
            last_update = 'Unknown'
        self.reporter.status(f"Last APT update: {last_update}")

        uptime = self.runner.run(['uptime', '-p'])
        if not uptime.ok:
            uptime = self.runner.run(['uptime'])
        self.reporter.status(f"System uptime: {uptime.stdout.strip()}")
