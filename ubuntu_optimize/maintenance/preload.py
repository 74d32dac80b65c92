"""
Preload Installer - adaptive readahead daemon setup.
"""

import logging
from typing import Any, Dict

import psutil

from .base import Janitor, ModuleFailed, OperationCancelled
from .metrics import GB
from .templates import PRELOAD_CONF

logger = logging.getLogger('ubuntu_optimize.maintenance.preload')

PRELOAD_CONF_PATH = '/etc/preload.conf'
PRELOAD_DATA_DIR = '/var/lib/preload'
PRELOAD_SERVICE = 'preload.service'

PRELOAD_INFO = [
    ("What is Preload?", [
        "Preload is a daemon that monitors applications you use",
        "It preloads libraries and binaries into memory",
        "This reduces application startup times",
        "It learns from your usage patterns automatically",
    ]),
    ("Benefits:", [
        "Faster application startup times",
        "Improved system responsiveness",
        "Automatic optimization based on usage",
    ]),
    ("System Requirements:", [
        "At least 2GB RAM recommended",
        "Works best with 4GB+ RAM",
        "May use 50-100MB additional memory",
    ]),
]


class PreloadInstaller(Janitor):
    """Install preload, write its configuration and start the service."""

    name = 'install-preload'
    title = 'Ubuntu Preload Installation Tool'
    finished = 'Preload installation process finished!'
    description = 'Install and configure preload daemon'

    def __init__(self, runner, reporter, settings):
        super().__init__(runner, reporter, settings)
        self.memory_total = lambda: psutil.virtual_memory().total

    def run(self) -> Dict[str, Any]:
        self.show_preload_info()
        if not self.reporter.confirm("Do you want to install and configure preload?"):
            raise OperationCancelled("Installation cancelled by user")
        self.reporter.blank()

        results = self.new_results(installed=False, reconfigured=False, active=False)

        self.check_memory()
        self.reporter.blank()

        self.reporter.status("Starting preload installation process...")
        if self.runner.has('preload'):
            self.reporter.status("Preload is already installed")
            if not self.reporter.confirm("Do you want to reconfigure it?"):
                raise OperationCancelled("Installation cancelled by user")
            results['reconfigured'] = True
        else:
            self.reporter.status("Preload is not installed")
            self.install_preload()
            results['installed'] = True
        self.reporter.blank()

        self.configure_preload()
        self.reporter.blank()
        results['active'] = self.enable_preload_service(results)
        self.reporter.blank()
        self.verify_installation(results)
        self.reporter.blank()

        self.reporter.success("Preload installation and configuration completed!")
        self.reporter.status("Preload will start learning your usage patterns immediately")
        self.reporter.status("You should notice improved startup times after a few hours of use")

        logger.info(f"Preload setup complete: {results}")
        return results

    def show_preload_info(self):
        self.reporter.status("Preload Information:")
        self.reporter.blank()
        for heading, points in PRELOAD_INFO:
            self.reporter.status(heading)
            for point in points:
                self.reporter.detail(f"  - {point}")
            self.reporter.blank()

    def check_memory(self):
        mem_gb = self.memory_total() // GB
        if mem_gb >= self.settings.preload_min_ram_gb:
            self.reporter.status(f"System has {mem_gb} GB RAM - Good for preload")
            return

        self.reporter.warning(
            f"Your system has less than {self.settings.preload_min_ram_gb}GB RAM ({mem_gb} GB)"
        )
        self.reporter.warning("Preload may not be beneficial and could slow down your system")
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to continue anyway?"):
            raise OperationCancelled("Installation cancelled by user")

    def install_preload(self):
        self.reporter.status("Installing preload package...")
        self.reporter.status("Updating package lists...")
        if self.runner.apt('update', '-qq').ok:
            self.reporter.success("Package lists updated")
        else:
            self.reporter.warning("Failed to update package lists")

        self.reporter.status("Installing preload...")
        with self.reporter.task("Installing preload"):
            installed = self.runner.apt('install', '-y', 'preload')
        if not installed.ok:
            self.reporter.error("Failed to install preload")
            raise ModuleFailed("Failed to install preload")
        self.reporter.success("Preload installed successfully")

    def configure_preload(self):
        self.reporter.status("Configuring preload...")
        if not self.sys_path(PRELOAD_CONF_PATH).is_file():
            self.reporter.error(f"Preload configuration file not found: {PRELOAD_CONF_PATH}")
            raise ModuleFailed(f"Preload configuration file not found: {PRELOAD_CONF_PATH}")

        self.backup_once(PRELOAD_CONF_PATH)

        self.reporter.status("Creating optimized preload configuration...")
        if not self.runner.write_file(PRELOAD_CONF_PATH, PRELOAD_CONF).ok:
            self.reporter.error("Failed to update preload configuration")
            raise ModuleFailed("Failed to update preload configuration")
        self.reporter.success("Preload configuration updated")

    def enable_preload_service(self, results: Dict[str, Any]) -> bool:
        self.reporter.status("Enabling and starting preload service...")
        self.attempt(
            ['systemctl', 'enable', PRELOAD_SERVICE], sudo=True,
            success="Preload service enabled",
            failure="Failed to enable preload service",
            results=results,
        )
        if not self.runner.run(['systemctl', 'start', PRELOAD_SERVICE], sudo=True).ok:
            self.reporter.warning("Failed to start preload service")
            raise ModuleFailed("Failed to start preload service")
        self.reporter.success("Preload service started")

        self.settle(2 * self.settings.settle_seconds)
        if self.runner.run(['systemctl', 'is-active', PRELOAD_SERVICE]).ok:
            self.reporter.success("Preload service is running")
            return True

        self.reporter.warning("Preload service may not be running properly")
        self.reporter.status("Checking service status...")
        status = self.runner.run(['systemctl', 'status', PRELOAD_SERVICE, '--no-pager', '-l'])
        for line in status.stdout.splitlines():
            self.reporter.detail(line)
        return False

    def verify_installation(self, results: Dict[str, Any]):
        self.reporter.status("Verifying preload installation...")
        if self.runner.has('preload'):
            self.reporter.success("Preload binary is available")
        else:
            self.reporter.error("Preload binary not found")
            results['errors'].append(f"{self.name}: preload binary not found")
            return

        checks = [
            (self.runner.run(['systemctl', 'is-enabled', PRELOAD_SERVICE]).ok,
             "Preload service is enabled", "Preload service is not enabled"),
            (self.runner.run(['systemctl', 'is-active', PRELOAD_SERVICE]).ok,
             "Preload service is active", "Preload service is not active"),
            (self.sys_path(PRELOAD_CONF_PATH).is_file(),
             "Preload configuration file exists", "Preload configuration file not found"),
            (self.sys_path(PRELOAD_DATA_DIR).is_dir(),
             "Preload data directory exists", "Preload data directory not found"),
        ]
        for passed, success, failure in checks:
            if passed:
                self.reporter.success(success)
            else:
                self.reporter.warning(failure)
