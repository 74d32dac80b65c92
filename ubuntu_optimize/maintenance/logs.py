"""
Log Limiter - cap journal, syslog and APT log growth.

Handles:
- journald size/retention drop-in
- rsyslog and APT logrotate configuration
- Kernel printk rate limiting
- Truncating oversized *.log files
- Journal vacuum
- Weekly cleanup script scheduled through cron
"""

import logging
from typing import Any, Dict

from .base import Janitor, ModuleFailed, OperationCancelled
from .metrics import MB, dir_size_text, iter_files
from .templates import (
    APT_LOGROTATE,
    KERNEL_LOG_SYSCTL,
    RSYSLOG_LOGROTATE,
    journald_conf,
    log_cleanup_script,
)

logger = logging.getLogger('ubuntu_optimize.maintenance.logs')

JOURNALD_CONF = '/etc/systemd/journald.conf'
JOURNALD_CONF_D = '/etc/systemd/journald.conf.d'
JOURNALD_DROPIN = f'{JOURNALD_CONF_D}/99-ubuntu-optimize.conf'
RSYSLOG_CONF = '/etc/rsyslog.conf'
RSYSLOG_LOGROTATE_PATH = '/etc/logrotate.d/rsyslog'
APT_LOGROTATE_PATH = '/etc/logrotate.d/apt'
KERNEL_LOG_SYSCTL_PATH = '/etc/sysctl.d/99-ubuntu-optimize-logs.conf'
CLEANUP_SCRIPT = '/usr/local/bin/ubuntu-optimize-logs-cleanup'
CRON_SCHEDULE = '0 2 * * 0'


class LogLimiter(Janitor):
    """Configure log rotation and trim what has already accumulated."""

    name = 'limit-logs'
    title = 'Ubuntu Log Limiting Tool'
    finished = 'Log limiting process finished!'
    description = 'Configure log rotation and cleanup'

    def run(self) -> Dict[str, Any]:
        self.reporter.warning("This will configure log rotation and limit log sizes.")
        self.reporter.warning("Old logs will be cleaned and future logs will be limited.")
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to continue?"):
            raise OperationCancelled("Operation cancelled by user")

        results = self.new_results(logs_truncated=0, cron_added=False)

        self.reporter.status("Starting log limiting process...")
        self.reporter.status("Current log directory sizes:")
        self.show_log_sizes()
        self.reporter.blank()

        self.configure_journald()
        self.reporter.blank()
        self.configure_rsyslog(results)
        self.reporter.blank()
        self.configure_apt_logs(results)
        self.reporter.blank()
        self.reporter.status("Configuring kernel log settings...")
        self.apply_sysctl(KERNEL_LOG_SYSCTL_PATH, KERNEL_LOG_SYSCTL, "Kernel log configuration")
        self.reporter.blank()
        self.clean_large_logs(results)
        self.reporter.blank()
        self.vacuum_journal(results)
        self.reporter.blank()
        self.setup_automatic_cleanup(results)
        self.reporter.blank()

        self.reporter.status("Final log directory sizes:")
        self.show_log_sizes()
        self.reporter.success("Log limiting configuration completed successfully!")
        self.reporter.status("Logs will now be automatically managed and rotated")

        logger.info(f"Log limiting complete: {results}")
        return results

    def show_log_sizes(self):
        dirs = [
            (path, self.sys_path(path))
            for path in ('/var/log', '/var/log/journal')
        ]
        upstart = self.home / '.cache' / 'upstart'
        dirs.append((str(upstart), upstart))
        dirs.append(('/var/crash', self.sys_path('/var/crash')))

        for label, path in dirs:
            size = dir_size_text(path) if path.is_dir() else 'Not found'
            self.reporter.status(f"  {label}: {size}")

    def configure_journald(self):
        self.reporter.status("Configuring systemd journal...")
        if self.runner.run(['mkdir', '-p', JOURNALD_CONF_D], sudo=True).ok:
            self.reporter.status("Created journald configuration directory")

        self.backup_once(JOURNALD_CONF)

        content = journald_conf(self.settings.journal_max_use, self.settings.journal_retention)
        if not self.runner.write_file(JOURNALD_DROPIN, content).ok:
            self.reporter.error("Failed to create journal configuration")
            raise ModuleFailed("Failed to create journal configuration")
        self.reporter.success(f"Journal configuration created: {JOURNALD_DROPIN}")

        self.attempt(
            ['systemctl', 'restart', 'systemd-journald'], sudo=True,
            success="systemd-journald restarted successfully",
            failure="Failed to restart systemd-journald",
        )

    def configure_rsyslog(self, results: Dict[str, Any]):
        self.reporter.status("Configuring rsyslog...")
        if not self.sys_path(RSYSLOG_CONF).is_file():
            self.reporter.status("rsyslog not found, skipping rsyslog configuration")
            return
        if not self.sys_path(RSYSLOG_LOGROTATE_PATH).is_file():
            return

        self.backup_once(RSYSLOG_LOGROTATE_PATH)
        if self.runner.write_file(RSYSLOG_LOGROTATE_PATH, RSYSLOG_LOGROTATE).ok:
            self.reporter.success("Updated rsyslog logrotate configuration")
        else:
            self.reporter.warning("Failed to update rsyslog logrotate configuration")
            results['errors'].append(f"{self.name}: rsyslog logrotate not updated")

    def configure_apt_logs(self, results: Dict[str, Any]):
        self.reporter.status("Configuring APT log rotation...")
        if self.sys_path(APT_LOGROTATE_PATH).exists():
            self.reporter.status("APT logrotate configuration already exists")
            return

        if self.runner.write_file(APT_LOGROTATE_PATH, APT_LOGROTATE).ok:
            self.reporter.success("Created APT logrotate configuration")
        else:
            self.reporter.warning("Failed to create APT logrotate configuration")
            results['errors'].append(f"{self.name}: APT logrotate not created")

    def clean_large_logs(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning large log files...")
        truncate_to = self.settings.log_truncate_size
        for path in sorted(iter_files(self.sys_path('/var/log'))):
            if not path.name.endswith('.log'):
                continue
            try:
                size = path.stat().st_size
            except OSError:
                continue
            if size <= self.settings.large_log_mb * MB:
                continue
            size_mb = size // MB

            log_file = self.host_path(path)
            self.reporter.status(f"Truncating large log file: {log_file} ({size_mb}MB)")
            if self.runner.run(['truncate', '-s', truncate_to, log_file], sudo=True).ok:
                self.reporter.success(f"Truncated {log_file} to {truncate_to}")
                results['logs_truncated'] += 1
            else:
                self.reporter.warning(f"Failed to truncate {log_file}")
                results['errors'].append(f"{self.name}: could not truncate {log_file}")

        if results['logs_truncated'] > 0:
            self.reporter.success(f"Truncated {results['logs_truncated']} large log files")
        else:
            self.reporter.status("No large log files found to clean")

    def vacuum_journal(self, results: Dict[str, Any]):
        self.reporter.status("Cleaning old journal entries...")
        retention = self.settings.journal_retention
        max_use = self.settings.journal_max_use
        self.attempt(
            ['journalctl', f"--vacuum-time={retention}", '--quiet'], sudo=True,
            success=f"Cleaned journal entries older than {retention}",
            failure="Failed to vacuum journal by time",
            results=results,
        )
        self.attempt(
            ['journalctl', f"--vacuum-size={max_use}", '--quiet'], sudo=True,
            success=f"Limited journal size to {max_use}",
            failure="Failed to vacuum journal by size",
            results=results,
        )

    def setup_automatic_cleanup(self, results: Dict[str, Any]):
        self.reporter.status("Setting up automatic log cleanup...")
        script = log_cleanup_script(self.settings.journal_retention)
        if (
            self.runner.write_file(CLEANUP_SCRIPT, script).ok
            and self.runner.run(['chmod', '+x', CLEANUP_SCRIPT], sudo=True).ok
        ):
            self.reporter.success(f"Created automatic cleanup script: {CLEANUP_SCRIPT}")
        else:
            self.reporter.warning("Failed to create cleanup script")
            results['errors'].append(f"{self.name}: cleanup script not installed")

        current = self.runner.run(['crontab', '-l'])
        existing = current.stdout if current.ok else ''
        if CLEANUP_SCRIPT in existing:
            self.reporter.status("Automatic cleanup already scheduled")
            return

        entry = f"{CRON_SCHEDULE} {CLEANUP_SCRIPT} >/dev/null 2>&1"
        lines = existing.rstrip('\n')
        crontab = f"{lines}\n{entry}\n" if lines else f"{entry}\n"
        if self.runner.run(['crontab', '-'], input_text=crontab).ok:
            self.reporter.success("Added weekly cleanup to crontab")
            results['cron_added'] = True
        else:
            self.reporter.warning("Failed to add weekly cleanup to crontab")
            results['errors'].append(f"{self.name}: crontab not updated")
