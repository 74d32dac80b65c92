import pytest

from ubuntu_optimize.maintenance.base import ModuleFailed, OperationCancelled
from ubuntu_optimize.maintenance.logs import (
    APT_LOGROTATE_PATH,
    CLEANUP_SCRIPT,
    JOURNALD_DROPIN,
    RSYSLOG_LOGROTATE_PATH,
    LogLimiter,
)
from ubuntu_optimize.maintenance.metrics import MB
from ubuntu_optimize.maintenance.templates import APT_LOGROTATE, journald_conf

from conftest import write

CRON_ENTRY = f"0 2 * * 0 {CLEANUP_SCRIPT} >/dev/null 2>&1"


def test_declining_cancels(make, runner, answers):
    answers.default = False
    with pytest.raises(OperationCancelled):
        make(LogLimiter).run()
    assert runner.calls == []


def test_full_run(make, runner, settings):
    write(settings.root / 'etc' / 'systemd' / 'journald.conf', '[Journal]\n')
    runner.on('crontab', '-l', stdout='30 4 * * * /usr/bin/backup\n')

    results = make(LogLimiter).run()

    assert results['errors'] == []
    assert results['cron_added'] is True
    assert ['mkdir', '-p', '/etc/systemd/journald.conf.d'] in runner.commands
    assert ['cp', '/etc/systemd/journald.conf', '/etc/systemd/journald.conf.backup'] in runner.commands
    assert runner.input_for('tee', JOURNALD_DROPIN) == journald_conf('100M', '1week')
    assert ['systemctl', 'restart', 'systemd-journald'] in runner.commands
    assert runner.input_for('tee', APT_LOGROTATE_PATH) == APT_LOGROTATE
    assert ['journalctl', '--vacuum-time=1week', '--quiet'] in runner.commands
    assert ['journalctl', '--vacuum-size=100M', '--quiet'] in runner.commands
    assert ['chmod', '+x', CLEANUP_SCRIPT] in runner.commands
    assert runner.input_for('crontab', '-') == (
        f"30 4 * * * /usr/bin/backup\n{CRON_ENTRY}\n"
    )


def test_journal_settings_follow_configuration(make, runner, settings):
    settings.journal_max_use = '250M'
    settings.journal_retention = '2weeks'
    make(LogLimiter).run()
    assert 'SystemMaxUse=250M' in runner.input_for('tee', JOURNALD_DROPIN)
    assert ['journalctl', '--vacuum-time=2weeks', '--quiet'] in runner.commands


def test_journald_write_failure_is_fatal(make, runner):
    runner.on('tee', JOURNALD_DROPIN, returncode=1)
    with pytest.raises(ModuleFailed, match='Failed to create journal configuration'):
        make(LogLimiter).run()


def test_existing_backup_is_kept(make, runner, settings):
    write(settings.root / 'etc' / 'systemd' / 'journald.conf', '[Journal]\n')
    write(settings.root / 'etc' / 'systemd' / 'journald.conf.backup', 'original\n')
    make(LogLimiter).configure_journald()
    assert not runner.ran('cp')


def test_rsyslog_only_when_installed(make, runner, settings):
    janitor = make(LogLimiter)
    janitor.configure_rsyslog(janitor.new_results())
    assert runner.input_for('tee', RSYSLOG_LOGROTATE_PATH) is None

    write(settings.root / 'etc' / 'rsyslog.conf', '')
    write(settings.root / 'etc' / 'logrotate.d' / 'rsyslog', '/var/log/syslog {}\n')
    janitor.configure_rsyslog(janitor.new_results())
    assert runner.input_for('tee', RSYSLOG_LOGROTATE_PATH) is not None
    assert ['cp', RSYSLOG_LOGROTATE_PATH, RSYSLOG_LOGROTATE_PATH + '.backup'] in runner.commands


def test_apt_logrotate_left_alone_when_present(make, runner, settings, output):
    write(settings.root / 'etc' / 'logrotate.d' / 'apt', 'custom\n')
    janitor = make(LogLimiter)
    janitor.configure_apt_logs(janitor.new_results())
    assert runner.calls == []
    assert "APT logrotate configuration already exists" in output()


def test_large_logs_are_truncated(make, runner, settings):
    write(settings.root / 'var' / 'log' / 'huge.log', size=60 * MB)
    write(settings.root / 'var' / 'log' / 'apache2' / 'access.log', size=51 * MB)
    write(settings.root / 'var' / 'log' / 'small.log', size=1 * MB)
    write(settings.root / 'var' / 'log' / 'huge.log.1', size=60 * MB)

    janitor = make(LogLimiter)
    results = janitor.new_results(logs_truncated=0)
    janitor.clean_large_logs(results)

    truncates = [c for c in runner.calls if c[1:2] == ['truncate']]
    assert truncates == [
        ['sudo', 'truncate', '-s', '10M', '/var/log/apache2/access.log'],
        ['sudo', 'truncate', '-s', '10M', '/var/log/huge.log'],
    ]
    assert results['logs_truncated'] == 2


def test_large_log_threshold_is_exact(make, runner, settings):
    write(settings.root / 'var' / 'log' / 'limit.log', size=50 * MB)
    write(settings.root / 'var' / 'log' / 'over.log', size=50 * MB + 1)

    janitor = make(LogLimiter)
    results = janitor.new_results(logs_truncated=0)
    janitor.clean_large_logs(results)

    assert runner.ran('truncate', '-s', '10M', '/var/log/over.log')
    assert not runner.ran('truncate', '-s', '10M', '/var/log/limit.log')
    assert results['logs_truncated'] == 1


def test_cron_entry_not_duplicated(make, runner, output):
    runner.on('crontab', '-l', stdout=f"{CRON_ENTRY}\n")
    janitor = make(LogLimiter)
    results = janitor.new_results(cron_added=False)
    janitor.setup_automatic_cleanup(results)
    assert not runner.ran('crontab', '-')
    assert results['cron_added'] is False
    assert "Automatic cleanup already scheduled" in output()


def test_cron_entry_with_empty_crontab(make, runner):
    runner.on('crontab', '-l', returncode=1, stderr='no crontab for user')
    janitor = make(LogLimiter)
    janitor.setup_automatic_cleanup(janitor.new_results(cron_added=False))
    assert runner.input_for('crontab', '-') == f"{CRON_ENTRY}\n"


def test_log_sizes_report_missing_directories(make, output):
    make(LogLimiter).show_log_sizes()
    assert "/var/log: Not found" in output()
    assert "/var/crash: Not found" in output()
