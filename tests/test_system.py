import os
import time
from datetime import datetime

import pytest

from ubuntu_optimize.maintenance import MODULES
from ubuntu_optimize.maintenance.base import Janitor, ModuleFailed, OperationCancelled
from ubuntu_optimize.maintenance.metrics import MB, Metrics
from ubuntu_optimize.maintenance.system import (
    ASK,
    CONTINUE,
    OPTIONAL,
    REQUIRED,
    STEPS,
    FullOptimizer,
    Step,
    SystemStatus,
)

from conftest import write


class Passing(Janitor):
    name = 'passing'
    title = 'Passing Tool'

    def run(self):
        self.reporter.status("passing ran")
        return {'errors': ['passing: minor problem']}


class Failing(Janitor):
    name = 'failing'
    title = 'Failing Tool'

    def run(self):
        raise ModuleFailed("boom", exit_code=3)


class Crashing(Janitor):
    name = 'crashing'
    title = 'Crashing Tool'

    def run(self):
        raise RuntimeError("unexpected")


class Cancelling(Janitor):
    name = 'cancelling'
    title = 'Cancelling Tool'

    def run(self):
        raise OperationCancelled("declined")


class Asked(Passing):
    name = 'asked'
    title = 'Asked Tool'


class Sleepy(Janitor):
    name = 'sleepy'
    title = 'Sleepy Tool'

    def run(self):
        self.settle(5)
        return self.new_results()


def optimizer(make, steps):
    janitor = make(FullOptimizer, steps=steps)
    snapshots = iter([
        Metrics(disk_used=5000 * MB, memory_used=3000 * MB, cache_size=400 * MB, log_size=90 * MB),
        Metrics(disk_used=4000 * MB, memory_used=2500 * MB, cache_size=10 * MB, log_size=30 * MB),
    ])
    janitor.collect_metrics = lambda: next(snapshots)
    return janitor


def test_default_steps_order_and_policies():
    assert [(s.janitor.name, s.policy) for s in STEPS] == [
        ('update', CONTINUE),
        ('clean-apt', REQUIRED),
        ('clean-snap', OPTIONAL),
        ('clean-cache', REQUIRED),
        ('clean-temp', REQUIRED),
        ('limit-logs', OPTIONAL),
        ('trim-ssd', OPTIONAL),
        ('ram-clean', OPTIONAL),
        ('disable-tracker', ASK),
        ('install-preload', ASK),
    ]
    assert all(s.prompt and s.notice for s in STEPS if s.policy == ASK)


def test_module_registry():
    assert list(MODULES) == [
        'update', 'clean-apt', 'clean-cache', 'clean-snap', 'clean-temp', 'ram-clean',
        'limit-logs', 'trim-ssd', 'disable-tracker', 'install-preload', 'full',
    ]


def test_step_outcomes(make, answers, output):
    answers.replies["Run the optional one?"] = False
    steps = [
        Step(Passing, "Pass", "Passing step", REQUIRED),
        Step(Failing, "Fail", "Failing step", OPTIONAL),
        Step(Crashing, "Crash", "Crashing step", CONTINUE),
        Step(Cancelling, "Cancel", "Cancelling step", OPTIONAL),
        Step(Asked, "Asked", "Asked step", ASK,
             prompt="Run the optional one?", notice="This one is optional"),
    ]

    results = optimizer(make, steps).run()

    assert results['steps'] == {
        'passing': 'ok',
        'failing': 'failed',
        'crashing': 'failed',
        'cancelling': 'cancelled',
        'asked': 'skipped',
    }
    assert results['errors'] == [
        'passing: minor problem',
        'failing: boom',
        'crashing: unexpected',
    ]
    text = output()
    assert "[1/5] Passing step" in text
    assert "[5/5] Asked step" in text
    assert "Fail failed (optional - continuing)" in text
    assert "Crash failed, but continuing with other optimizations" in text
    assert "Skipping Asked" in text


def test_step_outcomes_by_step(make):
    janitor = optimizer(make, [])
    results = janitor.new_results(steps={})
    assert janitor.run_step(Step(Passing, "Pass", "d", REQUIRED), results) == 'ok'
    assert janitor.run_step(Step(Failing, "Fail", "d", OPTIONAL), results) == 'failed'
    assert janitor.run_step(Step(Crashing, "Crash", "d", CONTINUE), results) == 'failed'
    assert janitor.run_step(Step(Cancelling, "Cancel", "d", OPTIONAL), results) == 'cancelled'


def test_declined_ask_step_is_skipped(make, answers):
    answers.default = False
    janitor = optimizer(make, [])
    results = janitor.new_results()
    step = Step(Passing, "Asked", "d", ASK, prompt="Run it?", notice="optional")
    assert janitor.run_step(step, results) == 'skipped'
    assert answers.asked == ["Run it?"]


def test_required_failure_aborts(make, output):
    steps = [
        Step(Failing, "Fail", "Failing step", REQUIRED),
        Step(Passing, "Pass", "Passing step", OPTIONAL),
    ]
    with pytest.raises(ModuleFailed) as excinfo:
        optimizer(make, steps).run()
    assert excinfo.value.exit_code == 3
    assert "passing ran" not in output()
    assert "Fail failed with exit code 3" in output()


def test_declining_start_cancels(make, answers):
    answers.default = False
    with pytest.raises(OperationCancelled):
        optimizer(make, [Step(Passing, "Pass", "d", REQUIRED)]).run()


def test_steps_share_the_sleep_function(make):
    pauses = []
    janitor = optimizer(make, [Step(Sleepy, "Sleep", "d", OPTIONAL)])
    janitor.sleep = pauses.append
    janitor.run()
    assert 5 in pauses


def test_results_and_log(make, settings, output):
    results = optimizer(make, [Step(Passing, "Pass", "d", REQUIRED)]).run()

    text = output()
    assert "Disk space freed: 1000MB" in text
    assert "Cache reduced: 390MB" in text
    assert "Log files reduced: 60MB" in text
    assert "Memory freed: 500MB" in text

    log_file = results['log_file']
    assert os.path.dirname(log_file) == str(settings.log_dir)
    assert os.path.basename(log_file).startswith('full-optimize-')
    with open(log_file) as f:
        content = f.read()
    assert "# Space saved: 1024000KB" in content
    assert results['reboot_requested'] is False


def test_reboot_recommended(make, settings, output):
    write(settings.root / 'var' / 'run' / 'reboot-required')
    results = optimizer(make, []).run()
    assert "A system reboot is recommended" in output()
    assert results['reboot_requested'] is True


@pytest.fixture
def status(make, runner):
    runner.available = {'snap'}
    runner.on('lsb_release', stdout='Ubuntu 24.04 LTS\n')
    runner.on('uname', '-r', stdout='6.8.0-31-generic\n')
    runner.on('uname', '-m', stdout='x86_64\n')
    runner.on('uptime', '-p', stdout='up 2 days\n')
    runner.on('free', '-h', stdout='              total  used\nMem:          15Gi   4Gi\n')
    runner.on('dpkg', '--get-selections', stdout='vim\tinstall\nnano\tdeinstall\ncurl\tinstall\n')
    runner.on('apt', 'list', '--upgradable', stdout='Listing... Done\nvim/noble 9.1 amd64\n')
    runner.on('snap', 'list', stdout='Name Version\ncore22 1\nfirefox 2\n')
    runner.on('systemctl', 'is-active', 'preload.service', returncode=3)
    runner.on('pgrep', returncode=1)
    return make(SystemStatus)


def test_status_report(status):
    report = status.generate_report()
    assert "  OS: Ubuntu 24.04 LTS" in report
    assert "  Kernel: 6.8.0-31-generic" in report
    assert "  Architecture: x86_64" in report
    assert "  Uptime: up 2 days" in report
    assert "  Mem:          15Gi   4Gi" in report
    assert "  Installed packages: 2" in report
    assert "  Available updates: 1" in report
    assert "  Snap packages: 2" in report
    assert "  TRIM timer: Enabled" in report
    assert "  Preload: Not installed" in report
    assert "  GNOME Tracker: Not running" in report
    assert report.splitlines()[-1] == "Last optimization: Never"


def test_status_preload_installed_but_stopped(status, runner):
    runner.available = {'preload'}
    assert status.service_states()['Preload'] == 'Installed but not running'
    assert status.package_counts()['snaps'] is None


def test_last_optimization_ignores_application_log(status, settings):
    settings.log_dir.mkdir(parents=True)
    run_log = write(settings.log_dir / 'full-optimize-20240102-030405.log', 'x')
    stamp = time.mktime(datetime(2024, 1, 2, 3, 4, 5).timetuple())
    os.utime(run_log, (stamp, stamp))
    write(settings.log_dir / 'ubuntu-optimize.log', 'x')
    assert status.last_optimization() == '2024-01-02'


def test_status_run_prints_report(status, output):
    status.run()
    text = output()
    assert text.splitlines()[0] == 'Ubuntu System Status'
    assert "Optimization Services:" in text


class Rebooting(Janitor):
    name = 'rebooting'
    title = 'Rebooting Tool'

    def run(self):
        results = self.new_results()
        results['reboot_requested'] = self.offer_reboot()
        return results


class Cleaning(Janitor):
    name = 'cleaning'
    title = 'Cleaning Tool'

    def run(self):
        self.runner.run(['apt', 'clean'], sudo=True)
        return self.new_results()


def test_reboot_offered_once_after_all_steps(make, runner, settings, output):
    write(settings.root / 'var' / 'run' / 'reboot-required')
    steps = [
        Step(Rebooting, "Reboot", "Rebooting step", CONTINUE),
        Step(Cleaning, "Clean", "Cleaning step", REQUIRED),
    ]

    results = optimizer(make, steps).run()

    reboots = [i for i, command in enumerate(runner.commands) if command == ['reboot']]
    assert len(reboots) == 1
    assert reboots[0] > runner.commands.index(['apt', 'clean'])
    assert runner.commands[-1] == ['reboot']
    assert "Reboot deferred until the optimization finishes" in output()
    assert results['reboot_requested'] is True


def test_unwritable_log_dir_is_a_warning(make, settings, output):
    write(settings.log_dir, 'not a directory')
    results = optimizer(make, [Step(Passing, "Pass", "d", REQUIRED)]).run()
    assert results['log_file'] is None
    assert "[WARNING] Could not save optimization log" in output()
