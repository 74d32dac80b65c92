import pytest

from ubuntu_optimize.maintenance.base import ModuleFailed, OperationCancelled
from ubuntu_optimize.maintenance.metrics import GB
from ubuntu_optimize.maintenance.preload import PRELOAD_CONF_PATH, PreloadInstaller
from ubuntu_optimize.maintenance.templates import PRELOAD_CONF

from conftest import write


@pytest.fixture
def installer(make, settings):
    write(settings.root / 'etc' / 'preload.conf', '[model]\ncycle = 20\n')
    (settings.root / 'var' / 'lib' / 'preload').mkdir(parents=True)
    janitor = make(PreloadInstaller)
    janitor.memory_total = lambda: 8 * GB
    return janitor


def test_declining_cancels(installer, runner, answers):
    answers.default = False
    with pytest.raises(OperationCancelled):
        installer.run()
    assert answers.asked == ["Do you want to install and configure preload?"]
    assert runner.calls == []


def test_install_and_configure(installer, runner, answers):
    runner.available = set()

    results = installer.run()

    assert results['installed'] is True
    assert ['sudo', 'DEBIAN_FRONTEND=noninteractive', 'apt', 'install', '-y', 'preload'] in runner.calls
    assert ['cp', PRELOAD_CONF_PATH, PRELOAD_CONF_PATH + '.backup'] in runner.commands
    assert runner.input_for('tee', PRELOAD_CONF_PATH) == PRELOAD_CONF
    assert ['systemctl', 'enable', 'preload.service'] in runner.commands
    assert ['systemctl', 'start', 'preload.service'] in runner.commands
    assert results['active'] is True
    # The fake never puts a preload binary on PATH
    assert results['errors'] == ['install-preload: preload binary not found']


def test_reconfigure_existing_install(installer, runner, answers):
    runner.available = {'preload'}
    results = installer.run()
    assert results['reconfigured'] is True
    assert results['installed'] is False
    assert not runner.ran('apt')
    assert "Do you want to reconfigure it?" in answers.asked
    assert results['errors'] == []


def test_declining_reconfigure_cancels(installer, runner, answers):
    runner.available = {'preload'}
    answers.replies["Do you want to reconfigure it?"] = False
    with pytest.raises(OperationCancelled):
        installer.run()
    assert runner.input_for('tee', PRELOAD_CONF_PATH) is None


def test_low_memory_asks(installer, answers, output):
    installer.memory_total = lambda: 1 * GB
    answers.replies["Do you want to continue anyway?"] = False
    with pytest.raises(OperationCancelled):
        installer.check_memory()
    assert "less than 2GB RAM (1 GB)" in output()


def test_enough_memory_does_not_ask(installer, answers, output):
    installer.check_memory()
    assert answers.asked == []
    assert "System has 8 GB RAM - Good for preload" in output()


def test_install_failure_is_fatal(installer, runner):
    runner.on('apt', 'install', returncode=100)
    with pytest.raises(ModuleFailed, match='Failed to install preload'):
        installer.install_preload()


def test_list_update_failure_is_only_a_warning(installer, runner, output):
    runner.on('apt', 'update', returncode=100)
    installer.install_preload()
    assert "[WARNING] Failed to update package lists" in output()


def test_missing_config_is_fatal(make, runner):
    with pytest.raises(ModuleFailed, match='configuration file not found'):
        make(PreloadInstaller).configure_preload()


def test_config_write_failure_is_fatal(installer, runner):
    runner.on('tee', PRELOAD_CONF_PATH, returncode=1)
    with pytest.raises(ModuleFailed, match='Failed to update preload configuration'):
        installer.configure_preload()


def test_start_failure_is_fatal(installer, runner):
    runner.on('systemctl', 'start', returncode=1)
    with pytest.raises(ModuleFailed, match='Failed to start preload service'):
        installer.enable_preload_service(installer.new_results())


def test_inactive_service_shows_status(installer, runner, output):
    runner.on('systemctl', 'is-active', returncode=3)
    runner.on('systemctl', 'status', returncode=3, stdout='preload.service - Adaptive readahead\n')
    assert installer.enable_preload_service(installer.new_results()) is False
    assert "preload.service - Adaptive readahead" in output()
