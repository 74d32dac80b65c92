import os
import time
from pathlib import Path

from ubuntu_optimize.maintenance.metrics import DAY, MB
from ubuntu_optimize.maintenance.temp import TempJanitor, find_old_files, is_preserved

from conftest import write


def age(path, days):
    stamp = time.time() - days * DAY
    os.utime(path, (stamp, stamp))
    return path


def test_is_preserved_checks_every_component():
    assert is_preserved(Path('.X11-unix/X0'))
    assert is_preserved(Path('systemd-private-abc/tmp/file'))
    assert is_preserved(Path('ssh-XXXX/agent.123'))
    assert not is_preserved(Path('build/output.o'))


def test_find_old_files(tmp_path):
    old = age(write(tmp_path / 'old.txt', 'x'), 3)
    age(write(tmp_path / 'new.txt', 'x'), 0)
    deep = age(write(tmp_path / 'a' / 'b' / 'deep.txt', 'x'), 3)
    age(write(tmp_path / 'pulse-abc' / 'native', 'x'), 3)

    assert find_old_files(tmp_path, 1) == sorted([old, deep, tmp_path / 'pulse-abc' / 'native'])
    assert find_old_files(tmp_path, 1, max_depth=2, preserve=['pulse-*']) == [old]


def test_find_old_files_patterns(tmp_path):
    rotated = age(write(tmp_path / 'syslog.2.gz', 'x'), 40)
    age(write(tmp_path / 'syslog', 'x'), 40)
    age(write(tmp_path / 'auth.log.1', 'x'), 10)
    assert find_old_files(tmp_path, 30, patterns=['*.log.*', '*.gz', '*.old']) == [rotated]


def test_cleans_system_temp_and_logs(make, runner, settings):
    root = settings.root
    stale_tmp = age(write(root / 'tmp' / 'stale.txt', 'x'), 2)
    age(write(root / 'tmp' / '.X11-unix' / 'X0', 'x'), 5)
    age(write(root / 'tmp' / 'fresh.txt', 'x'), 0)
    stale_var = age(write(root / 'var' / 'tmp' / 'cache.bin', 'x'), 10)
    old_log = age(write(root / 'var' / 'log' / 'syslog.3.gz', 'x'), 45)
    write(root / 'var' / 'log' / 'kern.log', size=11 * MB)
    write(root / 'var' / 'log' / 'dpkg.log', size=1024)

    results = make(TempJanitor).run()

    rm_calls = [c for c in runner.calls if c[1:2] == ['rm']]
    assert rm_calls == [
        ['sudo', 'rm', '-f', '--', '/tmp/stale.txt'],
        ['sudo', 'rm', '-f', '--', '/var/tmp/cache.bin'],
        ['sudo', 'rm', '-f', '--', '/var/log/syslog.3.gz'],
    ]
    assert ['sudo', 'truncate', '-s', '1M', '/var/log/kern.log'] in runner.calls
    assert not runner.ran('truncate', '-s', '1M', '/var/log/dpkg.log')
    assert results['tmp_files'] == 1
    assert results['var_tmp_files'] == 1
    assert results['log_files'] == 1
    assert results['logs_truncated'] == 1
    assert stale_tmp.exists() and stale_var.exists() and old_log.exists()


def test_removal_is_batched(make, runner, settings):
    for i in range(150):
        age(write(settings.root / 'var' / 'tmp' / f"f{i:03}", 'x'), 10)
    janitor = make(TempJanitor)
    results = janitor.new_results(var_tmp_files=0)
    janitor.clean_var_tmp(results)
    rm_calls = [c for c in runner.calls if c[1:2] == ['rm']]
    assert [len(c) - 4 for c in rm_calls] == [100, 50]
    assert results['var_tmp_files'] == 150


def test_failed_batch_is_not_counted(make, runner, settings):
    age(write(settings.root / 'var' / 'tmp' / 'f', 'x'), 10)
    runner.on('rm', returncode=1)
    janitor = make(TempJanitor)
    results = janitor.new_results(var_tmp_files=0)
    janitor.clean_var_tmp(results)
    assert results['var_tmp_files'] == 0
    assert results['errors'] == ['clean-temp: failed to remove 1 file(s)']


def test_browser_caches(make, settings, output):
    home = settings.home
    write(home / '.mozilla' / 'firefox' / 'abc.default' / 'Cache' / 'entry', 'x')
    write(home / '.cache' / 'chromium' / 'Default' / 'Cache' / 'data_0', 'x')

    janitor = make(TempJanitor)
    results = janitor.new_results(browser_caches=0)
    janitor.clean_browser_temp(results)

    assert results['browser_caches'] == 2
    assert list((home / '.mozilla' / 'firefox' / 'abc.default' / 'Cache').iterdir()) == []
    assert "Browser temporary files cleaned from 2 locations" in output()


def test_missing_directories(make, output):
    results = make(TempJanitor).run()
    assert "/tmp directory not found" in output()
    assert "No browser temporary files found to clean" in output()
    assert results['tmp_files'] == 0
