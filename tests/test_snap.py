from ubuntu_optimize.maintenance.snap import SnapJanitor, disabled_revisions

from conftest import write

SNAP_LIST_ALL = """\
Name      Version    Rev    Tracking       Publisher   Notes
core20    20230801   2015   latest/stable  canonical✓  base
core20    20230622   1974   latest/stable  canonical✓  base,disabled
firefox   120.0      3358   latest/stable  mozilla✓    -
firefox   119.0      3290   latest/stable  mozilla✓    disabled
"""


def test_disabled_revisions():
    assert disabled_revisions(SNAP_LIST_ALL.splitlines()) == [
        ('core20', '1974'),
        ('firefox', '3290'),
    ]


def test_disabled_revisions_ignores_header_and_short_rows():
    assert disabled_revisions(['Name Version Rev Notes disabled', 'broken']) == []


def test_snap_missing_is_not_an_error(make, runner, output):
    results = make(SnapJanitor).run()
    assert results['revisions_removed'] == 0
    assert runner.calls == []
    assert "Snap is not installed, nothing to clean" in output()


def test_removes_disabled_revisions_and_caches(make, runner, settings):
    runner.available = {'snap'}
    runner.on('snap', 'list', '--all', stdout=SNAP_LIST_ALL)
    (settings.root / 'var' / 'lib' / 'snapd' / 'cache').mkdir(parents=True)
    write(settings.home / 'snap' / 'firefox' / 'common' / '.cache' / 'x', 'x')

    results = make(SnapJanitor).run()

    assert results['revisions_removed'] == 2
    assert ['sudo', 'snap', 'remove', 'core20', '--revision=1974'] in runner.calls
    assert ['sudo', 'snap', 'remove', 'firefox', '--revision=3290'] in runner.calls
    finds = [c for c in runner.calls if c[1:2] == ['find']]
    assert finds == [
        ['sudo', 'find', '/var/lib/snapd/cache', '-type', 'f', '-delete'],
        ['sudo', 'find', str(settings.home / 'snap' / 'firefox' / 'common' / '.cache'),
         '-type', 'f', '-delete'],
    ]
    assert results['cache_dirs_cleaned'] == 2
    assert runner.commands[-1] == ['snap', 'refresh', '--list']


def test_failed_revision_removal_is_recorded(make, runner, output):
    runner.available = {'snap'}
    runner.on('snap', 'list', '--all', stdout=SNAP_LIST_ALL)
    runner.on('snap', 'remove', 'firefox', returncode=1)

    results = make(SnapJanitor).run()

    assert results['revisions_removed'] == 1
    assert results['errors'] == ['clean-snap: firefox revision 3290']
    assert "[WARNING] Failed to remove firefox revision 3290" in output()


def test_no_old_revisions(make, runner, output):
    runner.available = {'snap'}
    runner.on('snap', 'list', '--all', stdout=SNAP_LIST_ALL.splitlines()[0] + '\n')
    make(SnapJanitor).run()
    assert not runner.ran('snap', 'remove')
    assert "No old snap revisions found" in output()
