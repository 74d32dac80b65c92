import io
import logging

from rich.console import Console

from ubuntu_optimize.output import REPORT_LOGGER, THEME, Reporter, progress_bar


def make_reporter(**kwargs):
    console = Console(file=io.StringIO(), width=120, theme=THEME, color_system=None)
    return Reporter(console=console, **kwargs)


def printed(reporter):
    return reporter.console.file.getvalue()


def test_tagged_lines():
    reporter = make_reporter()
    reporter.status("checking")
    reporter.success("done")
    reporter.warning("careful")
    reporter.error("broken")
    reporter.step("next")
    lines = printed(reporter).splitlines()
    assert lines == [
        '[INFO] checking',
        '[SUCCESS] done',
        '[WARNING] careful',
        '[ERROR] broken',
        '[STEP] next',
    ]


def test_markup_in_messages_is_printed_literally():
    reporter = make_reporter()
    reporter.status("Run 'ubuntu-optimize [module-name]'")
    assert "[module-name]" in printed(reporter)


def test_quiet_prints_errors_only():
    reporter = make_reporter(quiet=True)
    reporter.status("hidden")
    reporter.warning("hidden too")
    reporter.banner("Title")
    reporter.detail("detail")
    reporter.error("visible")
    assert printed(reporter).strip() == '[ERROR] visible'


def test_debug_needs_verbose():
    quiet = make_reporter()
    quiet.debug("command")
    assert printed(quiet) == ''

    verbose = make_reporter(verbose=True)
    verbose.debug("command")
    assert 'command' in printed(verbose)


def test_banner():
    reporter = make_reporter()
    reporter.banner("Ubuntu APT Cleanup Tool")
    lines = printed(reporter).splitlines()
    assert lines[0] == '=' * 44
    assert lines[1].strip() == 'Ubuntu APT Cleanup Tool'
    assert lines[2] == '=' * 44


def test_progress():
    reporter = make_reporter()
    reporter.progress(3, 10, "Cleaning caches")
    text = printed(reporter)
    assert '[3/10] Cleaning caches' in text
    assert f"Progress: [{progress_bar(30)}] 30%" in text


def test_progress_bar():
    assert progress_bar(0) == '░' * 20
    assert progress_bar(50) == '█' * 10 + '░' * 10
    assert progress_bar(100) == '█' * 20
    assert progress_bar(150) == '█' * 20
    assert len(progress_bar(33, width=10)) == 10


def test_confirm_uses_answer():
    asked = []
    reporter = make_reporter(ask=lambda q: asked.append(q) or False)
    assert reporter.confirm("Continue?") is False
    assert asked == ["Continue?"]


def test_confirm_auto_yes_does_not_prompt():
    def never(question):
        raise AssertionError("prompted")
    reporter = make_reporter(auto_yes=True, ask=never)
    assert reporter.confirm("Continue?") is True


def test_confirm_closed_input_means_no():
    def closed(question):
        raise EOFError
    assert make_reporter(ask=closed).confirm("Continue?") is False


def test_task_without_terminal_just_runs():
    reporter = make_reporter()
    ran = []
    with reporter.task("Working"):
        ran.append(True)
    assert ran == [True]


def test_lines_are_logged_to_report_logger(caplog):
    reporter = make_reporter(quiet=True)
    with caplog.at_level(logging.INFO, logger=REPORT_LOGGER):
        reporter.status("kept in the log")
    assert [r.name for r in caplog.records] == [REPORT_LOGGER]
    assert caplog.records[0].getMessage() == 'kept in the log'
