import logging
import os
import plistlib
import subprocess
import sys
from unittest import mock

import pytest

from sysstarter.items import (
    ERROR_INTERNAL,
    ERROR_PERMISSIONS,
    ERROR_RETURN_NONZERO,
    RUN_FAILURE,
    RUN_SUCCESS,
    Action,
    StartupContext,
    StartupItem,
)
from sysstarter.loader import SecurityChecker
from sysstarter.starter import Starter, fwexec, main, report_failures


@pytest.fixture
def library(tmp_path):
    lib = tmp_path / "Library"
    lib.mkdir()
    os.chmod(lib, 0o755)
    items = lib / "StartupItems"
    items.mkdir()
    os.chmod(items, 0o755)
    return lib


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "run.log"


def make_checker(library):
    return SecurityChecker(
        uid=os.getuid(),
        gid=os.stat(library).st_gid,
        boot_time=0.0,
        launched_by_init=False,
        fixer_dir=None,
        fixer_path=None,
    )


def make_bundle(library, log_file, name, provides, requires=(), body="exit 0", executable=True):
    bundle = library / "StartupItems" / name
    bundle.mkdir()
    os.chmod(bundle, 0o755)
    script = bundle / name
    script.write_text(f'#!/bin/sh\necho "{name} $1" >> "{log_file}"\n{body}\n')
    os.chmod(script, 0o755 if executable else 0o644)
    params = bundle / "StartupParameters.plist"
    with open(params, "wb") as handle:
        plistlib.dump(
            {"Description": name, "Provides": list(provides), "Requires": list(requires)},
            handle,
        )
    os.chmod(params, 0o644)
    return bundle


def read_log(log_file):
    return log_file.read_text().splitlines() if log_file.exists() else []


def make_starter(library, **kwargs):
    return Starter([library], make_checker(library), poll_interval=0.01, **kwargs)


def test_run_starts_items_in_dependency_order(library, log_file):
    make_bundle(library, log_file, "Zed", ["Alpha"])
    make_bundle(library, log_file, "Ant", ["Beta"], requires=["Alpha", "Network"])
    starter = make_starter(library)

    assert starter.run(Action.START) == 0
    assert read_log(log_file) == ["Zed start", "Ant start"]
    assert starter.context.status == {"Alpha": RUN_SUCCESS, "Beta": RUN_SUCCESS}
    assert starter.context.waiting == []
    assert starter.context.failed == []
    assert starter.context.running_count == 0


def test_failing_item_is_recorded(library, log_file):
    make_bundle(library, log_file, "Broken", ["Gamma"], body="exit 3")
    starter = make_starter(library)

    assert starter.run(Action.START) == 0
    failed = starter.context.failed
    assert [item.description for item in failed] == ["Broken"]
    assert failed[0].error == ERROR_RETURN_NONZERO
    assert starter.context.status == {"Gamma": RUN_FAILURE}


def test_item_requiring_failed_service_is_never_attempted(library, log_file):
    make_bundle(library, log_file, "Base", ["Gamma"], body="exit 1")
    make_bundle(library, log_file, "Top", ["Delta"], requires=["Gamma"])
    starter = make_starter(library)

    assert starter.run(Action.START) == 0
    assert read_log(log_file) == ["Base start"]
    assert [item.description for item in starter.context.waiting] == ["Top"]


def test_non_executable_item_fails_with_permissions(library, log_file):
    make_bundle(library, log_file, "NoExec", ["Eps"], executable=False)
    starter = make_starter(library)

    assert starter.run(Action.START) == 0
    assert [item.error for item in starter.context.failed] == [ERROR_PERMISSIONS]
    assert starter.context.waiting == []
    assert read_log(log_file) == []


def test_unknown_service_returns_one(library, log_file):
    make_bundle(library, log_file, "Zed", ["Alpha"])
    starter = make_starter(library)
    assert starter.run(Action.START, "Missing") == 1
    assert read_log(log_file) == []


def test_stop_single_service_runs_only_its_provider(library, log_file):
    make_bundle(library, log_file, "Zed", ["Alpha"])
    make_bundle(library, log_file, "Ant", ["Beta"], requires=["Alpha"])
    starter = make_starter(library)

    assert starter.run(Action.STOP, "Beta") == 0
    assert read_log(log_file) == ["Ant stop"]


def test_waiting_message_logged_for_slow_item(library, log_file, caplog):
    make_bundle(library, log_file, "Slow", ["Zeta"], body="sleep 1")
    starter = make_starter(library, activity_timeout=0.2)
    caplog.set_level(logging.INFO, logger="sysstarter.starter")

    assert starter.run(Action.START) == 0
    assert "Waiting for Slow" in caplog.messages
    assert starter.context.status == {"Zeta": RUN_SUCCESS}


def test_item_terminated_success_and_failure():
    starter = Starter([])
    good = StartupItem(description="Good", provides=["A"], pid=100)
    bad = StartupItem(description="Bad", provides=["B"], pid=101)
    context = StartupContext(waiting=[good, bad], running_count=2)

    starter.item_terminated(context, good, 0)
    starter.item_terminated(context, bad, -9)

    assert context.running_count == 0
    assert context.waiting == []
    assert context.failed == [bad]
    assert bad.error == ERROR_RETURN_NONZERO
    assert good.error is None
    assert context.status == {"A": RUN_SUCCESS, "B": RUN_FAILURE}


def test_monitor_ignores_item_without_pid():
    starter = Starter([])
    item = StartupItem(description="Idle", provides=["A"])
    context = StartupContext(waiting=[item], running_count=1)

    starter.monitor(context, item)
    assert context.running_count == 1
    assert context.waiting == [item]


def test_monitor_untracked_process_counts_as_terminated():
    done = subprocess.run([sys.executable, "-c", "pass"], check=True)
    assert done.returncode == 0
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    starter = Starter([])
    item = StartupItem(description="Gone", provides=["A"], pid=proc.pid)
    context = StartupContext(waiting=[item], running_count=1)

    starter.monitor(context, item)
    assert context.running_count == 0
    assert context.waiting == []
    assert context.status == {"A": RUN_SUCCESS}


def test_report_failures_lists_failed_and_waiting():
    failed = StartupItem(description="F", bundle_path="/lib/StartupItems/F")
    errored = StartupItem(
        description="E", bundle_path="/lib/StartupItems/E", error=ERROR_RETURN_NONZERO
    )
    waiting = StartupItem(description="W", bundle_path="/lib/StartupItems/W")
    context = StartupContext(waiting=[waiting], failed=[failed, errored])

    lines = report_failures(context, Action.STOP)
    assert lines == [
        "The following StartupItems failed to stop properly:",
        "/lib/StartupItems/F",
        f" - {ERROR_INTERNAL}",
        "/lib/StartupItems/E",
        f" - {ERROR_RETURN_NONZERO}",
        "The following StartupItems were not attempted due to failure of a required service:",
        "/lib/StartupItems/W",
    ]


def test_report_failures_empty_context():
    assert report_failures(StartupContext(), Action.START) == []


def test_fwexec_results(tmp_path):
    assert fwexec(sys.executable, "-c", "pass") == 0
    assert fwexec(sys.executable, "-c", "raise SystemExit(2)") == -1
    assert fwexec(str(tmp_path / "no-such-program")) == -1


def test_fwexec_requires_command():
    with pytest.raises(ValueError):
        fwexec()


def test_main_rejects_bad_option():
    with pytest.raises(SystemExit) as info:
        main(["-z"])
    assert info.value.code == 1


def test_main_rejects_too_many_arguments():
    with pytest.raises(SystemExit) as info:
        main(["-n", "start", "a", "b"])
    assert info.value.code == 1


def test_main_rejects_unknown_action():
    with pytest.raises(SystemExit) as info:
        main(["-n", "bogus"])
    assert info.value.code == 1


@mock.patch("os.getuid", return_value=1000)
def test_main_requires_root(_getuid):
    assert main(["start", "Alpha"]) == 1