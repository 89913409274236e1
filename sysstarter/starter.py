"""Running every startup item in dependency order, and the command line."""

from __future__ import annotations

import getopt
import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Iterable, Sequence

from sysstarter.items import (
    BUNDLE_PATH_KEY,
    ERROR_INTERNAL,
    ERROR_RETURN_NONZERO,
    FIXER_PATH,
    Action,
    StartupContext,
    StartupItem,
    count_services,
    dependents,
    mark_exit,
    next_item,
    running_items,
)
from sysstarter.loader import ItemRunError, SecurityChecker, load_items, run_item

logger = logging.getLogger(__name__)

# Local domain first, then system: an item found in a later domain waits
# for a same-service item from an earlier one.
DEFAULT_LIBRARY_DIRS = ("/Library", "/System/Library")

SHELL = "/bin/sh"
RC_LOCAL = "/etc/rc.local"
RC_SHUTDOWN_LOCAL = "/etc/rc.shutdown.local"

# Names used by clients that talk to a running starter.
MESSAGE_PORT_NAME = "com.apple.SystemStarter"
IPC_PROTOCOL_VERSION = 0
IPC_MESSAGE_KEY = "Message"
IPC_CONSOLE_MESSAGE = "ConsoleMessage"
IPC_STATUS_MESSAGE = "StatusMessage"
IPC_QUERY_MESSAGE = "QueryMessage"
IPC_LOAD_DISPLAY_BUNDLE_MESSAGE = "LoadDisplayBundle"
IPC_UNLOAD_DISPLAY_BUNDLE_MESSAGE = "UnloadDisplayBundle"
IPC_SERVICE_NAME_KEY = "ServiceName"
IPC_PROCESS_ID_KEY = "ProcessID"
IPC_CONSOLE_MESSAGE_KEY = "ConsoleMessage"
IPC_STATUS_KEY = "StatusKey"
IPC_DISPLAY_BUNDLE_PATH_KEY = "DisplayBundlePath"
IPC_CONFIG_SETTING_KEY = "ConfigSetting"
IPC_CONFIG_SETTING_VERBOSE_FLAG = "VerboseFlag"
IPC_CONFIG_SETTING_NETWORK_UP = "NetworkUp"

_USAGE = (
    "usage: {prog} [-vdqn?] [ <action> [ <item> ] ]\n"
    "\t<action>: action to take (start|stop|restart); default is start\n"
    "\t<item>  : name of item to act on; default is all items\n"
    "options:\n"
    "\t-v: verbose startup\n"
    "\t-d: print debugging output\n"
    "\t-q: be quiet (disable debugging output)\n"
    "\t-n: don't actually perform action on items (pretend mode)\n"
    "\t-?: show this help\n"
)

_ACTIONS = {"start": Action.START, "stop": Action.STOP, "restart": Action.RESTART}


def _reap(pid: int) -> int:
    """Wait for ``pid`` and return its exit code; 0 if it is not our child."""
    try:
        _, wait_status = os.waitpid(pid, 0)
    except ChildProcessError:
        return 0
    return os.waitstatus_to_exitcode(wait_status)


class Starter:
    """Loads startup items and runs them until none are left to run."""

    def __init__(
        self,
        library_dirs: Iterable[str | os.PathLike[str]] | None = None,
        checker: SecurityChecker | None = None,
        *,
        debug: bool = False,
        no_run: bool = False,
        activity_timeout: float = 3.0,
        poll_interval: float = 0.05,
    ) -> None:
        self.library_dirs = list(DEFAULT_LIBRARY_DIRS if library_dirs is None else library_dirs)
        self.checker = checker if checker is not None else SecurityChecker()
        self.debug = debug
        self.no_run = no_run
        self.activity_timeout = activity_timeout
        self.poll_interval = poll_interval
        self.context: StartupContext | None = None
        self._processes: dict[int, subprocess.Popen[bytes]] = {}
        self._watched: dict[int, tuple[subprocess.Popen[bytes], StartupContext, StartupItem]] = {}
        self._last_status_count = -1

    def run(self, action: Action, service: str | None = None) -> int:
        """Run ``action`` on all items, or on ``service`` and its dependents.

        Returns 0 when done, 1 if the items cannot be loaded or the service
        is unknown.
        """
        if self.debug and self.no_run:
            time.sleep(1)
        try:
            waiting = load_items(self.library_dirs, self.checker)
        except OSError:
            return 1

        context = StartupContext(waiting=waiting)
        self.context = context
        if service is not None:
            selected = dependents(context.waiting, service, action)
            if selected is None:
                logger.error("Unknown service: %s", service)
                return 1
            context.waiting = selected
        context.services_count = count_services(context.waiting)
        self._last_status_count = -1

        while True:
            item = next_item(context.waiting, context.status, action)
            if item is not None:
                try:
                    process = run_item(context.status, item, action)
                except ItemRunError:
                    context.add_failed(item)
                    context.remove_waiting(item)
                    continue
                if process is None:
                    context.remove_waiting(item)
                    continue
                self._processes[process.pid] = process
                context.running_count += 1
                self.monitor(context, item)
                continue

            if context.running_count <= 0:
                logger.debug("none left")
                break
            if not self._wait_for_termination(self.activity_timeout):
                self._check_for_activity(context)

        report_failures(context, action)
        return 0

    def monitor(self, context: StartupContext, item: StartupItem) -> None:
        """Watch the process of ``item`` so its termination is recorded."""
        if item is None or item.pid is None or item.pid <= 0:
            return
        process = self._processes.pop(item.pid, None)
        if process is None:
            # Nothing to watch: the task is taken to have terminated already.
            self.item_terminated(context, item, _reap(item.pid))
            return
        self._watched[item.pid] = (process, context, item)

    def item_terminated(
        self, context: StartupContext, item: StartupItem, returncode: int
    ) -> None:
        """Record that ``item`` finished with ``returncode``."""
        if item.pid is not None:
            self._watched.pop(item.pid, None)
        context.running_count -= 1
        mark_exit(context.status, item, returncode == 0)
        if returncode:
            logger.warning("%s (%d) did not complete successfully", item.description, item.pid or 0)
            item.error = ERROR_RETURN_NONZERO
            context.add_failed(item)
        else:
            logger.debug("Finished %s (%d)", item.description, item.pid or 0)
        context.remove_waiting(item)

    def _wait_for_termination(self, timeout: float) -> bool:
        """Handle finished items; False if none finished within ``timeout``."""
        deadline = time.monotonic() + timeout
        while True:
            finished = [
                (process, context, item)
                for process, context, item in self._watched.values()
                if process.poll() is not None
            ]
            for process, context, item in finished:
                self.item_terminated(context, item, process.returncode)
            if finished:
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(self.poll_interval)

    def _check_for_activity(self, context: StartupContext) -> None:
        count = len(context.status)
        if count == self._last_status_count:
            running = running_items(context.waiting)
            if running and running[0].description:
                logger.info("Waiting for %s", running[0].description)
        self._last_status_count = count


def report_failures(context: StartupContext, action: Action) -> list[str]:
    """Log the items that failed or were never attempted; return the lines."""
    lines: list[str] = []
    if context.failed:
        verb = "start" if action is Action.START else "stop"
        lines.append(f"The following StartupItems failed to {verb} properly:")
        for item in context.failed:
            path = item.bundle_path or item.config.get(BUNDLE_PATH_KEY)
            if path:
                lines.append(str(path))
            lines.append(f" - {item.error or ERROR_INTERNAL}")
    if context.waiting:
        lines.append(
            "The following StartupItems were not attempted due to failure of a required service:"
        )
        for item in context.waiting:
            path = item.bundle_path or item.config.get(BUNDLE_PATH_KEY)
            if path:
                lines.append(str(path))
    for line in lines:
        logger.warning("%s", line)
    return lines


def fwexec(*args: str) -> int:
    """Run a command and wait for it; 0 on a clean exit, -1 otherwise."""
    if not args:
        raise ValueError("fwexec needs a command")
    try:
        completed = subprocess.run(list(args), check=False)
    except OSError:
        logger.warning("%s exit status: %d", args[0], 1)
        return -1
    code = completed.returncode
    if code == 0:
        return 0
    if code > 0:
        logger.warning("%s exit status: %d", args[0], code)
    else:
        logger.warning("%s died: %s", args[0], signal.strsignal(-code))
    return -1


def _usage() -> None:
    sys.stderr.write(_USAGE.format(prog=os.path.basename(sys.argv[0] or "sysstarter")))
    raise SystemExit(1)


def _configure_logging(debug: bool, verbose: bool) -> None:
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(name)s[%(process)d]: %(message)s")


def _boot(starter: Starter) -> int:
    signal.pthread_sigmask(signal.SIG_BLOCK, {signal.SIGTERM})
    try:
        os.unlink(FIXER_PATH)
    except OSError:
        pass

    fwexec("/usr/sbin/ipconfig", "waitall")
    starter.run(Action.START, None)
    if starter.checker.check(RC_LOCAL):
        fwexec(SHELL, RC_LOCAL)

    signal.sigwait({signal.SIGTERM})

    if starter.checker.check(RC_SHUTDOWN_LOCAL):
        fwexec(SHELL, RC_SHUTDOWN_LOCAL)
    starter.run(Action.STOP, None)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        options, rest = getopt.getopt(args, "gvxirdDqn?")
    except getopt.GetoptError:
        _usage()
        return 1

    verbose = debug = no_run = False
    for option, _ in options:
        if option == "-v":
            verbose = True
        elif option in ("-d", "-D"):
            debug = True
        elif option == "-n":
            no_run = True
        elif option == "-?":
            _usage()

    if len(rest) > 2:
        _usage()

    _configure_logging(debug, verbose)

    if not no_run and os.getuid() != 0:
        logger.error("must be root to run")
        return 1

    action = Action.START
    if rest:
        if rest[0] not in _ACTIONS:
            _usage()
        action = _ACTIONS[rest[0]]

    starter = Starter(debug=debug, no_run=no_run)
    if len(rest) == 2:
        return starter.run(action, rest[1])
    return _boot(starter)


if __name__ == "__main__":
    raise SystemExit(main())