"""Finding startup item bundles on disk and running their executables."""

from __future__ import annotations

import logging
import os
import plistlib
import stat
import subprocess
import xml.parsers.expat
from collections.abc import Iterable, MutableMapping

import psutil

from sysstarter.items import (
    ERROR_FORK,
    ERROR_PERMISSIONS,
    FIXER_DIR,
    FIXER_PATH,
    Action,
    StartupItem,
    item_from_config,
    mark_exit,
)

logger = logging.getLogger(__name__)

STARTUP_ITEMS_DIR = "StartupItems"
PARAMETERS_FILE = "StartupParameters.plist"
DISABLED_FILE = ".disabled"

# Items whose stop action is known to misbehave; they are treated as
# already stopped instead of being run.
STOP_STUB_SERVICES = (
    "BootROMUpdater",
    "FCUUpdater",
    "AutoProtect Daemon",
    "Check For Missed Tasks",
    "Privacy",
    "Firmware Update Checking",
    "M-Audio FireWire Audio Support",
    "help for M-Audio Delta Family",
    "help for M-Audio Devices",
    "help for M-Audio Revo 5.1",
    "M-Audio USB Duo Configuration Service",
    "firmware loader for M-Audio devices",
    "M-Audio MobilePre USB Configuration Service",
    "M-Audio OmniStudio USB Configuration Service",
    "M-Audio Transit USB Configuration Service",
    "M-Audio Audiophile USB Configuration Service",
)

_PLIST_ERRORS = (
    plistlib.InvalidFileException,
    xml.parsers.expat.ExpatError,
    ValueError,
    TypeError,
)


class ItemRunError(RuntimeError):
    """A startup item could not be run."""

    def __init__(self, item: StartupItem, message: str) -> None:
        super().__init__(message)
        self.item = item


class SecurityChecker:
    """Decides whether a path is safe to use as part of a startup item.

    A path passes when it is a regular file or directory, is not group or
    world writable, and is owned by ``uid`` and ``gid``. When the process was
    started by init, the path must also predate the last boot. Any failure
    other than a missing path leaves a marker file at ``fixer_path``.
    """

    def __init__(
        self,
        *,
        uid: int = 0,
        gid: int = 0,
        boot_time: float | None = None,
        launched_by_init: bool | None = None,
        fixer_dir: str | None = FIXER_DIR,
        fixer_path: str | None = FIXER_PATH,
    ) -> None:
        self.uid = uid
        self.gid = gid
        self._boot_time = boot_time
        self.launched_by_init = launched_by_init
        self.fixer_dir = fixer_dir
        self.fixer_path = fixer_path

    @property
    def boot_time(self) -> float:
        """Seconds since the epoch at which the system booted."""
        if self._boot_time is None:
            self._boot_time = psutil.boot_time()
        return self._boot_time

    def _by_init(self) -> bool:
        if self.launched_by_init is None:
            return os.getppid() == 1
        return self.launched_by_init

    def check(self, path: str | os.PathLike[str]) -> bool:
        """Return True if ``path`` passes the sanity and security checks."""
        path = os.fspath(path)
        try:
            info = os.lstat(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error('lstat("%s"): %s', path, exc.strerror)
            return False

        if int(info.st_ctime) > int(self.boot_time) and self._by_init():
            logger.warning('"%s" failed sanity check: path was created after boot up', path)
            return False

        ok = True
        if not (stat.S_ISREG(info.st_mode) or stat.S_ISDIR(info.st_mode)):
            logger.warning('"%s" failed security check: not a directory or regular file', path)
            ok = False
        if info.st_mode & stat.S_IWOTH:
            logger.warning('"%s" failed security check: world writable', path)
            ok = False
        if info.st_mode & stat.S_IWGRP:
            logger.warning('"%s" failed security check: group writable', path)
            ok = False
        if info.st_uid != self.uid:
            logger.warning('"%s" failed security check: not owned by UID %d', path, self.uid)
            ok = False
        if info.st_gid != self.gid:
            logger.warning('"%s" failed security check: not owned by GID %d', path, self.gid)
            ok = False
        if not ok:
            self._leave_marker()
        return ok

    def _leave_marker(self) -> None:
        if self.fixer_dir is not None:
            try:
                os.mkdir(self.fixer_dir, 0o777)
            except OSError:
                pass
        if self.fixer_path is not None:
            try:
                with open(self.fixer_path, "a"):
                    pass
            except OSError:
                pass


def _read_config(config_file: str, bundle_name: str) -> object | None:
    try:
        with open(config_file, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        logger.error(
            "Unable to open parameters file %s for item %s: %s",
            config_file,
            bundle_name,
            exc.strerror,
        )
        raise
    try:
        return plistlib.loads(data)
    except _PLIST_ERRORS:
        return None


def _load_bundle(
    directory: str, bundle_name: str, domain: int, checker: SecurityChecker
) -> StartupItem | None:
    bundle_path = f"{directory}/{bundle_name}"
    executable = f"{bundle_path}/{bundle_name}"
    config_file = f"{bundle_path}/{PARAMETERS_FILE}"
    disabled_file = f"{bundle_path}/{DISABLED_FILE}"

    if os.path.lexists(disabled_file):
        logger.info("Skipping disabled StartupItem: %s", bundle_path)
        return None
    if not all(checker.check(p) for p in (bundle_path, executable, config_file)):
        return None

    try:
        config = _read_config(config_file, bundle_name)
    except OSError:
        return None
    try:
        return item_from_config(config, bundle_path, domain)
    except ValueError:
        logger.error("Malformatted parameters file: %s", config_file)
        return None


def load_items(
    library_dirs: Iterable[str | os.PathLike[str]],
    checker: SecurityChecker | None = None,
) -> list[StartupItem]:
    """Load the startup items found under each library directory.

    Items are looked for in ``<library>/StartupItems``; the domain of an
    item is the 1-based position of its library directory. Raises OSError
    when an existing items directory cannot be listed.
    """
    if checker is None:
        checker = SecurityChecker()
    items: list[StartupItem] = []
    for domain, library in enumerate(library_dirs, start=1):
        directory = f"{os.fspath(library)}/{STARTUP_ITEMS_DIR}"
        try:
            os.mkdir(directory, 0o755)
        except OSError:
            pass
        if not checker.check(directory):
            continue
        try:
            names = sorted(os.listdir(directory))
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.warning("Open on directory %s failed: %s", directory, exc.strerror)
            raise
        for name in names:
            if name.startswith("."):
                continue
            logger.debug("Found item: %s", name)
            item = _load_bundle(directory, name, domain, checker)
            if item is not None:
                items.append(item)
    return items


def executable_path(item: StartupItem) -> str:
    """Path of the item's executable: the bundle's own name inside the bundle."""
    bundle = item.bundle_path
    if not bundle:
        raise ValueError("startup item has no bundle path")
    slash = bundle.rfind("/")
    suffix = bundle[slash:] if slash >= 0 else "/" + bundle
    return bundle + suffix


def run_item(
    status: MutableMapping[str, str], item: StartupItem, action: Action
) -> subprocess.Popen[bytes] | None:
    """Start ``item`` for ``action``.

    Returns the started process, or None for ``Action.NONE``, which only
    records success. Raises ItemRunError when the item was not started; the
    item's status and error are updated before raising.
    """
    if action is Action.STOP:
        for stub in STOP_STUB_SERVICES:
            if stub in item.provides:
                item.pid = -1
                mark_exit(status, item, True)
                raise ItemRunError(item, f"stop action of {stub!r} is not run")

    if action is Action.NONE:
        mark_exit(status, item, True)
        return None

    try:
        executable = executable_path(item)
    except ValueError as exc:
        logger.critical("Internal error while running item %s", item.bundle_path)
        raise ItemRunError(item, str(exc)) from exc

    if not os.access(executable, os.X_OK):
        item.pid = -1
        item.error = ERROR_PERMISSIONS
        mark_exit(status, item, False)
        logger.error("No executable file %s", executable)
        raise ItemRunError(item, f"no executable file {executable}")

    argument = action.argument
    argv = [executable] if argument is None else [executable, argument]
    try:
        process = subprocess.Popen(argv, start_new_session=True)
    except OSError as exc:
        item.error = ERROR_FORK
        mark_exit(status, item, False)
        logger.error("Failed to fork for item %s: %s", item.bundle_path, exc.strerror)
        raise ItemRunError(item, f"could not start {executable}") from exc

    item.pid = process.pid
    logger.debug("Running command (%d): %s %s", process.pid, executable, argument)
    return process