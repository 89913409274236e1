"""Startup items and the rules that decide the order in which they run."""

from __future__ import annotations

import enum
import logging
import sys
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

PROVIDES_KEY = "Provides"
REQUIRES_KEY = "Requires"
DESCRIPTION_KEY = "Description"
USES_KEY = "Uses"
ERROR_KEY = "Error"
BUNDLE_PATH_KEY = "PathToBundle"
PID_KEY = "ProcessID"
DOMAIN_KEY = "Domain"

ERROR_PERMISSIONS = "incorrect permissions"
ERROR_INTERNAL = "SystemStarter internal error"
ERROR_RETURN_NONZERO = "execution of Startup script failed"
ERROR_FORK = "could not fork() StartupItem"

RUN_SUCCESS = "success"
RUN_FAILURE = "failure"

FIXER_DIR = "/var/db/fixer"
FIXER_PATH = "/var/db/fixer/StartupItems"

# Services that used to be provided by startup items and are now no-ops;
# dependencies on them are dropped when an item is loaded.
LEGACY_SERVICES = frozenset(
    {
        "Accounting",
        "System Tuning",
        "SecurityServer",
        "Portmap",
        "System Log",
        "Resolver",
        "LDAP",
        "NetInfo",
        "NetworkExtensions",
        "DirectoryServices",
        "Network Configuration",
        "mDNSResponder",
        "Cron",
        "Core Graphics",
        "Core Services",
        "Network",
        "TIM",
        "Disks",
        "NIS",
    }
)


class Action(enum.IntEnum):
    """What to do with startup items."""

    NONE = 0
    START = 1
    STOP = 2
    RESTART = 3

    @property
    def argument(self) -> str | None:
        """The argument passed to an item's executable for this action."""
        return {
            Action.START: "start",
            Action.STOP: "stop",
            Action.RESTART: "restart",
        }.get(self)


@dataclass(eq=False)
class StartupItem:
    """One startup item bundle; items compare by identity."""

    description: str | None = None
    provides: list[str] = field(default_factory=list)
    requires: list[str] = field(default_factory=list)
    uses: list[str] = field(default_factory=list)
    bundle_path: str | None = None
    domain: int | None = None
    pid: int | None = None
    error: str | None = None
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def running(self) -> bool:
        """True once the item has been given a process id."""
        return self.pid is not None


@dataclass
class StartupContext:
    """State shared between the scheduler and the termination handler."""

    waiting: list[StartupItem] = field(default_factory=list)
    failed: list[StartupItem] = field(default_factory=list)
    status: dict[str, str] = field(default_factory=dict)
    services_count: int = 0
    running_count: int = 0

    def remove_waiting(self, item: StartupItem) -> None:
        """Drop ``item`` from the waiting list if it is there."""
        for index, candidate in enumerate(self.waiting):
            if candidate is item:
                del self.waiting[index]
                return

    def add_failed(self, item: StartupItem) -> None:
        """Record ``item`` as failed."""
        self.failed.append(item)


def _contains(items: Iterable[StartupItem], item: StartupItem) -> bool:
    return any(candidate is item for candidate in items)


def _matches(items: Iterable[StartupItem], key: str, service: str) -> list[StartupItem]:
    """Items whose list named ``key`` contains ``service``, without duplicates."""
    result: list[StartupItem] = []
    for item in items:
        if service in _list_for(item, key) and not _contains(result, item):
            result.append(item)
    return result


def _list_for(item: StartupItem, key: str) -> list[str]:
    if key == PROVIDES_KEY:
        return item.provides
    if key == REQUIRES_KEY:
        return item.requires
    if key == USES_KEY:
        return item.uses
    raise KeyError(key)


def validate_config(config: Any) -> bool:
    """Check that a parameters file holds a dictionary with well-typed lists."""
    if not isinstance(config, Mapping):
        return False
    for key in (PROVIDES_KEY, REQUIRES_KEY):
        value = config.get(key)
        if value is not None and not isinstance(value, list):
            return False
    return True


def filter_legacy_dependencies(config: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Remove legacy services from the Requires and Uses lists of ``config``."""
    for key in (REQUIRES_KEY, USES_KEY):
        services = config.get(key)
        if services is None:
            continue
        kept = []
        for service in services:
            logger.debug("%s: Evaluating %s", key, service)
            if service not in LEGACY_SERVICES:
                kept.append(service)
                logger.debug("%s: Keeping %s", key, service)
        config[key] = kept
    return config


def item_from_config(config: Any, bundle_path: str, domain: int) -> StartupItem:
    """Build a startup item from a parsed parameters file."""
    if not validate_config(config):
        raise ValueError(f"malformatted parameters for {bundle_path}")
    data = dict(config)
    data[BUNDLE_PATH_KEY] = bundle_path
    data[DOMAIN_KEY] = domain
    filter_legacy_dependencies(data)
    return StartupItem(
        description=data.get(DESCRIPTION_KEY),
        provides=list(data.get(PROVIDES_KEY) or []),
        requires=list(data.get(REQUIRES_KEY) or []),
        uses=list(data.get(USES_KEY) or []),
        bundle_path=bundle_path,
        domain=domain,
        config=data,
    )


def count_services(items: Iterable[StartupItem]) -> int:
    """Total number of services provided by ``items``."""
    return sum(len(item.provides) for item in items)


def find_provider(items: Iterable[StartupItem], service: str) -> StartupItem | None:
    """The first item providing ``service``, or None."""
    matches = _matches(items, PROVIDES_KEY, service)
    return matches[0] if matches else None


def running_items(items: Iterable[StartupItem]) -> list[StartupItem]:
    """Items that have been started."""
    return [item for item in items if item.running]


def dependents(
    items: Sequence[StartupItem], service: str, action: Action
) -> list[StartupItem] | None:
    """The provider of ``service`` and the items that depend on it for ``action``.

    For START, dependents are items requiring a service the parent provides;
    for STOP, the keys are the same, walked from the stopping item. RESTART
    yields only the provider. Returns None for an unknown service or NONE.
    """
    provider = find_provider(items, service)
    if provider is None or action not in (Action.START, Action.STOP, Action.RESTART):
        return None

    result: list[StartupItem] = []

    def append(parent: StartupItem) -> None:
        if not _contains(result, parent):
            result.append(parent)
        if action is Action.START:
            inner_key, outer_key = PROVIDES_KEY, REQUIRES_KEY
        elif action is Action.STOP:
            inner_key, outer_key = REQUIRES_KEY, PROVIDES_KEY
        else:
            return
        for element in _list_for(parent, outer_key):
            for candidate in items:
                if element in _list_for(candidate, inner_key) and not _contains(result, candidate):
                    append(candidate)

    append(provider)
    return result


def _count_unmet(status: Mapping[str, str], services: Iterable[str]) -> int:
    count = 0
    for service in services:
        if status.get(service) != RUN_SUCCESS:
            logger.debug("\tFailed requirement/uses: %s", service)
            count += 1
    return count


def _count_dependants_present(
    waiting: Sequence[StartupItem], services: Iterable[str], key: str
) -> int:
    return sum(len(_matches(waiting, key, service)) for service in services)


def _pending_antecedents(
    waiting: Sequence[StartupItem],
    status: Mapping[str, str],
    antecedents: Iterable[str],
    action: Action,
) -> bool:
    key = PROVIDES_KEY if action is Action.START else USES_KEY
    for antecedent in antecedents:
        for match in _matches(waiting, key, antecedent):
            if not match.running or antecedent not in status:
                return True
    return False


def _has_duplicate(
    waiting: Sequence[StartupItem], status: Mapping[str, str], item: StartupItem
) -> bool:
    for service in item.provides:
        if status.get(service) == RUN_SUCCESS:
            return True
        for other in _matches(waiting, PROVIDES_KEY, service):
            if other.running:
                return True
            if (
                item.domain is not None
                and other.domain is not None
                and item.domain > other.domain
            ):
                return True
    return False


def next_item(
    waiting: Sequence[StartupItem], status: Mapping[str, str], action: Action
) -> StartupItem | None:
    """Choose the next item to run for ``action``, or None if none is ready."""
    if action not in (Action.START, Action.STOP, Action.RESTART):
        return None
    if not waiting:
        return None

    chosen: StartupItem | None = None
    min_failed = sys.maxsize

    for item in waiting:
        if item.running:
            continue
        if _has_duplicate(waiting, status, item):
            logger.debug("Skipping %s because of duplicate service.", item.description)
            continue
        if action is Action.RESTART:
            return item

        hard = item.requires if action is Action.START else item.provides
        logger.debug("Checking %s", item.description)
        if hard:
            logger.debug("Antecedents: %s", hard)
            unmet = (
                _count_unmet(status, hard)
                if action is Action.START
                else _count_dependants_present(waiting, hard, REQUIRES_KEY)
            )
            if unmet:
                continue
        else:
            logger.debug("No antecedents")

        soft = item.uses if action is Action.START else item.provides
        best = False
        failed = 0
        if soft:
            logger.debug("Soft dependancies: %s", soft)
            failed = (
                _count_unmet(status, soft)
                if action is Action.START
                else _count_dependants_present(waiting, soft, USES_KEY)
            )
        else:
            logger.debug("No soft dependancies")
            if min_failed > 0:
                best = True

        if failed > 0 and _pending_antecedents(waiting, status, soft, action):
            continue
        if failed > 0:
            logger.debug("Total: %d", failed)
        if failed > min_failed:
            continue
        if failed < min_failed:
            best = True
        if not best:
            continue

        logger.debug(
            "Best pick so far, based on failed dependancies (%d->%d)", min_failed, failed
        )
        min_failed = failed
        chosen = item

    return chosen


def item_with_pid(items: Iterable[StartupItem], pid: int) -> StartupItem | None:
    """The item running as process ``pid``, or None."""
    for item in items:
        if item.pid is not None and item.pid == pid:
            return item
    return None


def set_status(
    status: MutableMapping[str, str],
    item: StartupItem,
    service: str | None,
    success: bool,
    replace: bool,
) -> None:
    """Record the outcome of ``item`` for its services.

    If ``service`` is one the item provides, only that service is recorded.
    Without ``replace`` existing entries are kept.
    """
    if not item.provides:
        return
    services = [service] if service is not None and service in item.provides else item.provides
    value = RUN_SUCCESS if success else RUN_FAILURE
    for name in services:
        if replace:
            status[name] = value
        else:
            status.setdefault(name, value)


def mark_exit(status: MutableMapping[str, str], item: StartupItem, success: bool) -> None:
    """Record that ``item`` finished, without overwriting earlier results."""
    set_status(status, item, None, success, False)