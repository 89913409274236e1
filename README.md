# sysstarter

`sysstarter` finds startup items in library directories and runs them in
dependency order.

A startup item is a bundle directory inside `<library>/StartupItems`. The
bundle holds an executable with the same name as the bundle and a
`StartupParameters.plist`. The plist describes the services that the item
`Provides`, `Requires` and `Uses`. A bundle that contains a `.disabled`
file is skipped. The default libraries are `/Library` and
`/System/Library`, and they are searched in that order.

## How items are scheduled

- An item runs with `start` only after every service it `Requires` has
  succeeded. Among the items that are ready, the item with the fewest unmet
  `Uses` services is chosen first.
- An item runs with `stop` only after no waiting item requires a service
  that it provides.
- An item is skipped when one of its services has already succeeded, or
  when another waiting item that provides the same service is running or
  was found in an earlier library.
- Dependencies on some legacy services, such as `Network`, `Disks` and
  `Cron`, are removed from each item when it is loaded.

Each path of an item has to pass a security check. The path must be a
regular file or a directory, it must be owned by UID 0 and GID 0, and it
must not be writable by group or others. When the process was started by
init, the path must also be older than the last boot. If any check fails,
the marker file `/var/db/fixer/StartupItems` is created.

## Installation

```
pip install sysstarter
```

## Command line

```
sysstarter [-vdqn?] [ <action> [ <item> ] ]
```

- `<action>` is `start`, `stop` or `restart`. The default is `start`.
- With both `<action>` and `<item>`, the command acts on the item that
  provides the service `<item>` and on the items that depend on it. It
  then exits. An unknown service gives exit status 1.
- Without `<item>`, the command runs the boot sequence. It first runs
  `/usr/sbin/ipconfig waitall`. Then it starts all items and runs
  `/etc/rc.local` if that file passes the security check. Next it waits
  for `SIGTERM`. After the signal it runs `/etc/rc.shutdown.local` if that
  file passes the check, and then it stops all items. In this sequence
  `<action>` is ignored.
- `-v` logs at info level. `-d` or `-D` logs at debug level.
- `-n` removes the need to run as root. It does not stop items from being
  run.
- `-q`, `-g`, `-x`, `-i` and `-r` are accepted and have no effect.
  `-?` prints the usage.

The command exits with status 1 if it is not run as root and `-n` is not
given.

## Library use

- `sysstarter.items` has `Action`, `StartupItem` and `StartupContext`. It
  also has the helpers `validate_config`, `filter_legacy_dependencies`,
  `item_from_config`, `count_services`, `find_provider`, `running_items`,
  `dependents`, `next_item`, `item_with_pid`, `set_status` and
  `mark_exit`.
- `sysstarter.loader` has `SecurityChecker` and `load_items`, which read
  item bundles from disk. It also has `executable_path`, and `run_item`,
  which starts an item's executable in a new session. `run_item` raises
  `ItemRunError` when the item is not started.
- `sysstarter.starter` has `Starter`, which drives a whole start or stop
  run. `Starter.run` returns 0, or 1 when the items cannot be loaded or
  the service is unknown. It also has `report_failures`, which logs the
  failed items and the items that were not attempted, and returns those
  lines. `fwexec` runs a command and waits for it to finish.
- `sysstarter.wire` converts unsigned integers of a given byte size, and
  doubles, between host order and big-endian wire order. It has
  `host2wire`, `wire2host`, `host2wire_f` and `wire2host_f`.
- `sysstarter.keys` has the `LaunchDataType` enumeration, the job-key
  constants and `job_keys()`.

```python
from sysstarter.items import Action, dependents, next_item
from sysstarter.loader import SecurityChecker, load_items

items = load_items(["/Library"], SecurityChecker())
order = dependents(items, "Apache", Action.START)
first = next_item(items, {}, Action.START)
```

## What it does not do

- It does not listen for messages from clients. `sysstarter.starter`
  only defines the names of those messages and keys.
- It does not wait for device or disk activity to settle before the boot
  sequence.
- It does not post a notification when all startup items have finished.
- `sysstarter.keys` and `sysstarter.wire` only provide names and byte-order
  conversions. They do not send messages to or receive messages from a
  job manager.

## Tests

```
pip install "sysstarter[test]"
pytest
```