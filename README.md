# nodestat

`nodestat` reads kernel statistics from `/proc` and `/sys` on a Linux host and
turns them into metrics. Each metric (`nodestat.metrics.Metric`) has a
descriptor with a name, a help text and label names, plus label values, a
value type (`ValueType.GAUGE` or `ValueType.COUNTER`) and a float value.

## Installing

```
pip install .
```

Run the tests with:

```
pip install ".[test]"
pytest
```

## Collectors

Each collector reads one area of the system:

| name         | module       | source                                            | default  |
|--------------|--------------|---------------------------------------------------|----------|
| `arp`        | `arp`        | `/proc/net/arp`, entries per device               | enabled  |
| `bonding`    | `bonding`    | `/sys/class/net/*/bonding`, slaves per master     | enabled  |
| `buddyinfo`  | `buddyinfo`  | `/proc/buddyinfo`, free blocks per zone and size  | disabled |
| `conntrack`  | `kernel`     | netfilter connection tracking counts              | enabled  |
| `cpu`        | `cpu`        | `/proc/stat` and thermal throttle counters        | enabled  |
| `diskstats`  | `diskstats`  | `/proc/diskstats`                                 | enabled  |
| `drbd`       | `drbd`       | `/proc/drbd`                                      | disabled |
| `edac`       | `edac`       | memory controller error counters                  | enabled  |
| `entropy`    | `kernel`     | available entropy bits                            | enabled  |
| `filefd`     | `kernel`     | `/proc/sys/fs/file-nr`                            | enabled  |
| `filesystem` | `filesystem` | mount points and `statvfs` sizes                  | enabled  |
| `hwmon`      | `hwmon`      | `/sys/class/hwmon` sensors                        | enabled  |
| `infiniband` | `infiniband` | InfiniBand port counters                          | enabled  |
| `interrupts` | `interrupts` | `/proc/interrupts`                                | disabled |

`available_collectors()` in `nodestat.node` returns the sorted names of all
registered collectors.

Whether a collector is enabled is kept in `nodestat.registry.REGISTRY`:

```python
from nodestat.registry import REGISTRY

REGISTRY.set_enabled("interrupts", True)
REGISTRY.is_enabled("interrupts")   # True
```

## Usage

```python
from nodestat.helper import Settings
from nodestat.node import new_node_collector

settings = Settings()                     # /proc, /sys and / by default
node = new_node_collector(settings)       # every enabled collector
for metric in node.collect():
    print(metric.name, metric.labels, metric.value)
```

To run only some collectors, pass their names:

```python
node = new_node_collector(settings, "cpu", "diskstats")
```

An unknown name, or the name of a disabled collector, raises `ValueError`.

The collectors of a `NodeCollector` run concurrently in threads. For every
collector, `collect()` also yields `node_scrape_collector_duration_seconds`
and `node_scrape_collector_success`. A collector that fails does not stop the
others; the failure is logged and its success metric is `0`.

A single collector can also be used on its own; `update()` yields its
metrics:

```python
from nodestat.cpu import CpuCollector

for metric in CpuCollector(settings).update():
    print(metric.name, metric.label_values, metric.value)
```

`DiskstatsCollector` takes an `ignored_devices` regular expression, and
`FilesystemCollector` takes `ignored_mount_points`, `ignored_fs_types` and a
`mount_timeout` in seconds after which a hanging mount point is marked stuck
and reported with `node_filesystem_device_error` set to `1`.

### Other roots

`Settings` sets where procfs, sysfs and the root filesystem are read from, for
example when the package runs in a container with the host mounted at `/host`:

```python
settings = Settings(proc_path="/host/proc", sys_path="/host/sys", rootfs_path="/host")
```

### Parsers

The parsers do not need a collector, and you can use them on saved copies of
kernel files:

```python
from nodestat.diskstats import parse_disk_stats
from nodestat.interrupts import parse_interrupts

with open("diskstats") as stream:
    stats = parse_disk_stats(stream)
print(stats["sda"][0])   # reads completed, as a string
```

Others are `parse_arp_entries` (`nodestat.arp`), `parse_buddyinfo`
(`nodestat.buddyinfo`), `parse_proc_stat` (`nodestat.cpu`),
`parse_filesystem_labels` (`nodestat.filesystem`), `parse_drbd`
(`nodestat.drbd`), `parse_file_fd_stats` (`nodestat.kernel`) and
`read_bonding_stats` (`nodestat.bonding`).

## What it does not do

`nodestat` only gathers metrics as Python objects. It has no command-line
program, no HTTP server, and does not render metrics in any text exposition
format; serving or exporting them is left to the code that uses it.