"""Host, process and container (cgroup) resource statistics."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

import psutil

from .paths import exists

__all__ = [
    "CURRENT_PID",
    "CGROUP_MEM_LIMIT_PATH",
    "CGROUP_PATH",
    "CPU_PERIOD_PATH",
    "CPU_QUOTA_PATH",
    "MemoryStat",
    "get_cpu_num",
    "get_memory_stat",
    "is_cgroup",
    "get_cgroup_memory_limit",
    "get_thread_num",
    "get_process_cpu_stat",
    "get_process_memory_percent",
    "get_process_memory_stat",
    "get_cgroup_process_memory_percent",
    "parse_uint",
    "read_uint",
    "read_lines",
    "is_container",
    "num_cpu",
]

CURRENT_PID = os.getpid()

CGROUP_MEM_LIMIT_PATH = "/sys/fs/cgroup/memory/memory.limit_in_bytes"
CGROUP_PATH = "/proc/self/cgroup"
CPU_PERIOD_PATH = "/sys/fs/cgroup/cpu/cpu.cfs_period_us"
CPU_QUOTA_PATH = "/sys/fs/cgroup/cpu/cpu.cfs_quota_us"

_DOCKER_MARK = "/docker"
_KUBEPODS_MARK = "/kubepods"


@dataclass(frozen=True)
class MemoryStat:
    """System-wide memory figures in bytes, plus the used percentage."""

    total: int
    used: int
    free: int
    used_percent: float


def _host_cpu_count() -> int:
    try:
        return len(os.sched_getaffinity(0))
    except AttributeError:
        return os.cpu_count() or 1


def get_cpu_num() -> int:
    """Return the number of CPUs available, honouring a container CPU quota."""
    if is_container():
        return num_cpu()
    return _host_cpu_count()


def get_memory_stat() -> MemoryStat:
    """Return the host's memory statistics, or all zeros if unavailable."""
    try:
        vm = psutil.virtual_memory()
    except (psutil.Error, OSError):
        return MemoryStat(0, 0, 0, 0.0)
    return MemoryStat(vm.total, vm.used, vm.free, vm.percent)


def is_cgroup() -> bool:
    """Return whether a cgroup memory limit file is present."""
    try:
        return exists(CGROUP_MEM_LIMIT_PATH)
    except OSError:
        return False


def get_cgroup_memory_limit() -> int:
    """Return the cgroup memory limit in bytes."""
    return read_uint(CGROUP_MEM_LIMIT_PATH)


def get_thread_num() -> int:
    """Return the number of threads of the current process."""
    return psutil.Process(CURRENT_PID).num_threads()


def get_process_cpu_stat() -> float:
    """Return this process's CPU usage, sampled over one second.

    The figure is divided by the CPU count so that full use of every core
    reads as 100.
    """
    percent = psutil.Process(CURRENT_PID).cpu_percent(interval=1.0)
    return percent / _host_cpu_count()


def get_process_memory_percent() -> float:
    """Return this process's resident memory as a percentage of host memory."""
    return psutil.Process(CURRENT_PID).memory_percent()


def get_process_memory_stat() -> int:
    """Return this process's resident set size in bytes."""
    return psutil.Process(CURRENT_PID).memory_info().rss


def get_cgroup_process_memory_percent() -> float:
    """Return this process's resident memory as a percentage of the cgroup limit."""
    rss = psutil.Process(os.getpid()).memory_info().rss
    limit = get_cgroup_memory_limit()
    if limit == 0:
        return math.inf if rss else math.nan
    return rss * 100 / limit


def _valid_digits(digits: str, base: int) -> bool:
    return bool(digits) and all(
        ch.isascii() and ch.isalnum() and int(ch, 36) < base for ch in digits
    )


def parse_uint(text: str, base: int = 10, bit_size: int = 64) -> int:
    """Parse an unsigned integer, clamping negative values to zero.

    Raises ``ValueError`` for malformed text and for values that do not fit
    in *bit_size* bits.
    """
    if not 2 <= base <= 36:
        raise ValueError(f"invalid base {base}")
    if not 1 <= bit_size <= 64:
        raise ValueError(f"invalid bit size {bit_size}")

    sign = text[:1] if text[:1] in ("+", "-") else ""
    digits = text[len(sign):]
    if not _valid_digits(digits, base):
        raise ValueError(f"parsing {text!r}: invalid syntax")
    magnitude = int(digits, base)

    if sign == "-":
        if magnitude == 0:
            raise ValueError(f"parsing {text!r}: invalid syntax")
        return 0
    if sign == "+":
        raise ValueError(f"parsing {text!r}: invalid syntax")
    if magnitude >= 1 << bit_size:
        raise ValueError(f"parsing {text!r}: value out of range")
    return magnitude


def read_uint(path: str | os.PathLike[str]) -> int:
    """Read a file holding one unsigned decimal integer."""
    with open(path, encoding="ascii", errors="replace") as handle:
        content = handle.read()
    return parse_uint(content.strip(), 10, 64)


def read_lines(path: str | os.PathLike[str]) -> list[str]:
    """Return the lines of a file without line endings; [] if it cannot be read."""
    try:
        with open(path, encoding="utf-8", errors="surrogateescape", newline="") as handle:
            return [line.removesuffix("\n").removesuffix("\r") for line in handle]
    except OSError:
        return []


def is_container() -> bool:
    """Return whether the process appears to run inside a container."""
    return any(
        _DOCKER_MARK in line or _KUBEPODS_MARK in line for line in read_lines(CGROUP_PATH)
    )


def num_cpu() -> int:
    """Return the CPU count implied by the cgroup CPU quota.

    Falls back to the host CPU count outside a container, when the quota
    files cannot be read, or when no quota is set.
    """
    host = _host_cpu_count()
    if not is_container():
        return host
    try:
        period = read_uint(CPU_PERIOD_PATH)
        quota = read_uint(CPU_QUOTA_PATH)
    except (OSError, ValueError):
        return host
    if quota <= 0 or period <= 0:
        return host
    return quota // period