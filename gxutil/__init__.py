"""Utilities for services: background threads, pools, timer wheels, system stats and helpers."""

__version__ = "0.1.0"

__all__ = [
    "clock",
    "paths",
    "safego",
    "sorting",
    "strutil",
    "sysinfo",
    "taskpool",
    "timerwheel",
    "timeutil",
    "wheel",
    "workerpool",
]