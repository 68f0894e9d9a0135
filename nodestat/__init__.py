"""Collectors for Linux system metrics read from procfs and sysfs."""

__version__ = "0.1.0"