"""Taskflow comment collaboration engine."""

__version__ = "1.0.0"
