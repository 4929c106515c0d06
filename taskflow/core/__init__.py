"""Core configuration, errors, events and clock for Taskflow."""
