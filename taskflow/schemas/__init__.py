"""Pydantic schemas for the Taskflow comment engine."""
