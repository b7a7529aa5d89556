"""Shared errors, models, configuration and progress helpers."""
