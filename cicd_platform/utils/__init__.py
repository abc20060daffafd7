"""Utility functions for the CI/CD platform."""

from .helpers import generate_id, format_duration

__all__ = [
    "generate_id",
    "format_duration",
]
