"""Demonstration HTTP service exercised by the pipeline."""

from .app import app, create_app, serve
from .calculator import calculate, calculate_payload

__all__ = ["app", "create_app", "serve", "calculate", "calculate_payload"]
