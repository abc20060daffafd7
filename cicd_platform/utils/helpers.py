"""Helper utilities."""

import uuid


def generate_id(prefix: str = "", length: int = 8) -> str:
    """
    Generate a unique identifier.

    Args:
        prefix: Optional prefix for the ID
        length: Length of the random portion

    Returns:
        Unique identifier string
    """
    random_part = uuid.uuid4().hex[:length]

    if prefix:
        return f"{prefix}-{random_part}"
    return random_part


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"
