"""
Formatting helpers for status text.
"""

_PERCENTAGE_CACHE = tuple(f"{i}%" for i in range(101))


def _percent_index(value: float) -> int:
    if value != value:
        return 0
    return max(0, min(100, int(value * 100)))


def format_percentage(value: float) -> str:
    """Format a [0, 1] value as an integer percentage, truncating."""
    return _PERCENTAGE_CACHE[_percent_index(value)]


def is_significant_change(old_value: float, new_value: float, threshold: float = 0.05) -> bool:
    """True if the values differ by more than the threshold."""
    return abs(old_value - new_value) > threshold
