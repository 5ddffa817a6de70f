"""
Helpers for parsing and formatting user facing sizes
"""
import math

SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB']


def format_file_size(size_bytes):
    """Format a byte count as a human readable string, e.g. 1536 -> '1.5 KB'"""
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {SIZE_UNITS[index]}"


def parse_target_kb(text):
    """Parse a target size in KB typed by the user.

    Accepts an optional trailing "kb" unit. Returns a positive float or raises
    ValueError.
    """
    cleaned = text.strip().lower()
    if cleaned.endswith("kb"):
        cleaned = cleaned[:-2].strip()
    value = float(cleaned)
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"Target size must be a positive number: {text!r}")
    return value
