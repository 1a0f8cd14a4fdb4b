"""Size-bounding helpers shared by the condenser and the summary."""

from __future__ import annotations

from typing import Optional

TRUNCATION_MARKER = "...[truncated]..."
DEFAULT_EXPRESSION_LIMIT = 200


def format_bytes(bytes_val: Optional[float]) -> str:
    """Convert a byte count to MB/GB/TB with two decimals (decimal units)."""
    if not bytes_val:
        return "0.00 MB"

    if bytes_val >= 1e12:
        return f"{bytes_val / 1e12:.2f} TB"
    elif bytes_val >= 1e9:
        return f"{bytes_val / 1e9:.2f} GB"
    return f"{bytes_val / 1e6:.2f} MB"


def truncate_expression(expr: Optional[str], max_length: int = DEFAULT_EXPRESSION_LIMIT) -> Optional[str]:
    """Bound an expression, keeping its head and tail around a marker.

    For the default limit of 200 this keeps 90 characters on each side.
    """
    if not expr or len(expr) <= max_length:
        return expr

    keep_chars = max((max_length - 20) // 2, 1)
    return f"{expr[:keep_chars]}{TRUNCATION_MARKER}{expr[-keep_chars:]}"
