"""Half-open time interval helpers."""

from datetime import datetime


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """
    Check whether two half-open intervals [start, end) intersect.

    Touching intervals (end_a == start_b) do not overlap.

    Args:
        start_a: Start of the first interval
        end_a: End of the first interval
        start_b: Start of the second interval
        end_b: End of the second interval

    Returns:
        True if the intervals share any instant
    """
    return start_a < end_b and end_a > start_b
