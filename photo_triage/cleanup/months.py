"""Synthetic month collections."""

from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List

from ..core.types import PhotoRecord


def month_key(captured_at: datetime) -> str:
    """Collection id of the month a photo was taken in, e.g. "2024-06"."""
    return captured_at.strftime("%Y-%m")


def group_by_month(photos: Iterable[PhotoRecord]) -> Dict[str, List[PhotoRecord]]:
    """
    Split photos into month collections.

    Args:
        photos: Photos from any number of albums

    Returns:
        Ordered mapping of month key to photos, newest month first, photos
        inside a month in capture order
    """
    months: Dict[str, List[PhotoRecord]] = {}
    for photo in photos:
        months.setdefault(month_key(photo.captured_at), []).append(photo)

    ordered: Dict[str, List[PhotoRecord]] = OrderedDict()
    for key in sorted(months, reverse=True):
        ordered[key] = sorted(months[key], key=lambda p: (p.captured_at, p.id))
    return ordered
