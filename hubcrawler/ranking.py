"""
Tag ordering for the overview
"""

from typing import Iterable, List

from .base import ResolvedTag
from .provenance import parse_commit_date

DEFAULT_TAG_LIMIT = 4


def rank_tags(tags: Iterable[ResolvedTag], limit: int = DEFAULT_TAG_LIMIT) -> List[ResolvedTag]:
    """
    Order tags for display

    Pinned tags come first in their original order. The remaining tags are
    sorted newest first by commit date and capped at ``limit``; tags with the
    same date keep their discovery order.

    Args:
        tags: Tags in discovery order
        limit: Maximum number of non-pinned tags to keep (default: 4)

    Returns:
        Ranked list of tags
    """
    pinned = []
    other = []
    for tag in tags:
        if tag.is_pinned:
            pinned.append(tag)
        else:
            other.append(tag)

    # sorted() is stable, so equal dates keep discovery order
    other = sorted(
        other,
        key=lambda t: parse_commit_date(t.provenance.commit_date),
        reverse=True,
    )

    return pinned + other[:max(limit, 0)]
