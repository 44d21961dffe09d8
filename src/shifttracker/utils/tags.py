"""Tag normalization helpers."""

from typing import Iterable, List, Tuple, Union


def parse_tags(raw: Union[str, Iterable[str]]) -> Tuple[str, ...]:
    """Normalize tags: split on commas, trim, lowercase, drop empties and duplicates.

    Args:
        raw: Comma separated string or an iterable of tag strings

    Returns:
        Normalized tags in first-seen order
    """
    if isinstance(raw, str):
        parts: Iterable[str] = raw.split(",")
    else:
        parts = (piece for item in raw for piece in str(item).split(","))

    seen: List[str] = []
    for part in parts:
        tag = part.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)


def unique_tags(groups: Iterable[Iterable[str]]) -> List[str]:
    """Sorted union of all tags."""
    found = set()
    for group in groups:
        found.update(group or ())
    return sorted(found)
