# health.py
# Page-health classification: Ok / NotFound / Unknown from the HTTP status,
# the page title and the rendered body text.

import re
from enum import Enum
from typing import Iterable, Optional, Pattern

from device_rotate.config import DEFAULT_NOT_FOUND_MARKERS

NOT_FOUND_STATUSES = frozenset({404, 410})


class PageHealth(str, Enum):
    UNKNOWN = "unknown"
    OK = "ok"
    NOT_FOUND = "not_found"


def compile_markers(markers: Iterable[str]) -> Optional[Pattern[str]]:
    """
    Build one case-insensitive pattern from literal markers.

    Markers that start/end with a word character are word-bounded, so "404"
    matches "Error 404" but not "14045".
    """
    parts = []
    for m in markers:
        m = (m or "").strip()
        if not m:
            continue
        p = re.escape(m)
        if re.match(r"\w", m):
            p = r"\b" + p
        if re.search(r"\w$", m):
            p = p + r"\b"
        parts.append(p)
    if not parts:
        return None
    return re.compile("|".join(parts), re.IGNORECASE)


def find_not_found_marker(text: Optional[str], markers: Iterable[str] = DEFAULT_NOT_FOUND_MARKERS) -> Optional[str]:
    """Return the first marker found in ``text``, or None."""
    if not text:
        return None
    pattern = compile_markers(markers)
    if pattern is None:
        return None
    hit = pattern.search(text)
    return hit.group(0) if hit else None


def classify_health(
    status: Optional[int],
    title: Optional[str],
    body_text: Optional[str],
    markers: Iterable[str] = DEFAULT_NOT_FOUND_MARKERS,
) -> PageHealth:
    """
    NOT_FOUND when the status is 404/410 or a marker appears in the title or
    body; OK otherwise. Callers report UNKNOWN themselves when the page could
    not be inspected at all.
    """
    if status in NOT_FOUND_STATUSES:
        return PageHealth.NOT_FOUND
    markers = tuple(markers)
    if find_not_found_marker(title, markers) or find_not_found_marker(body_text, markers):
        return PageHealth.NOT_FOUND
    return PageHealth.OK
