"""
Lenient dotted version comparison for release tags.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import re

_LEADING_DIGITS = re.compile(r"\d+")


def normalize_tag(tag: str) -> str:
    """Strip surrounding whitespace and a single leading ``v``/``V``."""
    tag = tag.strip()
    if tag[:1] in ("v", "V"):
        return tag[1:]
    return tag


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse ``major.minor.patch`` into an integer triple.

    Missing components default to 0. A component that does not start with
    digits also counts as 0; trailing text after the digits is ignored
    (``"3-rc1"`` parses as 3). Never raises.
    """
    parts = [0, 0, 0]
    for idx, raw in enumerate(version.strip().split(".")[:3]):
        match = _LEADING_DIGITS.match(raw.strip())
        if match:
            parts[idx] = int(match.group())
    return parts[0], parts[1], parts[2]


def is_newer(current: str, latest: str) -> bool:
    """Return True if *latest* is strictly newer than *current*."""
    return parse_version(latest) > parse_version(current)
