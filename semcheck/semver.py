"""Semantic-version bumps and version-delta classification."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

Bump = Literal["not_changed", "patch", "minor", "major"]
RequiredBump = Literal["patch", "minor", "major"]

BUMP_ORDER: dict[str, int] = {
    "not_changed": 0,
    "patch": 1,
    "minor": 2,
    "major": 3,
}
REQUIRED_BUMPS = ("major", "minor", "patch")

_VERSION_RE = re.compile(
    r"^\s*v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?\s*$"
)


@dataclass(frozen=True, slots=True)
class Version:
    major: int
    minor: int
    patch: int
    pre: str = ""

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        return f"{text}-{self.pre}" if self.pre else text


def parse_version(text: str) -> Version:
    """Parse ``MAJOR.MINOR.PATCH[-PRE][+BUILD]``; build metadata is discarded."""
    match = _VERSION_RE.match(text)
    if match is None:
        raise ValueError(f"Invalid semantic version: {text!r}")
    return Version(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        pre=match.group("pre") or "",
    )


def classify_version_change(baseline: str | None, current: str | None) -> Bump:
    """Classify the bump actually present between two version strings.

    Versions below 1.0.0 shift every component one place to the left: for
    ``0.y.z`` a change of ``y`` is major and a change of ``z`` is minor, and
    for ``0.0.z`` any change is major. A pre-release difference only matters
    when major, minor and patch are all equal, and then it is major.
    """
    if baseline is None or current is None:
        logger.warning("version numbers unavailable; treating release as not_changed")
        return "not_changed"
    try:
        old = parse_version(baseline)
        new = parse_version(current)
    except ValueError as exc:
        logger.warning("%s; treating release as not_changed", exc)
        return "not_changed"

    if old == new:
        return "not_changed"
    if old.major != new.major:
        return "major"
    if old.minor != new.minor:
        return "major" if new.major == 0 else "minor"
    if old.patch != new.patch:
        if new.major == 0:
            return "major" if new.minor == 0 else "minor"
        return "patch"
    # Same numbers, different pre-release tag.
    return "major"


def max_bump(bumps: list[str]) -> str | None:
    """Largest bump by precedence, or ``None`` for an empty list."""
    if not bumps:
        return None
    return max(bumps, key=lambda bump: BUMP_ORDER[bump])


def satisfies(detected: str, required: str | None) -> bool:
    if required is None:
        return True
    return BUMP_ORDER[detected] >= BUMP_ORDER[required]
