"""
Semantic version parsing and ordering.

Release tags conventionally carry a leading "v" (``v1.3.0``); installed
versions usually do not. Both are normalized here before validation against
the semver.org grammar.
"""

import functools
import re
from dataclasses import dataclass
from enum import Enum

from .errors import MalformedVersion

_NUMERIC = r"0|[1-9]\d*"
_PRERELEASE_ID = r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
_BUILD_ID = r"[0-9a-zA-Z-]+"

SEMVER_PATTERN = re.compile(
    rf"^(?P<major>{_NUMERIC})\.(?P<minor>{_NUMERIC})\.(?P<patch>{_NUMERIC})"
    rf"(?:-(?P<prerelease>{_PRERELEASE_ID}(?:\.{_PRERELEASE_ID})*))?"
    rf"(?:\+(?P<build>{_BUILD_ID}(?:\.{_BUILD_ID})*))?$",
    re.ASCII,
)


class Ordering(Enum):
    """Result of comparing two versions."""

    LESS = -1
    EQUAL = 0
    GREATER = 1


@functools.total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """A parsed MAJOR.MINOR.PATCH[-prerelease][+build] version."""

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return compare_versions(self, other) is Ordering.EQUAL

    def __lt__(self, other: "SemanticVersion") -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return compare_versions(self, other) is Ordering.LESS

    def __hash__(self) -> int:
        # Build metadata is excluded from precedence and hashing
        return hash((self.major, self.minor, self.patch, self.prerelease))


def strip_tag_prefix(raw: str) -> str:
    """Strip whitespace and one conventional leading "v" from a tag."""
    text = raw.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    return text


def parse_version(raw: str | None) -> SemanticVersion:
    """
    Parse a semantic version string.

    Args:
        raw: Version text, optionally prefixed with "v"

    Returns:
        SemanticVersion

    Raises:
        MalformedVersion: if the text is not a valid semantic version
    """
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedVersion(f"Empty version: {raw!r}")

    match = SEMVER_PATTERN.match(strip_tag_prefix(raw))
    if not match:
        raise MalformedVersion(f"Not a semantic version: {raw!r}")

    prerelease = match.group("prerelease")
    build = match.group("build")
    return SemanticVersion(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
        build=tuple(build.split(".")) if build else (),
    )


def _compare_identifier(a: str, b: str) -> int:
    a_numeric = a.isdigit()
    b_numeric = b.isdigit()
    if a_numeric and b_numeric:
        return (int(a) > int(b)) - (int(a) < int(b))
    # Numeric identifiers always have lower precedence than alphanumeric ones
    if a_numeric:
        return -1
    if b_numeric:
        return 1
    return (a > b) - (a < b)


def _compare_prerelease(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    if a == b:
        return 0
    # A release sorts above any prerelease of the same version
    if not a:
        return 1
    if not b:
        return -1
    for left, right in zip(a, b):
        result = _compare_identifier(left, right)
        if result:
            return result
    return (len(a) > len(b)) - (len(a) < len(b))


def compare_versions(a: SemanticVersion, b: SemanticVersion) -> Ordering:
    """Order two versions by semver precedence. Build metadata is ignored."""
    core_a = (a.major, a.minor, a.patch)
    core_b = (b.major, b.minor, b.patch)
    if core_a != core_b:
        return Ordering.LESS if core_a < core_b else Ordering.GREATER
    return Ordering(_compare_prerelease(a.prerelease, b.prerelease))


def is_newer(candidate: SemanticVersion, baseline: SemanticVersion) -> bool:
    """Return True if ``candidate`` is strictly newer than ``baseline``."""
    return compare_versions(candidate, baseline) is Ordering.GREATER
