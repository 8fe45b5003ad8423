"""Tests for semantic version parsing and ordering."""

import itertools

import pytest

from release_watch.errors import MalformedVersion
from release_watch.version import (
    Ordering,
    SemanticVersion,
    compare_versions,
    is_newer,
    parse_version,
    strip_tag_prefix,
)

# semver.org precedence example, lowest first
ORDERED = [
    "1.0.0-alpha",
    "1.0.0-alpha.1",
    "1.0.0-alpha.beta",
    "1.0.0-beta",
    "1.0.0-beta.2",
    "1.0.0-beta.11",
    "1.0.0-rc.1",
    "1.0.0",
    "1.0.1",
    "1.2.0",
    "1.10.0",
    "2.0.0",
]


class TestParseVersion:
    """Test version parsing."""

    def test_plain(self):
        """Should parse MAJOR.MINOR.PATCH."""
        version = parse_version("1.2.3")
        assert (version.major, version.minor, version.patch) == (1, 2, 3)
        assert version.prerelease == ()

    def test_strips_leading_v(self):
        """Should strip a leading v from release tags."""
        assert parse_version("v1.3.0") == parse_version("1.3.0")
        assert parse_version("V2.0.0").major == 2

    def test_prerelease_and_build(self):
        """Should split prerelease and build identifiers."""
        version = parse_version("1.0.0-rc.1+build.5")
        assert version.prerelease == ("rc", "1")
        assert version.build == ("build", "5")
        assert str(version) == "1.0.0-rc.1+build.5"

    @pytest.mark.parametrize(
        "raw",
        ["", "   ", None, "1.2", "1.2.3.4", "01.2.3", "1.2.3-", "1.2.3-01", "vv1.2.3", "latest"],
    )
    def test_malformed(self, raw):
        """Should reject text that is not a semantic version."""
        with pytest.raises(MalformedVersion):
            parse_version(raw)

    def test_malformed_is_value_error(self):
        """MalformedVersion should also be catchable as ValueError."""
        with pytest.raises(ValueError):
            parse_version("not-a-version")

    def test_strip_tag_prefix(self):
        """Should strip only one leading v."""
        assert strip_tag_prefix(" v1.0.0 ") == "1.0.0"
        assert strip_tag_prefix("1.0.0") == "1.0.0"


class TestCompareVersions:
    """Test semantic version precedence."""

    def test_ordered_list(self):
        """Every adjacent pair in the semver.org example should be LESS."""
        parsed = [parse_version(v) for v in ORDERED]
        for lower, higher in zip(parsed, parsed[1:]):
            assert compare_versions(lower, higher) is Ordering.LESS
            assert compare_versions(higher, lower) is Ordering.GREATER

    def test_antisymmetric_and_transitive(self):
        """Comparison should be antisymmetric and transitive across all pairs."""
        parsed = [parse_version(v) for v in ORDERED]
        for a, b in itertools.product(parsed, repeat=2):
            assert compare_versions(a, b).value == -compare_versions(b, a).value
        for a, b, c in itertools.combinations(parsed, 3):
            assert compare_versions(a, b) is Ordering.LESS
            assert compare_versions(b, c) is Ordering.LESS
            assert compare_versions(a, c) is Ordering.LESS

    def test_build_metadata_ignored(self):
        """Build metadata should not affect precedence."""
        assert compare_versions(parse_version("1.0.0+a"), parse_version("1.0.0+b")) is Ordering.EQUAL

    def test_round_trip_preserves_ordering(self):
        """Parsing the rendered form should order the same as the original."""
        for raw in ORDERED:
            original = parse_version(raw)
            reparsed = parse_version(str(original))
            assert compare_versions(original, reparsed) is Ordering.EQUAL

    def test_operators(self):
        """Rich comparison should follow precedence."""
        assert parse_version("1.2.0") < parse_version("1.3.0")
        assert parse_version("1.3.0") >= parse_version("v1.3.0")
        assert max(parse_version(v) for v in ORDERED) == SemanticVersion(2, 0, 0)

    def test_is_newer_is_strict(self):
        """Equal versions are not newer."""
        assert is_newer(parse_version("1.3.0"), parse_version("1.2.0"))
        assert not is_newer(parse_version("1.2.0"), parse_version("v1.2.0"))
        assert not is_newer(parse_version("1.2.0-rc.1"), parse_version("1.2.0"))
