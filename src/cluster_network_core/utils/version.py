"""Release version comparison.

Release strings are free-form in practice ("4.14", "v4.14.0",
"4.14.0-0.nightly-2024-01-01-000000"), so parsing is lenient: missing
minor/patch components default to zero and an optional leading "v" is
accepted. Anything else is classified as UNKNOWN rather than raised.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


VERSION_PATTERN = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"(?:\.(?P<minor>\d+))?"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


class VersionChange(str, Enum):
    """Direction of a version transition."""
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    SAME = "same"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReleaseVersion:
    """Parsed release version. Build metadata is ignored for ordering."""
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()

    def _sort_key(self) -> tuple:
        # A release sorts after any of its prereleases.
        if not self.prerelease:
            return (self.major, self.minor, self.patch, 1, ())
        identifiers = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in self.prerelease
        )
        return (self.major, self.minor, self.patch, 0, identifiers)

    def __lt__(self, other: "ReleaseVersion") -> bool:
        return self._sort_key() < other._sort_key()

    def __gt__(self, other: "ReleaseVersion") -> bool:
        return self._sort_key() > other._sort_key()


def parse_version(version: str) -> Optional[ReleaseVersion]:
    """Parse a lenient semantic version, returning None if it is malformed."""
    if not version:
        return None
    match = VERSION_PATTERN.match(version.strip())
    if not match:
        return None
    prerelease = match.group("prerelease")
    return ReleaseVersion(
        major=int(match.group("major")),
        minor=int(match.group("minor") or 0),
        patch=int(match.group("patch") or 0),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
    )


def compare_versions(from_version: str, to_version: str) -> VersionChange:
    """
    Classify the transition from one release to another.

    Args:
        from_version: Currently running version (may be empty)
        to_version: Target version

    Returns:
        UPGRADE if from < to, DOWNGRADE if from > to, SAME if equal,
        UNKNOWN if either side cannot be parsed
    """
    if from_version == to_version:
        return VersionChange.SAME

    v1 = parse_version(from_version)
    v2 = parse_version(to_version)
    if v1 is None or v2 is None:
        return VersionChange.UNKNOWN

    if v1 < v2:
        return VersionChange.UPGRADE
    if v1 > v2:
        return VersionChange.DOWNGRADE
    return VersionChange.SAME

