"""
Supported Tika server versions.

Each supported version maps to exactly one expected MD5 of its server jar.
The table is fixed at import time and read-only; lookups for anything not in
it raise UnsupportedVersionError.
"""

from enum import Enum
from types import MappingProxyType

from .exceptions import UnsupportedVersionError

DEFAULT_REPOSITORY = "https://repo1.maven.org/maven2/org/apache/tika"


class Version(str, Enum):
    """A Tika server version."""

    V1_14 = "1.14"
    V1_15 = "1.15"
    V1_16 = "1.16"

    def __str__(self) -> str:
        return self.value


MD5S = MappingProxyType(
    {
        Version.V1_14: "39055fc71358d774b9da066f80b1141c",
        Version.V1_15: "80bd3f00f05326d5190466de27d593dd",
        Version.V1_16: "6a549ce6ef6e186e019766059fd82fb2",
    }
)


def parse_version(tag: Version | str) -> Version:
    """
    Convert a version tag to a Version.

    Args:
        tag: Version member or its string form (e.g. "1.14")

    Raises:
        UnsupportedVersionError: If the tag is not a supported version
    """
    try:
        return Version(tag)
    except ValueError:
        raise UnsupportedVersionError(
            f"unsupported Tika version: {tag}",
            supported=", ".join(v.value for v in supported_versions()),
        ) from None


def expected_md5(tag: Version | str) -> str:
    """
    Look up the expected jar MD5 for a version.

    Raises:
        UnsupportedVersionError: If the version has no checksum entry
    """
    version = parse_version(tag)
    try:
        return MD5S[version]
    except KeyError:
        raise UnsupportedVersionError(
            f"no checksum known for Tika version: {version}"
        ) from None


def download_url(tag: Version | str, repository: str = DEFAULT_REPOSITORY) -> str:
    """Build the canonical download URL of a version's server jar."""
    version = parse_version(tag)
    return (
        f"{repository.rstrip('/')}/tika-server/{version}/tika-server-{version}.jar"
    )


def supported_versions() -> tuple[Version, ...]:
    """Get all supported versions, oldest first."""
    return tuple(sorted(MD5S, key=lambda v: tuple(int(p) for p in v.value.split("."))))
