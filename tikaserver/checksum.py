"""
File checksum validation.

Computes the MD5 digest of a file by streaming it in chunks and compares it
with an expected hex digest. Unreadable files are a soft failure: they are
reported as UNREADABLE rather than raised, since callers treat "could not
verify" and "verified wrong" the same way (the file has to be fetched again).
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

CHUNK_SIZE = 64 * 1024


class ChecksumStatus(str, Enum):
    """Outcome of validating a file against an expected digest."""

    MATCH = "match"
    MISMATCH = "mismatch"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class ChecksumResult:
    """
    Result of validate().

    Attributes:
        status: MATCH, MISMATCH or UNREADABLE
        actual: Hex digest of the file ("" if it could not be read)
        expected: Hex digest the file was compared against
    """

    status: ChecksumStatus
    actual: str
    expected: str

    @property
    def ok(self) -> bool:
        """True if the file was read and its digest matches."""
        return self.status is ChecksumStatus.MATCH


def file_md5(path: str | Path) -> str:
    """
    Compute the MD5 hex digest of a file.

    Raises:
        OSError: If the file cannot be opened or read
    """
    h = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def validate(path: str | Path, expected: str) -> ChecksumResult:
    """
    Validate a file against an expected MD5 hex digest.

    Args:
        path: File to hash
        expected: Expected lowercase hex digest

    Returns:
        ChecksumResult; never raises for I/O errors
    """
    try:
        actual = file_md5(path)
    except OSError:
        return ChecksumResult(ChecksumStatus.UNREADABLE, "", expected)

    status = ChecksumStatus.MATCH if actual == expected else ChecksumStatus.MISMATCH
    return ChecksumResult(status, actual, expected)


def compute_and_compare(path: str | Path, expected: str) -> tuple[bool, str]:
    """
    Check a file's MD5 against an expected digest.

    Returns:
        (matches, actual_digest); (False, "") if the file cannot be read
    """
    result = validate(path, expected)
    return result.ok, result.actual
