"""
Run an Apache Tika server as a child process and download its jar.

Example:
    from tikaserver import Server, background, download_server

    download_server(background(), "1.14", "tika-server-1.14.jar")
    with Server("tika-server-1.14.jar").start(background(), startup_timeout=60) as running:
        print(running.url)
"""

from importlib.metadata import PackageNotFoundError, version

from .checksum import ChecksumResult, ChecksumStatus, compute_and_compare, validate
from .client import Client
from .context import Context, background, with_cancel, with_deadline, with_timeout
from .download import download_server
from .exceptions import (
    ArtifactIOError,
    ChecksumMismatchError,
    ContextCanceledError,
    DeadlineExceededError,
    DownloadError,
    InvalidArgumentError,
    ReadinessError,
    ServerError,
    StartError,
    TikaError,
    UnsupportedVersionError,
)
from .probe import wait_until_ready
from .server import DEFAULT_PORT, RunningServer, Server, ServerState
from .versions import MD5S, Version, download_url, expected_md5, supported_versions

# Version is read from package metadata (pyproject.toml)
try:
    __version__ = version("tikaserver")
except PackageNotFoundError:
    # Package not installed, use fallback (development mode)
    __version__ = "0.1.0-dev"

__all__ = [
    "__version__",
    # Scopes
    "Context",
    "background",
    "with_cancel",
    "with_deadline",
    "with_timeout",
    # Server
    "Server",
    "RunningServer",
    "ServerState",
    "DEFAULT_PORT",
    "Client",
    "wait_until_ready",
    # Download
    "download_server",
    "Version",
    "MD5S",
    "expected_md5",
    "download_url",
    "supported_versions",
    "validate",
    "compute_and_compare",
    "ChecksumResult",
    "ChecksumStatus",
    # Exceptions
    "TikaError",
    "InvalidArgumentError",
    "UnsupportedVersionError",
    "ArtifactIOError",
    "DownloadError",
    "ChecksumMismatchError",
    "ServerError",
    "StartError",
    "ReadinessError",
    "ContextCanceledError",
    "DeadlineExceededError",
]
