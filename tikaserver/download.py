"""
Checksum-verified download of Tika server jars.

download_server() fetches the jar for a supported version into a local path.
It fails closed: a file that does not match the expected checksum after the
download is removed, so the destination never holds a jar with a wrong hash.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO

import httpx

from .checksum import CHUNK_SIZE, validate
from .client import new_http_client, request_timeout
from .context import Context
from .exceptions import ArtifactIOError, ChecksumMismatchError, DownloadError
from .versions import DEFAULT_REPOSITORY, Version, download_url, expected_md5

logger = logging.getLogger(__name__)

# Per-operation (connect/read/write) timeout; the total is bounded by ctx
DOWNLOAD_TIMEOUT = 60.0


def download_server(
    ctx: Context,
    version: Version | str,
    path: str | Path,
    *,
    client: httpx.Client | None = None,
    repository: str = DEFAULT_REPOSITORY,
    lg: Any = None,
) -> None:
    """
    Download and validate the given server version, saving it at path.

    If the file already exists and has the correct MD5, nothing is
    downloaded. It is the caller's responsibility to remove the file when it
    is no longer needed.

    Args:
        ctx: Scope bounding the transfer; cancelling it aborts the download
        version: Supported version (e.g. Version.V1_14 or "1.14")
        path: Destination file
        client: httpx client to use (a short-lived one is created if None)
        repository: Base URL of the artifact repository
        lg: Logger (defaults to the module logger)

    Raises:
        UnsupportedVersionError: Version not in the checksum table
        ArtifactIOError: Destination could not be written or removed
        DownloadError: Transport failure or non-success HTTP status
        ContextCanceledError: ctx was cancelled (DeadlineExceededError if
            its deadline passed)
        ChecksumMismatchError: Downloaded file has the wrong MD5 (the file
            has been removed)
    """
    lg = lg or logger
    want = expected_md5(version)
    path = Path(path)

    if validate(path, want).ok:
        lg.debug("server jar already valid", extra={"path": str(path), "md5": want})
        return

    try:
        out = open(path, "wb")
    except OSError as e:
        raise ArtifactIOError(f"error creating file: {e}", path=str(path)) from e

    url = download_url(version, repository)
    lg.info("downloading tika server", extra={"url": url, "path": str(path)})
    with out:
        written = _fetch(ctx, url, out, client)

    result = validate(path, want)
    if not result.ok:
        try:
            path.unlink()
        except OSError as e:
            raise ArtifactIOError(
                f"invalid md5: {result.actual}: error removing {path}: {e}",
                path=str(path),
                expected=want,
            ) from e
        raise ChecksumMismatchError(
            f"invalid md5: {result.actual}",
            actual=result.actual,
            expected=want,
            url=url,
        )

    lg.info(
        "tika server downloaded",
        extra={"path": str(path), "bytes": written, "md5": want},
    )


def _fetch(
    ctx: Context, url: str, out: BinaryIO, client: httpx.Client | None
) -> int:
    """Stream url into out, returning the number of bytes written."""
    err = ctx.err()
    if err is not None:
        raise err

    http = client if client is not None else new_http_client()
    try:
        with http.stream(
            "GET", url, timeout=request_timeout(ctx, DOWNLOAD_TIMEOUT)
        ) as resp:
            # Closing the response unblocks a read in progress
            handle = ctx.add_done_callback(resp.close)
            try:
                resp.raise_for_status()
                return _copy(ctx, resp, out)
            finally:
                ctx.remove_done_callback(handle)
    except httpx.HTTPStatusError as e:
        raise DownloadError(
            f"unable to download {url!r}: HTTP {e.response.status_code}",
            url=url,
            status=e.response.status_code,
        ) from e
    except (httpx.HTTPError, httpx.StreamError) as e:
        err = ctx.err()
        if err is not None:
            raise err from e
        raise DownloadError(f"unable to download {url!r}: {e}", url=url) from e
    finally:
        if client is None:
            http.close()


def _copy(ctx: Context, resp: httpx.Response, out: BinaryIO) -> int:
    written = 0
    for chunk in resp.iter_bytes(CHUNK_SIZE):
        err = ctx.err()
        if err is not None:
            raise err
        try:
            out.write(chunk)
        except OSError as e:
            raise ArtifactIOError(f"error saving download: {e}") from e
        written += len(chunk)
    return written
