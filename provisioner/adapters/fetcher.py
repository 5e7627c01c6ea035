"""
Artifact fetcher — download a remote artifact into the working area.

Content-agnostic: package bundles and configuration documents are
streamed byte-for-byte. The file is written to a temporary sibling and
moved into place, so ``destination`` is either the complete artifact
or untouched. No retries here; re-running the pipeline is the recovery
path.
"""

from __future__ import annotations

import http.client
import logging
import os
import socket
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

from provisioner import __version__
from provisioner.core.errors import FetchError, FetchErrorKind

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 256
_USER_AGENT = f"provisioner/{__version__}"

# IncompleteRead and RemoteDisconnected are HTTPException subclasses.
_TRANSPORT_ERRORS = (
    urllib.error.URLError,
    http.client.HTTPException,
    socket.timeout,
    ConnectionError,
)


def _content_length(response) -> int | None:
    """Declared body size, or None when the server did not send one."""
    headers = getattr(response, "headers", None)
    value = headers.get("Content-Length") if headers is not None else None
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class ArtifactFetcher:
    """Fetch URIs (https, http, file) to local paths.

    Args:
        timeout: Socket timeout in seconds for each network operation.
            ``None`` waits indefinitely.
    """

    def __init__(self, timeout: float | None = None, chunk_size: int = _CHUNK_SIZE):
        self._timeout = timeout
        self._chunk_size = chunk_size

    def fetch(self, locator: str, destination: Path | str) -> None:
        """Write the content at ``locator`` to ``destination``.

        Overwrites an existing file. The destination's parent directory
        must already exist.

        Raises:
            FetchError: NETWORK_UNREACHABLE, HTTP_ERROR or WRITE_ERROR.
        """
        dest = Path(destination)
        if not dest.parent.is_dir():
            raise FetchError(
                FetchErrorKind.WRITE_ERROR,
                f"Destination directory does not exist: {dest.parent}",
                locator=locator,
            )

        logger.info("Fetching %s -> %s", locator, dest)
        request = urllib.request.Request(locator, headers={"User-Agent": _USER_AGENT})

        try:
            response = urllib.request.urlopen(request, timeout=self._timeout)
        except urllib.error.HTTPError as e:
            raise FetchError(
                FetchErrorKind.HTTP_ERROR,
                f"HTTP {e.code} for {locator}",
                locator=locator,
                status=e.code,
            ) from e
        except _TRANSPORT_ERRORS as e:
            reason = getattr(e, "reason", e)
            raise FetchError(
                FetchErrorKind.NETWORK_UNREACHABLE,
                f"Cannot reach {locator}: {reason}",
                locator=locator,
            ) from e
        except ValueError as e:
            # urllib rejects malformed URLs with ValueError
            raise FetchError(
                FetchErrorKind.NETWORK_UNREACHABLE,
                f"Invalid locator {locator!r}: {e}",
                locator=locator,
            ) from e

        with response:
            size = self._write(response, dest, locator)

        logger.info("Fetched %s (%d bytes)", dest.name, size)

    def _write(self, response, dest: Path, locator: str) -> int:
        """Stream the response body into ``dest`` atomically."""
        try:
            fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".part")
        except OSError as e:
            raise FetchError(
                FetchErrorKind.WRITE_ERROR,
                f"Cannot create file in {dest.parent}: {e}",
                locator=locator,
            ) from e

        tmp = Path(tmp_name)
        size = 0
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    try:
                        chunk = response.read(self._chunk_size)
                    except _TRANSPORT_ERRORS as e:
                        raise FetchError(
                            FetchErrorKind.NETWORK_UNREACHABLE,
                            f"Transfer interrupted for {locator}: {e}",
                            locator=locator,
                        ) from e
                    if not chunk:
                        break
                    out.write(chunk)
                    size += len(chunk)

            # http.client returns b"" on a short body instead of raising
            expected = _content_length(response)
            if expected is not None and size != expected:
                raise FetchError(
                    FetchErrorKind.NETWORK_UNREACHABLE,
                    f"Transfer truncated for {locator}: got {size} of {expected} bytes",
                    locator=locator,
                )
            os.replace(tmp, dest)
        except FetchError:
            tmp.unlink(missing_ok=True)
            raise
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise FetchError(
                FetchErrorKind.WRITE_ERROR,
                f"Cannot write {dest}: {e}",
                locator=locator,
            ) from e

        return size
