"""
Range reader for archives served over HTTP(S).
"""

import re
import threading

import requests

from .auth import HttpAuthentication
from .core import RangeReader

CONTENT_RANGE = re.compile(r"bytes\s+(\d+)-(\d+)/(\d+|\*)")


def parse_content_range(value: str) -> tuple[int, int, int | None]:
    """
    Parse a ``Content-Range`` header into (first byte, last byte, total size).
    The total is None when the server reports it as unknown.
    """
    match = CONTENT_RANGE.match(value.strip())

    if match is None:
        raise OSError(f"Unable to parse Content-Range header {value!r}")

    first, last, total = match.groups()

    return int(first), int(last), None if total == "*" else int(total)


class HttpRangeReader(RangeReader):
    """
    Reads byte ranges with ``Range`` requests. Servers that ignore the range
    and answer with the whole body (200) are tolerated; the requested slice
    is cut from the body.

    Each thread gets its own ``requests.Session``, unless a session is
    passed in, in which case it is shared and must be safe for the threads
    that use it.
    """

    url: str
    auth: HttpAuthentication | None
    timeout: float

    def __init__(
        self,
        url: str,
        auth: HttpAuthentication | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.auth = auth
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._size: int | None = None
        super().__init__(identity=url)

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session

        session = getattr(self._local, "session", None)

        if session is None:
            session = requests.Session()
            self._local.session = session

            with self._sessions_lock:
                self._sessions.append(session)

        return session

    def headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = dict(extra or {})

        if self.auth is not None:
            headers = self.auth.authenticate(headers)

        return headers

    def _discover_size(self) -> int:
        log = self.logger.bind(source=self.identity)

        response = self.session.head(
            self.url, headers=self.headers(), timeout=self.timeout, allow_redirects=True
        )

        if response.ok and response.headers.get("Content-Length"):
            size = int(response.headers["Content-Length"])
            log.debug("http.size", size=size, method="HEAD")
            return size

        # Some servers (and signed URLs) refuse HEAD; ask for the first byte.
        response = self.session.get(
            self.url,
            headers=self.headers({"Range": "bytes=0-0"}),
            timeout=self.timeout,
        )
        response.raise_for_status()

        if response.status_code == 206 and "Content-Range" in response.headers:
            _, _, total = parse_content_range(response.headers["Content-Range"])

            if total is not None:
                log.debug("http.size", size=total, method="GET")
                return total

        if response.status_code == 200:
            return len(response.content)

        raise OSError(f"Unable to determine the size of {self.url}")

    @property
    def size(self) -> int:
        if self._size is None:
            self._size = self._discover_size()

        return self._size

    def _read_range(self, offset: int, length: int) -> bytes:
        log = self.logger.bind(source=self.identity, offset=offset, length=length)

        response = self.session.get(
            self.url,
            headers=self.headers({"Range": f"bytes={offset}-{offset + length - 1}"}),
            timeout=self.timeout,
        )

        if response.status_code == 206:
            log.debug("http.read", status=206)
            return response.content

        if response.status_code == 200:
            log.warning("http.range_ignored", status=200, body=len(response.content))
            return response.content[offset : offset + length]

        log.error("http.read_failed", status=response.status_code)
        response.raise_for_status()

        raise OSError(
            f"Unexpected status {response.status_code} reading {self.url}"
        )

    def close(self):
        if self._shared_session is not None:
            self._shared_session.close()

        with self._sessions_lock:
            for session in self._sessions:
                session.close()

            self._sessions.clear()
