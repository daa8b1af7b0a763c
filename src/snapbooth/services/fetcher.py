"""Validated fetching of stored artifacts over HTTP."""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urljoin

import requests

from ..config import config
from ..errors import FetchFailureReason, RemoteFetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of one fetch, used to decide archive inclusion."""

    url: str
    data: Optional[bytes] = None
    reason: Optional[FetchFailureReason] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, url: str, data: bytes) -> "FetchResult":
        return cls(url=url, data=data)

    @classmethod
    def failure(cls, url: str, reason: FetchFailureReason, detail: str = "") -> "FetchResult":
        return cls(url=url, reason=reason, detail=detail)


def is_rejected_content_type(content_type: str) -> bool:
    """True for text payloads, which storage backends use for error pages."""
    value = (content_type or "").strip().lower()
    return value.startswith("text/") or "html" in value


class ResilientFetcher:
    """HTTP GET with strict validation of what comes back.

    This client handles:
    - Rejecting non-2xx responses and text/HTML bodies
    - Following a bounded number of redirects
    - A connection timeout separate from a wall-clock deadline on the
      whole response, redirects included. A body still streaming when the
      deadline passes has its connection shut down.
    """

    CHUNK_SIZE = 64 * 1024
    REDIRECT_STATUSES = (301, 302, 303, 307, 308)

    def __init__(
        self,
        connect_timeout: Optional[float] = None,
        response_timeout: Optional[float] = None,
        max_redirects: Optional[int] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the fetcher.

        Args:
            connect_timeout: Seconds to establish each connection.
                Defaults to config.fetch_connect_timeout.
            response_timeout: Wall-clock seconds for the complete response.
                Defaults to config.fetch_response_timeout.
            max_redirects: Redirect hops followed before failing.
                Defaults to config.fetch_max_redirects.
            session: requests session to use. Created if not provided.
            clock: Monotonic clock, injectable for tests.
        """
        self._connect_timeout = connect_timeout if connect_timeout is not None else config.fetch_connect_timeout
        self._response_timeout = response_timeout if response_timeout is not None else config.fetch_response_timeout
        self._max_redirects = max_redirects if max_redirects is not None else config.fetch_max_redirects
        self._session = session or requests.Session()
        self._clock = clock

    @property
    def max_redirects(self) -> int:
        return self._max_redirects

    def fetch(self, url: str) -> bytes:
        """Fetch ``url`` and return the body.

        Raises:
            RemoteFetchError: With the reason the response was rejected.
        """
        deadline = self._clock() + self._response_timeout
        current = url
        redirects = 0

        while True:
            response = self._open(url, current, deadline)
            try:
                if response.status_code in self.REDIRECT_STATUSES and response.headers.get("location"):
                    if redirects >= self._max_redirects:
                        raise RemoteFetchError(
                            FetchFailureReason.REDIRECTS,
                            url,
                            f"more than {self._max_redirects} redirects",
                        )
                    redirects += 1
                    current = urljoin(current, response.headers["location"])
                    logger.debug(f"Redirect {redirects} for {url} -> {current}")
                    continue

                self._validate(url, response)
                return self._read_body(url, response, deadline)
            finally:
                response.close()

    def fetch_result(self, url: str) -> FetchResult:
        """Like fetch(), but report failures as a FetchResult."""
        try:
            return FetchResult.success(url, self.fetch(url))
        except RemoteFetchError as e:
            return FetchResult.failure(url, e.reason, e.detail)

    def _remaining(self, url: str, deadline: float) -> float:
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise RemoteFetchError(
                FetchFailureReason.TIMEOUT,
                url,
                f"response not complete within {self._response_timeout}s",
            )
        return remaining

    def _open(self, url: str, current: str, deadline: float) -> requests.Response:
        remaining = self._remaining(url, deadline)
        try:
            return self._session.get(
                current,
                stream=True,
                allow_redirects=False,
                timeout=(min(self._connect_timeout, remaining), remaining),
            )
        except requests.exceptions.ConnectTimeout as e:
            raise RemoteFetchError(
                FetchFailureReason.TIMEOUT, url, f"connect timeout after {self._connect_timeout}s"
            ) from e
        except requests.exceptions.Timeout as e:
            raise RemoteFetchError(FetchFailureReason.TIMEOUT, url, f"response timeout: {e}") from e
        except requests.exceptions.RequestException as e:
            raise RemoteFetchError(FetchFailureReason.CONNECTION, url, str(e)) from e

    def _validate(self, url: str, response: requests.Response) -> None:
        if not 200 <= response.status_code < 300:
            raise RemoteFetchError(
                FetchFailureReason.STATUS,
                url,
                f"HTTP {response.status_code}",
                status=response.status_code,
            )
        content_type = response.headers.get("content-type", "")
        if is_rejected_content_type(content_type):
            raise RemoteFetchError(
                FetchFailureReason.CONTENT_TYPE,
                url,
                f'unexpected content-type "{content_type}"',
                status=response.status_code,
            )

    def _read_body(self, url: str, response: requests.Response, deadline: float) -> bytes:
        """Read the body, tearing the connection down when the deadline passes.

        A socket read timeout restarts with every byte received, so a server
        that trickles data is stopped by a watchdog timer instead.
        """
        expired = threading.Event()
        watchdog = threading.Timer(
            self._remaining(url, deadline), self._abort, args=(url, response, expired)
        )
        watchdog.daemon = True
        watchdog.start()
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                chunks.append(chunk)
                self._remaining(url, deadline)
        except requests.exceptions.RequestException as e:
            if expired.is_set() or self._clock() >= deadline or "timed out" in str(e).lower():
                raise RemoteFetchError(FetchFailureReason.TIMEOUT, url, f"body read timeout: {e}") from e
            raise RemoteFetchError(FetchFailureReason.CONNECTION, url, str(e)) from e
        finally:
            watchdog.cancel()
        if expired.is_set():
            # The shutdown reads as end of body when there is no Content-Length.
            raise RemoteFetchError(
                FetchFailureReason.TIMEOUT,
                url,
                f"response not complete within {self._response_timeout}s",
            )
        return b"".join(chunks)

    @staticmethod
    def _abort(url: str, response: requests.Response, expired: threading.Event) -> None:
        expired.set()
        connection = getattr(response.raw, "connection", None)
        sock = getattr(connection, "sock", None)
        if sock is None:
            logger.warning(f"Deadline passed for {url}, closing response")
            response.close()
            return
        logger.warning(f"Deadline passed for {url}, shutting down connection")
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Socket for {url} already closed: {e}")
