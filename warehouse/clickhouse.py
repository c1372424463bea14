"""Thin client for ClickHouse's HTTP interface."""

import logging
import re
from collections.abc import Iterator

import requests
from requests.adapters import HTTPAdapter

from warehouse.errors import DatabaseError

LOG = logging.getLogger(__name__)

OUTPUT_FORMAT = "TabSeparatedWithNames"
CHUNK_SIZE = 64 * 1024
# Matches the worker thread count of Starlette's default thread pool.
POOL_MAXSIZE = 40

EXCEPTION_CODE_HEADER = "X-ClickHouse-Exception-Code"
# Newer servers announce a failure after a 200 with this marker line.
EXCEPTION_MARKER = "__exception__"
EXCEPTION_LINE_RE = re.compile(r"^Code: \d+\. DB::Exception:")


class QueryStream:
    """Streamed result of one query. Use as a context manager so the response is always closed."""

    def __init__(self, response: requests.Response):
        self._response = response

    def lines(self) -> Iterator[str]:
        """
        Yield result lines, raising ``DatabaseError`` if ClickHouse gave up mid-result.

        Once a 200 has been sent, ClickHouse reports a failure by writing the
        exception text as the last line of the body. Lines are held back by
        one so that line is never handed out as data.
        """
        # TabSeparated escapes \r and \n inside values, so splitting on
        # line breaks never cuts a cell in half.
        pending = None
        try:
            raw_lines = self._response.iter_lines(chunk_size=CHUNK_SIZE)
            for raw in raw_lines:
                line = raw.decode("utf-8", errors="replace")
                if line == EXCEPTION_MARKER:
                    rest = [r.decode("utf-8", errors="replace") for r in raw_lines]
                    raise DatabaseError(_exception_message(rest))
                if pending is not None:
                    yield pending
                pending = line
        except requests.RequestException as e:
            raise DatabaseError(f"Failed to read query result: {e}") from e

        if pending is not None:
            if EXCEPTION_LINE_RE.match(pending):
                raise DatabaseError(pending)
            yield pending

    def close(self) -> None:
        # Closing without draining drops the connection, which makes
        # ClickHouse stop producing the rest of the result.
        self._response.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def _exception_message(lines: list[str]) -> str:
    for line in lines:
        if EXCEPTION_LINE_RE.match(line):
            return line
    return "\n".join(line for line in lines if line) or "query failed while streaming results"


class ClickHouseClient:
    """
    Shared handle to one ClickHouse server.

    The underlying ``requests.Session`` is created once and reused by every
    request handler thread; nothing on it is changed after construction.
    """

    def __init__(
        self,
        url: str,
        user: str,
        password: str,
        *,
        timeout: float | None = None,
        max_execution_time: int | None = None,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.max_execution_time = max_execution_time
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_maxsize=POOL_MAXSIZE)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session
        self.session.auth = (user, password)

    def _params(self) -> dict[str, str]:
        params = {"default_format": OUTPUT_FORMAT}
        if self.max_execution_time:
            params["max_execution_time"] = str(self.max_execution_time)
        return params

    def execute(self, sql: str) -> QueryStream:
        LOG.info("Executing query: %s", sql)
        try:
            response = self.session.post(
                self.url,
                params=self._params(),
                data=sql.encode("utf-8"),
                stream=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DatabaseError(f"Failed to reach ClickHouse at {self.url}: {e}") from e

        if not response.ok or EXCEPTION_CODE_HEADER in response.headers:
            try:
                message = response.text.strip() or f"{response.status_code} {response.reason}"
            except requests.RequestException as e:
                message = f"{response.status_code} {response.reason}: {e}"
            finally:
                response.close()
            raise DatabaseError(message)

        return QueryStream(response)

    def close(self) -> None:
        self.session.close()
