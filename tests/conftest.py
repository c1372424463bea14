"""Shared fakes standing in for ClickHouse and its HTTP session."""

import io

import pytest
import requests

from warehouse.errors import DatabaseError


def tsv(*lines: str) -> bytes:
    return "".join(line + "\n" for line in lines).encode("utf-8")


def make_response(body: bytes, status: int = 200, reason: str = "OK", raw=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = "utf-8"
    response.raw = raw if raw is not None else io.BytesIO(body)
    return response


class BrokenRaw(io.BytesIO):
    """Serves ``body`` once, then fails the way a dropped chunked transfer does."""

    def __init__(self, body: bytes):
        super().__init__(body)
        self._served = False

    def read(self, size=-1):
        if not self._served:
            self._served = True
            return super().read()
        raise requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead")


class FakeSession:
    """Stands in for ``requests.Session``; ``handler(sql)`` returns a Response or raises."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self.auth = None
        self.closed = False

    def post(self, url, params=None, data=None, stream=False, timeout=None):
        sql = data.decode("utf-8")
        self.calls.append({"url": url, "params": params, "sql": sql, "stream": stream, "timeout": timeout})
        return self.handler(sql)

    def close(self):
        self.closed = True


class FakeStream:
    def __init__(self, lines, fail_after=None):
        self._lines = list(lines)
        self._fail_after = fail_after
        self.pulled = 0
        self.closed = False

    def lines(self):
        for line in self._lines:
            if self._fail_after is not None and self.pulled == self._fail_after:
                raise DatabaseError("Failed to read query result: connection reset")
            self.pulled += 1
            yield line

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeClient:
    """Stands in for ``ClickHouseClient`` at the service and HTTP layers."""

    def __init__(self, lines=(), error=None, fail_after=None):
        self.lines = list(lines)
        self.error = error
        self.fail_after = fail_after
        self.executed = []
        self.streams = []
        self.closed = False

    def execute(self, sql):
        self.executed.append(sql)
        if self.error is not None:
            raise DatabaseError(self.error)
        stream = FakeStream(self.lines, fail_after=self.fail_after)
        self.streams.append(stream)
        return stream

    def close(self):
        self.closed = True


@pytest.fixture
def fake_client():
    return FakeClient(lines=["id\tname", "1\tAlice", "2\tBob"])
