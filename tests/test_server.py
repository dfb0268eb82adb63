import asyncio
from typing import Literal

import pytest

from conftest import makeRequest

from dirserve.decorators import on
from dirserve.http.model import HTTPBodyWriter, HTTPRequest
from dirserve.http.parser import HTTPParser
from dirserve.model import Application, Service
from dirserve.server import SERVER_ERROR, AIOSocketServer, application, keepsAlive


class BufferWriter(HTTPBodyWriter):
    """Collects what would be sent to the client."""

    def __init__(self) -> None:
        super().__init__()
        self.data = bytearray()

    async def _writeBytes(
        self, chunk: bytes | None | Literal[False], more: bool = False
    ) -> bool:
        if chunk:
            self.data += chunk
            self.written += len(chunk)
        return False


def send(app: Application, request: HTTPRequest, log, **options) -> BufferWriter:
    writer = BufferWriter()
    asyncio.run(
        AIOSocketServer.SendResponse(request, app, writer, output=log, **options)
    )
    return writer


def test_response_is_written(makeConfig, log):
    writer = send(application(makeConfig()), makeRequest("GET", "/hello.txt"), log)
    head, _, body = bytes(writer.data).partition(b"\r\n\r\n")
    assert head.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Length: 14" in head
    assert body == b"Hello, world!\n"
    assert writer.written == len(writer.data)


def test_head_response_has_no_body(makeConfig, log):
    app = application(makeConfig())
    for path in ("/hello.txt", "/", "/healthz"):
        writer = send(app, makeRequest("HEAD", path), log)
        head, _, body = bytes(writer.data).partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 200 OK\r\n"), path
        assert b"Content-Length: " in head
        assert body == b"", path


def test_redirect_keeps_its_status(makeConfig, log):
    writer = send(application(makeConfig()), makeRequest("GET", "/a_dir"), log)
    assert bytes(writer.data).startswith(b"HTTP/1.1 301 Moved Permanently\r\n")
    assert b"Location: /a_dir/\r\n" in writer.data


def test_access_log(makeConfig, log):
    send(application(makeConfig()), makeRequest("GET", "/hello.txt"), log)
    line = log.getvalue()
    assert "GET" in line
    assert "/hello.txt" in line
    assert "HTTP/1.1" in line
    assert "200" in line


def test_access_log_can_be_disabled(makeConfig, log):
    app = application(makeConfig())
    send(app, makeRequest("GET", "/hello.txt"), log, logRequests=False)
    assert log.getvalue() == ""


class Broken(Service):
    @on(GET="/broken")
    def broken(self, request):
        raise RuntimeError("boom")


def test_unexpected_error_is_a_server_error(log):
    writer = send(Application([Broken()]), makeRequest("GET", "/broken"), log)
    assert bytes(writer.data) == SERVER_ERROR
    assert writer.shouldClose
    assert "boom" in log.getvalue()


def test_server_error_length_matches_its_body():
    head, _, body = SERVER_ERROR.partition(b"\r\n\r\n")
    assert f"Content-Length: {len(body)}\r\n".encode() in head + b"\r\n"


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, True),
        ("keep-alive", True),
        ("close", False),
        ("Close", False),
        ("CLOSE", False),
    ],
)
def test_connection_header_is_case_insensitive(value, expected):
    headers = {"Connection": value} if value is not None else {}
    assert keepsAlive(makeRequest("GET", "/", headers)) is expected


def test_http_1_0_closes_the_connection():
    (req,) = [
        _
        for _ in HTTPParser().feed(b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n")
        if isinstance(_, HTTPRequest)
    ]
    assert not keepsAlive(req)


# EOF
