import asyncio
import io
import os
from pathlib import Path
from typing import Callable

import pytest

from dirserve.config import ServerConfig
from dirserve.http.model import HTTPRequest, HTTPResponse
from dirserve.http.parser import HTTPParser
from dirserve.model import Application
from dirserve.server import application

# All the files of the sample tree share the same modification time, so
# that validators are predictable.
MTIME: int = 1_600_000_000


def makeRequest(
    method: str = "GET", path: str = "/", headers: dict[str, str] | None = None
) -> HTTPRequest:
    """Builds a request the way the server does, by feeding its raw bytes to
    the parser."""
    lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
    lines += [f"{k}: {v}" for k, v in (headers or {}).items()]
    payload = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
    for atom in HTTPParser().feed(payload):
        if isinstance(atom, HTTPRequest):
            return atom
    raise AssertionError(f"Parser did not produce a request for: {payload!r}")


def process(app: Application, request: HTTPRequest) -> HTTPResponse:
    r = app.process(request)
    return r if isinstance(r, HTTPResponse) else asyncio.run(r)


class Client:
    def __init__(self, app: Application):
        self.app = app

    def request(
        self, method: str, path: str, headers: dict[str, str] | None = None
    ) -> HTTPResponse:
        return process(self.app, makeRequest(method, path, headers))

    def get(self, path: str, headers: dict[str, str] | None = None) -> HTTPResponse:
        return self.request("GET", path, headers)

    def head(self, path: str, headers: dict[str, str] | None = None) -> HTTPResponse:
        return self.request("HEAD", path, headers)


def write(path: Path, content: str | bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        path.write_text(content, encoding="utf-8")
    else:
        path.write_bytes(content)
    os.utime(path, (MTIME, MTIME))
    return path


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """A sample tree, kept in a subdirectory so that there is something
    outside of it to escape to."""
    base = tmp_path / "root"
    write(base / "hello.txt", "Hello, world!\n")
    write(base / "zeta.bin", bytes(range(256)))
    write(base / ".hidden", "secret")
    write(base / "b_dir" / "nested.txt", "nested\n")
    write(base / "a_dir" / "page.html", "<html><body>Page</body></html>")
    write(tmp_path / "secret.txt", "do not serve\n")
    return base


@pytest.fixture
def log() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def makeConfig(root: Path, log: io.StringIO) -> Callable[..., ServerConfig]:
    def factory(**options) -> ServerConfig:
        options.setdefault("cacheBuster", "c4c4e")
        return ServerConfig.Make(root, logOutput=log, **options)

    return factory


@pytest.fixture
def makeClient(makeConfig: Callable[..., ServerConfig]) -> Callable[..., Client]:
    def factory(**options) -> Client:
        return Client(application(makeConfig(**options)))

    return factory


@pytest.fixture
def client(makeClient: Callable[..., Client]) -> Client:
    return makeClient()


# EOF
