import pytest

from dirserve.http.model import (
    HTTPHeaders,
    HTTPProcessingStatus,
    HTTPRequest,
    HTTPRequestLine,
    headername,
)
from dirserve.http.parser import HTTPParser, parseQuery
from dirserve.utils.io import LineParser


def requests(parser: HTTPParser, *chunks: bytes) -> list[HTTPRequest]:
    return [
        atom
        for chunk in chunks
        for atom in parser.feed(chunk)
        if isinstance(atom, HTTPRequest)
    ]


def test_request_split_across_chunks():
    parser = HTTPParser()
    atoms = [
        atom
        for chunk in [
            b"GET /time/5 ",
            b"HTTP/1.1\r\nHost: ",
            b"127.0.0.1\r",
            b"\nConn",
            b"ection: close\r\n",
            b"\r",
            b"\n",
        ]
        for atom in parser.feed(chunk)
    ]
    assert atoms[0] == HTTPRequestLine("GET", "/time/5", "", "HTTP/1.1")
    assert isinstance(atoms[1], HTTPHeaders)
    req = atoms[2]
    assert isinstance(req, HTTPRequest)
    assert req.method == "GET"
    assert req.path == "/time/5"
    assert req.protocol == "HTTP/1.1"
    assert req.header("host") == "127.0.0.1"
    assert req.header("Connection") == "close"


def test_pipelined_requests():
    parser = HTTPParser()
    res = requests(
        parser,
        b"GET /a HTTP/1.1\r\nHost: x\r\n\r\nHEAD /b?c=d HTTP/1.1\r\nHost: x\r\n\r\n",
    )
    assert [(_.method, _.path) for _ in res] == [("GET", "/a"), ("HEAD", "/b")]
    assert res[1].query == {"c": "d"}
    assert res[1].param("c") == "d"
    assert res[1].param("e", "f") == "f"
    assert res[1].isHead


def test_header_names_are_normalized():
    (req,) = requests(
        HTTPParser(), b"GET / HTTP/1.1\r\nif-none-match: \"x\"\r\nRANGE: bytes=0-1\r\n\r\n"
    )
    assert req.headers == {"If-None-Match": '"x"', "Range": "bytes=0-1"}
    assert req.header("IF-NONE-MATCH") == '"x"'


def test_raw_path_is_kept():
    (req,) = requests(HTTPParser(), b"GET /a%20b/../c HTTP/1.0\r\n\r\n")
    assert req.path == "/a%20b/../c"
    assert req.protocol == "HTTP/1.0"


def test_parse_query():
    assert parseQuery("") == {}
    assert parseQuery("a=1&b=x+y&c") == {"a": "1", "b": "x y", "c": ""}
    assert parseQuery("name=caf%C3%A9") == {"name": "café"}


def test_line_parser():
    parser = LineParser()
    assert parser.feed(b"abc") == (None, 3)
    line, read = parser.feed(b"def\r\nghi")
    assert line == b"abcdef"
    assert read == 5


def test_header_name_cache_is_bounded():
    parser = HTTPParser()
    for i in range(1_000):
        requests(parser, f"GET / HTTP/1.1\r\nX-Junk-{i}: 1\r\n\r\n".encode())
    assert headername.cache_info().currsize <= 256
    assert headername("x-junk-1") == "X-Junk-1"


def test_body_is_framed_by_content_length():
    parser = HTTPParser()
    res = requests(
        parser,
        b"POST /a HTTP/1.1\r\nContent-Length: 5\r\n\r\nhel",
        b"loGET /b HTTP/1.1\r\n\r\n",
    )
    assert [(_.method, _.path) for _ in res] == [("POST", "/a"), ("GET", "/b")]


@pytest.mark.parametrize(
    "payload",
    [
        b"NONSENSE\r\n\r\n",
        b"GET / HTTP/1.1\r\nContent-Length: nope\r\n\r\n",
        b"POST / HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n",
    ],
)
def test_unframeable_requests_are_bad_format(payload):
    atoms = list(HTTPParser().feed(payload))
    assert atoms[-1] is HTTPProcessingStatus.BadFormat
    assert not any(isinstance(_, HTTPRequest) for _ in atoms)


def test_leading_empty_lines_are_skipped():
    (req,) = requests(HTTPParser(), b"\r\n\r\nGET /x HTTP/1.1\r\n\r\n")
    assert req.path == "/x"


# EOF
