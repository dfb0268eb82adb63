import pytest

from dirserve.utils.files import (
    BINARY_TYPE,
    ContentDescriptor,
    contentTypeForFilename,
    describe,
    detectCharset,
    isUTF8,
    sniff,
)

LATIN: bytes = (
    "Les élèves étaient très contents de la fête à l'école. " * 8
).encode("latin-1")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("index.html", "text/html"),
        ("INDEX.HTM", "text/html"),
        ("notes.txt", "text/plain"),
        ("style.css", "text/css"),
        ("app.mjs", "text/javascript"),
        ("data.json", "application/json"),
        ("font.woff2", "font/woff2"),
        ("README.md", "text/markdown"),
        ("photo.png", "image/png"),
        ("Makefile", None),
        ("archive.unknownext", None),
    ],
)
def test_extension_lookup(name, expected):
    assert contentTypeForFilename(name) == expected


@pytest.mark.parametrize(
    "data,expected",
    [
        (b"<!DOCTYPE html><html>", "text/html"),
        (b"  \n<html lang='en'>", "text/html"),
        (b"<!-- comment -->", "text/html"),
        (b"<?xml version='1.0'?>", "text/xml"),
        (b"%PDF-1.7", "application/pdf"),
        (b"\x89PNG\r\n\x1a\n\x00\x00", "image/png"),
        (b"GIF89a", "image/gif"),
        (b"\xff\xd8\xff\xe0", "image/jpeg"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"\x00\x00\x00\x18ftypmp42", "video/mp4"),
        (b"PK\x03\x04", "application/zip"),
        (b"\x1f\x8b\x08\x00", "application/x-gzip"),
        (b"plain old text\n", "text/plain"),
        (b"\x00\x01\x02\x03", BINARY_TYPE),
        (b"", BINARY_TYPE),
    ],
)
def test_sniff(data, expected):
    assert sniff(data) == expected


def test_sniff_only_looks_at_the_start():
    assert sniff(b"a" * 512 + b"\x00") == "text/plain"


def test_utf8():
    assert isUTF8(b"")
    assert isUTF8("héllo wörld".encode("utf-8"))
    # A sequence cut by the end of the sample
    assert isUTF8("é".encode("utf-8")[:1])
    assert not isUTF8(b"caf\xe9 noir")


def test_detect_charset_threshold():
    assert detectCharset(LATIN, 100) is None


def test_describe():
    assert describe("a.txt", b"hello") == ContentDescriptor("text/plain", "utf-8")
    assert describe("a.bin", b"\x00\x01") == ContentDescriptor(BINARY_TYPE)
    assert describe("a", b"\x00\x01") == ContentDescriptor(None)
    assert describe("a", b"<html>hi</html>").header == "text/html; charset=utf-8"
    # The extension wins over the content
    assert describe("a.css", b"<html>").header == "text/css; charset=utf-8"


def test_describe_without_confident_charset():
    res = describe("a.txt", LATIN, 100)
    assert res == ContentDescriptor("text/plain", None)
    assert res.header == "text/plain"


def test_binary_has_no_header():
    assert ContentDescriptor(BINARY_TYPE, "utf-8").header is None
    assert ContentDescriptor().header is None


# EOF
