import pytest

from conftest import makeRequest

from dirserve.http.content import (
    ByteRange,
    RangeError,
    checkPreconditions,
    etag,
    etagMatches,
    httpdate,
    parseHTTPDate,
    parseRange,
)

MODIFIED: float = 1_600_000_000.25
TAG: str = etag(MODIFIED, 100)


@pytest.mark.parametrize(
    "header,expected",
    [
        ("bytes=0-9", [ByteRange(0, 10)]),
        ("bytes=90-", [ByteRange(90, 10)]),
        ("bytes=90-200", [ByteRange(90, 10)]),
        ("bytes=-10", [ByteRange(90, 10)]),
        ("bytes=-500", [ByteRange(0, 100)]),
        ("bytes=0-0, 5-6", [ByteRange(0, 1), ByteRange(5, 2)]),
        ("bytes=0-9,200-300", [ByteRange(0, 10)]),
    ],
)
def test_parse_range(header, expected):
    assert parseRange(header, 100) == expected


@pytest.mark.parametrize(
    "header",
    ["items=0-9", "bytes=9-0", "bytes=a-b", "bytes=5", "bytes=100-", "bytes=-0"],
)
def test_parse_invalid_range(header):
    with pytest.raises(RangeError):
        parseRange(header, 100)


def test_content_range():
    assert ByteRange(10, 5).contentRange(100) == "bytes 10-14/100"


def test_dates():
    text = httpdate(MODIFIED)
    assert text == "Sun, 13 Sep 2020 12:26:40 GMT"
    assert parseHTTPDate(text) == 1_600_000_000
    assert parseHTTPDate("yesterday") is None
    assert parseHTTPDate(None) is None


def test_etag_matching():
    assert etagMatches(TAG, TAG)
    assert etagMatches(f'"a", {TAG}', TAG)
    assert etagMatches("*", TAG)
    assert etagMatches(f"W/{TAG}", TAG)
    assert not etagMatches(f"W/{TAG}", TAG, weak=False)
    assert not etagMatches('"a"', TAG)


def test_etag_changes_with_content():
    assert etag(MODIFIED, 100) != etag(MODIFIED, 101)
    assert etag(MODIFIED, 100) != etag(MODIFIED + 1, 100)


def preconditions(**headers: str) -> int | None:
    return checkPreconditions(
        makeRequest("GET", "/", {k.replace("_", "-"): v for k, v in headers.items()}),
        TAG,
        MODIFIED,
    )


def test_preconditions():
    assert preconditions() is None
    assert preconditions(If_None_Match=TAG) == 304
    assert preconditions(If_None_Match='"other"') is None
    assert preconditions(If_Match=TAG) is None
    assert preconditions(If_Match='"other"') == 412
    assert preconditions(If_Unmodified_Since=httpdate(MODIFIED - 60)) == 412
    assert preconditions(If_Unmodified_Since=httpdate(MODIFIED)) is None
    assert preconditions(If_Modified_Since=httpdate(MODIFIED)) == 304
    assert preconditions(If_Modified_Since=httpdate(MODIFIED - 60)) is None


def test_if_none_match_takes_precedence():
    assert (
        preconditions(If_None_Match='"other"', If_Modified_Since=httpdate(MODIFIED))
        is None
    )


# EOF
