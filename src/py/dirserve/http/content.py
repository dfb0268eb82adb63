import os
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import BinaryIO, NamedTuple

from ..utils.files import BINARY_TYPE
from .model import HTTPBodyFile, HTTPRequest, HTTPResponse

# --
# == Content serving
#
# Serves a file-like content the way a static server is expected to:
# validators (`ETag`, `Last-Modified`), conditional requests (RFC 7232) and
# byte ranges (RFC 7233). Only single ranges are honoured, a request for
# several ranges gets the full representation.


class ByteRange(NamedTuple):
	start: int
	length: int

	def contentRange(self, size: int) -> str:
		return f"bytes {self.start}-{self.start + self.length - 1}/{size}"


class RangeError(ValueError):
	"""The `Range` header is malformed or can't be satisfied."""


def httpdate(timestamp: float) -> str:
	return formatdate(int(timestamp), usegmt=True)


def parseHTTPDate(text: str | None) -> float | None:
	if not text:
		return None
	try:
		return parsedate_to_datetime(text).timestamp()
	except (TypeError, ValueError, IndexError):
		return None


def etag(modified: float, size: int) -> str:
	"""A strong entity tag derived from the modification time and size."""
	return f'"{int(modified * 1_000_000):x}-{size:x}"'


def etagMatches(header: str, tag: str, *, weak: bool = True) -> bool:
	"""Tells if the `If-Match`/`If-None-Match` header value matches the given
	tag, with weak comparison unless `weak` is false."""
	for candidate in (_.strip() for _ in header.split(",")):
		if candidate == "*":
			return True
		elif candidate.startswith("W/"):
			if weak and candidate[2:] == tag:
				return True
		elif candidate == tag:
			return True
	return False


def parseRange(header: str, size: int) -> list[ByteRange]:
	"""Parses a `Range` header for a representation of `size` bytes. Returns
	the list of satisfiable ranges, raising `RangeError` when the header is
	malformed or when no range overlaps the content."""
	unit, _, ranges_text = header.partition("=")
	if unit.strip().lower() != "bytes" or not _:
		raise RangeError(f"Unsupported range unit: {header!r}")
	ranges: list[ByteRange] = []
	no_overlap: bool = False
	for item in (_.strip() for _ in ranges_text.split(",")):
		if not item:
			continue
		start_text, sep, end_text = item.partition("-")
		start_text, end_text = start_text.strip(), end_text.strip()
		if not sep:
			raise RangeError(f"Invalid range: {item!r}")
		try:
			if not start_text:
				# A suffix range, the last N bytes
				suffix = int(end_text)
				if suffix < 0:
					raise RangeError(f"Invalid range: {item!r}")
				suffix = min(suffix, size)
				if suffix == 0:
					no_overlap = True
					continue
				ranges.append(ByteRange(size - suffix, suffix))
			else:
				start = int(start_text)
				if start < 0:
					raise RangeError(f"Invalid range: {item!r}")
				if start >= size:
					no_overlap = True
					continue
				end = size - 1 if not end_text else int(end_text)
				if end < start:
					raise RangeError(f"Invalid range: {item!r}")
				end = min(end, size - 1)
				ranges.append(ByteRange(start, end - start + 1))
		except ValueError as e:
			if isinstance(e, RangeError):
				raise e
			raise RangeError(f"Invalid range: {item!r}") from e
	if no_overlap and not ranges:
		raise RangeError("No range overlaps the content")
	return ranges


def checkPreconditions(
	request: HTTPRequest, tag: str, modified: float
) -> int | None:
	"""Returns the status (304 or 412) the request's preconditions lead to,
	or `None` when the request should be processed."""
	if_match = request.header("If-Match")
	if if_match is not None:
		if not etagMatches(if_match, tag, weak=False):
			return 412
	elif (ius := parseHTTPDate(request.header("If-Unmodified-Since"))) is not None:
		if int(modified) > ius:
			return 412
	if_none_match = request.header("If-None-Match")
	if if_none_match is not None:
		if etagMatches(if_none_match, tag):
			return 304 if request.method in ("GET", "HEAD") else 412
	elif request.method in ("GET", "HEAD"):
		ims = parseHTTPDate(request.header("If-Modified-Since"))
		if ims is not None and int(modified) <= ims:
			return 304
	return None


def checkIfRange(request: HTTPRequest, tag: str, modified: float) -> bool:
	"""Tells if the `Range` header should be honoured given `If-Range`."""
	if_range = request.header("If-Range")
	if if_range is None:
		return True
	elif if_range.startswith('"') or if_range.startswith("W/"):
		return if_range == tag
	else:
		date = parseHTTPDate(if_range)
		return date is not None and date == int(modified)


def contentSize(content: BinaryIO) -> int:
	"""Returns the size of the content, leaving its position at the start."""
	size = content.seek(0, os.SEEK_END)
	content.seek(0)
	return size


def serveContent(
	request: HTTPRequest,
	name: str,
	modified: float,
	content: BinaryIO,
	contentType: str | None = None,
) -> HTTPResponse:
	"""Creates the response serving `content` (an open file, positioned
	anywhere) named `name` and last modified at `modified`. The body is
	described as a slice of the underlying file, so the handle can be closed
	once the response is created."""
	size: int = contentSize(content)
	path: Path = Path(os.fsdecode(content.name)).absolute()
	tag: str = etag(modified, size)
	headers: dict[str, str] = {
		"Last-Modified": httpdate(modified),
		"ETag": tag,
		"Accept-Ranges": "bytes",
	}
	status = checkPreconditions(request, tag, modified)
	if status == 304:
		return request.notModified(headers=headers)
	elif status == 412:
		return request.error(412, headers=headers)
	headers["Content-Type"] = contentType or BINARY_TYPE
	body: HTTPBodyFile = HTTPBodyFile(path, 0, size)
	status = 200
	range_header = request.header("Range")
	if range_header and request.method in ("GET", "HEAD"):
		if checkIfRange(request, tag, modified):
			try:
				ranges = parseRange(range_header, size)
			except RangeError:
				if size == 0:
					# Some clients send a range with every request, an empty
					# file is served whole rather than refused.
					ranges = []
				else:
					headers["Content-Range"] = f"bytes */{size}"
					del headers["Content-Type"]
					return request.error(
						416, "Requested range not satisfiable", headers=headers
					)
			if len(ranges) == 1 and ranges[0].length <= size:
				r = ranges[0]
				body = HTTPBodyFile(path, r.start, r.length)
				headers["Content-Range"] = r.contentRange(size)
				status = 206
	response: HTTPResponse = request.respond(
		content=body, status=status, headers=headers
	)
	if request.isHead:
		response.body = None
	return response


# EOF
