from typing import Iterator, Literal
from urllib.parse import unquote_plus

from ..utils.io import LineParser
from .model import (
	HTTPAtom,
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)


class RequestLineParser:
	"""Parses the `METHOD target PROTOCOL` line starting a request."""

	__slots__ = ["line", "value", "skipping"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None
		self.skipping: int = 0

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "RequestLineParser":
		self.line.reset()
		self.value = None
		self.skipping = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` once a line is complete, in which case `flush()`
		gives the request line, or `None` when the line is malformed."""
		available: int = len(chunk) - start
		if self.skipping:
			read = min(available, self.skipping)
			self.skipping -= read
			return None, read
		elif available >= 5 and chunk[start] == 0x16 and not self.line.buffer:
			# A TLS handshake sent to a plain HTTP port is skipped whole
			size = 5 + (chunk[start + 3] << 8) + chunk[start + 4]
			read = min(available, size)
			self.skipping = size - read
			return None, read
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# Empty lines before a request line are tolerated
			return None, read
		parts = line.decode("latin-1").split(" ")
		if len(parts) == 3 and parts[0] and parts[2].startswith("HTTP/"):
			method, target, protocol = parts
			path, _, query = target.partition("?")
			self.value = HTTPRequestLine(method, path, query, protocol)
		else:
			self.value = None
		return True, read

	def __str__(self) -> str:
		return f"RequestLineParser({self.value})"


class HeadersParser:
	"""Parses header lines up to the empty line ending them."""

	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line, and when the value is a string, that header was added."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			return False, read
		name, sep, value = line.decode("latin-1").partition(":")
		if not sep:
			return None, read
		h: str = headername(name.strip().lower())
		v: str = value.strip()
		if h == "Content-Length":
			# An invalid length is reported as a negative one
			self.contentLength = int(v) if v.isascii() and v.isdigit() else -1
		elif h == "Content-Type":
			self.contentType = v
		self.headers[h] = v
		return h, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyParser:
	"""Reads a body of a known length."""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0
		self.data: list[bytes] = []

	def flush(self) -> HTTPBodyBlob:
		res = HTTPBodyBlob(b"".join(self.data), self.read, 0)
		self.reset()
		return res

	def reset(self, length: int = 0) -> "BodyParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		self.data.append(chunk[start : start + to_read])
		self.read += to_read
		return (True if self.read == self.expected else None), to_read


class HTTPParser:
	"""A stateful HTTP/1.1 request parser, fed with the chunks read from a
	connection. It yields the request line, the headers and then the request
	itself, so that pipelined requests come out one after the other. A body
	is only expected when there's a `Content-Length`, chunked bodies are
	reported as `BadFormat` as the connection can't be framed anymore."""

	def __init__(self) -> None:
		self.requestLine: RequestLineParser = RequestLineParser()
		self.headers: HeadersParser = HeadersParser()
		self.body: BodyParser = BodyParser()
		self.parser: RequestLineParser | HeadersParser | BodyParser = (
			self.requestLine
		)
		self.line: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def request(self, body: HTTPBodyBlob) -> HTTPRequest:
		line = self.line
		if line is None:
			raise RuntimeError("Request has no request line")
		req = HTTPRequest(
			method=line.method,
			path=line.path,
			query=parseQuery(line.query),
			headers=self.requestHeaders or HTTPHeaders({}),
			protocol=line.protocol,
			body=body,
		)
		self.line = None
		self.requestHeaders = None
		self.parser = self.requestLine.reset()
		return req

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# A partially read chunk is never fed again, the underlying
			# parser keeps a buffer until it is flushed.
			value, read = self.parser.feed(chunk, offset)
			offset += read
			if value is None:
				continue
			elif self.parser is self.requestLine:
				line = self.requestLine.flush()
				if line is None:
					yield HTTPProcessingStatus.BadFormat
					return
				self.line = line
				yield line
				self.parser = self.headers
			elif self.parser is self.headers:
				if value is not False:
					continue
				headers = self.headers.flush()
				self.requestHeaders = headers
				yield headers
				length: int = headers.contentLength or 0
				if length < 0 or "Transfer-Encoding" in headers.headers:
					yield HTTPProcessingStatus.BadFormat
					return
				elif length:
					self.parser = self.body.reset(length)
					yield HTTPProcessingStatus.Body
				else:
					yield self.request(HTTPBodyBlob(b"", 0))
			else:
				yield self.request(self.body.flush())


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	for item in text.split("&") if text else ():
		k, _, v = item.partition("=")
		res[unquote_plus(k)] = unquote_plus(v)
	return res


# EOF
