DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"


class LineParser:
	"""Accumulates bytes until a CRLF is found, so that a line can be split
	across the chunks read from a socket."""

	__slots__ = ["buffer", "scanned", "line"]

	def __init__(self) -> None:
		self.buffer: bytearray = bytearray()
		# The buffer holds no EOL before this offset
		self.scanned: int = 0
		self.line: bytes | None = None

	def reset(self) -> "LineParser":
		self.buffer.clear()
		self.scanned = 0
		self.line = None
		return self

	def flush(self) -> bytes | None:
		line = self.line
		self.reset()
		return line

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Feeds `chunk` from `start`, returning the line once complete (without
		its EOL) and how many bytes of the chunk were consumed. What follows
		the EOL is left for the next parser."""
		before: int = len(self.buffer)
		self.buffer += chunk[start:]
		end: int = self.buffer.find(EOL, self.scanned)
		if end == -1:
			# A trailing CR may get its LF with the next chunk
			self.scanned = max(0, len(self.buffer) - 1)
			return None, len(chunk) - start
		self.line = bytes(self.buffer[:end])
		self.buffer.clear()
		self.scanned = 0
		return self.line, end + len(EOL) - before


# EOF
