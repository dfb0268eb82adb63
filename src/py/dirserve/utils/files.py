import codecs
import mimetypes
import os
import stat
from typing import NamedTuple

import chardet

mimetypes.init()

# --
# == Content types
#
# The content type of a file is resolved from its extension first, which is
# authoritative, and then sniffed from its first bytes, following the
# signatures of the WHATWG MIME sniffing standard.

SNIFF_LENGTH: int = 512
BINARY_TYPE: str = "application/octet-stream"
DEFAULT_CHARSET_CONFIDENCE: float = 50

# Overrides for extensions that `mimetypes` gets wrong or ignores depending
# on the host platform.
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	css="text/css",
	csv="text/csv",
	htm="text/html",
	html="text/html",
	js="text/javascript",
	mjs="text/javascript",
	json="application/json",
	map="application/json",
	md="text/markdown",
	markdown="text/markdown",
	svg="image/svg+xml",
	txt="text/plain",
	wasm="application/wasm",
	webp="image/webp",
	woff="font/woff",
	woff2="font/woff2",
	xml="text/xml",
	yaml="application/yaml",
	yml="application/yaml",
)

# Tags that mark an HTML document when found (case insensitive) after
# leading whitespace, and followed by a space or `>`.
HTML_MARKERS: tuple[bytes, ...] = (
	b"<!DOCTYPE HTML",
	b"<HTML",
	b"<HEAD",
	b"<SCRIPT",
	b"<IFRAME",
	b"<H1",
	b"<DIV",
	b"<FONT",
	b"<TABLE",
	b"<A",
	b"<STYLE",
	b"<TITLE",
	b"<B",
	b"<BODY",
	b"<BR",
	b"<P",
	b"<!--",
)

# Exact prefixes, checked in order.
SIGNATURES: tuple[tuple[bytes, str], ...] = (
	(b"<?xml", "text/xml"),
	(b"%PDF-", "application/pdf"),
	(b"%!PS-Adobe-", "application/postscript"),
	(b"\xef\xbb\xbf", "text/plain"),
	(b"\xfe\xff", "text/plain"),
	(b"\xff\xfe", "text/plain"),
	(b"GIF87a", "image/gif"),
	(b"GIF89a", "image/gif"),
	(b"\x89PNG\r\n\x1a\n", "image/png"),
	(b"\xff\xd8\xff", "image/jpeg"),
	(b"BM", "image/bmp"),
	(b"\x00\x00\x01\x00", "image/x-icon"),
	(b"\x00\x00\x02\x00", "image/x-icon"),
	(b"OggS\x00", "application/ogg"),
	(b"ID3", "audio/mpeg"),
	(b"fLaC", "audio/flac"),
	(b"\x1a\x45\xdf\xa3", "video/webm"),
	(b"wOFF", "font/woff"),
	(b"wOF2", "font/woff2"),
	(b"\x00\x01\x00\x00", "font/ttf"),
	(b"OTTO", "font/otf"),
	(b"PK\x03\x04", "application/zip"),
	(b"\x1f\x8b\x08", "application/x-gzip"),
	(b"BZh", "application/x-bzip"),
	(b"Rar!\x1a\x07", "application/x-rar-compressed"),
	(b"7z\xbc\xaf\x27\x1c", "application/x-7z-compressed"),
	(b"\x00asm", "application/wasm"),
)

# RIFF containers carry their type at offset 8.
RIFF_TYPES: dict[bytes, str] = {
	b"WEBPVP": "image/webp",
	b"WAVE": "audio/wave",
	b"AVI ": "video/avi",
}

# Control bytes that never appear in text.
BINARY_BYTES: frozenset[int] = frozenset(
	[*range(0x00, 0x09), 0x0B, *range(0x0E, 0x1B), *range(0x1C, 0x20)]
)

WHITESPACE: bytes = b"\t\n\x0c\r "


def contentTypeForFilename(name: str) -> str | None:
	"""Returns the content type registered for the extension of `name`,
	or `None` when the extension is unknown."""
	ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
	if ext and (res := MIME_TYPES.get(ext)):
		return res
	else:
		return mimetypes.guess_type(name, strict=False)[0]


def sniff(data: bytes) -> str:
	"""Guesses the content type of the given sample (at most the first
	`SNIFF_LENGTH` bytes are considered). Returns `BINARY_TYPE` when
	nothing matches."""
	data = data[:SNIFF_LENGTH]
	text = data.lstrip(WHITESPACE)
	upper = text[:16].upper()
	for marker in HTML_MARKERS:
		if upper.startswith(marker):
			following = text[len(marker) : len(marker) + 1]
			if following in (b" ", b">") or marker == b"<!--":
				return "text/html"
	for signature, content_type in SIGNATURES:
		if data.startswith(signature):
			return content_type
	if data.startswith(b"RIFF"):
		for kind, content_type in RIFF_TYPES.items():
			if data[8 : 8 + len(kind)] == kind:
				return content_type
	if data[4:8] == b"ftyp":
		return "video/mp4"
	if not data or any(_ in BINARY_BYTES for _ in data):
		return BINARY_TYPE
	return "text/plain"


def isUTF8(data: bytes) -> bool:
	"""Tells if the sample is valid UTF-8. A multi-byte sequence cut by the
	end of the sample is accepted."""
	try:
		codecs.getincrementaldecoder("utf-8")().decode(data, final=False)
	except UnicodeDecodeError:
		return False
	return True


def detectCharset(
	data: bytes, threshold: float = DEFAULT_CHARSET_CONFIDENCE
) -> str | None:
	"""Statistically detects the charset of the sample, returning it only
	when the detector's confidence (as a 0-100 percentage) is strictly
	greater than `threshold`."""
	res = chardet.detect(data)
	name: str | None = res.get("encoding")
	confidence: float = (res.get("confidence") or 0.0) * 100
	return name if name and confidence > threshold else None


class ContentDescriptor(NamedTuple):
	"""The resolved content type and charset of a file."""

	contentType: str | None = None
	charset: str | None = None

	@property
	def header(self) -> str | None:
		"""The value of the `Content-Type` header, if any should be set."""
		if not self.contentType or self.contentType == BINARY_TYPE:
			return None
		elif self.charset:
			return f"{self.contentType}; charset={self.charset}"
		else:
			return self.contentType


def describe(
	name: str,
	sample: bytes,
	threshold: float = DEFAULT_CHARSET_CONFIDENCE,
) -> ContentDescriptor:
	"""Resolves the content descriptor of a file given its `name` and the
	first bytes of its content."""
	content_type: str | None = contentTypeForFilename(name)
	if content_type is None:
		sniffed = sniff(sample)
		content_type = None if sniffed == BINARY_TYPE else sniffed
	if content_type is None or content_type == BINARY_TYPE:
		return ContentDescriptor(content_type)
	elif isUTF8(sample):
		return ContentDescriptor(content_type, "utf-8")
	else:
		return ContentDescriptor(content_type, detectCharset(sample, threshold))


# --
# == Directory entries


class DirectoryEntry(NamedTuple):
	"""A file metadata view, as displayed in directory listings."""

	name: str
	size: int
	modified: float
	isDirectory: bool
	isFile: bool = True

	@staticmethod
	def FromDirEntry(
		entry: os.DirEntry[str], follow: bool = True
	) -> "DirectoryEntry":
		"""Creates an entry out of a directory scan item, following symlinks
		unless `follow` is false. Raises `OSError` when the entry can't be
		stat'ed."""
		info = entry.stat(follow_symlinks=follow)
		is_dir = stat.S_ISDIR(info.st_mode)
		return DirectoryEntry(
			name=entry.name,
			size=info.st_size,
			modified=info.st_mtime,
			isDirectory=is_dir,
			isFile=stat.S_ISREG(info.st_mode),
		)


def listdir(path: str) -> list[os.DirEntry[str]]:
	"""Lists the entries of the directory at `path`, the handle being
	closed on every exit path."""
	with os.scandir(path) as entries:
		return list(entries)


def foldersFirst(entries: list[os.DirEntry[str]]) -> list[os.DirEntry[str]]:
	"""Sorts the entries with directories first, and then by name."""

	def key(entry: os.DirEntry[str]) -> tuple[int, str]:
		try:
			is_dir = entry.is_dir()
		except OSError:
			is_dir = False
		return (0 if is_dir else 1, entry.name)

	return sorted(entries, key=key)


# EOF
