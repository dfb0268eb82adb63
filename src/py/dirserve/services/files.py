import os
import posixpath
from pathlib import Path
from urllib.parse import unquote

from ..config import ServerConfig
from ..decorators import on
from ..http.content import serveContent
from ..http.model import HTTPRequest, HTTPResponse
from ..model import Service
from ..readme import MarkdownError, generateMarkdown
from ..templates import RenderPayload, TemplateError, Templates
from ..utils.files import (
	SNIFF_LENGTH,
	DirectoryEntry,
	describe,
	foldersFirst,
	listdir,
)
from ..utils.logging import TPrimitive, warning

INDEX_FILES: tuple[str, ...] = ("index.html", "index.htm")


def isFiltered(name: str) -> bool:
	"""Tells if the entry is hidden from listings: dotfiles, which include
	the server's own configuration files."""
	return name.startswith(".")


def getParentURL(base: str, location: str) -> str:
	"""Returns the URL of the directory above `location`, always ending with
	a slash, or an empty string when `location` is the listing root `base`."""
	if location == base:
		return ""
	parent = posixpath.dirname(location.rstrip("/")) or "/"
	return parent if parent.endswith("/") else f"{parent}/"


class FileService(Service):
	"""Serves the files found under the configured root, rendering listings
	for directories. Every request reads the filesystem anew, nothing is
	cached."""

	def __init__(self, config: ServerConfig, *, templates: Templates | None = None):
		self.config: ServerConfig = config
		self.root: Path = config.root
		self.templates: Templates = templates or Templates()
		super().__init__(prefix=config.prefix)

	def warn(self, message: str, **context: TPrimitive | None) -> None:
		warning(message, output=self.config.logOutput, **context)

	@on(GET_HEAD=("", "/{path:any}"))
	def read(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		return self.showOrRender(request)

	def resolvePath(self, location: str) -> Path | None:
		"""Returns the absolute path on the filesystem for the given URL
		location, or `None` when it falls outside of the root."""
		relative: str = location[len(self.prefix.rstrip("/")) :].lstrip("/")
		local_path = os.path.abspath(os.path.join(self.root, relative))
		root = str(self.root)
		if local_path != root and not local_path.startswith(
			root if root.endswith(os.sep) else f"{root}{os.sep}"
		):
			return None
		return Path(local_path)

	def showOrRender(self, request: HTTPRequest) -> HTTPResponse:
		"""Either renders the content requested or shows a directory listing."""
		location: str = unquote(request.path)
		try:
			local_path = self.resolvePath(location)
		except (OSError, ValueError) as e:
			self.warn("Error generating absolute path", Path=location, Error=str(e))
			return request.fail(
				"internal error generating full paths -- see application logs for details"
			)
		if local_path is None:
			self.warn("Attempted to access path outside of root", Path=location)
			return request.notFound()
		try:
			local_path.stat()
		except (FileNotFoundError, NotADirectoryError):
			# The client only gets a generic message, the full path goes
			# to the operator.
			self.warn("Attempted to access non-existent path", Path=str(local_path))
			return request.notFound()
		except (OSError, ValueError) as e:
			self.warn("Unable to stat path", Path=str(local_path), Error=str(e))
			return request.fail(
				"unable to stat directory -- see application logs for more information"
			)
		if local_path.is_dir():
			# Directories are canonicalized with a trailing slash, so that
			# relative links resolve within them.
			if not request.path.endswith("/"):
				return request.redirect(f"{request.path}/", permanent=True)
			return self.walk(request, local_path, location)
		else:
			return self.serveFile(request, local_path)

	def walk(self, request: HTTPRequest, directory: Path, location: str) -> HTTPResponse:
		"""Serves the index file of the directory or renders its listing."""
		for index in INDEX_FILES:
			index_path = directory / index
			if index_path.is_file():
				return self.serveFile(request, index_path)

		# A disabled listing looks exactly like a missing directory
		if self.config.disableDirectoryListing:
			return request.notFound()

		try:
			entries = listdir(str(directory))
		except FileNotFoundError:
			self.warn("Attempted to access non-existent path", Path=str(directory))
			return request.notFound()
		except OSError as e:
			self.warn("Unable to read directory", Path=str(directory), Error=str(e))
			return request.fail(
				"unable to read directory -- see application logs for more information"
			)

		files: list[DirectoryEntry] = []
		for entry in foldersFirst(entries):
			try:
				try:
					item = DirectoryEntry.FromDirEntry(entry)
				except OSError:
					# A symlink that can't be followed (dangling, looping or
					# unreadable target) is listed as what it is.
					item = DirectoryEntry.FromDirEntry(entry, follow=False)
			except OSError as e:
				# A partial listing is worse than none
				self.warn(
					"Unable to stat file",
					Path=os.path.join(directory, entry.name),
					Error=str(e),
				)
				return request.fail(
					f"unable to stat file {entry.name!r} -- see application logs for more information"
				)
			if isFiltered(item.name):
				continue
			files.append(item)

		try:
			markdown_content: str = generateMarkdown(directory, files)
		except MarkdownError as e:
			self.warn("Unable to generate markdown", Path=str(directory), Error=str(e))
			return request.fail(
				"unable to generate markdown for current directory -- see application logs for more information"
			)

		payload = RenderPayload(
			directoryRootPath=self.prefix,
			pageTitle=self.config.title,
			currentPath=location,
			cacheBuster=self.config.cacheBuster,
			files=files,
			requestedPath=str(directory),
			isRoot=location == self.prefix,
			upDirectory=getParentURL(self.prefix, location),
			hideLinks=self.config.hideLinks,
			markdownContent=markdown_content,
			markdownBeforeDir=self.config.markdownBeforeDir,
		)
		try:
			page: str = self.templates.render("app", payload)
		except TemplateError as e:
			self.warn(
				"Unable to render directory listing", Path=str(directory), Error=str(e)
			)
			return request.fail(
				"unable to render directory listing -- see application logs for more information"
			)
		return request.respondHTML(page)

	def serveFile(self, request: HTTPRequest, path: Path) -> HTTPResponse:
		"""Serves the file with its content type and charset, supporting
		conditional and range requests."""
		try:
			f = open(path, "rb")
		except OSError as e:
			self.warn("Unable to open file", Path=str(path), Error=str(e))
			return request.fail(
				"unable to open file -- see application logs for more information"
			)
		with f:
			try:
				info = os.fstat(f.fileno())
				# The sample is only used for sniffing, the content is then
				# served from the start.
				sample: bytes = f.read(SNIFF_LENGTH)
				f.seek(0)
			except OSError as e:
				self.warn("Unable to read file", Path=str(path), Error=str(e))
				return request.fail(
					"unable to read file -- see application logs for more information"
				)
			content = describe(path.name, sample, self.config.charsetConfidence)
			return serveContent(request, path.name, info.st_mtime, f, content.header)


# EOF
