from datetime import datetime, timezone
from typing import Callable, NamedTuple
from urllib.parse import quote

from .utils.files import DirectoryEntry
from .utils.htmpl import H, Node, html, raw

# --
# == Templates
#
# The pages rendered by the server, built with the HTML node builder. Each
# template is a function taking a `RenderPayload` and returning nodes, and
# is registered under a name in `Templates`.

SPECIAL_PATH: str = "_"
PROJECT_URL: str = "https://pypi.org/project/dirserve/"

KB: int = 1024


class RenderPayload(NamedTuple):
	"""The data a directory listing is rendered from."""

	directoryRootPath: str
	pageTitle: str
	currentPath: str
	cacheBuster: str
	files: list[DirectoryEntry]
	requestedPath: str
	isRoot: bool
	upDirectory: str
	hideLinks: bool
	markdownContent: str
	markdownBeforeDir: bool


class TemplateError(Exception):
	"""Raised when a template is missing or fails to render."""


def formatSize(size: int) -> str:
	if size < KB:
		return f"{size} B"
	elif size < KB**2:
		return f"{size / KB:.1f} KB"
	elif size < KB**3:
		return f"{size / KB**2:.1f} MB"
	else:
		return f"{size / KB**3:.1f} GB"


def formatTime(timestamp: float) -> str:
	return datetime.fromtimestamp(timestamp, timezone.utc).strftime(
		"%Y-%m-%d %H:%M:%S UTC"
	)


def entryURL(currentPath: str, entry: DirectoryEntry) -> str:
	return f"{quote(currentPath)}{quote(entry.name)}{'/' if entry.isDirectory else ''}"


def breadcrumbs(prefix: str, currentPath: str) -> list[Node | str]:
	"""Links to each of the directories leading to the current one,
	starting at the prefix."""
	res: list[Node | str] = [H.a("/", href=quote(prefix))]
	href: str = quote(prefix)
	for chunk in (_ for _ in currentPath[len(prefix) :].split("/") if _):
		href = f"{href}{quote(chunk)}/"
		res += [H.a(chunk, href=href), "/"]
	return res


def listing(payload: RenderPayload) -> Node:
	rows: list[Node] = []
	if payload.upDirectory:
		rows.append(
			H.tr(
				H.td("↩", _="icon"),
				H.td(H.a("..", href=quote(payload.upDirectory)), colspan=3),
				_="up",
			)
		)
	for entry in payload.files:
		rows.append(
			H.tr(
				H.td("📁" if entry.isDirectory else "📄", _="icon"),
				H.td(
					H.a(
						f"{entry.name}/" if entry.isDirectory else entry.name,
						href=entryURL(payload.currentPath, entry),
					),
					_="name",
				),
				H.td("-" if entry.isDirectory else formatSize(entry.size), _="size"),
				H.td(
					H.time(
						formatTime(entry.modified),
						datetime=datetime.fromtimestamp(
							entry.modified, timezone.utc
						).isoformat(),
					),
					_="modified",
				),
				_="directory" if entry.isDirectory else "file",
			)
		)
	if not payload.files:
		rows.append(H.tr(H.td("This directory is empty.", colspan=4), _="empty"))
	return H.table(
		H.thead(H.tr(H.th(""), H.th("Name"), H.th("Size"), H.th("Modified"))),
		H.tbody(*rows),
		_="listing",
	)


def app(payload: RenderPayload) -> Node:
	"""The directory listing page."""
	title: str = payload.pageTitle or f"Listing of {payload.currentPath}"
	markdown: Node | None = (
		H.article(raw(payload.markdownContent), _="markdown")
		if payload.markdownContent
		else None
	)
	main: list[Node | None] = (
		[markdown, listing(payload)]
		if payload.markdownBeforeDir
		else [listing(payload), markdown]
	)
	return H.html(
		H.head(
			H.meta(charset="utf-8"),
			H.meta(
				name="viewport",
				content="width=device-width, initial-scale=1.0",
			),
			H.title(title),
			H.link(
				rel="stylesheet",
				href=f"{quote(payload.directoryRootPath)}{SPECIAL_PATH}/style.css?{payload.cacheBuster}",
			),
		),
		H.body(
			H.header(
				H.h1(payload.pageTitle) if payload.pageTitle else None,
				H.nav(*breadcrumbs(payload.directoryRootPath, payload.currentPath)),
			),
			H.main(*main),
			(
				None
				if payload.hideLinks
				else H.footer(
					"Served by ", H.a("dirserve", href=PROJECT_URL, rel="noopener")
				)
			),
		),
		lang="en",
	)


class Templates:
	"""A registry of named templates."""

	def __init__(self) -> None:
		self.templates: dict[str, Callable[[RenderPayload], Node]] = {"app": app}

	def register(
		self, name: str, template: Callable[[RenderPayload], Node]
	) -> "Templates":
		self.templates[name] = template
		return self

	def render(self, name: str, payload: RenderPayload) -> str:
		"""Renders the template `name` as an HTML document, raising
		`TemplateError` when it is missing or fails."""
		template = self.templates.get(name)
		if template is None:
			raise TemplateError(f"Template is not registered: {name}")
		try:
			return "".join(html(template(payload), doctype="html"))
		except Exception as e:
			raise TemplateError(f"Template {name} failed: {e}") from e


# EOF
