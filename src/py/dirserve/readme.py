from pathlib import Path
from typing import Iterable

import markdown

from .utils.files import DirectoryEntry

# --
# == Readme
#
# Directory listings can be accompanied by the rendered content of a
# readme-like Markdown file found in the directory.

# Lowercased, as names are matched case-insensitively
README_NAMES: frozenset[str] = frozenset(
	("readme.md", "readme.markdown", "index.md", "index.markdown")
)

MARKDOWN_EXTENSIONS: list[str] = ["tables", "fenced_code", "toc", "sane_lists"]


class MarkdownError(Exception):
	"""Raised when the readme can't be read or rendered."""


def findReadme(entries: Iterable[DirectoryEntry]) -> DirectoryEntry | None:
	"""Returns the first regular file of `entries` with a readme-like name."""
	for entry in entries:
		if entry.isFile and not entry.isDirectory and entry.name.lower() in README_NAMES:
			return entry
	return None


def render(text: str) -> str:
	return markdown.Markdown(extensions=MARKDOWN_EXTENSIONS).convert(text)


def generateMarkdown(directory: Path, entries: Iterable[DirectoryEntry]) -> str:
	"""Renders the readme found among the `entries` of `directory` as HTML,
	returning an empty string when there is none."""
	entry = findReadme(entries)
	if entry is None:
		return ""
	path = directory / entry.name
	try:
		with open(path, "rt", encoding="utf-8") as f:
			text = f.read()
	except (OSError, UnicodeDecodeError) as e:
		raise MarkdownError(f"Unable to read {path}: {e}") from e
	try:
		return render(text)
	except Exception as e:
		raise MarkdownError(f"Unable to render {path}: {e}") from e


# EOF
