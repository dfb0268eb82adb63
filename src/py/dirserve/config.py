import os
import time
from os import getenv
from pathlib import Path
from typing import NamedTuple, TextIO

from .utils.files import DEFAULT_CHARSET_CONFIDENCE

PORT: int = int(getenv("PORT", 8000))

# If we're starting the server in a development environment, we want it to be accessible from everywhere
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

LOG_REQUESTS: bool = getenv("DIRSERVE_LOG_REQUESTS", "1") == "1"

ROOT: str = getenv("DIRSERVE_ROOT", ".")
PREFIX: str = getenv("DIRSERVE_PREFIX", "/")
TITLE: str = getenv("DIRSERVE_TITLE", "")


def normalizePrefix(prefix: str | None) -> str:
	"""Makes sure the URL prefix starts and ends with a `/`."""
	text = (prefix or "").strip().strip("/")
	return f"/{text}/" if text else "/"


class ServerConfig(NamedTuple):
	"""The process-wide configuration, created once at startup and never
	mutated afterwards. Services get it at construction."""

	root: Path
	prefix: str = "/"
	title: str = ""
	hideLinks: bool = False
	disableDirectoryListing: bool = False
	markdownBeforeDir: bool = False
	cacheBuster: str = ""
	logOutput: TextIO | None = None
	# The charset detector's confidence, as a percentage, must be strictly
	# greater than this value.
	charsetConfidence: float = DEFAULT_CHARSET_CONFIDENCE
	host: str = HOST
	port: int = PORT
	logRequests: bool = LOG_REQUESTS

	@staticmethod
	def Make(
		root: str | Path | None = None,
		*,
		prefix: str | None = None,
		title: str | None = None,
		hideLinks: bool = False,
		disableDirectoryListing: bool = False,
		markdownBeforeDir: bool = False,
		cacheBuster: str | None = None,
		logOutput: TextIO | None = None,
		charsetConfidence: float = DEFAULT_CHARSET_CONFIDENCE,
		host: str = HOST,
		port: int = PORT,
		logRequests: bool = LOG_REQUESTS,
	) -> "ServerConfig":
		"""Creates a normalized configuration: the root is absolute, the
		prefix is wrapped in slashes and the cache buster defaults to a token
		derived from the startup time."""
		return ServerConfig(
			root=Path(os.path.abspath(root or ROOT)),
			prefix=normalizePrefix(PREFIX if prefix is None else prefix),
			title=TITLE if title is None else title,
			hideLinks=hideLinks,
			disableDirectoryListing=disableDirectoryListing,
			markdownBeforeDir=markdownBeforeDir,
			cacheBuster=cacheBuster or f"{int(time.time()):x}",
			logOutput=logOutput,
			charsetConfidence=charsetConfidence,
			host=host,
			port=port,
			logRequests=logRequests,
		)


# EOF
