import argparse
import sys
from typing import Sequence

from . import config
from .config import ServerConfig
from .server import serve
from .utils.files import DEFAULT_CHARSET_CONFIDENCE


def parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(
		prog="dirserve",
		description="Serves the files of a directory over HTTP, with directory listings",
	)
	p.add_argument(
		"-d",
		"--path",
		default=config.ROOT,
		help="Directory to serve (defaults to DIRSERVE_ROOT or the current directory)",
	)
	p.add_argument(
		"-p", "--port", type=int, default=config.PORT, help="Port to listen on"
	)
	p.add_argument("--host", default=config.HOST, help="Address to bind to")
	p.add_argument(
		"--pathprefix",
		default=config.PREFIX,
		help="URL prefix the files are served under, like /files/",
	)
	p.add_argument("--title", default=config.TITLE, help="Title of the listing pages")
	p.add_argument(
		"--hide-links",
		action="store_true",
		help="Hides the links to the project in the listing pages",
	)
	p.add_argument(
		"--disable-directory-listing",
		action="store_true",
		help="Answers 404 for directories without an index file",
	)
	p.add_argument(
		"--markdown-before-dir",
		action="store_true",
		help="Shows the readme content before the listing",
	)
	p.add_argument(
		"--charset-confidence",
		type=float,
		default=DEFAULT_CHARSET_CONFIDENCE,
		help="Minimum confidence (0-100) for a detected charset to be used",
	)
	p.add_argument(
		"--no-log-requests",
		action="store_true",
		help="Disables the logging of each request",
	)
	return p


def main(args: Sequence[str] | None = None) -> int:
	options = parser().parse_args(args)
	serve(
		ServerConfig.Make(
			options.path,
			prefix=options.pathprefix,
			title=options.title,
			hideLinks=options.hide_links,
			disableDirectoryListing=options.disable_directory_listing,
			markdownBeforeDir=options.markdown_before_dir,
			charsetConfidence=options.charset_confidence,
			host=options.host,
			port=options.port,
			logRequests=config.LOG_REQUESTS and not options.no_log_requests,
		)
	)
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF
