from ..config import ServerConfig
from ..decorators import on
from ..http.model import HTTPRequest, HTTPResponse
from ..model import Service
from ..templates import SPECIAL_PATH

# The stylesheet of the directory listings. It is requested with the cache
# buster as query, so it can be cached for long.
LISTING_CSS: str = """
:root {
  font-family: sans-serif;
  font-size: 14px;
  line-height: 1.35em;
  color: #202020;
  background: #F0F0F0;
}
body {
  max-width: 960px;
  margin: 0 auto;
  padding: 20px;
}
header nav a {
  text-decoration: none;
}
table.listing {
  width: 100%;
  border-collapse: collapse;
}
table.listing th {
  text-align: left;
  border-bottom: 1px solid #C0C0C0;
}
table.listing td {
  padding: 0.25em 0.5em;
}
table.listing tr:hover td {
  background: #E4E4E4;
}
td.icon {
  width: 1.5em;
}
td.size, td.modified {
  white-space: nowrap;
  color: #606060;
}
tr.empty td {
  font-style: italic;
  color: #808080;
}
article.markdown {
  margin: 1.75em 0;
  padding: 1em 1.5em;
  background: #FFFFFF;
}
article.markdown pre {
  overflow-x: auto;
}
footer {
  margin-top: 2em;
  font-size: 0.85em;
  color: #808080;
}
"""

ASSETS_MAX_AGE: int = 365 * 24 * 60 * 60


class AssetsService(Service):
	"""Serves the static assets of the listing pages under the special path
	of the prefix, which takes precedence over the served files."""

	def __init__(self, config: ServerConfig):
		self.config: ServerConfig = config
		super().__init__(prefix=config.prefix)

	@on(GET_HEAD=f"/{SPECIAL_PATH}/style.css", priority=10)
	def style(self, request: HTTPRequest) -> HTTPResponse:
		return request.respond(
			LISTING_CSS,
			contentType="text/css; charset=utf-8",
			headers={"Cache-Control": f"public, max-age={ASSETS_MAX_AGE}"},
		)


# EOF
