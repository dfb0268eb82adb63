from typing import (
	Callable,
	Optional,
	Any,
	Awaitable,
	Pattern,
	Type,
	NamedTuple,
	ClassVar,
)
from inspect import isawaitable
import re

from .decorators import Decorated
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse


async def awaited(value: Any) -> Any:
	if isawaitable(value):
		return await value
	else:
		return value


# -----------------------------------------------------------------------------
#
# ROUTE
#
# -----------------------------------------------------------------------------
#
# Routes represent collections/sets of paths that can be matched. Typically
# routes are made of chunks separated by a `/`.


class RoutePattern(NamedTuple):
	"""Used in a parameter chunk to extract/match from the give path."""

	expr: str
	extractor: Type[Any] | Callable[[str], Any]


class TextChunk(NamedTuple):
	"""A raw text chunk"""

	text: str


class ParameterChunk(NamedTuple):
	"""A parameterizable chunk, where the chunk must match the given patttern."""

	name: str
	pattern: RoutePattern


TChunk = TextChunk | ParameterChunk


class Route:
	"""Parses a route where template expressions are like `{name}` or
	`{name:type}`. Routes can have priorities and be assigned handlers,
	they are then registered in the dispatcher to match requests."""

	RE_PATTERN_NAME: ClassVar[Pattern[str]] = re.compile("^[A-Za-z]+$")

	RE_TEMPLATE: ClassVar[Pattern[str]] = re.compile(
		r"\{(?P<name>[\w][_\w\d]*)(:(?P<type>[^}]+))?\}"
	)

	PATTERNS: ClassVar[dict[str, RoutePattern]] = {
		"id": RoutePattern(r"[a-zA-Z0-9\-_]+", str),
		"word": RoutePattern(r"\w+", str),
		"name": RoutePattern(r"\w[\-\w]*", str),
		"string": RoutePattern(r"[^/]+", str),
		"digits": RoutePattern(r"\d+", int),
		"int": RoutePattern(r"\-?\d+", int),
		"file": RoutePattern(r"[^/]+\.[^/]+", str),
		"path": RoutePattern(r"[^:@]+", str),
		"segment": RoutePattern(r"[^/]+", str),
		"any": RoutePattern(r".*", str),
		"rest": RoutePattern(r".+", str),
	}

	@classmethod
	def Parse(cls, expression: str) -> list[TChunk]:
		"""Parses routes expressed as strings where patterns are denoted
		as `{name}` or `{name:pattern}`. Text chunks are matched literally."""
		chunks: list[TChunk] = []
		offset: int = 0
		for match in cls.RE_TEMPLATE.finditer(expression):
			chunks.append(TextChunk(expression[offset : match.start()]))
			name: str = match.group("name")
			pattern: str = (match.group("type") or name).lower()
			if pattern not in cls.PATTERNS:
				if cls.RE_PATTERN_NAME.match(pattern):
					raise ValueError(
						f"Route pattern '{pattern}' is not registered, pick one of: {', '.join(sorted(cls.PATTERNS.keys()))}"
					)
				else:
					# This creates a pattern in case the pattern is not a named
					# pattern.
					pat = RoutePattern(pattern, str)
			else:
				pat = cls.PATTERNS[pattern]
			chunks.append(ParameterChunk(name, pat))
			offset = match.end()
		chunks.append(TextChunk(expression[offset:]))
		return chunks

	def __init__(self, text: str, handler: Optional["Handler"] = None):
		self.text: str = text
		self.chunks: list[TChunk] = self.Parse(text)
		self.params: dict[str, ParameterChunk] = {
			_.name: _ for _ in self.chunks if isinstance(_, ParameterChunk)
		}
		self.handler: Handler | None = handler
		self._regexp: Pattern[str] | None = None

	@property
	def priority(self) -> int:
		"""Returns the priority of the route, defined by `handler.priority`
		or defaulting to 0."""
		return self.handler.priority if self.handler else 0

	@property
	def regexp(self) -> Pattern[str]:
		if not self._regexp:
			try:
				self._regexp = re.compile(f"^{self.toRegExp()}$")
			except re.error as e:
				raise ValueError(
					f"Route syntax is malformed: {repr(self.toRegExp())}"
				) from e
		return self._regexp

	def toRegExpChunks(self) -> list[str]:
		res: list[str] = []
		for chunk in self.chunks:
			if isinstance(chunk, TextChunk):
				res.append(re.escape(chunk.text))
			elif isinstance(chunk, ParameterChunk):
				res.append(f"(?P<{chunk.name}>{chunk.pattern.expr})")
			else:
				raise ValueError(f"Unsupported chunk type: {chunk}")
		return res

	def toRegExp(self) -> str:
		return "".join(self.toRegExpChunks())

	def match(self, path: str) -> dict[str, Any] | None:
		matches = self.regexp.match(path)
		return (
			{
				k: (
					e(matches.group(k))
					if (e := v.pattern.extractor)
					else matches.group(k)
				)
				for k, v in self.params.items()
			}
			if matches
			else None
		)

	def __repr__(self) -> str:
		return f"(Route \"{self.toRegExp()}\" ({' '.join(_ for _ in self.params)}))"


# -----------------------------------------------------------------------------
#
# HANDLER
#
# -----------------------------------------------------------------------------


class Handler:
	"""A handler wraps a function and maps it to paths for HTTP methods,
	along with a priority. The handler is used by the dispatchers to match
	a request."""

	@classmethod
	def Has(cls, value: Any) -> bool:
		return hasattr(value, Decorated.ON)

	@classmethod
	def Get(cls, value: Any) -> Optional["Handler"]:
		return (
			Handler(
				functor=value,
				methods=getattr(value, Decorated.ON),
				priority=getattr(value, Decorated.ON_PRIORITY, 0),
			)
			if cls.Has(value)
			else None
		)

	def __init__(
		self,
		functor: Callable[..., HTTPResponse | Awaitable[HTTPResponse]],
		methods: list[tuple[str, str]],
		priority: int = 0,
	):
		self.functor = functor
		# This extracts and normalizes the methods
		self.methods: dict[str, list[str]] = {}
		for method, path in methods:
			self.methods.setdefault(method, []).append(path)
		self.priority = priority

	async def __call__(
		self, request: HTTPRequest, params: dict[str, Any]
	) -> HTTPResponse:
		try:
			response: HTTPResponse = await awaited(self.functor(request, **params))
		except HTTPRequestError as error:
			response = request.error(
				error.status or 500,
				error.message,
				**({"contentType": error.contentType} if error.contentType else {}),
			)
		return response

	def __repr__(self) -> str:
		methods = " ".join(
			f'({k} {" ".join(repr(_) for _ in v)})' for k, v in self.methods.items()
		)
		return f"(Handler {self.priority} ({methods}) '{self.functor}')"


# -----------------------------------------------------------------------------
#
# DISPATCHER
#
# -----------------------------------------------------------------------------


class Dispatcher:
	"""A dispatcher registers handlers that respond to HTTP methods
	on a given path/URI."""

	def __init__(self) -> None:
		self.routes: dict[str, list[Route]] = {}

	def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
		"""Registers the handlers and their routes, adding the prefix if given."""
		for method, paths in handler.methods.items():
			for path in paths:
				path = f"{prefix.rstrip('/')}{path}" if prefix else path
				path = f"/{path}" if not path.startswith("/") else path
				route: Route = Route(path, handler)
				self.routes.setdefault(method, []).append(route)
		return self

	def match(
		self, method: str, path: str
	) -> tuple[Route | None, dict[str, Any] | None]:
		"""Matches a given `method` and `path` with the registered route, returning
		the matching route and the match information. The route with the
		highest priority wins, the last registered one on ties."""
		if method not in self.routes:
			return (None, None)
		else:
			matched_match: dict[str, Any] | None = None
			matched_route: Route | None = None
			matched_priority: int | None = None
			for route in self.routes[method]:
				if matched_priority is not None and route.priority < matched_priority:
					continue
				match: dict[str, Any] | None = route.match(path)
				if match is not None:
					matched_match = match
					matched_route = route
					matched_priority = route.priority
			return (matched_route, matched_match)


# EOF
