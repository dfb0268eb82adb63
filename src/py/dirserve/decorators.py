from typing import ClassVar, Union, Callable, TypeVar, Any, cast

T = TypeVar("T")


class Decorated:
	"""Defines the attributes used by decorators to annotate handlers"""

	ON: ClassVar[str] = "_dirserve_on"
	ON_PRIORITY: ClassVar[str] = "_dirserve_on_priority"
	# When using MyPy, we can't dynamically patch values, so instead we're
	# collecting annotations by object id.
	Annotations: ClassVar[dict[int, dict[str, Any]]] = {}

	@staticmethod
	def Meta(scope: Any, *, strict: bool = False) -> dict[str, Any]:
		"""Returns the dictionary of meta attributes for the given value."""
		if isinstance(scope, type):
			if not hasattr(scope, "__dirserve__"):
				setattr(scope, "__dirserve__", {})
			return cast(dict[str, Any], getattr(scope, "__dirserve__"))
		else:
			if hasattr(scope, "__dict__"):
				return cast(dict[str, Any], scope.__dict__)
			elif strict:
				raise RuntimeError(f"Metadata cannot be attached to object: {scope}")
			else:
				sid = id(scope)
				if sid not in Decorated.Annotations:
					Decorated.Annotations[sid] = {}
				return Decorated.Annotations[sid]


def on(
	priority: int = 0, **methods: Union[str, list[str], tuple[str, ...]]
) -> Callable[[T], T]:
	"""The @on decorator marks a service method as the handler of HTTP
	requests matching the given route templates.

	It takes HTTP methods as keyword arguments (joined with `_` to bind
	several at once, as in `GET_HEAD`), each with one or more URI patterns
	(see `Route`):

	>    @on(GET_HEAD=("", "/{path:any}"))
	>    def read(self, request, path=""):
	>        ...

	The decorated method takes the `request` and the pattern parameters,
	and must return a response, typically created through the request's
	`respond*` methods. Higher priorities win when several routes match."""

	def decorator(function: T) -> T:
		meta = Decorated.Meta(function)
		v = meta.setdefault(Decorated.ON, [])
		meta.setdefault(Decorated.ON_PRIORITY, priority)
		for http_methods, url in list(methods.items()):
			urls = (url,) if type(url) not in (list, tuple) else url
			for http_method in http_methods.upper().split("_"):
				for _ in urls:
					v.append((http_method, _))
		return function

	return decorator


# EOF
