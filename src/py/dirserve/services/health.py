from ..decorators import on
from ..http.model import HTTPRequest, HTTPResponse
from ..model import Service


class HealthService(Service):
	"""Answers liveness probes, independently of the served root."""

	PATH: str = "/healthz"

	@on(GET_HEAD=PATH, priority=10)
	def health(self, request: HTTPRequest) -> HTTPResponse:
		return request.respondText("OK")


# EOF
