import pytest

from conftest import makeRequest, process

from dirserve.decorators import on
from dirserve.http.model import HTTPRequestError
from dirserve.model import Application, Service, mount
from dirserve.routing import Dispatcher, Handler, Route
from dirserve.services.health import HealthService

ROUTES = {
    "post": (["post"], ["", "/post", "post/", "poster"]),
    "post/": (["post/"], ["", "/post/", "/post", "poster/"]),
    "post/{id}": (["post/a", "post/ab"], ["", "post/", "/post", "post/a/"]),
    "/files/{path:any}": (["/files/", "/files/a/b.txt"], ["/files", "/other/"]),
    "/_/style.css": (["/_/style.css"], ["/_/styleXcss", "/a/style.css"]),
}


@pytest.mark.parametrize("route", ROUTES)
def test_route_match(route):
    matching, not_matching = ROUTES[route]
    r = Route(route)
    for path in matching:
        assert r.match(path) is not None, f"{path!r} should match {r}"
    for path in not_matching:
        assert r.match(path) is None, f"{path!r} should not match {r}"


def test_route_parameters():
    assert Route("/post/{id}").match("/post/a-b") == {"id": "a-b"}
    assert Route("/page/{n:int}").match("/page/-2") == {"n": -2}
    assert Route("/files/{path:any}").match("/files/") == {"path": ""}


def test_route_unknown_pattern():
    with pytest.raises(ValueError):
        Route("/post/{id:nothing}")


class Sample(Service):
    @on(GET_HEAD="/{path:any}")
    def anything(self, request, path):
        return request.respondText(f"any:{path}")

    @on(GET="/special", priority=5)
    def special(self, request):
        return request.respondText("special")

    @on(GET="/fail")
    def fail(self, request):
        raise HTTPRequestError("Nope", status=403)


def test_handlers_are_collected():
    handlers = Sample().handlers
    assert len(handlers) == 3
    methods = {k for h in handlers for k in h.methods}
    assert methods == {"GET", "HEAD"}


def test_priority_wins():
    app = Application([Sample()])
    assert process(app, makeRequest("GET", "/special")).read() == b"special"
    assert process(app, makeRequest("GET", "/other")).read() == b"any:other"
    assert process(app, makeRequest("HEAD", "/special")).read() == b"any:special"


def test_request_error_becomes_response():
    res = process(Application([Sample()]), makeRequest("GET", "/fail"))
    assert res.status == 403
    assert res.read() == b"Nope"


def test_route_not_found():
    app = mount(HealthService())
    res = process(app, makeRequest("GET", "/missing"))
    assert res.status == 404
    post = makeRequest("POST", "/healthz", {"Content-Length": "0"})
    assert process(app, post).status == 404


def test_prefix_is_prepended():
    dispatcher = Dispatcher()
    handler = Handler(lambda request: None, [("GET", ""), ("GET", "/{path:any}")])
    dispatcher.register(handler, "/files/")
    assert [_.text for _ in dispatcher.routes["GET"]] == ["/files", "/files/{path:any}"]
    assert dispatcher.match("GET", "/files")[0] is not None
    assert dispatcher.match("GET", "/files/a.txt")[1] == {"path": "a.txt"}
    assert dispatcher.match("GET", "/elsewhere") == (None, None)
    assert dispatcher.match("PUT", "/files") == (None, None)


def test_last_registered_route_wins_on_ties():
    first = Handler(lambda request: "first", [("GET", "/{path:any}")])
    second = Handler(lambda request: "second", [("GET", "/fail")])
    dispatcher = Dispatcher().register(first).register(second)
    assert dispatcher.match("GET", "/fail")[0].handler is second
    assert dispatcher.match("GET", "/other")[0].handler is first
    dispatcher = Dispatcher().register(second).register(first)
    assert dispatcher.match("GET", "/fail")[0].handler is first


def test_service_cannot_be_mounted_twice():
    service = HealthService()
    mount(service)
    with pytest.raises(RuntimeError):
        mount(service)


# EOF
