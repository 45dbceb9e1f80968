import json

import pytest
import requests

from src.utils.errors import NotFound, ParseStructure
from src.utils.http_client import DocumentFetcher, HttpSettings


class FakeResponse:
    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.encoding = "utf-8"
        self.closed = False

    def json(self):
        return json.loads(self.content.decode("utf-8"))

    def close(self):
        self.closed = True


class FakeSession:
    """Routes by URL; a list value is consumed one item per call, exceptions are raised."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []
        self.responses = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        route = self.routes.get(url, FakeResponse(404))
        if isinstance(route, list):
            route = route.pop(0)
        if isinstance(route, Exception):
            raise route
        self.responses.append(route)
        return route


def _fetcher(routes, **settings):
    sleeps = []
    opts = {"rate_limit_seconds": 0.0, "retry_delay_seconds": 0.25}
    opts.update(settings)
    f = DocumentFetcher(session=FakeSession(routes), settings=HttpSettings(**opts), sleep=sleeps.append)
    return f, sleeps


def test_first_successful_candidate_wins():
    f, _ = _fetcher({"https://x.test/b.pdf": FakeResponse(200, b"%PDF")})
    doc = f.fetch(["https://x.test/a.pdf", "https://x.test/b.pdf", "https://x.test/c.pdf"])
    assert doc.url == "https://x.test/b.pdf"
    assert doc.content == b"%PDF"
    # short-circuit: third candidate never requested
    assert [c[1] for c in f.session.calls] == ["https://x.test/a.pdf", "https://x.test/b.pdf"]
    assert all(r.closed for r in f.session.responses)


def test_all_candidates_failing_lists_attempts():
    f, _ = _fetcher({})
    with pytest.raises(NotFound) as ei:
        f.fetch(["https://x.test/a", "https://x.test/b"])
    assert ei.value.attempted == ["https://x.test/a", "https://x.test/b"]


def test_relative_redirect_followed_and_hop_closed():
    hop = FakeResponse(302, headers={"Location": "/files/real.xlsx"})
    f, _ = _fetcher({
        "https://x.test/start": hop,
        "https://x.test/files/real.xlsx": FakeResponse(200, b"xlsx"),
    })
    doc = f.fetch(["https://x.test/start"])
    assert doc.url == "https://x.test/files/real.xlsx"
    assert hop.closed
    assert all(c[2]["allow_redirects"] is False for c in f.session.calls)


class DrainTrackingResponse(FakeResponse):
    """Records whether the body was read while the response was still open."""

    def __init__(self, status_code, body, headers):
        super().__init__(status_code, headers=headers)
        self._body = body
        self.read_while_open = False

    @property
    def content(self):
        self.read_while_open = self.read_while_open or not self.closed
        return self._body

    @content.setter
    def content(self, value):
        self._body = value


def test_redirect_hop_body_drained_before_close():
    hop = DrainTrackingResponse(302, b"<html>moved</html>", {"Location": "https://x.test/final"})
    f, _ = _fetcher({
        "https://x.test/start": hop,
        "https://x.test/final": FakeResponse(200, b"data"),
    })
    doc = f.fetch(["https://x.test/start"])
    assert doc.content == b"data"
    assert hop.read_while_open
    assert hop.closed


def test_redirect_loop_bounded():
    f, _ = _fetcher(
        {
            "https://x.test/a": FakeResponse(301, headers={"Location": "https://x.test/b"}),
            "https://x.test/b": FakeResponse(301, headers={"Location": "https://x.test/a"}),
        },
        max_redirects=3,
    )
    with pytest.raises(NotFound):
        f.fetch(["https://x.test/a"])
    assert len(f.session.calls) == 4


def test_transient_error_retried_once():
    f, sleeps = _fetcher({
        "https://x.test/a": [requests.ConnectionError("reset"), FakeResponse(200, b"ok")],
    })
    doc = f.fetch(["https://x.test/a"])
    assert doc.content == b"ok"
    assert sleeps == [0.25]


def test_transient_error_twice_moves_to_next_candidate():
    f, _ = _fetcher({
        "https://x.test/a": [requests.Timeout("slow"), requests.Timeout("slow")],
        "https://x.test/b": FakeResponse(200, b"ok"),
    })
    assert f.fetch(["https://x.test/a", "https://x.test/b"]).url == "https://x.test/b"


def test_fetch_json_post_sends_body():
    f, _ = _fetcher({"https://api.test/t": FakeResponse(200, b'{"value": [1]}')})
    assert f.fetch_json("https://api.test/t", method="post", body={"q": 1}) == {"value": [1]}
    method, _, kwargs = f.session.calls[0]
    assert method == "POST"
    assert kwargs["json"] == {"q": 1}
    assert kwargs["headers"]["User-Agent"] == "EV-Tracker/1.0"


def test_fetch_json_errors():
    f, _ = _fetcher({
        "https://api.test/missing": FakeResponse(400, b"{}"),
        "https://api.test/html": FakeResponse(200, b"<html>"),
    })
    with pytest.raises(NotFound):
        f.fetch_json("https://api.test/missing")
    with pytest.raises(ParseStructure):
        f.fetch_json("https://api.test/html")


def test_fetch_json_gives_up_after_one_retry():
    f, sleeps = _fetcher({"https://api.test/t": [requests.ConnectionError("x"), requests.ConnectionError("x")]})
    with pytest.raises(NotFound):
        f.fetch_json("https://api.test/t")
    assert len(sleeps) == 1


def test_pause_uses_rate_limit():
    f, sleeps = _fetcher({}, rate_limit_seconds=0.5)
    f.pause()
    assert sleeps == [0.5]
