"""Tests for the capture adapter that do not need a browser."""

import asyncio

from capture import NetworkRecorder, PageCapture
from common.models import RawJsonResponse


class FakeResponse:
    def __init__(self, url, content_type, body=None, error=None):
        self.url = url
        self.headers = {"content-type": content_type}
        self._body = body
        self._error = error

    async def json(self):
        if self._error is not None:
            raise self._error
        return self._body


class FakeEventPage:
    def __init__(self):
        self.handlers = {}

    def on(self, event, handler):
        self.handlers[event] = handler


class TestNetworkRecorder:
    def test_records_json_bodies(self):
        async def scenario():
            page = FakeEventPage()
            recorder = NetworkRecorder()
            recorder.attach(page)
            handler = page.handlers["response"]
            handler(FakeResponse("https://x/api/lb", "application/json; charset=utf-8", {"leaderboard": []}))
            handler(FakeResponse("https://x/app.js", "text/javascript"))
            handler(FakeResponse("https://x/api/broken", "application/json", error=ValueError("bad body")))
            await recorder.drain()
            return recorder

        recorder = asyncio.run(scenario())
        assert recorder.api_calls == ["https://x/api/lb", "https://x/api/broken"]
        assert [r.url for r in recorder.responses] == ["https://x/api/lb"]
        assert recorder.responses[0].data == {"leaderboard": []}
        assert recorder.responses[0].timestamp is not None

    def test_drain_without_responses(self):
        asyncio.run(NetworkRecorder().drain())


class TestPageCapture:
    def test_to_input(self):
        capture = PageCapture(
            url="https://x/lb",
            html="<html></html>",
            markdown="text",
            api_calls=["https://x/api"],
            raw_json_responses=[RawJsonResponse(url="https://x/api", data={"a": 1})],
            screenshot=b"png",
        )
        data = capture.to_input(page="page", site_name="acme")
        assert data.api_calls == ("https://x/api",)
        assert data.raw_json_responses[0].data == {"a": 1}
        assert data.screenshot == b"png"
        assert data.page == "page"
        assert data.site_name == "acme"

    def test_to_dict_omits_screenshot(self):
        capture = PageCapture(url="https://x/lb", screenshot=b"png",
                              raw_json_responses=[RawJsonResponse(url="u", data=[1], timestamp=1.0)])
        data = capture.to_dict()
        assert "screenshot" not in data
        assert data["rawJsonResponses"] == [{"url": "u", "data": [1], "timestamp": 1.0}]
