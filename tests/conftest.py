"""Pytest configuration for psnoti tests."""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from psnoti.dispatcher import DispatchResult
from psnoti.run_context import RunContext


# =============================================================================
# Mock psbot sink
# =============================================================================


class MockSink:
    """In-process stand-in for psbot.

    Records every request and tracks how many were in flight at once.

    Usage:
        async def test_something(sink):
            sink.status = 500
            result = await dispatch(sink.url, "ua", payload)
            assert len(sink.requests) == 1
    """

    def __init__(self):
        self.url = None
        self.status = 200
        self.delay = 0.0
        self.requests = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def handle(self, request):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            body = await request.json()
            self.requests.append({"headers": dict(request.headers), "body": body})
            if self.delay:
                await asyncio.sleep(self.delay)
            return web.Response(status=self.status, text="ok")
        finally:
            self.in_flight -= 1

    @property
    def bodies(self):
        return [r["body"] for r in self.requests]


@pytest_asyncio.fixture
async def sink():
    """A running MockSink; POST to sink.url."""
    mock = MockSink()
    app = web.Application()
    app.router.add_post("/play", mock.handle)
    server = TestServer(app)
    await server.start_server()
    mock.url = str(server.make_url("/play"))
    yield mock
    await server.close()


# =============================================================================
# Fake dispatchers
# =============================================================================


class RecordingDispatcher:
    """Dispatcher stand-in that records payloads and detects overlapping calls."""

    def __init__(self, success=True, delay=0.0):
        self.success = success
        self.delay = delay
        self.payloads = []
        self.in_flight = 0
        self.overlapped = False
        self.sessions = []

    async def __call__(self, endpoint, useragent, payload, timeout, session=None):
        if self.in_flight:
            self.overlapped = True
        self.in_flight += 1
        try:
            self.payloads.append(payload)
            self.sessions.append(session)
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.success:
                return DispatchResult(success=True, status=200)
            return DispatchResult(success=False, status=500, error="boom")
        finally:
            self.in_flight -= 1


@pytest.fixture
def recorder():
    return RecordingDispatcher()


@pytest.fixture
def failing_recorder():
    return RecordingDispatcher(success=False)


@pytest.fixture
def context():
    return RunContext("http://psbot.invalid/play", "guild-1", timeout=timedelta(seconds=1))


@pytest.fixture
def slow_recorder():
    """Successful dispatcher that takes 50ms per call."""
    return RecordingDispatcher(delay=0.05)
