"""Shared fixtures: fake requests sessions that record outbound calls."""

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests
from fastapi.testclient import TestClient

from tutor_proxy.config import Settings
from tutor_proxy.main import create_app


class FakeResponse:
    def __init__(self, status_code=200, body=None, content=None):
        self.status_code = status_code
        if content is None:
            content = json.dumps(body).encode("utf-8") if body is not None else b""
        self.content = content
        self.closed = False

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return self.content.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.content)

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSession:
    """Returns (or raises) queued results in order; the last one repeats."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.responses = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        self.responses.append(result)
        return result


def completion(content="Hello from the tutor", model="meta/llama-4-maverick-17b-128e-instruct"):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class TrickleHandler(BaseHTTPRequestHandler):
    """Sends a 200 with a JSON body one byte at a time, noting when the client hangs up."""

    body = json.dumps(completion("slowly streamed")).encode("utf-8")
    delay = 0.05
    disconnected = None

    def do_POST(self):
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            for i in range(len(self.body)):
                self.wfile.write(self.body[i:i + 1])
                self.wfile.flush()
                time.sleep(self.delay)
        except (BrokenPipeError, ConnectionResetError):
            self.disconnected.set()

    def log_message(self, format, *args):
        pass


@pytest.fixture
def trickle_server():
    """Local upstream that needs several seconds to deliver its body."""
    disconnected = threading.Event()
    handler = type("Handler", (TrickleHandler,), {"disconnected": disconnected})
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/v1/chat/completions", disconnected
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def local_session():
    session = requests.Session()
    session.trust_env = False  # never route 127.0.0.1 through an environment proxy
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(api_key="test-key", upstream_timeout=12.0, client_timeout=15.0)


@pytest.fixture
def make_client(settings):
    """Build a TestClient around the proxy app with a fake upstream session."""

    def _make(*results, settings=settings):
        session = FakeSession(*results)
        app = create_app(settings, session=session)
        return TestClient(app), session

    return _make
