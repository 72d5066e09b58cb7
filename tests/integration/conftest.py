import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterator

import pytest
from dotenv import find_dotenv, load_dotenv

# Cargar .env lo más temprano posible (antes de pytest_collection_modifyitems)
load_dotenv(find_dotenv(usecwd=True))

ENV_TEST_URL = "EVENTSOURCE_TEST_URL"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    url = os.getenv(ENV_TEST_URL)
    for item in items:
        if "integration" in item.keywords and not url:
            item.add_marker(pytest.mark.skip(reason=f"{ENV_TEST_URL} is not set in the environment/.env"))


class ScriptedServer:
    """
    Local HTTP server answering each request with the next scripted reply.

    A reply is ``(status, content_type or None, body bytes)``; the connection
    is closed after the body, which the client sees as a clean end of stream.
    """

    def __init__(self, replies: list[tuple[int, str | None, bytes]]) -> None:
        self.replies = list(replies)
        self.requests: list[dict[str, str]] = []
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                server.requests.append({k.lower(): v for k, v in self.headers.items()})
                status, content_type, body = server.replies.pop(0)
                self.send_response(status)
                if content_type is not None:
                    self.send_header("Content-Type", content_type)
                self.send_header("Cache-Control", "no-cache")
                self.end_headers()
                self.wfile.write(body)
                self.wfile.flush()

            def log_message(self, format: str, *args: object) -> None:
                pass

        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}/events"

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()


@pytest.fixture
def scripted_server() -> Iterator:
    servers: list[ScriptedServer] = []

    def factory(replies: list[tuple[int, str | None, bytes]]) -> ScriptedServer:
        s = ScriptedServer(replies)
        s.start()
        servers.append(s)
        return s

    yield factory

    for s in servers:
        s.stop()
