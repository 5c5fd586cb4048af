"""HTTP endpoint serving the scrape output and a landing page."""

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST

from .registry import Registry

METRICS_PATH = "/metrics"

LANDING_PAGE = f"""<html>
<head><title>RabbitMQ Exporter</title></head>
<body>
<h1>RabbitMQ Exporter</h1>
<p><a href='{METRICS_PATH}'>Metrics</a></p>
</body>
</html>
""".encode("utf-8")


def make_handler(registry: Registry, logger: logging.Logger):
    """Build a request handler class bound to a registry."""

    class ExporterHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            path = self.path.split("?", 1)[0]
            if path == METRICS_PATH:
                body = registry.render()
                content_type = CONTENT_TYPE_LATEST
            else:
                body = LANDING_PAGE
                content_type = "text/html; charset=utf-8"

            self.send_response(200)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            logger.debug(format % args)

    return ExporterHandler


class ScrapeServer:
    """Threaded HTTP server for scrapes, running beside the poll loops."""

    def __init__(
        self,
        registry: Registry,
        port: int,
        host: str = "0.0.0.0",
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.host = host
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)
        self._server = ThreadingHTTPServer((host, port), make_handler(registry, self.logger))
        self._server.daemon_threads = True
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="scrape-server", daemon=True
        )
        self._thread.start()
        self.logger.info(f"Starting RabbitMQ exporter on port: {self.port}.")

    def stop(self) -> None:
        if self._thread is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._thread.join()
        self._thread = None
        self.logger.info("Scrape server stopped")
