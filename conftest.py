import logging
import threading

import pytest

from mockhttp.console import LOGGER_NAME
from mockhttp.run_server import MockHTTPServer, build_routes


@pytest.fixture
def start_server():
    """Start a mock server on a free port and return its base URL."""
    servers = []

    def _start(**kwargs):
        httpd = MockHTTPServer(("127.0.0.1", 0), build_routes(), **kwargs)
        thread = threading.Thread(target=httpd.serve_forever, daemon=True)
        thread.start()
        servers.append((httpd, thread))
        return f"http://127.0.0.1:{httpd.server_address[1]}"

    yield _start

    for httpd, thread in servers:
        httpd.shutdown()
        httpd.server_close()
        thread.join(timeout=5)


@pytest.fixture
def base_url(start_server):
    return start_server()


@pytest.fixture
def clean_logger():
    """Undo setup_logging() so other tests see the default logger."""
    yield logging.getLogger(LOGGER_NAME)
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
