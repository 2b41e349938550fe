import argparse
import http.server
import json
import logging
import socket
from http import HTTPStatus
from urllib.parse import parse_qs, urlsplit

from colorama import Fore

from . import configure
from .capture import (
    MockServerError,
    ResponseError,
    build_details,
    iter_body,
    read_body,
)
from .console import setup_logging
from .paths import LOG_FILE
from .storage import (
    MULTIPART_MEMORY_LIMIT,
    PersistenceError,
    is_multipart,
    save_multipart,
    save_raw,
)

logger = logging.getLogger(__name__)

METHOD_COLORS = {
    "GET": Fore.BLUE,
    "HEAD": Fore.BLUE,
    "POST": Fore.GREEN,
    "PUT": Fore.GREEN,
    "PATCH": Fore.GREEN,
    "DELETE": Fore.MAGENTA,
}


def get_primary_ip():
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
        finally:
            s.close()
        return ip
    except OSError:
        try:
            return socket.gethostbyname(socket.gethostname())
        except OSError:
            return "127.0.0.1"


# --- Route handlers ---

def echo(request):
    """Send the request body back unchanged."""
    body = request.read_body()
    request.send_body(HTTPStatus.OK, body, "text/plain")


def echo_details(request):
    """Describe the whole request as JSON."""
    body = request.read_body()
    details = build_details(request, body)
    try:
        data = json.dumps(details)
    except (TypeError, ValueError) as e:
        raise MockServerError("Failed to convert to JSON", str(e)) from e
    request.send_body(HTTPStatus.OK, data.encode("utf-8"), "application/json")


def write(request):
    """Save the body, or every uploaded file, under the ``path`` query parameter."""
    if request.command != "POST":
        request.discard_body()
        request.send_envelope(
            HTTPStatus.METHOD_NOT_ALLOWED,
            ResponseError("Invalid request method", f"{request.command} is not allowed, use POST"),
            extra_headers={"Allow": "POST"},
        )
        return

    query = parse_qs(urlsplit(request.path).query)
    dest = query.get("path", [""])[0]
    if not dest:
        request.discard_body()
        request.send_envelope(
            HTTPStatus.BAD_REQUEST,
            ResponseError("Missing 'path' query parameter"),
        )
        return

    content_type = request.headers.get("Content-Type", "")
    if is_multipart(content_type):
        chunks = request.iter_body()
        try:
            files = save_multipart(
                dest, request.headers, chunks, request.server.multipart_memory)
        except PersistenceError:
            request.discard_body(chunks)
            raise
        request.send_json(HTTPStatus.OK, {"message": "Files saved", "files": files})
    else:
        body = request.read_body()
        logger.info("Received request with length: %d", len(body))
        save_raw(dest, body)
        request.send_json(HTTPStatus.OK, {"message": "File saved"})


def build_routes():
    """Path -> handler table served by ``MockRequestHandler``."""
    return {
        "/echo": echo,
        "/echo/details": echo_details,
        "/write": write,
    }


class MockRequestHandler(http.server.BaseHTTPRequestHandler):
    server_version = "MockHTTP/1.0"

    def log_message(self, format, *args):
        """Route access lines into the server log, colored by method"""
        color = METHOD_COLORS.get(self.command, Fore.CYAN)
        logger.info("%s - %s", self.address_string(), format % args,
                    extra={"color": color})

    def log_error(self, format, *args):
        logger.warning("%s - %s", self.address_string(), format % args)

    def read_body(self):
        return read_body(self.headers, self.rfile, self.server.max_body_size)

    def iter_body(self):
        return iter_body(self.headers, self.rfile, self.server.max_body_size)

    def discard_body(self, chunks=None):
        """Drain the unread rest of the body so closing the socket doesn't reset the peer."""
        if chunks is None:
            chunks = self.iter_body()
        try:
            for _ in chunks:
                pass
        except MockServerError as e:
            logger.debug("Could not drain request body: %s", e)

    def send_body(self, status, body, content_type, extra_headers=None):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        for name, value in (extra_headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def send_json(self, status, payload):
        self.send_body(status, json.dumps(payload).encode("utf-8"), "application/json")

    def send_envelope(self, status, error, extra_headers=None):
        try:
            data = error.to_json().encode("utf-8")
        except (TypeError, ValueError):
            self.send_body(HTTPStatus.INTERNAL_SERVER_ERROR,
                           b"Failed to convert to JSON", "text/plain")
            return
        self.send_body(status, data, "application/json", extra_headers)

    def dispatch(self):
        route = self.server.routes.get(urlsplit(self.path).path)
        if route is None:
            self.send_error(HTTPStatus.NOT_FOUND)
            return

        try:
            route(self)
        except MockServerError as e:
            logger.error("%s %s failed: %s", self.command, self.path, e)
            self.send_envelope(e.status, e.response)
        except Exception as e:
            logger.exception("Error processing %s %s", self.command, self.path)
            self.send_envelope(HTTPStatus.INTERNAL_SERVER_ERROR,
                               ResponseError("Internal server error", str(e)))

    def __getattr__(self, name):
        # do_GET, do_PROPFIND, ...: every request method goes through dispatch
        if name.startswith("do_"):
            return self.dispatch
        raise AttributeError(name)


class MockHTTPServer(http.server.ThreadingHTTPServer):
    """One handler thread per connection; ``routes`` is fixed at construction."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address, routes, max_body_size=None,
                 multipart_memory=MULTIPART_MEMORY_LIMIT):
        self.routes = dict(routes)
        self.max_body_size = max_body_size
        self.multipart_memory = multipart_memory
        super().__init__(server_address, MockRequestHandler)


def make_server(config, routes):
    return MockHTTPServer(
        (config["host"], config["port"]),
        routes,
        max_body_size=config.get("max_body_size") or None,
        multipart_memory=config.get("multipart_memory", MULTIPART_MEMORY_LIMIT),
    )


def show_server_config(config):
    logger.info("Listen address: %s", config["host"])
    logger.info("Port: %s", config["port"])
    logger.info("Multipart memory limit: %s bytes", config["multipart_memory"])
    max_size = config.get("max_body_size")
    logger.info("Max body size: %s", f"{max_size} bytes" if max_size else "unlimited")


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Mock HTTP server that echoes, describes and saves requests",
        prog="mockhttp"
    )
    parser.add_argument('--host', help='Address to listen on')
    parser.add_argument('-p', '--port', type=int,
                        help='Port to listen on (overrides $MOCK_SERVER_PORT)')
    parser.add_argument('-c', '--config', dest='config_file',
                        help='Settings file (default: $MOCK_SERVER_CONFIG or config.json)')
    parser.add_argument('--log-file', default=LOG_FILE,
                        help=f'Log file, truncated on start (default: {LOG_FILE})')
    parser.add_argument('--configure', action='store_true',
                        help='Edit the settings file interactively and exit')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_arguments(argv)

    if args.configure:
        configure.main(args.config_file)
        return

    setup_logging(args.log_file)
    logger.info("--- Starting Mock HTTP Server ---")

    config = configure.load_config(args.config_file)
    if args.host:
        config["host"] = args.host
    if args.port is not None:
        config["port"] = args.port
    show_server_config(config)

    try:
        httpd = make_server(config, build_routes())
    except OSError as e:
        logger.error("Failed to start server: %s", e)
        return 1

    with httpd:
        logger.info("Starting server on %s:%s", config["host"], config["port"])
        logger.info("Local: http://localhost:%s", config["port"])
        logger.info("Network: http://%s:%s", get_primary_ip(), config["port"])
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down server...")


if __name__ == "__main__":
    raise SystemExit(main())
