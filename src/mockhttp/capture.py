"""Reading inbound requests and describing them as JSON."""
import json
import logging

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
MAX_CHUNK_LINE = 65536
BODY_CHUNK_SIZE = 64 * 1024


class ResponseError:
    """The ``{"error": ..., "details": ...}`` body sent on failures."""

    def __init__(self, error, details=""):
        self.error = error
        self.details = details

    def to_dict(self):
        return {"error": self.error, "details": self.details}

    def to_json(self):
        return json.dumps(self.to_dict())

    def __repr__(self):
        return f"ResponseError(error={self.error!r}, details={self.details!r})"


class MockServerError(Exception):
    """Base class for failures that end a single request."""

    status = 500

    def __init__(self, error, details=""):
        super().__init__(f"{error}: {details}" if details else error)
        self.response = ResponseError(error, details)


class RequestReadError(MockServerError):
    def __init__(self, details):
        super().__init__("Failed to read request body", details)


class BodyTooLargeError(MockServerError):
    status = 413

    def __init__(self, limit):
        super().__init__("Request body too large", f"limit is {limit} bytes")


def _check_size(size, max_size):
    if max_size is not None and size > max_size:
        raise BodyTooLargeError(max_size)


def _read_exact(stream, size):
    data = stream.read(size)
    if len(data) < size:
        raise RequestReadError(
            f"unexpected EOF: expected {size} bytes, got {len(data)}")
    return data


def _read_chunked(stream, max_size):
    chunks = []
    total = 0
    while True:
        line = stream.readline(MAX_CHUNK_LINE + 1)
        if not line:
            raise RequestReadError("unexpected EOF while reading chunk size")
        if len(line) > MAX_CHUNK_LINE:
            raise RequestReadError("chunk size line too long")
        size_field = line.split(b";", 1)[0].strip()
        try:
            size = int(size_field, 16)
        except ValueError:
            raise RequestReadError(f"invalid chunk size {size_field!r}") from None
        if size < 0:
            raise RequestReadError(f"invalid chunk size {size_field!r}")
        if size == 0:
            break
        total += size
        _check_size(total, max_size)
        chunks.append(_read_exact(stream, size))
        if _read_exact(stream, 2) != b"\r\n":
            raise RequestReadError("malformed chunk terminator")

    # Trailer section ends with an empty line
    while True:
        line = stream.readline(MAX_CHUNK_LINE + 1)
        if line in (b"\r\n", b"\n", b""):
            break
    return b"".join(chunks)


def _content_length(headers):
    length_header = headers.get("Content-Length")
    if length_header is None:
        return 0
    try:
        length = int(length_header)
    except ValueError:
        raise RequestReadError(f"invalid Content-Length {length_header!r}") from None
    if length < 0:
        raise RequestReadError(f"invalid Content-Length {length_header!r}")
    return length


def is_chunked(headers):
    return headers.get("Transfer-Encoding", "").strip().lower() == "chunked"


def iter_body(headers, stream, max_size=None, chunk_size=BODY_CHUNK_SIZE):
    """Yield the request body in pieces of at most ``chunk_size`` bytes.

    Chunked transfer encoding is decoded and yielded as a single piece.
    Raises ``RequestReadError`` when the body cannot be read and
    ``BodyTooLargeError`` when it is bigger than ``max_size``.
    """
    try:
        if is_chunked(headers):
            yield _read_chunked(stream, max_size)
            return

        length = _content_length(headers)
        _check_size(length, max_size)
        remaining = length
        while remaining > 0:
            data = stream.read(min(chunk_size, remaining))
            if not data:
                raise RequestReadError(
                    f"unexpected EOF: expected {length} bytes, got {length - remaining}")
            remaining -= len(data)
            yield data
    except OSError as e:
        raise RequestReadError(str(e)) from e


def read_body(headers, stream, max_size=None):
    """Read the whole request body into memory."""
    return b"".join(iter_body(headers, stream, max_size))


def _reject_constant(name):
    raise ValueError(f"invalid JSON constant {name}")


def parse_json_body(content_type, body):
    """Parse ``body`` as a JSON object when the content type says so.

    Bad JSON does not fail the request: the returned mapping then holds an
    ``error``/``details`` pair instead of the parsed object.
    """
    if content_type != JSON_CONTENT_TYPE:
        return {}
    try:
        parsed = json.loads(body.decode("utf-8"), parse_constant=_reject_constant)
    except ValueError as e:
        details = str(e)
    else:
        if parsed is None:
            return {}
        if isinstance(parsed, dict):
            return parsed
        details = f"expected a JSON object, got {type(parsed).__name__}"
    logger.warning("Failed to decode JSON body: %s", details)
    return {"error": "Failed to decode JSON body", "details": details}


def canonical_header_name(name):
    """``x-forwarded-for`` -> ``X-Forwarded-For``"""
    return "-".join(part.capitalize() for part in name.split("-"))


def group_headers(items):
    """Group ``(name, value)`` pairs by canonical name, keeping arrival order."""
    grouped = {}
    for name, value in items:
        grouped.setdefault(canonical_header_name(name), []).append(value)
    return grouped


def format_address(client_address):
    host, port = client_address[0], client_address[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def build_details(handler, body):
    """Snapshot of the request being served by ``handler``.

    ``handler`` is a ``BaseHTTPRequestHandler`` whose request line and
    headers have been parsed; ``body`` is what ``read_body`` returned.
    """
    headers = handler.headers
    return {
        "method": handler.command,
        "url": handler.path,
        "proto": handler.request_version,
        "host": headers.get("Host", ""),
        "remote_addr": format_address(handler.client_address),
        "request_uri": handler.path,
        "user_agent": headers.get("User-Agent", ""),
        "referer": headers.get("Referer", ""),
        "header": group_headers(headers.items()),
        "bodyText": body.decode("utf-8", errors="replace"),
        "bodyJson": parse_json_body(headers.get("Content-Type"), body),
    }
