import io

import pytest

from mockhttp.capture import (
    BodyTooLargeError,
    RequestReadError,
    ResponseError,
    canonical_header_name,
    format_address,
    group_headers,
    iter_body,
    parse_json_body,
    read_body,
)


def test_read_body_uses_content_length():
    stream = io.BytesIO(b"hello world and more")
    assert read_body({"Content-Length": "11"}, stream) == b"hello world"
    assert stream.read() == b" and more"


def test_read_body_without_length_is_empty():
    assert read_body({}, io.BytesIO(b"ignored")) == b""


def test_read_body_short_read_fails():
    with pytest.raises(RequestReadError) as excinfo:
        read_body({"Content-Length": "10"}, io.BytesIO(b"abc"))
    assert excinfo.value.response.error == "Failed to read request body"
    assert "expected 10 bytes" in excinfo.value.response.details
    assert excinfo.value.status == 500


@pytest.mark.parametrize("length", ["abc", "-1"])
def test_read_body_bad_content_length(length):
    with pytest.raises(RequestReadError):
        read_body({"Content-Length": length}, io.BytesIO(b"abc"))


def test_read_body_decodes_chunked():
    raw = b"5\r\nhello\r\n6;ext=1\r\n world\r\n0\r\nX-Trailer: yes\r\n\r\nNEXT"
    stream = io.BytesIO(raw)
    headers = {"Transfer-Encoding": "chunked"}
    assert read_body(headers, stream) == b"hello world"
    assert stream.read() == b"NEXT"


@pytest.mark.parametrize("raw", [
    b"zz\r\nhello\r\n0\r\n\r\n",
    b"5\r\nhel",
    b"5\r\nhelloXX0\r\n\r\n",
    b"",
])
def test_read_body_bad_chunked(raw):
    with pytest.raises(RequestReadError):
        read_body({"Transfer-Encoding": "chunked"}, io.BytesIO(raw))


def test_read_body_size_limit():
    with pytest.raises(BodyTooLargeError) as excinfo:
        read_body({"Content-Length": "11"}, io.BytesIO(b"hello world"), max_size=5)
    assert excinfo.value.status == 413

    raw = b"4\r\nabcd\r\n4\r\nefgh\r\n0\r\n\r\n"
    with pytest.raises(BodyTooLargeError):
        read_body({"Transfer-Encoding": "chunked"}, io.BytesIO(raw), max_size=6)

    assert read_body({"Content-Length": "5"}, io.BytesIO(b"hello"), max_size=5) == b"hello"


def test_read_body_wraps_os_errors():
    class BrokenStream:
        def read(self, size):
            raise ConnectionResetError("peer went away")

    with pytest.raises(RequestReadError) as excinfo:
        read_body({"Content-Length": "3"}, BrokenStream())
    assert "peer went away" in excinfo.value.response.details


def test_iter_body_yields_pieces():
    stream = io.BytesIO(b"a" * 10)
    pieces = list(iter_body({"Content-Length": "10"}, stream, chunk_size=4))
    assert pieces == [b"aaaa", b"aaaa", b"aa"]


def test_parse_json_body_object():
    assert parse_json_body("application/json", b'{"a": 1, "b": [true]}') == {"a": 1, "b": [True]}


@pytest.mark.parametrize("body", [b"not json", b"", b"[1, 2]", b'"text"', b"\xff\xfe", b'{"a": NaN}'])
def test_parse_json_body_errors_are_embedded(body):
    parsed = parse_json_body("application/json", body)
    assert set(parsed) == {"error", "details"}
    assert parsed["error"] == "Failed to decode JSON body"
    assert parsed["details"]


@pytest.mark.parametrize("content_type", [None, "text/plain", "application/json; charset=utf-8"])
def test_parse_json_body_other_content_types(content_type):
    assert parse_json_body(content_type, b'{"a": 1}') == {}


def test_canonical_header_name():
    assert canonical_header_name("content-type") == "Content-Type"
    assert canonical_header_name("X-API-KEY") == "X-Api-Key"
    assert canonical_header_name("Host") == "Host"


def test_group_headers_keeps_order():
    items = [("Accept", "a"), ("x-multi", "1"), ("X-Multi", "2"), ("Accept", "b")]
    assert group_headers(items) == {"Accept": ["a", "b"], "X-Multi": ["1", "2"]}


def test_format_address():
    assert format_address(("127.0.0.1", 5000)) == "127.0.0.1:5000"
    assert format_address(("::1", 5000, 0, 0)) == "[::1]:5000"


def test_response_error_json():
    error = ResponseError("Failed to read request body", "boom")
    assert error.to_json() == '{"error": "Failed to read request body", "details": "boom"}'


def test_parse_json_body_null_is_empty():
    assert parse_json_body("application/json", b"null") == {}
