import io
import unittest

from easy_http.address import parse_url
from easy_http.errors import InvalidHeaderError, ResponseParseError, TooLargeError
from easy_http.wire import (
    MAX_HEADER_LINES,
    ResponseHead,
    encode_request,
    read_response_body,
    read_response_head,
    request_headers,
    validate_header,
)


def read_all(raw: bytes, method: str = "GET", max_size: int = 1024, truncate: bool = False):
    stream = io.BytesIO(raw)
    head = read_response_head(stream)
    return head, read_response_body(stream, head, method, max_size, truncate)


class TestRequestEncoding(unittest.TestCase):
    def test_request_line_and_headers(self):
        url = parse_url("http://example.com:8080/a?b=1")
        headers = request_headers(url, {"Accept": "text/plain"}, None, "agent/1.0")

        data = encode_request("GET", url, headers)

        self.assertEqual(
            data,
            b"GET /a?b=1 HTTP/1.1\r\n"
            b"Host: example.com:8080\r\n"
            b"Accept: text/plain\r\n"
            b"User-Agent: agent/1.0\r\n"
            b"Connection: close\r\n"
            b"\r\n",
        )

    def test_user_agent_is_not_duplicated(self):
        url = parse_url("http://example.com/")
        headers = request_headers(url, {"user-agent": "custom"}, None, "agent/1.0")

        agents = [value for name, value in headers if name.lower() == "user-agent"]
        self.assertEqual(agents, ["custom"])

    def test_body_headers_are_computed(self):
        url = parse_url("http://example.com/")
        headers = request_headers(
            url,
            {"Content-Length": "999", "Host": "spoofed", "X-Id": "7"},
            ("application/json", b'{"a": 1}'),
            "agent/1.0",
        )

        as_dict = dict(headers)
        self.assertEqual(as_dict["Host"], "example.com")
        self.assertEqual(as_dict["Content-Type"], "application/json")
        self.assertEqual(as_dict["Content-Length"], "8")
        self.assertEqual(as_dict["X-Id"], "7")
        self.assertEqual(len([n for n, _ in headers if n.lower() == "content-length"]), 1)

        data = encode_request("POST", url, headers, b'{"a": 1}')
        self.assertTrue(data.endswith(b'\r\n\r\n{"a": 1}'))

    def test_invalid_headers_are_rejected(self):
        for name, value in (
            ("Bad Name", "x"),
            ("", "x"),
            ("X-Split", "a\r\nInjected: 1"),
            ("X-Unicode", "snowman ☃"),
        ):
            with self.subTest(name=name):
                with self.assertRaises(InvalidHeaderError):
                    validate_header(name, value)


class TestResponseHead(unittest.TestCase):
    def test_status_and_headers(self):
        head, _ = read_all(
            b"HTTP/1.1 404 Not Found\r\n"
            b"Content-Type: text/plain\r\n"
            b"Set-Cookie: a=1\r\n"
            b"set-cookie: b=2\r\n"
            b"Content-Length: 0\r\n"
            b"\r\n"
        )

        self.assertEqual(head.status_code, 404)
        self.assertEqual(head.reason, "Not Found")
        self.assertEqual(head.headers["content-type"], "text/plain")
        self.assertEqual(head.headers["set-cookie"], "a=1, b=2")

    def test_interim_responses_are_skipped(self):
        head, body = read_all(
            b"HTTP/1.1 100 Continue\r\n\r\n"
            b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nok"
        )

        self.assertEqual(head.status_code, 200)
        self.assertEqual(body, b"ok")

    def test_missing_reason_phrase(self):
        head, _ = read_all(b"HTTP/1.0 204\r\n\r\n")

        self.assertEqual(head.status_code, 204)
        self.assertEqual(head.reason, "")

    def test_folded_header_is_joined(self):
        head, _ = read_all(b"HTTP/1.1 204 No Content\r\nX-Long: first\r\n  second\r\n\r\n")

        self.assertEqual(head.headers["x-long"], "first second")

    def test_malformed_heads(self):
        for raw in (
            b"",
            b"ICY 200 OK\r\n\r\n",
            b"HTTP/1.1 2000 OK\r\n\r\n",
            b"HTTP/1.1 200 OK\r\nNoColonHere\r\n\r\n",
            b"HTTP/1.1 200 OK\r\n folded-first\r\n\r\n",
            b"HTTP/1.1 200 OK\r\nContent-Length: 1\r\n",
        ):
            with self.subTest(raw=raw):
                with self.assertRaises(ResponseParseError):
                    read_response_head(io.BytesIO(raw))

    def test_too_many_header_lines(self):
        lines = b"".join(b"X-H%d: v\r\n" % i for i in range(MAX_HEADER_LINES + 1))

        with self.assertRaises(ResponseParseError):
            read_response_head(io.BytesIO(b"HTTP/1.1 200 OK\r\n" + lines + b"\r\n"))


class TestResponseBody(unittest.TestCase):
    def test_content_length_body(self):
        _, body = read_all(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello-extra")

        self.assertEqual(body, b"hello")

    def test_chunked_body_with_extension_and_trailer(self):
        _, body = read_all(
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"5;name=value\r\nhello\r\n"
            b"7\r\n, world\r\n"
            b"0\r\nX-Trailer: 1\r\n\r\n"
        )

        self.assertEqual(body, b"hello, world")

    def test_body_until_close(self):
        _, body = read_all(b"HTTP/1.0 200 OK\r\n\r\nstreamed until close")

        self.assertEqual(body, b"streamed until close")

    def test_head_and_no_content_have_no_body(self):
        _, body = read_all(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello", method="HEAD")
        self.assertEqual(body, b"")

        _, body = read_all(b"HTTP/1.1 304 Not Modified\r\n\r\nignored")
        self.assertEqual(body, b"")

    def test_body_equal_to_limit_is_accepted(self):
        _, body = read_all(b"HTTP/1.1 200 OK\r\nContent-Length: 4\r\n\r\nabcd", max_size=4)

        self.assertEqual(body, b"abcd")

    def test_declared_length_above_limit_fails(self):
        with self.assertRaises(TooLargeError):
            read_all(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n0123456789", max_size=4)

    def test_chunked_and_close_bodies_above_limit_fail(self):
        for raw in (
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n3\r\nabc\r\n3\r\ndef\r\n0\r\n\r\n",
            b"HTTP/1.0 200 OK\r\n\r\nabcdef",
        ):
            with self.subTest(raw=raw):
                with self.assertRaises(TooLargeError):
                    read_all(raw, max_size=4)

    def test_truncate_mode_cuts_at_limit(self):
        for raw in (
            b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n0123456789",
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n3\r\n012\r\n7\r\n3456789\r\n0\r\n\r\n",
            b"HTTP/1.0 200 OK\r\n\r\n0123456789",
        ):
            with self.subTest(raw=raw):
                _, body = read_all(raw, max_size=4, truncate=True)
                self.assertEqual(body, b"0123")

    def test_framing_errors(self):
        for raw in (
            b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\nshort",
            b"HTTP/1.1 200 OK\r\nContent-Length: -1\r\n\r\n",
            b"HTTP/1.1 200 OK\r\nContent-Length: 3, 4\r\n\r\nabcd",
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\nzz\r\n",
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n3\r\nabcX\r\n0\r\n\r\n",
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n3\r\nab",
        ):
            with self.subTest(raw=raw):
                with self.assertRaises(ResponseParseError):
                    read_all(raw)

    def test_repeated_equal_content_length_is_accepted(self):
        head = ResponseHead(status_code=200, headers={"content-length": "3, 3"})

        body = read_response_body(io.BytesIO(b"abc"), head, "GET", 10)

        self.assertEqual(body, b"abc")


if __name__ == "__main__":
    unittest.main()
