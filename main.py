import argparse
import logging
import sys
from typing import Dict, List, Optional

from easy_http import settings
from easy_http.body import BinaryBody
from easy_http.errors import HttpRequestError
from easy_http.HttpRequest import HttpRequest, HttpRequestMethod
from easy_http.options import HttpRequestOptions


def _pairs(values: List[str], sep: str, what: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for item in values:
        key, found, value = item.partition(sep)
        if not found or not key.strip():
            raise argparse.ArgumentTypeError(f"Invalid {what} {item!r}; expected NAME{sep}VALUE")
        result[key.strip()] = value.strip()
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send one HTTP/HTTPS request and print the response.")
    parser.add_argument("url")
    parser.add_argument("-X", "--method", default=None, choices=[m.value for m in HttpRequestMethod])
    parser.add_argument("-H", "--header", action="append", default=[], help="'Name: value'")
    parser.add_argument("-q", "--query", action="append", default=[], help="key=value")
    parser.add_argument("-d", "--data", default=None, help="request body (implies POST)")
    parser.add_argument("--content-type", default="application/octet-stream")
    parser.add_argument("--max-size", type=int, default=settings.MAX_RESPONSE_BODY_SIZE)
    parser.add_argument("--max-redirects", type=int, default=settings.MAX_REDIRECT_COUNT)
    parser.add_argument("--timeout", type=int, default=settings.MAX_CONNECTION_TIME, help="milliseconds, 0 = none")
    parser.add_argument("--no-local", action="store_true", help="refuse local addresses")
    parser.add_argument("--truncate", action="store_true", help="truncate oversized bodies instead of failing")
    parser.add_argument("-i", "--include", action="store_true", help="print status line and headers")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        headers = _pairs(args.header, ":", "header")
        query = _pairs(args.query, "=", "query parameter")
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    method = args.method or ("POST" if args.data is not None else "GET")
    body = BinaryBody(args.content_type, args.data.encode("utf-8")) if args.data is not None else None

    try:
        options = HttpRequestOptions(
            max_response_body_size=args.max_size,
            max_redirect_count=args.max_redirects,
            max_connection_time=args.timeout,
            allow_local=settings.ALLOW_LOCAL and not args.no_local,
            truncate_response_body=args.truncate,
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        request = HttpRequest(
            method=method,
            url=args.url,
            query=query or None,
            headers=headers or None,
            body=body,
            options=options,
        )
        response = request.send()
    except HttpRequestError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.include:
        print(f"{response.status_code} {response.reason}".rstrip())
        for name, value in response.headers.items():
            print(f"{name}: {value}")
        print()

    sys.stdout.flush()
    sys.stdout.buffer.write(response.body)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
