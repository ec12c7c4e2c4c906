"""Command-line interface: one resilient request from the shell"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import orjson
from loguru import logger

from . import __version__
from .cancellation import RequestContext
from .client import Client
from .config import BACKOFF_STEP, DEFAULT_DUMP_DIR, DEFAULT_MAX_ATTEMPTS, DEFAULT_REQUEST_TIMEOUT
from .exceptions import ScraperError
from .logging_config import setup_logging
from .parser import decode_json


class KeyValueAction(argparse.Action):
    """Collect repeated KEY<sep>VALUE arguments into a list of pairs"""

    def __init__(self, option_strings, dest, separator: str = "=", **kwargs):
        self.separator = separator
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        key, sep, value = values.partition(self.separator)
        if not sep or not key.strip():
            parser.error(f"{option_string} expects KEY{self.separator}VALUE, got {values!r}")

        if getattr(namespace, self.dest, None) is None:
            setattr(namespace, self.dest, [])
        getattr(namespace, self.dest).append((key.strip(), value.strip()))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrapekit",
        description="Resilient HTTP requests with retries and transaction dumps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    request_group = parser.add_argument_group("Request")
    request_group.add_argument("url", nargs="?", help="Target URL")
    request_group.add_argument(
        "--param", dest="params", action=KeyValueAction, metavar="KEY=VALUE",
        help="Query parameter (repeatable)",
    )
    request_group.add_argument(
        "--header", dest="headers", action=KeyValueAction, separator=":", metavar="'NAME: VALUE'",
        help="Request header (repeatable)",
    )
    body_group = request_group.add_mutually_exclusive_group()
    body_group.add_argument(
        "--form", dest="form", action=KeyValueAction, metavar="KEY=VALUE",
        help="POST a URL-encoded form field (repeatable)",
    )
    body_group.add_argument("--json-body", type=str, help="POST this JSON document")
    request_group.add_argument(
        "--parse-json", action="store_true", help="Decode the response as JSON and pretty-print it"
    )
    body_group.add_argument("--output", type=str, help="Save the response body of a GET to this file")
    request_group.add_argument(
        "--ext-ip", action="store_true", help="Print the external address and exit"
    )

    client_group = parser.add_argument_group("Client")
    client_group.add_argument("--user-agent", type=str, help="User-Agent header")
    client_group.add_argument("--proxy", type=str, help="Proxy URL")
    client_group.add_argument(
        "--max-attempts", type=int, default=DEFAULT_MAX_ATTEMPTS,
        help=f"Attempts per request (default: {DEFAULT_MAX_ATTEMPTS})",
    )
    client_group.add_argument(
        "--timeout", type=float, default=DEFAULT_REQUEST_TIMEOUT,
        help=f"Per-attempt timeout in seconds (default: {DEFAULT_REQUEST_TIMEOUT:g})",
    )
    client_group.add_argument(
        "--deadline", type=float, help="Give up the whole request after this many seconds"
    )
    client_group.add_argument("--dump", action="store_true", help="Dump every attempt to disk")
    client_group.add_argument(
        "--dump-dir", type=str, default=str(DEFAULT_DUMP_DIR), help="Dump directory"
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument("--verbose", action="store_true", help="Debug logging")
    config_group.add_argument("--log-file", type=str, help="Log file path")

    return parser


def _pairs(values: Optional[List[Tuple[str, str]]]) -> Optional[List[Tuple[str, str]]]:
    return list(values) if values else None


async def run_request(client: Client, args: argparse.Namespace) -> Any:
    """
    Perform the request described by ``args``.

    Returns:
        bytes, a decoded JSON value, a saved Path, or the external address string
    """
    context = RequestContext(timeout=args.deadline) if args.deadline else None
    headers = dict(args.headers) if args.headers else None

    if args.ext_ip:
        return await client.ext_ip_info(context=context)

    if args.output:
        return await client.get_file(
            args.url, args.output, params=_pairs(args.params), headers=headers, context=context
        )

    if args.form:
        body = await client.post_form(args.url, args.form, headers=headers, context=context)
    elif args.json_body is not None:
        try:
            data = orjson.loads(args.json_body)
        except orjson.JSONDecodeError as e:
            raise ScraperError(f"--json-body is not valid JSON: {e}") from e
        body = await client.post_json(args.url, data, headers=headers, context=context)
    else:
        body = await client.get(args.url, params=_pairs(args.params), headers=headers, context=context)

    if args.parse_json:
        return decode_json(body)
    return body


def _print_result(result: Any) -> None:
    if isinstance(result, bytes):
        sys.stdout.buffer.write(result)
        sys.stdout.buffer.flush()
    elif isinstance(result, (str, Path)):
        print(result)
    else:
        print(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode("utf-8"))


def main() -> None:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args()

    if not args.url and not args.ext_ip:
        parser.error("a URL is required unless --ext-ip is given")
    if args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")

    setup_logging(verbose=args.verbose, log_file=Path(args.log_file) if args.log_file else None)

    async def run():
        async with Client(
            dump=args.dump,
            dump_dir=args.dump_dir,
            user_agent=args.user_agent,
            proxy_url=args.proxy,
            max_attempts=args.max_attempts,
            timeout=args.timeout,
            backoff_step=BACKOFF_STEP,
        ) as client:
            return await run_request(client, args)

    try:
        result = asyncio.run(run())
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(130)
    except ScraperError as e:
        logger.error(f"Request failed: {e}")
        sys.exit(1)

    _print_result(result)


if __name__ == "__main__":
    main()
