"""Resilient HTTP client for scrapers"""

import inspect
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from bs4 import BeautifulSoup
from curl_cffi.requests import AsyncSession, Headers
from loguru import logger

from .builder import HeaderInput, build_request, merge_headers
from .cancellation import RequestContext
from .config import (
    BACKOFF_STEP,
    DEFAULT_DUMP_DIR,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_USER_AGENT,
    EXT_COUNTRY_URL,
    EXT_IP_URL,
)
from .dumper import TransactionDumper
from .error_guard import ErrorGuard
from .exceptions import (
    CancellationError,
    HandlerConflictError,
    HandlerFailure,
    HTTPStatusError,
    ScraperError,
    TransportError,
)
from .models import (
    Attempt,
    Canceled,
    ErrorContext,
    Failure,
    RequestOutcome,
    RequestState,
    Response,
    Success,
)
from .parser import decode_json, encode_json, parse_document
from .retry import backoff_delay, classify_error, is_retryable
from .storage import save_file
from .transport import CurlTransport, Transport
from .utils import Params, combine_url, encode_params

ErrorHandler = Callable[[ErrorContext], Optional[Awaitable[None]]]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


class Client:
    """
    HTTP client that turns one call into a supervised series of attempts:
    - Retries transport failures and error statuses with linear backoff
    - Runs a caller error handler on failures, one at a time per client
    - Stops immediately on cancellation or deadline
    - Dumps every attempt to disk when diagnostics are on
    - Shares one cookie jar between all requests until reset
    """

    def __init__(
        self,
        name: str = "scrapekit",
        dump: bool = False,
        dump_dir: Union[str, Path] = DEFAULT_DUMP_DIR,
        user_agent: Optional[str] = None,
        proxy_url: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        backoff_step: float = BACKOFF_STEP,
        transport: Optional[Transport] = None,
    ):
        """
        Initialize client.

        Args:
            name: Name used in log lines
            dump: Write a trace file for every attempt
            dump_dir: Parent of the per-session dump directory
            user_agent: Default User-Agent (a desktop Chrome string if empty)
            proxy_url: Proxy for every request
            max_attempts: Attempts per logical request
            timeout: Per-attempt timeout in seconds
            backoff_step: Backoff unit in seconds
            transport: Custom transport (a curl_cffi session by default)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        self.name = name
        self.id = str(int(time.time()))
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.proxy_url = proxy_url
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.backoff_step = backoff_step

        self.dump = dump
        self.dump_dir: Optional[Path] = None
        self.dumper: Optional[TransactionDumper] = None
        if dump:
            self.dump_dir = Path(dump_dir).absolute() / self.id
            try:
                self.dump_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            except OSError as e:
                raise ScraperError(f"failed to create dump directory: {e}") from e
            self.dumper = TransactionDumper(self.dump_dir)
            logger.info(f"📂 [{self.name}] Dump directory: {self.dump_dir}")

        self.transport: Transport = transport or CurlTransport(proxy_url=proxy_url, timeout=timeout)
        self.error_guard = ErrorGuard(name=name)
        self.error_handler: Optional[ErrorHandler] = None

        # One per attempt, never reused; names the dump files
        self.request_count = 0
        # URL of the last successful response
        self.current_url: Optional[str] = None

        logger.debug(
            f"[{self.name}] Client initialized: session={self.id}, "
            f"max_attempts={max_attempts}, proxy={proxy_url or 'none'}"
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    @property
    def session(self) -> Union[AsyncSession, Any]:
        """Raw transport handle for advanced configuration"""
        return self.transport.session

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        """
        Set the handler called after every failed attempt.

        The handler receives an ErrorContext and may be sync or async. It
        runs exclusively per client. Returning lets the request go on
        retrying; raising aborts it with HandlerFailure.
        """
        self.error_handler = handler

    def reset(self) -> None:
        """Forget all cookies and the current URL. Not safe during in-flight requests."""
        self.transport.reset()
        self.current_url = None
        logger.info(f"🔄 [{self.name}] Client reset")

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------

    def _next_request_number(self) -> int:
        self.request_count += 1
        return self.request_count

    def _transition(self, state: RequestState, new: RequestState, attempt: Optional[Attempt]) -> RequestState:
        where = f"req #{attempt.request_number}({attempt.number})" if attempt else "req"
        logger.debug(f"[{self.name}] {where}: {state.value} → {new.value}")
        return new

    @staticmethod
    def _annotate(error: Exception, attempt: Optional[Attempt]) -> Exception:
        if isinstance(error, ScraperError):
            error.request_number = attempt.request_number if attempt else None
            error.attempt = attempt.number if attempt else 0
        return error

    async def _send(self, attempt: Attempt) -> RequestOutcome:
        """Send one attempt and classify its outcome"""
        request = attempt.request
        try:
            response = await request.context.run(self.transport.send(request, timeout=self.timeout))
        except CancellationError as e:
            return Canceled(reason=e.reason, error=e)
        except TransportError as e:
            return Failure(error=e, retryable=is_retryable(e))

        if response.ok:
            return Success(response=response)

        error = HTTPStatusError(response.status, response=response)
        return Failure(error=error, retryable=is_retryable(error), response=response)

    async def _report_failure(self, attempt: Attempt) -> None:
        outcome = attempt.outcome
        request = attempt.request
        logger.error(
            f"❌ [{self.name}] req #{attempt.request_number}({attempt.number}): "
            f"{request.method} {request.url}; error ({classify_error(outcome.error).value}): "
            f"{outcome.error}"
        )

        if attempt.response is not None and self.dumper is not None:
            await self.dumper.dump(
                request,
                attempt.response,
                request.body,
                attempt.response.body,
                attempt.request_number,
                attempt.number,
            )

    async def _run_error_handler(self, attempt: Attempt) -> None:
        """Invoke the caller's handler inside the client's exclusive section"""
        outcome = attempt.outcome
        error_context = ErrorContext(
            client=self,
            request=attempt.request,
            response=outcome.response,
            error=outcome.error,
            attempt=attempt.number,
            context=attempt.request.context,
        )

        try:
            async with self.error_guard.hold():
                try:
                    result = self.error_handler(error_context)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"🔥 [{self.name}] Error handler failed: {e}")
                    raise HandlerFailure(outcome.error, e) from e
        except HandlerConflictError as e:
            logger.warning(f"⚠️ [{self.name}] {e}")
            raise e from outcome.error

    async def execute(
        self,
        method: str,
        url: str,
        headers: HeaderInput = None,
        body: Optional[bytes] = None,
        context: Optional[RequestContext] = None,
    ) -> Response:
        """
        Perform one logical request.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Caller headers, never overwritten by defaults
            body: Payload, resent unchanged on every attempt
            context: Cancellation context (a fresh one if omitted)

        Returns:
            The successful response, body fully read

        Raises:
            CancellationError: context canceled or deadline exceeded
            HandlerConflictError: another request's error handler was running
            HandlerFailure: the error handler raised
            TransportError, HTTPStatusError: last error once attempts ran out
        """
        context = context or RequestContext()
        payload = bytes(body or b"")
        state = RequestState.IDLE
        attempt: Optional[Attempt] = None
        number = 0

        while True:
            try:
                context.raise_if_cancelled()
                await self.error_guard.wait_idle(context)
            except CancellationError as e:
                self._transition(state, RequestState.CANCELED, attempt)
                raise self._annotate(e, attempt)

            number += 1
            attempt = Attempt(
                number=number,
                request_number=self._next_request_number(),
                request=build_request(method, url, headers, payload, self.user_agent, context),
            )
            state = self._transition(state, RequestState.ATTEMPTING, attempt)
            attempt.outcome = await self._send(attempt)
            outcome = attempt.outcome

            if isinstance(outcome, Success):
                break

            if isinstance(outcome, Canceled):
                self._transition(state, RequestState.CANCELED, attempt)
                raise self._annotate(outcome.error, attempt)

            await self._report_failure(attempt)

            if self.error_handler is not None:
                try:
                    await self._run_error_handler(attempt)
                except ScraperError as e:
                    self._transition(state, RequestState.ABORTED, attempt)
                    raise self._annotate(e, attempt)

            if number >= self.max_attempts or not outcome.retryable:
                self._transition(state, RequestState.ABORTED, attempt)
                raise self._annotate(outcome.error, attempt)

            state = self._transition(state, RequestState.RETRYING, attempt)
            delay = backoff_delay(number, self.backoff_step)
            logger.info(f"   Retrying in {delay:.1f}s...")
            try:
                await context.sleep(delay)
            except CancellationError as e:
                self._transition(state, RequestState.CANCELED, attempt)
                raise self._annotate(e, attempt)

        response = attempt.response
        self.current_url = response.url or url
        logger.debug(
            f"[{self.name}] req #{attempt.request_number}({attempt.number}): "
            f"{method} {url}; status: {response.status}"
        )

        if self.dumper is not None:
            await self.dumper.dump(
                attempt.request,
                response,
                attempt.request.body,
                response.body,
                attempt.request_number,
                attempt.number,
            )

        if response.status_code >= 400:
            self._transition(state, RequestState.ABORTED, attempt)
            raise self._annotate(
                HTTPStatusError(f"HTTP response status: {response.status}", response=response),
                attempt,
            )

        self._transition(state, RequestState.SUCCEEDED, attempt)
        return response

    # ------------------------------------------------------------------
    # Convenience operations
    # ------------------------------------------------------------------

    async def get(
        self,
        url: str,
        params: Optional[Params] = None,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> bytes:
        """Perform a GET request, merging ``params`` into the URL"""
        if params is not None:
            url = combine_url(url, "", params)

        response = await self.execute("GET", url, headers, None, context)
        return response.body

    async def get_document(
        self,
        url: str,
        params: Optional[Params] = None,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> BeautifulSoup:
        """Perform a GET request and parse the response as an HTML document"""
        body = await self.get(url, params, headers, context)
        return parse_document(body)

    async def get_json(
        self,
        url: str,
        params: Optional[Params] = None,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> Any:
        """Perform an XHR-style GET request and decode the JSON response"""
        headers = merge_headers(headers, Headers({"X-Requested-With": "XMLHttpRequest"}))
        body = await self.get(url, params, headers, context)
        return decode_json(body)

    async def get_file(
        self,
        url: str,
        path: Union[str, Path],
        params: Optional[Params] = None,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> Path:
        """
        Download a file.

        If ``path`` has no extension, one is derived from the response
        Content-Type.

        Returns:
            Absolute path of the stored file
        """
        if params is not None:
            url = combine_url(url, "", params)

        response = await self.execute("GET", url, headers, None, context)
        return await save_file(path, response.body, response.content_type)

    async def post(
        self,
        url: str,
        body: Optional[bytes] = None,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> bytes:
        """Perform a POST request"""
        response = await self.execute("POST", url, headers, body, context)
        return response.body

    async def post_form(
        self,
        url: str,
        data: Params,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> bytes:
        """Post a URL-encoded form"""
        headers = merge_headers(headers, Headers({"Content-Type": FORM_CONTENT_TYPE}))
        return await self.post(url, encode_params(data).encode("ascii"), headers, context)

    async def post_json(
        self,
        url: str,
        data: Any,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> bytes:
        """Post ``data`` as a JSON body"""
        headers = merge_headers(headers, Headers({"Content-Type": JSON_CONTENT_TYPE}))
        return await self.post(url, encode_json(data), headers, context)

    async def post_form_json(
        self,
        url: str,
        data: Params,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> Any:
        """Post a form and decode the JSON response"""
        body = await self.post_form(url, data, headers, context)
        return decode_json(body)

    async def post_json_json(
        self,
        url: str,
        data: Any,
        headers: HeaderInput = None,
        context: Optional[RequestContext] = None,
    ) -> Any:
        """Post a JSON body and decode the JSON response"""
        body = await self.post_json(url, data, headers, context)
        return decode_json(body)

    async def ext_ip_info(self, context: Optional[RequestContext] = None) -> str:
        """Describe the external address requests leave from"""
        address = await self.get(EXT_IP_URL, context=context)
        region = await self.get(EXT_COUNTRY_URL, context=context)
        info = f"address: {address.decode('utf-8', 'replace')}, region: {region.decode('utf-8', 'replace')}"
        return info.replace("\n", "")
