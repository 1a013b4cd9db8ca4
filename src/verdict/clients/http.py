"""HTTP client over ``httpx.AsyncClient``.

Bodies are read in full before the call settles, so every ``HttpResponse``
can be inspected after the connection is gone. Cookies live in a
per-client ``SessionStore``; httpx's own cookie jar is not used.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from verdict.attempt import Outcome, run_attempt
from verdict.clients.base import BaseClient
from verdict.config import HttpClientConfig
from verdict.envelope import HttpResponse, set_cookie_values
from verdict.errors import ConfigurationError
from verdict.session import SessionStore, parse_set_cookies
from verdict.taxonomy import http as taxonomy

if TYPE_CHECKING:
    from collections.abc import Mapping

    from verdict.options import CallOptions

logger = logging.getLogger(__name__)


def _query_params(
    query: Mapping[str, Any] | None,
) -> list[tuple[str, str]] | None:
    # Sequences repeat the key; scalars appear once.
    if not query:
        return None
    params: list[tuple[str, str]] = []
    for key, value in query.items():
        values = value if isinstance(value, (list, tuple)) else [value]
        for v in values:
            if isinstance(v, bool):
                params.append((key, "true" if v else "false"))
            else:
                params.append((key, str(v)))
    return params


def _body_kwargs(body: Any, form: Mapping[str, str] | None) -> dict[str, Any]:
    if body is not None and form is not None:
        raise ConfigurationError(
            "Pass either body or form, not both",
            hint="Use form=... for urlencoded fields, body=... for anything else.",
        )
    if form is not None:
        return {"data": dict(form)}
    if body is None:
        return {}
    if isinstance(body, (str, bytes, bytearray)):
        return {"content": bytes(body) if isinstance(body, bytearray) else body}
    return {"json": body}


class HttpClient(BaseClient):
    """Tri-state HTTP client.

    Session cookies live in a per-client store. A borrowed ``client=`` is
    never closed and its own cookie jar is left untouched.

    Example:
        async with HttpClient(HttpClientConfig(url="http://localhost:3000")) as http:
            res = await http.get("/users/1")
            if res.ok:
                print(res.json())
    """

    backend = "http"

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or HttpClientConfig()
        super().__init__(self.config.defaults())
        self._owns_client = client is None
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=self.config.headers,
            follow_redirects=self.config.follow_redirects,
            transport=transport,
            # Deadlines come from CallOptions, not httpx.
            timeout=None,
        )
        self._session: SessionStore | None = (
            SessionStore(self.config.initial_cookies)
            if self.config.cookies_enabled
            else None
        )
        logger.debug(
            "HttpClient created base_url=%s cookies=%s",
            self.config.base_url,
            "on" if self._session is not None else "off",
        )

    # --- cookies -----------------------------------------------------------

    def get_cookies(self) -> dict[str, str]:
        """Snapshot of the session cookies."""
        return self._session.snapshot() if self._session is not None else {}

    def set_cookie(self, name: str, value: str) -> None:
        """Store a cookie sent on every later request."""
        if self._session is None:
            raise ConfigurationError(
                "Cookie handling is disabled",
                hint="Construct the client with cookies_enabled=True.",
            )
        self._session.set(name, value)

    def clear_cookies(self) -> None:
        """Forget every session cookie."""
        if self._session is not None:
            self._session.clear()

    # --- requests ----------------------------------------------------------

    async def get(
        self,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        follow_redirects: bool | None = None,
        options: CallOptions | None = None,
    ) -> HttpResponse:
        """Send a GET request."""
        return await self.request(
            "GET",
            path,
            query=query,
            headers=headers,
            follow_redirects=follow_redirects,
            options=options,
        )

    async def head(
        self,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: CallOptions | None = None,
    ) -> HttpResponse:
        """Send a HEAD request."""
        return await self.request(
            "HEAD", path, query=query, headers=headers, options=options
        )

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        form: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: CallOptions | None = None,
    ) -> HttpResponse:
        """Send a POST request. Mappings and lists are sent as JSON."""
        return await self.request(
            "POST",
            path,
            body=body,
            form=form,
            query=query,
            headers=headers,
            options=options,
        )

    async def put(
        self,
        path: str,
        body: Any = None,
        *,
        form: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: CallOptions | None = None,
    ) -> HttpResponse:
        """Send a PUT request."""
        return await self.request(
            "PUT",
            path,
            body=body,
            form=form,
            query=query,
            headers=headers,
            options=options,
        )

    async def patch(
        self,
        path: str,
        body: Any = None,
        *,
        form: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: CallOptions | None = None,
    ) -> HttpResponse:
        """Send a PATCH request."""
        return await self.request(
            "PATCH",
            path,
            body=body,
            form=form,
            query=query,
            headers=headers,
            options=options,
        )

    async def delete(
        self,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        options: CallOptions | None = None,
    ) -> HttpResponse:
        """Send a DELETE request."""
        return await self.request(
            "DELETE", path, query=query, headers=headers, options=options
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        form: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        follow_redirects: bool | None = None,
        options: CallOptions | None = None,
    ) -> HttpResponse:
        """Send one request and settle it into an ``HttpResponse``.

        Non-2xx statuses produce the error state with status, headers and
        body intact. Connection failures produce the failure state with only
        ``url`` set. Timeouts and aborts are raised.
        """
        operation = self._operation("http", options)
        client = self._client
        owns_client = self._owns_client
        request_headers: dict[str, str] = dict(headers or {})
        if self._session is not None:
            cookie = self._session.header_value()
            if cookie is not None:
                request_headers["Cookie"] = cookie
        params = _query_params(query)
        body_kwargs = _body_kwargs(body, form)
        if follow_redirects is None:
            follow_redirects = self.config.follow_redirects
        # Filled once the request is built; read back when the attempt settles.
        context: dict[str, Any] = {}

        logger.debug("HTTP %s %s starting", method, path)

        async def call() -> httpx.Response:
            request = client.build_request(
                method,
                path,
                params=params,
                headers=request_headers,
                **body_kwargs,
            )
            context["url"] = str(request.url)
            response = await client.send(request, follow_redirects=follow_redirects)
            if owns_client:
                client.cookies.clear()
            self._store_cookies(response)
            return response

        result = await run_attempt(
            operation,
            call,
            result_type=HttpResponse,
            classify=taxonomy.classify,
            interpret=_interpret,
            context=context,
        )
        logger.debug(
            "HTTP %s %s finished status=%s duration=%.1fms",
            method,
            result.url or path,
            result.status,
            result.duration,
        )
        return result

    def _store_cookies(self, response: httpx.Response) -> None:
        if self._session is None:
            return
        received = parse_set_cookies(set_cookie_values(response.headers))
        if received:
            self._session.merge(received)
            logger.debug("Stored %d cookie(s)", len(received))

    async def _release(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _interpret(response: httpx.Response) -> Outcome:
    body = response.content or None
    payload = {
        "url": str(response.url),
        "status": response.status_code,
        "status_text": response.reason_phrase,
        "headers": response.headers,
        "body": body,
    }
    if response.is_success:
        return Outcome(payload=payload)
    error = taxonomy.status_error(
        response.status_code,
        response.reason_phrase,
        response.text if body is not None else None,
    )
    return Outcome(payload=payload, error=error)
