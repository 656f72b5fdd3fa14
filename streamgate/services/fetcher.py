from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote, urlencode, urlparse, urlsplit, urlunsplit

import aiohttp
from multidict import CIMultiDict

from streamgate.core.logger import logger
from streamgate.core.metrics import record_outbound_fetch
from streamgate.core.models import settings
from streamgate.utils.http_client import http_client_manager

# simple-proxy strips these from the incoming request, so they travel under an
# X- alias and are restored on the way out
PROXY_HEADER_ALIASES = {
    "cookie": "X-Cookie",
    "referer": "X-Referer",
    "origin": "X-Origin",
    "user-agent": "X-User-Agent",
    "x-real-ip": "X-X-Real-Ip",
}


@dataclass
class FetchOptions:
    method: str = "GET"
    base_url: Optional[str] = None
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class FetchResponse:
    status_code: int
    headers: CIMultiDict
    body: Any
    final_url: str


def build_url(url: str, options: FetchOptions = None):
    """
    Join `base_url` and `url` with exactly one slash and apply `query`.

    Raises ValueError when the result is not an absolute http(s) URL.
    """
    options = options or FetchOptions()
    left = options.base_url or ""
    right = url
    if left and not left.endswith("/"):
        left += "/"
    if left and right.startswith("/"):
        right = right[1:]

    full_url = left + right
    if not full_url.startswith(("http://", "https://")):
        raise ValueError(f"Invalid URL, must start with http(s): {full_url!r}")

    parts = urlsplit(full_url)
    if not parts.hostname:
        raise ValueError(f"Invalid URL, no hostname: {full_url!r}")

    if options.query:
        query = parts.query
        extra = urlencode(options.query)
        query = f"{query}&{extra}" if query else extra
        parts = parts._replace(query=query)

    return urlunsplit(parts)


async def _read_body(response: aiohttp.ClientResponse):
    if "application/json" in response.headers.get("Content-Type", ""):
        return await response.json(content_type=None)
    return await response.text()


def _request_kwargs(options: FetchOptions, headers: Dict[str, str]):
    kwargs = {"headers": headers}
    if isinstance(options.body, (dict, list)):
        kwargs["json"] = options.body
    elif options.body is not None:
        kwargs["data"] = options.body
    return kwargs


class StandardFetcher:
    def __init__(self, session_getter, timeout: int):
        self.session_getter = session_getter
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def __call__(self, full_url: str, options: FetchOptions):
        session = await self.session_getter()
        async with session.request(
            options.method,
            full_url,
            timeout=self.timeout,
            **_request_kwargs(options, dict(options.headers)),
        ) as response:
            return FetchResponse(
                status_code=response.status,
                headers=CIMultiDict(response.headers),
                body=await _read_body(response),
                final_url=str(response.url),
            )


class SimpleProxyFetcher:
    def __init__(self, proxy_url: str, session_getter, timeout: int):
        self.proxy_url = proxy_url
        self.session_getter = session_getter
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _proxied_headers(self, headers: Dict[str, str]):
        return {
            PROXY_HEADER_ALIASES.get(key.lower(), key): value
            for key, value in headers.items()
        }

    async def __call__(self, full_url: str, options: FetchOptions):
        session = await self.session_getter()
        target = f"{self.proxy_url}/?destination={quote(full_url, safe='')}"
        async with session.request(
            options.method,
            target,
            timeout=self.timeout,
            **_request_kwargs(options, self._proxied_headers(options.headers)),
        ) as response:
            headers = CIMultiDict(response.headers)
            # simple-proxy hides upstream cookies behind X-Set-Cookie, one
            # header per cookie
            for cookie in headers.popall("X-Set-Cookie", []):
                headers.add("Set-Cookie", cookie)
            return FetchResponse(
                status_code=response.status,
                headers=headers,
                body=await _read_body(response),
                final_url=headers.get("X-Final-Destination", full_url),
            )


class FetchRouter:
    """
    Network layer handed to the provider engine.

    Requests whose hostname is in the proxied set go through the configured
    simple-proxy endpoint, everything else is fetched directly. Without a
    proxy endpoint every request is direct.
    """

    def __init__(
        self,
        proxy_url: Optional[str],
        proxied_hostnames: Iterable[str],
        direct=None,
        proxied=None,
        timeout: int = 15,
    ):
        self.proxy_url = proxy_url
        self.proxied_hostnames = {hostname.lower() for hostname in proxied_hostnames}
        self.direct = direct or StandardFetcher(
            http_client_manager.get_session, timeout
        )
        self.proxied = proxied
        if self.proxied is None and proxy_url:
            self.proxied = SimpleProxyFetcher(
                proxy_url, http_client_manager.get_session, timeout
            )

    def should_proxy(self, full_url: str):
        if not self.proxy_url or self.proxied is None:
            return False
        hostname = urlparse(full_url).hostname
        return bool(hostname) and hostname.lower() in self.proxied_hostnames

    async def route(self, url: str, options: FetchOptions = None):
        options = options or FetchOptions()
        try:
            full_url = build_url(url, options)
        except ValueError as e:
            logger.log("PROXY", f"Could not resolve {url!r} ({e}), fetching directly")
            record_outbound_fetch("direct")
            return await self.direct(url, options)

        if self.should_proxy(full_url):
            logger.log("PROXY", f"{options.method} {full_url} via proxy")
            record_outbound_fetch("proxy")
            return await self.proxied(full_url, options)

        record_outbound_fetch("direct")
        return await self.direct(full_url, options)

    async def __call__(self, url: str, options: FetchOptions = None):
        return await self.route(url, options)


def make_fetch_router():
    return FetchRouter(
        settings.PROXY_URL,
        settings.PROXIED_HOSTNAMES,
        timeout=settings.PROVIDER_FETCH_TIMEOUT,
    )
