from dataclasses import dataclass, field

import httpx

from .backends import BackendRegistry
from .errors import BackendUnavailable
from .logging_config import get_logger

logger = get_logger(__name__)

Headers = list[tuple[str, str]]

# Recomputed by the HTTP client/server on each hop.
REQUEST_SKIP_HEADERS = {"host", "content-length", "transfer-encoding", "connection"}
RESPONSE_SKIP_HEADERS = {"content-length", "transfer-encoding", "connection"}


@dataclass
class ProxyRequest:
    method: str
    raw_path: bytes  # path plus "?query", as received
    headers: Headers = field(default_factory=list)
    body: bytes = b""


@dataclass
class ProxyResponse:
    status_code: int
    headers: Headers = field(default_factory=list)
    content: bytes = b""


def _plain(status_code: int, text: str) -> ProxyResponse:
    return ProxyResponse(
        status_code=status_code,
        headers=[("content-type", "text/plain; charset=utf-8")],
        content=text.encode(),
    )


class Dispatcher:
    """
    Forwards one client request to a healthy backend.

    A transport error, timeout or 500 from the chosen backend moves on to
    the next healthy backend not yet tried for this request, so a request
    makes at most len(registry) attempts.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.registry = registry
        self._client = httpx.AsyncClient(
            timeout=timeout, transport=transport, follow_redirects=False
        )

    async def dispatch(self, request: ProxyRequest) -> ProxyResponse:
        log = logger.bind(method=request.method, path=request.raw_path.decode("latin-1"))

        target = self.registry.claim_next()
        if target is None:
            log.warning("all_servers_down")
            return _plain(503, "Service Unavailable")

        tried: set[int] = set()
        while target is not None:
            tried.add(target)
            try:
                response = await self._forward(target, request)
            except BackendUnavailable as exc:
                log.warning("backend_unavailable", backend=exc.address, reason=exc.reason)
            else:
                if response.status_code != 500:
                    return response
                log.warning("backend_error", backend=self.registry.address(target), status=500)
            target = self.registry.next_healthy_from(target + 1, exclude=tried)

        log.error("all_backends_failed", attempts=len(tried))
        return _plain(502, "Bad Gateway")

    async def _forward(self, index: int, request: ProxyRequest) -> ProxyResponse:
        address = self.registry.address(index)
        url = httpx.URL(address).copy_with(raw_path=request.raw_path or b"/")
        headers = [(k, v) for k, v in request.headers if k.lower() not in REQUEST_SKIP_HEADERS]
        outbound = self._client.build_request(
            request.method, url, headers=headers, content=request.body or None
        )
        skip = set(RESPONSE_SKIP_HEADERS)
        if request.method == "HEAD":
            # HEAD carries no body; keep the length the backend announced
            skip.discard("content-length")
        try:
            r = await self._client.send(outbound, stream=True)
            try:
                if r.is_stream_consumed:
                    # transport handed back a pre-read response, already decoded
                    content = r.content
                    skip.add("content-encoding")
                else:
                    # raw bytes so content-encoding still matches what we send on
                    content = b"".join([chunk async for chunk in r.aiter_raw()])
            finally:
                await r.aclose()
        except httpx.HTTPError as exc:
            raise BackendUnavailable(address, f"{type(exc).__name__}: {exc}") from exc

        return ProxyResponse(
            status_code=r.status_code,
            headers=[(k, v) for k, v in r.headers.multi_items() if k.lower() not in skip],
            content=content,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
