from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request, Response

from .backends import BackendRegistry
from .dispatcher import Dispatcher, ProxyRequest
from .health import HealthMonitor
from .logging_config import get_logger
from .settings import Settings

logger = get_logger(__name__)


def _raw_target(request: Request) -> bytes:
    raw_path = request.scope.get("raw_path") or request.url.path.encode()
    raw_path = raw_path.split(b"?", 1)[0]
    query = request.scope.get("query_string", b"")
    return raw_path + b"?" + query if query else raw_path


def create_app(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the balancer app; ``transport`` replaces the network for both outbound clients."""
    registry = BackendRegistry(settings.backends)
    monitor = HealthMonitor(
        registry,
        interval=settings.health_interval,
        timeout=settings.probe_timeout,
        transport=transport,
    )
    dispatcher = Dispatcher(registry, timeout=settings.request_timeout, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        monitor.start()
        logger.info("health_monitor_started", interval=settings.health_interval)
        yield
        await monitor.stop()
        await dispatcher.aclose()
        logger.info("load_balancer_stopped")

    app = FastAPI(
        title="healthlb",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.registry = registry
    app.state.monitor = monitor
    app.state.dispatcher = dispatcher

    async def proxy_all(request: Request) -> Response:
        """Everything that comes in is forwarded to a backend picked by the dispatcher."""
        # buffered up front: the inbound stream can only be read once
        body = await request.body()
        result = await request.app.state.dispatcher.dispatch(
            ProxyRequest(
                method=request.method,
                raw_path=_raw_target(request),
                headers=request.headers.items(),
                body=body,
            )
        )
        response = Response(content=result.content, status_code=result.status_code)
        if any(k.lower() == "content-length" for k, _ in result.headers):
            del response.headers["content-length"]
        for k, v in result.headers:
            response.headers.append(k, v)
        return response

    # methods=None: any method, standard or not, reaches the dispatcher
    app.add_route("/{full_path:path}", proxy_all, methods=None, include_in_schema=False)

    return app
