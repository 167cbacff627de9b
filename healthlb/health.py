import asyncio

import httpx
from pydantic import BaseModel, ValidationError

from .backends import BackendRegistry
from .errors import ProbeFailed
from .logging_config import get_logger

logger = get_logger(__name__)

HEALTH_PATH = "/_health"
HEALTHY_STATE = "healthy"


class HealthStatus(BaseModel):
    state: str


class HealthMonitor:
    """
    Background prober; the only writer of the registry's health flags.

    Each tick probes every backend in index order. The probe itself runs
    without the registry lock, only the flag update takes it.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        interval: float = 0.005,
        timeout: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.registry = registry
        self.interval = interval
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._task: asyncio.Task | None = None

    async def probe(self, index: int) -> bool:
        """Probe one backend; any failure counts as unhealthy."""
        try:
            return await self._fetch_status(index)
        except ProbeFailed as exc:
            logger.debug("probe_failed", backend=exc.address, reason=exc.reason)
            return False

    async def _fetch_status(self, index: int) -> bool:
        address = self.registry.address(index)
        try:
            r = await self._client.get(f"{address}{HEALTH_PATH}")
        except httpx.HTTPError as exc:
            raise ProbeFailed(address, f"{type(exc).__name__}: {exc}") from exc

        if r.status_code != 200:
            raise ProbeFailed(address, f"status {r.status_code}")
        try:
            status = HealthStatus.model_validate_json(r.content)
        except ValidationError as exc:
            raise ProbeFailed(address, f"malformed health body: {exc.error_count()} error(s)") from exc
        return status.state == HEALTHY_STATE

    async def check_all(self) -> None:
        """One tick: probe every backend, then reset the cursor if all are down."""
        for i in range(len(self.registry)):
            healthy = await self.probe(i)
            if self.registry.set_health(i, healthy):
                logger.info(
                    "backend_up" if healthy else "backend_down",
                    backend=self.registry.address(i),
                )
        if self.registry.recompute_cursor_if_all_down():
            logger.warning("all_backends_down")

    async def run(self) -> None:
        while True:
            try:
                await self.check_all()
            except Exception:
                logger.exception("health_tick_failed")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._client.aclose()
