"""aiohttp front end: GET /metrics?host=<host:port>&fems_id=<label> runs one scrape."""

import logging

from aiohttp import web

from .catalog import RegisterCatalog, get_default_catalog
from .pool import DEFAULT_TIMEOUT, ConnectionPool
from .scrape import scrape
from .types import RemoteAddress

logger = logging.getLogger(__name__)

POOL_KEY = web.AppKey("pool", ConnectionPool)
CATALOG_KEY = web.AppKey("catalog", RegisterCatalog)


async def metrics_handler(request: web.Request) -> web.Response:
    """Scrape the device named in the query string and return the report as text."""
    host = request.query.get("host")
    fems_id = request.query.get("fems_id")
    if not host:
        raise web.HTTPBadRequest(text="missing query parameter: host")
    if fems_id is None:
        raise web.HTTPBadRequest(text="missing query parameter: fems_id")
    try:
        address = RemoteAddress.parse(host)
    except ValueError as e:
        raise web.HTTPBadRequest(text=f"invalid query parameter host: {e}")

    result = await scrape(request.app[POOL_KEY], address, fems_id, request.app[CATALOG_KEY])
    return web.Response(status=result.status, text=result.body)


async def _close_pool(app: web.Application) -> None:
    await app[POOL_KEY].close()
    logger.info("Connection pool closed")


async def _announce_shutdown(app: web.Application) -> None:
    logger.info("Shutting down, closing %d Modbus session(s)", len(app[POOL_KEY]))


def create_app(
    pool: ConnectionPool | None = None,
    catalog: RegisterCatalog | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> web.Application:
    """Build the application around an explicit pool and catalog (defaults: real Modbus, packaged table)."""
    app = web.Application()
    app[POOL_KEY] = pool if pool is not None else ConnectionPool(timeout=timeout)
    app[CATALOG_KEY] = catalog if catalog is not None else get_default_catalog()
    app.router.add_get("/metrics", metrics_handler)
    app.on_shutdown.append(_announce_shutdown)
    app.on_cleanup.append(_close_pool)
    return app


def run(bind: str = "0.0.0.0", port: int = 80, timeout: float = DEFAULT_TIMEOUT) -> None:
    """Serve until SIGINT/SIGTERM, then shut down gracefully."""
    app = create_app(timeout=timeout)
    logger.info("Listening on %s:%d", bind, port)
    web.run_app(app, host=bind, port=port, print=None)
