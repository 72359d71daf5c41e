"""FastAPI application entry point with the scan endpoint and scan page."""

import uuid
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlencode

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from stock_scanner.config import Settings
from stock_scanner.errors import (
    GuardUnavailableError,
    MissingProductError,
    ProductNotFoundError,
    ScanError,
    ScanInProgressError,
)
from stock_scanner.inventory_service import InventoryService
from stock_scanner.log import configure_logging
from stock_scanner.notion import NotionClient
from stock_scanner.page import ScanPage
from stock_scanner.redis_pool import RedisClient
from stock_scanner.scan_guard import ScanGuard

logger = structlog.get_logger(__name__)

NO_PRODUCT = "No product specified in URL"

STATUS_CODES = (
    (MissingProductError, 400),
    (ProductNotFoundError, 404),
    (ScanInProgressError, 409),
    (GuardUnavailableError, 503),
)


def status_for(exc: ScanError) -> int:
    for error_type, status in STATUS_CODES:
        if isinstance(exc, error_type):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manages application startup and shutdown events."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info("Using database ID", database_id=settings.notion_database_id)

    notion = NotionClient(settings)
    redis_client = await RedisClient.get_instance(settings)
    guard = ScanGuard(
        redis_client,
        lock_ttl=settings.lock_ttl_seconds,
        lock_wait=settings.lock_wait_seconds,
        token_ttl=settings.scan_ttl_seconds,
    )
    app.state.inventory_service = InventoryService(notion, guard)
    yield
    await notion.close()
    await RedisClient.close()


app = FastAPI(
    title="Stock Scanner",
    description="Decrements Notion inventory records from QR and barcode scans.",
    version="1.0.0",
    lifespan=lifespan,
)


async def get_inventory_service(request: Request) -> InventoryService:
    """Dependency injection for InventoryService."""
    return request.app.state.inventory_service


@app.exception_handler(ScanError)
async def scan_error_handler(request: Request, exc: ScanError):
    status = status_for(exc)
    if status >= 500:
        logger.error("Scan failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status, content={"error": str(exc)})


@app.get("/health")
async def health_check():
    """Health check endpoint for Docker/Kubernetes probes."""
    return {"status": "healthy"}


@app.get("/api/updateStock")
async def update_stock(
    product: Optional[str] = None,
    scan: Optional[str] = None,
    service: InventoryService = Depends(get_inventory_service),
):
    """
    Consumes one unit of ``product`` and returns the new counters.

    Passing the same ``scan`` token twice returns the first result instead
    of decrementing again.
    """
    result = await service.perform_decrement(product, scan_id=scan)
    return result.to_json()


@app.get("/", response_class=HTMLResponse)
async def scan_page(product: Optional[str] = None):
    """
    Landing page of a scanned code.

    Shows the loading state and forwards to ``/scan`` with a fresh scan
    token, so reloading the result page replays instead of decrementing.
    """
    page = ScanPage(product)
    if not product:
        page.fail(NO_PRODUCT)
        return HTMLResponse(page.render(), status_code=400)

    action = "/scan?" + urlencode({"product": product, "scan": uuid.uuid4().hex})
    return HTMLResponse(page.render(action=action))


@app.get("/scan", response_class=HTMLResponse)
async def run_scan(
    product: Optional[str] = None,
    scan: Optional[str] = None,
    service: InventoryService = Depends(get_inventory_service),
):
    """Runs the scan and renders its outcome."""
    if product and not scan:
        return RedirectResponse("/?" + urlencode({"product": product}), status_code=303)

    page = ScanPage(product)
    if not product:
        page.fail(NO_PRODUCT)
        return HTMLResponse(page.render(), status_code=400)

    try:
        result = await service.perform_decrement(product, scan_id=scan)
    except ScanError as exc:
        if status_for(exc) >= 500:
            logger.error("Scan failed", path="/scan", error=str(exc))
        page.fail(str(exc))
        return HTMLResponse(page.render(), status_code=status_for(exc))

    page.succeed(result)
    return HTMLResponse(page.render())
