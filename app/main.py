import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings, validate_settings

# Routers
from app.api.routers.crawl import router as crawl_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fail fast on missing credentials before serving any request."""
    try:
        validate_settings(get_settings())
    except Exception as exc:
        logger.error("Refusing to start: %s", exc)
        raise
    yield


app = FastAPI(title="ShopScout Catalog Crawler", version="0.1", lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = (exc.errors() or [{}])[0]
    loc = ".".join(str(x) for x in first.get("loc", ()) if x != "body")
    msg = first.get("msg") or "invalid value"
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {loc + ': ' if loc else ''}{msg}"})


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(crawl_router)
