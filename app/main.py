import logging

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.catalog import router as catalog_router
from app.api.lifecycle import router as lifecycle_router
from app.api.radius import router as radius_router
from app.api.subscribers import router as subscriber_router
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.metrics import REQUEST_COUNT

app = FastAPI(title="AAA provisioning API")
logger = logging.getLogger(__name__)
configure_logging()
register_error_handlers(app)


@app.middleware("http")
async def request_metrics_middleware(request: Request, call_next):
    response = await call_next(request)
    route = request.scope.get("route")
    path = getattr(route, "path", None) or "unmatched"
    REQUEST_COUNT.labels(
        method=request.method, path=path, status=str(response.status_code)
    ).inc()
    return response


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(subscriber_router)
_include_api_router(catalog_router)
_include_api_router(radius_router)
_include_api_router(lifecycle_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
