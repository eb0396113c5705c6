from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.sync import router as sync_router
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.telemetry import setup_otel

app = FastAPI(title="Sage buffer sync API")

configure_logging()
setup_otel(app)
register_error_handlers(app)

app.include_router(sync_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.head("/health")
def head_health():
    return Response(status_code=200)


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
