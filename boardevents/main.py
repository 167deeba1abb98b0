from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from boardevents.api.events import router as events_router
from boardevents.api.notifications import router as notifications_router
from boardevents.api.webhooks import router as webhooks_router
from boardevents.errors import register_error_handlers
from boardevents.logging import configure_logging

configure_logging()

app = FastAPI(title="Board Events API")
register_error_handlers(app)

app.include_router(events_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
