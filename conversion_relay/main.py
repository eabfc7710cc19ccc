from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Request

from conversion_relay.config import settings
from conversion_relay.observability import configure_logging
from conversion_relay.routers import admin, webhooks

configure_logging(settings.log_level)

app = FastAPI(title="Conversion Relay", version="0.1.0")


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid4())
    )
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

app.include_router(webhooks.router)
app.include_router(admin.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "conversion-relay"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
