"""
Telegram Relay Bot - FastAPI webhook application.
Answers chat messages through rotating provider credentials, with autonomous web search routing
and bounded per-chat memory.
"""
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from config import Config, Settings
from routes import webhook
from auth import WebhookSecretMiddleware
from services.pipeline import build_pipeline
from utils.http_client import HTTPClientManager
from utils.kv_store import KeyValueStore
from utils.logger import app_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    kv = KeyValueStore(Config.DATABASE_PATH)
    app.state.pipeline = build_pipeline(Settings.from_config(), kv)
    app_logger.info(f"{Config.APP_TITLE} started")
    yield
    await app.state.pipeline.close()
    await HTTPClientManager.close_all()
    kv.close()

app = FastAPI(title=Config.APP_TITLE, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Acknowledge malformed updates so Telegram does not keep redelivering them."""
    errors = exc.errors()
    app_logger.error(f"Validation error for {request.url}")
    app_logger.error(f"Errors: {errors}")

    if request.url.path.startswith("/webhook"):
        return JSONResponse(status_code=200, content={"status": "ignored"})

    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(errors)},
    )


app.add_middleware(WebhookSecretMiddleware)

#root endpoint
@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"message": "Telegram Relay Bot is running"}

app.include_router(webhook.router, tags=["webhook"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
