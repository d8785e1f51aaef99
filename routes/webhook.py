"""
Route handlers for the Telegram webhook.
"""
from fastapi import APIRouter, Depends, Request
from models.api_models import Update
from services.pipeline import RequestPipeline
from utils.logger import app_logger

router = APIRouter()


def get_pipeline(request: Request) -> RequestPipeline:
    """Pipeline built at startup and kept on the application state."""
    return request.app.state.pipeline


@router.get("/webhook")
async def webhook_ready():
    """Readiness check for the webhook URL."""
    return {"status": "ready"}


@router.post("/webhook")
async def webhook(update: Update, pipeline: RequestPipeline = Depends(get_pipeline)):
    """
    Telegram webhook endpoint.
    Always acknowledges so Telegram never redelivers an update the bot already handled.
    """
    try:
        await pipeline.handle(update)
    except Exception as e:
        app_logger.error(f"Unhandled webhook error for update {update.update_id}: {str(e)}", exc_info=True)
    return {"status": "ok"}
