"""
Authentication middleware for Telegram webhook secret verification.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from config import Config
from utils.logger import app_logger


class WebhookSecretMiddleware(BaseHTTPMiddleware):
    """
    Checks X-Telegram-Bot-Api-Secret-Token against the configured webhook secret.
    When no secret is configured, webhook calls are not checked.
    """

    PROTECTED_PREFIX = "/webhook"
    HEADER = "X-Telegram-Bot-Api-Secret-Token"
    SECRET: str = Config.TELEGRAM_WEBHOOK_SECRET

    async def dispatch(self, request: Request, call_next):
        """
        Process each request and verify the webhook secret.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler in chain

        Returns:
            Response from next handler or error response
        """
        if not request.url.path.startswith(self.PROTECTED_PREFIX) or request.method != "POST":
            return await call_next(request)

        if not self.SECRET:
            return await call_next(request)

        token = request.headers.get(self.HEADER)
        client_host = request.client.host if request.client else "unknown"

        if not token:
            app_logger.warning(f"Unauthorized webhook call from {client_host} - Missing secret token")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "detail": f"Missing secret token. Include '{self.HEADER}' header in your request.",
                    "error": "unauthorized"
                },
            )

        if token != self.SECRET:
            app_logger.warning(f"Forbidden webhook call from {client_host} - Invalid secret token")
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={
                    "detail": "Invalid secret token",
                    "error": "forbidden"
                },
            )

        return await call_next(request)
