"""
Telegram Bot API client for outbound messages and typing indicators.
"""
from typing import Optional

import httpx

from services.response_formatter import ResponseFormatter
from utils.errors import MarkupRejectedError, TransportError
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


class TelegramClient:
    """Outbound Telegram calls."""

    MARKDOWN = "Markdown"

    def __init__(self, bot_token: str, api_url: str = "https://api.telegram.org"):
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")

    def _method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.bot_token}/{method}"

    async def _call(self, method: str, payload: dict) -> dict:
        """
        Call a Bot API method.

        Raises:
            MarkupRejectedError: Telegram could not parse the message entities
            TransportError: any other HTTP or API failure
        """
        client = HTTPClientManager.get_telegram_client()
        try:
            response = await client.post(self._method_url(method), json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code == 200 and body.get("ok", True):
            return body

        description = body.get("description") or f"status {response.status_code}"
        if response.status_code == 400 and "parse entities" in description.lower():
            raise MarkupRejectedError(description)
        raise TransportError(f"{method} failed: {description}")

    async def send_typing(self, chat_id: str) -> None:
        await self._call("sendChatAction", {"chat_id": chat_id, "action": "typing"})

    async def send_text(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        payload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        await self._call("sendMessage", payload)
        app_logger.debug(f"Sent {len(text)} chars to {chat_id} (parse_mode={parse_mode})")

    async def deliver(self, chat_id: str, text: str, max_chars: int = 4000, markdown: bool = True) -> int:
        """
        Send a reply in chunks, never raising.

        Each chunk is tried with Markdown first; if Telegram rejects the markup,
        that chunk alone is resent as plain text.

        Returns:
            Number of chunks delivered
        """
        delivered = 0
        for chunk in ResponseFormatter.chunk(text, max_chars):
            if not chunk.strip():
                continue
            try:
                if markdown:
                    try:
                        await self.send_text(chat_id, chunk, parse_mode=self.MARKDOWN)
                    except MarkupRejectedError as e:
                        app_logger.warning(f"Markdown rejected for {chat_id}, resending as plain text: {e}")
                        await self.send_text(chat_id, ResponseFormatter.strip_markup(chunk))
                else:
                    await self.send_text(chat_id, chunk)
                delivered += 1
            except TransportError as e:
                app_logger.error(f"Failed to deliver message to {chat_id}: {e}")
        return delivered

    async def typing(self, chat_id: str) -> None:
        """Show the typing indicator, logging failures."""
        try:
            await self.send_typing(chat_id)
        except TransportError as e:
            app_logger.warning(f"Typing indicator failed for {chat_id}: {e}")
