"""
Completion provider adapter built on the Ollama client.
Each call authenticates with one pool credential as a bearer token.
"""
from typing import Any

import ollama
from pydantic import BaseModel

from models.chat_models import Credential
from utils.constants import SOFT_FAILURE_PHRASES
from utils.logger import app_logger, mask_secret


class CompletionClient:
    """Provider calls for chat completion, model listing and quota probing."""

    QUOTA_STATUS_CODES = {402, 429}

    def __init__(self, host: str, timeout: float | None = None, check_model: str | None = None):
        self.host = host
        self.timeout = timeout
        self.check_model = check_model
        self._clients: dict[str, ollama.AsyncClient] = {}

    def _client(self, credential: Credential) -> ollama.AsyncClient:
        """One client per credential, reused so its connection pool is shared across calls."""
        client = self._clients.get(credential.value)
        if client is None:
            client = ollama.AsyncClient(
                host=self.host,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {credential.value}"}
            )
            self._clients[credential.value] = client
        return client

    async def close(self) -> None:
        """Close every cached client connection pool."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client._client.aclose()
        if clients:
            app_logger.info(f"Closed {len(clients)} provider client(s)")

    async def complete(self, messages: list[dict], model_id: str, credential: Credential) -> Any:
        """
        Send one chat completion.

        Returns:
            The raw payload as plain Python data; the dispatcher normalizes its shape.
        """
        response = await self._client(credential).chat(model=model_id, messages=messages)
        if isinstance(response, BaseModel):
            return response.model_dump()
        return response

    async def list_models(self, credential: Credential) -> list[str]:
        """List model names visible to a credential."""
        models_response = await self._client(credential).list()
        return [model['model'] for model in models_response['models']]

    async def is_exhausted(self, credential: Credential) -> bool:
        """
        Check whether a credential has run out of quota.

        Quota and rate-limit statuses, or a short quota notice as the answer, count
        as exhausted. Any other error propagates so the caller keeps the credential.
        """
        try:
            response = await self._client(credential).chat(
                model=self.check_model,
                messages=[{"role": "user", "content": "ping"}],
                options={"num_predict": 1}
            )
        except ollama.ResponseError as e:
            if e.status_code in self.QUOTA_STATUS_CODES:
                return True
            raise

        content = (response['message']['content'] or "").lower()
        exhausted = any(phrase in content for phrase in SOFT_FAILURE_PHRASES)
        app_logger.debug(f"Quota check {mask_secret(credential.value)}: exhausted={exhausted}")
        return exhausted
