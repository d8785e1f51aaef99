"""
Provider dispatcher with credential rotation.
Tries every pooled credential in random order until one yields an acceptable answer.
"""
import json
import random
from enum import Enum
from typing import Any, Protocol

from models.chat_models import Credential, DispatchFailure, DispatchOutcome, DispatchSuccess
from services.credential_pool import CredentialPool
from utils.constants import SOFT_FAILURE_PHRASES
from utils.errors import EmptyPayloadError, NoCredentialsError, ProviderPayloadError, SoftFailureError
from utils.logger import app_logger, mask_secret


class PayloadKind(Enum):
    """Closed set of payload shapes a provider may return."""
    EMPTY = "empty"
    ERROR = "error"
    TEXT = "text"
    MESSAGE = "message"
    BLOCKS = "blocks"
    UNKNOWN = "unknown"


class Completer(Protocol):
    async def complete(self, messages: list[dict], model_id: str, credential: Credential) -> Any: ...


def classify_payload(payload: Any) -> PayloadKind:
    """Tag a raw provider payload with its shape."""
    if payload is None or payload == "" or payload == [] or payload == {}:
        return PayloadKind.EMPTY
    if isinstance(payload, str):
        return PayloadKind.TEXT
    if isinstance(payload, list):
        return PayloadKind.BLOCKS
    if isinstance(payload, dict):
        if payload.get("error"):
            return PayloadKind.ERROR
        message = payload.get("message")
        if isinstance(message, dict) and message.get("content") is not None:
            return PayloadKind.MESSAGE
    return PayloadKind.UNKNOWN


def _join_blocks(blocks: list) -> str:
    parts = []
    for block in blocks:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and (block.get("type") == "text" or "text" in block):
            parts.append(block.get("text") or "")
    return "".join(parts)


def extract_text(payload: Any) -> str:
    """Pull the plain answer text out of any accepted payload shape."""
    kind = classify_payload(payload)

    if kind is PayloadKind.TEXT:
        text = payload
    elif kind is PayloadKind.MESSAGE:
        content = payload["message"]["content"]
        text = content if isinstance(content, str) else _join_blocks(content) if isinstance(content, list) else str(content)
    elif kind is PayloadKind.BLOCKS:
        text = _join_blocks(payload)
    elif kind is PayloadKind.UNKNOWN:
        text = json.dumps(payload, default=str)
    else:
        text = ""

    return text.strip()


def is_soft_failure(text: str, max_chars: int = 150) -> bool:
    """Short answers mentioning quota or rate limits are failures in disguise."""
    if len(text) >= max_chars:
        return False
    lowered = text.lower()
    return any(phrase in lowered for phrase in SOFT_FAILURE_PHRASES)


def validate_payload(payload: Any, soft_failure_max_chars: int = 150) -> str:
    """
    Apply the acceptance checks to one payload.

    Returns:
        The extracted answer text.

    Raises:
        EmptyPayloadError, ProviderPayloadError, SoftFailureError
    """
    kind = classify_payload(payload)
    if kind is PayloadKind.EMPTY:
        raise EmptyPayloadError()
    if kind is PayloadKind.ERROR:
        raise ProviderPayloadError(json.dumps(payload, default=str)[:300])

    text = extract_text(payload)
    if not text:
        raise EmptyPayloadError()
    if is_soft_failure(text, soft_failure_max_chars):
        raise SoftFailureError(f"Quota exceeded: {text}")
    return text


def shuffled(items: list, rng: random.Random) -> list:
    """Fisher-Yates shuffle into a new list."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


class ProviderDispatcher:
    """Dispatch a chat completion across the credential pool."""

    def __init__(
        self,
        pool: CredentialPool,
        client: Completer,
        soft_failure_max_chars: int = 150,
        rng: random.Random | None = None
    ):
        self.pool = pool
        self.client = client
        self.soft_failure_max_chars = soft_failure_max_chars
        self.rng = rng or random.Random()

    async def _attempt(self, messages: list[dict], model_id: str, credential: Credential, attempt: int) -> DispatchOutcome:
        try:
            payload = await self.client.complete(messages, model_id, credential)
            text = validate_payload(payload, self.soft_failure_max_chars)
        except Exception as e:
            app_logger.warning(f"Credential {mask_secret(credential.value)} failed on {model_id}: {e}")
            return DispatchFailure(last_error=e, attempts=attempt)
        return DispatchSuccess(text=text, credential=credential, attempts=attempt)

    async def dispatch(self, messages: list[dict], model_id: str) -> DispatchOutcome:
        """
        Try credentials in random order and return the first accepted answer.

        Args:
            messages: Provider chat messages
            model_id: Model to call

        Returns:
            DispatchSuccess on the first acceptable answer, otherwise a
            DispatchFailure carrying the last error and the attempt count.
        """
        credentials = shuffled(self.pool.get_all(), self.rng)
        outcome: DispatchOutcome = DispatchFailure(last_error=NoCredentialsError(), attempts=0)

        for attempt, credential in enumerate(credentials, start=1):
            outcome = await self._attempt(messages, model_id, credential, attempt)
            if outcome.ok:
                if attempt > 1:
                    app_logger.info(f"{model_id} answered on attempt {attempt}/{len(credentials)}")
                return outcome

        if credentials:
            app_logger.error(f"All {len(credentials)} credentials failed on {model_id}: {outcome.last_error}")
        else:
            app_logger.error("Dispatch skipped: credential pool is empty")
        return outcome
