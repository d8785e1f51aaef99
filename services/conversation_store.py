"""
Conversation history and per-chat preference persistence.
"""
from typing import Optional

from pydantic import ValidationError

from models.chat_models import ChatMessage
from utils.kv_store import KeyValueStore
from utils.logger import app_logger


class ConversationStore:
    """Bounded, ordered message history per conversation."""

    KEY_PREFIX = "chat_history"

    def __init__(self, kv: KeyValueStore, history_limit: int = 20):
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self._kv = kv
        self.history_limit = history_limit

    def _key(self, conversation_id: str) -> str:
        return f"{self.KEY_PREFIX}:{conversation_id}"

    def load(self, conversation_id: str) -> list[ChatMessage]:
        """
        Load the history for a conversation.

        A missing or non-list record is an empty history; entries that fail
        validation are skipped so one bad record cannot block the conversation.
        """
        stored = self._kv.get(self._key(conversation_id))
        if stored is None:
            return []
        if not isinstance(stored, list):
            app_logger.warning(f"History for {conversation_id} is not a list, starting fresh")
            return []

        history = []
        skipped = 0
        for item in stored:
            try:
                history.append(ChatMessage.model_validate(item))
            except ValidationError:
                skipped += 1

        if skipped:
            app_logger.warning(f"Skipped {skipped} corrupt history entries for {conversation_id}")
        return history

    def save(self, conversation_id: str, history: list[ChatMessage]) -> list[ChatMessage]:
        """Trim to the newest history_limit entries and persist. Returns what was written."""
        trimmed = list(history)[-self.history_limit:]
        self._kv.set(self._key(conversation_id), [message.model_dump() for message in trimmed])
        return trimmed

    def append(self, conversation_id: str, message: ChatMessage) -> list[ChatMessage]:
        history = self.load(conversation_id)
        history.append(message)
        return self.save(conversation_id, history)

    def clear(self, conversation_id: str) -> None:
        self._kv.set(self._key(conversation_id), [])
        app_logger.info(f"History cleared for {conversation_id}")


class ChatPreferences:
    """Per-conversation model choice and custom system prompt."""

    MODEL_PREFIX = "model_pref"
    PROMPT_PREFIX = "system_prompt"

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    def get_model(self, conversation_id: str) -> Optional[str]:
        value = self._kv.get(f"{self.MODEL_PREFIX}:{conversation_id}")
        return value if isinstance(value, str) and value else None

    def set_model(self, conversation_id: str, model_id: str) -> None:
        self._kv.set(f"{self.MODEL_PREFIX}:{conversation_id}", model_id)

    def clear_model(self, conversation_id: str) -> None:
        self._kv.delete(f"{self.MODEL_PREFIX}:{conversation_id}")

    def get_system_prompt(self, conversation_id: str) -> Optional[str]:
        value = self._kv.get(f"{self.PROMPT_PREFIX}:{conversation_id}")
        return value if isinstance(value, str) and value else None

    def set_system_prompt(self, conversation_id: str, prompt: str) -> None:
        self._kv.set(f"{self.PROMPT_PREFIX}:{conversation_id}", prompt)

    def clear_system_prompt(self, conversation_id: str) -> None:
        self._kv.delete(f"{self.PROMPT_PREFIX}:{conversation_id}")
