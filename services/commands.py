"""
Administrative chat commands: memory, model selection, prompt and credential management.
"""
import re
from collections import defaultdict
from typing import Optional

from config import Settings
from models.chat_models import Credential
from services.completion_client import CompletionClient
from services.conversation_store import ChatPreferences, ConversationStore
from services.credential_pool import CredentialPool
from utils.constants import Patterns, Replies
from utils.errors import StaticCredentialError
from utils.logger import app_logger, mask_secret


def _md_escape(text: str) -> str:
    """Escape characters that legacy Telegram Markdown would treat as markup."""
    return re.sub(r'([_*`\[])', r'\\\1', text)


class CommandHandler:
    """Answers slash commands and credential pastes without calling the answering model."""

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        preferences: ChatPreferences,
        pool: CredentialPool,
        client: CompletionClient
    ):
        self.settings = settings
        self.store = store
        self.preferences = preferences
        self.pool = pool
        self.client = client
        self._paste_pattern = re.compile(settings.credential_paste_pattern)
        self._handlers = {
            "start": self._start,
            "help": self._help,
            "clear": self._clear,
            "use": self._use,
            "reset": self._reset,
            "current": self._current,
            "prompt": self._prompt,
            "models": self._models,
            "tokens": self._tokens,
            "addtoken": self._add_token,
            "deltoken": self._delete_token,
            "cleartokens": self._clear_tokens,
            "prune": self._prune,
        }

    def is_credential_paste(self, text: str) -> bool:
        return bool(self._paste_pattern.match(text))

    async def handle(self, chat_id: str, text: str) -> Optional[str]:
        """
        Handle a command or credential paste.

        Returns:
            The reply text, or None when the message is not a known command.
        """
        if self.is_credential_paste(text):
            return self._register_credential(text)

        match = re.match(Patterns.COMMAND, text, re.DOTALL)
        if not match:
            return None

        handler = self._handlers.get(match.group(1).lower())
        if handler is None:
            return None

        argument = (match.group(2) or "").strip()
        app_logger.info(f"Command /{match.group(1).lower()} from {chat_id}")
        return await handler(chat_id, argument)

    def _register_credential(self, value: str) -> str:
        if not self.pool.add(value):
            return "⚠️ This token is already in the pool."
        total = len(self.pool.get_all())
        return f"✅ *Token Added!*\n\nI now have *{total}* active tokens in the pool."

    async def _start(self, chat_id: str, argument: str) -> str:
        return Replies.START

    async def _help(self, chat_id: str, argument: str) -> str:
        return Replies.HELP

    async def _clear(self, chat_id: str, argument: str) -> str:
        self.store.clear(chat_id)
        return Replies.CLEARED

    async def _use(self, chat_id: str, argument: str) -> str:
        if not argument:
            return "⚠️ Please specify a model name. Example: `/use gpt-oss:120b`"
        self.preferences.set_model(chat_id, argument)
        return f"✅ Switched model to: `{argument}`"

    async def _reset(self, chat_id: str, argument: str) -> str:
        self.preferences.clear_model(chat_id)
        return f"🔄 Reverted to default: `{self.settings.default_model}`"

    async def _current(self, chat_id: str, argument: str) -> str:
        current = self.preferences.get_model(chat_id) or self.settings.default_model
        return f"🧠 Current Model: `{current}`"

    async def _prompt(self, chat_id: str, argument: str) -> str:
        if not argument:
            self.preferences.clear_system_prompt(chat_id)
            return "🔄 System prompt reset to default."
        self.preferences.set_system_prompt(chat_id, argument)
        return "✅ System prompt updated."

    async def _models(self, chat_id: str, argument: str) -> str:
        credentials = self.pool.get_all()
        if not credentials:
            return "⚠️ Could not fetch models: no credentials in the pool."

        try:
            models = await self.client.list_models(credentials[0])
        except Exception as e:
            app_logger.error(f"Model listing failed with {mask_secret(credentials[0].value)}: {e}")
            return f"⚠️ Could not fetch models: {e}"

        grouped = defaultdict(list)
        for model_id in models:
            grouped[model_id.split(":", 1)[0].split("/", 1)[0]].append(model_id)

        lines = ["*🤖 Available AI Models*", "Use /use <name> to switch."]
        for family in sorted(grouped):
            lines.append("")
            lines.append(f"*{_md_escape(family.upper())}*")
            lines.extend(f"• {_md_escape(model_id)}" for model_id in sorted(grouped[family]))
        return "\n".join(lines)

    async def _tokens(self, chat_id: str, argument: str) -> str:
        static = self.pool.static_values
        dynamic = self.pool.dynamic_values()
        lines = [
            "*🔐 Token Pool Status*",
            "",
            f"• Env Var Tokens: {len(static)}",
            f"• Database Tokens: {len(dynamic)}",
            f"• Total Available: {len(self.pool.get_all())}",
        ]
        if dynamic:
            lines.append("")
            lines.extend(f"{index}. `{mask_secret(value)}`" for index, value in enumerate(dynamic, start=1))
            lines.append("")
            lines.append("Remove one with `/deltoken <n>` or all with `/cleartokens`.")
        return "\n".join(lines)

    async def _add_token(self, chat_id: str, argument: str) -> str:
        if not argument:
            return "⚠️ Usage: `/addtoken <key>`"
        return self._register_credential(argument)

    async def _delete_token(self, chat_id: str, argument: str) -> str:
        if not argument.isdigit():
            return "⚠️ Usage: `/deltoken <n>` (see /tokens for numbers)"
        try:
            removed: Credential = self.pool.remove_at(int(argument))
        except IndexError as e:
            return f"⚠️ {e}"
        except StaticCredentialError as e:
            return f"⚠️ {e}"
        return f"🗑️ Removed token `{mask_secret(removed.value)}`."

    async def _clear_tokens(self, chat_id: str, argument: str) -> str:
        self.pool.clear_dynamic()
        return "🗑️ Database tokens cleared. Only Env Var tokens remain."

    async def _prune(self, chat_id: str, argument: str) -> str:
        removed = await self.pool.prune(self.client.is_exhausted)
        remaining = len(self.pool.dynamic_values())
        return f"🧹 Pruned {removed} exhausted token(s). {remaining} database token(s) remain."
