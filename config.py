"""
Configuration module for the Telegram Relay Bot.
Handles environment variables and application settings.
"""
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _split_csv(raw: str) -> list[str]:
    """Split a comma-separated environment value, dropping blanks."""
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


class Config:
    """Application configuration class."""

    # API Keys
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    TELEGRAM_WEBHOOK_SECRET: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")
    PROVIDER_API_KEYS: str = os.getenv("PROVIDER_API_KEYS", "")
    TAVILY_API_KEYS: str = os.getenv("TAVILY_API_KEYS", os.getenv("TAVILY_API_KEY", ""))

    # API Configuration
    PROVIDER_HOST: str = os.getenv("PROVIDER_HOST", "https://ollama.com")
    TAVILY_SEARCH_URL: str = "https://api.tavily.com/search"
    TELEGRAM_API_URL: str = "https://api.telegram.org"

    # Application Settings
    APP_TITLE: str = "Telegram Relay Bot"
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/bot.db")
    ALLOWED_CHAT_IDS: str = os.getenv("ALLOWED_CHAT_IDS", "")
    SYSTEM_PROMPT: str = os.getenv("SYSTEM_PROMPT", "You are a helpful assistant.")
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "gpt-oss:120b")
    ROUTER_MODEL: str = os.getenv("ROUTER_MODEL", "gpt-oss:20b")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Conversation limits
    HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "20"))
    ROUTER_CONTEXT_TURNS: int = 3
    MAX_MESSAGE_CHARS: int = 4000

    # Provider response validation
    SOFT_FAILURE_MAX_CHARS: int = 150

    # Search shaping
    SEARCH_MAX_RESULTS: int = 5
    SEARCH_DEPTH: str = "basic"
    SEARCH_SNIPPET_CHARS: int = 400

    # Bare messages matching this are registered as provider credentials
    CREDENTIAL_PASTE_PATTERN: str = os.getenv("CREDENTIAL_PASTE_PATTERN", r"^ey\S{49,}$")

    # Timeouts (in seconds). Provider calls have no explicit timeout unless set.
    PROVIDER_TIMEOUT: float | None = float(os.getenv("PROVIDER_TIMEOUT")) if os.getenv("PROVIDER_TIMEOUT") else None
    SEARCH_TIMEOUT: float = 15.0
    TELEGRAM_TIMEOUT: float = 10.0

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and print warnings for missing API keys."""
        if not cls.TELEGRAM_BOT_TOKEN:
            print("   WARNING: TELEGRAM_BOT_TOKEN not found in .env file")
            print("   Replies cannot be delivered. Create a bot with @BotFather to get one.")

        if not cls.PROVIDER_API_KEYS:
            print("   WARNING: PROVIDER_API_KEYS not found in .env file")
            print("   Only credentials registered at runtime with /addtoken will be used.")

        if not cls.TAVILY_API_KEYS:
            print("   WARNING: TAVILY_API_KEYS not found in .env file")
            print("   Web search is disabled; answers will rely on model knowledge. Get a key from: https://tavily.com")

        if not cls.ALLOWED_CHAT_IDS:
            print("   WARNING: ALLOWED_CHAT_IDS not found in .env file")
            print("   Every chat will be ignored. Add your Telegram chat id to use the bot.")


@dataclass(frozen=True)
class Settings:
    """Immutable settings handed to the request pipeline and its services."""

    bot_token: str = ""
    provider_host: str = "https://ollama.com"
    provider_timeout: float | None = None
    static_credentials: tuple[str, ...] = ()
    search_api_keys: tuple[str, ...] = ()
    search_url: str = "https://api.tavily.com/search"
    telegram_api_url: str = "https://api.telegram.org"
    allowed_chat_ids: frozenset[str] = field(default_factory=frozenset)
    system_prompt: str = "You are a helpful assistant."
    default_model: str = "gpt-oss:120b"
    router_model: str = "gpt-oss:20b"
    history_limit: int = 20
    router_context_turns: int = 3
    max_message_chars: int = 4000
    soft_failure_max_chars: int = 150
    search_max_results: int = 5
    search_depth: str = "basic"
    search_snippet_chars: int = 400
    credential_paste_pattern: str = r"^ey\S{49,}$"

    @classmethod
    def from_config(cls) -> "Settings":
        """Build settings from the environment-backed Config class."""
        return cls(
            bot_token=Config.TELEGRAM_BOT_TOKEN,
            provider_host=Config.PROVIDER_HOST,
            provider_timeout=Config.PROVIDER_TIMEOUT,
            static_credentials=tuple(_split_csv(Config.PROVIDER_API_KEYS)),
            search_api_keys=tuple(_split_csv(Config.TAVILY_API_KEYS)),
            search_url=Config.TAVILY_SEARCH_URL,
            telegram_api_url=Config.TELEGRAM_API_URL,
            allowed_chat_ids=frozenset(_split_csv(Config.ALLOWED_CHAT_IDS)),
            system_prompt=Config.SYSTEM_PROMPT,
            default_model=Config.DEFAULT_MODEL,
            router_model=Config.ROUTER_MODEL,
            history_limit=Config.HISTORY_LIMIT,
            router_context_turns=max(3, Config.ROUTER_CONTEXT_TURNS),
            max_message_chars=Config.MAX_MESSAGE_CHARS,
            soft_failure_max_chars=Config.SOFT_FAILURE_MAX_CHARS,
            search_max_results=Config.SEARCH_MAX_RESULTS,
            search_depth=Config.SEARCH_DEPTH,
            search_snippet_chars=Config.SEARCH_SNIPPET_CHARS,
            credential_paste_pattern=Config.CREDENTIAL_PASTE_PATTERN,
        )


Config.validate()
