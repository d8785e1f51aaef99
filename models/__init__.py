"""
Models package exports.
"""
from models.api_models import Chat, TelegramMessage, Update
from models.chat_models import (
    ChatMessage,
    Credential,
    CredentialSource,
    DispatchFailure,
    DispatchOutcome,
    DispatchSuccess,
    Intent,
    IntentKind,
    SearchHit,
    SearchResult,
)

__all__ = [
    'Chat',
    'TelegramMessage',
    'Update',
    'ChatMessage',
    'Credential',
    'CredentialSource',
    'DispatchFailure',
    'DispatchOutcome',
    'DispatchSuccess',
    'Intent',
    'IntentKind',
    'SearchHit',
    'SearchResult',
]
