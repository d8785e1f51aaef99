from models.api_models import Update


def make_update(chat_id=1001, text=None, update_id=1, **extra_message_fields):
    """Build a Telegram Update for a private chat."""
    message = {
        "message_id": update_id,
        "chat": {"id": chat_id, "type": "private"},
        **extra_message_fields,
    }
    if text is not None:
        message["text"] = text
    return Update.model_validate({"update_id": update_id, "message": message})


def update_payload(chat_id=1001, text="hello", update_id=1):
    """Raw webhook JSON body as Telegram sends it."""
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id,
            "date": 1760778000,
            "from": {"id": chat_id, "is_bot": False, "first_name": "Test"},
            "chat": {"id": chat_id, "type": "private"},
            "text": text,
        },
    }


def provider_reply(text):
    """Completion payload in the provider's chat shape."""
    return {"message": {"role": "assistant", "content": text}}


def assert_no_secret_leak(texts, secret):
    """Assert a full credential value never appears in user-visible output."""
    for text in texts:
        assert secret not in text, f"Credential leaked in message: {text}"
