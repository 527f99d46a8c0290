from typing import Any, Optional

from fastapi import HTTPException


def validate_messages(messages: Any):
    if not isinstance(messages, list) or not messages:
        raise HTTPException(status_code=400, detail="messages array is required and must not be empty")

    # Basic message shape check
    for m in messages:
        if not isinstance(m, dict) or 'role' not in m or 'content' not in m:
            raise HTTPException(status_code=400, detail="Each message must be an object with 'role' and 'content'")


def validate_sampling(temperature: Any, max_tokens: Any):
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0:
        raise HTTPException(status_code=400, detail="Invalid 'max_tokens' value")

    if isinstance(temperature, bool) or not (isinstance(temperature, (int, float)) and 0.0 <= float(temperature) <= 2.0):
        raise HTTPException(status_code=400, detail="Invalid 'temperature' value")


def validate_budget(max_context_tokens: Optional[int], recent_keep: Optional[int]):
    if max_context_tokens is not None and max_context_tokens <= 0:
        raise HTTPException(status_code=400, detail="Invalid 'max_context_tokens' value")

    if recent_keep is not None and recent_keep < 0:
        raise HTTPException(status_code=400, detail="Invalid 'recent_keep' value")


def validate_chat_payload(payload: Any):
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    validate_messages(payload.get('messages'))
    validate_sampling(payload.get('temperature', 0.7), payload.get('max_tokens', 256))
    validate_budget(payload.get('max_context_tokens'), payload.get('recent_keep'))

    return True
