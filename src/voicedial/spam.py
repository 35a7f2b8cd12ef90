"""Spam-call classification contract."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .errors import ResolutionError
from .models import SpamVerdict
from .resolver import build_openai_client, request_json

SPAM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "isSpam": {"type": "boolean"},
        "reason": {"type": ["string", "null"]},
    },
    "required": ["isSpam", "reason"],
    "additionalProperties": False,
}

SPAM_PROMPT = (
    "You classify incoming phone numbers as spam or not.\n"
    "The user message is JSON with 'phoneNumber'.\n"
    "- Consider common spam patterns such as known robocaller ranges and "
    "unusual formats.\n"
    "- If it is spam, give a short reason. Otherwise set 'reason' to null."
)


def parse_spam_payload(payload: Any) -> SpamVerdict:
    if not isinstance(payload, dict) or not isinstance(payload.get("isSpam"), bool):
        raise ResolutionError("Spam response must carry a boolean 'isSpam'.")
    reason = payload.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = None
    return SpamVerdict(is_spam=payload["isSpam"], reason=reason)


class OpenAISpamClassifier:
    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 15.0,
        client: Any = None,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._client = client

    def classify(self, phone_number: str) -> SpamVerdict:
        if self._client is None:
            self._client = build_openai_client(
                self.api_key, self.base_url, self.timeout_s
            )
        payload = request_json(
            self._client,
            self.model,
            SPAM_PROMPT,
            {"phoneNumber": phone_number},
            "spam_classification",
            SPAM_SCHEMA,
        )
        return parse_spam_payload(payload)
