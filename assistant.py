"""
Guest chat assistant: a Mistral chat-completion proxy plus the keyword
heuristics that decide whether a guest message should become a ticket.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

import config

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the virtual concierge of a hotel. You talk to guests who are "
    "staying in the hotel through a chat window in their room. Be warm, brief "
    "and practical: answer in at most three sentences. You cannot perform "
    "actions yourself. When a guest needs something done (housekeeping, "
    "repairs, food, front desk help) tell them that hotel staff will be "
    "notified and will take care of it. Never invent prices, policies or "
    "room numbers you were not given."
)

MANAGER_PROMPT = (
    "You help hotel managers answer guest service requests. Draft one short, "
    "polite reply the manager can send to the guest. Acknowledge the request, "
    "say what will happen next and give a realistic time frame."
)

HISTORY_LIMIT = 10

CATEGORY_KEYWORDS = {
    "maintenance": [
        "broken", "not working", "doesn't work", "leak", "leaking", "repair", "fix",
        "air conditioning", "ac", "heater", "heating", "light", "lights", "shower",
        "toilet", "tv", "wifi", "wi-fi", "internet", "noise", "noisy",
    ],
    "housekeeping": [
        "towel", "towels", "clean", "cleaning", "sheets", "pillow", "pillows",
        "blanket", "blankets", "toiletries", "soap", "shampoo", "toilet paper",
        "housekeeping", "dirty", "trash", "garbage",
    ],
    "room_service": [
        "food", "hungry", "breakfast", "lunch", "dinner", "drink", "drinks",
        "menu", "room service", "order", "water", "coffee", "tea", "snack",
    ],
    "front_desk": [
        "check out", "checkout", "late checkout", "check in", "key", "keycard",
        "locked out", "bill", "invoice", "taxi", "wake up call", "wake-up call",
        "luggage", "parking",
    ],
}

URGENCY_KEYWORDS = {
    "high": [
        "urgent", "emergency", "immediately", "asap", "right now", "fire", "smoke",
        "flood", "flooding", "leak", "leaking", "locked out", "injured", "unsafe",
        "sick",
    ],
    "low": ["no rush", "whenever", "when you can", "tomorrow", "later", "no hurry"],
}

REQUEST_KEYWORDS = [
    "need", "please", "can i get", "can you", "could you", "bring", "send",
    "want", "request", "would like", "problem", "issue",
]


class AssistantError(Exception):
    pass


@dataclass
class MessageAnalysis:
    should_create_ticket: bool
    urgency_level: str
    category: str


def _pattern(words: List[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)


_CATEGORY_PATTERNS = {name: _pattern(words) for name, words in CATEGORY_KEYWORDS.items()}
_URGENCY_PATTERNS = {level: _pattern(words) for level, words in URGENCY_KEYWORDS.items()}
_REQUEST_PATTERN = _pattern(REQUEST_KEYWORDS)


def analyze_message(text: str) -> MessageAnalysis:
    """Classify a guest message by whole-word keyword matching."""
    text = text or ""
    scores = {name: len(p.findall(text)) for name, p in _CATEGORY_PATTERNS.items()}
    best = max(scores, key=lambda name: scores[name])
    category = best if scores[best] else "general"

    if _URGENCY_PATTERNS["high"].search(text):
        urgency = "high"
    elif _URGENCY_PATTERNS["low"].search(text):
        urgency = "low"
    else:
        urgency = "medium"

    should_create = category != "general" or urgency == "high" or bool(_REQUEST_PATTERN.search(text))
    return MessageAnalysis(should_create_ticket=should_create, urgency_level=urgency, category=category)


def build_guest_messages(
    message: str,
    guest_info: Dict[str, Any],
    history: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, str]]:
    context = f"The guest is {guest_info.get('guest_name') or 'a guest'} in room {guest_info.get('room_number')}"
    if guest_info.get("room_type"):
        context += f" ({guest_info['room_type']})"
    messages = [{"role": "system", "content": f"{SYSTEM_PROMPT}\n\n{context}."}]
    for turn in (history or [])[-HISTORY_LIMIT:]:
        role = "user" if turn.get("role") == "user" else "assistant"
        content = turn.get("content")
        if content:
            messages.append({"role": role, "content": str(content)})
    messages.append({"role": "user", "content": message})
    return messages


def build_manager_messages(ticket: Dict[str, Any], history: List[Dict[str, Any]], request_type: Optional[str]) -> List[Dict[str, str]]:
    transcript = "\n".join(
        f"{turn.get('sender_name') or turn.get('sender') or turn.get('role')}: {turn.get('content')}"
        for turn in history[-HISTORY_LIMIT:]
    )
    prompt = (
        f"Ticket: {ticket.get('subject')} (room {ticket.get('room_number')}, "
        f"priority {ticket.get('priority')}).\nGuest: {ticket['guest_info']['name']}\n"
        f"Conversation so far:\n{transcript}"
    )
    if request_type:
        prompt += f"\nThe manager wants: {request_type}"
    return [
        {"role": "system", "content": MANAGER_PROMPT},
        {"role": "user", "content": prompt},
    ]


def fallback_reply(guest_name: Optional[str]) -> str:
    return (
        f"Thank you for reaching out, {guest_name or 'dear guest'}! I understand you need "
        "assistance. Let me connect you with our staff who can help you right away."
    )


def fallback_suggestion(guest_name: str) -> str:
    return (
        f"Thank you for bringing this to our attention, {guest_name}. I understand your "
        "concern and we'll address this promptly. Our team will take care of this for you "
        "within the next 30 minutes. Is there anything else I can help you with?"
    )


class MistralClient:
    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.mistral.ai/v1/chat/completions",
        model: str = "mistral-small-latest",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def complete(self, messages: List[Dict[str, str]], temperature: float = 0.3, max_tokens: int = 300) -> str:
        if not self.api_key:
            raise AssistantError("Mistral API key is not configured")
        try:
            response = self._http.post(
                self.api_url,
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            raise AssistantError(f"Mistral request failed: {exc}") from exc
        if not content or not content.strip():
            raise AssistantError("Mistral returned an empty reply")
        return content.strip()


_client: Optional[MistralClient] = None


def get_mistral_client() -> MistralClient:
    global _client
    if _client is None:
        _client = MistralClient(
            config.MISTRAL_API_KEY,
            api_url=config.MISTRAL_API_URL,
            model=config.MISTRAL_MODEL,
            timeout=config.MISTRAL_TIMEOUT,
        )
    return _client
