"""Socratic tutor chat.

Responsibilities:
- Build the subject-specific Socratic system prompt
- Proxy the conversation to the LLM as a text stream
- Return a canned reply when the LLM is not configured or unreachable
- Derive the metadata stored with a chat session (topic, title, preview)

Messages arrive in the client shape ``{"role", "content"}`` where content is
either a string or a list of parts (``{"type": "text", "text"}`` or
``{"type": "image", "image"}``).
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog

from tutoring.config.app_config import load_app_config
from tutoring.llm.client import LLMClient, LLMError, Message
from tutoring.prompts.registry import get_prompt
from tutoring.utils.text_utils import truncate

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_TUTOR_SUBJECT = "general"
SPECIALIZED_SUBJECTS = ("math", "science")

TITLE_MAX_CHARS = 50
PREVIEW_MAX_CHARS = 100

NEW_CONVERSATION_TITLE = "New Conversation"
IMAGE_PREVIEW = "Image analysis in progress..."
EMPTY_PREVIEW = "..."

ERROR_NOT_CONFIGURED = "AI service configuration error"
MESSAGE_NOT_CONFIGURED = (
    "I apologize, but the AI tutoring service is not properly configured. "
    "Please check environment variables."
)
ERROR_UNAVAILABLE = "AI service temporarily unavailable"
MESSAGE_UNAVAILABLE = (
    "I apologize, but I'm having trouble connecting to the AI tutoring service right now. "
    "Please try again in a moment, or check your internet connection."
)

# Checked in order; first topic with a matching keyword wins
TOPIC_KEYWORDS: dict[str, list[tuple[str, tuple[str, ...]]]] = {
    "math": [
        ("algebra", ("algebra", "equation", "variable", "solve for x")),
        ("geometry", ("geometry", "triangle", "circle", "area", "perimeter")),
        ("trigonometry", ("trigonometry", "sin", "cos", "tan", "angle")),
        ("calculus", ("calculus", "derivative", "integral", "limit")),
        ("statistics", ("statistics", "mean", "median", "probability")),
        ("arithmetic", ("arithmetic", "addition", "subtraction", "multiplication", "division")),
    ],
    "science": [
        ("biology", ("biology", "cell", "organism", "species", "evolution")),
        ("chemistry", ("chemistry", "molecule", "reaction", "element", "compound")),
        ("physics", ("physics", "force", "energy", "motion", "wave")),
        ("earth science", ("earth", "geology", "rock", "mineral", "plate")),
        ("environmental science", ("environment", "ecosystem", "climate", "pollution")),
    ],
}

IMAGE_TITLE_KEYWORDS: dict[str, list[tuple[str, tuple[str, ...]]]] = {
    "math": [
        ("Math Problem Analysis", ("equation", "solve", "variable")),
        ("Geometry Problem", ("geometry", "triangle", "circle", "area")),
        ("Graph Analysis", ("graph", "plot", "chart")),
        ("Formula Analysis", ("formula",)),
    ],
    "science": [
        ("Cell Biology Analysis", ("cell", "organism", "microscope")),
        ("Chemistry Analysis", ("molecule", "chemical", "reaction")),
        ("Physics Analysis", ("force", "motion", "energy")),
        ("Scientific Diagram", ("diagram", "structure")),
        ("Lab Experiment", ("experiment", "lab")),
    ],
    DEFAULT_TUTOR_SUBJECT: [
        ("Problem Analysis", ("problem", "question")),
        ("Diagram Analysis", ("diagram", "chart")),
        ("Document Analysis", ("text", "document")),
    ],
}

IMAGE_TITLE_DEFAULTS = {
    "math": "Math Image Analysis",
    "science": "Science Image Analysis",
    DEFAULT_TUTOR_SUBJECT: "Image Analysis",
}


# =============================================================================
# MESSAGE HELPERS
# =============================================================================


def content_text(content: Any) -> str:
    """Plain text of a message content (text parts joined, images dropped)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return " ".join(
            part.get("text", "") if part.get("type") == "text" else ""
            for part in content
            if isinstance(part, dict)
        )
    return ""


def _conversation_text(messages: list[dict[str, Any]]) -> str:
    return " ".join(content_text(m.get("content")) for m in messages).lower()


def _first_match(text: str, table: list[tuple[str, tuple[str, ...]]]) -> str | None:
    for label, keywords in table:
        if any(k in text for k in keywords):
            return label
    return None


def _tutor_subject(subject: str | None) -> str:
    subject = (subject or DEFAULT_TUTOR_SUBJECT).lower()
    return subject if subject in SPECIALIZED_SUBJECTS else DEFAULT_TUTOR_SUBJECT


# =============================================================================
# SESSION METADATA
# =============================================================================


def detect_topic(messages: list[dict[str, Any]], subject: str | None) -> str:
    """Keyword-based topic for math and science conversations; "general" otherwise."""
    table = TOPIC_KEYWORDS.get(_tutor_subject(subject))
    if not messages or not table:
        return DEFAULT_TUTOR_SUBJECT
    return _first_match(_conversation_text(messages), table) or DEFAULT_TUTOR_SUBJECT


def image_conversation_title(messages: list[dict[str, Any]], subject: str | None) -> str:
    subject = _tutor_subject(subject)
    if not messages:
        return IMAGE_TITLE_DEFAULTS[DEFAULT_TUTOR_SUBJECT]
    match = _first_match(_conversation_text(messages), IMAGE_TITLE_KEYWORDS[subject])
    return match or IMAGE_TITLE_DEFAULTS[subject]


def derive_title(messages: list[dict[str, Any]], subject: str | None) -> str:
    """Title from the first user message: 50 chars plus "..." when cut."""
    first_user = next((m for m in messages if m.get("role") == "user"), None)
    if first_user is None:
        return NEW_CONVERSATION_TITLE

    content = first_user.get("content")
    if isinstance(content, str):
        return truncate(content, TITLE_MAX_CHARS)
    if isinstance(content, list):
        return image_conversation_title(messages, subject)
    return NEW_CONVERSATION_TITLE


def derive_preview(messages: list[dict[str, Any]]) -> str:
    """First 100 characters of the last message."""
    if not messages or not messages[-1].get("content"):
        return EMPTY_PREVIEW
    content = messages[-1]["content"]
    if isinstance(content, str):
        return content[:PREVIEW_MAX_CHARS]
    return IMAGE_PREVIEW


def session_fields(
    messages: list[dict[str, Any]],
    subject: str | None,
    is_new: bool = True,
) -> dict[str, Any]:
    """Repository fields for saving a conversation.

    The title is only derived for new sessions; existing sessions keep theirs.
    """
    fields: dict[str, Any] = {
        "subject": subject or DEFAULT_TUTOR_SUBJECT,
        "topic": detect_topic(messages, subject),
        "last_message": derive_preview(messages),
        "messages": messages,
    }
    if is_new:
        fields["title"] = derive_title(messages, subject)
    return fields


# =============================================================================
# PROMPT / LLM
# =============================================================================


def build_system_prompt(subject: str | None) -> str:
    """Base Socratic prompt plus the math or science specialization."""
    subject = _tutor_subject(subject)
    prompt = get_prompt("tutor/base")
    if subject in SPECIALIZED_SUBJECTS:
        prompt = prompt.rstrip() + "\n\n" + get_prompt(f"tutor/{subject}")
    return prompt


def _convert_part(part: dict[str, Any]) -> dict[str, Any]:
    if part.get("type") == "image":
        return {"type": "image_url", "image_url": {"url": part.get("image", "")}}
    return {"type": "text", "text": part.get("text", "")}


def to_llm_messages(messages: list[dict[str, Any]], subject: str | None) -> list[Message]:
    """System prompt followed by the conversation in OpenAI message format."""
    converted = [Message(role="system", content=build_system_prompt(subject))]
    for m in messages:
        role = m.get("role")
        if role not in ("user", "assistant"):
            continue
        content = m.get("content")
        if isinstance(content, list):
            content = [_convert_part(p) for p in content if isinstance(p, dict)]
        converted.append(Message(role=role, content=content if content is not None else ""))
    return converted


@dataclass
class TutorReply:
    """Either a live text stream or a canned fallback payload."""

    stream: Iterator[str] | None = None
    fallback: dict[str, Any] | None = None

    @property
    def is_mock(self) -> bool:
        return self.fallback is not None


def fallback_payload(error: str, message: str, with_timestamp: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": error, "message": message, "isMock": True}
    if with_timestamp:
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()
    return payload


def _default_client() -> LLMClient:
    return LLMClient(model=load_app_config().llm.chat_model)


def stream_reply(
    messages: list[dict[str, Any]],
    subject: str | None = None,
    client: LLMClient | None = None,
) -> TutorReply:
    """Start the tutor's reply to a conversation.

    The first chunk is pulled before returning so that a failure to reach
    the LLM becomes a fallback payload instead of a broken stream.

    Args:
        messages: Conversation so far in the client shape
        subject: "math", "science" or anything else for the general tutor
        client: Optional pre-configured LLM client (for testing)
    """
    client = client or _default_client()

    if not client.is_configured:
        logger.error("tutor_not_configured")
        return TutorReply(fallback=fallback_payload(ERROR_NOT_CONFIGURED, MESSAGE_NOT_CONFIGURED))

    chunks = client.chat_stream(to_llm_messages(messages, subject))
    try:
        first = next(chunks)
    except StopIteration:
        return TutorReply(stream=iter(()))
    except LLMError as e:
        logger.error("tutor_reply_failed", error=str(e), subject=subject)
        return TutorReply(
            fallback=fallback_payload(ERROR_UNAVAILABLE, MESSAGE_UNAVAILABLE, with_timestamp=True)
        )

    logger.info("tutor_reply_started", subject=_tutor_subject(subject), messages=len(messages))
    return TutorReply(stream=itertools.chain([first], chunks))
