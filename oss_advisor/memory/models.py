"""
Memory Models
=============

ConversationTurn is one persisted message. It is created by the agent,
stored by the MemoryStore and never modified afterwards.

MemoryResult carries the outcome of a best-effort memory operation so
callers decide explicitly what to do with a failure (log it, move on).
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# Storage caps, applied before a turn is written
MAX_USER_TEXT = 1000
MAX_ASSISTANT_TEXT = 2000
RESPONDING_TO_PREFIX = 100


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class DerivedFlag(str, Enum):
    """Markers computed from user text at write time, used as search filters."""
    MENTIONS_NAME = "mentions_name"
    MENTIONS_SKILLS = "mentions_skills"
    MENTIONS_INTERESTS = "mentions_interests"


_FLAG_PATTERNS = {
    DerivedFlag.MENTIONS_NAME: re.compile(r"my name is (\w+)|i'm (\w+)|i am (\w+)", re.IGNORECASE),
    DerivedFlag.MENTIONS_SKILLS: re.compile(r"javascript|python|react|frontend|backend", re.IGNORECASE),
    DerivedFlag.MENTIONS_INTERESTS: re.compile(
        r"beginner|intermediate|advanced|frontend|backend", re.IGNORECASE
    ),
}


def derive_flags(text: str) -> frozenset[DerivedFlag]:
    """Flags whose pattern appears anywhere in `text`."""
    return frozenset(flag for flag, pattern in _FLAG_PATTERNS.items() if pattern.search(text))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            pass
    # Unknown timestamps sort first, like the epoch
    return datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class ConversationTurn:
    """
    One message in a conversation.

    Attributes:
        conversation_id: The chat this turn belongs to
        role: Who said it
        text: Message text, already truncated for storage
        timestamp: When the turn was created (UTC)
        derived_flags: Markers for filtered search (user turns only)
        responding_to: For assistant turns, the start of the user input
    """
    conversation_id: str
    role: TurnRole
    text: str
    timestamp: datetime = field(default_factory=_utcnow)
    derived_flags: frozenset[DerivedFlag] = frozenset()
    responding_to: str | None = None

    @classmethod
    def create(
        cls,
        conversation_id: str,
        role: TurnRole,
        text: str,
        derived_flags: frozenset[DerivedFlag] | None = None,
        timestamp: datetime | None = None,
        responding_to: str | None = None
    ) -> "ConversationTurn":
        """
        Build a turn ready for storage.

        Text is capped at 1000 characters for user turns and 2000 for
        assistant turns. Flags are derived from user text unless given.
        """
        text = str(text)
        if role == TurnRole.USER:
            text = text[:MAX_USER_TEXT]
            flags = derive_flags(text) if derived_flags is None else frozenset(derived_flags)
        else:
            text = text[:MAX_ASSISTANT_TEXT]
            flags = frozenset(derived_flags or ())
            if responding_to is not None:
                responding_to = responding_to[:RESPONDING_TO_PREFIX]

        return cls(
            conversation_id=conversation_id,
            role=role,
            text=text,
            timestamp=timestamp or _utcnow(),
            derived_flags=flags,
            responding_to=responding_to,
        )

    def has_flag(self, flag: DerivedFlag) -> bool:
        return flag in self.derived_flags

    def to_metadata(self) -> dict[str, Any]:
        """Metadata stored next to the text in the vector store."""
        metadata: dict[str, Any] = {
            "conversation_id": self.conversation_id,
            "role": self.role.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.role == TurnRole.USER:
            for flag in DerivedFlag:
                metadata[flag.value] = flag in self.derived_flags
        if self.responding_to is not None:
            metadata["responding_to"] = self.responding_to
        return metadata

    @classmethod
    def from_document(cls, content: str, metadata: dict[str, Any]) -> "ConversationTurn":
        """
        Rebuild a turn from a stored document.

        Raises:
            ValueError: If the stored role is not a known TurnRole
        """
        return cls(
            conversation_id=str(metadata.get("conversation_id", "")),
            role=TurnRole(metadata.get("role")),
            text=content,
            timestamp=_parse_timestamp(metadata.get("timestamp")),
            derived_flags=frozenset(flag for flag in DerivedFlag if metadata.get(flag.value) is True),
            responding_to=metadata.get("responding_to"),
        )


@dataclass(frozen=True)
class MemoryResult(Generic[T]):
    """
    Outcome of a best-effort memory operation.

    Example:
        result = await store.search(chat_id, message)
        if not result.ok:
            logger.warning("Memory search failed", {"error": str(result.error)})
        turns = result.value_or([])
    """
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "MemoryResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "MemoryResult[T]":
        return cls(error=error)

    def value_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value
