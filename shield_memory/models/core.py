"""
Core data models for the conversation memory engine.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(str, Enum):
    USER = 'user'
    ASSISTANT = 'assistant'


class EmotionalTone(str, Enum):
    POSITIVE = 'positive'
    NEGATIVE = 'negative'
    NEUTRAL = 'neutral'


class ConversationType(str, Enum):
    BIBLE_STUDY = 'bible_study'
    APOLOGETICS = 'apologetics'
    SPIRITUAL = 'spiritual'
    THEOLOGICAL = 'theological'
    PERSONAL = 'personal'
    GENERAL = 'general'


class ConversationFlow(str, Enum):
    START = 'start'
    END = 'end'
    QUESTION = 'question'
    ANSWER = 'answer'
    CONTINUATION = 'continuation'


class CommunicationStyle(str, Enum):
    DETAILED = 'detailed'
    CONCISE = 'concise'


@dataclass
class ConversationMessage:
    """A single conversation turn as supplied by the chat handler or conversation store."""
    content: str
    role: str  # 'user' or 'assistant'
    timestamp: str = ''  # ISO-8601, filled at write time when empty
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConversationMessage':
        return cls(content=str(data.get('content', '')),
                   role=str(data.get('role', Role.USER.value)),
                   timestamp=str(data.get('timestamp') or data.get('created_at') or ''),
                   id=data.get('id'))


@dataclass
class MemoryRecord:
    """Unit stored in the vector index.

    Each record belongs to exactly one user; user_id is part of every read and
    delete filter.
    """
    id: str  # '<conversation_id>_<message_index>'
    vector: List[float]  # Length equals the store dimension
    content: str
    role: str
    conversation_id: str
    user_id: str
    timestamp: str
    metadata: Dict[str, Any] = field(default_factory=dict)  # Derived, best-effort

    def to_metadata(self) -> Dict[str, Any]:
        """Flatten into the metadata document stored beside the vector."""
        document = dict(self.metadata)
        document.update({
            'content': self.content,
            'role': self.role,
            'conversation_id': self.conversation_id,
            'user_id': self.user_id,
            'timestamp': self.timestamp,
        })
        return document


@dataclass
class MemorySearchResult:
    """A retrieved memory with its re-ranked score."""
    content: str
    role: str
    conversation_id: str
    score: float
    timestamp: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ContextMessage:
    id: str
    content: str
    role: str
    timestamp: str
    relevance: float


@dataclass
class UserPreferences:
    preferred_topics: List[str]
    communication_style: str
    emotional_pattern: str


@dataclass
class MemoryContext:
    """Per-turn memory context for prompt enrichment. Never persisted."""
    conversation_id: str
    user_id: str
    messages: List[ContextMessage] = field(default_factory=list)
    key_topics: List[str] = field(default_factory=list)
    emotional_tone: Optional[str] = None
    user_preferences: Optional[UserPreferences] = None
    summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MemoryStats:
    """Per-user memory statistics.

    recent_conversations, average_relevance and top_topics describe the
    recent-memory sample, total_memories the whole index.
    """
    total_memories: int = 0
    recent_conversations: int = 0
    average_relevance: float = 0.0
    top_topics: List[str] = field(default_factory=list)
    recent_memories: List[MemorySearchResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
