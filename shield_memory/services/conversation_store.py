"""
Conversation store collaborator and a bounded LRU transcript cache.
"""

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from ..models.core import ConversationMessage
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class ConversationStore(ABC):
    """Source of a conversation's persisted messages."""

    @abstractmethod
    def get_messages(self, conversation_id: str, user_id: Optional[str] = None) -> List[ConversationMessage]:
        """Return the conversation's messages in chronological order.

        When user_id is given, only a conversation owned by that user is returned.
        """


class LRUConversationStore(ConversationStore):
    """Recent transcripts keyed by conversation id, least recently used evicted first.

    Holds at most max_conversations transcripts, each trimmed to its most recent
    max_messages messages.
    """

    def __init__(self, max_conversations: int = 256, max_messages: int = 50):
        if max_conversations < 1 or max_messages < 1:
            raise ValueError('LRUConversationStore bounds must be positive')
        self.max_conversations = max_conversations
        self.max_messages = max_messages
        self._transcripts: 'OrderedDict[str, List[ConversationMessage]]' = OrderedDict()
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._transcripts)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._transcripts

    @property
    def evictions(self) -> int:
        return self._evictions

    def _store(self, conversation_id: str, messages: List[ConversationMessage]) -> None:
        self._transcripts[conversation_id] = messages[-self.max_messages:]
        self._transcripts.move_to_end(conversation_id)
        while len(self._transcripts) > self.max_conversations:
            evicted, _ = self._transcripts.popitem(last=False)
            self._owners.pop(evicted, None)
            self._evictions += 1
            logger.debug(f'Evicted transcript for conversation {evicted}')

    def record(self, conversation_id: str, messages: Iterable[ConversationMessage], user_id: Optional[str] = None) -> bool:
        """Replace the cached transcript for a conversation, remembering its owner if given.

        Returns:
            False, leaving the cache untouched, if the conversation belongs to another user
        """
        with self._lock:
            owner = self._owners.get(conversation_id)
            if user_id and owner and owner != user_id:
                logger.warning(f'Conversation {conversation_id} belongs to another user, transcript not cached')
                return False
            if user_id:
                self._owners[conversation_id] = user_id
            self._store(conversation_id, list(messages))
            return True

    def append(self, conversation_id: str, message: ConversationMessage) -> None:
        with self._lock:
            messages = self._transcripts.get(conversation_id, [])
            self._store(conversation_id, messages + [message])

    def get_messages(self, conversation_id: str, user_id: Optional[str] = None) -> List[ConversationMessage]:
        with self._lock:
            messages = self._transcripts.get(conversation_id)
            if messages is None:
                return []
            # Transcripts with no recorded owner are never handed to a specific user
            if user_id is not None and self._owners.get(conversation_id) != user_id:
                return []
            self._transcripts.move_to_end(conversation_id)
            return list(messages)

    def evict(self, conversation_id: str) -> bool:
        with self._lock:
            self._owners.pop(conversation_id, None)
            return self._transcripts.pop(conversation_id, None) is not None

    def evict_user(self, user_id: str) -> int:
        """Drop every transcript recorded for user_id. Returns the number dropped."""
        with self._lock:
            owned = [cid for cid, owner in self._owners.items() if owner == user_id]
            for conversation_id in owned:
                self._transcripts.pop(conversation_id, None)
                del self._owners[conversation_id]
            return len(owned)

    def clear(self) -> None:
        with self._lock:
            self._transcripts.clear()
            self._owners.clear()
