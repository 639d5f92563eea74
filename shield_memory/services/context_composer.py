"""
Context composer: merges the current conversation with memories from the user's
other conversations into a per-turn MemoryContext.
"""

from typing import List

from ..models.core import ContextMessage, MemoryContext
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import sort_key
from .conversation_analysis import analyze_emotional_tone, extract_key_topics, extract_user_preferences
from .conversation_store import ConversationStore
from .memory_retriever import MemoryRetriever

logger = get_logger(__name__)

CURRENT_CONVERSATION_RELEVANCE = 1.0


class ContextComposer:
    """Build the memory context used to enrich a chat turn's prompt."""

    def __init__(self, retriever: MemoryRetriever, conversations: ConversationStore, min_score: float = 0.7):
        self.retriever = retriever
        self.conversations = conversations
        self.min_score = min_score

    def _current_messages(self, conversation_id: str, user_id: str) -> List[ContextMessage]:
        messages = []
        for index, message in enumerate(self.conversations.get_messages(conversation_id, user_id)):
            messages.append(
                ContextMessage(id=message.id or f'{conversation_id}_{index}',
                               content=message.content,
                               role=message.role,
                               timestamp=message.timestamp,
                               relevance=CURRENT_CONVERSATION_RELEVANCE))
        return messages

    def _related_memories(self, conversation_id: str, user_id: str, current_message: str, top_k: int) -> List[ContextMessage]:
        # No conversation filter: recall spans all of the user's conversations
        memories = self.retriever.retrieve_relevant_memories(current_message, user_id, None, top_k, self.min_score)
        return [
            ContextMessage(id=f'memory_{memory.conversation_id}_{memory.timestamp}',
                           content=memory.content,
                           role=memory.role,
                           timestamp=memory.timestamp,
                           relevance=memory.score) for memory in memories if memory.conversation_id != conversation_id
        ]

    def get_enhanced_conversation_context(self,
                                          conversation_id: str,
                                          user_id: str,
                                          current_message: str,
                                          top_k: int = 15) -> MemoryContext:
        """Compose the memory context for a new message.

        Messages from the current conversation get relevance 1.0; memories from
        other conversations keep their re-ranked score. The merged list is ordered
        by relevance, newest first on ties, and capped at top_k.

        Returns:
            MemoryContext; a degraded context with no messages, topics or
            preferences if anything fails
        """
        try:
            merged = self._current_messages(conversation_id, user_id)
            merged.extend(self._related_memories(conversation_id, user_id, current_message, top_k))

            # Two stable sorts: newest first, then by relevance
            merged.sort(key=lambda message: sort_key(message.timestamp), reverse=True)
            merged.sort(key=lambda message: message.relevance, reverse=True)
            # Analysis covers everything merged, not just the messages kept
            contents = [message.content for message in merged]
            context = MemoryContext(conversation_id=conversation_id,
                                    user_id=user_id,
                                    messages=merged[:top_k],
                                    key_topics=extract_key_topics(contents),
                                    emotional_tone=analyze_emotional_tone(contents),
                                    user_preferences=extract_user_preferences(merged))

            logger.info(f'Memory context for conversation {conversation_id}: '
                        f'{len(context.messages)} messages, topics {context.key_topics}')
            return context

        except Exception as e:
            logger.error(f'Error getting enhanced conversation context: {e}')
            return MemoryContext(conversation_id=conversation_id, user_id=user_id)
