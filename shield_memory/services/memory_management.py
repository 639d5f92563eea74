"""
Memory Management Service: the entry point the chat-turn handler uses to store,
retrieve and compose conversation memory.

Memory is an enhancement of chat generation, never a requirement: no method
here raises because the embedding service or vector store failed.
"""

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from ..models.core import MemoryContext, MemorySearchResult, MemoryStats
from ..utils.bedrock_embed import BedrockEmbed
from ..utils.config import MemoryConfig, config
from ..utils.embedding_adapter import EmbeddingAdapter
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchVectorStore
from ..utils.timestamp_utils import days_ago_iso
from ..utils.vector_store import StoreUnavailableError, VectorStore
from .context_composer import ContextComposer
from .conversation_analysis import extract_key_topics
from .conversation_store import ConversationStore, LRUConversationStore
from .memory_retriever import MemoryRetriever
from .memory_writer import MessageInput, MemoryWriter, normalize_messages

logger = get_logger(__name__)

STATS_SAMPLE_QUERY = 'recent conversations'
STATS_SAMPLE_SIZE = 5


class MemoryManagementService:
    """Unified service for conversation memory storage, retrieval, context and administration."""

    def __init__(self,
                 embeddings: Optional[EmbeddingAdapter] = None,
                 store: Optional[VectorStore] = None,
                 conversations: Optional[ConversationStore] = None,
                 memory_config: Optional[MemoryConfig] = None):
        """Initialize the memory management service.

        Collaborators default to the Bedrock embedding client, the OpenSearch
        vector store and an LRU transcript cache built from the global config.

        Raises:
            UnsupportedDimensionError: If the configured embedding and store widths cannot be adapted
        """
        self.memory_config = memory_config or config.memory
        self.embeddings = embeddings or EmbeddingAdapter(BedrockEmbed(config.bedrock_embed), config.dimensions)
        self.store = store or OpenSearchVectorStore(config.opensearch)
        self.conversations = conversations or LRUConversationStore(self.memory_config.conversation_cache_size,
                                                                   self.memory_config.conversation_cache_messages)

        try:
            self.store.ensure_index()
        except StoreUnavailableError as e:
            logger.warning(f'Failed to create memory index: {e}')

        self.writer = MemoryWriter(self.embeddings, self.store)
        self.retriever = MemoryRetriever(self.embeddings, self.store)
        self.composer = ContextComposer(self.retriever, self.conversations, self.memory_config.min_score)

        logger.info('Initialized MemoryManagementService')

    def store_conversation_memory(self,
                                  conversation_id: str,
                                  user_id: str,
                                  messages: Sequence[MessageInput],
                                  extra_metadata: Optional[Dict[str, Any]] = None) -> int:
        """Persist a conversation's messages as memories and refresh its cached transcript.

        Returns:
            Number of records written
        """
        normalized = normalize_messages(messages)
        if isinstance(self.conversations, LRUConversationStore) and normalized and conversation_id and user_id:
            self.conversations.record(conversation_id, normalized, user_id=user_id)
        return self.writer.store_conversation_memory(conversation_id, user_id, normalized, extra_metadata)

    def retrieve_relevant_memories(self,
                                   query: str,
                                   user_id: str,
                                   conversation_id: Optional[str] = None,
                                   top_k: Optional[int] = None,
                                   min_score: Optional[float] = None) -> List[MemorySearchResult]:
        """Retrieve memories relevant to query, see MemoryRetriever."""
        top_k = self.memory_config.default_top_k if top_k is None else top_k
        min_score = self.memory_config.min_score if min_score is None else min_score
        return self.retriever.retrieve_relevant_memories(query, user_id, conversation_id, top_k, min_score)

    def get_enhanced_conversation_context(self,
                                          conversation_id: str,
                                          user_id: str,
                                          current_message: str,
                                          top_k: Optional[int] = None) -> MemoryContext:
        """Compose the memory context for a chat turn, see ContextComposer."""
        top_k = self.memory_config.context_top_k if top_k is None else top_k
        return self.composer.get_enhanced_conversation_context(conversation_id, user_id, current_message, top_k)

    def delete_conversation_memories(self, user_id: str, conversation_id: str) -> bool:
        """Delete every memory of one of the user's conversations.

        Returns:
            True if the store accepted the deletion
        """
        if not user_id or not conversation_id:
            logger.warning('User ID and conversation ID are required for deletion')
            return False

        if isinstance(self.conversations, LRUConversationStore):
            self.conversations.evict(conversation_id)
        try:
            self.store.delete_by_filter({'user_id': user_id, 'conversation_id': conversation_id})
            logger.info(f'Deleted memories for conversation {conversation_id}')
            return True
        except StoreUnavailableError as e:
            logger.error(f'Failed to delete memories for conversation {conversation_id}: {e}')
            return False

    def delete_user_memories(self, user_id: str) -> bool:
        """Delete every memory owned by user_id.

        Returns:
            True if the store accepted the deletion
        """
        if not user_id:
            logger.warning('User ID is required for deletion')
            return False

        if isinstance(self.conversations, LRUConversationStore):
            self.conversations.evict_user(user_id)
        try:
            self.store.delete_by_filter({'user_id': user_id})
            logger.info(f'Deleted all memories for user {user_id}')
            return True
        except StoreUnavailableError as e:
            logger.error(f'Failed to delete memories for user {user_id}: {e}')
            return False

    def cleanup_old_memories(self, user_id: str, older_than_days: Optional[int] = None) -> bool:
        """Delete the user's memories older than older_than_days (default from config).

        Returns:
            True if the store accepted the deletion
        """
        if not user_id:
            logger.warning('User ID is required for cleanup')
            return False

        days = self.memory_config.cleanup_older_than_days if older_than_days is None else older_than_days
        cutoff = days_ago_iso(days)
        try:
            self.store.delete_by_filter({'user_id': user_id}, older_than=cutoff)
            logger.info(f'Cleaned up memories older than {cutoff} for user {user_id}')
            return True
        except StoreUnavailableError as e:
            logger.error(f'Memory cleanup failed for user {user_id}: {e}')
            return False

    def generate_memory_summary(self, conversation_id: str) -> str:
        """One-line summary of the topics a conversation covered; '' if unknown."""
        try:
            messages = self.conversations.get_messages(conversation_id)
            if not messages:
                return ''
            topics = extract_key_topics(message.content for message in messages)
            return f"Conversation covered: {', '.join(topics)}"
        except Exception as e:
            logger.error(f'Error generating memory summary: {e}')
            return ''

    def get_memory_stats(self, user_id: str) -> MemoryStats:
        """Memory statistics for a user; zeros if the store is unavailable."""
        if not user_id:
            return MemoryStats()

        try:
            total = self.store.describe_stats({'user_id': user_id}).get('total_count', 0)
        except StoreUnavailableError as e:
            logger.error(f'Error getting memory stats: {e}')
            return MemoryStats()

        recent = self.retriever.retrieve_relevant_memories(STATS_SAMPLE_QUERY, user_id, None, STATS_SAMPLE_SIZE, 0.0)
        topic_counts = Counter(topic for memory in recent for topic in memory.metadata.get('key_topics') or [])

        return MemoryStats(total_memories=total,
                           recent_conversations=len({memory.conversation_id for memory in recent}),
                           average_relevance=sum(memory.score for memory in recent) / len(recent) if recent else 0.0,
                           top_topics=[topic for topic, _ in topic_counts.most_common(STATS_SAMPLE_SIZE)],
                           recent_memories=recent)

    @staticmethod
    def format_context_for_prompt(context: MemoryContext) -> str:
        """Render a memory context as a block to append to the system prompt."""
        if not context.messages:
            return ''

        preferences = context.user_preferences
        style = preferences.communication_style if preferences else 'standard'
        interests = ', '.join(preferences.preferred_topics) if preferences and preferences.preferred_topics else 'general topics'
        topics = ', '.join(context.key_topics) if context.key_topics else 'general topics'

        return ('\nIMPORTANT MEMORY CONTEXT:\n'
                f'Based on our previous conversations, I remember discussing these topics: {topics}.\n'
                f'The emotional tone of our previous interactions has been: {context.emotional_tone or "neutral"}.\n'
                f'User preferences: {style} communication style, interested in: {interests}.\n\n'
                'Please reference relevant previous discussions when appropriate and maintain consistency '
                'with our conversation history.')

    def health_check(self) -> Dict[str, bool]:
        return {'embeddings': self.embeddings.health_check(), 'vector_store': self.store.health_check()}
