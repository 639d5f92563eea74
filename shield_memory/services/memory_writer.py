"""
Memory writer: persists conversation messages as vector memory records.
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from ..models.core import ConversationMessage, MemoryRecord
from ..utils.bedrock_embed import EmbeddingUnavailableError
from ..utils.embedding_adapter import EmbeddingAdapter
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import to_iso
from ..utils.vector_store import StoreUnavailableError, VectorStore
from .conversation_analysis import (analyze_conversation_flow, analyze_emotional_tone, create_semantic_chunk,
                                    detect_conversation_type, extract_key_topics)

logger = get_logger(__name__)

MessageInput = Union[ConversationMessage, Dict[str, Any]]


def record_id(conversation_id: str, index: int) -> str:
    return f'{conversation_id}_{index}'


def normalize_messages(messages: Sequence[MessageInput]) -> List[ConversationMessage]:
    return [m if isinstance(m, ConversationMessage) else ConversationMessage.from_dict(m) for m in messages]


class MemoryWriter:
    """Embed conversation messages and upsert them with derived metadata."""

    def __init__(self, embeddings: EmbeddingAdapter, store: VectorStore):
        self.embeddings = embeddings
        self.store = store

    def build_records(self,
                      conversation_id: str,
                      user_id: str,
                      messages: List[ConversationMessage],
                      extra_metadata: Optional[Dict[str, Any]] = None) -> List[MemoryRecord]:
        """Build records with derived metadata, leaving vectors empty.

        Conversation type, key topics and emotional tone describe the whole batch;
        semantic chunk and conversation flow are per message.
        """
        contents = [message.content for message in messages]
        roles = [message.role for message in messages]
        conversation_type = detect_conversation_type(contents)
        key_topics = extract_key_topics(contents)
        emotional_tone = analyze_emotional_tone(contents)
        written_at = to_iso()

        records = []
        for index, message in enumerate(messages):
            metadata = {
                'message_index': index,
                'total_messages': len(messages),
                'conversation_type': conversation_type,
                'key_topics': key_topics,
                'emotional_tone': emotional_tone,
                'semantic_chunk': create_semantic_chunk(message.content),
                'conversation_flow': analyze_conversation_flow(roles, index),
            }
            if extra_metadata:
                metadata.update(extra_metadata)

            records.append(
                MemoryRecord(id=record_id(conversation_id, index),
                             vector=[],
                             content=message.content,
                             role=message.role,
                             conversation_id=conversation_id,
                             user_id=user_id,
                             timestamp=message.timestamp or written_at,
                             metadata=metadata))
        return records

    def store_conversation_memory(self,
                                  conversation_id: str,
                                  user_id: str,
                                  messages: Sequence[MessageInput],
                                  extra_metadata: Optional[Dict[str, Any]] = None) -> int:
        """Persist a batch of conversation messages as memory records.

        Each message is embedded and written independently, so one failure never
        prevents the others from being stored. Re-storing the same conversation
        overwrites the records by id. Messages without a timestamp are stamped with
        the write time, so re-storing them refreshes that field and nothing else.

        Args:
            conversation_id: Conversation the messages belong to
            user_id: Owner of the memories
            messages: Messages in conversation order
            extra_metadata: Caller metadata merged into every record

        Returns:
            Number of records written
        """
        if not conversation_id or not user_id:
            logger.error('Conversation ID and user ID are required to store memories')
            return 0
        if not messages:
            logger.warning('Empty messages provided for memory storage')
            return 0

        normalized = normalize_messages(messages)
        logger.debug(f'Storing {len(normalized)} messages for conversation {conversation_id}')

        try:
            records = self.build_records(conversation_id, user_id, normalized, extra_metadata)
        except Exception as e:
            logger.error(f'Failed to derive memory metadata for conversation {conversation_id}: {e}')
            return 0

        written = 0
        for record in records:
            if not record.content or not record.content.strip():
                logger.warning(f'Skipping empty message {record.id}')
                continue
            try:
                record.vector = self.embeddings.embed(record.content)
                self.store.upsert(record.id, record.vector, record.to_metadata())
                written += 1
            except EmbeddingUnavailableError as e:
                logger.warning(f'Embedding unavailable for {record.id}, not stored: {e}')
            except StoreUnavailableError as e:
                logger.warning(f'Vector store unavailable for {record.id}, not stored: {e}')
            except Exception as e:
                logger.error(f'Unexpected error storing {record.id}: {e}')

        if written == len(records):
            logger.info(f'Stored {written} messages in memory for conversation {conversation_id}')
        else:
            logger.warning(f'Stored {written}/{len(records)} messages in memory for conversation {conversation_id}')
        return written
