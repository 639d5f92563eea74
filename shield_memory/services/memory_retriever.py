"""
Memory retriever: similarity search over a user's memories with heuristic re-ranking.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.core import ConversationFlow, MemorySearchResult, Role
from ..utils.bedrock_embed import EmbeddingUnavailableError
from ..utils.embedding_adapter import EmbeddingAdapter
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import days_since
from ..utils.vector_store import StoreUnavailableError, VectorStore
from .conversation_analysis import word_jaccard

logger = get_logger(__name__)

RECENT_DAYS = 7
RECENT_BOOST = 1.10
TODAY_DAYS = 1
TODAY_BOOST = 1.20
QUESTION_BOOST = 1.15
SEMANTIC_OVERLAP_THRESHOLD = 0.8
SEMANTIC_OVERLAP_BOOST = 1.10
MAX_SCORE = 1.0

# Candidates fetched per requested result, leaving room for the score floor
CANDIDATE_MULTIPLIER = 2


def enhance_score(base_score: float, metadata: Optional[Dict[str, Any]], query: str, now: Optional[datetime] = None) -> float:
    """Re-rank a similarity score with recency, flow and semantic-overlap boosts.

    The recency boosts compound: a record under one day old gets both the
    seven-day and the one-day multiplier (x1.32 overall).

    Returns:
        Boosted score, capped at 1.0
    """
    score = base_score
    metadata = metadata or {}

    age = days_since(metadata.get('timestamp'), now)
    if age is not None:
        if age < RECENT_DAYS:
            score *= RECENT_BOOST
        if age < TODAY_DAYS:
            score *= TODAY_BOOST

    if metadata.get('conversation_flow') == ConversationFlow.QUESTION.value and '?' in query:
        score *= QUESTION_BOOST

    semantic_chunk = metadata.get('semantic_chunk')
    if semantic_chunk and word_jaccard(query, semantic_chunk) > SEMANTIC_OVERLAP_THRESHOLD:
        score *= SEMANTIC_OVERLAP_BOOST

    return min(score, MAX_SCORE)


class MemoryRetriever:
    """Find and rank the most relevant prior messages for a query."""

    def __init__(self, embeddings: EmbeddingAdapter, store: VectorStore):
        self.embeddings = embeddings
        self.store = store

    def retrieve_relevant_memories(self,
                                   query: str,
                                   user_id: str,
                                   conversation_id: Optional[str] = None,
                                   top_k: int = 10,
                                   min_score: float = 0.7) -> List[MemorySearchResult]:
        """Retrieve a user's memories relevant to query.

        Candidates are admitted on their raw similarity (>= min_score) and only
        then re-ranked, so boosts never admit a candidate.

        Args:
            query: Text to search for
            user_id: Owner whose memories are searched
            conversation_id: Restrict to one conversation; None searches them all
            top_k: Maximum number of results
            min_score: Minimum raw cosine similarity

        Returns:
            Results ordered by re-ranked score; empty when nothing qualifies or the
            embedding service or vector store fails
        """
        if not user_id:
            logger.error('User ID is required to retrieve memories')
            return []
        if not query or not query.strip() or top_k <= 0:
            return []

        logger.debug(f'Retrieving memories for query: {query[:100]}')

        search_filter: Dict[str, Any] = {'user_id': user_id}
        if conversation_id:
            search_filter['conversation_id'] = conversation_id

        try:
            query_vector = self.embeddings.embed_query(query)
            candidates = self.store.query(query_vector, top_k * CANDIDATE_MULTIPLIER, search_filter, include_metadata=True)
        except EmbeddingUnavailableError as e:
            logger.warning(f'Embedding unavailable, no memories retrieved: {e}')
            return []
        except StoreUnavailableError as e:
            logger.warning(f'Vector store unavailable, no memories retrieved: {e}')
            return []
        except Exception as e:
            logger.error(f'Unexpected error retrieving memories: {e}')
            return []

        results = []
        for candidate in candidates:
            base_score = float(candidate.get('score') or 0.0)
            if base_score < min_score:
                continue
            metadata = candidate.get('metadata') or {}
            # Hits with no recorded owner are dropped along with other users' hits
            if metadata.get('user_id') != user_id:
                logger.warning(f"Dropping record {candidate.get('id')} owned by another user")
                continue
            results.append(
                MemorySearchResult(content=str(metadata.get('content', '')),
                                   role=str(metadata.get('role', Role.USER.value)),
                                   conversation_id=str(metadata.get('conversation_id', '')),
                                   score=enhance_score(base_score, metadata, query),
                                   timestamp=str(metadata.get('timestamp', '')),
                                   metadata=metadata))

        results.sort(key=lambda result: result.score, reverse=True)
        results = results[:top_k]

        if results:
            logger.info(f'Retrieved {len(results)} relevant memories with scores from {results[-1].score:.3f} to {results[0].score:.3f}')
        else:
            logger.debug('No relevant memories found')
        return results
