"""Test fixtures for shield-memory."""

import re
from typing import Any, Dict, List, Optional

import pytest

from shield_memory.models.core import ConversationMessage
from shield_memory.services.conversation_store import ConversationStore, LRUConversationStore
from shield_memory.services.memory_management import MemoryManagementService
from shield_memory.services.memory_retriever import MemoryRetriever
from shield_memory.services.memory_writer import MemoryWriter
from shield_memory.utils.bedrock_embed import EmbeddingUnavailableError
from shield_memory.utils.config import DimensionConfig, MemoryConfig
from shield_memory.utils.embedding_adapter import EmbeddingAdapter, similarity
from shield_memory.utils.timestamp_utils import parse_iso
from shield_memory.utils.vector_store import StoreUnavailableError, VectorStore

# One axis per word, plus a small constant so no text embeds to the zero vector
AXES = ('grace', 'faith', 'prayer', 'science', 'bible', 'hope', 'weather', 'music',
        'history', 'love', 'sin', 'church', 'jesus', 'peace', 'ethics')
BASELINE = 0.05
FAKE_DIMENSION = len(AXES) + 1


class FakeEmbedder:
    """Deterministic stand-in for BedrockEmbed.

    Texts sharing an axis word embed close together; texts sharing none are
    nearly orthogonal.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    @property
    def dimension(self) -> int:
        return FAKE_DIMENSION

    def _vector(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingUnavailableError('embedding service down')
        if not text or not text.strip():
            raise EmbeddingUnavailableError('Cannot embed empty text')
        words = re.findall(r'[a-z]+', text.lower())
        return [float(words.count(axis)) for axis in AXES] + [BASELINE]

    def embed_document(self, text: str) -> List[float]:
        return self._vector(text)

    def embed_query(self, text: str) -> List[float]:
        return self._vector(text)

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self._vector(text) for text in texts]

    def health_check(self) -> bool:
        return not self.fail


class InMemoryVectorStore(VectorStore):
    """Exact cosine search over a dict, with the same contract as the OpenSearch store."""

    def __init__(self, dimension: int = FAKE_DIMENSION, fail: bool = False):
        self.dimension = dimension
        self.fail = fail
        self.records: Dict[str, Dict[str, Any]] = {}
        self.queries: List[Dict[str, Any]] = []

    def _check(self) -> None:
        if self.fail:
            raise StoreUnavailableError('vector store down')

    @staticmethod
    def _matches(metadata: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
        return all(metadata.get(field) == value for field, value in (filter or {}).items())

    def upsert(self, record_id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        self._check()
        if len(vector) != self.dimension:
            raise StoreUnavailableError(f'Vector has {len(vector)} dimensions, index expects {self.dimension}')
        self.records[record_id] = {'vector': list(vector), 'metadata': dict(metadata)}

    def query(self, vector, top_k, filter, include_metadata=True):
        self._check()
        self.queries.append({'top_k': top_k, 'filter': dict(filter)})
        hits = [{
            'id': record_id,
            'score': similarity(vector, record['vector']),
            'metadata': dict(record['metadata']) if include_metadata else {}
        } for record_id, record in self.records.items() if self._matches(record['metadata'], filter)]
        hits.sort(key=lambda hit: hit['score'], reverse=True)
        return hits[:top_k]

    def delete_by_filter(self, filter, older_than=None):
        self._check()
        if not filter:
            raise ValueError('Refusing to delete with an empty filter')
        cutoff = parse_iso(older_than) if older_than else None
        for record_id in list(self.records):
            metadata = self.records[record_id]['metadata']
            if not self._matches(metadata, filter):
                continue
            if cutoff is not None:
                stamp = parse_iso(metadata.get('timestamp'))
                if stamp is None or stamp >= cutoff:
                    continue
            del self.records[record_id]

    def describe_stats(self, filter=None):
        self._check()
        count = sum(1 for record in self.records.values() if self._matches(record['metadata'], filter))
        return {'total_count': count, 'dimension': self.dimension}


class DictConversationStore(ConversationStore):
    """Conversation store backed by a plain dict of transcripts."""

    def __init__(self, transcripts: Optional[Dict[str, List[ConversationMessage]]] = None):
        self.transcripts = transcripts or {}

    def get_messages(self, conversation_id: str, user_id: Optional[str] = None) -> List[ConversationMessage]:
        return list(self.transcripts.get(conversation_id, []))


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def embeddings(embedder: FakeEmbedder) -> EmbeddingAdapter:
    return EmbeddingAdapter(embedder, DimensionConfig(FAKE_DIMENSION, FAKE_DIMENSION))


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def failing_store() -> InMemoryVectorStore:
    return InMemoryVectorStore(fail=True)


@pytest.fixture
def writer(embeddings: EmbeddingAdapter, store: InMemoryVectorStore) -> MemoryWriter:
    return MemoryWriter(embeddings, store)


@pytest.fixture
def retriever(embeddings: EmbeddingAdapter, store: InMemoryVectorStore) -> MemoryRetriever:
    return MemoryRetriever(embeddings, store)


@pytest.fixture
def memory_config() -> MemoryConfig:
    return MemoryConfig(default_top_k=10,
                        min_score=0.7,
                        context_top_k=15,
                        cleanup_older_than_days=90,
                        conversation_cache_size=4,
                        conversation_cache_messages=50)


@pytest.fixture
def service(embeddings: EmbeddingAdapter, store: InMemoryVectorStore, memory_config: MemoryConfig) -> MemoryManagementService:
    return MemoryManagementService(embeddings=embeddings,
                                   store=store,
                                   conversations=LRUConversationStore(memory_config.conversation_cache_size,
                                                                      memory_config.conversation_cache_messages),
                                   memory_config=memory_config)
