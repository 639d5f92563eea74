"""
Embedding adapter: produces vectors of the vector store's width from any text.

The store's knn_vector width is fixed when the index is created, while the
embedding model's native width may differ. Reduction uses a fixed weighted
bucket average rather than a learned projection so the same input always maps
to the same output.
"""

import math
from typing import List, Optional, Sequence

from .bedrock_embed import BedrockEmbed
from .config import DimensionConfig
from .logging_config import get_logger

logger = get_logger(__name__)

# (source width, target width) pairs with a defined reduction
SUPPORTED_REDUCTIONS = {(1536, 1024)}


class UnsupportedDimensionError(Exception):
    """No adaptation rule exists for the requested widths."""
    pass


class DimensionMismatchError(Exception):
    """Vectors of different widths were compared."""
    pass


def validate_dimensions(source_dim: int, target_dim: int) -> None:
    """Raise UnsupportedDimensionError unless source_dim can be adapted to target_dim."""
    if source_dim == target_dim:
        return
    if (source_dim, target_dim) not in SUPPORTED_REDUCTIONS:
        raise UnsupportedDimensionError(f'Unsupported embedding dimension: {source_dim} -> {target_dim}')


def adapt_dimension(vector: Sequence[float], target_dim: int) -> List[float]:
    """Adapt a vector to target_dim.

    Same width returns the vector unchanged. For a supported reduction the source
    index range is split into target_dim contiguous buckets of ~len(vector)/target_dim
    elements; each output element is the average of its bucket weighted
    1 - (j - start) / (end - start), so earlier elements count more.

    Args:
        vector: Source vector
        target_dim: Required output width

    Returns:
        Vector of length target_dim

    Raises:
        UnsupportedDimensionError: If no rule exists for this pair of widths
    """
    source_dim = len(vector)
    if source_dim == target_dim:
        return vector if isinstance(vector, list) else list(vector)

    validate_dimensions(source_dim, target_dim)

    result = [0.0] * target_dim
    for i in range(target_dim):
        # Integer bounds keep the buckets exact for every call
        start = (i * source_dim) // target_dim
        end = ((i + 1) * source_dim) // target_dim
        span = end - start

        total = 0.0
        weight = 0.0
        for j in range(start, min(end, source_dim)):
            w = 1 - (j - start) / span
            total += vector[j] * w
            weight += w

        result[i] = total / weight if weight > 0 else 0.0

    return result


def similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-width vectors; 0.0 if either is all zeros.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(f'Embeddings must have the same length ({len(a)} != {len(b)})')

    dot_product = math.fsum(x * y for x, y in zip(a, b))
    magnitude_a = math.sqrt(math.fsum(x * x for x in a))
    magnitude_b = math.sqrt(math.fsum(y * y for y in b))
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    return dot_product / (magnitude_a * magnitude_b)


class EmbeddingAdapter:
    """Embeds text with the configured model and adapts it to the store's width."""

    def __init__(self, embedder: BedrockEmbed, dimensions: DimensionConfig):
        """
        Args:
            embedder: Client for the external embedding service
            dimensions: Embedding and store widths resolved at startup

        Raises:
            UnsupportedDimensionError: If the configured widths cannot be adapted
        """
        validate_dimensions(dimensions.embedding_dimension, dimensions.store_dimension)
        self.embedder = embedder
        self.dimensions = dimensions

        logger.info(f'Embedding adapter: {dimensions.embedding_dimension} -> {dimensions.store_dimension} dimensions')

    @property
    def store_dimension(self) -> int:
        return self.dimensions.store_dimension

    def embed(self, text: str) -> List[float]:
        """Embed a stored message at the store's width.

        Raises:
            EmbeddingUnavailableError: If the embedding service fails
        """
        return adapt_dimension(self.embedder.embed_document(text), self.store_dimension)

    def embed_query(self, text: str) -> List[float]:
        """Embed a retrieval query at the store's width.

        Raises:
            EmbeddingUnavailableError: If the embedding service fails
        """
        return adapt_dimension(self.embedder.embed_query(text), self.store_dimension)

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        """Batched embed with the same element-wise contract as embed."""
        return [adapt_dimension(vector, self.store_dimension) for vector in self.embedder.embed_documents(texts)]

    def health_check(self, text: Optional[str] = None) -> bool:
        try:
            return len(self.embed(text or 'test')) == self.store_dimension
        except Exception as e:
            logger.error(f'Embedding adapter health check failed: {e}')
            return False
