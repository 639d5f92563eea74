"""
Vector store contract used by the memory engine.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .logging_config import get_logger

logger = get_logger(__name__)


class StoreUnavailableError(Exception):
    """Any vector store failure (network, auth, rate limit, bad response)."""
    pass


class VectorStore(ABC):
    """Key/value-like ANN store of (vector, metadata) pairs keyed by record id.

    Filters are conjunctive exact matches on metadata fields. Every operation may
    raise StoreUnavailableError.
    """

    @abstractmethod
    def upsert(self, record_id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        """Write a record, overwriting any record with the same id."""

    @abstractmethod
    def query(self,
              vector: List[float],
              top_k: int,
              filter: Dict[str, Any],
              include_metadata: bool = True) -> List[Dict[str, Any]]:
        """Nearest neighbours by cosine similarity among records matching filter.

        Returns:
            List of {'id', 'score', 'metadata'} dicts, best first
        """

    @abstractmethod
    def delete_by_filter(self, filter: Dict[str, Any], older_than: Optional[str] = None) -> None:
        """Delete every record matching filter.

        Args:
            filter: Exact-match metadata filter, must not be empty
            older_than: Optional ISO timestamp; only records with an earlier
                'timestamp' are deleted
        """

    @abstractmethod
    def describe_stats(self, filter: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """Return {'total_count', 'dimension'}, counting only matching records if filter is given."""

    def ensure_index(self) -> None:
        """Create backing storage if needed. No-op by default."""

    def health_check(self) -> bool:
        try:
            self.describe_stats()
            return True
        except Exception as e:
            logger.error(f'Vector store health check failed: {e}')
            return False
