"""
OpenSearch-backed vector store for conversation memory records.
"""

from typing import Any, Dict, List, Optional

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import NotFoundError, OpenSearchException
from requests_aws4auth import AWS4Auth

from .config import OpenSearchConfig
from .logging_config import get_logger
from .vector_store import StoreUnavailableError, VectorStore

logger = get_logger(__name__)

# Largest page a single search may return
MAX_RESULT_WINDOW = 10000


def to_cosine(score: float) -> float:
    """Convert an OpenSearch cosinesimil score, (1 + cos) / 2, back to cosine similarity."""
    return 2.0 * score - 1.0


class OpenSearchVectorStore(VectorStore):
    """OpenSearch k-NN index with AWS authentication and error handling."""

    def __init__(self, config: OpenSearchConfig, client: Any = None):
        """
        Initialize OpenSearch client.

        Args:
            config: OpenSearchConfig instance with connection parameters
            client: Optional pre-built OpenSearch client
        """
        self.config = config
        self.index_name = config.index_name

        if client is None:
            # Get AWS credentials and create auth
            credentials = boto3.Session().get_credentials()
            auth = AWS4Auth(region=config.region, service=config.service, refreshable_credentials=credentials)
            endpoint = config.endpoint
            if '://' in endpoint:
                # Remove protocol if present
                endpoint = endpoint.split('://', 1)[1]

            client = OpenSearch(hosts=[{
                'host': endpoint,
                'port': config.port
            }],
                                http_auth=auth,
                                use_ssl=True,
                                verify_certs=True,
                                connection_class=RequestsHttpConnection)
        self.client = client

        logger.info(f'Initialized OpenSearch vector store for endpoint: {config.endpoint}, index: {self.index_name}')

    def _index_body(self) -> Dict[str, Any]:
        return {
            'mappings': {
                'properties': {
                    'id': {
                        'type': 'keyword'
                    },
                    'user_id': {
                        'type': 'keyword'
                    },
                    'conversation_id': {
                        'type': 'keyword'
                    },
                    'role': {
                        'type': 'keyword'
                    },
                    'content': {
                        'type': 'text'
                    },
                    'semantic_chunk': {
                        'type': 'text'
                    },
                    'conversation_type': {
                        'type': 'keyword'
                    },
                    'conversation_flow': {
                        'type': 'keyword'
                    },
                    'emotional_tone': {
                        'type': 'keyword'
                    },
                    'key_topics': {
                        'type': 'keyword'
                    },
                    'message_index': {
                        'type': 'integer'
                    },
                    'total_messages': {
                        'type': 'integer'
                    },
                    'timestamp': {
                        'type': 'date'
                    },
                    'embedding': {
                        'type': 'knn_vector',
                        'dimension': self.config.dimension,
                        'method': {
                            'name': 'hnsw',
                            'space_type': 'cosinesimil',
                            'engine': 'lucene'
                        }
                    }
                }
            },
            'settings': {
                'index': {
                    'knn': True
                }
            }
        }

    @staticmethod
    def _filter_clauses(filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [{'term': {field: value}} for field, value in filter.items()]

    def ensure_index(self) -> None:
        """
        Create the memory index if it doesn't exist.

        Raises:
            StoreUnavailableError: If the index cannot be checked or created
        """
        try:
            if self.client.indices.exists(index=self.index_name):
                logger.debug(f'Index {self.index_name} already exists')
                return

            response = self.client.indices.create(index=self.index_name, body=self._index_body())
            if response.get('acknowledged', False):
                logger.info(f'Created index {self.index_name}')
            else:
                logger.warning(f'Index creation for {self.index_name} was not acknowledged: {response}')
        except OpenSearchException as e:
            logger.error(f'Error creating index {self.index_name}: {e}')
            raise StoreUnavailableError(f'Failed to create index: {e}')
        except Exception as e:
            logger.error(f'Unexpected error creating index {self.index_name}: {e}')
            raise StoreUnavailableError(f'Unexpected error creating index: {e}')

    def upsert(self, record_id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        """
        Index a memory record under its own id, replacing any previous version.

        Raises:
            StoreUnavailableError: If indexing fails
        """
        if len(vector) != self.config.dimension:
            raise StoreUnavailableError(f'Vector has {len(vector)} dimensions, index expects {self.config.dimension}')

        document = {**metadata, 'id': record_id, 'embedding': vector}
        try:
            response = self.client.index(index=self.index_name, id=record_id, body=document)
            if response.get('result') not in ['created', 'updated']:
                logger.warning(f'Unexpected result indexing record {record_id}: {response}')
            else:
                logger.debug(f'Indexed record {record_id} in {self.index_name}')
        except OpenSearchException as e:
            logger.error(f'Error indexing record {record_id}: {e}')
            raise StoreUnavailableError(f'Failed to index record: {e}')
        except Exception as e:
            logger.error(f'Unexpected error indexing record {record_id}: {e}')
            raise StoreUnavailableError(f'Unexpected error indexing record: {e}')

    def query(self,
              vector: List[float],
              top_k: int,
              filter: Dict[str, Any],
              include_metadata: bool = True) -> List[Dict[str, Any]]:
        """
        Perform filtered vector similarity search.

        Args:
            vector: Query vector at the index dimension
            top_k: Number of results to return
            filter: Exact-match metadata filter applied inside the k-NN search
            include_metadata: Return stored metadata with each hit

        Returns:
            List of {'id', 'score', 'metadata'} with cosine similarity scores

        Raises:
            StoreUnavailableError: If the search fails
        """
        knn_query = {'vector': vector, 'k': top_k}
        if filter:
            knn_query['filter'] = {'bool': {'filter': self._filter_clauses(filter)}}

        search_body = {
            'size': top_k,
            'query': {
                'knn': {
                    'embedding': knn_query
                }
            },
            # Don't return embedding in results
            '_source': {
                'excludes': ['embedding']
            } if include_metadata else False
        }

        try:
            response = self.client.search(index=self.index_name, body=search_body)
        except OpenSearchException as e:
            logger.error(f'Error performing vector search: {e}')
            raise StoreUnavailableError(f'Vector search failed: {e}')
        except Exception as e:
            logger.error(f'Unexpected error in vector search: {e}')
            raise StoreUnavailableError(f'Unexpected error in vector search: {e}')

        results = []
        for hit in response['hits']['hits']:
            results.append({
                'id': hit['_id'],
                'score': to_cosine(hit['_score']),
                'metadata': (hit.get('_source') or {}) if include_metadata else {}
            })

        logger.debug(f'Vector search returned {len(results)} results for filter {filter}')
        return results

    def delete_by_filter(self, filter: Dict[str, Any], older_than: Optional[str] = None) -> None:
        """
        Delete all records matching filter.

        Managed domains use delete_by_query. Serverless collections don't support
        it, so matching ids are searched and deleted one by one, a page at a time.

        Raises:
            StoreUnavailableError: If deletion fails
        """
        if not filter:
            raise ValueError('Refusing to delete with an empty filter')

        clauses = self._filter_clauses(filter)
        if older_than:
            clauses.append({'range': {'timestamp': {'lt': older_than}}})
        query = {'bool': {'filter': clauses}}

        try:
            if self.config.service == 'aoss':
                deleted = self._delete_matching_ids(query)
            else:
                response = self.client.delete_by_query(index=self.index_name, body={'query': query})
                deleted = response.get('deleted', 0)
            logger.info(f'Deleted {deleted} records matching {filter}')
        except StoreUnavailableError:
            logger.error(f'Incomplete deletion of records matching {filter}')
            raise
        except OpenSearchException as e:
            logger.error(f'Error deleting records matching {filter}: {e}')
            raise StoreUnavailableError(f'Failed to delete records: {e}')
        except Exception as e:
            logger.error(f'Unexpected error deleting records matching {filter}: {e}')
            raise StoreUnavailableError(f'Unexpected error deleting records: {e}')

    def _delete_matching_ids(self, query: Dict[str, Any]) -> int:
        """Search and delete matching ids page by page until a short page comes back.

        Raises:
            StoreUnavailableError: If a full page holds only ids already deleted, so the
                remaining records can't be reached
        """
        body = {'size': MAX_RESULT_WINDOW, 'query': query, '_source': False}
        seen = set()
        deleted = 0
        while True:
            hits = self.client.search(index=self.index_name, body=body)['hits']['hits']
            fresh = [hit['_id'] for hit in hits if hit['_id'] not in seen]

            for record_id in fresh:
                seen.add(record_id)
                try:
                    self.client.delete(index=self.index_name, id=record_id)
                    deleted += 1
                except NotFoundError:
                    logger.debug(f'Record {record_id} already deleted')

            if len(hits) < MAX_RESULT_WINDOW:
                return deleted
            # Deletes not yet visible to search
            if not fresh:
                raise StoreUnavailableError(f'Deleted {deleted} records but more still match; retry later')
            logger.debug(f'Deleted {deleted} records so far, searching for more')

    def describe_stats(self, filter: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """
        Count records, optionally only those matching filter.

        Raises:
            StoreUnavailableError: If the count fails
        """
        body = {'query': {'bool': {'filter': self._filter_clauses(filter)}}} if filter else None
        try:
            response = self.client.count(index=self.index_name, body=body)
        except NotFoundError:
            logger.warning(f'Index {self.index_name} does not exist')
            return {'total_count': 0, 'dimension': self.config.dimension}
        except OpenSearchException as e:
            logger.error(f'Error counting records: {e}')
            raise StoreUnavailableError(f'Failed to describe index stats: {e}')
        except Exception as e:
            logger.error(f'Unexpected error counting records: {e}')
            raise StoreUnavailableError(f'Unexpected error describing index stats: {e}')

        return {'total_count': int(response.get('count', 0)), 'dimension': self.config.dimension}

    def health_check(self) -> bool:
        """
        Perform a health check on the OpenSearch service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            response = self.client.indices.exists(index=self.index_name)
            return response in [True, False]

        except Exception as e:
            logger.error(f'OpenSearch health check failed: {e}')
            return False
