"""
Health check utilities for the application.
"""

from typing import Any, Callable, Dict

from .bedrock_embed import BedrockEmbed
from .config import config
from .embedding_adapter import EmbeddingAdapter
from .logging_config import get_logger
from .opensearch_client import OpenSearchVectorStore

logger = get_logger(__name__)


def _probe(service: str, check: Callable[[], bool], **details: Any) -> Dict[str, Any]:
    try:
        return {'healthy': check(), 'service': service, **details}
    except Exception as e:
        logger.warning(f'{service} probe failed: {e}')
        return {'healthy': False, 'service': service, 'error': str(e)}


def check_health() -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    try:
        unhealthy = [name for name, status in get_health_status().items() if not status.get('healthy', False)]
    except Exception as e:
        logger.error(f'Health check failed: {e}')
        return False

    if unhealthy:
        logger.warning(f'Unhealthy components: {", ".join(unhealthy)}')
        return False

    logger.info('All system components are healthy')
    return True


def get_health_status() -> Dict[str, Any]:
    """Probe the embedding service and the vector store.

    The embedding probe goes through the adapter, so a width the store can't
    take is reported here too.
    """
    return {
        'bedrock_embed':
            _probe('Amazon Bedrock Embed',
                   lambda: EmbeddingAdapter(BedrockEmbed(config.bedrock_embed), config.dimensions).health_check(),
                   model=config.bedrock_embed.model_id),
        'opensearch':
            _probe('Amazon OpenSearch',
                   lambda: OpenSearchVectorStore(config.opensearch).health_check(),
                   endpoint=config.opensearch.endpoint,
                   index=config.opensearch.index_name),
    }


def get_system_info() -> Dict[str, Any]:
    """Get system information and configuration."""
    return {
        'service_name': 'Shield Memory',
        'version': '1.0.0',
        'configuration': {
            'bedrock_embed_model': config.bedrock_embed.model_id,
            'embedding_dimension': config.dimensions.embedding_dimension,
            'store_dimension': config.dimensions.store_dimension,
            'index_name': config.opensearch.index_name,
            'min_score': config.memory.min_score,
            'aws_region': config.bedrock_embed.region
        },
        'health_status': get_health_status()
    }
