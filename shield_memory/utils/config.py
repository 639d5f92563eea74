"""
Configuration management for AWS services and memory engine settings.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class BedrockEmbedConfig:
    """Configuration for Amazon Bedrock Embed service."""
    region: str
    model_id: str
    dimension: int  # Native output width of the embedding model
    retry_attempts: int
    retry_delay: float


@dataclass
class OpenSearchConfig:
    """Configuration for OpenSearch."""
    endpoint: str
    port: int
    region: str
    index_name: str
    dimension: int  # Width of the knn_vector field, fixed at index creation
    service: str  # 'aoss' for serverless collections, 'es' for managed domains


@dataclass
class DimensionConfig:
    """Embedding width versus vector store width, resolved once at startup."""
    embedding_dimension: int
    store_dimension: int


@dataclass
class MemoryConfig:
    """Configuration for memory retrieval and context composition."""
    default_top_k: int
    min_score: float
    context_top_k: int
    cleanup_older_than_days: int
    conversation_cache_size: int
    conversation_cache_messages: int


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_embed: BedrockEmbedConfig
    opensearch: OpenSearchConfig
    dimensions: DimensionConfig
    memory: MemoryConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock Embed configuration
    bedrock_embed_config = BedrockEmbedConfig(region=os.getenv('BEDROCK_EMBED_AWS_REGION', 'us-east-1'),
                                              model_id=os.getenv('BEDROCK_EMBED_MODEL_ID', 'amazon.titan-embed-text-v1'),
                                              dimension=int(os.getenv('BEDROCK_EMBED_DIMENSION', '1536')),
                                              retry_attempts=int(os.getenv('BEDROCK_EMBED_RETRY_ATTEMPTS', '3')),
                                              retry_delay=float(os.getenv('BEDROCK_EMBED_RETRY_DELAY', '1.0')))

    # Vector search configuration
    opensearch_config = OpenSearchConfig(endpoint=os.getenv('OPENSEARCH_ENDPOINT', 'localhost'),
                                         port=int(os.getenv('OPENSEARCH_PORT', '443')),
                                         region=os.getenv('OPENSEARCH_AWS_REGION', 'us-east-1'),
                                         index_name=os.getenv('OPENSEARCH_INDEX', 'conversation_memory'),
                                         dimension=int(os.getenv('OPENSEARCH_DIMENSION', '1024')),
                                         service=os.getenv('OPENSEARCH_SERVICE', 'aoss'))

    dimension_config = DimensionConfig(embedding_dimension=bedrock_embed_config.dimension,
                                       store_dimension=opensearch_config.dimension)

    # Memory configuration
    memory_config = MemoryConfig(default_top_k=int(os.getenv('MEMORY_DEFAULT_TOP_K', '10')),
                                 min_score=float(os.getenv('MEMORY_MIN_SCORE', '0.7')),
                                 context_top_k=int(os.getenv('MEMORY_CONTEXT_TOP_K', '15')),
                                 cleanup_older_than_days=int(os.getenv('MEMORY_CLEANUP_OLDER_THAN_DAYS', '90')),
                                 conversation_cache_size=int(os.getenv('MEMORY_CONVERSATION_CACHE_SIZE', '256')),
                                 conversation_cache_messages=int(os.getenv('MEMORY_CONVERSATION_CACHE_MESSAGES', '50')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_embed=bedrock_embed_config,
                     opensearch=opensearch_config,
                     dimensions=dimension_config,
                     memory=memory_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
