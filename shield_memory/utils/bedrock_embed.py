"""
Amazon Bedrock embedding client wrapper with retry logic and error handling.
"""

import json
import numbers
import random
import time
from typing import Any, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockEmbedConfig
from .logging_config import get_logger

logger = get_logger(__name__)

# Cohere accepts at most this many texts per invoke_model call
COHERE_MAX_BATCH = 96


class EmbeddingUnavailableError(Exception):
    """Embedding service unreachable or returned an invalid vector."""
    pass


class BedrockEmbed:
    """Amazon Bedrock embedding client with retry logic and error handling."""

    def __init__(self, config: BedrockEmbedConfig, client: Any = None):
        """
        Initialize Bedrock embedding client.

        Args:
            config: BedrockEmbedConfig instance with connection parameters
            client: Optional pre-built bedrock-runtime client
        """
        self.config = config
        self.model_id = config.model_id
        self.output_embedding_length = config.dimension

        self.bedrock = client or boto3.client(service_name='bedrock-runtime', region_name=config.region)

        logger.info(f'Initialized Bedrock Embed client with model: {self.model_id} ({self.output_embedding_length} dims)')

    @property
    def dimension(self) -> int:
        """Native width of the vectors this client returns."""
        return self.output_embedding_length

    def _call_with_retry(self, data: dict) -> dict:
        """
        Make a Bedrock API call with retry logic.

        Args:
            data: Request data dictionary

        Returns:
            Response dictionary from Bedrock API

        Raises:
            EmbeddingUnavailableError: If all retry attempts fail
        """
        body = json.dumps(data)

        for attempt in range(self.config.retry_attempts):
            try:
                logger.debug(f'Bedrock Embed request attempt {attempt + 1}/{self.config.retry_attempts}')

                response = self.bedrock.invoke_model(body=body,
                                                     modelId=self.model_id,
                                                     accept='application/json',
                                                     contentType='application/json')

                result = json.loads(response.get('body').read())
                logger.debug('Bedrock Embed request successful')
                return result

            except (ClientError, BotoCoreError, json.JSONDecodeError) as e:
                logger.warning(f'Bedrock Embed attempt {attempt + 1}/{self.config.retry_attempts} failed: {e}')

                if attempt < self.config.retry_attempts - 1:
                    # Exponential backoff with jitter
                    delay = self.config.retry_delay * (2**attempt) + random.uniform(0, 1)
                    time.sleep(delay)
                else:
                    raise EmbeddingUnavailableError(f'Bedrock Embed failed after {self.config.retry_attempts} attempts: {e}')

            except Exception as e:
                logger.error(f'Unexpected error in Bedrock Embed: {e}')
                raise EmbeddingUnavailableError(f'Unexpected Bedrock Embed error: {e}')

        raise EmbeddingUnavailableError(f'Bedrock Embed failed after {self.config.retry_attempts} attempts')

    def _validate(self, embedding: Any) -> List[float]:
        """Reject vectors that are missing, non-numeric or of the wrong width."""
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingUnavailableError('Bedrock Embed returned no embedding')
        if not all(isinstance(value, numbers.Real) and not isinstance(value, bool) for value in embedding):
            raise EmbeddingUnavailableError('Bedrock Embed returned non-numeric values')
        if len(embedding) != self.output_embedding_length:
            raise EmbeddingUnavailableError(
                f'Bedrock Embed returned {len(embedding)} dimensions, expected {self.output_embedding_length}')
        return [float(value) for value in embedding]

    def _embed_titan(self, text: str) -> List[float]:
        data = {'inputText': text}
        # Only the v2 Titan models accept a requested output width
        if 'v2' in self.model_id.lower():
            data['dimensions'] = self.output_embedding_length
        response = self._call_with_retry(data)
        return self._validate(response.get('embedding'))

    def _embed_cohere(self, texts: List[str], input_type: str) -> List[List[float]]:
        data = {'input_type': input_type, 'texts': texts}
        response = self._call_with_retry(data)
        embeddings = response.get('embeddings')
        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise EmbeddingUnavailableError('Bedrock Embed returned a malformed embeddings batch')
        return [self._validate(embedding) for embedding in embeddings]

    def _embed(self, text: str, input_type: str) -> List[float]:
        if not text or not text.strip():
            logger.warning('Empty text provided for embedding')
            raise EmbeddingUnavailableError('Cannot embed empty text')

        model = self.model_id.lower()
        if 'titan' in model:
            return self._embed_titan(text)
        if 'cohere' in model:
            return self._embed_cohere([text], input_type)[0]
        raise EmbeddingUnavailableError(f'Unsupported embedding model: {self.model_id}')

    def embed_document(self, text: str) -> List[float]:
        """
        Generate embeddings for a stored message.

        Args:
            text: Text to embed

        Returns:
            List of embedding values in the model's native width

        Raises:
            EmbeddingUnavailableError: If embedding generation fails
        """
        return self._embed(text, 'search_document')

    def embed_query(self, text: str) -> List[float]:
        """
        Generate embeddings for query text.

        Args:
            text: Query text to embed

        Returns:
            List of embedding values in the model's native width

        Raises:
            EmbeddingUnavailableError: If embedding generation fails
        """
        return self._embed(text, 'search_query')

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for several texts, element-wise equivalent to embed_document.

        Cohere models are called in batches; Titan models take one text per call.

        Raises:
            EmbeddingUnavailableError: If any embedding fails
        """
        if not texts:
            return []
        if any(not text or not text.strip() for text in texts):
            raise EmbeddingUnavailableError('Cannot embed empty text')

        if 'cohere' in self.model_id.lower():
            embeddings = []
            for start in range(0, len(texts), COHERE_MAX_BATCH):
                embeddings.extend(self._embed_cohere(texts[start:start + COHERE_MAX_BATCH], 'search_document'))
            return embeddings

        return [self.embed_document(text) for text in texts]

    def health_check(self) -> bool:
        """
        Perform a health check on the Bedrock embedding service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            test_embedding = self.embed_document('test')
            return len(test_embedding) == self.output_embedding_length

        except Exception as e:
            logger.error(f'Bedrock Embed health check failed: {e}')
            return False
