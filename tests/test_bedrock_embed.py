"""Tests for the Bedrock embedding client, with the boto3 client mocked."""

import io
import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from shield_memory.utils.bedrock_embed import BedrockEmbed, EmbeddingUnavailableError
from shield_memory.utils.config import BedrockEmbedConfig


def make_config(model_id: str = 'amazon.titan-embed-text-v1', dimension: int = 4, retry_attempts: int = 3) -> BedrockEmbedConfig:
    return BedrockEmbedConfig(region='us-east-1',
                              model_id=model_id,
                              dimension=dimension,
                              retry_attempts=retry_attempts,
                              retry_delay=0.0)


def response(payload: dict) -> dict:
    return {'body': io.BytesIO(json.dumps(payload).encode('utf-8'))}


def throttled() -> ClientError:
    return ClientError({'Error': {'Code': 'ThrottlingException', 'Message': 'Rate exceeded'}}, 'InvokeModel')


class TestTitan:
    """Tests for Titan request and response handling."""

    def test_returns_embedding(self) -> None:
        client = MagicMock()
        client.invoke_model.return_value = response({'embedding': [0.1, 0.2, 0.3, 0.4]})
        embed = BedrockEmbed(make_config(), client=client)

        assert embed.embed_document('What is grace?') == [0.1, 0.2, 0.3, 0.4]

        kwargs = client.invoke_model.call_args.kwargs
        assert kwargs['modelId'] == 'amazon.titan-embed-text-v1'
        assert json.loads(kwargs['body']) == {'inputText': 'What is grace?'}

    def test_v2_requests_configured_dimension(self) -> None:
        """Only Titan v2 accepts an output width in the request."""
        client = MagicMock()
        client.invoke_model.return_value = response({'embedding': [0.0, 1.0, 0.0, 0.0]})
        embed = BedrockEmbed(make_config(model_id='amazon.titan-embed-text-v2:0'), client=client)

        embed.embed_query('faith')

        assert json.loads(client.invoke_model.call_args.kwargs['body'])['dimensions'] == 4

    def test_wrong_width_is_rejected(self) -> None:
        client = MagicMock()
        client.invoke_model.return_value = response({'embedding': [0.1, 0.2]})
        embed = BedrockEmbed(make_config(), client=client)

        with pytest.raises(EmbeddingUnavailableError):
            embed.embed_document('grace')

    def test_non_numeric_values_are_rejected(self) -> None:
        client = MagicMock()
        client.invoke_model.return_value = response({'embedding': [0.1, 'x', 0.3, 0.4]})
        embed = BedrockEmbed(make_config(), client=client)

        with pytest.raises(EmbeddingUnavailableError):
            embed.embed_document('grace')

    def test_empty_text_never_calls_service(self) -> None:
        client = MagicMock()
        embed = BedrockEmbed(make_config(), client=client)

        with pytest.raises(EmbeddingUnavailableError):
            embed.embed_document('   ')
        client.invoke_model.assert_not_called()


class TestCohere:
    """Tests for Cohere input types and batching."""

    def test_query_uses_search_query_input_type(self) -> None:
        client = MagicMock()
        client.invoke_model.return_value = response({'embeddings': [[1.0, 0.0, 0.0, 0.0]]})
        embed = BedrockEmbed(make_config(model_id='cohere.embed-english-v3'), client=client)

        assert embed.embed_query('prayer') == [1.0, 0.0, 0.0, 0.0]
        body = json.loads(client.invoke_model.call_args.kwargs['body'])
        assert body == {'input_type': 'search_query', 'texts': ['prayer']}

    def test_documents_are_batched(self) -> None:
        """100 texts go out as one batch of 96 and one of 4."""
        client = MagicMock()
        client.invoke_model.side_effect = [
            response({'embeddings': [[0.0, 0.0, 0.0, 1.0]] * 96}),
            response({'embeddings': [[0.0, 0.0, 1.0, 0.0]] * 4}),
        ]
        embed = BedrockEmbed(make_config(model_id='cohere.embed-english-v3'), client=client)

        vectors = embed.embed_documents([f'message {i}' for i in range(100)])

        assert len(vectors) == 100
        assert client.invoke_model.call_count == 2
        assert vectors[-1] == [0.0, 0.0, 1.0, 0.0]


class TestRetry:
    """Tests for retry with backoff."""

    @patch('shield_memory.utils.bedrock_embed.time.sleep')
    def test_retries_then_succeeds(self, sleep) -> None:
        client = MagicMock()
        client.invoke_model.side_effect = [throttled(), response({'embedding': [1.0, 1.0, 1.0, 1.0]})]
        embed = BedrockEmbed(make_config(), client=client)

        assert embed.embed_document('hope') == [1.0, 1.0, 1.0, 1.0]
        assert client.invoke_model.call_count == 2
        sleep.assert_called_once()

    @patch('shield_memory.utils.bedrock_embed.time.sleep')
    def test_gives_up_after_configured_attempts(self, sleep) -> None:
        client = MagicMock()
        client.invoke_model.side_effect = throttled()
        embed = BedrockEmbed(make_config(retry_attempts=3), client=client)

        with pytest.raises(EmbeddingUnavailableError):
            embed.embed_document('hope')
        assert client.invoke_model.call_count == 3
        assert sleep.call_count == 2

    def test_health_check_reports_failure(self) -> None:
        client = MagicMock()
        client.invoke_model.side_effect = RuntimeError('no credentials')
        embed = BedrockEmbed(make_config(retry_attempts=1), client=client)

        assert embed.health_check() is False
