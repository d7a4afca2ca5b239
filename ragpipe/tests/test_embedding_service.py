"""Tests for embedding access and combination"""

import asyncio
import logging

import numpy as np
import pytest
from unittest.mock import AsyncMock, Mock, patch


class TestCombineEmbeddings:
    def test_default_weights_then_normalized(self):
        from ragpipe.common.embedding_service import combine_embeddings

        combined = combine_embeddings([[3.0, 0.0], [0.0, 4.0]])

        assert combined == pytest.approx([0.6, 0.8])
        assert np.linalg.norm(combined) == pytest.approx(1.0)

    def test_custom_weights(self):
        from ragpipe.common.embedding_service import combine_embeddings

        combined = combine_embeddings([[1.0, 0.0], [0.0, 1.0]], weights=[3.0, 4.0])

        assert combined == pytest.approx([0.6, 0.8])

    def test_zero_norm_left_unnormalized(self):
        from ragpipe.common.embedding_service import combine_embeddings

        assert combine_embeddings([[1.0, -2.0], [-1.0, 2.0]]) == [0.0, 0.0]

    def test_empty_input(self):
        from ragpipe.common.embedding_service import combine_embeddings

        assert combine_embeddings([]) == []

    def test_unequal_dimensions_raise(self):
        from ragpipe.common.embedding_service import combine_embeddings

        with pytest.raises(ValueError):
            combine_embeddings([[1.0, 0.0], [1.0, 0.0, 0.0]])

    def test_weight_count_mismatch_raises(self):
        from ragpipe.common.embedding_service import combine_embeddings

        with pytest.raises(ValueError, match="weights"):
            combine_embeddings([[1.0, 0.0], [0.0, 1.0]], weights=[1.0])


class TestEmbeddingService:
    @pytest.fixture
    def backend(self):
        backend = Mock()
        backend.query_embed.side_effect = lambda texts: iter([np.array([1.0, 0.0]) for _ in texts])
        backend.passage_embed.side_effect = lambda texts: iter([np.array([0.0, 1.0]) for _ in texts])
        return backend

    @pytest.fixture
    def service(self, backend):
        from ragpipe.common.embedding_service import EmbeddingService
        return EmbeddingService(model="test-model", backend=backend)

    def test_query_kind_uses_query_encoder(self, service, backend):
        from ragpipe.common.ports import EmbeddingKind

        vectors = service.embed_sync(["a", "b"], EmbeddingKind.QUERY)

        assert vectors == [[1.0, 0.0], [1.0, 0.0]]
        backend.query_embed.assert_called_once_with(["a", "b"])
        backend.passage_embed.assert_not_called()

    def test_document_kind_uses_passage_encoder(self, service, backend):
        from ragpipe.common.ports import EmbeddingKind

        vectors = service.embed_sync(["a"], EmbeddingKind.DOCUMENT)

        assert vectors == [[0.0, 1.0]]
        backend.query_embed.assert_not_called()

    def test_returns_plain_floats(self, service):
        from ragpipe.common.ports import EmbeddingKind

        vector = service.embed_sync(["a"], EmbeddingKind.QUERY)[0]

        assert all(type(v) is float for v in vector)

    def test_backend_failure_returns_empty(self, service, backend, caplog):
        from ragpipe.common.ports import EmbeddingKind
        backend.query_embed.side_effect = RuntimeError("onnx error")

        with caplog.at_level(logging.WARNING, logger="ragpipe.common.embedding_service"):
            assert service.embed_sync(["a"], EmbeddingKind.QUERY) == []
        assert "failed" in caplog.text

    def test_count_mismatch_returns_empty(self, service, backend):
        from ragpipe.common.ports import EmbeddingKind
        backend.query_embed.side_effect = lambda texts: iter([np.array([1.0])])

        assert service.embed_sync(["a", "b"], EmbeddingKind.QUERY) == []

    def test_no_texts(self, service, backend):
        from ragpipe.common.ports import EmbeddingKind

        assert service.embed_sync([], EmbeddingKind.QUERY) == []
        backend.query_embed.assert_not_called()

    @pytest.mark.asyncio
    async def test_async_embed(self, service):
        from ragpipe.common.ports import EmbeddingKind

        assert await service.embed(["a"], EmbeddingKind.QUERY) == [[1.0, 0.0]]

    def test_model_load_failure_marks_unavailable(self, caplog):
        from ragpipe.common.embedding_service import EmbeddingService
        from ragpipe.common.ports import EmbeddingKind

        with patch("fastembed.TextEmbedding", side_effect=RuntimeError("download failed")):
            service = EmbeddingService(model="missing-model")
            with caplog.at_level(logging.WARNING, logger="ragpipe.common.embedding_service"):
                assert service.is_available is False
            assert service.embed_sync(["a"], EmbeddingKind.QUERY) == []

        assert "Could not load embedding model" in caplog.text


class TestEmbedOne:
    @pytest.mark.asyncio
    async def test_returns_first_vector(self):
        from ragpipe.common.embedding_service import embed_one
        from ragpipe.common.ports import EmbeddingKind

        port = AsyncMock()
        port.embed.return_value = [[0.5, 0.5]]

        assert await embed_one(port, "q", EmbeddingKind.QUERY) == [0.5, 0.5]
        port.embed.assert_awaited_once_with(["q"], EmbeddingKind.QUERY)

    @pytest.mark.asyncio
    async def test_port_error_returns_empty(self):
        from ragpipe.common.embedding_service import embed_one
        from ragpipe.common.ports import EmbeddingKind

        port = AsyncMock()
        port.embed.side_effect = ConnectionError("unreachable")

        assert await embed_one(port, "q", EmbeddingKind.QUERY) == []

    @pytest.mark.asyncio
    async def test_empty_response_returns_empty(self):
        from ragpipe.common.embedding_service import embed_one
        from ragpipe.common.ports import EmbeddingKind

        port = AsyncMock()
        port.embed.return_value = []

        assert await embed_one(port, "q", EmbeddingKind.QUERY) == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        from ragpipe.common.embedding_service import embed_one
        from ragpipe.common.ports import EmbeddingKind

        port = AsyncMock()
        port.embed.side_effect = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await embed_one(port, "q", EmbeddingKind.QUERY)
