"""
ragpipe Common Module

Shared infrastructure for the retriever, indexer and server: configuration,
data model, service ports and their concrete adapters.
"""

from .config import RagConfig, ConfigStatus, load_config, validate_config
from .document_store import DocumentRepository, InMemoryDocumentRepository, JsonFileDocumentRepository
from .embedding_service import EmbeddingService, combine_embeddings, embed_one
from .errors import RagPipeError, InputError, ConfigurationError, IndexingError
from .llm_client import LLMClient
from .models import (
    Chunk,
    Hit,
    RoundOrigin,
    QueryExpansion,
    SearchMethod,
    AnswerStatus,
    SourcePreview,
    AnswerResult,
)
from .ports import Embedding, EmbeddingKind, EmbeddingPort, VectorIndexPort, RerankPort, GeneratorPort
from .rerank_service import CrossEncoderRerankService, LLMRerankService, build_rerank_service
from .vector_index import InMemoryVectorIndex, IndexPoint

__all__ = [
    "RagConfig",
    "ConfigStatus",
    "load_config",
    "validate_config",
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "JsonFileDocumentRepository",
    "EmbeddingService",
    "combine_embeddings",
    "embed_one",
    "RagPipeError",
    "InputError",
    "ConfigurationError",
    "IndexingError",
    "LLMClient",
    "Chunk",
    "Hit",
    "RoundOrigin",
    "QueryExpansion",
    "SearchMethod",
    "AnswerStatus",
    "SourcePreview",
    "AnswerResult",
    "Embedding",
    "EmbeddingKind",
    "EmbeddingPort",
    "VectorIndexPort",
    "RerankPort",
    "GeneratorPort",
    "CrossEncoderRerankService",
    "LLMRerankService",
    "build_rerank_service",
    "InMemoryVectorIndex",
    "IndexPoint",
]
