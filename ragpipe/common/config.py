"""
Configuration Management for ragpipe

Loads configuration from ~/.ragpipe/config.json and environment variables,
and validates provider credentials once so callers can query the result.
"""

import os
import re
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("ragpipe.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".ragpipe"
CONFIG_PATH = CONFIG_DIR / "config.json"
DOCUMENTS_PATH = CONFIG_DIR / "documents.json"

API_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
MIN_API_KEY_LENGTH = 10

# Provider -> (config attribute, env var shown in diagnostics)
PROVIDER_KEYS = {
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "google": ("google_api_key", "GOOGLE_API_KEY"),
}


@dataclass
class LLMConfig:
    """Generator (LLM provider) configuration"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    timeout: float = 30.0

    @property
    def model(self) -> str:
        """Model name for the active provider"""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get((self.provider or "").lower(), "")


@dataclass
class EmbeddingConfig:
    """Embedding model configuration (fastembed, on-device)"""
    model: str = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"


@dataclass
class IndexConfig:
    """Vector index configuration"""
    collection: str = "pdf_documents"


@dataclass
class RerankConfig:
    """Rerank service configuration"""
    mode: str = "cross_encoder"  # "cross_encoder", "llm" or "none"
    model: str = "Xenova/ms-marco-MiniLM-L-6-v2"


@dataclass
class RetrieverConfig:
    """
    Retrieval policy.

    The defaults are tuned for CV/resume corpora; treat them as policy
    knobs rather than invariants.
    """
    topk: int = 10
    primary_multiplier: int = 2
    relevance_floor: float = 0.3
    sufficient_hits: int = 5
    max_expansion_terms: int = 10
    max_term_length: int = 50
    expansion_search_terms: int = 3
    rerank_truncate_chars: int = 1000
    neutral_rerank_score: float = 0.5
    context_hits: int = 5
    preview_chars: int = 150
    fallback_preview_hits: int = 3
    basic_topk: int = 5
    corpus_description: str = "CVs/resumes"


@dataclass
class StorageConfig:
    """Document bookkeeping configuration"""
    documents_path: str = str(DOCUMENTS_PATH)


@dataclass
class RagConfig:
    """Main ragpipe configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    rerank: RerankConfig = field(default_factory=RerankConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


@dataclass
class ConfigStatus:
    """Result of validating a RagConfig"""
    is_valid: bool
    error: Optional[str] = None
    setting: Optional[str] = None


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        model=embedding_data.get("model", EmbeddingConfig.model),
    )


def _parse_index_config(data: dict) -> IndexConfig:
    """Parse index section from config dict"""
    index_data = data.get("index", {})
    return IndexConfig(
        collection=index_data.get("collection", IndexConfig.collection),
    )


def _parse_rerank_config(data: dict) -> RerankConfig:
    """Parse rerank section from config dict"""
    rerank_data = data.get("rerank", {})
    return RerankConfig(
        mode=rerank_data.get("mode", RerankConfig.mode),
        model=rerank_data.get("model", RerankConfig.model),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict, ignoring unknown keys"""
    retriever_data = data.get("retriever", {})
    known = RetrieverConfig.__dataclass_fields__
    return RetrieverConfig(**{k: v for k, v in retriever_data.items() if k in known})


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage section from config dict"""
    storage_data = data.get("storage", {})
    return StorageConfig(
        documents_path=storage_data.get("documents_path", str(DOCUMENTS_PATH)),
    )


def load_config() -> RagConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.ragpipe/config.json)
    3. Default values
    """
    config = RagConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.embedding = _parse_embedding_config(data)
            config.index = _parse_index_config(data)
            config.rerank = _parse_rerank_config(data)
            config.retriever = _parse_retriever_config(data)
            config.storage = _parse_storage_config(data)
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # LLM env var overrides (track env-sourced keys so they are never persisted)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "RAGPIPE_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("RAGPIPE_COLLECTION"):
        config.index.collection = os.getenv("RAGPIPE_COLLECTION")
    if os.getenv("RAGPIPE_RERANK_MODE"):
        config.rerank.mode = os.getenv("RAGPIPE_RERANK_MODE")
    if os.getenv("RERANK_MODEL"):
        config.rerank.model = os.getenv("RERANK_MODEL")
    if os.getenv("RAGPIPE_TOPK"):
        config.retriever.topk = int(os.getenv("RAGPIPE_TOPK"))
    if os.getenv("RAGPIPE_DOCUMENTS_PATH"):
        config.storage.documents_path = os.getenv("RAGPIPE_DOCUMENTS_PATH")

    config.llm.provider = config.llm.provider.lower()
    return config


def validate_config(config: RagConfig) -> ConfigStatus:
    """
    Validate credentials for the active LLM provider.

    The key must be present, at least MIN_API_KEY_LENGTH characters, and
    consist only of letters, digits, '_' and '-'.
    """
    provider = (config.llm.provider or "").lower()
    if provider not in PROVIDER_KEYS:
        return ConfigStatus(
            is_valid=False,
            error=f"Unsupported LLM provider: {provider}",
            setting="RAGPIPE_LLM_PROVIDER",
        )

    attr, env_var = PROVIDER_KEYS[provider]
    api_key = getattr(config.llm, attr)

    if not api_key:
        return ConfigStatus(False, f"{env_var} environment variable is not set", env_var)
    if len(api_key) < MIN_API_KEY_LENGTH:
        return ConfigStatus(False, f"{env_var} appears to be too short", env_var)
    if not API_KEY_PATTERN.match(api_key):
        return ConfigStatus(False, f"{env_var} contains invalid characters", env_var)

    return ConfigStatus(is_valid=True)


def save_config(config: RagConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "timeout": config.llm.timeout,
    }
    for attr, _ in PROVIDER_KEYS.values():
        if attr in env_sourced:
            llm_section[attr] = ""

    data = {
        "llm": llm_section,
        "embedding": {"model": config.embedding.model},
        "index": {"collection": config.index.collection},
        "rerank": {"mode": config.rerank.mode, "model": config.rerank.model},
        "retriever": dict(vars(config.retriever)),
        "storage": {"documents_path": config.storage.documents_path},
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
