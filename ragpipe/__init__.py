"""
ragpipe

Adaptive retrieval-augmented question answering over an uploaded document
corpus (CVs/resumes by default), served as an MCP server.

Philosophy:
- Widen the search only when the first round is weak
- Dependency failures degrade the answer, never the request
- Every answer cites the passages it was built from

Usage:
    from ragpipe.common import load_config, EmbeddingService, InMemoryVectorIndex
    from ragpipe.indexer import DocumentIndexer
    from ragpipe.retriever import RetrievalPipeline, Searcher, Synthesizer
    from ragpipe.server import build_app
"""

__version__ = "0.1.0"
