"""
Indexer - Document Ingestion

Embeds uploaded document chunks into the vector index and keeps the
document repository in step with it.
"""

from .document_indexer import DocumentIndexer

__all__ = ["DocumentIndexer"]
