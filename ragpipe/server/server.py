"""
ragpipe MCP Server.

Transport: stdio only.

Expected MCP Tool Return Format:
{
    "ok": bool,
    ...                      # Tool-specific fields if ok is True
    "error": str            # Present if ok is False
}

The ``answer_query`` tool returns the pipeline's wire response instead
({"success": bool, "answer": ..., ...}).
"""

import argparse
import asyncio
import logging
import os
import signal
from typing import Annotated, Any, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..common.config import ConfigStatus, RagConfig, load_config, validate_config
from ..common.document_store import JsonFileDocumentRepository
from ..common.embedding_service import EmbeddingService
from ..common.errors import RagPipeError
from ..common.llm_client import LLMClient
from ..common.rerank_service import build_rerank_service
from ..common.vector_index import InMemoryVectorIndex
from ..indexer import DocumentIndexer
from ..retriever import QueryExpander, Reranker, RetrievalPipeline, Searcher, Synthesizer

logger = logging.getLogger("ragpipe.server")


class RagServerApp:
    """
    Main application class for the MCP server.

    Exposes question answering over the indexed corpus plus the document
    management operations that feed it.
    """
    def __init__(
            self,
            pipeline: RetrievalPipeline,
            indexer: DocumentIndexer,
            config_status: Optional[ConfigStatus] = None,
            mcp_server_name: str = "ragpipe",
            provider: str = "",
            rerank_mode: str = "",
        ) -> None:
        """
        Args:
            pipeline (RetrievalPipeline): Answers queries.
            indexer (DocumentIndexer): Adds, deletes and lists documents.
            config_status (ConfigStatus): Credential validation result, reported by config_status.
            mcp_server_name (str): The name of the MCP server.
            provider (str): Active LLM provider, for status reporting.
            rerank_mode (str): Active rerank mode, for status reporting.
        """
        self.pipeline = pipeline
        self.indexer = indexer
        self._config_status = config_status
        self._provider = provider
        self._rerank_mode = rerank_mode
        self.mcp = FastMCP(name=mcp_server_name)

        # ---------- MCP Tools: Answer Query ---------- #
        @self.mcp.tool(
            name="answer_query",
            description=(
                "Answer a question from the uploaded documents. "
                "Enhanced search widens weak queries with related terms and reranks the results; "
                "basic search runs a single vector search."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_answer_query(
            query: Annotated[str, Field(description="natural-language question")],
            use_expansion: Annotated[bool, Field(description="use enhanced (expanding) search")] = True,
            use_reranking: Annotated[bool, Field(description="rerank enhanced-search results")] = True,
        ) -> Dict[str, Any]:
            """
            Returns:
                Dict[str, Any]: The pipeline response (answer, sources, query expansion).
            """
            return await self.pipeline.handle(
                query, use_expansion=use_expansion, use_reranking=use_reranking
            )

        # ---------- MCP Tools: Add Document ---------- #
        @self.mcp.tool(
            name="add_document",
            description="Index a document given as text chunks. Replaces any document with the same name.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False)
        )
        async def tool_add_document(
            filename: Annotated[str, Field(description="document name, e.g. 'jane_doe_cv.pdf'")],
            chunks: Annotated[List[str], Field(description="document text split into chunks, in order")],
        ) -> Dict[str, Any]:
            try:
                indexed = await self.indexer.add_document(filename, chunks)
            except RagPipeError as e:
                logger.warning("add_document rejected: %s", e.details)
                return {"ok": False, "error": e.details}
            return {
                "ok": True,
                "message": f"Successfully processed {filename}",
                "filename": filename,
                "chunks_created": len(indexed),
            }

        # ---------- MCP Tools: Delete Document ---------- #
        @self.mcp.tool(
            name="delete_document",
            description="Delete a document and all of its chunks from the index.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_delete_document(
            filename: Annotated[str, Field(description="document name to delete")],
        ) -> Dict[str, Any]:
            if not filename:
                return {"ok": False, "error": "Filename is required"}

            chunks = self.indexer.get_document(filename)
            if not self.indexer.delete_document(filename):
                return {"ok": False, "error": "File not found in database", "filename": filename}
            return {
                "ok": True,
                "message": f"Deleted {len(chunks)} chunks for {filename}",
                "deleted_count": len(chunks),
            }

        # ---------- MCP Tools: List Documents ---------- #
        @self.mcp.tool(
            name="list_documents",
            description="List the names of all indexed documents.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_list_documents() -> Dict[str, Any]:
            return {"ok": True, "files": self.indexer.list_documents()}

        # ---------- MCP Tools: Config Status ---------- #
        @self.mcp.tool(
            name="config_status",
            description="Check LLM credential validity and the active providers.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_config_status() -> Dict[str, Any]:
            status = self._config_status or ConfigStatus(is_valid=True)
            response = {
                "ok": True,
                "valid": status.is_valid,
                "llm_provider": self._provider,
                "rerank_mode": self._rerank_mode,
                "reranking_available": self.pipeline.reranking_available,
            }
            if not status.is_valid:
                response["error"] = status.error
                if status.setting:
                    response["suggestion"] = f"Please check your {status.setting} environment variable."
            return response

    def run(self) -> None:
        """Runs the MCP server using stdio transport."""
        self.mcp.run(transport="stdio")


def build_app(config: RagConfig, mcp_server_name: str = "ragpipe") -> RagServerApp:
    """Wire the production components from configuration."""
    status = validate_config(config)
    if not status.is_valid:
        logger.warning("Configuration invalid: %s", status.error)

    llm = LLMClient.from_config(config.llm)
    embedding = EmbeddingService(model=config.embedding.model)
    index = InMemoryVectorIndex()
    repository = JsonFileDocumentRepository(config.storage.documents_path)

    rerank_port = build_rerank_service(config.rerank, llm)
    reranker = Reranker(rerank_port, config.retriever) if rerank_port is not None else None

    searcher = Searcher(
        embedding=embedding,
        index=index,
        expander=QueryExpander(llm, config.retriever),
        collection=config.index.collection,
        config=config.retriever,
    )
    pipeline = RetrievalPipeline(
        searcher=searcher,
        synthesizer=Synthesizer(llm, config.retriever),
        index=index,
        reranker=reranker,
        config=config.retriever,
        config_status=status,
    )
    indexer = DocumentIndexer(embedding, index, repository, config.index.collection)

    return RagServerApp(
        pipeline=pipeline,
        indexer=indexer,
        config_status=status,
        mcp_server_name=mcp_server_name,
        provider=config.llm.provider,
        rerank_mode=config.rerank.mode,
    )


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Run the ragpipe MCP server (stdio).")
    parser.add_argument(
        "--server-name",
        default=os.getenv("MCP_SERVER_NAME", "ragpipe"),
        help="Advertised MCP server name.",
    )
    parser.add_argument(
        "--collection",
        default=None,
        help="Vector index collection (overrides RAGPIPE_COLLECTION / config).",
    )
    parser.add_argument(
        "--documents-path",
        default=None,
        help="Document store JSON file (overrides RAGPIPE_DOCUMENTS_PATH / config).",
    )
    parser.add_argument(
        "--rerank-mode",
        default=None,
        choices=("cross_encoder", "llm", "none"),
        help="Rerank backend (overrides RAGPIPE_RERANK_MODE / config).",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config()
    if args.collection:
        config.index.collection = args.collection
    if args.documents_path:
        config.storage.documents_path = args.documents_path
    if args.rerank_mode:
        config.rerank.mode = args.rerank_mode

    app = build_app(config, mcp_server_name=args.server_name)

    # The index is in memory; restore it from the persisted documents
    chunk_count = asyncio.run(app.indexer.rebuild())
    logger.info("Serving %d indexed chunks from %s", chunk_count, config.storage.documents_path)

    def _handle_shutdown(signum, frame):
        raise SystemExit(0)
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            signal.signal(sig, _handle_shutdown)

    app.run()


if __name__ == "__main__":
    main()
