"""
Synthesizer

LLM-based answer synthesis from retrieved context.

Key principle: the caller always gets an answer.
- generator succeeds → its trimmed completion
- generator returns nothing → a fixed "couldn't generate" sentence
- generator fails → an apology plus previews of the top passages
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..common.config import RetrieverConfig
from ..common.ports import GeneratorPort

logger = logging.getLogger("ragpipe.retriever.synthesizer")


CONTEXT_SEPARATOR = "\n\n---\n\n"

# Synthesis prompt template
SYNTHESIS_PROMPT = """Context from documents:
{context}

Question: {query}

Answer:"""

SYNTHESIS_MAX_TOKENS = 500
SYNTHESIS_TEMPERATURE = 0.1

EMPTY_ANSWER = "I couldn't generate an answer based on the provided context."
FALLBACK_APOLOGY = (
    "I'm sorry, I couldn't generate an answer right now. "
    "Here are the most relevant passages I found:"
)


def build_context(texts: List[str], limit: int = 5) -> str:
    """Join the top passages into the synthesis context"""
    return CONTEXT_SEPARATOR.join(texts[:limit])


class Synthesizer:
    """
    Synthesizes answers from context using the generator port.

    Falls back to a passage listing if the generator fails.
    """

    def __init__(self, generator: GeneratorPort, config: Optional[RetrieverConfig] = None):
        self._generator = generator
        self._config = config or RetrieverConfig()

    async def synthesize(self, query: str, context: str, passages: Optional[Sequence[str]] = None) -> str:
        """
        Synthesize an answer to ``query`` from ``context``.

        Args:
            query: User question
            context: Passages joined by CONTEXT_SEPARATOR
            passages: The passages ``context`` was built from, in rank order;
                previewed on failure. Split back out of ``context`` when omitted.

        Returns:
            Non-empty answer text
        """
        prompt = SYNTHESIS_PROMPT.format(context=context, query=query)
        try:
            completion = await self._generator.complete(
                prompt,
                max_tokens=SYNTHESIS_MAX_TOKENS,
                temperature=SYNTHESIS_TEMPERATURE,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Answer synthesis failed: %s", e)
            return self._synthesize_fallback(context, passages)

        answer = (completion or "").strip()
        return answer or EMPTY_ANSWER

    def _synthesize_fallback(self, context: str, passages: Optional[Sequence[str]] = None) -> str:
        """Apology followed by a bulleted preview of the top passages"""
        if passages is None:
            passages = context.split(CONTEXT_SEPARATOR)
        previews = [p for p in passages if p.strip()][:self._config.fallback_preview_hits]
        if not previews:
            return FALLBACK_APOLOGY

        lines = [FALLBACK_APOLOGY, ""]
        for passage in previews:
            preview = passage.strip()[:self._config.preview_chars]
            lines.append(f"- {preview}...")
        return "\n".join(lines)
