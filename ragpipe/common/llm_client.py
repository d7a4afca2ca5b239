"""
Provider-agnostic LLM client for ragpipe.

One client serves as the pipeline's generator: query expansion, answer
synthesis and, in ``llm`` rerank mode, relevance scoring. Anthropic, OpenAI
and Google Gemini are supported; a client without credentials stays
unavailable rather than failing at construction.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any, Dict, Optional

from .config import LLMConfig

logger = logging.getLogger("ragpipe.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self.timeout = timeout
        self._client: Any = None
        self._google_models: Dict[str, Any] = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        api_key = {
            "anthropic": anthropic_api_key,
            "openai": openai_api_key,
            "google": google_api_key,
        }[self.provider]
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        try:
            self._client = getattr(self, f"_connect_{self.provider}")(api_key)
        except ImportError as e:
            logger.warning("%s SDK not installed: %s", self.provider, e)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        return cls(
            provider=config.provider,
            model=config.model,
            anthropic_api_key=config.anthropic_api_key or None,
            openai_api_key=config.openai_api_key or None,
            google_api_key=config.google_api_key or None,
            timeout=config.timeout,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------ #
    # Provider setup
    # ------------------------------------------------------------------ #

    @staticmethod
    def _connect_anthropic(api_key: str):
        import anthropic

        return anthropic.Anthropic(api_key=api_key)

    @staticmethod
    def _connect_openai(api_key: str):
        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @staticmethod
    def _connect_google(api_key: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        # The module itself is the client; models are built per system prompt
        return genai

    # ------------------------------------------------------------------ #
    # Generation
    # ------------------------------------------------------------------ #

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Generate a completion synchronously.

        Raises:
            RuntimeError: client unavailable (no key, SDK missing, bad provider)
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        generate = getattr(self, f"_generate_{self.provider}")
        return generate(
            prompt,
            system=system,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout if timeout is not None else self.timeout,
        )

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """Generator port: run ``generate`` off the event loop."""
        return await asyncio.to_thread(
            self.generate,
            prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )

    def _generate_anthropic(self, prompt, *, system, max_tokens, temperature, timeout) -> str:
        extra = {}
        if system:
            extra["system"] = system
        if temperature is not None:
            extra["temperature"] = temperature

        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            **extra,
        )
        return response.content[0].text.strip()

    def _generate_openai(self, prompt, *, system, max_tokens, temperature, timeout) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        extra = {"temperature": temperature} if temperature is not None else {}

        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages,
            timeout=timeout,
            **extra,
        )
        return (response.choices[0].message.content or "").strip()

    def _generate_google(self, prompt, *, system, max_tokens, temperature, timeout) -> str:
        generation_config = {"max_output_tokens": max_tokens}
        if temperature is not None:
            generation_config["temperature"] = temperature

        response = self._google_model(system).generate_content(
            prompt,
            generation_config=generation_config,
            request_options={"timeout": timeout},
        )
        return response.text.strip()

    def _google_model(self, system: Optional[str]):
        """Gemini binds the system prompt to the model; cache one per prompt"""
        key = hashlib.md5((system or "").encode()).hexdigest()
        if key not in self._google_models:
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            self._google_models[key] = self._client.GenerativeModel(**kwargs)
        return self._google_models[key]
