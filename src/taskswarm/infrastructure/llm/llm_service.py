"""
LLM Service for generative planning backends.

This module wraps `litellm.acompletion` with retry logic and resolves which
hosted or local model to call from `SwarmSettings`. Provider priority is
OpenAI-compatible, then Anthropic, then a local Ollama server.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import litellm
import structlog

from taskswarm.config import SwarmSettings


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_attempts: int = 2
    backoff_multiplier: float = 2.0
    timeout: int = 60
    retry_on_errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderRoute:
    """Concrete litellm call target for one provider."""

    name: str
    model: str
    api_key: Optional[str] = None
    api_base: Optional[str] = None

    def call_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        return kwargs


class LLMService:
    """
    Centralized service for LLM interactions.

    Returns result dicts instead of raising so callers can decide how to
    recover; the structured generator turns failures into RuntimeError for
    the planning fallback chain.
    """

    def __init__(self, settings: SwarmSettings):
        self.settings = settings
        self.logger = structlog.get_logger().bind(component="llm_service")
        self.retry_policy = RetryPolicy(
            max_attempts=settings.llm_max_attempts,
            timeout=settings.llm_timeout,
            retry_on_errors=list(settings.llm_retry_on_errors),
        )

    def routes(self) -> Dict[str, ProviderRoute]:
        """Providers that have enough configuration to be called."""
        s = self.settings
        routes: Dict[str, ProviderRoute] = {}
        if s.openai_api_key:
            routes["openai"] = ProviderRoute("openai", s.openai_model, s.openai_api_key, s.openai_api_base)
        if s.anthropic_api_key:
            routes["anthropic"] = ProviderRoute(
                "anthropic", f"anthropic/{s.anthropic_model}", s.anthropic_api_key, s.anthropic_api_base
            )
        if s.ollama_url:
            routes["ollama"] = ProviderRoute("ollama", f"ollama/{s.tiny_model_id}", api_base=s.ollama_url.rstrip("/"))
        return routes

    def _resolve_route(self, provider: Optional[str]) -> ProviderRoute:
        routes = self.routes()
        if provider is not None:
            if provider not in routes:
                raise ValueError(f"Provider '{provider}' is not configured")
            return routes[provider]
        for name in ("openai", "anthropic", "ollama"):
            if name in routes:
                return routes[name]
        raise RuntimeError("No LLM provider configured (set an OpenAI or Anthropic key, or an Ollama URL)")

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        provider: Optional[str] = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """
        Perform LLM completion with retry logic.

        Args:
            messages: List of message dicts with 'role' and 'content'
            provider: Provider name or None (first configured in priority order)
            **kwargs: Additional parameters (temperature, max_tokens, ...)

        Returns:
            Dict with:
            - success: bool
            - content: str (if successful)
            - usage: Dict with token counts
            - error: str (if failed)
        """
        route = self._resolve_route(provider)
        params = {**route.call_kwargs(), **kwargs}

        for attempt in range(self.retry_policy.max_attempts):
            try:
                start_time = time.time()
                self.logger.info(
                    "llm_completion_started",
                    provider=route.name,
                    model=route.model,
                    attempt=attempt + 1,
                    message_count=len(messages),
                )

                response = await litellm.acompletion(
                    model=route.model,
                    messages=messages,
                    timeout=self.retry_policy.timeout,
                    **params,
                )

                content = response.choices[0].message.content
                usage = getattr(response, "usage", {})
                if isinstance(usage, dict):
                    token_stats = usage
                else:
                    token_stats = {
                        "total_tokens": getattr(usage, "total_tokens", 0),
                        "prompt_tokens": getattr(usage, "prompt_tokens", 0),
                        "completion_tokens": getattr(usage, "completion_tokens", 0),
                    }

                latency_ms = int((time.time() - start_time) * 1000)
                self.logger.info(
                    "llm_completion_success",
                    model=route.model,
                    tokens=token_stats.get("total_tokens", 0),
                    latency_ms=latency_ms,
                )
                return {
                    "success": True,
                    "content": content,
                    "usage": token_stats,
                    "model": route.model,
                    "provider": route.name,
                    "latency_ms": latency_ms,
                }

            except Exception as e:
                error_type = type(e).__name__
                error_msg = str(e)

                should_retry = attempt < self.retry_policy.max_attempts - 1 and any(
                    err_type in error_type or err_type in error_msg
                    for err_type in self.retry_policy.retry_on_errors
                )
                if should_retry:
                    backoff_time = self.retry_policy.backoff_multiplier**attempt
                    self.logger.warning(
                        "llm_completion_retry",
                        model=route.model,
                        error_type=error_type,
                        attempt=attempt + 1,
                        backoff_seconds=backoff_time,
                    )
                    await asyncio.sleep(backoff_time)
                else:
                    self.logger.error(
                        "llm_completion_failed",
                        model=route.model,
                        error_type=error_type,
                        error=error_msg[:200],
                        attempts=attempt + 1,
                    )
                    return {
                        "success": False,
                        "error": error_msg,
                        "error_type": error_type,
                        "model": route.model,
                        "provider": route.name,
                    }

        return {"success": False, "error": "Max retries exceeded", "model": route.model, "provider": route.name}
