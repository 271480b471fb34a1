"""
Structured JSON generation over the configured backend.

Implements the `GenerationBackend` protocol used by the delegated selector
and decomposer. The backend is picked once from settings in priority order
(OpenAI, Anthropic, Ollama, CLI command).
"""

import json
from typing import Any, Dict, Optional

import structlog

from taskswarm.config import SwarmSettings
from taskswarm.infrastructure.llm.cli_runner import CLIRunner
from taskswarm.infrastructure.llm.llm_service import LLMService

logger = structlog.get_logger()


def extract_json(text: str) -> Dict[str, Any]:
    """Parse the span from the first `{` to the last `}`.

    Raises:
        RuntimeError: If no object span exists or it does not parse
    """
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise RuntimeError("no JSON object in response")
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise RuntimeError(f"invalid JSON in response: {e}") from e
    if not isinstance(data, dict):
        raise RuntimeError("response JSON is not an object")
    return data


def cli_prompt(system: str, user: str) -> str:
    return f"SYSTEM:\n{system}\n\nUSER:\n{user}\nReturn ONLY JSON.\n"


class StructuredGenerator:
    def __init__(
        self,
        settings: SwarmSettings,
        llm_service: Optional[LLMService] = None,
        cli_runner: Optional[CLIRunner] = None,
    ):
        self.settings = settings
        self.backend = settings.delegated_backend()
        self.llm_service = llm_service or LLMService(settings)
        self.cli_runner = cli_runner
        if self.cli_runner is None and settings.run_cmd:
            self.cli_runner = CLIRunner(settings.run_cmd, timeout=settings.llm_timeout)
        self.logger = logger.bind(component="structured_generator", backend=self.backend)

    @property
    def name(self) -> str:
        return self.backend or "none"

    async def generate_json(self, system: str, user: str) -> Dict[str, Any]:
        if self.backend is None:
            raise RuntimeError(
                "No generation backend configured (set an OpenAI/Anthropic key, an Ollama URL or RUN_CMD)"
            )

        if self.backend == "cli":
            result = await self.cli_runner.run(cli_prompt(system, user))
        else:
            result = await self.llm_service.complete(
                [{"role": "system", "content": system}, {"role": "user", "content": user}],
                provider=self.backend,
                temperature=self.settings.planner_temperature,
                max_tokens=self.settings.planner_max_tokens,
            )

        if not result.get("success"):
            raise RuntimeError(f"{self.backend} generation failed: {result.get('error') or 'unknown error'}")

        data = extract_json(result.get("content") or "")
        self.logger.debug("generator.parsed", keys=sorted(data))
        return data
