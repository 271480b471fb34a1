"""
Protocols for collaborators the core depends on.

The core planning logic only knows these shapes; concrete adapters live in
`taskswarm.infrastructure`.
"""

from typing import Any, Protocol


class GenerationBackend(Protocol):
    """A generative model that answers with a single JSON object."""

    @property
    def name(self) -> str:
        """Identifier of the backend actually used (e.g. "openai", "cli")."""
        ...

    async def generate_json(self, system: str, user: str) -> dict[str, Any]:
        """Return the parsed JSON object from the model's answer.

        Raises:
            RuntimeError: If no backend is configured, the call fails or the
                answer contains no JSON object.
        """
        ...
