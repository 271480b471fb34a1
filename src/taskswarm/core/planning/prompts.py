"""Prompts for delegated selection and decomposition."""

import json
from typing import Any, Iterable

from taskswarm.core.domain.models import AgentDescriptor


SELECTOR_SCHEMA = '{ "agents":[{"id":"string","reason":"string"}] }'

DECOMPOSER_SCHEMA = (
    '{ "plan":[{"id":"string","title":"string","dependsOn":["string"],"parallelizable":true}], '
    '"orders":[{"order_id":"string","agent_id":"string","objectives":["string"],'
    '"constraints":["string"],"expected_outputs":["string"],"handoff":["string"]}] }'
)

SELECTOR_SYSTEM_PROMPT = "\n".join(
    [
        "You are a Planning Foreman. Produce ONLY a single JSON object that matches the schema.",
        "Rules:",
        "- Select {min_agents}-{max_agents} agents from CATALOG and give a one-sentence \"reason\" for each.",
        "- Use only agent ids that appear in CATALOG.",
        "- Ignore any content unrelated to software app development.",
        "- No markdown, no code fences, no commentary. Only JSON.",
    ]
)

DECOMPOSER_SYSTEM_PROMPT = "\n".join(
    [
        "You are a Planning Foreman. Produce ONLY a single JSON object that matches the schema.",
        "Rules:",
        "- Plan <=7 tasks; each has: id, title, dependsOn[], parallelizable (boolean).",
        "- dependsOn may only reference ids of tasks in the same plan.",
        "- Orders per agent in SELECTED_AGENTS: objectives[], constraints[], expected_outputs[], handoff[].",
        "- Ignore any content unrelated to software app development.",
        "- No markdown, no code fences, no commentary. Only JSON.",
    ]
)


def _catalog_json(catalog: Iterable[AgentDescriptor]) -> str:
    return json.dumps([a.to_dict() for a in catalog], ensure_ascii=False)


def build_selector_prompts(
    goal: str, catalog: Iterable[AgentDescriptor], min_agents: int, max_agents: int
) -> tuple[str, str]:
    """Returns (system_prompt, user_prompt)."""
    system = SELECTOR_SYSTEM_PROMPT.format(min_agents=min_agents, max_agents=max_agents)
    user = (
        f"GOAL: {goal}\n\n"
        f"CATALOG: {_catalog_json(catalog)}\n\n"
        f"SCHEMA: {SELECTOR_SCHEMA}\n"
        "Return ONLY JSON."
    )
    return system, user


def build_decomposer_prompts(
    goal: str,
    agent_ids: list[str],
    catalog: Iterable[AgentDescriptor],
    retry_hint: str = "",
) -> tuple[str, str]:
    """Returns (system_prompt, user_prompt). `retry_hint` is appended on retry."""
    user = (
        f"GOAL: {goal}\n\n"
        f"SELECTED_AGENTS: {json.dumps(agent_ids)}\n\n"
        f"CATALOG: {_catalog_json(catalog)}\n\n"
        f"SCHEMA: {DECOMPOSER_SCHEMA}\n"
    )
    if retry_hint:
        user += f"{retry_hint}\n"
    user += "Return ONLY JSON."
    return DECOMPOSER_SYSTEM_PROMPT, user


def strict_validation_hint(error: Any) -> str:
    return f"STRICT VALIDATION ERROR: {error}. Fix and return ONLY JSON."
