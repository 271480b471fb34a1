"""Scenario Composer: planning artifact -> fixed three-phase scenario."""

from typing import Iterable, Sequence

from taskswarm.core.domain.events import utc_now_iso
from taskswarm.core.domain.models import Order, Phase, Scenario, SelectedAgent, Task

PLAN_PHASE = "Phase 1 — Plan"
EXECUTE_PHASE = "Phase 2 — Execute"
VALIDATE_PHASE = "Phase 3 — Test & Validate"

# (substring of agent id, alias); first match wins
ALIAS_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("architect",), "architect"),
    (("backend",), "backend"),
    (("coder", "frontend"), "frontend"),
    (("docs",), "docs"),
    (("tester",), "tester"),
    (("validator",), "validator"),
    (("scaffold",), "scaffold"),
)


def alias_from_agent_id(agent_id: str) -> str | None:
    """Map an agent id to its role alias, or None when no rule applies."""
    if not agent_id:
        return None
    lowered = agent_id.lower()
    for needles, alias in ALIAS_RULES:
        if any(n in lowered for n in needles):
            return alias
    return None


def compose(
    title: str,
    agents: Iterable[SelectedAgent],
    plan: Sequence[Task],
    orders: Iterable[Order],
) -> Scenario:
    """
    Build the executable scenario.

    The scenario always has exactly three phases, in order: a sequential plan
    phase, a parallel execute phase derived from the orders (possibly empty)
    and a parallel test & validate phase. `plan` is accepted for symmetry with
    the artifact but the phase layout does not depend on it.
    """
    why = {a.id: a.reason or "selected" for a in agents}

    execute: dict[str, list[str]] = {}
    for order in orders:
        alias = alias_from_agent_id(order.agent_id) or order.agent_id
        todo = list(order.objectives[:2]) or ["Execute role tasks"]
        execute.setdefault(alias, []).extend(todo)

    phases = [
        Phase(PLAN_PHASE, parallel=False, tasks={"architect": [title or "Define architecture and constraints"]}),
        Phase(EXECUTE_PHASE, parallel=True, tasks=execute),
        Phase(
            VALIDATE_PHASE,
            parallel=True,
            tasks={"tester": ["Write tests/smoke"], "validator": ["Validate build & packaging"]},
        ),
    ]
    return Scenario(title=title or f"Plan for: {utc_now_iso()}", why=why, phases=phases)
