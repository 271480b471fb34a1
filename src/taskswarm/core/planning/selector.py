"""
Agent Selector

Chooses a small team of agents (default 2-5) from the catalog for a goal.
Three strategies share one interface:

- HeuristicSelector: token overlap scoring against id, name and capabilities
- RuleBasedSelector: deterministic keyword/regex rules mapping to canonical roles
- DelegatedSelector: asks a generative backend, falls back to the heuristic

Whatever the strategy returns is passed through `clamp_selection`, which
guarantees catalog-only ids, non-empty reasons and a size within bounds.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

import structlog

from taskswarm.core.domain.models import AgentDescriptor, SelectedAgent, SelectionResult
from taskswarm.core.interfaces import GenerationBackend
from taskswarm.core.planning.fallback import Attempt, AttemptRejected, FallbackChain
from taskswarm.core.planning.prompts import build_selector_prompts

logger = structlog.get_logger()


class PlanningMode(str, Enum):
    """Strategy tag shared by the selector and the decomposer."""

    HEURISTIC = "heuristic"
    RULE_BASED = "rule_based"
    DELEGATED = "delegated"

    @classmethod
    def parse(cls, value: "str | PlanningMode | None") -> "PlanningMode":
        """Parse a configured mode, accepting the historical aliases."""
        if isinstance(value, PlanningMode):
            return value
        text = str(value or "heuristic").strip().lower().replace("-", "_")
        aliases = {
            "finite": cls.RULE_BASED,
            "finite_state": cls.RULE_BASED,
            "fsm": cls.RULE_BASED,
            "rules": cls.RULE_BASED,
            "tiny": cls.DELEGATED,
            "llm": cls.DELEGATED,
            "cloud": cls.DELEGATED,
        }
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown planning mode: {value!r}") from None


@dataclass(frozen=True)
class SelectionBounds:
    min: int = 2
    max: int = 5

    def __post_init__(self):
        if self.min < 1 or self.max < self.min:
            raise ValueError(f"Invalid selection bounds: min={self.min}, max={self.max}")


def tokenize(text: str) -> list[str]:
    """Lowercase and split on non-alphanumerics."""
    return [t for t in re.split(r"[^a-z0-9]+", str(text or "").lower()) if t]


def score_agent(agent: AgentDescriptor, tokens: Iterable[str]) -> int:
    text = agent.search_text
    score = sum(1 for t in tokens if t in text)
    if agent.default:
        score += 1
    return score


def rank_agents(catalog: Sequence[AgentDescriptor], tokens: list[str]) -> list[tuple[AgentDescriptor, int]]:
    """Catalog sorted by score descending, ties broken by id."""
    scored = [(agent, score_agent(agent, tokens)) for agent in catalog]
    scored.sort(key=lambda pair: (-pair[1], pair[0].id))
    return scored


def heuristic_pick(goal: str, catalog: Sequence[AgentDescriptor], bounds: SelectionBounds) -> list[SelectedAgent]:
    ranked = rank_agents(catalog, tokenize(goal))
    picked = [SelectedAgent(id=a.id, reason="heuristic") for a, s in ranked if s > 0][: bounds.max]
    if not picked:
        return [SelectedAgent(id=a.id, reason="default") for a in list(catalog)[: bounds.min]]
    return picked


def clamp_selection(
    agents: Iterable[SelectedAgent],
    goal: str,
    catalog: Sequence[AgentDescriptor],
    bounds: SelectionBounds,
) -> list[SelectedAgent]:
    """Enforce the selection post-conditions on any strategy's output."""
    known = {a.id for a in catalog}
    out: list[SelectedAgent] = []
    seen: set[str] = set()
    for agent in agents:
        if agent.id not in known or agent.id in seen:
            continue
        seen.add(agent.id)
        out.append(agent if agent.reason.strip() else SelectedAgent(id=agent.id, reason="selected"))
    out = out[: bounds.max]

    if len(out) < bounds.min:
        for candidate, _ in rank_agents(catalog, tokenize(goal)):
            if len(out) >= bounds.min:
                break
            if candidate.id not in seen:
                seen.add(candidate.id)
                out.append(SelectedAgent(id=candidate.id, reason="heuristic-fill"))
    return out


class SelectorStrategy(ABC):
    """Base class for selection strategies."""

    mode: PlanningMode

    @abstractmethod
    async def select(
        self, goal: str, catalog: Sequence[AgentDescriptor], bounds: SelectionBounds
    ) -> list[SelectedAgent]:
        pass


class HeuristicSelector(SelectorStrategy):
    mode = PlanningMode.HEURISTIC

    async def select(self, goal, catalog, bounds):
        return heuristic_pick(goal, catalog, bounds)


@dataclass(frozen=True)
class RoleRule:
    """Maps goal words or a goal regex to one canonical agent id."""

    agent_id: str
    words: frozenset[str]
    pattern: re.Pattern | None = None

    def matches(self, tokens: set[str], text: str) -> bool:
        if self.words & tokens:
            return True
        return bool(self.pattern and self.pattern.search(text))


DEFAULT_ROLE_RULES: tuple[RoleRule, ...] = (
    RoleRule(
        "system-architect",
        frozenset({"design", "architecture"}),
        re.compile(r"architect|diagram"),
    ),
    RoleRule(
        "backend-dev",
        frozenset({"api", "endpoint", "server"}),
        re.compile(r"\brest\b|graphql"),
    ),
    RoleRule(
        "coder",
        frozenset({"ui", "frontend"}),
        re.compile(r"react|next\.js|nextjs"),
    ),
    RoleRule(
        "api-docs",
        frozenset({"doc", "docs", "documentation", "openapi", "swagger"}),
    ),
    RoleRule(
        "tester",
        frozenset({"test", "qa", "validate"}),
        re.compile(r"tests?\b"),
    ),
)


class RuleBasedSelector(SelectorStrategy):
    """Deterministic selection: a pure function of (goal, catalog)."""

    mode = PlanningMode.RULE_BASED

    def __init__(self, rules: Sequence[RoleRule] = DEFAULT_ROLE_RULES):
        self.rules = tuple(rules)

    def matched_roles(self, goal: str) -> list[str]:
        tokens = set(tokenize(goal))
        text = str(goal or "").lower()
        return [rule.agent_id for rule in self.rules if rule.matches(tokens, text)]

    async def select(self, goal, catalog, bounds):
        wanted = self.matched_roles(goal)
        if not wanted:
            return [SelectedAgent(id=a.id, reason="rule-default") for a in heuristic_pick(goal, catalog, bounds)]

        known = {a.id for a in catalog}
        selected = [
            SelectedAgent(id=agent_id, reason="rule-match") for agent_id in wanted if agent_id in known
        ][: bounds.max]
        if len(selected) < bounds.min:
            chosen = {a.id for a in selected}
            for agent, _ in rank_agents(catalog, tokenize(goal)):
                if len(selected) >= bounds.min:
                    break
                if agent.id not in chosen:
                    chosen.add(agent.id)
                    selected.append(SelectedAgent(id=agent.id, reason="rule-fill"))
        return selected


class DelegatedSelector(SelectorStrategy):
    """
    Delegates selection to a generative backend.

    Any failure (transport error, unparsable answer, empty or unknown agent
    list) silently falls back to heuristic selection. No retry at this layer.
    """

    mode = PlanningMode.DELEGATED

    def __init__(self, backend: GenerationBackend, fallback: SelectorStrategy | None = None):
        self.backend = backend
        self.fallback = fallback or HeuristicSelector()

    async def _delegate(self, goal, catalog, bounds) -> list[SelectedAgent]:
        system, user = build_selector_prompts(goal, catalog, bounds.min, bounds.max)
        data = await self.backend.generate_json(system, user)
        agents = _parse_agents(data, {a.id for a in catalog})
        if not agents:
            raise AttemptRejected("delegated selector returned no known agents", data)
        return agents

    async def select(self, goal, catalog, bounds):
        chain = FallbackChain(
            [
                Attempt("delegated", lambda: self._delegate(goal, catalog, bounds)),
                Attempt("heuristic", lambda: self.fallback.select(goal, catalog, bounds)),
            ],
            component="delegated_selector",
        )
        outcome = await chain.run()
        return outcome.value


def _parse_agents(data: Any, known: set[str]) -> list[SelectedAgent]:
    raw = data.get("agents") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        return []
    agents = []
    for item in raw:
        if not isinstance(item, dict) or str(item.get("id", "")) not in known:
            continue
        agents.append(SelectedAgent(id=str(item["id"]), reason=str(item.get("reason") or "delegated-ranked")))
    return agents


def create_selector(mode: "str | PlanningMode", backend: GenerationBackend | None = None) -> SelectorStrategy:
    """Build the strategy for a configured mode."""
    parsed = PlanningMode.parse(mode)
    if parsed is PlanningMode.RULE_BASED:
        return RuleBasedSelector()
    if parsed is PlanningMode.DELEGATED:
        if backend is None:
            raise ValueError("Delegated selection requires a generation backend")
        return DelegatedSelector(backend)
    return HeuristicSelector()


class AgentSelector:
    """Runs a strategy and enforces selection bounds on its output."""

    def __init__(self, strategy: SelectorStrategy, bounds: SelectionBounds | None = None):
        self.strategy = strategy
        self.bounds = bounds or SelectionBounds()
        self.logger = logger.bind(component="agent_selector", mode=strategy.mode.value)

    async def select(self, goal: str, catalog: Sequence[AgentDescriptor]) -> SelectionResult:
        catalog = list(catalog)
        raw = await self.strategy.select(goal, catalog, self.bounds)
        agents = clamp_selection(raw, goal, catalog, self.bounds)
        self.logger.info("selector.selected", count=len(agents), agents=[a.id for a in agents])
        return SelectionResult(agents=tuple(agents))


async def select_agents(
    goal: str,
    catalog: Sequence[AgentDescriptor],
    mode: "str | PlanningMode" = PlanningMode.HEURISTIC,
    backend: GenerationBackend | None = None,
    bounds: SelectionBounds | None = None,
) -> SelectionResult:
    """Functional entry point: select agents for a goal with the given mode."""
    selector = AgentSelector(create_selector(mode, backend), bounds)
    return await selector.select(goal, catalog)
