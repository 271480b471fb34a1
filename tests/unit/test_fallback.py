"""Tests for the ordered fallback chain."""

import pytest

from taskswarm.core.planning.fallback import Attempt, AttemptRejected, FallbackChain


def _returning(value):
    async def run():
        return value

    return run


def _raising(error):
    async def run():
        raise error

    return run


class TestFallbackChain:
    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        chain = FallbackChain([Attempt("a", _returning(1)), Attempt("b", _returning(2))])
        outcome = await chain.run()
        assert outcome.value == 1
        assert outcome.attempt == "a"
        assert outcome.failures == []

    @pytest.mark.asyncio
    async def test_failures_recorded_in_order(self):
        """Rejected and raising attempts are skipped and recorded."""
        chain = FallbackChain(
            [
                Attempt("rejected", _raising(AttemptRejected("bad shape"))),
                Attempt("broken", _raising(RuntimeError("boom"))),
                Attempt("safe", _returning("ok")),
            ]
        )
        outcome = await chain.run()
        assert outcome.value == "ok"
        assert outcome.attempt == "safe"
        assert outcome.failures == [("rejected", "bad shape"), ("broken", "boom")]

    @pytest.mark.asyncio
    async def test_all_fail_reraises_last(self):
        chain = FallbackChain([Attempt("a", _raising(ValueError("x"))), Attempt("b", _raising(KeyError("y")))])
        with pytest.raises(KeyError):
            await chain.run()

    def test_requires_attempts(self):
        with pytest.raises(ValueError):
            FallbackChain([])

    @pytest.mark.asyncio
    async def test_emptied_chain_raises_runtime_error(self):
        """Clearing attempts after construction still fails loudly."""
        chain = FallbackChain([Attempt("a", _returning(1))])
        chain.attempts = []
        with pytest.raises(RuntimeError, match="no attempts"):
            await chain.run()
