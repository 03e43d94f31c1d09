"""Tests for the Compensation undo list."""

from unittest.mock import AsyncMock

from gpsr_billing.billing.saga import Compensation


class TestCompensation:
    async def test_runs_newest_first(self):
        calls: list[str] = []

        async def _undo(name: str) -> None:
            calls.append(name)

        compensation = Compensation()
        compensation.push("first", lambda: _undo("first"))
        compensation.push("second", lambda: _undo("second"))

        await compensation.run()

        assert calls == ["second", "first"]
        assert len(compensation) == 0

    async def test_failed_step_does_not_stop_the_rest(self):
        failing = AsyncMock(side_effect=RuntimeError("stripe down"))
        succeeding = AsyncMock()

        compensation = Compensation()
        compensation.push("survives", succeeding)
        compensation.push("fails", failing)

        await compensation.run()

        failing.assert_awaited_once()
        succeeding.assert_awaited_once()

    async def test_clear_discards_actions(self):
        action = AsyncMock()
        compensation = Compensation()
        compensation.push("unused", action)

        compensation.clear()
        await compensation.run()

        action.assert_not_awaited()
